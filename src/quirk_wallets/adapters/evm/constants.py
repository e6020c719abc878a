"""
EVM Chain Configuration Management

Provides the static network table for every supported chain, the immutable
per-chain ``ChainConfig`` used by the factory client, and the registry that
builds those configs from environment variables.

Environment Variables (per chain, KEY in ETH / ARBITRUM / BASE / AVALANCHE):
    - {KEY}_PRIVATE_KEY: Factory owner's private key (required to enable the chain)
    - {KEY}_FACTORY_ADDRESS: Wallet factory contract address (required to enable the chain)
    - {KEY}_RPC_URL: JSON-RPC endpoint (optional, falls back to the public RPC)
"""

import os
import re
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, List, Mapping, Optional

import dotenv
from eth_utils import to_bytes
from pydantic import BaseModel, ConfigDict, Field
from web3 import Web3

from ...engine.exceptions import ConfigurationError, UnsupportedChainError, ValidationError

dotenv.load_dotenv()


#: USDC uses 6 decimals on every supported network.
USDC_DECIMALS: int = 6

#: Default number of attempts per chain.
DEFAULT_MAX_ATTEMPTS: int = 2

#: Fixed delay between attempts, in seconds.
DEFAULT_BACKOFF_SECONDS: float = 2.0


class EvmNetwork(BaseModel):
    """Public, secret-free metadata of one supported network."""
    model_config = ConfigDict(frozen=True)

    chain_key: str = Field(..., description="Short key used by clients (eth, base, ...)")
    name: str = Field(..., description="Human-readable network name")
    env_prefix: str = Field(..., description="Prefix of this chain's environment variables")
    chain_id: int = Field(..., ge=1, description="EIP-155 chain id")
    domain_id: int = Field(..., ge=0, description="Cross-chain messaging destination domain")
    usdc_address: str = Field(..., description="USDC token contract address")
    explorer_url: str = Field(..., description="Block explorer base URL")
    public_rpc_url: str = Field(..., description="Public RPC endpoint (fallback when none configured)")
    block_time: float = Field(..., gt=0, description="Typical block time in seconds")


class ChainConfig(BaseModel):
    """
    Immutable per-chain configuration for wallet provisioning.

    Built once at process start by :class:`ChainRegistry` and shared read-only
    across requests. The signing credential is hidden from ``repr``.
    """
    model_config = ConfigDict(frozen=True)

    chain_key: str
    signing_credential: str = Field(..., repr=False, description="Factory owner private key")
    rpc_endpoint: str = Field(..., repr=False, description="JSON-RPC endpoint URL")
    factory_address: str
    domain_id: int = Field(..., ge=0)
    chain_id: int = Field(..., ge=1)
    usdc_contract_address: str
    explorer_base_url: str
    native_block_time_estimate: float = Field(..., gt=0, description="Seconds between blocks")


_EVM_NETWORKS_DATA: Dict[str, Dict] = {
    "eth": {
        "name": "Ethereum Sepolia",
        "env_prefix": "ETH",
        "chain_id": 11155111,
        "domain_id": 0,
        "usdc_address": "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        "explorer_url": "https://sepolia.etherscan.io",
        "public_rpc_url": "https://rpc.sepolia.org",
        "block_time": 12.0,
    },
    "avalanche": {
        "name": "Avalanche Fuji",
        "env_prefix": "AVALANCHE",
        "chain_id": 43113,
        "domain_id": 1,
        "usdc_address": "0x5425890298aed601595a70AB815c96711a31Bc65",
        "explorer_url": "https://testnet.snowtrace.io",
        "public_rpc_url": "https://api.avax-test.network/ext/bc/C/rpc",
        "block_time": 3.0,
    },
    "arbitrum": {
        "name": "Arbitrum Sepolia",
        "env_prefix": "ARBITRUM",
        "chain_id": 421614,
        "domain_id": 3,
        "usdc_address": "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
        "explorer_url": "https://sepolia.arbiscan.io",
        "public_rpc_url": "https://sepolia-rollup.arbitrum.io/rpc",
        "block_time": 1.0,
    },
    "base": {
        "name": "Base Sepolia",
        "env_prefix": "BASE",
        "chain_id": 84532,
        "domain_id": 6,
        "usdc_address": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        "explorer_url": "https://sepolia.basescan.org",
        "public_rpc_url": "https://sepolia.base.org",
        "block_time": 2.0,
    },
}

NETWORKS: Dict[str, EvmNetwork] = {
    key: EvmNetwork(chain_key=key, **data) for key, data in _EVM_NETWORKS_DATA.items()
}

_CHAIN_KEY_ALIASES: Dict[str, str] = {
    "ethereum": "eth",
    "avax": "avalanche",
}

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_PADDED_ADDRESS_RE = re.compile(r"^0x0{24}([0-9a-fA-F]{40})$")


def normalize_chain_key(chain_key: str) -> str:
    """Lower-case a chain key and resolve known aliases (``Ethereum`` -> ``eth``)."""
    key = chain_key.strip().lower()
    return _CHAIN_KEY_ALIASES.get(key, key)


def get_network(chain_key: str) -> Optional[EvmNetwork]:
    """Look up public network metadata by chain key, or None if unknown."""
    return NETWORKS.get(normalize_chain_key(chain_key))


def get_domain_id(chain_key: str) -> int:
    """
    Resolve the destination domain of a settlement chain.

    Raises:
        UnsupportedChainError: If the chain key is unknown.
    """
    network = get_network(chain_key)
    if network is None:
        raise UnsupportedChainError(
            f"Chain {chain_key} not supported yet. Supported chains: {', '.join(NETWORKS)}",
            chain_key=chain_key,
        )
    return network.domain_id


def normalize_mint_recipient(mint_recipient: str) -> str:
    """
    Normalize a mint recipient into its 32-byte, left-zero-padded hex form.

    Accepts either a plain 20-byte address (``0x`` + 40 hex) or the padded
    bytes32 form (``0x`` + 24 zeros + 40 hex).

    Raises:
        ValidationError: If the value is neither form.
    """
    if not isinstance(mint_recipient, str):
        raise ValidationError("mintRecipient must be a string")
    value = mint_recipient.strip()
    if _ADDRESS_RE.match(value):
        return "0x" + "0" * 24 + value[2:].lower()
    padded = _PADDED_ADDRESS_RE.match(value)
    if padded:
        return "0x" + "0" * 24 + padded.group(1).lower()
    raise ValidationError(
        "mintRecipient must be a 0x-prefixed 40-hex-character address "
        "or its 32-byte zero-padded form"
    )


def mint_recipient_to_bytes32(mint_recipient: str) -> bytes:
    """Return the 32 raw bytes passed to the factory as ``bytes32 mintRecipient``."""
    return to_bytes(hexstr=normalize_mint_recipient(mint_recipient))


def _lookup(name: str, environ: Optional[Mapping[str, str]]) -> Optional[str]:
    # empty values count as unset
    source = os.environ if environ is None else environ
    return source.get(name) or None


def get_private_key_from_env(env_prefix: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Load a chain's factory owner private key, e.g. ``BASE_PRIVATE_KEY``."""
    return _lookup(f"{env_prefix}_PRIVATE_KEY", environ)


def get_rpc_url_from_env(env_prefix: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Load a chain's RPC endpoint, e.g. ``BASE_RPC_URL``."""
    return _lookup(f"{env_prefix}_RPC_URL", environ)


def get_factory_address_from_env(env_prefix: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Load a chain's factory contract address, e.g. ``BASE_FACTORY_ADDRESS``."""
    return _lookup(f"{env_prefix}_FACTORY_ADDRESS", environ)


def build_chain_config(
    network: EvmNetwork,
    private_key: str,
    factory_address: str,
    rpc_url: Optional[str] = None,
) -> ChainConfig:
    """
    Combine public network metadata with deployment secrets.

    Raises:
        ConfigurationError: If the factory address is not a valid EVM address.
    """
    if not Web3.is_address(factory_address):
        raise ConfigurationError(
            f"{network.env_prefix}_FACTORY_ADDRESS is not a valid address: {factory_address!r}"
        )
    return ChainConfig(
        chain_key=network.chain_key,
        signing_credential=private_key,
        rpc_endpoint=rpc_url or network.public_rpc_url,
        factory_address=Web3.to_checksum_address(factory_address),
        domain_id=network.domain_id,
        chain_id=network.chain_id,
        usdc_contract_address=network.usdc_address,
        explorer_base_url=network.explorer_url,
        native_block_time_estimate=network.block_time,
    )


class ChainRegistry:
    """
    Read-only lookup of :class:`ChainConfig` by chain key.

    Example:
        registry = ChainRegistry.from_env()
        config = registry.require("base")
    """

    def __init__(self, configs: Optional[List[ChainConfig]] = None):
        self._configs: Dict[str, ChainConfig] = {}
        for config in configs or []:
            self._configs[normalize_chain_key(config.chain_key)] = config

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ChainRegistry":
        """
        Build a registry from environment variables.

        Only chains with both a private key and a factory address are
        registered; the others stay unsupported.

        Args:
            environ: Optional mapping used instead of ``os.environ`` (tests).
        """
        configs = []
        for network in NETWORKS.values():
            private_key = get_private_key_from_env(network.env_prefix, environ)
            factory = get_factory_address_from_env(network.env_prefix, environ)
            rpc_url = get_rpc_url_from_env(network.env_prefix, environ)
            if not private_key or not factory:
                continue
            configs.append(build_chain_config(network, private_key, factory, rpc_url))
        return cls(configs)

    def get(self, chain_key: str) -> Optional[ChainConfig]:
        return self._configs.get(normalize_chain_key(chain_key))

    def require(self, chain_key: str) -> ChainConfig:
        """
        Resolve a chain's config.

        Raises:
            UnsupportedChainError: If the chain has no registry entry.
        """
        config = self.get(chain_key)
        if config is None:
            raise UnsupportedChainError(
                f"Chain {chain_key} not supported yet. Supported chains: {', '.join(self.chain_keys()) or 'none'}",
                chain_key=chain_key,
            )
        return config

    def chain_keys(self) -> List[str]:
        return list(self._configs)

    def __contains__(self, chain_key: str) -> bool:
        return normalize_chain_key(chain_key) in self._configs

    def __iter__(self) -> Iterator[ChainConfig]:
        return iter(self._configs.values())

    def __len__(self) -> int:
        return len(self._configs)


def amount_to_value(*, amount: float | int | str | Decimal, decimals: int = USDC_DECIMALS) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    Args:
        amount: Human-readable amount (e.g. 1.23 for USDC). Accepts float/int/str/Decimal.
        decimals: Token decimals (6 for USDC).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount cannot be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        # str() avoids binary-float surprises (0.1 -> 0.100000000000000005...)
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if not dec_amount.is_finite() or dec_amount < 0:
        raise ValueError("amount must be a finite non-negative number")

    scaled = dec_amount * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)

