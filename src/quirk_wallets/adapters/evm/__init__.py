from .constants import (
    NETWORKS,
    EvmNetwork,
    ChainConfig,
    ChainRegistry,
    normalize_chain_key,
    normalize_mint_recipient,
    amount_to_value,
)
from .factory import FactoryClient
from .schemas import WalletCreationReceipt

__all__ = [
    "NETWORKS",
    "EvmNetwork",
    "ChainConfig",
    "ChainRegistry",
    "normalize_chain_key",
    "normalize_mint_recipient",
    "amount_to_value",
    "FactoryClient",
    "WalletCreationReceipt",
]
