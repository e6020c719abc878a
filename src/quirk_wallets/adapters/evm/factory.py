"""
EVM Wallet Factory Client

Wraps a single chain's wallet factory contract: the ``owner()`` read call,
the ``createSingleWallet`` write call and decoding of the ``WalletCreated``
event from the mined receipt.

The client is stateless across calls; everything chain-specific comes from
the ``ChainConfig`` passed in, so one instance serves every chain.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Tuple

from eth_account import Account
from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound
from web3.types import TxReceipt

from ..bases import WalletFactory
from .FACTORY_ABI import WALLET_CREATED_SIGNATURE, get_factory_abi
from .constants import ChainConfig, mint_recipient_to_bytes32
from .schemas import WalletCreationReceipt
from ...engine.exceptions import ConfigurationError, EventNotFoundError, RpcError
from ...utils import mask_secret

logger = logging.getLogger(__name__)

WALLET_CREATED_TOPIC = HexBytes(Web3.keccak(text=WALLET_CREATED_SIGNATURE))


class FactoryClient(WalletFactory):
    """
    Factory client backed by ``web3.py``'s async API.

    Transactions are signed locally with the chain's credential and sent with
    ``eth_sendRawTransaction``; confirmation is awaited by polling
    ``eth_getTransactionReceipt`` at the chain's block-time interval.

    Example:
        client = FactoryClient()
        if await client.verify_ownership(config):
            receipt = await client.create_wallet(config, 6, "0x" + "ab" * 20)
            print(receipt.wallet_address)
    """

    def __init__(
        self,
        request_timeout: int = 60,
        max_receipt_polls: int = 100,
        poll_interval: Optional[float] = None,
    ):
        """
        Args:
            request_timeout: HTTP timeout for each JSON-RPC request, in seconds.
            max_receipt_polls: Upper bound on receipt polls before giving up.
            poll_interval: Seconds between polls. Defaults to the chain's
                block-time estimate.
        """
        self._request_timeout = request_timeout
        self._max_receipt_polls = max_receipt_polls
        self._poll_interval = poll_interval

    def _get_web3_instance(self, config: ChainConfig) -> AsyncWeb3:
        """Create an AsyncWeb3 instance bound to the chain's RPC endpoint."""
        return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            config.rpc_endpoint,
            request_kwargs={"timeout": self._request_timeout}
        ))

    @staticmethod
    def _get_account(config: ChainConfig):
        try:
            return Account.from_key(config.signing_credential)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(
                f"{config.chain_key.upper()} private key is malformed"
            ) from e

    async def verify_ownership(self, config: ChainConfig) -> bool:
        account = self._get_account(config)
        web3 = self._get_web3_instance(config)
        factory = web3.eth.contract(address=config.factory_address, abi=get_factory_abi())

        try:
            owner = await factory.functions.owner().call()
        except Exception as e:
            raise RpcError(
                f"Failed to read factory owner via {mask_secret(config.rpc_endpoint)}: {e}",
                chain_key=config.chain_key,
            ) from e

        is_owner = str(owner).lower() == account.address.lower()
        if not is_owner:
            logger.warning(
                "%s factory %s is owned by %s, not by signer %s",
                config.chain_key.upper(), config.factory_address, owner, account.address,
            )
        return is_owner

    async def create_wallet(
        self,
        config: ChainConfig,
        destination_domain: int,
        mint_recipient: str,
    ) -> WalletCreationReceipt:
        account = self._get_account(config)
        recipient = mint_recipient_to_bytes32(mint_recipient)
        web3 = self._get_web3_instance(config)
        factory = web3.eth.contract(address=config.factory_address, abi=get_factory_abi())

        try:
            tx_fn = factory.functions.createSingleWallet(destination_domain, recipient)
            gas_estimate = await tx_fn.estimate_gas({"from": account.address})
            gas_price = await web3.eth.gas_price
            tx_nonce = await web3.eth.get_transaction_count(account.address, "pending")
            tx = await tx_fn.build_transaction({
                "from": account.address,
                "chainId": config.chain_id,
                "gas": int(gas_estimate * 1.1),
                "gasPrice": gas_price,
                "nonce": tx_nonce,
            })
            signed_tx = account.sign_transaction(tx)
        except Exception as e:
            raise RpcError(
                f"Failed to build createSingleWallet transaction: {e}",
                chain_key=config.chain_key,
            ) from e

        receipt, tx_hash_hex = await self._send_and_confirm(signed_tx.raw_transaction, web3, config)

        if receipt.get("status") == 0:
            raise EventNotFoundError(
                f"Transaction {tx_hash_hex} reverted on-chain; no WalletCreated event",
                chain_key=config.chain_key,
                tx_hash=tx_hash_hex,
            )

        wallet_address = self._decode_wallet_created(receipt, config.factory_address)
        if wallet_address is None:
            raise EventNotFoundError(
                f"WalletCreated event not found in transaction {tx_hash_hex}",
                chain_key=config.chain_key,
                tx_hash=tx_hash_hex,
            )

        return WalletCreationReceipt(
            chain_key=config.chain_key,
            tx_hash=tx_hash_hex,
            wallet_address=wallet_address,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )

    async def _send_and_confirm(
        self,
        raw_transaction: bytes,
        web3: AsyncWeb3,
        config: ChainConfig,
    ) -> Tuple[TxReceipt, str]:
        """
        Broadcast a signed transaction and poll for its receipt.

        Returns:
            (receipt, tx_hash_hex) once the transaction is included in a block.

        Raises:
            RpcError: If broadcasting fails, a poll fails for a reason other
                than "not yet mined", or the poll bound is exceeded.
        """
        try:
            tx_hash = await web3.eth.send_raw_transaction(raw_transaction)
        except Exception as e:
            raise RpcError(
                f"Failed to broadcast transaction: {e}", chain_key=config.chain_key
            ) from e
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info("%s createSingleWallet broadcast: %s", config.chain_key.upper(), tx_hash_hex)

        poll_interval = self._poll_interval or config.native_block_time_estimate
        for _ in range(self._max_receipt_polls):
            try:
                receipt = await web3.eth.get_transaction_receipt(tx_hash_hex)
                if receipt:
                    return receipt, tx_hash_hex
            except TransactionNotFound:
                pass  # still pending
            except Exception as e:
                raise RpcError(
                    f"Failed to fetch receipt for {tx_hash_hex}: {e}", chain_key=config.chain_key
                ) from e
            await self._sleep_async(poll_interval)

        raise RpcError(
            f"Transaction {tx_hash_hex} not confirmed after {self._max_receipt_polls} polls",
            chain_key=config.chain_key,
        )

    @staticmethod
    def _decode_wallet_created(receipt: Mapping[str, Any], factory_address: str) -> Optional[str]:
        """
        Find ``WalletCreated`` among the receipt logs emitted by the factory.

        The wallet is the indexed first argument, i.e. the low 20 bytes of topic1.
        """
        for log in receipt.get("logs", []):
            if str(log.get("address", "")).lower() != factory_address.lower():
                continue
            topics = log.get("topics") or []
            if len(topics) < 2 or HexBytes(topics[0]) != WALLET_CREATED_TOPIC:
                continue
            return Web3.to_checksum_address(HexBytes(topics[1])[-20:])
        return None

    @staticmethod
    async def _sleep_async(seconds: float):
        await asyncio.sleep(seconds)
