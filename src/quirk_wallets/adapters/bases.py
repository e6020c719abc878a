"""
Abstract Base Class for Wallet Factory Clients

Defines the interface that every factory client must implement. The
provisioner depends only on this interface, so tests and alternative
chain families can supply their own implementation.

Core Classes:
    - WalletFactory: Owner check and wallet creation against one chain's factory
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .evm.constants import ChainConfig
    from .evm.schemas import WalletCreationReceipt


class WalletFactory(ABC):
    """
    Abstract Base Class for wallet factory clients.

    Key Responsibilities:
    1. verify_ownership: Check the configured credential owns the factory
    2. create_wallet: Submit a creation call, wait for one confirmation and
       decode the created wallet address

    Implementations receive the ``ChainConfig`` on every call and hold no
    per-chain state between calls.
    """

    @abstractmethod
    async def verify_ownership(self, config: "ChainConfig") -> bool:
        """
        Compare the factory's ``owner()`` with the credential's address.

        Returns:
            bool: True if they match case-insensitively, False otherwise.

        Raises:
            RpcError: If the owner cannot be read.
        """
        pass

    @abstractmethod
    async def create_wallet(
        self,
        config: "ChainConfig",
        destination_domain: int,
        mint_recipient: str,
    ) -> "WalletCreationReceipt":
        """
        Create one wallet and return its confirmed receipt.

        Raises:
            RpcError: For network/node failures or confirmation timeout.
            EventNotFoundError: If the transaction mined without the creation event.
        """
        pass
