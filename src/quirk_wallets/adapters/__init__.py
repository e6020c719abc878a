from .bases import WalletFactory
from .evm import (
    ChainConfig,
    ChainRegistry,
    FactoryClient,
    WalletCreationReceipt,
)

__all__ = [
    "WalletFactory",
    "ChainConfig",
    "ChainRegistry",
    "FactoryClient",
    "WalletCreationReceipt",
]
