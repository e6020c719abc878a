from .apps import WalletServer
from .flows import setup_event_bus, persist_wallets

__all__ = [
    "WalletServer",
    "setup_event_bus",
    "persist_wallets",
]
