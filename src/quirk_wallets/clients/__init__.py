"""
Client module for the wallet provisioning service.

Provides an httpx-based client that reads the streaming multi-chain
endpoint incrementally.
"""

from .http_client import WalletServiceClient

__all__ = ["WalletServiceClient"]
