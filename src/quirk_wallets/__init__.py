"""
quirk_wallets - custodial multi-chain wallet provisioning.
"""

__version__ = "0.1.0"
