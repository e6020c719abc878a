"""
Wallet Factory + USDC Transfer Smart Contract ABI Module

This module provides the minimal wallet factory ABI and the ERC20 ``transfer``
selector used to encode payment request settlements.

Usage:
    from FACTORY_ABI import (
        get_factory_abi,
        WALLET_CREATED_SIGNATURE,
    )

    factory = web3.eth.contract(address=factory_address, abi=get_factory_abi())
    owner = await factory.functions.owner().call()
"""

from typing import Any, Dict, List

#: Canonical signature of the creation event; topic0 is its keccak hash.
WALLET_CREATED_SIGNATURE = "WalletCreated(address,uint32,bytes32)"

#: 4-byte selector of ``transfer(address,uint256)``.
TRANSFER_SELECTOR = "0xa9059cbb"


def get_owner_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for reading the factory owner.

    Returns:
        List[Dict[str, Any]]: ABI for the ``owner()`` view function
    """
    return [
        {
            "inputs": [],
            "name": "owner",
            "outputs": [{"internalType": "address", "name": "", "type": "address"}],
            "stateMutability": "view",
            "type": "function",
        }
    ]


def get_create_wallet_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``createSingleWallet`` and its ``WalletCreated`` event.

    Only the factory owner may call ``createSingleWallet``.
    """
    return [
        {
            "inputs": [
                {"internalType": "uint32", "name": "destinationDomain", "type": "uint32"},
                {"internalType": "bytes32", "name": "mintRecipient", "type": "bytes32"},
            ],
            "name": "createSingleWallet",
            "outputs": [{"internalType": "address", "name": "", "type": "address"}],
            "stateMutability": "nonpayable",
            "type": "function",
        },
        {
            "anonymous": False,
            "inputs": [
                {"indexed": True, "internalType": "address", "name": "wallet", "type": "address"},
                {"indexed": False, "internalType": "uint32", "name": "destinationDomain", "type": "uint32"},
                {"indexed": False, "internalType": "bytes32", "name": "mintRecipient", "type": "bytes32"},
            ],
            "name": "WalletCreated",
            "type": "event",
        },
    ]


def get_factory_abi() -> List[Dict[str, Any]]:
    """Full factory ABI used by the factory client."""
    return get_owner_abi() + get_create_wallet_abi()

