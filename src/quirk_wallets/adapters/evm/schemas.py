"""
EVM Factory Schema Models

Pydantic models returned by the factory client. All classes inherit from
``CanonicalModel`` so they log and serialize deterministically.

    - WalletCreationReceipt: Outcome of one confirmed ``createSingleWallet`` call.
"""

from typing import Optional

from pydantic import Field

from ...schemas.bases import CanonicalModel


class WalletCreationReceipt(CanonicalModel):
    """
    Confirmed wallet creation on one chain.

    Attributes:
        chain_key: Chain the wallet was created on
        tx_hash: Hash of the creation transaction (0x-prefixed)
        wallet_address: Checksummed address decoded from ``WalletCreated``
        block_number: Block the transaction was included in
        gas_used: Gas consumed by the transaction
    """
    chain_key: str
    tx_hash: str = Field(..., description="Creation transaction hash")
    wallet_address: str = Field(..., description="Created wallet address")
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    def explorer_link(self, explorer_base_url: str) -> str:
        return f"{explorer_base_url.rstrip('/')}/tx/{self.tx_hash}"
