"""
Record Store Schema Models

Models for the user and payment records kept by the external record service.
Field aliases follow the record service's column names (``yeschain``,
``yesaddress``, ``smartwallets``); Python code uses the descriptive names.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from ..schemas.bases import CanonicalModel, PaymentStatus


class UserRecord(CanonicalModel):
    """
    One onboarded user.

    Attributes:
        mail: Identity handle supplied by the identity provider
        account: Whether onboarding finished
        chains: Chains the user selected during onboarding
        settlement_chain: Chain the user settles USDC on
        settlement_address: Address receiving settled funds on that chain
        smartwallets: Provisioned wallet per chain key
    """
    mail: str
    account: bool = False
    chains: List[str] = Field(default_factory=list)
    settlement_chain: Optional[str] = Field(default=None, alias="yeschain")
    settlement_address: Optional[str] = Field(default=None, alias="yesaddress")
    smartwallets: Dict[str, str] = Field(default_factory=dict)

    @field_validator("chains", mode="before")
    @classmethod
    def _split_chains(cls, value):
        # stored as comma-joined TEXT
        if value is None:
            return []
        if isinstance(value, str):
            return [c.strip() for c in value.split(",") if c.strip()]
        return value

    @field_validator("smartwallets", mode="before")
    @classmethod
    def _default_wallets(cls, value):
        return value or {}


class PaymentRecord(CanonicalModel):
    """
    One USDC payment request.

    ``amount`` is a human-readable USDC amount; the record service stores it
    as ``DECIMAL(18,8)`` and returns it as a string.
    """
    payid: int
    amount: Decimal = Field(..., gt=0)
    mail: str
    status: PaymentStatus = PaymentStatus.PENDING
    hash: Optional[str] = None
    note: Optional[str] = None

    def is_completed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED
