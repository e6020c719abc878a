"""
HTTP Request/Response Schema Models for the Wallet Service

This module defines the Pydantic models exchanged between the web client and
the wallet service. Wire names are camelCase (``destinationDomain``,
``mintRecipient``, ``walletAddress``); Python code uses snake_case through
field aliases.

The main provisioning flow consists of:
1. Client posts a WalletCreationRequest to the master endpoint
2. Server streams one ``"{CHAIN}: {address}"`` line per provisioned chain
3. Server builds a WalletCreationResult and hands it to the record store

All request models expose a ``parse`` classmethod that raises the service's
own ``ValidationError`` instead of pydantic's.
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_serializer, field_validator

from ..adapters.evm.constants import normalize_chain_key, normalize_mint_recipient
from ..engine.exceptions import ValidationError
from ..records.schemas import PaymentRecord
from .bases import CanonicalModel

MAX_DOMAIN_ID = 2**32 - 1


def _describe(error: pydantic.ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"Invalid {field}: {first.get('msg')}"


class _RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def parse(cls, data: Any):
        """
        Validate raw request data.

        Raises:
            ValidationError: If any field is missing or malformed.
        """
        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(_describe(e)) from e


# ============================================================================
# Wallet provisioning
# ============================================================================

class SingleWalletRequest(_RequestModel):
    """Body of the single-chain endpoint.

    Attributes:
        destination_domain: Cross-chain messaging domain funds settle to.
        mint_recipient: Recipient, normalized to its 32-byte padded hex form.
    """
    destination_domain: StrictInt = Field(..., alias="destinationDomain", ge=0, le=MAX_DOMAIN_ID)
    mint_recipient: str = Field(..., alias="mintRecipient")

    @field_validator("mint_recipient")
    @classmethod
    def _normalize_recipient(cls, value: str) -> str:
        try:
            return normalize_mint_recipient(value)
        except ValidationError as e:
            raise ValueError(str(e)) from e


class WalletCreationRequest(SingleWalletRequest):
    """Body of the master (multi-chain, streaming) endpoint.

    ``chains`` keeps the submitted order and duplicates; keys are lower-cased.
    """
    chains: List[str] = Field(..., min_length=1)

    @field_validator("chains")
    @classmethod
    def _normalize_chains(cls, value: List[str]) -> List[str]:
        keys = [normalize_chain_key(chain) for chain in value]
        if any(not key for key in keys):
            raise ValueError("chain keys must be non-empty strings")
        return keys


class SingleWalletResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    wallet_address: str = Field(..., alias="walletAddress")


class WalletCreationResult(CanonicalModel):
    """Aggregate outcome of one multi-chain request.

    ``wallets`` is in completion order. After a request terminates, every
    requested chain key is in exactly one of ``wallets`` or ``errors``.
    Both are read-only copies of what the model was built from.
    """
    model_config = ConfigDict(frozen=True)

    wallets: Mapping[str, str] = Field(default_factory=dict, validate_default=True)
    errors: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("wallets", "errors")
    @classmethod
    def _read_only(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("wallets", "errors")
    def _plain_dict(self, value: Mapping[str, str]) -> Dict[str, str]:
        return dict(value)

    def is_success(self) -> bool:
        return not self.errors

    def failed_chains(self) -> List[str]:
        return list(self.errors)


# ============================================================================
# Payment requests
# ============================================================================

class PaymentRequestCreate(_RequestModel):
    mail: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    note: Optional[str] = None


class PaymentRequestResponse(BaseModel):
    """A stored payment request with its shareable link."""
    payment: PaymentRecord
    link: str


class PaymentCompletion(_RequestModel):
    tx_hash: str = Field(..., alias="txHash", pattern=r"^0x[0-9a-fA-F]{64}$")
    chain: str

    @field_validator("chain")
    @classmethod
    def _normalize_chain(cls, value: str) -> str:
        return normalize_chain_key(value)


class TransferParameters(BaseModel):
    """Unsigned USDC ``transfer`` call for the payer's wallet to sign.

    Attributes:
        to: USDC contract on the chosen chain
        value: Native value, always 0
        data: ``transfer(address,uint256)`` calldata
        chain_id: EIP-155 chain id
        recipient: Payee's smart wallet on that chain
        amount: Smallest-unit USDC amount encoded in ``data``
    """
    model_config = ConfigDict(populate_by_name=True)

    to: str
    value: int = 0
    data: str
    chain_id: int = Field(..., alias="chainId")
    recipient: str
    amount: int


class WalletStreamSummary(BaseModel):
    """What a streaming caller actually received.

    ``missing`` lists requested chains without a line: failed on the server
    or lost to a truncated stream, which a caller cannot tell apart.
    """
    wallets: Dict[str, str] = Field(default_factory=dict)
    missing: List[str] = Field(default_factory=list)
    interrupted: bool = False
