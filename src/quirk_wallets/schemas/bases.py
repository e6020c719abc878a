"""
Base Schema Models for the Wallet Service

This module defines the shared base model and enums that the rest of the
schema models build upon.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON output
    - PaymentStatus: Lifecycle of a USDC payment request

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from enum import Enum

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Produces sorted-key, whitespace-free JSON so that logged and persisted
    payloads are stable across runs.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        MyModel(name="test", value=123).to_canonical_json()
        # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        Returns:
            str: JSON with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json")
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )


class PaymentStatus(str, Enum):
    """
    Lifecycle of a USDC payment request.

    Attributes:
        PENDING: Request created, not yet paid
        COMPLETED: Payer submitted a transfer and its hash was recorded
    """
    PENDING = "pending"
    COMPLETED = "completed"
