from .bases import CanonicalModel, PaymentStatus
from .https import (
    SingleWalletRequest,
    WalletCreationRequest,
    SingleWalletResponse,
    WalletCreationResult,
    PaymentRequestCreate,
    PaymentRequestResponse,
    PaymentCompletion,
    TransferParameters,
    WalletStreamSummary,
)

__all__ = [
    "CanonicalModel",
    "PaymentStatus",
    "SingleWalletRequest",
    "WalletCreationRequest",
    "SingleWalletResponse",
    "WalletCreationResult",
    "PaymentRequestCreate",
    "PaymentRequestResponse",
    "PaymentCompletion",
    "TransferParameters",
    "WalletStreamSummary",
]
