from .requests import (
    create_payment_request,
    build_usdc_transfer,
    redeem_payment,
    complete_payment,
)

__all__ = [
    "create_payment_request",
    "build_usdc_transfer",
    "redeem_payment",
    "complete_payment",
]
