"""
USDC payment requests.

A payee creates a request for an amount; the payer opens the share link,
picks a chain, receives an unsigned USDC ``transfer`` to the payee's smart
wallet on that chain, signs and sends it with their own wallet, and reports
the transaction hash back.

Environment Variables:
    - QUIRK_APP_URL: Base URL of the web app used in share links
      (default http://localhost:3000)
"""

import logging
import os
from decimal import Decimal
from typing import Optional, Union

from eth_abi import encode
from web3 import Web3

from ..adapters.evm.FACTORY_ABI import TRANSFER_SELECTOR
from ..adapters.evm.constants import (
    NETWORKS,
    USDC_DECIMALS,
    amount_to_value,
    get_network,
    normalize_chain_key,
)
from ..engine.exceptions import UnsupportedChainError, ValidationError
from ..records.gateway import RecordStoreGateway
from ..schemas.bases import PaymentStatus
from ..schemas.https import PaymentRequestResponse, TransferParameters

logger = logging.getLogger(__name__)

DEFAULT_APP_URL = "http://localhost:3000"


def get_app_url_from_env() -> str:
    return os.getenv("QUIRK_APP_URL") or DEFAULT_APP_URL


def _to_smallest_units(amount: Union[Decimal, str, int, float]) -> int:
    try:
        value = amount_to_value(amount=amount, decimals=USDC_DECIMALS)
    except ValueError as e:
        raise ValidationError(str(e)) from e
    if value == 0:
        raise ValidationError("amount must be greater than zero")
    return value


def _require_network(chain_key: str):
    network = get_network(chain_key)
    if network is None:
        raise UnsupportedChainError(
            f"Chain {chain_key} not supported yet. Supported chains: {', '.join(NETWORKS)}",
            chain_key=chain_key,
        )
    return network


async def create_payment_request(
    store: RecordStoreGateway,
    mail: str,
    amount: Union[Decimal, str, int, float],
    note: Optional[str] = None,
    app_url: Optional[str] = None,
) -> PaymentRequestResponse:
    """
    Store a pending payment request and build its share link.

    Raises:
        ValidationError: If ``amount`` is not a positive USDC amount with at
            most 6 decimal places.
    """
    _to_smallest_units(amount)
    payment = await store.create_payment(mail, Decimal(str(amount)), note)
    link = f"{(app_url or get_app_url_from_env()).rstrip('/')}/pay?payid={payment.payid}"
    logger.info("Payment request %d created for %s: %s USDC", payment.payid, mail, payment.amount)
    return PaymentRequestResponse(payment=payment, link=link)


def build_usdc_transfer(
    chain_key: str,
    recipient: str,
    amount: Union[Decimal, str, int, float],
) -> TransferParameters:
    """
    Build an unsigned USDC ``transfer(recipient, amount)`` on ``chain_key``.

    Example:
        params = build_usdc_transfer("base", "0x...", "12.5")
        # params.data == "0xa9059cbb" + 32-byte recipient + 32-byte 12500000
    """
    network = _require_network(chain_key)
    if not Web3.is_address(recipient):
        raise ValidationError(f"Invalid recipient address: {recipient!r}")

    value = _to_smallest_units(amount)
    recipient = Web3.to_checksum_address(recipient)
    calldata = TRANSFER_SELECTOR + encode(["address", "uint256"], [recipient, value]).hex()

    return TransferParameters(
        to=network.usdc_address,
        value=0,
        data=calldata,
        chain_id=network.chain_id,
        recipient=recipient,
        amount=value,
    )


async def redeem_payment(store: RecordStoreGateway, payid: int, chain_key: str) -> TransferParameters:
    """
    Resolve a payment request into the transfer the payer has to sign.

    Raises:
        RecordNotFoundError: If the payment or its payee does not exist.
        ValidationError: If the request is already completed.
        UnsupportedChainError: If the payee has no wallet on ``chain_key``.
    """
    payment = await store.get_payment(payid)
    if payment.is_completed():
        raise ValidationError(f"Payment request {payid} is already completed")

    key = normalize_chain_key(chain_key)
    _require_network(key)
    payee = await store.get_user(payment.mail)
    recipient = payee.smartwallets.get(key)
    if not recipient:
        raise UnsupportedChainError(f"Payee has no wallet on {key}", chain_key=key)

    return build_usdc_transfer(key, recipient, payment.amount)


async def complete_payment(store: RecordStoreGateway, payid: int, tx_hash: str, chain_key: str) -> str:
    """
    Mark a payment request as paid and return the transaction's explorer link.

    Raises:
        RecordNotFoundError: If the payment does not exist.
        ValidationError: If the request is already completed.
    """
    network = _require_network(chain_key)
    payment = await store.get_payment(payid)
    if payment.is_completed():
        raise ValidationError(f"Payment request {payid} is already completed")
    await store.update_payment(payid, status=PaymentStatus.COMPLETED, tx_hash=tx_hash)
    logger.info("Payment request %d completed on %s: %s", payid, network.chain_key, tx_hash)
    return f"{network.explorer_url}/tx/{tx_hash}"
