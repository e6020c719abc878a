"""
Record Store Gateway

Client-side interface to the external record service that keeps user and
payment records. The wallet core never talks to it directly; it only hands a
finished ``WalletCreationResult`` to ``save_wallets`` through an event hook.

Implementations:
    - HttpRecordStore: httpx client for the record service REST API
    - InMemoryRecordStore: process-local store for tests and local runs

Environment Variables:
    - QUIRK_API_URL: Base URL of the record service (default http://localhost:3001)
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
import pydantic

from .schemas import PaymentRecord, UserRecord
from ..engine.exceptions import RecordNotFoundError, RecordStoreError
from ..schemas.bases import PaymentStatus

logger = logging.getLogger(__name__)

RecordModel = TypeVar("RecordModel", UserRecord, PaymentRecord)

DEFAULT_API_URL = "http://localhost:3001"


def get_api_url_from_env() -> str:
    """Load the record service base URL from ``QUIRK_API_URL``."""
    return os.getenv("QUIRK_API_URL") or DEFAULT_API_URL


class RecordStoreGateway(ABC):
    """
    Abstract record store.

    ``save_wallets`` is the only operation the provisioning core relies on; it
    merges the given wallets into the user's record and is safe to repeat.
    """

    @abstractmethod
    async def register_user(self, mail: str) -> UserRecord:
        """Create the user's record, or return it unchanged if it exists."""

    @abstractmethod
    async def get_user(self, mail: str) -> UserRecord:
        """
        Raises:
            RecordNotFoundError: If no record exists for ``mail``.
        """

    @abstractmethod
    async def update_settlement(
        self,
        mail: str,
        chains: List[str],
        settlement_chain: str,
        settlement_address: str,
    ) -> UserRecord:
        """Store the onboarding choices and mark the account as set up."""

    @abstractmethod
    async def save_wallets(self, mail: str, wallets: Dict[str, str]) -> bool:
        """
        Merge ``wallets`` into the user's ``smartwallets``.

        Returns:
            bool: True on success, False if the record could not be written.
        """

    @abstractmethod
    async def create_payment(self, mail: str, amount: Decimal, note: Optional[str] = None) -> PaymentRecord:
        pass

    @abstractmethod
    async def get_payment(self, payid: int) -> PaymentRecord:
        """
        Raises:
            RecordNotFoundError: If no payment has this id.
        """

    @abstractmethod
    async def list_payments(self, mail: str) -> List[PaymentRecord]:
        pass

    @abstractmethod
    async def update_payment(
        self,
        payid: int,
        status: Optional[PaymentStatus] = None,
        tx_hash: Optional[str] = None,
    ) -> PaymentRecord:
        pass


class HttpRecordStore(RecordStoreGateway):
    """
    Record store backed by the record service REST API.

    Example:
        async with HttpRecordStore() as store:
            user = await store.get_user("alice@example.com")
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = (base_url or get_api_url_from_env()).rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def __aenter__(self) -> "HttpRecordStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RecordStoreError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise RecordNotFoundError(self._error_message(response), status_code=404)
        if response.status_code >= 400:
            raise RecordStoreError(
                f"{method} {path} returned {response.status_code}: {self._error_message(response)}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise RecordStoreError(
                f"{method} {path} returned a non-JSON body", status_code=response.status_code
            ) from e

    @staticmethod
    def _field(data: Any, key: str) -> Any:
        if not isinstance(data, dict) or key not in data:
            raise RecordStoreError(f"Record service response is missing '{key}'")
        return data[key]

    @classmethod
    def _parse(cls, model: Type[RecordModel], data: Any, key: str) -> RecordModel:
        return cls._validate(model, cls._field(data, key))

    @staticmethod
    def _validate(model: Type[RecordModel], value: Any) -> RecordModel:
        try:
            return model.model_validate(value)
        except pydantic.ValidationError as e:
            raise RecordStoreError(f"Record service returned an invalid {model.__name__}: {e}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("error") or response.text
        except (ValueError, AttributeError):
            return response.text

    @staticmethod
    def _user_path(mail: str) -> str:
        return f"/api/quirk/{quote(mail, safe='')}"

    async def register_user(self, mail: str) -> UserRecord:
        data = await self._request("POST", "/api/quirk", json={"mail": mail})
        return self._parse(UserRecord, data, "quirk")

    async def get_user(self, mail: str) -> UserRecord:
        data = await self._request("GET", self._user_path(mail))
        return self._parse(UserRecord, data, "quirk")

    async def update_settlement(
        self,
        mail: str,
        chains: List[str],
        settlement_chain: str,
        settlement_address: str,
    ) -> UserRecord:
        payload = {
            "account": True,
            "chains": ",".join(chains),
            "yeschain": settlement_chain,
            "yesaddress": settlement_address,
        }
        data = await self._request("PATCH", self._user_path(mail), json=payload)
        return self._parse(UserRecord, data, "quirk")

    async def save_wallets(self, mail: str, wallets: Dict[str, str]) -> bool:
        if not wallets:
            return True
        try:
            try:
                existing = (await self.get_user(mail)).smartwallets
            except RecordNotFoundError:
                await self.register_user(mail)
                existing = {}
            merged = {**existing, **wallets}
            await self._request("PATCH", self._user_path(mail), json={"smartwallets": merged})
        except RecordStoreError as e:
            logger.error("Failed to save wallets for %s: %s", mail, e)
            return False
        return True

    async def create_payment(self, mail: str, amount: Decimal, note: Optional[str] = None) -> PaymentRecord:
        payload = {
            "mail": mail,
            "amount": str(amount),
            "status": PaymentStatus.PENDING.value,
            "note": note,
        }
        data = await self._request("POST", "/api/quirk-pay", json=payload)
        return self._parse(PaymentRecord, data, "payment")

    async def get_payment(self, payid: int) -> PaymentRecord:
        data = await self._request("GET", f"/api/quirk-pay/{payid}")
        return self._parse(PaymentRecord, data, "payment")

    async def list_payments(self, mail: str) -> List[PaymentRecord]:
        data = await self._request("GET", f"/api/quirk-pay/mail/{quote(mail, safe='')}")
        payments = self._field(data, "payments")
        if not isinstance(payments, list):
            raise RecordStoreError("Record service returned a non-list 'payments'")
        return [self._validate(PaymentRecord, p) for p in payments]

    async def update_payment(
        self,
        payid: int,
        status: Optional[PaymentStatus] = None,
        tx_hash: Optional[str] = None,
    ) -> PaymentRecord:
        payload: Dict[str, Any] = {}
        if status is not None:
            payload["status"] = PaymentStatus(status).value
        if tx_hash is not None:
            payload["hash"] = tx_hash
        if not payload:
            raise RecordStoreError("No fields to update", status_code=400)
        data = await self._request("PATCH", f"/api/quirk-pay/{payid}", json=payload)
        return self._parse(PaymentRecord, data, "payment")


class InMemoryRecordStore(RecordStoreGateway):
    """Process-local record store. Payment ids start at 1."""

    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._payments: Dict[int, PaymentRecord] = {}
        self._next_payid = 1
        self._lock = asyncio.Lock()

    async def register_user(self, mail: str) -> UserRecord:
        async with self._lock:
            if mail not in self._users:
                self._users[mail] = UserRecord(mail=mail)
            return self._users[mail]

    async def get_user(self, mail: str) -> UserRecord:
        user = self._users.get(mail)
        if user is None:
            raise RecordNotFoundError(f"No user record for {mail}", status_code=404)
        return user

    async def update_settlement(
        self,
        mail: str,
        chains: List[str],
        settlement_chain: str,
        settlement_address: str,
    ) -> UserRecord:
        async with self._lock:
            user = self._users.get(mail) or UserRecord(mail=mail)
            self._users[mail] = user.model_copy(update={
                "account": True,
                "chains": list(chains),
                "settlement_chain": settlement_chain,
                "settlement_address": settlement_address,
            })
            return self._users[mail]

    async def save_wallets(self, mail: str, wallets: Dict[str, str]) -> bool:
        async with self._lock:
            user = self._users.get(mail) or UserRecord(mail=mail)
            self._users[mail] = user.model_copy(update={"smartwallets": {**user.smartwallets, **wallets}})
        return True

    async def create_payment(self, mail: str, amount: Decimal, note: Optional[str] = None) -> PaymentRecord:
        async with self._lock:
            payment = PaymentRecord(payid=self._next_payid, amount=amount, mail=mail, note=note)
            self._payments[payment.payid] = payment
            self._next_payid += 1
            return payment

    async def get_payment(self, payid: int) -> PaymentRecord:
        payment = self._payments.get(payid)
        if payment is None:
            raise RecordNotFoundError(f"Payment record {payid} not found", status_code=404)
        return payment

    async def list_payments(self, mail: str) -> List[PaymentRecord]:
        return sorted(
            (p for p in self._payments.values() if p.mail == mail),
            key=lambda p: p.payid,
            reverse=True,
        )

    async def update_payment(
        self,
        payid: int,
        status: Optional[PaymentStatus] = None,
        tx_hash: Optional[str] = None,
    ) -> PaymentRecord:
        async with self._lock:
            payment = await self.get_payment(payid)
            update: Dict[str, Any] = {}
            if status is not None:
                update["status"] = PaymentStatus(status)
            if tx_hash is not None:
                update["hash"] = tx_hash
            if not update:
                raise RecordStoreError("No fields to update", status_code=400)
            self._payments[payid] = payment.model_copy(update=update)
            return self._payments[payid]
