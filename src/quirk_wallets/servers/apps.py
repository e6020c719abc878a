"""
Wallet Provisioning Server - Event-driven FastAPI wrapper.

Exposes the multi-chain streaming endpoint, the single-chain endpoint and the
USDC payment request endpoints on top of one shared provisioner.
"""

import asyncio
import logging
from typing import Callable, Optional, Set

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ..adapters.bases import WalletFactory
from ..adapters.evm.constants import (
    DEFAULT_BACKOFF_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    ChainRegistry,
)
from ..adapters.evm.factory import FactoryClient
from ..engine.channels import QueueChannel
from ..engine.events import BaseEvent, Dependencies, EventBus
from ..engine.exceptions import (
    RecordNotFoundError,
    RecordStoreError,
    UnsupportedChainError,
    ValidationError,
)
from ..engine.orchestrator import MultiChainOrchestrator
from ..engine.provisioner import WalletProvisioner
from ..payments.requests import (
    complete_payment,
    create_payment_request,
    get_app_url_from_env,
    redeem_payment,
)
from ..records.gateway import HttpRecordStore, RecordStoreGateway
from ..schemas.https import (
    PaymentCompletion,
    PaymentRequestCreate,
    SingleWalletRequest,
    SingleWalletResponse,
    WalletCreationRequest,
)
from .flows import setup_event_bus

logger = logging.getLogger(__name__)

SERVICE_NAME = "quirk-wallets"
IDENTITY_HEADER = "X-Quirk-User"


class WalletServer(FastAPI):
    """FastAPI server for custodial multi-chain wallet provisioning."""

    def __init__(
        self,
        registry: Optional[ChainRegistry] = None,
        factory: Optional[WalletFactory] = None,
        record_store: Optional[RecordStoreGateway] = None,
        app_url: Optional[str] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        persist_results: bool = True,
        **fastapi_kwargs
    ):
        """Initialize the wallet server.

        Args:
            registry: Chain configs (default: built from environment)
            factory: Factory client (default: web3-backed FactoryClient)
            record_store: Record store (default: HttpRecordStore on QUIRK_API_URL)
            app_url: Web app base URL for payment links (default: QUIRK_APP_URL)
            max_attempts: Attempts per chain (default: 2)
            backoff_seconds: Delay between attempts (default: 2.0)
            persist_results: Save finished batches to the record store (default: True)
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.registry = registry or ChainRegistry.from_env()
        self.record_store = record_store or HttpRecordStore()
        self.app_url = app_url or get_app_url_from_env()
        self.provisioner = WalletProvisioner(
            self.registry,
            factory or FactoryClient(),
            max_attempts=max_attempts,
            backoff_seconds=backoff_seconds,
        )
        self.depends = Dependencies(record_store=self.record_store)
        self.event_bus: EventBus = setup_event_bus(persist_results=persist_results)
        self.orchestrator = MultiChainOrchestrator(self.provisioner, self.event_bus, self.depends)
        self._tasks: Set[asyncio.Task] = set()

        super().__init__(**fastapi_kwargs)

        if not len(self.registry):
            logger.warning("No chains configured; every wallet request will fail")
        else:
            logger.info("Configured chains: %s", ", ".join(self.registry.chain_keys()))

        self._setup_wallet_endpoints()
        self._setup_payment_endpoints()

    def add_hook(self, event_class: type[BaseEvent], hook: Callable) -> None:
        """Register event hook for side effects.

        Args:
            event_class: Event type to hook into
            hook: Async function(event, deps) -> None

        Example:
            ```python
            async def notify(event, deps):
                print(f"Wallet ready: {event.wallet_address}")

            app.add_hook(ChainProvisionedEvent, notify)
            ```
        """
        self.event_bus.hook(event_class, hook)

    def hook(self, event_class: type[BaseEvent]) -> Callable:
        """Decorator for registering event hooks.

        Example:
            @app.hook(BatchCompletedEvent)
            async def on_batch(event, deps):
                await send_analytics(event)
        """
        def decorator(hook_func: Callable) -> Callable:
            self.event_bus.hook(event_class, hook_func)
            return hook_func
        return decorator

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Wallet creation task failed", exc_info=task.exception())

    @staticmethod
    async def _read_json(request: Request):
        try:
            return await request.json()
        except ValueError as e:
            raise ValidationError("Request body must be valid JSON") from e

    def _setup_wallet_endpoints(self) -> None:

        @self.get("/health")
        async def health():
            return {"status": "OK", "service": SERVICE_NAME}

        @self.post("/api/create-wallet-master")
        async def create_wallet_master(request: Request):
            """Provision wallets on several chains, streaming each as it is created."""
            try:
                body = WalletCreationRequest.parse(await self._read_json(request))
            except ValidationError as e:
                return JSONResponse(status_code=400, content={"error": str(e)})

            channel = QueueChannel()
            # runs detached so a client disconnect does not cancel provisioning
            self._track(asyncio.create_task(
                self.orchestrator.run(body, channel, identity=request.headers.get(IDENTITY_HEADER))
            ))
            return StreamingResponse(
                channel.lines(),
                media_type="text/plain",
                headers={"Cache-Control": "no-cache"},
            )

        @self.post("/api/create-wallet/{chain}")
        async def create_wallet(chain: str, request: Request):
            """Provision one wallet. Any provisioning failure is a bare 500."""
            try:
                body = SingleWalletRequest.parse(await self._read_json(request))
            except ValidationError as e:
                return JSONResponse(status_code=400, content={"error": str(e)})

            result = await self.provisioner.provision(chain, body.destination_domain, body.mint_recipient)
            if not result.is_success():
                logger.error("Single wallet creation on %s failed: %s", chain.upper(), result.error_message)
                return Response(status_code=500)

            return JSONResponse(
                status_code=200,
                content=SingleWalletResponse(wallet_address=result.wallet_address).model_dump(by_alias=True),
            )

    def _setup_payment_endpoints(self) -> None:

        @self.post("/api/payment-requests")
        async def create_request(request: Request):
            try:
                body = PaymentRequestCreate.parse(await self._read_json(request))
                created = await create_payment_request(
                    self.record_store, body.mail, body.amount, body.note, app_url=self.app_url
                )
            except ValidationError as e:
                return JSONResponse(status_code=400, content={"error": str(e)})
            except RecordStoreError as e:
                return self._record_error(e)
            return JSONResponse(status_code=201, content=created.model_dump(mode="json"))

        @self.get("/api/payment-requests/{payid}")
        async def get_request(payid: int):
            try:
                payment = await self.record_store.get_payment(payid)
            except RecordStoreError as e:
                return self._record_error(e)
            return JSONResponse(status_code=200, content={"payment": payment.model_dump(mode="json")})

        @self.get("/api/payment-requests/{payid}/transfer")
        async def get_transfer(payid: int, chain: str):
            try:
                params = await redeem_payment(self.record_store, payid, chain)
            except (ValidationError, UnsupportedChainError) as e:
                return JSONResponse(status_code=400, content={"error": str(e)})
            except RecordStoreError as e:
                return self._record_error(e)
            return JSONResponse(status_code=200, content=params.model_dump(mode="json", by_alias=True))

        @self.post("/api/payment-requests/{payid}/complete")
        async def complete_request(payid: int, request: Request):
            try:
                body = PaymentCompletion.parse(await self._read_json(request))
                explorer_link = await complete_payment(self.record_store, payid, body.tx_hash, body.chain)
            except (ValidationError, UnsupportedChainError) as e:
                return JSONResponse(status_code=400, content={"error": str(e)})
            except RecordStoreError as e:
                return self._record_error(e)
            return JSONResponse(status_code=200, content={"payid": payid, "explorerLink": explorer_link})

    @staticmethod
    def _record_error(error: RecordStoreError) -> JSONResponse:
        if isinstance(error, RecordNotFoundError):
            return JSONResponse(status_code=404, content={"error": str(error)})
        logger.error("Record store error: %s", error)
        return JSONResponse(status_code=502, content={"error": "Record store unavailable"})
