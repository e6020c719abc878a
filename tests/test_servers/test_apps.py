"""
WalletServer HTTP surface tests.

Drives the FastAPI app in-process through httpx's ASGI transport with a
scripted factory and an in-memory record store.

Usage:
    pytest tests/test_servers/test_apps.py -v
"""

import asyncio

import httpx
import pytest

from mocks import (
    MOCK_RECIPIENT,
    MOCK_TX_HASH,
    MOCK_WALLET_ARBITRUM,
    MOCK_WALLET_BASE,
    FakeFactory,
    create_mock_registry,
)

from quirk_wallets.adapters.evm.constants import NETWORKS
from quirk_wallets.engine.events import ChainProvisionedEvent
from quirk_wallets.engine.exceptions import RpcError
from quirk_wallets.records.gateway import HttpRecordStore, InMemoryRecordStore
from quirk_wallets.servers.apps import WalletServer

PAYEE = "payee@example.com"


def wallet_body(*chains: str) -> dict:
    return {"chains": list(chains), "destinationDomain": 6, "mintRecipient": MOCK_RECIPIENT}


def make_app(factory: FakeFactory, store: InMemoryRecordStore = None) -> WalletServer:
    return WalletServer(
        registry=create_mock_registry("base", "arbitrum"),
        factory=factory,
        record_store=store or InMemoryRecordStore(),
        app_url="https://app.example.com",
        backoff_seconds=0,
    )


@pytest.fixture
def store():
    return InMemoryRecordStore()


async def finish_background_tasks(app: WalletServer) -> None:
    await asyncio.gather(*list(app._tasks))


def client_for(app: WalletServer) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


class TestWalletEndpoints:

    @pytest.mark.asyncio
    async def test_health(self):
        async with client_for(make_app(FakeFactory())) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "OK", "service": "quirk-wallets"}

    @pytest.mark.asyncio
    async def test_master_streams_one_line_per_wallet(self):
        factory = FakeFactory(outcomes={"base": [MOCK_WALLET_BASE], "arbitrum": [MOCK_WALLET_ARBITRUM]})
        app = make_app(factory)

        async with client_for(app) as client:
            response = await client.post("/api/create-wallet-master", json=wallet_body("base", "arbitrum"))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["cache-control"] == "no-cache"
        assert response.text == f"BASE: {MOCK_WALLET_BASE}\nARBITRUM: {MOCK_WALLET_ARBITRUM}\n"
        await finish_background_tasks(app)

    @pytest.mark.asyncio
    async def test_master_omits_failed_chain(self):
        factory = FakeFactory(outcomes={
            "base": [MOCK_WALLET_BASE],
            "arbitrum": [RpcError("down"), RpcError("down")],
        })
        app = make_app(factory)

        async with client_for(app) as client:
            response = await client.post("/api/create-wallet-master", json=wallet_body("base", "arbitrum"))

        assert response.status_code == 200
        assert response.text == f"BASE: {MOCK_WALLET_BASE}\n"
        await finish_background_tasks(app)

    @pytest.mark.asyncio
    async def test_master_all_failed_is_empty_200(self):
        app = make_app(FakeFactory(owners={"base": False}))

        async with client_for(app) as client:
            response = await client.post("/api/create-wallet-master", json=wallet_body("base"))

        assert response.status_code == 200
        assert response.text == ""
        await finish_background_tasks(app)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"chains": [], "destinationDomain": 6, "mintRecipient": MOCK_RECIPIENT},
        {"chains": ["base"], "destinationDomain": "6", "mintRecipient": MOCK_RECIPIENT},
        {"chains": ["base"], "destinationDomain": 6},
    ])
    async def test_master_rejects_invalid_body(self, body):
        factory = FakeFactory()
        app = make_app(factory)

        async with client_for(app) as client:
            response = await client.post("/api/create-wallet-master", json=body)

        assert response.status_code == 400
        assert "error" in response.json()
        assert factory.ownership_calls == []
        assert not app._tasks

    @pytest.mark.asyncio
    async def test_master_rejects_non_json(self):
        async with client_for(make_app(FakeFactory())) as client:
            response = await client.post(
                "/api/create-wallet-master", content=b"not json", headers={"content-type": "application/json"}
            )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_master_saves_wallets_for_identified_caller(self, store):
        factory = FakeFactory(outcomes={"base": [MOCK_WALLET_BASE], "arbitrum": [MOCK_WALLET_ARBITRUM]})
        app = make_app(factory, store)

        async with client_for(app) as client:
            await client.post(
                "/api/create-wallet-master",
                json=wallet_body("base", "arbitrum"),
                headers={"X-Quirk-User": PAYEE},
            )
        await finish_background_tasks(app)

        user = await store.get_user(PAYEE)
        assert user.smartwallets == {"base": MOCK_WALLET_BASE, "arbitrum": MOCK_WALLET_ARBITRUM}

    @pytest.mark.asyncio
    async def test_hook_decorator_receives_events(self):
        factory = FakeFactory(outcomes={"base": [MOCK_WALLET_BASE]})
        app = make_app(factory)
        seen = []

        @app.hook(ChainProvisionedEvent)
        async def on_provisioned(event, deps):
            seen.append(event.wallet_address)

        async with client_for(app) as client:
            await client.post("/api/create-wallet-master", json=wallet_body("base"))
        await finish_background_tasks(app)

        assert seen == [MOCK_WALLET_BASE]

    @pytest.mark.asyncio
    async def test_single_chain_success(self):
        app = make_app(FakeFactory(outcomes={"base": [MOCK_WALLET_BASE]}))

        async with client_for(app) as client:
            response = await client.post(
                "/api/create-wallet/base", json={"destinationDomain": 6, "mintRecipient": MOCK_RECIPIENT}
            )

        assert response.status_code == 200
        assert response.json() == {"walletAddress": MOCK_WALLET_BASE}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chain,factory", [
        ("solana", FakeFactory()),
        ("base", FakeFactory(owners={"base": False})),
        ("base", FakeFactory(outcomes={"base": [RpcError("down"), RpcError("down")]})),
    ])
    async def test_single_chain_failure_is_bare_500(self, chain, factory):
        app = make_app(factory)

        async with client_for(app) as client:
            response = await client.post(
                f"/api/create-wallet/{chain}", json={"destinationDomain": 6, "mintRecipient": MOCK_RECIPIENT}
            )

        assert response.status_code == 500
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_single_chain_validation_is_400(self):
        async with client_for(make_app(FakeFactory())) as client:
            response = await client.post("/api/create-wallet/base", json={"destinationDomain": -1})

        assert response.status_code == 400


class TestPaymentEndpoints:

    @pytest.mark.asyncio
    async def test_create_and_fetch_request(self, store):
        app = make_app(FakeFactory(), store)

        async with client_for(app) as client:
            created = await client.post(
                "/api/payment-requests", json={"mail": PAYEE, "amount": "12.5", "note": "dinner"}
            )
            fetched = await client.get("/api/payment-requests/1")

        assert created.status_code == 201
        assert created.json()["link"] == "https://app.example.com/pay?payid=1"
        assert created.json()["payment"]["status"] == "pending"
        assert fetched.status_code == 200
        assert fetched.json()["payment"]["note"] == "dinner"

    @pytest.mark.asyncio
    async def test_create_request_rejects_bad_amount(self, store):
        async with client_for(make_app(FakeFactory(), store)) as client:
            response = await client.post("/api/payment-requests", json={"mail": PAYEE, "amount": "0.0000001"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_request_is_404(self, store):
        async with client_for(make_app(FakeFactory(), store)) as client:
            response = await client.get("/api/payment-requests/99")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_transfer_parameters(self, store):
        await store.save_wallets(PAYEE, {"base": MOCK_WALLET_BASE})
        await store.create_payment(PAYEE, "12.5")

        async with client_for(make_app(FakeFactory(), store)) as client:
            response = await client.get("/api/payment-requests/1/transfer", params={"chain": "base"})

        body = response.json()
        assert response.status_code == 200
        assert body["to"] == NETWORKS["base"].usdc_address
        assert body["chainId"] == 84532
        assert body["amount"] == 12500000
        assert body["data"].startswith("0xa9059cbb")

    @pytest.mark.asyncio
    async def test_transfer_without_payee_wallet_is_400(self, store):
        await store.save_wallets(PAYEE, {"base": MOCK_WALLET_BASE})
        await store.create_payment(PAYEE, "1")

        async with client_for(make_app(FakeFactory(), store)) as client:
            response = await client.get("/api/payment-requests/1/transfer", params={"chain": "arbitrum"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_complete_request(self, store):
        await store.create_payment(PAYEE, "1")

        async with client_for(make_app(FakeFactory(), store)) as client:
            response = await client.post(
                "/api/payment-requests/1/complete", json={"txHash": MOCK_TX_HASH, "chain": "base"}
            )

        assert response.status_code == 200
        assert response.json()["explorerLink"] == f"https://sepolia.basescan.org/tx/{MOCK_TX_HASH}"
        assert (await store.get_payment(1)).is_completed()

    @pytest.mark.asyncio
    async def test_complete_twice_is_400(self, store):
        await store.create_payment(PAYEE, "1")
        body = {"txHash": MOCK_TX_HASH, "chain": "base"}

        async with client_for(make_app(FakeFactory(), store)) as client:
            first = await client.post("/api/payment-requests/1/complete", json=body)
            second = await client.post(
                "/api/payment-requests/1/complete", json={"txHash": "0x" + "22" * 32, "chain": "base"}
            )

        assert first.status_code == 200
        assert second.status_code == 400
        assert (await store.get_payment(1)).hash == MOCK_TX_HASH

    @pytest.mark.asyncio
    async def test_unreadable_record_service_is_502(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        records = HttpRecordStore(
            base_url="http://records.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://records.test"),
        )

        async with client_for(make_app(FakeFactory(), records)) as client:
            response = await client.get("/api/payment-requests/1")
        await records.aclose()

        assert response.status_code == 502
