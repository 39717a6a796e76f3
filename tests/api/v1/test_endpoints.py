"""
Test wallet and bill endpoints against fake Horizon and signing agent.
"""
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from fastapi import status
from httpx import ASGITransport, AsyncClient
from stellar_sdk import Keypair

from app.api.deps import get_settlement_service, get_wallet_session
from app.clients.ledger_client import LedgerClient
from app.clients.signing_agent import SigningAgentBridge
from app.main import app, lifespan
from app.repositories.bill_repo import BillStore
from app.services.payment_executor import PaymentExecutor
from app.services.settlement_service import SettlementService
from app.services.wallet_session import WalletSession
from tests.fakes import HORIZON, PUBNET, TESTNET


@pytest_asyncio.fixture
async def client(fake_db, agent, horizon):
    async with httpx.AsyncClient(transport=httpx.MockTransport(horizon)) as http:
        ledger = LedgerClient(http, horizon_url=HORIZON, network_passphrase=TESTNET)
        bridge = SigningAgentBridge(agent)
        session = WalletSession(bridge, ledger, network_passphrase=TESTNET, connect_timeout=1, refresh_interval=0)
        service = SettlementService(
            BillStore(fake_db), session, PaymentExecutor(ledger, bridge, network_passphrase=TESTNET)
        )

        app.dependency_overrides[get_settlement_service] = lambda: service
        app.dependency_overrides[get_wallet_session] = lambda: session
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as api:
            yield api
        app.dependency_overrides.clear()
        await session.disconnect()


async def _create(client, *addresses, total="100"):
    return await client.post(
        "/api/v1/bills/",
        json={
            "title": "Dinner",
            "totalAmount": total,
            "participants": [{"name": f"P{i}", "address": a} for i, a in enumerate(addresses)],
        },
    )


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert "Stellar Split" in response.json()["message"]


@pytest.mark.asyncio
async def test_wallet_starts_disconnected(client):
    response = await client.get("/api/v1/wallet/")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["state"] == "disconnected"
    assert response.json()["shortAddress"] == ""


@pytest.mark.asyncio
async def test_wallet_connect_and_disconnect(client, payer_kp):
    response = await client.post("/api/v1/wallet/connect")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["state"] == "connected"
    assert data["identity"]["publicKey"] == payer_kp.public_key
    assert data["shortAddress"] == f"{payer_kp.public_key[:4]}...{payer_kp.public_key[-4:]}"
    assert data["balanceState"] == "known"

    response = await client.post("/api/v1/wallet/disconnect")
    assert response.json()["state"] == "disconnected"
    assert response.json()["identity"] is None


@pytest.mark.asyncio
async def test_wallet_connect_wrong_network(client, agent):
    agent.network_passphrase = PUBNET

    response = await client.post("/api/v1/wallet/connect")

    assert response.status_code == status.HTTP_409_CONFLICT
    assert "switch" in response.json()["detail"]


@pytest.mark.asyncio
async def test_wallet_refresh(client, horizon, payer_kp):
    await client.post("/api/v1/wallet/connect")
    horizon.add_account(payer_kp.public_key, balance="42.5000000")

    response = await client.post("/api/v1/wallet/refresh")

    assert response.status_code == status.HTTP_200_OK
    assert float(response.json()["balance"]) == 42.5


@pytest.mark.asyncio
async def test_create_bill_without_wallet(client, payer_kp):
    response = await _create(client, payer_kp.public_key)

    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.asyncio
async def test_create_list_and_pay(client, horizon, payer_kp, other_kp):
    await client.post("/api/v1/wallet/connect")

    response = await _create(client, payer_kp.public_key, other_kp.public_key)
    assert response.status_code == status.HTTP_200_OK
    bill = response.json()
    assert bill["status"] == "open"
    assert bill["totalAmount"] == "100.0000000"
    assert [p["amountOwed"] for p in bill["participants"]] == ["50.0000000", "50.0000000"]

    response = await client.get("/api/v1/bills/")
    assert [b["id"] for b in response.json()] == [bill["id"]]

    response = await client.post(f"/api/v1/bills/{bill['id']}/participants/{payer_kp.public_key}/pay")
    assert response.status_code == status.HTTP_200_OK
    paid = response.json()
    assert paid["txHash"] == horizon.next_hash
    assert paid["explorerUrl"].endswith(horizon.next_hash)

    response = await client.get(f"/api/v1/bills/{bill['id']}")
    assert response.json()["participants"][0]["paid"] is True
    assert response.json()["participants"][0]["txHash"] == horizon.next_hash


@pytest.mark.asyncio
async def test_pay_other_participants_share(client, payer_kp, other_kp):
    await client.post("/api/v1/wallet/connect")
    bill = (await _create(client, payer_kp.public_key, other_kp.public_key)).json()

    response = await client.post(f"/api/v1/bills/{bill['id']}/participants/{other_kp.public_key}/pay")

    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
@pytest.mark.parametrize("total,addresses", [
    ("0", None),
    ("abc", None),
    ("100", [Keypair.random().public_key[:55]]),
])
async def test_create_bill_invalid_input(client, payer_kp, total, addresses):
    await client.post("/api/v1/wallet/connect")

    response = await _create(client, *(addresses or [payer_kp.public_key]), total=total)

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_get_missing_bill(client):
    response = await client.get("/api/v1/bills/nope")

    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_lifespan_wires_and_releases_components(fake_db):
    with patch("app.main.connect_to_mongo", new=AsyncMock()) as connect, \
            patch("app.main.close_mongo_connection", new=AsyncMock()) as close, \
            patch("app.main.get_db", return_value=fake_db):
        async with lifespan(app):
            assert isinstance(app.state.settlement_service, SettlementService)
            assert isinstance(app.state.wallet_session, WalletSession)
            clients = list(app.state.http_clients)

        connect.assert_awaited_once()
        close.assert_awaited_once()

    assert clients and all(client.is_closed for client in clients)
