import httpx
import pytest
import pytest_asyncio
from stellar_sdk import Keypair

from app.clients.ledger_client import LedgerClient
from app.clients.signing_agent import SigningAgentBridge
from app.repositories.bill_repo import BillStore
from app.services.payment_executor import PaymentExecutor
from app.services.settlement_service import SettlementService
from app.services.wallet_session import WalletSession
from tests.fakes import HORIZON, TESTNET, FakeAgentTransport, FakeDatabase, FakeHorizon


@pytest.fixture
def payer_kp() -> Keypair:
    return Keypair.random()


@pytest.fixture
def other_kp() -> Keypair:
    return Keypair.random()


@pytest.fixture
def recipient_kp() -> Keypair:
    return Keypair.random()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def bill_store(fake_db) -> BillStore:
    return BillStore(fake_db)


@pytest.fixture
def horizon(payer_kp, other_kp, recipient_kp) -> FakeHorizon:
    fake = FakeHorizon()
    fake.add_account(payer_kp.public_key)
    fake.add_account(other_kp.public_key, balance="42.5000000")
    fake.add_account(recipient_kp.public_key, balance="10.0000000")
    return fake


@pytest_asyncio.fixture
async def ledger(horizon):
    async with httpx.AsyncClient(transport=httpx.MockTransport(horizon)) as http:
        yield LedgerClient(http, horizon_url=HORIZON, network_passphrase=TESTNET)


@pytest.fixture
def agent(payer_kp) -> FakeAgentTransport:
    return FakeAgentTransport(payer_kp)


@pytest.fixture
def bridge(agent) -> SigningAgentBridge:
    return SigningAgentBridge(agent)


@pytest_asyncio.fixture
async def session(bridge, ledger):
    wallet = WalletSession(
        bridge,
        ledger,
        network_passphrase=TESTNET,
        connect_timeout=1.0,
        refresh_interval=0,
    )
    yield wallet
    await wallet.disconnect()


@pytest.fixture
def executor(ledger, bridge) -> PaymentExecutor:
    return PaymentExecutor(ledger, bridge, network_passphrase=TESTNET)


@pytest.fixture
def settlement_service(bill_store, session, executor) -> SettlementService:
    return SettlementService(bill_store, session, executor)
