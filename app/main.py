import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.db.mongo import connect_to_mongo, close_mongo_connection, get_db
from app.api.v1.api import api_router
from app.clients.ledger_client import LedgerClient
from app.clients.signing_agent import HttpSigningAgentTransport, SigningAgentBridge
from app.repositories.bill_repo import BillStore
from app.services.payment_executor import PaymentExecutor
from app.services.settlement_service import SettlementService
from app.services.wallet_session import WalletSession

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


def _log_settled(bill_id: str, participant_address: str, tx_hash: str) -> None:
    logger.info("Share of %s on bill %s settled by %s", participant_address, bill_id, tx_hash)


async def build_components(app: FastAPI):
    """Wire the settlement core onto app.state."""
    await connect_to_mongo()

    ledger_http = httpx.AsyncClient(timeout=settings.HORIZON_TIMEOUT_SECONDS)
    agent_http = httpx.AsyncClient(timeout=settings.SIGNING_AGENT_TIMEOUT_SECONDS)
    app.state.http_clients = [ledger_http, agent_http]

    ledger = LedgerClient(ledger_http)
    bridge = SigningAgentBridge(HttpSigningAgentTransport(agent_http))
    session = WalletSession(bridge, ledger)

    app.state.wallet_session = session
    app.state.settlement_service = SettlementService(
        store=BillStore(get_db()),
        session=session,
        executor=PaymentExecutor(ledger, bridge),
        on_settled=_log_settled,
    )


async def release_components(app: FastAPI):
    session = getattr(app.state, "wallet_session", None)
    if session is not None:
        await session.disconnect()
    for client in getattr(app.state, "http_clients", []):
        await client.aclose()
    await close_mongo_connection()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting %s on %s", settings.PROJECT_NAME, settings.NETWORK_NAME)
    await build_components(app)
    try:
        yield
    finally:
        await release_components(app)
        logger.info("Shutting down %s", settings.PROJECT_NAME)


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def root():
    return {"message": "Welcome to Stellar Split API"}

app.include_router(api_router, prefix=settings.API_V1_STR)
