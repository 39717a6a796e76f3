"""Dependencies resolving the components wired on `app.state` at startup."""
from fastapi import Request

from app.services.settlement_service import SettlementService
from app.services.wallet_session import WalletSession


def get_settlement_service(request: Request) -> SettlementService:
    return request.app.state.settlement_service


def get_wallet_session(request: Request) -> WalletSession:
    return request.app.state.wallet_session
