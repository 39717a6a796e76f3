from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_wallet_session
from app.core.exceptions import SplitError
from app.schemas.wallet import WalletStatusResponse
from app.services.wallet_session import WalletSession
from app.utils.addresses import shorten_address

router = APIRouter()


def _status(session: WalletSession) -> WalletStatusResponse:
    return WalletStatusResponse(
        state=session.state.value,
        identity=session.identity,
        short_address=shorten_address(session.identity.public_key) if session.identity else "",
        balance=session.balance,
        balance_state=session.balance_state,
        last_error=session.last_error
    )


@router.get("/", response_model=WalletStatusResponse)
async def get_wallet(session: WalletSession = Depends(get_wallet_session)):
    return _status(session)


@router.post("/connect", response_model=WalletStatusResponse)
async def connect_wallet(session: WalletSession = Depends(get_wallet_session)):
    try:
        await session.connect()
    except SplitError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))
    return _status(session)


@router.post("/refresh", response_model=WalletStatusResponse)
async def refresh_wallet(session: WalletSession = Depends(get_wallet_session)):
    await session.refresh()
    return _status(session)


@router.post("/disconnect", response_model=WalletStatusResponse)
async def disconnect_wallet(session: WalletSession = Depends(get_wallet_session)):
    await session.disconnect()
    return _status(session)
