from fastapi import APIRouter
from app.api.v1.endpoints import bills, wallet

api_router = APIRouter()

api_router.include_router(wallet.router, prefix="/wallet", tags=["wallet"])
api_router.include_router(bills.router, prefix="/bills", tags=["bills"])
