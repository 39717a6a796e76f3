from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_settlement_service
from app.core.exceptions import SplitError
from app.models.bill import Bill
from app.schemas.bill import BillCreate, PayShareResponse
from app.services.settlement_service import SettlementService
from app.utils.addresses import explorer_url

router = APIRouter()


@router.get("/", response_model=List[Bill])
async def list_bills(service: SettlementService = Depends(get_settlement_service)):
    """All bills, newest first."""
    return await service.list_bills()


@router.post("/", response_model=Bill)
async def create_bill(
    bill_in: BillCreate,
    service: SettlementService = Depends(get_settlement_service)
):
    try:
        return await service.create_bill(bill_in)
    except SplitError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("/{bill_id}", response_model=Bill)
async def get_bill(bill_id: str, service: SettlementService = Depends(get_settlement_service)):
    try:
        return await service.get_bill(bill_id)
    except SplitError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


@router.post("/{bill_id}/participants/{address}/pay", response_model=PayShareResponse)
async def pay_share(
    bill_id: str,
    address: str,
    service: SettlementService = Depends(get_settlement_service)
):
    """Pay one participant's share with the connected wallet."""
    try:
        result = await service.pay_share(bill_id, address)
    except SplitError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    return PayShareResponse(
        **result.model_dump(),
        explorer_url=explorer_url(result.tx_hash)
    )
