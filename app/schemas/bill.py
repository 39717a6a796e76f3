from decimal import Decimal
from typing import List, Optional, Union

from pydantic import Field

from app.models.base import CamelModel
from app.models.wallet import SettlementResult
from app.utils.split_calculator import ParticipantInput


class BillCreate(CamelModel):
    """Bill creation schema. Addresses default to the connected wallet."""
    title: str = Field(..., max_length=200)
    description: str = ""
    total_amount: Union[str, Decimal]
    participants: List[ParticipantInput] = []
    creator_address: Optional[str] = None
    recipient_address: Optional[str] = None


class PayShareResponse(SettlementResult):
    """Settlement result with a link to the transaction."""
    explorer_url: str
