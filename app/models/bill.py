"""
Bill model - a total split into per-participant shares.

Invariants:
- participants is non-empty
- paid == True iff tx_hash is set
- status == settled iff every participant is paid
- amounts are decimal strings with 7 fractional digits
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field, model_validator

from app.models.base import CamelModel, _utcnow, new_object_id


class BillStatus(str, Enum):
    OPEN = "open"
    SETTLED = "settled"


class Participant(CamelModel):
    address: str
    name: str
    amount_owed: str
    paid: bool = False
    tx_hash: Optional[str] = None

    @model_validator(mode="after")
    def _paid_has_hash(self) -> "Participant":
        if self.paid != (self.tx_hash is not None):
            raise ValueError("paid must be set exactly when tx_hash is present")
        return self


class Bill(CamelModel):
    id: str = Field(default_factory=new_object_id)
    title: str
    description: str = ""
    total_amount: str
    creator_address: str
    recipient_address: str
    participants: List[Participant] = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)
    status: BillStatus = BillStatus.OPEN

    def find_participant(self, address: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.address == address:
                return participant
        return None

    def is_fully_settled(self) -> bool:
        return all(p.paid for p in self.participants)
