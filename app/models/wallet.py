from decimal import Decimal
from enum import Enum
from typing import Optional

from app.models.base import CamelModel


class WalletIdentity(CamelModel):
    """Connected wallet. Held only while a session is connected, never persisted."""
    public_key: str
    network: str


class SettlementResult(CamelModel):
    participant_address: str
    tx_hash: str
    success: bool


class PaymentSubmission(CamelModel):
    hash: str
    success: bool


class BalanceState(str, Enum):
    KNOWN = "known"
    UNKNOWN = "unknown"  # account missing or holds no native balance
    ERROR = "error"      # ledger service could not be queried


class BalanceReading(CamelModel):
    state: BalanceState
    amount: Decimal = Decimal("0")
    reason: Optional[str] = None
