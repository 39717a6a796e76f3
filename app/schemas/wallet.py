from decimal import Decimal
from typing import Optional

from app.models.base import CamelModel
from app.models.wallet import BalanceState, WalletIdentity


class WalletStatusResponse(CamelModel):
    state: str
    identity: Optional[WalletIdentity] = None
    short_address: str = ""
    balance: Decimal
    balance_state: BalanceState
    last_error: Optional[str] = None
