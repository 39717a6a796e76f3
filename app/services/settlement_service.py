"""
SettlementService - the operations UI collaborators call.

pay_share order:
1. Look up the bill and participant (must exist and be unpaid)
2. Connect the wallet session if it is not connected
3. Execute the payment
4. Only after the payment succeeded, confirm it in the store
5. Refresh the session balance and notify `on_settled`
"""

import inspect
import logging
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Set, Tuple, Union

from app.core.exceptions import (
    AlreadyPaid,
    BillNotFound,
    LedgerError,
    ParticipantNotFound,
    PaymentInProgress,
    WalletNotConnected,
)
from app.models.bill import Bill
from app.models.wallet import SettlementResult
from app.repositories.bill_repo import BillStore
from app.schemas.bill import BillCreate
from app.services.payment_executor import PaymentExecutor
from app.services.wallet_session import WalletSession

logger = logging.getLogger(__name__)

OnSettled = Callable[[str, str, str], Union[None, Awaitable[None]]]


class SettlementService:
    def __init__(
        self,
        store: BillStore,
        session: WalletSession,
        executor: PaymentExecutor,
        on_settled: Optional[OnSettled] = None,
    ):
        self.store = store
        self.session = session
        self.executor = executor
        self.on_settled = on_settled
        self._in_flight: Set[Tuple[str, str]] = set()

    async def list_bills(self) -> List[Bill]:
        return await self.store.list()

    async def get_bill(self, bill_id: str) -> Bill:
        bill = await self.store.get(bill_id)
        if bill is None:
            raise BillNotFound(f"Bill {bill_id} not found")
        return bill

    async def create_bill(self, bill_in: BillCreate) -> Bill:
        """Creator and recipient default to the connected wallet."""
        connected = self.session.identity.public_key if self.session.identity else None
        creator = bill_in.creator_address or connected
        recipient = bill_in.recipient_address or connected
        if not creator or not recipient:
            raise WalletNotConnected("Connect your wallet first")

        return await self.store.create(
            title=bill_in.title,
            total_amount=bill_in.total_amount,
            creator_address=creator,
            recipient_address=recipient,
            participants=bill_in.participants,
            description=bill_in.description,
        )

    async def pay_share(self, bill_id: str, participant_address: str) -> SettlementResult:
        key = (bill_id, participant_address)
        if key in self._in_flight:
            raise PaymentInProgress("A payment for this share is already in progress")

        self._in_flight.add(key)
        try:
            bill = await self.get_bill(bill_id)
            participant = bill.find_participant(participant_address)
            if participant is None:
                raise ParticipantNotFound(f"{participant_address} is not a participant of bill {bill_id}")
            if participant.paid:
                raise AlreadyPaid(f"Share of {participant.name} is already paid ({participant.tx_hash})")

            identity = self.session.identity
            if not self.session.is_connected or identity is None:
                identity = await self.session.connect()

            result = await self.executor.pay(
                identity,
                participant.address,
                bill.recipient_address,
                Decimal(participant.amount_owed),
            )
            if not result.success:
                raise LedgerError(f"Transaction {result.tx_hash} was not successful")

            await self.store.confirm_payment(bill_id, participant_address, result.tx_hash)
            await self.session.refresh()
            await self._notify(bill_id, participant_address, result.tx_hash)
            return result
        finally:
            self._in_flight.discard(key)

    async def _notify(self, bill_id: str, participant_address: str, tx_hash: str) -> None:
        if self.on_settled is None:
            return
        outcome = self.on_settled(bill_id, participant_address, tx_hash)
        if inspect.isawaitable(outcome):
            await outcome
