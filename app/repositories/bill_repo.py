"""
BillStore - durable aggregate of bills and their participants.

Storage layout: one document per namespace key,
    {"_id": <storage key>, "bills": [<bill>, ...]}
holding the whole collection as a JSON array. Every write replaces the
document. Reads always go back to the database so changes made by another
process are picked up.

The asyncio lock only serialises writers inside this process. Two processes
writing at once can still lose an update.
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import BillNotFound, InvalidInput, ParticipantNotFound, StorageError
from app.models.bill import Bill, BillStatus
from app.utils.addresses import is_valid_address
from app.utils.split_calculator import ParticipantInput, format_amount, parse_amount, split

logger = logging.getLogger(__name__)


class BillStore:
    """Only component allowed to mutate bills."""

    def __init__(self, db: AsyncIOMotorDatabase, storage_key: Optional[str] = None):
        self.db = db
        self.collection = db[settings.STATE_COLLECTION]
        self.storage_key = storage_key or settings.BILLS_STORAGE_KEY
        self._lock = asyncio.Lock()

    async def _load(self) -> List[Bill]:
        doc = await self.collection.find_one({"_id": self.storage_key})
        if not doc:
            return []
        try:
            return [Bill.model_validate(raw) for raw in doc.get("bills") or []]
        except ValidationError as exc:
            raise StorageError(f"Stored bills are unreadable: {exc}")

    async def _save(self, bills: Iterable[Bill]) -> None:
        payload = [
            bill.model_dump(mode="json", by_alias=True, exclude_none=True)
            for bill in bills
        ]
        await self.collection.replace_one(
            {"_id": self.storage_key},
            {"_id": self.storage_key, "bills": payload},
            upsert=True
        )
        logger.debug("Saved %d bills under %s", len(payload), self.storage_key)

    async def list(self) -> List[Bill]:
        """All bills, newest first, freshly read from storage."""
        return await self._load()

    async def get(self, bill_id: str) -> Optional[Bill]:
        for bill in await self._load():
            if bill.id == bill_id:
                return bill
        return None

    async def create(
        self,
        title: str,
        total_amount: str,
        creator_address: str,
        recipient_address: str,
        participants: Iterable[ParticipantInput],
        description: str = "",
    ) -> Bill:
        title = (title or "").strip()
        if not title:
            raise InvalidInput("Enter a bill title")
        for label, address in (("creator", creator_address), ("recipient", recipient_address)):
            if not is_valid_address(address):
                raise InvalidInput(f"Invalid {label} address")

        total = parse_amount(total_amount)
        bill = Bill(
            title=title,
            description=(description or "").strip(),
            total_amount=format_amount(total),
            creator_address=creator_address,
            recipient_address=recipient_address,
            participants=split(total, participants),
        )

        async with self._lock:
            bills = await self._load()
            await self._save([bill, *bills])

        logger.info("Created bill %s (%s) for %d participants", bill.id, bill.total_amount, len(bill.participants))
        return bill

    async def confirm_payment(self, bill_id: str, participant_address: str, tx_hash: str) -> Bill:
        """
        Mark one participant paid and recompute the bill status.

        Confirming an already paid participant leaves it unchanged, so
        repeating a confirmation is harmless.
        """
        async with self._lock:
            bills = await self._load()
            index = next((i for i, b in enumerate(bills) if b.id == bill_id), None)
            if index is None:
                raise BillNotFound(f"Bill {bill_id} not found")

            bill = bills[index]
            participant = bill.find_participant(participant_address)
            if participant is None:
                raise ParticipantNotFound(f"{participant_address} is not a participant of bill {bill_id}")

            if participant.paid:
                if participant.tx_hash != tx_hash:
                    logger.warning(
                        "Participant %s on bill %s already paid with %s, ignoring %s",
                        participant_address, bill_id, participant.tx_hash, tx_hash,
                    )
                return bill

            participants = [
                p.model_copy(update={"paid": True, "tx_hash": tx_hash}) if p.address == participant_address else p
                for p in bill.participants
            ]
            all_paid = all(p.paid for p in participants)
            updated = bill.model_copy(update={
                "participants": participants,
                "status": BillStatus.SETTLED if all_paid else BillStatus.OPEN,
            })
            bills[index] = updated
            await self._save(bills)

        if updated.status == BillStatus.SETTLED:
            logger.info("Bill %s settled", bill_id)
        return updated
