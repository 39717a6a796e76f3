"""
Even split of a bill total into per-participant shares.

Amounts are handled as integer stroops (1 XLM = 10^7 stroops), the ledger's
native precision. Each share is truncated, never rounded, so
`total - sum(shares)` can leave up to one stroop per participant uncollected.
That residual is accepted and is not redistributed.
"""
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Iterable, List, Union

from pydantic import BaseModel

from app.core.exceptions import InvalidInput
from app.models.bill import Participant
from app.utils.addresses import is_valid_address

STROOPS_PER_UNIT = 10_000_000
AMOUNT_QUANTUM = Decimal("0.0000001")


class ParticipantInput(BaseModel):
    name: str
    address: str


def parse_amount(value: Union[str, int, Decimal]) -> Decimal:
    """Parse a positive amount, truncated to 7 fractional digits."""
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise InvalidOperation
        amount = amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)
    except (InvalidOperation, ValueError):
        raise InvalidInput(f"Invalid amount: {value!r}")
    if amount <= 0:
        raise InvalidInput("Amount must be greater than zero")
    return amount


def format_amount(amount: Decimal) -> str:
    return str(amount.quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN))


def to_stroops(amount: Decimal) -> int:
    return int((amount * STROOPS_PER_UNIT).to_integral_value(rounding=ROUND_DOWN))


def from_stroops(stroops: int) -> Decimal:
    return (Decimal(stroops) / STROOPS_PER_UNIT).quantize(AMOUNT_QUANTUM)


def valid_participants(participants: Iterable[ParticipantInput]) -> List[ParticipantInput]:
    """Keep entries with a non-empty name and a valid address, trimmed."""
    kept = []
    for p in participants:
        name = (p.name or "").strip()
        address = (p.address or "").strip()
        if name and is_valid_address(address):
            kept.append(ParticipantInput(name=name, address=address))
    return kept


def split(total: Union[str, Decimal], participants: Iterable[ParticipantInput]) -> List[Participant]:
    """
    Divide `total` evenly across the valid participants.

    Rules:
    - total must be > 0
    - invalid entries are dropped; none left raises InvalidInput
    - the same address may not appear twice
    - a share that truncates to zero raises InvalidInput
    """
    amount = parse_amount(total)
    kept = valid_participants(participants)
    if not kept:
        raise InvalidInput("Add at least one participant with a name and a valid Stellar address")

    addresses = [p.address for p in kept]
    if len(set(addresses)) != len(addresses):
        raise InvalidInput("Participant addresses must be unique")

    share_stroops = to_stroops(amount) // len(kept)
    if share_stroops == 0:
        raise InvalidInput(f"Total {format_amount(amount)} is too small to split {len(kept)} ways")

    share = format_amount(from_stroops(share_stroops))
    return [
        Participant(address=p.address, name=p.name, amount_owed=share)
        for p in kept
    ]
