import enum
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
from uuid import uuid4

BONUS_THRESHOLD = 15


def new_id() -> str:
    return str(uuid4())


class ShipmentStatus(str, enum.Enum):
    # values are the labels persisted by the spreadsheet endpoint
    AWAITING = "Aguardando Retorno"
    PARTIAL = "Retorno Parcial"
    FINISHED = "Finalizada"


@dataclass(frozen=True)
class ReturnEvent:
    id: str
    date: Optional[date]
    invoice_number: str
    reformed: int = 0
    repaired: int = 0
    exchanged: int = 0
    failed: int = 0
    bonuses_redeemed: int = 0

    @property
    def total_handled(self) -> int:
        return self.reformed + self.repaired + self.exchanged + self.failed


@dataclass(frozen=True)
class Shipment:
    id: str
    number: str
    send_date: Optional[date]
    quantity_sent: int
    returns: List[ReturnEvent] = field(default_factory=list)
    # cache only, see aggregation.refresh_status
    status: ShipmentStatus = ShipmentStatus.AWAITING

    def find_return(self, event_id: str) -> Optional[ReturnEvent]:
        for r in self.returns or []:
            if r.id == event_id:
                return r
        return None


@dataclass(frozen=True)
class ReturnTotals:
    """Additive counters folded out of shipments and their return events."""

    sent: int = 0
    reformed: int = 0
    repaired: int = 0
    exchanged: int = 0
    failed: int = 0
    bonus_paid: int = 0

    def __add__(self, other: "ReturnTotals") -> "ReturnTotals":
        if not isinstance(other, ReturnTotals):
            return NotImplemented
        return ReturnTotals(
            sent=self.sent + other.sent,
            reformed=self.reformed + other.reformed,
            repaired=self.repaired + other.repaired,
            exchanged=self.exchanged + other.exchanged,
            failed=self.failed + other.failed,
            bonus_paid=self.bonus_paid + other.bonus_paid,
        )

    @property
    def returned(self) -> int:
        return self.reformed + self.repaired + self.exchanged + self.failed


@dataclass(frozen=True)
class BonusStats:
    total_sent: int
    total_reformed: int
    total_repaired: int
    total_exchanged: int
    total_failed: int
    total_bonus_earned: int
    total_bonus_paid: int
    pending_bonuses: int
