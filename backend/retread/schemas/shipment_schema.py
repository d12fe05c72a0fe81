# backend/retread/schemas/shipment_schema.py
import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from retread.engine.admission import remaining_capacity
from retread.engine.aggregation import total_returned
from retread.engine.types import ReturnEvent, Shipment, new_id


class ShipmentIn(BaseModel):
    send_date: Optional[datetime.date] = None
    quantity_sent: int


class ShipmentPatch(BaseModel):
    send_date: Optional[datetime.date] = None
    quantity_sent: Optional[int] = None


class ReturnEventIn(BaseModel):
    # clients may supply the id so a retried POST is recognised
    id: Optional[str] = None
    date: Optional[datetime.date] = None
    invoice_number: str = ""
    reformed: int = 0
    repaired: int = 0
    exchanged: int = 0
    failed: int = 0
    bonuses_redeemed: int = 0

    def to_event(self, event_id: Optional[str] = None) -> ReturnEvent:
        return ReturnEvent(
            id=event_id or self.id or new_id(),
            date=self.date or datetime.date.today(),
            invoice_number=self.invoice_number.strip(),
            reformed=self.reformed,
            repaired=self.repaired,
            exchanged=self.exchanged,
            failed=self.failed,
            bonuses_redeemed=self.bonuses_redeemed,
        )


class ReturnEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    date: Optional[datetime.date] = None
    invoice_number: str
    reformed: int
    repaired: int
    exchanged: int
    failed: int
    bonuses_redeemed: int
    total_handled: int


class ShipmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    number: str
    send_date: Optional[datetime.date] = None
    quantity_sent: int
    status: str
    total_returned: int
    remaining_capacity: int
    returns: List[ReturnEventOut]


class BonusStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    total_sent: int
    total_reformed: int
    total_repaired: int
    total_exchanged: int
    total_failed: int
    total_bonus_earned: int
    total_bonus_paid: int
    pending_bonuses: int


class StatsOut(BaseModel):
    stats: BonusStatsOut
    bonus_threshold: int
    bonus_accrual: str
    next_bonus_progress: int
    success_rate: float
    open_shipments: int


class AdmissionOut(BaseModel):
    accepted: bool
    reason: Optional[str] = None
    detail: str = ""
    remaining_capacity: int
    candidate_total: int


def shipment_out(shipment: Shipment) -> ShipmentOut:
    return ShipmentOut(
        id=shipment.id,
        number=shipment.number,
        send_date=shipment.send_date,
        quantity_sent=shipment.quantity_sent,
        status=shipment.status.value,
        total_returned=total_returned(shipment),
        remaining_capacity=max(0, remaining_capacity(shipment)),
        returns=[ReturnEventOut.model_validate(r) for r in shipment.returns],
    )
