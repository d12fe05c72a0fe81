import enum
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, Optional

from retread.engine.admission import Rejection
from retread.engine.aggregation import returns_of, shipment_status, total_returned
from retread.engine.coerce import as_count, is_count
from retread.engine.numbering import DEFAULT_PREFIX, next_shipment_number
from retread.engine.types import Shipment, ShipmentStatus, new_id


class DeletionPolicy(str, enum.Enum):
    UNFINISHED_ONLY = "unfinished_only"
    # a single return event that exactly completes the shipment
    SINGLE_RECEIPT = "single_receipt"
    ANY = "any"


class NonPositiveQuantity(str, enum.Enum):
    REJECT = "reject"
    CLAMP = "clamp"


@dataclass(frozen=True)
class QuantityCheck:
    accepted: bool
    quantity: int = 0
    reason: Optional[Rejection] = None
    detail: str = ""


def check_new_quantity(
    quantity, on_nonpositive: NonPositiveQuantity = NonPositiveQuantity.REJECT
) -> QuantityCheck:
    if is_count(quantity) and quantity > 0:
        return QuantityCheck(accepted=True, quantity=quantity)
    is_int = isinstance(quantity, int) and not isinstance(quantity, bool)
    if on_nonpositive == NonPositiveQuantity.CLAMP and is_int:
        return QuantityCheck(accepted=True, quantity=1)
    return QuantityCheck(
        accepted=False,
        reason=Rejection.MALFORMED_INPUT,
        detail="Quantity sent must be a positive integer",
    )


def new_shipment(
    send_date: Optional[date],
    quantity: int,
    existing: Iterable[Shipment],
    prefix: str = DEFAULT_PREFIX,
) -> Shipment:
    return Shipment(
        id=new_id(),
        number=next_shipment_number(existing, prefix),
        send_date=send_date,
        quantity_sent=quantity,
        returns=[],
        status=ShipmentStatus.AWAITING,
    )


def check_quantity_correction(shipment: Shipment, quantity) -> QuantityCheck:
    if not (is_count(quantity) and quantity > 0):
        return QuantityCheck(
            accepted=False,
            reason=Rejection.MALFORMED_INPUT,
            detail="Quantity sent must be a positive integer",
        )
    returned = total_returned(shipment)
    if quantity < returned:
        return QuantityCheck(
            accepted=False,
            reason=Rejection.BELOW_RETURNED,
            detail=f"Quantity {quantity} is below the {returned} units already returned",
        )
    return QuantityCheck(accepted=True, quantity=quantity)


def correct_shipment(
    shipment: Shipment, quantity: Optional[int] = None, send_date: Optional[date] = None
) -> Shipment:
    updated = replace(
        shipment,
        quantity_sent=shipment.quantity_sent if quantity is None else quantity,
        send_date=shipment.send_date if send_date is None else send_date,
    )
    return replace(updated, status=shipment_status(updated))


def can_delete_shipment(shipment: Shipment, policy: DeletionPolicy) -> bool:
    if policy == DeletionPolicy.ANY:
        return True
    if policy == DeletionPolicy.UNFINISHED_ONLY:
        return shipment_status(shipment) != ShipmentStatus.FINISHED
    returns = returns_of(shipment)
    return len(returns) == 1 and total_returned(shipment) == as_count(
        shipment.quantity_sent
    )
