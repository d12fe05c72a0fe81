from dataclasses import replace

from retread.engine.coerce import as_count
from retread.engine.types import ReturnEvent, Shipment, ShipmentStatus


def total_handled(event: ReturnEvent) -> int:
    return (
        as_count(event.reformed)
        + as_count(event.repaired)
        + as_count(event.exchanged)
        + as_count(event.failed)
    )


def returns_of(shipment: Shipment) -> list:
    """Return events of a shipment, treating a missing or non-list field as empty."""
    returns = getattr(shipment, "returns", None)
    if not isinstance(returns, (list, tuple)):
        return []
    return list(returns)


def total_returned(shipment: Shipment) -> int:
    return sum(total_handled(r) for r in returns_of(shipment))


def derive_status(returned: int, quantity_sent: int) -> ShipmentStatus:
    if returned == 0:
        return ShipmentStatus.AWAITING
    # over-returned legacy data still reads as finished, never clamped
    if returned >= quantity_sent:
        return ShipmentStatus.FINISHED
    return ShipmentStatus.PARTIAL


def shipment_status(shipment: Shipment) -> ShipmentStatus:
    return derive_status(total_returned(shipment), as_count(shipment.quantity_sent))


def refresh_status(shipment: Shipment) -> Shipment:
    """Return the shipment with its cached status recomputed from its returns."""
    return replace(
        shipment, status=shipment_status(shipment), returns=returns_of(shipment)
    )
