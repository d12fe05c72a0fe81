from dataclasses import replace
from typing import List

from retread.engine.aggregation import refresh_status, returns_of
from retread.engine.types import ReturnEvent, Shipment


def append_return(shipment: Shipment, event: ReturnEvent) -> Shipment:
    return refresh_status(replace(shipment, returns=returns_of(shipment) + [event]))


def replace_return(shipment: Shipment, event_id: str, event: ReturnEvent) -> Shipment:
    """Substitute the event with `event_id`, keeping that id on the new values."""
    kept = replace(event, id=event_id)
    returns = [kept if r.id == event_id else r for r in returns_of(shipment)]
    return refresh_status(replace(shipment, returns=returns))


def remove_return(shipment: Shipment, event_id: str) -> Shipment:
    # absent ids are a no-op so retried deletes stay harmless
    returns = [r for r in returns_of(shipment) if r.id != event_id]
    return refresh_status(replace(shipment, returns=returns))


def replace_shipment(shipments: List[Shipment], updated: Shipment) -> List[Shipment]:
    return [updated if s.id == updated.id else s for s in shipments]


def drop_shipment(shipments: List[Shipment], shipment_id: str) -> List[Shipment]:
    return [s for s in shipments if s.id != shipment_id]
