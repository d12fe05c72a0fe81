"""
Codec for the spreadsheet-backed storage schema.

    { id, number, sendDate, quantitySent,
      status: "Aguardando Retorno" | "Retorno Parcial" | "Finalizada",
      returns: [ { id, date, invoiceNumber, reformed, repaired,
                   exchanged, failed, bonusesRedeemed? } ] }

Reads are defensive: `returns` may arrive JSON-encoded, counts may be
strings or missing, and the stored status label is never trusted.
"""
import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from retread.engine.aggregation import refresh_status
from retread.engine.coerce import as_count
from retread.engine.types import ReturnEvent, Shipment, new_id

log = logging.getLogger(__name__)


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        log.debug("unparseable date %r", value)
        return None


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def decode_returns(raw: Any) -> List[dict]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except ValueError:
            log.warning("discarding undecodable returns payload")
            return []
    if not isinstance(raw, list):
        return []
    return [r for r in raw if isinstance(r, dict)]


def return_from_wire(data: Dict[str, Any]) -> ReturnEvent:
    invoice = data.get("invoiceNumber")
    return ReturnEvent(
        id=str(data.get("id") or new_id()),
        date=parse_date(data.get("date")),
        invoice_number="" if invoice is None else str(invoice).strip(),
        reformed=as_count(data.get("reformed")),
        repaired=as_count(data.get("repaired")),
        exchanged=as_count(data.get("exchanged")),
        failed=as_count(data.get("failed")),
        bonuses_redeemed=as_count(data.get("bonusesRedeemed")),
    )


def shipment_from_wire(data: Dict[str, Any]) -> Shipment:
    shipment = Shipment(
        id=str(data.get("id") or new_id()),
        number=str(data.get("number") or ""),
        send_date=parse_date(data.get("sendDate")),
        quantity_sent=as_count(data.get("quantitySent")),
        returns=[return_from_wire(r) for r in decode_returns(data.get("returns"))],
    )
    return refresh_status(shipment)


def shipments_from_payload(payload: Any) -> List[Shipment]:
    """Accept either a bare list of shipments or {"shipments": [...]}."""
    if isinstance(payload, dict):
        payload = payload.get("shipments")
    if not isinstance(payload, list):
        return []
    return [shipment_from_wire(s) for s in payload if isinstance(s, dict)]


def return_to_wire(event: ReturnEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "date": format_date(event.date),
        "invoiceNumber": event.invoice_number,
        "reformed": event.reformed,
        "repaired": event.repaired,
        "exchanged": event.exchanged,
        "failed": event.failed,
        "bonusesRedeemed": event.bonuses_redeemed,
    }


def shipment_to_wire(shipment: Shipment) -> Dict[str, Any]:
    shipment = refresh_status(shipment)
    return {
        "id": shipment.id,
        "number": shipment.number,
        "sendDate": format_date(shipment.send_date),
        "quantitySent": shipment.quantity_sent,
        "status": shipment.status.value,
        "returns": [return_to_wire(r) for r in shipment.returns],
    }
