import json
from datetime import date

from retread.engine.types import ShipmentStatus
from retread.schemas.wire import (
    parse_date,
    shipment_from_wire,
    shipment_to_wire,
    shipments_from_payload,
)

RAW = {
    "id": "s-1",
    "number": "REM-0001",
    "sendDate": "2024-03-05T03:00:00.000Z",
    "quantitySent": "20",
    "status": "Finalizada",
    "returns": json.dumps(
        [
            {
                "id": "r-1",
                "date": "2024-03-20",
                "invoiceNumber": " NF-10 ",
                "reformed": 6,
                "repaired": "2",
                "exchanged": None,
                "failed": 0,
            }
        ]
    ),
}


def test_decodes_json_encoded_returns_and_recomputes_status():
    s = shipment_from_wire(RAW)
    assert s.send_date == date(2024, 3, 5)
    assert s.quantity_sent == 20
    assert len(s.returns) == 1
    r = s.returns[0]
    assert r.invoice_number == "NF-10"
    assert (r.reformed, r.repaired, r.exchanged, r.failed) == (6, 2, 0, 0)
    assert r.bonuses_redeemed == 0
    # stored label said finished, 8 of 20 says otherwise
    assert s.status == ShipmentStatus.PARTIAL


def test_garbage_returns_become_empty():
    for garbage in ("not json", None, 42, {"a": 1}, ""):
        s = shipment_from_wire({"id": "x", "quantitySent": 3, "returns": garbage})
        assert s.returns == []
        assert s.status == ShipmentStatus.AWAITING


def test_payload_shapes():
    assert len(shipments_from_payload([RAW, "junk"])) == 1
    assert len(shipments_from_payload({"shipments": [RAW]})) == 1
    assert shipments_from_payload({"error": "boom"}) == []


def test_to_wire_uses_storage_labels():
    wire = shipment_to_wire(shipment_from_wire(RAW))
    assert wire["status"] == "Retorno Parcial"
    assert wire["sendDate"] == "2024-03-05"
    assert wire["quantitySent"] == 20
    assert wire["returns"][0]["invoiceNumber"] == "NF-10"
    assert wire["returns"][0]["bonusesRedeemed"] == 0
    assert shipment_from_wire(wire) == shipment_from_wire(RAW)


def test_parse_date():
    assert parse_date("2024-01-31") == date(2024, 1, 31)
    assert parse_date("31/01/2024") is None
    assert parse_date(None) is None
