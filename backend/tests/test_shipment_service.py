from dataclasses import replace
from datetime import date

import pytest
from factories import event, shipment

from retread.adapters.memory_store import InMemoryShipmentStore
from retread.config import Settings
from retread.engine.types import ShipmentStatus
from retread.repositories.shipment_repo import StaleSnapshotError
from retread.services.shipment_service import (
    ShipmentNotFound,
    ShipmentService,
    ShipmentServiceException,
)


@pytest.fixture()
def svc():
    return ShipmentService(store=InMemoryShipmentStore(), config=Settings())


def test_create_numbers_sequentially(svc):
    a = svc.create_shipment(date(2024, 1, 1), 20)
    b = svc.create_shipment(date(2024, 1, 2), 10)
    assert a.number == "REM-0001"
    assert b.number == "REM-0002"
    assert [s.id for s in svc.list_shipments()] == [b.id, a.id]


def test_numbering_survives_deletion(svc):
    a = svc.create_shipment(None, 5)
    b = svc.create_shipment(None, 5)
    svc.delete_shipment(a.id)
    c = svc.create_shipment(None, 5)
    assert b.number == "REM-0002"
    assert c.number == "REM-0003"


def test_create_rejects_nonpositive(svc):
    with pytest.raises(ShipmentServiceException) as exc:
        svc.create_shipment(None, 0)
    assert exc.value.reason == "MalformedInput"


def test_create_clamps_when_configured():
    svc = ShipmentService(
        store=InMemoryShipmentStore(), config=Settings(NONPOSITIVE_QUANTITY="clamp")
    )
    assert svc.create_shipment(None, -2).quantity_sent == 1


def test_return_lifecycle(svc):
    s = svc.create_shipment(date(2024, 1, 1), 20)

    res = svc.add_return(s.id, event("NF-1", reformed=10))
    assert res.shipment.status == ShipmentStatus.PARTIAL

    res = svc.add_return(s.id, event("NF-2", reformed=10))
    assert res.shipment.status == ShipmentStatus.FINISHED
    assert res.stats.total_reformed == 20
    assert res.bonuses_unlocked == 1

    with pytest.raises(ShipmentServiceException) as exc:
        svc.add_return(s.id, event("NF-3", failed=1))
    assert exc.value.reason == "ExceedsCapacity"

    with pytest.raises(ShipmentServiceException) as exc:
        svc.add_return(svc.create_shipment(None, 5).id, event("nf-1", failed=1))
    assert exc.value.reason == "DuplicateInvoice"


def test_retried_add_is_a_noop(svc):
    s = svc.create_shipment(None, 10)
    e = event("NF-1", reformed=4)
    svc.add_return(s.id, e)
    again = svc.add_return(s.id, e)
    assert len(again.shipment.returns) == 1

    with pytest.raises(ShipmentServiceException) as exc:
        svc.add_return(s.id, replace(e, reformed=5))
    assert exc.value.status_code == 409


def test_edit_and_delete_return(svc):
    s = svc.create_shipment(None, 20)
    e = event("NF-1", reformed=20)
    svc.add_return(s.id, e)

    res = svc.edit_return(s.id, e.id, e)
    assert res.shipment.status == ShipmentStatus.FINISHED

    res = svc.edit_return(s.id, e.id, replace(e, reformed=5, invoice_number="NF-1B"))
    assert res.shipment.status == ShipmentStatus.PARTIAL
    assert res.shipment.returns[0].id == e.id

    updated = svc.delete_return(s.id, e.id)
    assert updated.status == ShipmentStatus.AWAITING
    # deleting again is harmless
    assert svc.delete_return(s.id, e.id).returns == []

    with pytest.raises(ShipmentNotFound):
        svc.edit_return(s.id, e.id, e)


def test_bonus_redemption_checked_against_pending(svc):
    s = svc.create_shipment(None, 40)
    svc.add_return(s.id, event("NF-1", reformed=15))
    assert svc.stats().pending_bonuses == 1

    with pytest.raises(ShipmentServiceException) as exc:
        svc.add_return(s.id, event("NF-2", reformed=1, bonuses=2))
    assert exc.value.reason == "InsufficientBonus"

    svc.add_return(s.id, event("NF-3", reformed=1, bonuses=1))
    stats = svc.stats()
    assert stats.total_bonus_paid == 1
    assert stats.pending_bonuses == 0


def test_validate_does_not_write(svc):
    s = svc.create_shipment(None, 3)
    adm = svc.validate_return(s.id, event("NF-1", reformed=4))
    assert not adm.accepted
    adm = svc.validate_return(s.id, event("NF-1", reformed=3))
    assert adm.accepted
    assert svc.get_shipment(s.id).returns == []


def test_correct_quantity(svc):
    s = svc.create_shipment(None, 20)
    svc.add_return(s.id, event("NF-1", reformed=8))
    with pytest.raises(ShipmentServiceException) as exc:
        svc.correct_shipment(s.id, quantity=6)
    assert exc.value.reason == "BelowReturned"
    assert svc.correct_shipment(s.id, quantity=8).status == ShipmentStatus.FINISHED


def test_delete_policy_is_injected():
    store = InMemoryShipmentStore()
    strict = ShipmentService(store=store, config=Settings(SHIPMENT_DELETE_POLICY="unfinished_only"))
    s = strict.create_shipment(None, 5)
    strict.add_return(s.id, event("NF-1", reformed=5))
    with pytest.raises(ShipmentServiceException) as exc:
        strict.delete_shipment(s.id)
    assert exc.value.reason == "DeleteNotAllowed"

    lenient = ShipmentService(store=store, config=Settings(SHIPMENT_DELETE_POLICY="single_receipt"))
    assert lenient.delete_shipment(s.id) is True
    assert lenient.delete_shipment(s.id) is False


def test_unknown_shipment(svc):
    with pytest.raises(ShipmentNotFound):
        svc.get_shipment("nope")
    with pytest.raises(ShipmentNotFound):
        svc.add_return("nope", event(reformed=1))


def test_stale_snapshot_detected():
    store = InMemoryShipmentStore()
    svc = ShipmentService(store=store, config=Settings())
    s = svc.create_shipment(None, 10)
    version = store.version()
    store.save(store.load())  # another writer
    with pytest.raises(StaleSnapshotError):
        store.save([s], expected_version=version)


def test_dashboard(svc):
    s = svc.create_shipment(None, 30)
    svc.add_return(s.id, event("NF-1", reformed=17, failed=3))
    data = svc.dashboard()
    assert data["stats"].total_bonus_earned == 1
    assert data["next_bonus_progress"] == 2
    assert data["success_rate"] == 85.0
    assert data["open_shipments"] == 1
    assert data["bonus_threshold"] == 15


def test_event_id_is_unique_across_shipments(svc):
    a = svc.create_shipment(None, 10)
    b = svc.create_shipment(None, 10)
    svc.add_return(a.id, event("NF-1", reformed=1, id="same"))

    with pytest.raises(ShipmentServiceException) as exc:
        svc.add_return(b.id, event("NF-2", reformed=1, id="same"))
    assert exc.value.reason == "EventConflict"
    assert exc.value.status_code == 409
    assert svc.get_shipment(b.id).returns == []


def test_edit_cannot_take_invoice_of_event_with_same_id_elsewhere():
    store = InMemoryShipmentStore()
    a = shipment(quantity=10, returns=[event("NF-1", reformed=1, id="same")])
    b = shipment(quantity=10, returns=[event("NF-2", reformed=1, id="same")])
    store.save([a, b])
    svc = ShipmentService(store=store, config=Settings())

    with pytest.raises(ShipmentServiceException) as exc:
        svc.edit_return(b.id, "same", event("nf-1", reformed=1, id="same"))
    assert exc.value.reason == "DuplicateInvoice"
    invoices = [r.invoice_number for s in svc.list_shipments() for r in s.returns]
    assert sorted(invoices) == ["NF-1", "NF-2"]


def test_retry_with_server_defaulted_date_is_a_noop(svc):
    s = svc.create_shipment(None, 10)
    e = event("NF-1", reformed=4)
    svc.add_return(s.id, e)
    version = svc.store.version()

    again = svc.add_return(s.id, replace(e, date=date(2024, 5, 2)))
    assert len(again.shipment.returns) == 1
    assert svc.store.version() == version


def test_empty_correction_does_not_write(svc):
    s = svc.create_shipment(None, 10)
    version = svc.store.version()
    assert svc.correct_shipment(s.id) == s
    assert svc.store.version() == version
    with pytest.raises(ShipmentNotFound):
        svc.correct_shipment("nope")
