import logging
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from retread.engine.aggregation import refresh_status
from retread.engine.coerce import as_count
from retread.engine.types import ReturnEvent, Shipment
from retread.models.return_event import ReturnEventRecord
from retread.models.shipment import ShipmentRecord
from retread.models.store_version import StoreVersion
from retread.utils.transactions import smart_transaction

log = logging.getLogger(__name__)

VERSION_ROW_ID = 1


class StaleSnapshotError(Exception):
    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Shipment collection changed (expected version {expected}, found {actual})"
        )
        self.expected = expected
        self.actual = actual


def _to_event(rec: ReturnEventRecord) -> ReturnEvent:
    return ReturnEvent(
        id=rec.id,
        date=rec.date,
        invoice_number=rec.invoice_number or "",
        reformed=as_count(rec.reformed),
        repaired=as_count(rec.repaired),
        exchanged=as_count(rec.exchanged),
        failed=as_count(rec.failed),
        bonuses_redeemed=as_count(rec.bonuses_redeemed),
    )


def _to_shipment(rec: ShipmentRecord) -> Shipment:
    return refresh_status(
        Shipment(
            id=rec.id,
            number=rec.number,
            send_date=rec.send_date,
            quantity_sent=as_count(rec.quantity_sent),
            returns=[_to_event(r) for r in rec.returns],
        )
    )


class SqlShipmentStore:
    """
    Whole-collection store backed by the local database.

    save() replaces every shipment and return event in one transaction and
    bumps a collection version. Passing expected_version turns the default
    last-writer-wins save into an optimistic one that refuses stale snapshots.
    """

    def __init__(self, db: Session):
        self.db = db

    def _version_row(self) -> StoreVersion:
        row = self.db.get(StoreVersion, VERSION_ROW_ID)
        if row is None:
            row = StoreVersion(id=VERSION_ROW_ID, version=0, pushed_version=0)
            self.db.add(row)
            self.db.flush()
        return row

    def version(self) -> int:
        row = self.db.get(StoreVersion, VERSION_ROW_ID)
        return row.version if row else 0

    def pushed_version(self) -> int:
        row = self.db.get(StoreVersion, VERSION_ROW_ID)
        return row.pushed_version if row else 0

    def load(self) -> List[Shipment]:
        # expire so a long-lived session sees writes from other sessions
        self.db.expire_all()
        records = (
            self.db.query(ShipmentRecord)
            .options(selectinload(ShipmentRecord.returns))
            .order_by(ShipmentRecord.position)
            .all()
        )
        return [_to_shipment(r) for r in records]

    def save(
        self,
        shipments: List[Shipment],
        expected_version: Optional[int] = None,
        source: str = "local",
    ) -> int:
        with smart_transaction(self.db):
            row = self._version_row()
            if expected_version is not None and row.version != expected_version:
                raise StaleSnapshotError(expected_version, row.version)

            self.db.query(ReturnEventRecord).delete(synchronize_session=False)
            self.db.query(ShipmentRecord).delete(synchronize_session=False)
            self.db.flush()
            self.db.expunge_all()

            for pos, s in enumerate(shipments):
                s = refresh_status(s)
                rec = ShipmentRecord(
                    id=s.id,
                    number=s.number,
                    send_date=s.send_date,
                    quantity_sent=s.quantity_sent,
                    status=s.status.value,
                    position=pos,
                )
                rec.returns = [
                    ReturnEventRecord(
                        id=r.id,
                        date=r.date,
                        invoice_number=r.invoice_number,
                        reformed=r.reformed,
                        repaired=r.repaired,
                        exchanged=r.exchanged,
                        failed=r.failed,
                        bonuses_redeemed=r.bonuses_redeemed,
                        position=i,
                    )
                    for i, r in enumerate(s.returns)
                ]
                self.db.add(rec)

            row = self._version_row()
            row.version = row.version + 1
            row.source = source
            if source == "pull":
                # the local copy now mirrors the remote one
                row.pushed_version = row.version
            new_version = row.version
        log.info(
            "saved %d shipments (version %d, source=%s)",
            len(shipments),
            new_version,
            source,
        )
        return new_version

    def mark_pushed(self, version: int):
        with smart_transaction(self.db):
            row = self._version_row()
            row.pushed_version = max(row.pushed_version, version)
