import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional

from filelock import Timeout
from sqlalchemy.orm import Session

from retread.config import settings
from retread.engine.admission import (
    Admission,
    admit_return,
    used_invoice_numbers,
)
from retread.engine.mutations import (
    append_return,
    drop_shipment,
    remove_return,
    replace_return,
    replace_shipment,
)
from retread.engine.policies import (
    check_new_quantity,
    check_quantity_correction,
    can_delete_shipment,
    correct_shipment,
    new_shipment,
)
from retread.engine.stats import (
    bonus_stats,
    bonus_unlocked,
    fold_shipments,
    next_bonus_progress,
    success_rate,
)
from retread.engine.types import BonusStats, ReturnEvent, Shipment, ShipmentStatus
from retread.repositories.shipment_repo import SqlShipmentStore
from retread.utils.transactions import store_lock

log = logging.getLogger(__name__)


class ShipmentServiceException(Exception):
    def __init__(self, message: str, reason: Optional[str] = None, status_code: int = 400):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class ShipmentNotFound(ShipmentServiceException):
    def __init__(self, message: str = "Shipment not found"):
        super().__init__(message, reason="NotFound", status_code=404)


@dataclass(frozen=True)
class ReturnResult:
    shipment: Shipment
    stats: BonusStats
    bonuses_unlocked: int = 0


class ShipmentService:
    """
    Applies reconciliation decisions to the shipment store.

    Every mutation takes the store lock, reloads the freshest snapshot,
    re-runs admission against it and writes the whole collection back
    with the version it was read at, so a concurrent writer that slipped
    in between is detected rather than silently overwritten.
    """

    def __init__(self, db: Optional[Session] = None, store=None, config=settings):
        if store is None and db is None:
            raise ValueError("ShipmentService needs a db session or a store")
        self.store = store if store is not None else SqlShipmentStore(db)
        self.config = config
        self.policy = config.bonus_policy()

    # -- reads ---------------------------------------------------------

    def list_shipments(self, status: Optional[ShipmentStatus] = None) -> List[Shipment]:
        shipments = self.store.load()
        if status is not None:
            shipments = [s for s in shipments if s.status == status]
        return shipments

    def get_shipment(self, shipment_id: str) -> Shipment:
        return self._find(self.store.load(), shipment_id)

    def stats(self) -> BonusStats:
        return bonus_stats(fold_shipments(self.store.load()), self.policy)

    def dashboard(self) -> dict:
        shipments = self.store.load()
        totals = fold_shipments(shipments)
        return {
            "stats": bonus_stats(totals, self.policy),
            "bonus_threshold": self.policy.threshold,
            "bonus_accrual": self.policy.accrual.value,
            "next_bonus_progress": next_bonus_progress(totals, self.policy),
            "success_rate": success_rate(totals),
            "open_shipments": sum(
                1 for s in shipments if s.status != ShipmentStatus.FINISHED
            ),
        }

    def validate_return(
        self,
        shipment_id: str,
        candidate: ReturnEvent,
        replacing_id: Optional[str] = None,
    ) -> Admission:
        """Dry-run admission against the current store; never writes."""
        shipments = self.store.load()
        return self._admit(shipments, shipment_id, candidate, replacing_id)

    # -- shipment mutations --------------------------------------------

    def create_shipment(self, send_date: Optional[date], quantity) -> Shipment:
        check = check_new_quantity(quantity, self.config.NONPOSITIVE_QUANTITY)
        if not check.accepted:
            raise ShipmentServiceException(check.detail, reason=check.reason.value)
        with self._locked():
            shipments, version = self._snapshot()
            shipment = new_shipment(
                send_date or date.today(),
                check.quantity,
                shipments,
                prefix=self.config.SHIPMENT_NUMBER_PREFIX,
            )
            # newest first, as the list view shows them
            self._commit([shipment] + shipments, version)
        log.info("created shipment %s (%d units)", shipment.number, shipment.quantity_sent)
        return shipment

    def correct_shipment(
        self,
        shipment_id: str,
        quantity: Optional[int] = None,
        send_date: Optional[date] = None,
    ) -> Shipment:
        if quantity is None and send_date is None:
            return self.get_shipment(shipment_id)
        with self._locked():
            shipments, version = self._snapshot()
            shipment = self._find(shipments, shipment_id)
            if quantity is not None:
                check = check_quantity_correction(shipment, quantity)
                if not check.accepted:
                    raise ShipmentServiceException(check.detail, reason=check.reason.value)
            updated = correct_shipment(shipment, quantity=quantity, send_date=send_date)
            self._commit(replace_shipment(shipments, updated), version)
        return updated

    def delete_shipment(self, shipment_id: str) -> bool:
        """Delete a shipment if the configured policy allows it. Absent ids are a no-op."""
        with self._locked():
            shipments, version = self._snapshot()
            shipment = next((s for s in shipments if s.id == shipment_id), None)
            if shipment is None:
                return False
            policy = self.config.SHIPMENT_DELETE_POLICY
            if not can_delete_shipment(shipment, policy):
                raise ShipmentServiceException(
                    f"Shipment {shipment.number} cannot be deleted under policy {policy.value}",
                    reason="DeleteNotAllowed",
                    status_code=409,
                )
            self._commit(drop_shipment(shipments, shipment_id), version)
        log.info("deleted shipment %s", shipment.number)
        return True

    # -- return event mutations ----------------------------------------

    def add_return(self, shipment_id: str, candidate: ReturnEvent) -> ReturnResult:
        with self._locked():
            shipments, version = self._snapshot()
            shipment = self._find(shipments, shipment_id)
            before = bonus_stats(fold_shipments(shipments), self.policy)

            owner, existing = self._locate_event(shipments, candidate.id)
            if existing is not None:
                # retried submission; the date may have been defaulted on each attempt
                if owner.id == shipment_id and existing == replace(candidate, date=existing.date):
                    return ReturnResult(shipment=shipment, stats=before)
                raise ShipmentServiceException(
                    f"Return event {candidate.id} already exists on {owner.number}",
                    reason="EventConflict",
                    status_code=409,
                )

            self._require(self._admit(shipments, shipment_id, candidate))
            updated = append_return(shipment, candidate)
            shipments = replace_shipment(shipments, updated)
            self._commit(shipments, version)

        after = bonus_stats(fold_shipments(shipments), self.policy)
        unlocked = bonus_unlocked(before, after)
        log.info(
            "return %s on %s: %d units, status %s",
            candidate.invoice_number,
            updated.number,
            candidate.total_handled,
            updated.status.value,
        )
        if unlocked:
            log.info("%d new bonus(es) available, %d pending", unlocked, after.pending_bonuses)
        return ReturnResult(shipment=updated, stats=after, bonuses_unlocked=unlocked)

    def edit_return(
        self, shipment_id: str, event_id: str, candidate: ReturnEvent
    ) -> ReturnResult:
        with self._locked():
            shipments, version = self._snapshot()
            shipment = self._find(shipments, shipment_id)
            if shipment.find_return(event_id) is None:
                raise ShipmentNotFound("Return event not found")
            before = bonus_stats(fold_shipments(shipments), self.policy)
            self._require(
                self._admit(shipments, shipment_id, candidate, replacing_id=event_id)
            )
            updated = replace_return(shipment, event_id, candidate)
            shipments = replace_shipment(shipments, updated)
            self._commit(shipments, version)
        after = bonus_stats(fold_shipments(shipments), self.policy)
        return ReturnResult(
            shipment=updated, stats=after, bonuses_unlocked=bonus_unlocked(before, after)
        )

    def delete_return(self, shipment_id: str, event_id: str) -> Shipment:
        """Remove a return event; deleting one that is already gone changes nothing."""
        with self._locked():
            shipments, version = self._snapshot()
            shipment = self._find(shipments, shipment_id)
            if shipment.find_return(event_id) is None:
                return shipment
            updated = remove_return(shipment, event_id)
            self._commit(replace_shipment(shipments, updated), version)
        log.info("removed return %s from %s, status %s", event_id, updated.number, updated.status.value)
        return updated

    # -- helpers -------------------------------------------------------

    def _admit(
        self,
        shipments: List[Shipment],
        shipment_id: str,
        candidate: ReturnEvent,
        replacing_id: Optional[str] = None,
    ) -> Admission:
        shipment = self._find(shipments, shipment_id)
        pending = bonus_stats(fold_shipments(shipments), self.policy).pending_bonuses
        return admit_return(
            candidate,
            shipment,
            used_invoice_numbers(
                shipments, exclude_event_id=replacing_id, exclude_shipment_id=shipment_id
            ),
            replacing_id=replacing_id,
            available_bonuses=pending,
        )

    def _require(self, admission: Admission):
        if not admission.accepted:
            log.info("return rejected: %s (%s)", admission.reason.value, admission.detail)
            raise ShipmentServiceException(admission.detail, reason=admission.reason.value)

    def _locate_event(self, shipments: List[Shipment], event_id: str):
        for s in shipments:
            found = s.find_return(event_id)
            if found is not None:
                return s, found
        return None, None

    def _find(self, shipments: List[Shipment], shipment_id: str) -> Shipment:
        for s in shipments:
            if s.id == shipment_id:
                return s
        raise ShipmentNotFound()

    def _snapshot(self):
        return self.store.load(), self.store.version()

    def _commit(self, shipments: List[Shipment], version: int) -> int:
        return self.store.save(shipments, expected_version=version)

    @contextmanager
    def _locked(self):
        try:
            with store_lock(timeout=self.config.STORE_LOCK_TIMEOUT):
                yield
        except Timeout as e:
            raise ShipmentServiceException(
                "Shipment store is busy, try again", reason="StoreBusy", status_code=503
            ) from e
