import enum
from dataclasses import dataclass
from typing import AbstractSet, Iterable, Optional, Set

from retread.engine.aggregation import returns_of, total_handled
from retread.engine.coerce import as_count, is_count
from retread.engine.types import ReturnEvent, Shipment


class Rejection(str, enum.Enum):
    EMPTY_SUBMISSION = "EmptySubmission"
    EXCEEDS_CAPACITY = "ExceedsCapacity"
    DUPLICATE_INVOICE = "DuplicateInvoice"
    MISSING_INVOICE = "MissingInvoice"
    MALFORMED_INPUT = "MalformedInput"
    INSUFFICIENT_BONUS = "InsufficientBonus"
    BELOW_RETURNED = "BelowReturned"


@dataclass(frozen=True)
class Admission:
    accepted: bool
    reason: Optional[Rejection] = None
    detail: str = ""
    remaining_capacity: int = 0
    candidate_total: int = 0


COUNT_FIELDS = ("reformed", "repaired", "exchanged", "failed", "bonuses_redeemed")


def normalize_invoice(number) -> str:
    if number is None:
        return ""
    return str(number).strip().casefold()


def used_invoice_numbers(
    shipments: Iterable[Shipment],
    exclude_event_id: Optional[str] = None,
    exclude_shipment_id: Optional[str] = None,
) -> Set[str]:
    """
    Normalized invoice numbers of every return event in the collection,
    leaving out the event being edited. When `exclude_shipment_id` is
    given only the event on that shipment is left out.
    """
    used = set()
    for s in shipments or []:
        for r in returns_of(s):
            if (
                exclude_event_id is not None
                and r.id == exclude_event_id
                and exclude_shipment_id in (None, s.id)
            ):
                continue
            number = normalize_invoice(r.invoice_number)
            if number:
                used.add(number)
    return used


def remaining_capacity(shipment: Shipment, replacing_id: Optional[str] = None) -> int:
    others = sum(
        total_handled(r) for r in returns_of(shipment) if r.id != replacing_id
    )
    return as_count(shipment.quantity_sent) - others


def _reject(reason: Rejection, detail: str, capacity: int = 0, total: int = 0):
    return Admission(
        accepted=False,
        reason=reason,
        detail=detail,
        remaining_capacity=capacity,
        candidate_total=total,
    )


def admit_return(
    candidate: ReturnEvent,
    shipment: Shipment,
    used_invoices: AbstractSet[str],
    replacing_id: Optional[str] = None,
    available_bonuses: Optional[int] = None,
) -> Admission:
    """
    Decide whether `candidate` may be appended to `shipment` or, when
    `replacing_id` is given, substituted for that event.

    `used_invoices` must already exclude the invoice of the event being
    replaced (see used_invoice_numbers). `available_bonuses` is the pending
    bonus count of the whole store; when omitted the bonus check is skipped.

    Never raises and never clamps: the candidate is accepted or rejected
    as a whole and the caller performs the actual write.
    """
    bad = [f for f in COUNT_FIELDS if not is_count(getattr(candidate, f, None))]
    if bad:
        return _reject(
            Rejection.MALFORMED_INPUT,
            f"Counts must be non-negative integers: {', '.join(bad)}",
        )

    prior = shipment.find_return(replacing_id) if replacing_id else None
    capacity = remaining_capacity(shipment, replacing_id)
    total = total_handled(candidate)
    # shrinking an existing event never makes an overfilled shipment worse
    within_prior = prior is not None and total <= total_handled(prior)

    invoice = normalize_invoice(candidate.invoice_number)
    if not invoice:
        return _reject(
            Rejection.MISSING_INVOICE, "Invoice number is required", capacity, total
        )
    if total == 0:
        return _reject(
            Rejection.EMPTY_SUBMISSION, "Return carries no units", capacity, total
        )
    if total > capacity and not within_prior:
        return _reject(
            Rejection.EXCEEDS_CAPACITY,
            f"Return of {total} units exceeds remaining capacity {max(capacity, 0)}",
            capacity,
            total,
        )
    if invoice in used_invoices:
        return _reject(
            Rejection.DUPLICATE_INVOICE,
            f"Invoice {str(candidate.invoice_number).strip()} is already registered",
            capacity,
            total,
        )

    if available_bonuses is not None:
        already = as_count(prior.bonuses_redeemed) if prior else 0
        extra = candidate.bonuses_redeemed - already
        if extra > 0 and extra > available_bonuses:
            return _reject(
                Rejection.INSUFFICIENT_BONUS,
                f"Only {available_bonuses} bonuses available to redeem",
                capacity,
                total,
            )

    return Admission(accepted=True, remaining_capacity=capacity, candidate_total=total)
