import enum
from dataclasses import dataclass
from functools import reduce
from typing import Iterable, Optional

from retread.engine.aggregation import returns_of
from retread.engine.coerce import as_count
from retread.engine.types import BONUS_THRESHOLD, BonusStats, ReturnTotals, Shipment


class BonusAccrual(str, enum.Enum):
    # floor(reformed / T) earned, redemptions netted once against earned
    GROSS = "gross"
    # floor(max(0, reformed - paid) / T) earned, then netted again for pending
    NET_OF_REDEEMED = "net_of_redeemed"


@dataclass(frozen=True)
class BonusPolicy:
    threshold: int = BONUS_THRESHOLD
    accrual: BonusAccrual = BonusAccrual.GROSS

    def __post_init__(self):
        if self.threshold <= 0:
            raise ValueError("Bonus threshold must be positive")


DEFAULT_POLICY = BonusPolicy()


def fold_event(event) -> ReturnTotals:
    return ReturnTotals(
        reformed=as_count(getattr(event, "reformed", 0)),
        repaired=as_count(getattr(event, "repaired", 0)),
        exchanged=as_count(getattr(event, "exchanged", 0)),
        failed=as_count(getattr(event, "failed", 0)),
        bonus_paid=as_count(getattr(event, "bonuses_redeemed", 0)),
    )


def fold_shipment(shipment: Shipment) -> ReturnTotals:
    own = ReturnTotals(sent=as_count(getattr(shipment, "quantity_sent", 0)))
    return reduce(lambda acc, r: acc + fold_event(r), returns_of(shipment), own)


def fold_shipments(shipments: Optional[Iterable[Shipment]]) -> ReturnTotals:
    """
    Fold a whole shipment collection into counters. Sums only, so the result
    does not depend on the order of shipments or of their return events.
    """
    return reduce(
        lambda acc, s: acc + fold_shipment(s), shipments or [], ReturnTotals()
    )


def bonuses_earned(totals: ReturnTotals, policy: BonusPolicy = DEFAULT_POLICY) -> int:
    if policy.accrual == BonusAccrual.NET_OF_REDEEMED:
        return max(0, totals.reformed - totals.bonus_paid) // policy.threshold
    return totals.reformed // policy.threshold


def pending_bonuses(totals: ReturnTotals, policy: BonusPolicy = DEFAULT_POLICY) -> int:
    # clamped: manual overrides may have paid out more than was earned
    return max(0, bonuses_earned(totals, policy) - totals.bonus_paid)


def bonus_stats(
    totals: ReturnTotals, policy: BonusPolicy = DEFAULT_POLICY
) -> BonusStats:
    return BonusStats(
        total_sent=totals.sent,
        total_reformed=totals.reformed,
        total_repaired=totals.repaired,
        total_exchanged=totals.exchanged,
        total_failed=totals.failed,
        total_bonus_earned=bonuses_earned(totals, policy),
        total_bonus_paid=totals.bonus_paid,
        pending_bonuses=pending_bonuses(totals, policy),
    )


def compute_stats(
    shipments: Optional[Iterable[Shipment]], policy: BonusPolicy = DEFAULT_POLICY
) -> BonusStats:
    return bonus_stats(fold_shipments(shipments), policy)


def next_bonus_progress(
    totals: ReturnTotals, policy: BonusPolicy = DEFAULT_POLICY
) -> int:
    """Reformed units already counted toward the next bonus."""
    if policy.accrual == BonusAccrual.NET_OF_REDEEMED:
        return max(0, totals.reformed - totals.bonus_paid) % policy.threshold
    return totals.reformed % policy.threshold


def success_rate(totals: ReturnTotals) -> float:
    """Share of returned units that came back reformed, as a percentage."""
    if totals.returned == 0:
        return 0.0
    return round(totals.reformed * 100.0 / totals.returned, 2)


def bonus_unlocked(before: BonusStats, after: BonusStats) -> int:
    """Number of bonuses that became available between two snapshots."""
    return max(0, after.pending_bonuses - before.pending_bonuses)
