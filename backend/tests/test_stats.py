import random
from dataclasses import replace

import pytest
from factories import event, shipment

from retread.engine.coerce import as_count
from retread.engine.stats import (
    BonusAccrual,
    BonusPolicy,
    bonus_stats,
    bonus_unlocked,
    compute_stats,
    fold_shipment,
    fold_shipments,
    next_bonus_progress,
    success_rate,
)
from retread.engine.types import BonusStats, ReturnTotals

NET = BonusPolicy(accrual=BonusAccrual.NET_OF_REDEEMED)


def two_full_shipments(bonuses=0):
    a = shipment(quantity=15, returns=[event("NF-A", reformed=15, bonuses=bonuses)])
    b = shipment(quantity=15, returns=[event("NF-B", reformed=15)])
    return [a, b]


def test_two_thresholds_earn_two_bonuses():
    stats = compute_stats(two_full_shipments())
    assert stats.total_sent == 30
    assert stats.total_reformed == 30
    assert stats.total_bonus_earned == 2
    assert stats.total_bonus_paid == 0
    assert stats.pending_bonuses == 2


def test_redeeming_one_bonus_gross_accrual():
    stats = compute_stats(two_full_shipments(bonuses=1))
    assert stats.total_bonus_paid == 1
    assert stats.total_bonus_earned == 2
    assert stats.pending_bonuses == 1


def test_redeeming_one_bonus_net_of_redeemed_accrual():
    stats = compute_stats(two_full_shipments(bonuses=1), NET)
    assert stats.total_bonus_paid == 1
    assert stats.total_bonus_earned == 1  # floor((30 - 1) / 15)
    assert stats.pending_bonuses == 0


def test_empty_store():
    assert compute_stats([]) == BonusStats(0, 0, 0, 0, 0, 0, 0, 0)
    assert compute_stats(None).pending_bonuses == 0


def test_fold_is_order_independent():
    shipments = [
        shipment(quantity=30, returns=[event(reformed=7, failed=1), event(reformed=9, bonuses=1)]),
        shipment(quantity=12, returns=[event(repaired=4), event(exchanged=2, reformed=6)]),
        shipment(quantity=8),
        shipment(quantity=40, returns=[event(reformed=16, bonuses=2)]),
    ]
    expected = fold_shipments(shipments)
    rng = random.Random(7)
    for _ in range(10):
        shuffled = [replace(s, returns=rng.sample(s.returns, len(s.returns))) for s in shipments]
        rng.shuffle(shuffled)
        assert fold_shipments(shuffled) == expected
        assert compute_stats(shuffled) == compute_stats(shipments)


def test_global_fold_equals_sum_of_shipment_folds():
    shipments = [
        shipment(quantity=10, returns=[event(reformed=3), event(failed=2)]),
        shipment(quantity=5, returns=[event(reformed=5, bonuses=1)]),
    ]
    by_hand = ReturnTotals()
    for s in shipments:
        by_hand = by_hand + fold_shipment(s)
    assert fold_shipments(shipments) == by_hand
    assert by_hand.sent == 15
    assert by_hand.returned == 10


@pytest.mark.parametrize("policy", [BonusPolicy(), NET])
def test_pending_never_negative(policy):
    for reformed in range(0, 50, 7):
        for paid in range(0, 10):
            totals = ReturnTotals(reformed=reformed, bonus_paid=paid)
            assert bonus_stats(totals, policy).pending_bonuses >= 0


def test_malformed_numbers_fold_to_zero():
    weird = replace(event(reformed=1), reformed="abc", repaired="4", failed=None, exchanged=-3)
    s = replace(shipment(quantity=10), returns=[weird], quantity_sent="10")
    totals = fold_shipment(s)
    assert totals == ReturnTotals(sent=10, reformed=0, repaired=4, exchanged=0, failed=0)


@pytest.mark.parametrize(
    "raw,expected",
    [(None, 0), ("", 0), ("7", 7), (" 3 ", 3), ("x", 0), (2.9, 2), (-1, 0),
     (float("nan"), 0), (True, 0), ([], 0), (12, 12)],
)
def test_as_count(raw, expected):
    assert as_count(raw) == expected


def test_dashboard_figures():
    totals = ReturnTotals(reformed=22, repaired=3, exchanged=0, failed=0, bonus_paid=1)
    assert next_bonus_progress(totals) == 7
    assert next_bonus_progress(totals, NET) == 6
    assert success_rate(totals) == 88.0
    assert success_rate(ReturnTotals()) == 0.0


def test_bonus_unlocked():
    before = compute_stats([shipment(quantity=20, returns=[event(reformed=14)])])
    after = compute_stats([shipment(quantity=20, returns=[event(reformed=14), event(reformed=1)])])
    assert bonus_unlocked(before, after) == 1
    assert bonus_unlocked(after, before) == 0


def test_threshold_must_be_positive():
    with pytest.raises(ValueError):
        BonusPolicy(threshold=0)
