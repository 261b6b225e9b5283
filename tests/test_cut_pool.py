"""Tests for the cut pool and cutting-plane statistics."""
import autograd.numpy as np
import pytest

from bnbcut import CutPool, CutStatisticsTracker, CutType, CuttingPlane


def _cut(coefficients, rhs, cut_type=CutType.GOMORY):
    return CuttingPlane(np.array(coefficients, dtype=float), rhs, cut_type)


def test_add_rejects_scaled_duplicates():
    pool = CutPool()
    assert pool.add(_cut([1.0, 1.0], 1.0))
    assert not pool.add(_cut([2.0, 2.0], 2.0))
    assert pool.add(_cut([1.0, 0.0], 1.0))
    assert len(pool) == 2


def test_violated_cuts_sorted_by_violation():
    pool = CutPool()
    small = _cut([1.0, 0.0], 0.8)
    large = _cut([1.0, 1.0], 1.0)
    satisfied = _cut([0.0, 1.0], 5.0)
    for cut in (small, large, satisfied):
        pool.add(cut)

    violated = pool.violated_cuts(np.array([1.0, 1.0]))
    assert violated == [large, small]


def test_record_activity_credits_binding_and_violated():
    pool = CutPool()
    binding = _cut([1.0, 0.0], 1.0)
    violated = _cut([0.0, 1.0], 0.5)
    slack = _cut([1.0, 1.0], 10.0)
    for cut in (binding, violated, slack):
        pool.add(cut)

    pool.record_activity(np.array([1.0, 1.0]))
    stats = {id(mc.cut): mc for mc in pool}
    assert stats[id(binding)].activity == 1
    assert stats[id(binding)].times_violated == 0
    assert stats[id(violated)].activity == 1
    assert stats[id(violated)].times_violated == 1
    assert stats[id(slack)].activity == 0


def test_prune_evicts_old_inactive_cuts():
    pool = CutPool(max_age=2)
    active = _cut([1.0, 0.0], 1.0)
    idle = _cut([0.0, 1.0], 10.0)
    pool.add(active)
    pool.add(idle)

    for _ in range(3):
        pool.age_all()
        pool.record_activity(np.array([1.0, 0.0]))

    assert pool.prune() == 1
    assert pool.cuts == [active]


def test_pool_size_is_bounded():
    pool = CutPool(max_size=3)
    for k in range(5):
        coefficients = np.zeros(5)
        coefficients[k] = 1.0
        pool.add(CuttingPlane(coefficients, 1.0, CutType.GOMORY))
    assert len(pool) == 3

    pool.clear()
    assert len(pool) == 0


def test_tracker_counts_by_type():
    tracker = CutStatisticsTracker()
    tracker.record_cuts([_cut([1.0], 0.0), _cut([1.0], 0.0, CutType.COVER)])
    tracker.record_cuts([_cut([1.0], 0.0, CutType.MIXED_INTEGER_ROUNDING)])
    tracker.record_round()
    tracker.record_round()
    tracker.record_node(2)
    tracker.record_node(0)

    stats = tracker.snapshot()
    assert stats.total_cuts_generated == 3
    assert stats.gomory_cuts == 1
    assert stats.cover_cuts == 1
    assert stats.mir_cuts == 1
    assert stats.clique_cuts == 0
    assert stats.cutting_rounds == 2
    assert stats.lp_resolves == 2
    assert stats.max_rounds_at_node == 2
    assert stats.nodes_with_cuts == 1


def test_gap_closed():
    tracker = CutStatisticsTracker(root_bound_before_cuts=-21.0, root_bound_after_cuts=-20.5)
    assert tracker.gap_closed(-20.0) == pytest.approx(50.0)
    assert tracker.snapshot(-20.0).percentage_gap_closed == pytest.approx(50.0)
    # No incumbent or no gap
    assert tracker.gap_closed(None) == 0.0
    assert tracker.gap_closed(-21.0) == 0.0
    assert tracker.gap_closed(float("inf")) == 0.0


def test_gap_closed_is_clamped():
    tracker = CutStatisticsTracker(root_bound_before_cuts=0.0, root_bound_after_cuts=2.0)
    assert tracker.gap_closed(1.0) == 100.0
    tracker = CutStatisticsTracker(root_bound_before_cuts=0.0, root_bound_after_cuts=-1.0)
    assert tracker.gap_closed(1.0) == 0.0
