"""
Cut Pool Management and Cutting-Plane Statistics

Cuts found at one node often separate relaxation points elsewhere in the
tree. The pool keeps them, tracks how useful each has been and evicts stale
ones; the statistics tracker aggregates counters for the final report.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

import autograd.numpy as np

from .cuts import CuttingPlane, is_duplicate
from ...constants import CutType, DEFAULT_CUT_TOL

logger = logging.getLogger(__name__)


@dataclass
class ManagedCut:
    """A pooled cut with its usage history."""

    cut: CuttingPlane
    age: int = 0
    activity: int = 0
    times_violated: int = 0

    @property
    def score(self) -> float:
        return self.activity / (self.age + 1)


class CutPool:
    """
    Bounded store of previously generated cuts.

    Args:
        max_size: Maximum number of cuts kept; the lowest scoring
            (``activity / (age + 1)``) are evicted first
        max_age: Cuts older than this with negligible activity are evicted
        min_activity_rate: Score below which an old cut counts as inactive
    """

    def __init__(self, max_size: int = 200, max_age: int = 50, min_activity_rate: float = 0.05):
        self.max_size = max_size
        self.max_age = max_age
        self.min_activity_rate = min_activity_rate
        self._cuts: List[ManagedCut] = []

    def __len__(self) -> int:
        return len(self._cuts)

    def __iter__(self) -> Iterator[ManagedCut]:
        return iter(self._cuts)

    @property
    def cuts(self) -> List[CuttingPlane]:
        return [mc.cut for mc in self._cuts]

    def add(self, cut: CuttingPlane) -> bool:
        """Add a cut unless an equivalent one is already pooled."""
        if is_duplicate(cut, self.cuts):
            return False
        self._cuts.append(ManagedCut(cut))
        if len(self._cuts) > self.max_size:
            self.prune()
        return True

    def age_all(self) -> None:
        for mc in self._cuts:
            mc.age += 1

    def record_activity(self, x: np.ndarray, tolerance: float = DEFAULT_CUT_TOL) -> None:
        """Credit cuts that are binding or violated at x."""
        for mc in self._cuts:
            v = mc.cut.violation(x)
            if v > tolerance:
                mc.times_violated += 1
                mc.activity += 1
            elif v >= -tolerance:
                mc.activity += 1

    def violated_cuts(self, x: np.ndarray, tolerance: float = DEFAULT_CUT_TOL) -> List[CuttingPlane]:
        """Pooled cuts violated at x, most violated first."""
        scored = [(mc.cut.violation(x), mc.cut) for mc in self._cuts]
        violated = [(v, cut) for v, cut in scored if v > tolerance]
        violated.sort(key=lambda vc: -vc[0])
        return [cut for _, cut in violated]

    def prune(self) -> int:
        """Evict stale cuts, then the lowest scoring ones beyond max_size."""
        before = len(self._cuts)
        self._cuts = [
            mc
            for mc in self._cuts
            if not (mc.age > self.max_age and mc.score < self.min_activity_rate)
        ]
        if len(self._cuts) > self.max_size:
            self._cuts.sort(key=lambda mc: -mc.score)
            self._cuts = self._cuts[: self.max_size]
        removed = before - len(self._cuts)
        if removed:
            logger.debug(f"Pruned {removed} cuts from pool ({len(self._cuts)} remaining)")
        return removed

    def clear(self) -> None:
        self._cuts.clear()


@dataclass(frozen=True)
class CuttingPlaneStats:
    """Summary of cutting-plane activity during one solve."""

    total_cuts_generated: int
    gomory_cuts: int
    mir_cuts: int
    cover_cuts: int
    clique_cuts: int
    cutting_rounds: int
    max_rounds_at_node: int
    lp_resolves: int
    nodes_with_cuts: int
    cuts_from_pool: int
    root_bound_before_cuts: Optional[float]
    root_bound_after_cuts: Optional[float]
    percentage_gap_closed: float


@dataclass
class CutStatisticsTracker:
    """Mutable counters owned by a single solve."""

    counts: Dict[CutType, int] = field(default_factory=lambda: {t: 0 for t in CutType})
    cutting_rounds: int = 0
    max_rounds_at_node: int = 0
    lp_resolves: int = 0
    nodes_with_cuts: int = 0
    cuts_from_pool: int = 0
    root_bound_before_cuts: Optional[float] = None
    root_bound_after_cuts: Optional[float] = None

    @property
    def total_cuts_generated(self) -> int:
        return sum(self.counts.values())

    def record_cuts(self, cuts: Sequence[CuttingPlane]) -> None:
        for cut in cuts:
            self.counts[cut.cut_type] += 1

    def record_round(self) -> None:
        self.cutting_rounds += 1
        self.lp_resolves += 1

    def record_node(self, rounds: int) -> None:
        self.max_rounds_at_node = max(self.max_rounds_at_node, rounds)
        if rounds > 0:
            self.nodes_with_cuts += 1

    def gap_closed(self, final_value: Optional[float]) -> float:
        """Share (in percent) of the root gap closed by cuts."""
        before = self.root_bound_before_cuts
        after = self.root_bound_after_cuts
        if before is None or after is None or final_value is None:
            return 0.0
        if not all(math.isfinite(v) for v in (before, after, final_value)):
            return 0.0
        gap = final_value - before
        if abs(gap) <= 1e-12:
            return 0.0
        closed = 100.0 * (after - before) / gap
        return min(100.0, max(0.0, closed))

    def snapshot(self, final_value: Optional[float] = None) -> CuttingPlaneStats:
        return CuttingPlaneStats(
            total_cuts_generated=self.total_cuts_generated,
            gomory_cuts=self.counts[CutType.GOMORY],
            mir_cuts=self.counts[CutType.MIXED_INTEGER_ROUNDING],
            cover_cuts=self.counts[CutType.COVER],
            clique_cuts=self.counts[CutType.CLIQUE],
            cutting_rounds=self.cutting_rounds,
            max_rounds_at_node=self.max_rounds_at_node,
            lp_resolves=self.lp_resolves,
            nodes_with_cuts=self.nodes_with_cuts,
            cuts_from_pool=self.cuts_from_pool,
            root_bound_before_cuts=self.root_bound_before_cuts,
            root_bound_after_cuts=self.root_bound_after_cuts,
            percentage_gap_closed=self.gap_closed(final_value),
        )
