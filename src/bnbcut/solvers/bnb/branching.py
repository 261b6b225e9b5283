"""
Branching Variable Selection Strategies

This module implements the strategies for selecting which variable to branch
on, the pseudo-cost history they learn from, and the constraint rows that
split a node on a variable or on a violated special ordered set.

Strategies:
- MOST_FRACTIONAL: Branch on the variable whose fractional part is closest to 0.5
- PSEUDO_COST: Use historical bound degradation per unit of fractional change
- STRONG_BRANCHING: Solve both child relaxations for a few candidates
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import autograd.numpy as np

from .node import BBStats
from ..base import RelaxationResult, RelaxationStatus
from ...constants import BranchingRule, DEFAULT_NEAR_ZERO, STRONG_BRANCH_EPS
from ...constraint import Constraint
from ...specification import (
    IntegerProgramSpecification,
    fractional_part,
    fractionality_score,
)

logger = logging.getLogger(__name__)

DOWN = "down"
UP = "up"


@dataclass
class PseudocostData:
    """Running sums of per-unit bound degradation for a variable."""

    down_sum: float = 0.0
    up_sum: float = 0.0
    down_count: int = 0
    up_count: int = 0


class PseudoCostTracker:
    """Per-variable history of how much branching degraded the bound."""

    def __init__(self):
        self._data: Dict[int, PseudocostData] = {}

    def update(
        self,
        index: int,
        direction: str,
        bound_improvement: float,
        fractional_change: float,
    ) -> None:
        """Record `bound_improvement / fractional_change` for one branch.

        Observations with non-finite improvement or a vanishing fractional
        change carry no usable information and are ignored.
        """
        if direction not in (DOWN, UP):
            raise ValueError(f"Unknown branching direction '{direction}'")
        if fractional_change <= DEFAULT_NEAR_ZERO or not math.isfinite(bound_improvement):
            return

        pc = self._data.setdefault(index, PseudocostData())
        unit_cost = max(0.0, bound_improvement) / fractional_change
        if direction == DOWN:
            pc.down_sum += unit_cost
            pc.down_count += 1
        else:
            pc.up_sum += unit_cost
            pc.up_count += 1

    def has_history(self, index: int) -> bool:
        pc = self._data.get(index)
        return pc is not None and (pc.down_count + pc.up_count) > 0

    def average(self, index: int, direction: str) -> float:
        """Average unit cost; variables unseen in `direction` use the global mean."""
        pc = self._data.get(index)
        if pc is not None:
            if direction == DOWN and pc.down_count:
                return pc.down_sum / pc.down_count
            if direction == UP and pc.up_count:
                return pc.up_sum / pc.up_count
        return self._global_average(direction)

    def _global_average(self, direction: str) -> float:
        total = 0.0
        count = 0
        for pc in self._data.values():
            if direction == DOWN:
                total += pc.down_sum
                count += pc.down_count
            else:
                total += pc.up_sum
                count += pc.up_count
        return total / count if count else 1.0

    def __len__(self) -> int:
        return len(self._data)


def select_branching_variable(
    rule: BranchingRule,
    spec: IntegerProgramSpecification,
    x: np.ndarray,
    tolerance: float,
    pseudocosts: PseudoCostTracker,
    solve_child: Optional[Callable[[Tuple[Constraint, ...]], RelaxationResult]] = None,
    constraints: Tuple[Constraint, ...] = (),
    parent_bound: float = 0.0,
    minimize: bool = True,
    strong_limit: int = 5,
    stats: Optional[BBStats] = None,
) -> Optional[Tuple[int, float]]:
    """Select the (index, value) to branch on, or None when x is integral."""
    violations = spec.fractional_variables(x, tolerance)
    if not violations:
        return None

    if rule == BranchingRule.MOST_FRACTIONAL:
        return most_fractional_branching(violations)

    elif rule == BranchingRule.PSEUDO_COST:
        return pseudocost_branching(violations, pseudocosts)

    else:  # STRONG_BRANCHING
        if solve_child is None:
            raise ValueError("Strong branching requires a child relaxation solver")
        return strong_branching(
            violations,
            solve_child,
            constraints,
            parent_bound,
            minimize,
            len(x),
            strong_limit,
            pseudocosts,
            stats,
        )


def most_fractional_branching(
    violations: List[Tuple[int, float]],
) -> Tuple[int, float]:
    """Select the most fractional variable; ties go to the lowest index."""
    best_idx, best_val = violations[0]
    best_score = fractionality_score(best_val)

    for idx, val in violations[1:]:
        score = fractionality_score(val)
        if score < best_score:
            best_idx = idx
            best_val = val
            best_score = score

    return best_idx, best_val


def pseudocost_score(
    index: int,
    value: float,
    pseudocosts: PseudoCostTracker,
) -> float:
    f = fractional_part(value)
    if not pseudocosts.has_history(index):
        return min(f, 1.0 - f)
    up_avg = pseudocosts.average(index, UP)
    down_avg = pseudocosts.average(index, DOWN)
    return min(up_avg * f, down_avg * (1.0 - f))


def pseudocost_branching(
    violations: List[Tuple[int, float]],
    pseudocosts: PseudoCostTracker,
) -> Tuple[int, float]:
    """Select variable with best pseudocost score."""
    best_idx, best_val = violations[0]
    best_score = float("-inf")

    for idx, val in violations:
        score = pseudocost_score(idx, val, pseudocosts)
        if score > best_score:
            best_idx = idx
            best_val = val
            best_score = score

    return best_idx, best_val


def bound_degradation(parent_bound: float, result: RelaxationResult, minimize: bool) -> float:
    """How much a child relaxation worsened the bound (inf when infeasible)."""
    if result.status == RelaxationStatus.UNBOUNDED:
        return 0.0
    if not result.is_optimal:
        return float("inf")
    delta = result.objective_value - parent_bound
    return max(0.0, delta if minimize else -delta)


def strong_branching(
    violations: List[Tuple[int, float]],
    solve_child: Callable[[Tuple[Constraint, ...]], RelaxationResult],
    constraints: Tuple[Constraint, ...],
    parent_bound: float,
    minimize: bool,
    dimension: int,
    strong_limit: int,
    pseudocosts: Optional[PseudoCostTracker] = None,
    stats: Optional[BBStats] = None,
) -> Tuple[int, float]:
    """
    Evaluate the most fractional candidates by solving both child relaxations.

    The score is the product of the down and up degradations (plus a small
    epsilon), which favors variables that move the bound in both children.
    """
    candidates = sorted(violations, key=lambda iv: fractionality_score(iv[1]))[:strong_limit]

    best_idx, best_val = candidates[0]
    best_score = float("-inf")

    for idx, val in candidates:
        down_rows, up_rows = branch_constraints(idx, val, dimension)

        down_res = solve_child(constraints + down_rows)
        up_res = solve_child(constraints + up_rows)
        if stats is not None:
            stats.strong_branch_calls += 2
            stats.relaxation_solves += 2

        down_deg = bound_degradation(parent_bound, down_res, minimize)
        up_deg = bound_degradation(parent_bound, up_res, minimize)

        if pseudocosts is not None:
            f = fractional_part(val)
            pseudocosts.update(idx, DOWN, down_deg, f)
            pseudocosts.update(idx, UP, up_deg, 1.0 - f)

        score = (down_deg + STRONG_BRANCH_EPS) * (up_deg + STRONG_BRANCH_EPS)
        logger.debug(
            f"Strong branching x[{idx}]={val:.4f}: down={down_deg:.4g} up={up_deg:.4g} score={score:.4g}"
        )

        if score > best_score:
            best_idx = idx
            best_val = val
            best_score = score

    return best_idx, best_val


def branch_constraints(
    index: int,
    value: float,
    dimension: int,
) -> Tuple[Tuple[Constraint, ...], Tuple[Constraint, ...]]:
    """Rows for the down child (x_i <= floor(v)) and the up child (x_i >= ceil(v))."""
    down = Constraint.upper_bound(index, math.floor(value), dimension)
    up = Constraint.lower_bound(index, math.ceil(value), dimension)
    return (down,), (up,)


def sos_branch_constraints(
    sos_type: int,
    group: Sequence[int],
    x: np.ndarray,
    tolerance: float,
    dimension: int,
) -> Tuple[Tuple[Constraint, ...], Tuple[Constraint, ...]]:
    """
    Split a violated SOS group at a pivot position between its nonzeros.

    SOS1: the left child zeros positions >= r, the right child positions < r,
    with r the middle nonzero position. SOS2: r lies strictly between the
    first and last nonzero; the left child zeros positions > r, the right
    child positions < r. Every SOS-feasible point survives in one child and
    the current point in neither. Variables are assumed non-negative.
    """
    positions = [pos for pos, idx in enumerate(group) if abs(x[idx]) > tolerance]
    if sos_type == 1:
        if len(positions) < 2:
            raise ValueError(f"SOS1 group {list(group)} is not violated")
        pivot = positions[len(positions) // 2]
        left_zero = range(pivot, len(group))
        right_zero = range(0, pivot)
    else:
        if len(positions) < 2 or positions[-1] - positions[0] < 2:
            raise ValueError(f"SOS2 group {list(group)} is not violated")
        pivot = (positions[0] + positions[-1]) // 2
        left_zero = range(pivot + 1, len(group))
        right_zero = range(0, pivot)

    left = tuple(Constraint.upper_bound(group[pos], 0.0, dimension) for pos in left_zero)
    right = tuple(Constraint.upper_bound(group[pos], 0.0, dimension) for pos in right_zero)
    return left, right
