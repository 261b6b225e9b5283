"""
Cutting Plane Generation

This module derives valid inequalities that separate a fractional relaxation
point from the integer hull:

- Gomory fractional cuts from tableau rows whose nonbasic columns are all integer
- Gomory mixed-integer (MIR) cuts from rows mixing integer and continuous columns
- Cover cuts from knapsack rows over binary variables

All cuts are stored in ``coefficients . x <= rhs`` form over the original
variables, so they can be appended to a node's constraints like any other
linear row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import autograd.numpy as np

from ..base import TableauInfo
from ...constants import CutType, DEFAULT_CUT_TOL, DEFAULT_INT_TOL, DEFAULT_NEAR_ZERO
from ...constraint import Constraint
from ...specification import IntegerProgramSpecification, fractional_part

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class CuttingPlane:
    """A linear inequality ``coefficients . x <= rhs``."""

    coefficients: np.ndarray
    rhs: float
    cut_type: CutType
    source_index: Optional[int] = None

    def violation(self, x: np.ndarray) -> float:
        return float(np.dot(self.coefficients, x)) - self.rhs

    def is_violated(self, x: np.ndarray, tolerance: float = DEFAULT_CUT_TOL) -> bool:
        return self.violation(x) > tolerance

    def to_constraint(self) -> Constraint:
        return Constraint.linear_inequality(
            self.coefficients, self.rhs, "<=", name=f"{self.cut_type.value}_cut"
        )


class CuttingPlaneGenerator:
    """
    Generates Gomory, mixed-integer rounding and cover cuts.

    Args:
        fractional_tolerance: Right-hand sides (or covers) closer than this to
            integrality produce no cut
        weak_cut_tolerance: Cuts whose coefficients or right-hand side are all
            below this in magnitude are discarded as numerically useless
    """

    def __init__(
        self,
        fractional_tolerance: float = DEFAULT_INT_TOL,
        weak_cut_tolerance: float = 1e-6,
    ):
        self.fractional_tolerance = fractional_tolerance
        self.weak_cut_tolerance = weak_cut_tolerance

    def _fractional_rhs(self, rhs: float) -> Optional[float]:
        f0 = fractional_part(rhs)
        if f0 < self.fractional_tolerance or f0 > 1.0 - self.fractional_tolerance:
            return None
        return f0

    def _is_weak(self, coefficients: np.ndarray, rhs: float) -> bool:
        all_small = bool(np.all(np.abs(coefficients) < self.weak_cut_tolerance))
        return all_small or abs(rhs) < self.weak_cut_tolerance

    # ------------------------------------------------------------------
    # Tableau cuts
    # ------------------------------------------------------------------

    def generate_gomory_cut(
        self,
        row: Sequence[float],
        rhs: float,
        basic_index: Optional[int] = None,
    ) -> Optional[CuttingPlane]:
        """Gomory fractional cut ``sum frac(a_j) z_j >= frac(rhs)``.

        `row` holds the nonbasic coefficients of a tableau row whose basic
        variable takes the fractional value `rhs`. Returned in ``<=`` form.
        """
        f0 = self._fractional_rhs(rhs)
        if f0 is None:
            return None

        a = np.asarray(row, dtype=float)
        fracs = a - np.floor(a)
        fracs = np.where(fracs > 1.0 - DEFAULT_NEAR_ZERO, 0.0, fracs)
        coefficients = -fracs
        cut_rhs = -f0

        if self._is_weak(coefficients, cut_rhs):
            return None
        return CuttingPlane(coefficients, cut_rhs, CutType.GOMORY, basic_index)

    def generate_mixed_integer_rounding_cut(
        self,
        row: Sequence[float],
        rhs: float,
        integer_columns: Sequence[bool],
        basic_index: Optional[int] = None,
    ) -> Optional[CuttingPlane]:
        """Gomory mixed-integer cut for a row with continuous nonbasic columns.

        Integer columns contribute ``f_j / f0`` when ``f_j <= f0`` and
        ``(1 - f_j) / (1 - f0)`` otherwise; continuous columns contribute
        ``a_j / f0`` when positive and ``-a_j / (1 - f0)`` when negative.
        The resulting ``>= 1`` inequality is returned in ``<=`` form.
        """
        f0 = self._fractional_rhs(rhs)
        if f0 is None:
            return None

        a = np.asarray(row, dtype=float)
        coefficients = np.zeros(len(a))
        for j, a_j in enumerate(a):
            if abs(a_j) <= DEFAULT_NEAR_ZERO:
                continue
            if integer_columns[j]:
                f_j = fractional_part(a_j)
                if f_j > 1.0 - DEFAULT_NEAR_ZERO:
                    f_j = 0.0
                if f_j <= f0:
                    coefficients[j] = f_j / f0
                else:
                    coefficients[j] = (1.0 - f_j) / (1.0 - f0)
            elif a_j > 0:
                coefficients[j] = a_j / f0
            else:
                coefficients[j] = -a_j / (1.0 - f0)

        if self._is_weak(coefficients, 1.0):
            return None
        return CuttingPlane(-coefficients, -1.0, CutType.MIXED_INTEGER_ROUNDING, basic_index)

    def generate_cuts_from_tableau(
        self,
        tableau: TableauInfo,
        solution: np.ndarray,
        integer_columns: Sequence[bool],
        use_mir: bool = True,
    ) -> List[CuttingPlane]:
        """Derive cuts from every fractional integer row, in original coordinates.

        Rows whose nonzero nonbasic columns are all integer give pure Gomory
        cuts; the others give MIR cuts when `use_mir` is set. Only cuts that
        the current solution violates are returned.
        """
        integer_columns = np.asarray(integer_columns, dtype=bool)
        cuts: List[CuttingPlane] = []

        for i, basic in enumerate(tableau.basis):
            if not integer_columns[basic]:
                continue
            if self._fractional_rhs(tableau.rhs[i]) is None:
                continue

            row = tableau.nonbasic_row(i)
            support = np.abs(row) > DEFAULT_NEAR_ZERO
            if np.all(integer_columns[support]):
                cut = self.generate_gomory_cut(row, tableau.rhs[i], basic)
            elif use_mir:
                cut = self.generate_mixed_integer_rounding_cut(
                    row, tableau.rhs[i], integer_columns, basic
                )
            else:
                continue
            if cut is None:
                continue

            a_x, b = tableau.to_original(cut.coefficients, cut.rhs)
            a_x = np.where(np.abs(a_x) < DEFAULT_NEAR_ZERO, 0.0, a_x)
            mapped = CuttingPlane(a_x, b, cut.cut_type, basic)
            if mapped.violation(solution) > self.fractional_tolerance:
                cuts.append(mapped)
            else:
                logger.debug(f"Dropping non-violated {cut.cut_type.value} cut from row {i}")

        return cuts

    # ------------------------------------------------------------------
    # Cover cuts
    # ------------------------------------------------------------------

    def generate_cover_cut(
        self,
        weights: Sequence[float],
        capacity: float,
        solution: Sequence[float],
    ) -> Optional[CuttingPlane]:
        """Cover cut ``sum_{i in C} x_i <= |C| - 1`` for ``weights . x <= capacity``.

        Items enter the cover greedily by descending solution value; the cover
        is then minimized by dropping the lowest-valued items it can spare.
        Returns None when no cover exists or the cut is not violated.
        """
        w = np.asarray(weights, dtype=float)
        x = np.asarray(solution, dtype=float)
        if len(w) != len(x):
            raise ValueError(
                f"Dimension mismatch: {len(w)} weights for a solution of length {len(x)}"
            )

        order = sorted(
            (i for i in range(len(w)) if w[i] > 0),
            key=lambda i: (-x[i], i),
        )
        cover: List[int] = []
        cover_weight = 0.0
        for i in order:
            cover.append(i)
            cover_weight += w[i]
            if cover_weight > capacity:
                break

        if cover_weight <= capacity:
            return None

        for i in sorted(cover, key=lambda i: (x[i], i)):
            if cover_weight - w[i] > capacity:
                cover.remove(i)
                cover_weight -= w[i]

        coefficients = np.zeros(len(w))
        coefficients[cover] = 1.0
        cut = CuttingPlane(coefficients, float(len(cover) - 1), CutType.COVER)
        if cut.violation(x) <= self.fractional_tolerance:
            return None
        return cut

    def generate_cover_cuts(
        self,
        constraints: Iterable[Constraint],
        solution: np.ndarray,
        spec: IntegerProgramSpecification,
    ) -> List[CuttingPlane]:
        """Cover cuts for every knapsack row (positive weights over binaries)."""
        binaries = spec.binary_variables
        cuts: List[CuttingPlane] = []
        for con in constraints:
            if not con.is_linear or con.is_equality or con.rhs <= 0:
                continue
            support = np.flatnonzero(np.abs(con.coefficients) > DEFAULT_NEAR_ZERO)
            if len(support) < 2:
                continue
            if any(int(j) not in binaries for j in support):
                continue
            if np.any(con.coefficients[support] < 0):
                continue
            cut = self.generate_cover_cut(con.coefficients, con.rhs, solution)
            if cut is not None:
                cuts.append(cut)
        return cuts


def select_most_violated_cut(
    cuts: Sequence[CuttingPlane],
    x: np.ndarray,
) -> Optional[CuttingPlane]:
    """The cut with the largest positive violation at x, or None."""
    best = None
    best_violation = 0.0
    for cut in cuts:
        v = cut.violation(x)
        if v > best_violation:
            best = cut
            best_violation = v
    return best


def normalize(cut: CuttingPlane) -> CuttingPlane:
    """Scale a cut so its largest coefficient has magnitude 1."""
    scale = float(np.max(np.abs(cut.coefficients))) if len(cut.coefficients) else 0.0
    if scale <= DEFAULT_NEAR_ZERO:
        return cut
    return CuttingPlane(cut.coefficients / scale, cut.rhs / scale, cut.cut_type, cut.source_index)


def filter_small_coefficients(
    cut: CuttingPlane,
    threshold: float,
) -> Optional[CuttingPlane]:
    """Drop tiny positive coefficients; None when every coefficient is tiny.

    Over non-negative variables removing a positive term from the left-hand
    side only weakens a ``<=`` cut.
    """
    a = cut.coefficients
    tiny = np.abs(a) < threshold
    if np.all(tiny):
        return None
    drop = tiny & (a > 0)
    if not np.any(drop):
        return cut
    return CuttingPlane(np.where(drop, 0.0, a), cut.rhs, cut.cut_type, cut.source_index)


def is_duplicate(
    cut: CuttingPlane,
    others: Iterable[CuttingPlane],
    tolerance: float = 1e-9,
) -> bool:
    """Whether a scalar multiple of `cut` is already among `others`."""
    mine = normalize(cut)
    for other in others:
        theirs = normalize(other)
        if len(theirs.coefficients) != len(mine.coefficients):
            continue
        if abs(theirs.rhs - mine.rhs) <= tolerance * max(1.0, abs(mine.rhs)) and np.allclose(
            theirs.coefficients, mine.coefficients, atol=tolerance, rtol=0.0
        ):
            return True
    return False
