"""
Integer Program Specification

Declares which coordinates of the decision vector are integer, binary or
members of special ordered sets, and answers the integrality questions the
branch-and-bound search asks about relaxation solutions.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

import autograd.numpy as np

from .constants import DEFAULT_INT_TOL
from .errors import ConfigurationError


class IntegerProgramSpecification:
    """
    Integrality requirements for a mixed-integer program.

    Args:
        integer_variables: Indices that must take integer values
        binary_variables: Indices that must take values in {0, 1}
        sos1: Groups in which at most one variable may be nonzero
        sos2: Groups in which at most two variables may be nonzero, and
            only if they are adjacent in the group's order
    """

    def __init__(
        self,
        integer_variables: Iterable[int] = (),
        binary_variables: Iterable[int] = (),
        sos1: Sequence[Sequence[int]] = (),
        sos2: Sequence[Sequence[int]] = (),
    ):
        self.integer_variables = frozenset(int(i) for i in integer_variables)
        self.binary_variables = frozenset(int(i) for i in binary_variables)
        self.sos1: Tuple[Tuple[int, ...], ...] = tuple(tuple(int(i) for i in g) for g in sos1)
        self.sos2: Tuple[Tuple[int, ...], ...] = tuple(tuple(int(i) for i in g) for g in sos2)

    @classmethod
    def all_integer(cls, dimension: int) -> "IntegerProgramSpecification":
        return cls(integer_variables=range(dimension))

    @classmethod
    def all_binary(cls, dimension: int) -> "IntegerProgramSpecification":
        return cls(binary_variables=range(dimension))

    @property
    def all_integer_variables(self) -> List[int]:
        """Sorted union of integer and binary indices (the branching order)."""
        return sorted(self.integer_variables | self.binary_variables)

    @property
    def has_sos(self) -> bool:
        return bool(self.sos1 or self.sos2)

    def validate(self, dimension: int) -> None:
        for idx in self.integer_variables | self.binary_variables:
            if not 0 <= idx < dimension:
                raise ConfigurationError(
                    f"Integer variable index {idx} out of range for dimension {dimension}"
                )
        for kind, groups in (("SOS1", self.sos1), ("SOS2", self.sos2)):
            for group in groups:
                if not group:
                    raise ConfigurationError(f"{kind} group must not be empty")
                if len(set(group)) != len(group):
                    raise ConfigurationError(f"{kind} group {list(group)} has duplicates")
                if any(not 0 <= idx < dimension for idx in group):
                    raise ConfigurationError(
                        f"{kind} group {list(group)} out of range for dimension {dimension}"
                    )

    # ------------------------------------------------------------------
    # Feasibility
    # ------------------------------------------------------------------

    def is_integer_feasible(self, x: np.ndarray, tolerance: float = DEFAULT_INT_TOL) -> bool:
        for idx in self.integer_variables:
            if abs(x[idx] - round(x[idx])) > tolerance:
                return False

        for idx in self.binary_variables:
            if abs(x[idx]) > tolerance and abs(x[idx] - 1.0) > tolerance:
                return False

        return self.violated_sos_group(x, tolerance) is None

    def violated_sos_group(
        self,
        x: np.ndarray,
        tolerance: float = DEFAULT_INT_TOL,
    ) -> Optional[Tuple[int, Tuple[int, ...]]]:
        """Return (sos_type, group) of the first violated SOS group, or None."""
        for group in self.sos1:
            if len(_nonzero_positions(x, group, tolerance)) > 1:
                return 1, group

        for group in self.sos2:
            positions = _nonzero_positions(x, group, tolerance)
            if len(positions) > 2:
                return 2, group
            if len(positions) == 2 and positions[1] - positions[0] != 1:
                return 2, group

        return None

    # ------------------------------------------------------------------
    # Rounding and fractionality
    # ------------------------------------------------------------------

    def rounded(self, x: np.ndarray) -> np.ndarray:
        x_rounded = np.array(x, dtype=float)
        for idx in self.integer_variables:
            x_rounded[idx] = float(round(x_rounded[idx]))
        for idx in self.binary_variables:
            x_rounded[idx] = min(1.0, max(0.0, float(round(x_rounded[idx]))))
        return x_rounded

    def fractional_variables(
        self,
        x: np.ndarray,
        tolerance: float = DEFAULT_INT_TOL,
    ) -> List[Tuple[int, float]]:
        """(index, value) for every integer-constrained coordinate off the lattice."""
        violations = []
        for idx in self.all_integer_variables:
            val = float(x[idx])
            if abs(val - round(val)) > tolerance:
                violations.append((idx, val))
        return violations

    def most_fractional_variable(
        self,
        x: np.ndarray,
        tolerance: float = DEFAULT_INT_TOL,
    ) -> Optional[int]:
        best_idx = None
        best_score = float("inf")
        for idx, val in self.fractional_variables(x, tolerance):
            score = fractionality_score(val)
            if score < best_score:
                best_idx = idx
                best_score = score
        return best_idx

    def __repr__(self):
        return (
            f"IntegerProgramSpecification(integer={sorted(self.integer_variables)}, "
            f"binary={sorted(self.binary_variables)}, sos1={list(self.sos1)}, "
            f"sos2={list(self.sos2)})"
        )


def fractional_part(value: float) -> float:
    """Fractional part in [0, 1), also for negative values."""
    return value - math.floor(value)


def fractionality_score(val: float) -> float:
    """Distance of the fractional part from 0.5 (lower = more fractional)."""
    return abs(0.5 - fractional_part(val))


def _nonzero_positions(x: np.ndarray, group: Sequence[int], tolerance: float) -> List[int]:
    return [pos for pos, idx in enumerate(group) if abs(x[idx]) > tolerance]
