"""
Variable shifting for negative lower bounds.

The simplex relaxation works over the non-negative orthant. Variables with a
declared lower bound ``x_i >= b`` where ``b < 0`` are substituted by
``y_i = x_i - b`` so the shifted problem has ``y >= 0``.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Iterable, Sequence

import autograd.numpy as np

from .constraint import Constraint
from .errors import ConfigurationError
from .linear_function import LinearFunction

logger = logging.getLogger(__name__)


class VariableShift:
    def __init__(self, shifts: Sequence[float], needs_shift: bool | None = None):
        self.shifts = np.array(shifts, dtype=float)
        if needs_shift is None:
            needs_shift = bool(np.any(self.shifts != 0.0))
        self.needs_shift = needs_shift

    @classmethod
    def from_constraints(
        cls,
        constraints: Sequence[Constraint],
        dimension: int,
        integer_indices: Iterable[int] = (),
    ) -> "VariableShift":
        """Detect single-variable lower bounds ``x_i >= b`` with ``b < 0``.

        Variables without an explicit lower bound are assumed non-negative.
        Integer variables are shifted by ``ceil(b)`` so integral points map to
        integral points.
        """
        int_set = set(integer_indices)
        lower = np.zeros(dimension)
        found = [False] * dimension

        for con in constraints:
            if not con.is_linear or con.is_equality:
                continue
            idx = con.single_variable()
            if idx is None or con.coefficients[idx] >= 0:
                continue
            # c x <= rhs with c < 0  =>  x >= rhs / c
            bound = con.rhs / con.coefficients[idx]
            if not found[idx] or bound > lower[idx]:
                lower[idx] = bound
                found[idx] = True

        shifts = np.zeros(dimension)
        for idx in range(dimension):
            if found[idx] and lower[idx] < 0:
                shifts[idx] = math.ceil(lower[idx]) if idx in int_set else lower[idx]

        shift = cls(shifts)
        if shift.needs_shift:
            logger.debug(f"Variable shift detected: {shift.shifts.tolist()}")
        return shift

    def shift_point(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(x, dtype=float) - self.shifts

    def unshift_point(self, y: np.ndarray) -> np.ndarray:
        return np.asarray(y, dtype=float) + self.shifts

    def transform_objective_coefficients(self, coefficients: Sequence[float]) -> np.ndarray:
        # A linear objective only changes by a constant
        return np.array(coefficients, dtype=float)

    def transform_objective(self, objective: Callable) -> Callable:
        if isinstance(objective, LinearFunction):
            constant = objective.constant + float(np.dot(objective.coefficients, self.shifts))
            return LinearFunction(objective.coefficients, constant)

        shifts = self.shifts

        def shifted(y):
            return objective(y + shifts)

        return shifted

    def transform_constraint(self, constraint: Constraint) -> Constraint:
        """c . x <= rhs  becomes  c . y <= rhs - c . shift."""
        if not constraint.is_linear:
            raise ConfigurationError(
                f"Cannot shift nonlinear constraint {constraint!r}; "
                "disable variable shifting or reformulate it linearly"
            )
        rhs = constraint.rhs - float(np.dot(constraint.coefficients, self.shifts))
        if constraint.is_equality:
            return Constraint.linear_equality(constraint.coefficients, rhs, constraint.name)
        return Constraint.linear_inequality(constraint.coefficients, rhs, "<=", constraint.name)

    def __repr__(self):
        return f"VariableShift({self.shifts.tolist()}, needs_shift={self.needs_shift})"
