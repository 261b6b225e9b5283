"""
Utility Functions for Branch-and-Bound

This module contains utility functions shared across the B&B implementation:
gap computation, root constraint assembly, constraint violation measures and
post-solve verification of the incumbent.
"""

from __future__ import annotations

import math
from typing import Callable, List, Sequence, Tuple

import autograd.numpy as np

from ...constraint import Constraint
from ...specification import IntegerProgramSpecification


def relative_gap(incumbent: float, best_bound: float) -> float:
    """|incumbent - bound| / max(|incumbent|, 1); inf when either is unbounded."""
    if not (math.isfinite(incumbent) and math.isfinite(best_bound)):
        return float("inf")
    return abs(incumbent - best_bound) / max(abs(incumbent), 1.0)


def constraint_scale(con: Constraint) -> float:
    if con.is_linear:
        return max(1.0, abs(con.rhs))
    return 1.0


def scaled_violation(con: Constraint, x: np.ndarray) -> float:
    return con.violation(x) / constraint_scale(con)


def max_constraint_violation(constraints: Sequence[Constraint], x: np.ndarray) -> float:
    """Largest violation, relative to ``max(1, |rhs|)`` on linear rows."""
    return max((scaled_violation(c, x) for c in constraints), default=0.0)


def root_constraints(
    constraints: Sequence[Constraint],
    spec: IntegerProgramSpecification,
    dimension: int,
) -> Tuple[Constraint, ...]:
    """User constraints plus ``x_i <= 1`` for every binary variable."""
    rows = list(constraints)
    for idx in sorted(spec.binary_variables):
        rows.append(Constraint.upper_bound(idx, 1.0, dimension))
    return tuple(rows)


def verify_solution(
    x: np.ndarray,
    objective_value: float,
    objective: Callable,
    constraints: Sequence[Constraint],
    spec: IntegerProgramSpecification,
    feasibility_tol: float,
    int_tol: float,
) -> List[str]:
    """Independent checks of a returned solution; one message per failure."""
    issues: List[str] = []

    for idx in sorted(spec.integer_variables):
        if abs(x[idx] - round(x[idx])) > int_tol:
            issues.append(f"x[{idx}] = {x[idx]:.8g} is not integral")

    for idx in sorted(spec.binary_variables):
        if abs(x[idx]) > int_tol and abs(x[idx] - 1.0) > int_tol:
            issues.append(f"x[{idx}] = {x[idx]:.8g} is not binary")

    violated = spec.violated_sos_group(x, int_tol)
    if violated is not None:
        sos_type, group = violated
        issues.append(f"SOS{sos_type} group {list(group)} is violated")

    for k, con in enumerate(constraints):
        v = con.violation(x)
        if v > feasibility_tol:
            label = con.name or f"constraint {k}"
            issues.append(f"{label} violated by {v:.3e}")

    recomputed = float(objective(x))
    if abs(recomputed - objective_value) > feasibility_tol * max(1.0, abs(recomputed)):
        issues.append(
            f"Reported objective {objective_value:.10g} differs from recomputed {recomputed:.10g}"
        )

    return issues
