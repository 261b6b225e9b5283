"""
Primal Heuristics for Finding Feasible Solutions

Simple rounding: snap the integer coordinates of a relaxation solution and
keep the point if it satisfies the original constraints. Cheap enough to run
at every branched node.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence, Tuple

import autograd.numpy as np

from .utils import max_constraint_violation
from ...constants import DEFAULT_INT_TOL, DEFAULT_LP_TOL
from ...constraint import Constraint
from ...specification import IntegerProgramSpecification

logger = logging.getLogger(__name__)


def rounding_heuristic(
    x: np.ndarray,
    spec: IntegerProgramSpecification,
    objective: Callable,
    constraints: Sequence[Constraint],
    feasibility_tol: float = DEFAULT_LP_TOL,
    int_tol: float = DEFAULT_INT_TOL,
) -> Optional[Tuple[np.ndarray, float]]:
    """Round integer variables and accept the point if it is feasible.

    Returns (x_rounded, objective_value) or None.
    """
    x_rounded = spec.rounded(x)

    if not spec.is_integer_feasible(x_rounded, int_tol):
        return None

    violation = max_constraint_violation(constraints, x_rounded)
    if violation > feasibility_tol:
        logger.debug(f"Rounded point violates constraints by {violation:.3e}")
        return None

    obj_val = float(objective(x_rounded))
    if not np.isfinite(obj_val):
        return None

    return x_rounded, obj_val
