"""
LP relaxation backend built on scipy's HiGHS dual simplex.

Variables live in the non-negative orthant (use variable shifting for negative
lower bounds). Objective and constraint coefficients come from explicit linear
data when available and from autograd gradients otherwise, so linear models
written as plain callables are handled exactly.

After an optimal solve the backend reconstructs a simplex tableau for the
returned vertex. Any basis representing the vertex yields valid tableau
equations, so the basis is completed greedily when the vertex is degenerate.
"""

from __future__ import annotations

import logging
import time
import weakref
from typing import Callable, List, Optional, Sequence, Tuple

import autograd.numpy as np  # type: ignore
from scipy.optimize import linprog  # type: ignore

from ..constants import DEFAULT_LP_TOL, DEFAULT_NEAR_ZERO
from ..constraint import Constraint
from ..linear_function import extract_linear_coefficients
from .base import RelaxationResult, RelaxationStatus, TableauInfo

logger = logging.getLogger(__name__)


class SimplexRelaxationSolver:
    """LP relaxation solver exposing tableau data for Gomory cut generation."""

    # HiGHS rejects feasibility tolerances below this
    MIN_HIGHS_TOL = 1e-10

    def __init__(
        self,
        lp_tolerance: float = DEFAULT_LP_TOL,
        compute_tableau: bool = True,
        method: str = "highs-ds",
    ):
        self.lp_tolerance = lp_tolerance
        self.compute_tableau = compute_tableau
        self.method = method
        self._coefficient_cache: "weakref.WeakKeyDictionary[Constraint, Tuple[np.ndarray, float]]" = (
            weakref.WeakKeyDictionary()
        )
        self.solve_time = 0.0
        self.num_solves = 0

    def solve_relaxation(
        self,
        objective: Callable,
        constraints: Sequence[Constraint],
        initial_guess: np.ndarray,
        minimize: bool,
    ) -> RelaxationResult:
        x0 = np.asarray(initial_guess, dtype=float)
        n = len(x0)

        try:
            c, obj_const = extract_linear_coefficients(objective, x0)
            A_ub, b_ub, A_eq, b_eq = self._build_rows(constraints, x0, n)
        except (TypeError, ValueError, IndexError) as e:
            logger.warning(f"Could not extract linear data for LP relaxation: {e}")
            return RelaxationResult.failed(RelaxationStatus.ERROR, minimize, str(e))

        tol = max(self.lp_tolerance, self.MIN_HIGHS_TOL)
        start_time = time.time()
        try:
            res = linprog(
                c if minimize else -c,
                A_ub=A_ub if len(b_ub) else None,
                b_ub=b_ub if len(b_ub) else None,
                A_eq=A_eq if len(b_eq) else None,
                b_eq=b_eq if len(b_eq) else None,
                bounds=(0, None),
                method=self.method,
                options={
                    "primal_feasibility_tolerance": tol,
                    "dual_feasibility_tolerance": tol,
                },
            )
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.debug(f"linprog raised: {e}")
            return RelaxationResult.failed(RelaxationStatus.ERROR, minimize, str(e))
        finally:
            self.solve_time += time.time() - start_time
            self.num_solves += 1

        status = self._interpret_status(res)
        if status != RelaxationStatus.OPTIMAL:
            return RelaxationResult.failed(status, minimize, str(getattr(res, "message", "")))

        x_sol = np.maximum(np.asarray(res.x, dtype=float), 0.0)
        obj_val = float(np.dot(c, x_sol)) + obj_const

        tableau = None
        if self.compute_tableau:
            tableau = build_tableau(x_sol, A_ub, b_ub, A_eq, b_eq)

        return RelaxationResult(
            solution=x_sol,
            objective_value=obj_val,
            status=RelaxationStatus.OPTIMAL,
            tableau=tableau,
            message=str(getattr(res, "message", "")),
            iterations=getattr(res, "nit", None),
        )

    def _coefficients(self, con: Constraint, x0: np.ndarray) -> Tuple[np.ndarray, float]:
        """(a, b) such that the constraint reads a . x <= b (or == b)."""
        if con.is_linear:
            return con.coefficients, con.rhs
        cached = self._coefficient_cache.get(con)
        if cached is not None and len(cached[0]) == len(x0):
            return cached
        a, d = extract_linear_coefficients(con.fun, x0)
        rhs = -d
        if abs(rhs - round(rhs)) < 10 * self.lp_tolerance:
            rhs = float(round(rhs))
        self._coefficient_cache[con] = (a, rhs)
        return a, rhs

    def _build_rows(
        self,
        constraints: Sequence[Constraint],
        x0: np.ndarray,
        n: int,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        ub_rows: List[np.ndarray] = []
        ub_rhs: List[float] = []
        eq_rows: List[np.ndarray] = []
        eq_rhs: List[float] = []

        for con in constraints:
            a, b = self._coefficients(con, x0)
            if len(a) != n:
                raise ValueError(
                    f"Constraint has {len(a)} coefficients, expected {n}: {con!r}"
                )
            if con.is_equality:
                eq_rows.append(a)
                eq_rhs.append(b)
                continue
            # -x_i <= 0 duplicates the variable bounds
            nonzero = np.flatnonzero(np.abs(a) > self.lp_tolerance)
            if len(nonzero) == 1 and a[nonzero[0]] < 0 and abs(b) < self.lp_tolerance:
                continue
            ub_rows.append(a)
            ub_rhs.append(b)

        A_ub = np.array(ub_rows, dtype=float).reshape(len(ub_rows), n)
        A_eq = np.array(eq_rows, dtype=float).reshape(len(eq_rows), n)
        return A_ub, np.array(ub_rhs, dtype=float), A_eq, np.array(eq_rhs, dtype=float)

    @staticmethod
    def _interpret_status(res) -> RelaxationStatus:
        status_map = {
            0: RelaxationStatus.OPTIMAL,
            2: RelaxationStatus.INFEASIBLE,
            3: RelaxationStatus.UNBOUNDED,
        }
        return status_map.get(getattr(res, "status", None), RelaxationStatus.ERROR)


def build_tableau(
    x: np.ndarray,
    A_ub: np.ndarray,
    b_ub: np.ndarray,
    A_eq: np.ndarray,
    b_eq: np.ndarray,
    tol: float = 1e-9,
) -> Optional[TableauInfo]:
    """Reconstruct the simplex tableau of the vertex ``x``.

    Returns None when ``x`` is not a basic solution of the standard-form
    system (e.g. an interior point) or the system is rank deficient.
    """
    n = len(x)
    p = len(b_ub)
    q = len(b_eq)
    m = p + q
    if m == 0:
        return None

    M = np.zeros((m, n + p))
    M[:p, :n] = A_ub
    M[:p, n:] = np.eye(p)
    M[p:, :n] = A_eq
    rhs = np.concatenate([b_ub, b_eq])

    slack = np.maximum(b_ub - np.dot(A_ub, x), 0.0) if p else np.zeros(0)
    z = np.concatenate([x, slack])
    scale = max(1.0, float(np.max(np.abs(z))))

    basis: List[int] = [j for j in range(n + p) if z[j] > tol * scale]
    if len(basis) > m:
        logger.debug(f"Point has {len(basis)} positive columns for {m} rows; no tableau")
        return None
    if basis and np.linalg.matrix_rank(M[:, basis]) < len(basis):
        logger.debug("Positive columns are linearly dependent; no tableau")
        return None

    # Complete a degenerate basis, preferring slack columns
    candidates = list(range(n, n + p)) + list(range(n))
    for j in candidates:
        if len(basis) == m:
            break
        if j in basis:
            continue
        if np.linalg.matrix_rank(M[:, basis + [j]]) == len(basis) + 1:
            basis.append(j)

    if len(basis) < m:
        logger.debug("Constraint matrix is rank deficient; no tableau")
        return None

    try:
        B = M[:, basis]
        rows = np.linalg.solve(B, M)
        values = np.linalg.solve(B, rhs)
    except np.linalg.LinAlgError as e:
        logger.debug(f"Basis factorization failed: {e}")
        return None

    if np.max(np.abs(values - z[basis])) > 1e-6 * scale:
        logger.debug("Reconstructed basis does not reproduce the LP vertex")
        return None

    rows = _snap(rows)
    values = _snap(values)

    return TableauInfo(
        rows=rows,
        rhs=values,
        basis=tuple(basis),
        n_structural=n,
        slack_matrix=np.array(A_ub, dtype=float).reshape(p, n),
        slack_rhs=np.array(b_ub, dtype=float),
    )


def _snap(arr: np.ndarray, tol: float = DEFAULT_NEAR_ZERO) -> np.ndarray:
    """Snap entries within tol of an integer onto it."""
    rounded = np.round(arr)
    return np.where(np.abs(arr - rounded) < tol, rounded, arr)
