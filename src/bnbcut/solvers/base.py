from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional, Protocol, Sequence, Tuple

import autograd.numpy as np  # type: ignore

from ..constraint import Constraint
from ..specification import IntegerProgramSpecification


ArrayLike = np.ndarray


class RelaxationStatus(StrEnum):
    OPTIMAL = "optimal"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ERROR = "error"


@dataclass(frozen=True)
class TableauInfo:
    """
    Simplex tableau at the optimal vertex of an LP relaxation.

    Columns are the structural variables ``x`` (``0..n_structural-1``) followed
    by one slack per inequality row ``s = b_ub - A_ub x``. Row ``i`` reads
    ``z[basis[i]] + sum_j rows[i, j] z[j] = rhs[i]`` where the basic column has
    coefficient 1 and the other basic columns 0.
    """

    rows: ArrayLike
    rhs: ArrayLike
    basis: Tuple[int, ...]
    n_structural: int
    slack_matrix: ArrayLike
    slack_rhs: ArrayLike

    @property
    def n_columns(self) -> int:
        return self.rows.shape[1]

    def nonbasic_row(self, i: int) -> ArrayLike:
        """Row i with the basic columns zeroed."""
        row = np.array(self.rows[i], dtype=float)
        row[list(self.basis)] = 0.0
        return row

    def to_original(self, coefficients: ArrayLike, rhs: float) -> Tuple[ArrayLike, float]:
        """Rewrite ``coefficients . z <= rhs`` over ``x`` only by substituting slacks."""
        n = self.n_structural
        a_x = np.array(coefficients[:n], dtype=float)
        a_s = np.array(coefficients[n:], dtype=float)
        if len(a_s):
            a_x = a_x - np.dot(self.slack_matrix.T, a_s)
            rhs = rhs - float(np.dot(a_s, self.slack_rhs))
        return a_x, float(rhs)

    def integer_columns(
        self,
        spec: IntegerProgramSpecification,
        tol: float = 1e-9,
    ) -> ArrayLike:
        """Columns guaranteed integral at every integer-feasible point.

        A slack is integral when its row only touches integer variables with
        integral coefficients and has an integral right-hand side.
        """
        n = self.n_structural
        mask = np.zeros(self.n_columns, dtype=bool)
        int_vars = spec.all_integer_variables
        mask[int_vars] = True
        for k in range(self.slack_matrix.shape[0]):
            a = self.slack_matrix[k]
            b = self.slack_rhs[k]
            support = np.flatnonzero(np.abs(a) > tol)
            mask[n + k] = (
                all(mask[j] for j in support)
                and bool(np.all(np.abs(a - np.round(a)) <= tol))
                and abs(b - round(b)) <= tol
            )
        return mask


@dataclass
class RelaxationResult:
    solution: Optional[ArrayLike]
    objective_value: float
    status: RelaxationStatus
    tableau: Optional[TableauInfo] = None
    message: str = ""
    iterations: Optional[int] = None

    @property
    def is_optimal(self) -> bool:
        return self.status == RelaxationStatus.OPTIMAL and self.solution is not None

    @staticmethod
    def failed(
        status: RelaxationStatus,
        minimize: bool,
        message: str = "",
    ) -> "RelaxationResult":
        """Solution-less result with the pessimistic (or unbounded) bound."""
        worst = float("inf") if minimize else float("-inf")
        value = -worst if status == RelaxationStatus.UNBOUNDED else worst
        return RelaxationResult(None, value, status, message=message)


class RelaxationSolver(Protocol):
    def solve_relaxation(
        self,
        objective: Callable[[ArrayLike], float],
        constraints: Sequence[Constraint],
        initial_guess: ArrayLike,
        minimize: bool,
    ) -> RelaxationResult:
        ...
