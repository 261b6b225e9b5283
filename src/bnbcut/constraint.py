from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import autograd.numpy as np


class Constraint:
    """
    A constraint in canonical form ``g(x) <= 0`` or ``g(x) == 0``.

    Linear constraints also carry their data explicitly as
    ``coefficients . x <= rhs`` (or ``== rhs``), so relaxation backends never
    have to differentiate them. Nonlinear constraints carry only ``fun``.
    """

    def __init__(
        self,
        fun: Callable,
        is_equality: bool = False,
        coefficients: Optional[Sequence[float]] = None,
        rhs: Optional[float] = None,
        name: Optional[str] = None,
    ):
        self.fun = fun
        self.is_equality = is_equality
        self.coefficients = None if coefficients is None else np.array(coefficients, dtype=float)
        self.rhs = None if rhs is None else float(rhs)
        self.name = name
        if (self.coefficients is None) != (self.rhs is None):
            raise ValueError("Linear constraints need both coefficients and rhs")

    @property
    def is_linear(self) -> bool:
        return self.coefficients is not None

    def __call__(self, x):
        return self.fun(x)

    def evaluate(self, x) -> float:
        value = self.fun(x)
        return float(value.item()) if hasattr(value, "item") else float(value)

    def violation(self, x) -> float:
        """Amount by which x violates the constraint (0 when satisfied)."""
        value = self.evaluate(x)
        return abs(value) if self.is_equality else max(0.0, value)

    def single_variable(self, tol: float = 0.0) -> Optional[int]:
        """Index of the only nonzero coefficient of a linear constraint, if any."""
        if not self.is_linear:
            return None
        nonzero = np.flatnonzero(np.abs(self.coefficients) > tol)
        return int(nonzero[0]) if len(nonzero) == 1 else None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def linear_inequality(
        cls,
        coefficients: Sequence[float],
        rhs: float,
        sense: str = "<=",
        name: Optional[str] = None,
    ) -> "Constraint":
        if sense not in ("<=", ">="):
            raise ValueError(f"Unknown inequality sense '{sense}'")
        a = np.array(coefficients, dtype=float)
        b = float(rhs)
        if sense == ">=":
            a, b = -a, -b
        return cls(_affine(a, b), False, a, b, name)

    @classmethod
    def linear_equality(
        cls,
        coefficients: Sequence[float],
        rhs: float,
        name: Optional[str] = None,
    ) -> "Constraint":
        a = np.array(coefficients, dtype=float)
        return cls(_affine(a, float(rhs)), True, a, float(rhs), name)

    @classmethod
    def inequality(cls, fun: Callable, name: Optional[str] = None) -> "Constraint":
        return cls(fun, False, name=name)

    @classmethod
    def equality(cls, fun: Callable, name: Optional[str] = None) -> "Constraint":
        return cls(fun, True, name=name)

    @classmethod
    def upper_bound(cls, index: int, value: float, dimension: int) -> "Constraint":
        """x[index] <= value"""
        a = np.zeros(dimension)
        a[index] = 1.0
        return cls.linear_inequality(a, value, "<=")

    @classmethod
    def lower_bound(cls, index: int, value: float, dimension: int) -> "Constraint":
        """x[index] >= value"""
        a = np.zeros(dimension)
        a[index] = 1.0
        return cls.linear_inequality(a, value, ">=")

    @classmethod
    def non_negativity(cls, dimension: int) -> List["Constraint"]:
        return [cls.lower_bound(i, 0.0, dimension) for i in range(dimension)]

    def __repr__(self):
        op = "==" if self.is_equality else "<="
        if self.is_linear:
            return f"Constraint({self.coefficients.tolist()} . x {op} {self.rhs})"
        label = self.name or getattr(self.fun, "__name__", "g")
        return f"Constraint({label}(x) {op} 0)"


def _affine(a: np.ndarray, b: float) -> Callable:
    def g(x):
        return np.dot(a, x) - b

    return g
