"""
Explicit linear functions and exact coefficient extraction.

Relaxation backends that need coefficients (the simplex adapter, variable
shifting, cover-cut detection) read them from `LinearFunction` or
`Constraint.coefficients` when available and otherwise differentiate the
callable with autograd, which is exact for affine functions.
"""

from __future__ import annotations

from typing import Callable, Sequence, Tuple

import autograd.numpy as np
from autograd import grad

from .constants import DEFAULT_NEAR_ZERO


class LinearFunction:
    """f(x) = c . x + constant, with exact coefficients."""

    def __init__(self, coefficients: Sequence[float], constant: float = 0.0):
        self.coefficients = np.array(coefficients, dtype=float)
        self.constant = float(constant)
        if self.coefficients.ndim != 1:
            raise ValueError("LinearFunction coefficients must be one-dimensional")

    @property
    def dimension(self) -> int:
        return len(self.coefficients)

    def __call__(self, x):
        return np.dot(self.coefficients, x) + self.constant

    def __repr__(self):
        return f"LinearFunction({self.coefficients.tolist()}, constant={self.constant})"


def _as_float(value) -> float:
    return float(value.item()) if hasattr(value, "item") else float(value)


def extract_linear_coefficients(
    fun: Callable,
    point: np.ndarray,
) -> Tuple[np.ndarray, float]:
    """Return (coefficients, constant) of an affine function around `point`.

    Coefficients are the autograd gradient at `point`; near-integer values are
    snapped to remove floating-point noise.
    """
    if isinstance(fun, LinearFunction):
        return fun.coefficients.copy(), fun.constant

    x = np.asarray(point, dtype=float)
    coeffs = np.array(grad(lambda v: fun(v))(x), dtype=float)
    snapped = np.round(coeffs)
    coeffs = np.where(np.abs(coeffs - snapped) < 10 * DEFAULT_NEAR_ZERO, snapped, coeffs)
    constant = _as_float(fun(x)) - float(np.dot(coeffs, x))
    if abs(constant - round(constant)) < 10 * DEFAULT_NEAR_ZERO:
        constant = float(round(constant))
    return coeffs, constant


def is_linear(
    fun: Callable,
    point: np.ndarray,
    tol: float = 1e-7,
) -> bool:
    """Check linearity by comparing gradients at `point` and a displaced point."""
    if isinstance(fun, LinearFunction):
        return True

    x = np.asarray(point, dtype=float)
    displaced = x + np.linspace(1.0, 2.0, len(x)) + 0.37
    gradient = grad(lambda v: fun(v))
    g0 = np.array(gradient(x), dtype=float)
    g1 = np.array(gradient(displaced), dtype=float)
    scale = max(1.0, float(np.max(np.abs(g0))) if len(g0) else 1.0)
    return bool(np.all(np.abs(g0 - g1) <= tol * scale))
