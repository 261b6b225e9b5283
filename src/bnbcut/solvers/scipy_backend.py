from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Sequence

import autograd.numpy as np  # type: ignore
from autograd import grad  # type: ignore
from scipy.optimize import minimize as scipy_minimize  # type: ignore

from ..constants import DEFAULT_NLP_FTOL
from ..constraint import Constraint
from ..linear_function import LinearFunction
from .base import RelaxationResult, RelaxationStatus

logger = logging.getLogger(__name__)


class NonlinearRelaxationSolver:
    """
    Continuous relaxation solver for nonlinear problems.

    Wraps ``scipy.optimize.minimize`` with exact autograd gradients. Bounds
    obtained this way are only guaranteed for convex relaxations, and no
    tableau data is reported, so cutting-plane rounds are skipped.
    """

    SUPPORTED_METHODS = {"SLSQP", "trust-constr", "COBYLA"}

    def __init__(
        self,
        method: str = "SLSQP",
        feasibility_tolerance: float = 1e-6,
        options: Optional[Dict[str, object]] = None,
    ):
        if method not in self.SUPPORTED_METHODS:
            raise ValueError(f"Method '{method}' is not supported for nonlinear relaxations")
        self.method = method
        self.feasibility_tolerance = feasibility_tolerance
        self.options: Dict[str, object] = {"maxiter": 500}
        if method == "SLSQP":
            self.options["ftol"] = DEFAULT_NLP_FTOL
        if options:
            self.options.update(options)
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
        sign = 1.0 if minimize else -1.0

        def obj_func(x):
            return sign * objective(x)

        if isinstance(objective, LinearFunction):
            c = sign * objective.coefficients

            def gradient(_):
                return c
        else:
            gradient = grad(obj_func)

        cons = [self._to_scipy_constraint(c) for c in constraints]

        start_time = time.time()
        try:
            result = scipy_minimize(
                obj_func,
                x0,
                jac=gradient,
                constraints=cons,
                method=self.method,
                options=self.options,
            )
        except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
            logger.debug(f"Nonlinear relaxation raised: {e}")
            return RelaxationResult.failed(RelaxationStatus.ERROR, minimize, str(e))
        finally:
            self.solve_time += time.time() - start_time
            self.num_solves += 1

        x_sol = np.asarray(result.x, dtype=float)
        status = self._interpret_status(result, x_sol, constraints)
        if status != RelaxationStatus.OPTIMAL:
            return RelaxationResult.failed(status, minimize, str(getattr(result, "message", "")))

        obj_val = float(objective(x_sol))
        if not np.isfinite(obj_val):
            return RelaxationResult.failed(RelaxationStatus.UNBOUNDED, minimize, "objective diverged")

        return RelaxationResult(
            solution=x_sol,
            objective_value=obj_val,
            status=RelaxationStatus.OPTIMAL,
            message=str(getattr(result, "message", "")),
            iterations=getattr(result, "nit", None),
        )

    @staticmethod
    def _to_scipy_constraint(con: Constraint) -> Dict[str, object]:
        # scipy expects fun(x) >= 0 for inequalities
        if con.is_linear:
            a = con.coefficients
            b = con.rhs
            if con.is_equality:
                def fun(x):
                    return np.dot(a, x) - b

                def jac(_):
                    return a
            else:
                def fun(x):
                    return b - np.dot(a, x)

                def jac(_):
                    return -a
        else:
            g = con.fun
            if con.is_equality:
                def fun(x):
                    return g(x)
            else:
                def fun(x):
                    return -g(x)

            jac = grad(fun)

        return {"type": "eq" if con.is_equality else "ineq", "fun": fun, "jac": jac}

    def _interpret_status(
        self,
        result,
        x: np.ndarray,
        constraints: Sequence[Constraint],
    ) -> RelaxationStatus:
        if not np.all(np.isfinite(x)):
            return RelaxationStatus.UNBOUNDED

        max_violation = max((c.violation(x) for c in constraints), default=0.0)
        feasible = max_violation <= self.feasibility_tolerance

        if feasible:
            # SLSQP often stops on line-search trouble at a usable feasible point
            if not bool(getattr(result, "success", False)):
                logger.debug(
                    f"Accepting feasible point from unsuccessful NLP solve: {getattr(result, 'message', '')}"
                )
            return RelaxationStatus.OPTIMAL

        logger.debug(f"NLP relaxation infeasible (max violation {max_violation:.3e})")
        return RelaxationStatus.INFEASIBLE

