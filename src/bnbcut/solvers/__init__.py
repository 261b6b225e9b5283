from __future__ import annotations

from typing import Dict

from .base import (
    RelaxationResult,
    RelaxationSolver,
    RelaxationStatus,
    TableauInfo,
)
from .simplex_backend import SimplexRelaxationSolver
from .scipy_backend import NonlinearRelaxationSolver


_RELAXATION_SOLVERS: Dict[str, RelaxationSolver] = {
    "simplex": SimplexRelaxationSolver(),
    "nlp": NonlinearRelaxationSolver(),
}


def register_relaxation_solver(name: str, solver: RelaxationSolver) -> None:
    _RELAXATION_SOLVERS[name] = solver


def get_relaxation_solver(name: str) -> RelaxationSolver:
    if name not in _RELAXATION_SOLVERS:
        raise ValueError(f"No relaxation solver registered under '{name}'")
    return _RELAXATION_SOLVERS[name]


__all__ = [
    "NonlinearRelaxationSolver",
    "RelaxationResult",
    "RelaxationSolver",
    "RelaxationStatus",
    "SimplexRelaxationSolver",
    "TableauInfo",
    "get_relaxation_solver",
    "register_relaxation_solver",
]
