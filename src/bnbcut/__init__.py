__all__ = [
    "BranchAndBoundSolver",
    "BranchAndCutSolver",
    "BranchAndBoundConfig",
    "IntegerOptimizationResult",
    "IntegerProgramSpecification",
    "Constraint",
    "LinearFunction",
    "VariableShift",
    "CuttingPlane",
    "CuttingPlaneGenerator",
    "CutPool",
    "CutStatisticsTracker",
    "CuttingPlaneStats",
    "PseudoCostTracker",
    "BranchNode",
    "NodeQueue",
    "RelaxationResult",
    "RelaxationSolver",
    "RelaxationStatus",
    "SimplexRelaxationSolver",
    "NonlinearRelaxationSolver",
    "get_relaxation_solver",
    "register_relaxation_solver",
    "NodeSelection",
    "BranchingRule",
    "CutType",
    "IntegerSolutionStatus",
    "ConfigurationError",
    "SolutionVerificationError",
    "SolutionVerificationWarning",
    "extract_linear_coefficients",
    "is_linear",
    "DEPTH_FIRST",
    "BREADTH_FIRST",
    "BEST_BOUND",
    "BEST_ESTIMATE",
    "MOST_FRACTIONAL",
    "PSEUDO_COST",
    "STRONG_BRANCHING",
]

from .constants import BranchingRule, CutType, IntegerSolutionStatus, NodeSelection
from .constraint import Constraint
from .errors import (
    ConfigurationError,
    SolutionVerificationError,
    SolutionVerificationWarning,
)
from .linear_function import LinearFunction, extract_linear_coefficients, is_linear
from .specification import IntegerProgramSpecification
from .variable_shift import VariableShift
from .solvers import (
    NonlinearRelaxationSolver,
    RelaxationResult,
    RelaxationSolver,
    RelaxationStatus,
    SimplexRelaxationSolver,
    get_relaxation_solver,
    register_relaxation_solver,
)
from .solvers.bnb import (
    BranchAndBoundConfig,
    BranchAndBoundSolver,
    BranchAndCutSolver,
    BranchNode,
    CutPool,
    CutStatisticsTracker,
    CuttingPlane,
    CuttingPlaneGenerator,
    CuttingPlaneStats,
    IntegerOptimizationResult,
    NodeQueue,
    PseudoCostTracker,
)

DEPTH_FIRST = NodeSelection.DEPTH_FIRST
BREADTH_FIRST = NodeSelection.BREADTH_FIRST
BEST_BOUND = NodeSelection.BEST_BOUND
BEST_ESTIMATE = NodeSelection.BEST_ESTIMATE

MOST_FRACTIONAL = BranchingRule.MOST_FRACTIONAL
PSEUDO_COST = BranchingRule.PSEUDO_COST
STRONG_BRANCHING = BranchingRule.STRONG_BRANCHING
