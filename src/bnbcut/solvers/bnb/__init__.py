"""
Branch-and-Bound / Branch-and-Cut MILP and MINLP Solver

This package implements the tree search for mixed-integer programs on top of
a continuous relaxation solver.

Modules:
- backend: BranchAndBoundSolver, BranchAndCutSolver, configuration and result
- node: BranchNode, NodeQueue and search statistics
- branching: Pseudo-cost tracking, variable and SOS branching
- cuts: Gomory, mixed-integer rounding and cover cut generation
- cut_pool: Cut pool management and cutting-plane statistics
- heuristics: Rounding heuristic for early incumbents
- utils: Gap computation, root constraints and solution verification
"""

from .backend import (
    BranchAndBoundConfig,
    BranchAndBoundSolver,
    BranchAndCutSolver,
    IntegerOptimizationResult,
)
from .branching import PseudoCostTracker, PseudocostData
from .cut_pool import CutPool, CutStatisticsTracker, CuttingPlaneStats, ManagedCut
from .cuts import CuttingPlane, CuttingPlaneGenerator, select_most_violated_cut
from .node import BBStats, BranchNode, NodeQueue

__all__ = [
    "BranchAndBoundConfig",
    "BranchAndBoundSolver",
    "BranchAndCutSolver",
    "IntegerOptimizationResult",
    "PseudoCostTracker",
    "PseudocostData",
    "CutPool",
    "CutStatisticsTracker",
    "CuttingPlaneStats",
    "ManagedCut",
    "CuttingPlane",
    "CuttingPlaneGenerator",
    "select_most_violated_cut",
    "BBStats",
    "BranchNode",
    "NodeQueue",
]
