"""
Branch-and-Bound / Branch-and-Cut Solver

Main solver classes for mixed-integer (non)linear programs. The search keeps
a priority queue of open nodes, each carrying its own constraint tuple and
solved relaxation. Nodes are fathomed by infeasibility or bound, accepted as
incumbents when integral, or strengthened with cutting planes and branched.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import math
import time
import warnings
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Sequence, Tuple

import autograd.numpy as np

from .branching import (
    DOWN,
    UP,
    PseudoCostTracker,
    branch_constraints,
    select_branching_variable,
    sos_branch_constraints,
)
from .cut_pool import CutPool, CutStatisticsTracker, CuttingPlaneStats
from .cuts import (
    CuttingPlane,
    CuttingPlaneGenerator,
    filter_small_coefficients,
    is_duplicate,
    normalize,
)
from .heuristics import rounding_heuristic
from .node import BBStats, BranchNode, NodeQueue, can_improve, is_better_bound
from .utils import relative_gap, root_constraints, verify_solution
from ..base import RelaxationResult, RelaxationSolver, RelaxationStatus
from ..simplex_backend import SimplexRelaxationSolver
from ...constants import (
    DEFAULT_CUT_TOL,
    DEFAULT_INT_TOL,
    DEFAULT_LP_TOL,
    BranchingRule,
    IntegerSolutionStatus,
    NodeSelection,
)
from ...constraint import Constraint
from ...errors import (
    ConfigurationError,
    SolutionVerificationError,
    SolutionVerificationWarning,
)
from ...linear_function import LinearFunction, is_linear
from ...specification import IntegerProgramSpecification, fractional_part
from ...variable_shift import VariableShift

logger = logging.getLogger(__name__)


@dataclass
class BranchAndBoundConfig:
    """
    Options of the branch-and-bound / branch-and-cut search.

    Enumerated options accept enum members or their string values. The
    tolerance hierarchy ``lp_tolerance <= integrality_tolerance <=
    cut_tolerance`` is enforced on construction.
    """

    max_nodes: int = 10000
    time_limit: float = 300.0  # seconds, 0 = unlimited
    relative_gap_tolerance: float = 1e-4
    node_selection: NodeSelection | str = NodeSelection.BEST_BOUND
    branching_rule: BranchingRule | str = BranchingRule.MOST_FRACTIONAL
    lp_tolerance: float = DEFAULT_LP_TOL
    integrality_tolerance: float = DEFAULT_INT_TOL
    cut_tolerance: float = DEFAULT_CUT_TOL

    # Cutting planes
    enable_cutting_planes: bool = False
    max_cutting_rounds: int = 5
    max_cuts_per_round: int = 10
    cut_at_all_nodes: bool = True
    enable_mir_cuts: bool = True
    enable_cover_cuts: bool = True
    normalize_cuts: bool = False
    cut_coefficient_threshold: float = 1e-9
    max_cut_pool_size: int = 200
    max_cut_age: int = 50
    detect_stagnation: bool = True
    stagnation_tolerance: float = 1e-8
    detect_cycling: bool = True
    cycling_window_size: int = 3

    strong_branching_candidates: int = 5
    enable_variable_shifting: bool = False
    validate_linearity: bool = False
    use_rounding_heuristic: bool = True
    raise_on_verification_failure: bool = False
    verbose: bool = False
    relaxation_solver: str | RelaxationSolver = "simplex"

    def __post_init__(self):
        try:
            self.node_selection = NodeSelection(self.node_selection)
        except ValueError:
            raise ConfigurationError(f"Unknown node selection strategy '{self.node_selection}'")
        try:
            self.branching_rule = BranchingRule(self.branching_rule)
        except ValueError:
            raise ConfigurationError(f"Unknown branching rule '{self.branching_rule}'")

        if self.max_nodes < 1:
            raise ConfigurationError("max_nodes must be at least 1")
        if self.time_limit < 0:
            raise ConfigurationError("time_limit must be non-negative (0 disables it)")
        if self.relative_gap_tolerance < 0:
            raise ConfigurationError("relative_gap_tolerance must be non-negative")
        for name in ("lp_tolerance", "integrality_tolerance", "cut_tolerance"):
            if not getattr(self, name) > 0:
                raise ConfigurationError(f"{name} must be positive")
        if not (self.lp_tolerance <= self.integrality_tolerance <= self.cut_tolerance):
            raise ConfigurationError(
                "Tolerances must satisfy lp_tolerance <= integrality_tolerance <= cut_tolerance "
                f"(got {self.lp_tolerance}, {self.integrality_tolerance}, {self.cut_tolerance})"
            )
        if self.max_cutting_rounds < 0:
            raise ConfigurationError("max_cutting_rounds must be non-negative")
        if self.max_cuts_per_round < 1:
            raise ConfigurationError("max_cuts_per_round must be at least 1")
        if self.max_cut_pool_size < 1:
            raise ConfigurationError("max_cut_pool_size must be at least 1")
        if self.max_cut_age < 0:
            raise ConfigurationError("max_cut_age must be non-negative")
        if self.cut_coefficient_threshold < 0:
            raise ConfigurationError("cut_coefficient_threshold must be non-negative")
        if self.cycling_window_size < 1:
            raise ConfigurationError("cycling_window_size must be at least 1")
        if self.strong_branching_candidates < 1:
            raise ConfigurationError("strong_branching_candidates must be at least 1")
        if isinstance(self.relaxation_solver, str):
            from .. import get_relaxation_solver

            try:
                get_relaxation_solver(self.relaxation_solver)
            except ValueError as e:
                raise ConfigurationError(str(e))
        elif not hasattr(self.relaxation_solver, "solve_relaxation"):
            raise ConfigurationError("relaxation_solver must implement solve_relaxation()")


@dataclass(frozen=True, eq=False)
class IntegerOptimizationResult:
    """Outcome of an integer optimization run."""

    solution: np.ndarray
    objective_value: float
    best_bound: float
    relative_gap: float
    nodes_explored: int
    status: IntegerSolutionStatus
    solve_time: float
    cutting_plane_stats: Optional[CuttingPlaneStats] = None
    integer_spec: Optional[IntegerProgramSpecification] = None
    verification_issues: Tuple[str, ...] = ()
    stats: Optional[BBStats] = None

    @property
    def integer_solution(self) -> np.ndarray:
        """The solution with integer and binary coordinates rounded."""
        if self.integer_spec is None:
            return np.rint(self.solution)
        return self.integer_spec.rounded(self.solution)

    @property
    def is_verified(self) -> bool:
        return not self.verification_issues

    @property
    def has_solution(self) -> bool:
        return math.isfinite(self.objective_value)


@dataclass
class _SearchContext:
    """State owned by one solve."""

    objective: Callable
    constraints: Tuple[Constraint, ...]
    spec: IntegerProgramSpecification
    minimize: bool
    dimension: int
    start_time: float
    stats: BBStats = field(default_factory=BBStats)
    pseudocosts: PseudoCostTracker = field(default_factory=PseudoCostTracker)
    cut_stats: CutStatisticsTracker = field(default_factory=CutStatisticsTracker)
    pool: Optional[CutPool] = None
    node_ids: "itertools.count[int]" = field(default_factory=itertools.count)
    incumbent_x: Optional[np.ndarray] = None
    incumbent_obj: float = float("inf")
    # Best parent bound of subtrees dropped without an infeasibility proof
    lost_bound: Optional[float] = None

    @property
    def has_incumbent(self) -> bool:
        return self.incumbent_x is not None

    def record_lost_subtree(self, bound: float) -> None:
        self.stats.subtrees_lost += 1
        if self.lost_bound is None or is_better_bound(bound, self.lost_bound, self.minimize):
            self.lost_bound = bound

    def elapsed(self) -> float:
        return time.time() - self.start_time


class BranchAndBoundSolver:
    """
    Branch-and-bound solver for mixed-integer programs.

    Each node solves a continuous relaxation through a `RelaxationSolver`.
    With ``enable_cutting_planes=True`` nodes are strengthened with Gomory,
    MIR and cover cuts before branching (branch-and-cut).

    Example:
        solver = BranchAndBoundSolver(max_nodes=500, node_selection="depth_first")
        result = solver.solve(
            LinearFunction([-5, -4]),
            np.zeros(2),
            [Constraint.linear_inequality([6, 4], 24)],
            IntegerProgramSpecification.all_integer(2),
        )
    """

    def __init__(self, config: Optional[BranchAndBoundConfig] = None, **options):
        if config is None:
            config = BranchAndBoundConfig(**options)
        elif options:
            config = dataclasses.replace(config, **options)
        self.config = config
        self.relaxation_solver = self._resolve_relaxation_solver(config.relaxation_solver)
        self.cut_generator = CuttingPlaneGenerator(
            fractional_tolerance=config.integrality_tolerance,
        )

    @staticmethod
    def _resolve_relaxation_solver(solver: str | RelaxationSolver) -> RelaxationSolver:
        if isinstance(solver, str):
            from .. import get_relaxation_solver

            return get_relaxation_solver(solver)
        return solver

    @property
    def uses_simplex(self) -> bool:
        return isinstance(self.relaxation_solver, SimplexRelaxationSolver)

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    def solve(
        self,
        objective: Callable | LinearFunction,
        initial_guess: Sequence[float],
        constraints: Sequence[Constraint],
        integer_spec: IntegerProgramSpecification,
        minimize: bool = True,
    ) -> IntegerOptimizationResult:
        """
        Solve a mixed-integer program.

        Args:
            objective: Callable f(x) or a LinearFunction with exact coefficients
            initial_guess: Starting point; its length fixes the dimension
            constraints: Constraints in canonical form
            integer_spec: Integrality requirements
            minimize: Minimize (True) or maximize (False) the objective

        Returns:
            IntegerOptimizationResult with the best solution found
        """
        config = self.config
        start_time = time.time()

        x0 = np.array(initial_guess, dtype=float).ravel()
        n = len(x0)
        constraints = tuple(constraints)
        self._validate_problem(objective, x0, constraints, integer_spec)

        # Shift negative lower bounds into the non-negative orthant
        shift = None
        work_objective = objective
        work_constraints = constraints
        work_x0 = x0
        if config.enable_variable_shifting:
            shift = VariableShift.from_constraints(
                constraints, n, integer_spec.all_integer_variables
            )
            if shift.needs_shift:
                work_objective = shift.transform_objective(objective)
                work_constraints = tuple(shift.transform_constraint(c) for c in constraints)
                work_x0 = shift.shift_point(x0)
            else:
                shift = None

        ctx = _SearchContext(
            objective=work_objective,
            constraints=root_constraints(work_constraints, integer_spec, n),
            spec=integer_spec,
            minimize=minimize,
            dimension=n,
            start_time=start_time,
            incumbent_obj=float("inf") if minimize else float("-inf"),
        )
        if config.enable_cutting_planes:
            ctx.pool = CutPool(config.max_cut_pool_size, config.max_cut_age)

        status, best_bound = self._search(ctx, work_x0)

        # Report in the original variable space
        if ctx.has_incumbent:
            x_sol = ctx.incumbent_x
            if shift is not None:
                x_sol = shift.unshift_point(x_sol)
            obj_val = float(objective(x_sol))
            gap = relative_gap(obj_val, best_bound)
        else:
            x_sol = x0
            obj_val = ctx.incumbent_obj
            gap = float("inf")

        issues: Tuple[str, ...] = ()
        if ctx.has_incumbent:
            issues = tuple(
                verify_solution(
                    x_sol,
                    obj_val,
                    objective,
                    root_constraints(constraints, integer_spec, n),
                    integer_spec,
                    config.lp_tolerance,
                    config.integrality_tolerance,
                )
            )

        cut_stats = None
        if config.enable_cutting_planes:
            cut_stats = ctx.cut_stats.snapshot(obj_val if ctx.has_incumbent else None)

        solve_time = time.time() - start_time
        result = IntegerOptimizationResult(
            solution=x_sol,
            objective_value=obj_val,
            best_bound=best_bound,
            relative_gap=gap,
            nodes_explored=ctx.stats.nodes_explored,
            status=status,
            solve_time=solve_time,
            cutting_plane_stats=cut_stats,
            integer_spec=integer_spec,
            verification_issues=issues,
            stats=ctx.stats,
        )

        logger.info(
            f"Branch-and-bound finished: status={status.value}, nodes={ctx.stats.nodes_explored}, "
            f"objective={obj_val:.6g}, bound={best_bound:.6g}, time={solve_time:.3f}s"
        )
        if config.verbose:
            self._print_summary(ctx, result)

        if issues:
            logger.warning(f"Solution failed verification: {'; '.join(issues)}")
            if config.raise_on_verification_failure:
                raise SolutionVerificationError(issues)
            warnings.warn(
                f"Solution failed verification: {'; '.join(issues)}",
                SolutionVerificationWarning,
            )

        return result

    def _validate_problem(
        self,
        objective: Callable,
        x0: np.ndarray,
        constraints: Tuple[Constraint, ...],
        spec: IntegerProgramSpecification,
    ) -> None:
        n = len(x0)
        if n == 0:
            raise ConfigurationError("initial_guess must not be empty")
        if not callable(objective):
            raise ConfigurationError("objective must be callable")
        if isinstance(objective, LinearFunction) and objective.dimension != n:
            raise ConfigurationError(
                f"Objective has {objective.dimension} coefficients, expected {n}"
            )
        spec.validate(n)

        for con in constraints:
            if not isinstance(con, Constraint):
                raise ConfigurationError(f"Expected Constraint, got {type(con).__name__}")
            if con.is_linear and len(con.coefficients) != n:
                raise ConfigurationError(
                    f"Constraint {con!r} has {len(con.coefficients)} coefficients, expected {n}"
                )

        if not self.uses_simplex:
            return

        if not constraints:
            raise ConfigurationError("No constraints supplied to a constrained optimizer")

        if self.config.validate_linearity:
            if not is_linear(objective, x0):
                raise ConfigurationError("Objective is not linear; the simplex relaxation needs an LP")
            for con in constraints:
                if not con.is_linear and not is_linear(con.fun, x0):
                    raise ConfigurationError(f"Constraint {con!r} is not linear")

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _search(self, ctx: _SearchContext, x0: np.ndarray) -> Tuple[IntegerSolutionStatus, float]:
        config = self.config
        stats = ctx.stats
        queue = NodeQueue(config.node_selection, ctx.minimize)

        root = self._make_node(ctx, ctx.constraints, depth=0, warm_start=x0)
        if config.enable_cutting_planes and root.is_feasible:
            ctx.cut_stats.root_bound_before_cuts = root.relaxation_bound
            root = self._run_cut_rounds(ctx, root)
            if root.is_feasible:
                ctx.cut_stats.root_bound_after_cuts = root.relaxation_bound
        queue.push(root)

        best_bound = root.relaxation_bound
        stats.bound_history.append(best_bound)

        if config.verbose:
            n_int = len(ctx.spec.all_integer_variables)
            print(f"Branch-and-Bound: {n_int} integer variables, {ctx.dimension} total")
            print(f"Strategy: {config.node_selection.value}, Branching: {config.branching_rule.value}")
            print(f"Cutting planes: {config.enable_cutting_planes}, Heuristics: {config.use_rounding_heuristic}")
            print(f"{'Nodes':>8} {'Incumbent':>12} {'Best Bound':>12} {'Gap':>10} {'Time':>8}")
            print("-" * 54)

        status = None
        while queue:
            # Check termination conditions
            if stats.nodes_explored >= config.max_nodes:
                if config.verbose:
                    print(f"Node limit reached ({config.max_nodes})")
                status = IntegerSolutionStatus.NODE_LIMIT
                break

            if config.time_limit > 0 and ctx.elapsed() >= config.time_limit:
                if config.verbose:
                    print(f"Time limit reached ({config.time_limit}s)")
                status = IntegerSolutionStatus.TIME_LIMIT
                break

            node = queue.pop()
            stats.nodes_explored += 1
            stats.max_depth = max(stats.max_depth, node.depth)

            if not node.is_feasible:
                stats.nodes_infeasible += 1
                continue

            if self._fathomed_by_bound(ctx, node):
                stats.nodes_pruned += 1
                continue

            if ctx.spec.is_integer_feasible(node.relaxation_solution, config.integrality_tolerance):
                self._accept_integer_node(ctx, node, queue)
            else:
                if (
                    config.enable_cutting_planes
                    and config.cut_at_all_nodes
                    and node.depth > 0
                ):
                    node = self._run_cut_rounds(ctx, node)
                    if not node.is_feasible:
                        stats.nodes_infeasible += 1
                    elif self._fathomed_by_bound(ctx, node):
                        stats.nodes_pruned += 1
                    elif ctx.spec.is_integer_feasible(
                        node.relaxation_solution, config.integrality_tolerance
                    ):
                        self._accept_integer_node(ctx, node, queue)
                    else:
                        self._process_fractional_node(ctx, node, queue)
                else:
                    self._process_fractional_node(ctx, node, queue)

            if ctx.pool is not None:
                ctx.pool.age_all()
                ctx.pool.prune()

            best_bound = self._global_bound(ctx, queue)
            stats.bound_history.append(best_bound)

            if ctx.has_incumbent:
                gap = relative_gap(ctx.incumbent_obj, best_bound)
                if gap <= config.relative_gap_tolerance:
                    if config.verbose:
                        print(f"Optimality gap reached (gap={gap:.2e})")
                    status = IntegerSolutionStatus.OPTIMAL
                    break

            # Periodic verbose output
            if config.verbose and stats.nodes_explored % 100 == 0:
                self._print_progress(ctx, best_bound)

        if status is None:
            # Queue exhausted: the incumbent is optimal unless subtrees were lost
            if ctx.has_incumbent:
                best_bound = self._global_bound(ctx, queue)
                gap = relative_gap(ctx.incumbent_obj, best_bound)
                if gap <= config.relative_gap_tolerance:
                    status = IntegerSolutionStatus.OPTIMAL
                else:
                    status = IntegerSolutionStatus.FEASIBLE
                    logger.warning(
                        f"{ctx.stats.subtrees_lost} subtrees were dropped after relaxation "
                        f"failures; incumbent is feasible with gap {gap:.2e}"
                    )
            else:
                status = IntegerSolutionStatus.INFEASIBLE
                best_bound = float("inf") if ctx.minimize else float("-inf")
        elif status in (IntegerSolutionStatus.NODE_LIMIT, IntegerSolutionStatus.TIME_LIMIT):
            best_bound = self._global_bound(ctx, queue)

        return status, best_bound

    def _global_bound(
        self,
        ctx: _SearchContext,
        queue: NodeQueue,
        open_bound: Optional[float] = None,
    ) -> float:
        """Tightest open or lost bound, capped by the incumbent.

        `open_bound` is the bound of a popped node that is still being processed.
        """
        queued = queue.best_bound()
        for extra in (ctx.lost_bound, open_bound):
            if extra is not None and (queued is None or is_better_bound(extra, queued, ctx.minimize)):
                queued = extra
        if queued is None:
            if ctx.has_incumbent:
                return ctx.incumbent_obj
            return float("inf") if ctx.minimize else float("-inf")
        if not ctx.has_incumbent:
            return queued
        return min(queued, ctx.incumbent_obj) if ctx.minimize else max(queued, ctx.incumbent_obj)

    def _fathomed_by_bound(self, ctx: _SearchContext, node: BranchNode) -> bool:
        if not ctx.has_incumbent:
            return False
        return not can_improve(
            node.relaxation_bound, ctx.incumbent_obj, self.config.lp_tolerance, ctx.minimize
        )

    # ------------------------------------------------------------------
    # Node processing
    # ------------------------------------------------------------------

    def _solve_relaxation(
        self,
        ctx: _SearchContext,
        constraints: Tuple[Constraint, ...],
        warm_start: np.ndarray,
    ) -> RelaxationResult:
        ctx.stats.relaxation_solves += 1
        try:
            result = self.relaxation_solver.solve_relaxation(
                ctx.objective, constraints, warm_start, ctx.minimize
            )
        except Exception as e:
            # Third-party adapters may still raise; one failed node must not abort the search
            logger.debug(f"Relaxation solver raised: {e}")
            result = RelaxationResult.failed(RelaxationStatus.ERROR, ctx.minimize, str(e))

        if result.status == RelaxationStatus.ERROR:
            ctx.stats.relaxation_errors += 1
            logger.debug(f"Relaxation failed: {result.message}")
        elif result.status == RelaxationStatus.UNBOUNDED:
            logger.warning("Relaxation is unbounded; node discarded")
        elif result.is_optimal and not math.isfinite(result.objective_value):
            return RelaxationResult.failed(RelaxationStatus.ERROR, ctx.minimize, "non-finite objective")
        return result

    def _make_node(
        self,
        ctx: _SearchContext,
        constraints: Tuple[Constraint, ...],
        depth: int,
        warm_start: np.ndarray,
        parent: Optional[BranchNode] = None,
        branched_variable: Optional[int] = None,
    ) -> BranchNode:
        result = self._solve_relaxation(ctx, constraints, warm_start)
        if parent is not None and result.status in (RelaxationStatus.ERROR, RelaxationStatus.UNBOUNDED):
            ctx.record_lost_subtree(parent.relaxation_bound)
        return BranchNode(
            node_id=next(ctx.node_ids),
            depth=depth,
            constraints=constraints,
            relaxation_bound=result.objective_value,
            relaxation_solution=result.solution if result.is_optimal else None,
            parent_id=None if parent is None else parent.node_id,
            branched_variable=branched_variable,
            tableau=result.tableau if result.is_optimal else None,
        )

    def _update_incumbent(
        self,
        ctx: _SearchContext,
        x: np.ndarray,
        obj: float,
        queue: NodeQueue,
        marker: str,
        open_bound: Optional[float] = None,
    ) -> bool:
        """Accept (x, obj) if it is the first or a strictly better incumbent."""
        if not math.isfinite(obj):
            return False
        if ctx.has_incumbent and not is_better_bound(obj, ctx.incumbent_obj, ctx.minimize):
            return False

        ctx.incumbent_x = np.array(x, dtype=float)
        ctx.incumbent_obj = obj
        ctx.stats.incumbent_updates += 1

        pruned = queue.prune(obj, self.config.lp_tolerance)
        ctx.stats.nodes_pruned += pruned

        best_bound = self._global_bound(ctx, queue, open_bound)
        ctx.stats.gap_history.append(relative_gap(obj, best_bound))
        logger.debug(f"New incumbent {obj:.10g} ({marker}), pruned {pruned} open nodes")

        if self.config.verbose:
            self._print_progress(ctx, best_bound, marker)
        return True

    def _accept_integer_node(self, ctx: _SearchContext, node: BranchNode, queue: NodeQueue) -> None:
        x = ctx.spec.rounded(node.relaxation_solution)
        self._update_incumbent(ctx, x, float(ctx.objective(x)), queue, "*")

    def _process_fractional_node(
        self,
        ctx: _SearchContext,
        node: BranchNode,
        queue: NodeQueue,
    ) -> None:
        config = self.config
        x = node.relaxation_solution

        if ctx.pool is not None:
            ctx.pool.record_activity(x, config.cut_tolerance)

        if config.use_rounding_heuristic:
            heur = rounding_heuristic(
                x,
                ctx.spec,
                ctx.objective,
                ctx.constraints,
                config.lp_tolerance,
                config.integrality_tolerance,
            )
            if heur is not None and self._update_incumbent(
                ctx, heur[0], heur[1], queue, "H", open_bound=node.relaxation_bound
            ):
                ctx.stats.heuristic_solutions += 1
                if self._fathomed_by_bound(ctx, node):
                    ctx.stats.nodes_pruned += 1
                    return

        self._branch(ctx, node, queue)

    def _branch(self, ctx: _SearchContext, node: BranchNode, queue: NodeQueue) -> None:
        config = self.config
        x = node.relaxation_solution

        def solve_child(constraints: Tuple[Constraint, ...]) -> RelaxationResult:
            return self._solve_relaxation(ctx, constraints, x)

        choice = select_branching_variable(
            config.branching_rule,
            ctx.spec,
            x,
            config.integrality_tolerance,
            ctx.pseudocosts,
            solve_child=solve_child,
            constraints=node.constraints,
            parent_bound=node.relaxation_bound,
            minimize=ctx.minimize,
            strong_limit=config.strong_branching_candidates,
            stats=ctx.stats,
        )

        if choice is not None:
            branch_idx, branch_val = choice
            down_rows, up_rows = branch_constraints(branch_idx, branch_val, ctx.dimension)
            f = fractional_part(branch_val)
            children = ((down_rows, DOWN, f), (up_rows, UP, 1.0 - f))
            logger.debug(f"Node {node.node_id}: branching on x[{branch_idx}] = {branch_val:.6g}")
        else:
            violated = ctx.spec.violated_sos_group(x, config.integrality_tolerance)
            if violated is None:
                # Integral within tolerance after all; nothing to split
                self._accept_integer_node(ctx, node, queue)
                return
            sos_type, group = violated
            left_rows, right_rows = sos_branch_constraints(
                sos_type, group, x, config.integrality_tolerance, ctx.dimension
            )
            branch_idx = None
            children = ((left_rows, None, 0.0), (right_rows, None, 0.0))
            ctx.stats.sos_branches += 1
            logger.debug(f"Node {node.node_id}: SOS{sos_type} branching on group {list(group)}")

        for rows, direction, frac_change in children:
            child = self._make_node(
                ctx,
                node.constraints + rows,
                depth=node.depth + 1,
                warm_start=x,
                parent=node,
                branched_variable=branch_idx,
            )

            if direction is not None and child.is_feasible:
                degradation = child.relaxation_bound - node.relaxation_bound
                if not ctx.minimize:
                    degradation = -degradation
                ctx.pseudocosts.update(branch_idx, direction, degradation, frac_change)

            if not child.is_feasible:
                ctx.stats.nodes_infeasible += 1
            elif self._fathomed_by_bound(ctx, child):
                ctx.stats.nodes_pruned += 1
            else:
                queue.push(child)

    # ------------------------------------------------------------------
    # Cutting planes
    # ------------------------------------------------------------------

    def _separate(self, ctx: _SearchContext, node: BranchNode) -> List[Tuple[CuttingPlane, str]]:
        """Violated cuts at the node's relaxation point, most violated first.

        Each cut is tagged with its origin: "pool", "global" (fresh and valid
        for the whole tree) or "local" (fresh, derived from branching rows).
        """
        config = self.config
        x = node.relaxation_solution

        candidates: List[Tuple[CuttingPlane, str]] = []
        if ctx.pool is not None:
            candidates.extend((cut, "pool") for cut in ctx.pool.violated_cuts(x, config.cut_tolerance))

        if node.tableau is not None:
            fresh = self.cut_generator.generate_cuts_from_tableau(
                node.tableau,
                x,
                node.tableau.integer_columns(ctx.spec),
                use_mir=config.enable_mir_cuts,
            )
            origin = "global" if node.depth == 0 else "local"
            candidates.extend((cut, origin) for cut in fresh)

        if config.enable_cover_cuts and ctx.spec.binary_variables:
            # Knapsack rows of the original problem give globally valid covers
            fresh = self.cut_generator.generate_cover_cuts(ctx.constraints, x, ctx.spec)
            candidates.extend((cut, "global") for cut in fresh)

        accepted: List[Tuple[CuttingPlane, str]] = []
        for cut, origin in candidates:
            cut = filter_small_coefficients(cut, config.cut_coefficient_threshold)
            if cut is None:
                continue
            if config.normalize_cuts:
                cut = normalize(cut)
            if cut.violation(x) <= config.cut_tolerance:
                continue
            if is_duplicate(cut, [c for c, _ in accepted]):
                continue
            accepted.append((cut, origin))

        accepted.sort(key=lambda co: -co[0].violation(x))
        return accepted

    def _run_cut_rounds(self, ctx: _SearchContext, node: BranchNode) -> BranchNode:
        """Strengthen a node's relaxation with rounds of cuts."""
        config = self.config
        tracker = ctx.cut_stats
        current = node
        history: Deque[np.ndarray] = deque([node.relaxation_solution], maxlen=config.cycling_window_size)
        rounds = 0

        while rounds < config.max_cutting_rounds:
            x = current.relaxation_solution
            if ctx.spec.is_integer_feasible(x, config.integrality_tolerance):
                break
            if current.tableau is None:
                break

            separated = self._separate(ctx, current)
            if not separated:
                break

            # Globally valid cuts are pooled even when not applied this round
            if ctx.pool is not None:
                for cut, origin in separated:
                    if origin == "global":
                        ctx.pool.add(cut)

            cuts = separated[: config.max_cuts_per_round]
            rows = tuple(cut.to_constraint() for cut, _ in cuts)
            result = self._solve_relaxation(ctx, current.constraints + rows, x)
            if result.status in (RelaxationStatus.ERROR, RelaxationStatus.UNBOUNDED):
                ctx.record_lost_subtree(current.relaxation_bound)
            rounds += 1
            tracker.record_round()
            tracker.record_cuts([cut for cut, origin in cuts if origin != "pool"])
            tracker.cuts_from_pool += sum(1 for _, origin in cuts if origin == "pool")
            ctx.stats.cuts_added += len(cuts)

            strengthened = dataclasses.replace(
                current,
                constraints=current.constraints + rows,
                relaxation_bound=result.objective_value,
                relaxation_solution=result.solution if result.is_optimal else None,
                tableau=result.tableau if result.is_optimal else None,
            )
            logger.debug(
                f"Node {node.node_id} cut round {rounds}: {len(cuts)} cuts, "
                f"bound {current.relaxation_bound:.8g} -> {strengthened.relaxation_bound:.8g}"
            )
            if not strengthened.is_feasible:
                current = strengthened
                break

            improvement = strengthened.relaxation_bound - current.relaxation_bound
            if not ctx.minimize:
                improvement = -improvement
            current = strengthened

            if config.detect_stagnation and improvement < config.stagnation_tolerance:
                logger.debug(f"Node {node.node_id}: cut rounds stagnated")
                break

            new_x = current.relaxation_solution
            if config.detect_cycling and any(
                np.allclose(new_x, old, atol=config.integrality_tolerance, rtol=0.0) for old in history
            ):
                logger.debug(f"Node {node.node_id}: cut rounds cycling")
                break
            history.append(new_x)

        tracker.record_node(rounds)
        return current

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    @staticmethod
    def _print_progress(ctx: _SearchContext, best_bound: float, marker: str = "") -> None:
        stats = ctx.stats
        inc_str = f"{ctx.incumbent_obj:>12.4e}" if ctx.has_incumbent else f"{'-':>12}"
        bound_str = f"{best_bound:>12.4e}" if math.isfinite(best_bound) else f"{best_bound:>12}"
        gap = relative_gap(ctx.incumbent_obj, best_bound) if ctx.has_incumbent else float("inf")
        print(
            f"{stats.nodes_explored:>8} {inc_str} {bound_str} {gap:>10.2e} "
            f"{ctx.elapsed():>7.1f}s {marker}".rstrip()
        )

    def _print_summary(self, ctx: _SearchContext, result: IntegerOptimizationResult) -> None:
        stats = ctx.stats
        print("-" * 54)
        print(f"Status: {result.status.value}")
        print(f"Nodes explored: {stats.nodes_explored}")
        print(f"Relaxation solves: {stats.relaxation_solves}")
        print(f"Cuts added: {stats.cuts_added}")
        print(f"Heuristic solutions: {stats.heuristic_solutions}")
        if ctx.has_incumbent:
            print(f"Best objective: {result.objective_value:.6e}")
            if math.isfinite(result.best_bound):
                print(f"Best bound: {result.best_bound:.6e}")
                print(f"Gap: {result.relative_gap:.2e}")
        if result.cutting_plane_stats is not None:
            cps = result.cutting_plane_stats
            print(
                f"Cutting planes: {cps.total_cuts_generated} generated "
                f"(gomory={cps.gomory_cuts}, mir={cps.mir_cuts}, cover={cps.cover_cuts}), "
                f"{cps.cutting_rounds} rounds, {cps.percentage_gap_closed:.1f}% root gap closed"
            )


class BranchAndCutSolver(BranchAndBoundSolver):
    """Branch-and-bound with cutting planes always enabled."""

    def __init__(self, config: Optional[BranchAndBoundConfig] = None, **options):
        options["enable_cutting_planes"] = True
        super().__init__(config, **options)
