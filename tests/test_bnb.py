"""End-to-end tests for the branch-and-bound and branch-and-cut solvers."""
import autograd.numpy as np
import pytest

from bnbcut import (
    BranchAndBoundConfig,
    BranchAndBoundSolver,
    BranchAndCutSolver,
    BranchingRule,
    ConfigurationError,
    Constraint,
    IntegerProgramSpecification,
    IntegerSolutionStatus,
    LinearFunction,
    NodeSelection,
    RelaxationResult,
    RelaxationStatus,
    SimplexRelaxationSolver,
    SolutionVerificationError,
    SolutionVerificationWarning,
)


class TestKnownOptima:
    def test_knapsack(self, knapsack):
        objective, x0, constraints, spec = knapsack
        result = BranchAndBoundSolver().solve(objective, x0, constraints, spec, minimize=False)

        assert result.status == IntegerSolutionStatus.OPTIMAL
        assert result.objective_value == pytest.approx(23.0)
        assert result.integer_solution.tolist() == [1, 1, 0, 0]
        assert result.is_verified
        assert result.has_solution

    def test_small_ilp(self, small_ilp):
        objective, x0, constraints, spec = small_ilp
        result = BranchAndBoundSolver().solve(objective, x0, constraints, spec)

        assert result.status == IntegerSolutionStatus.OPTIMAL
        assert result.objective_value == pytest.approx(-20.0)
        assert np.allclose(result.solution, [4.0, 0.0])
        assert result.relative_gap <= 1e-4
        assert result.best_bound == pytest.approx(-20.0)

    def test_callable_objective_matches_linear_function(self, small_ilp):
        _, x0, constraints, spec = small_ilp

        def objective(x):
            return -5.0 * x[0] - 4.0 * x[1]

        result = BranchAndBoundSolver().solve(objective, x0, constraints, spec)
        assert result.objective_value == pytest.approx(-20.0)
        assert np.allclose(result.solution, [4.0, 0.0])

    def test_mixed_integer(self):
        # max x + y  s.t.  2x + 2y <= 7 with only x integer
        objective = LinearFunction([1.0, 1.0])
        constraints = [
            Constraint.linear_inequality([2.0, 2.0], 7.0),
            Constraint.linear_inequality([1.0, 0.0], 2.5),
        ]
        spec = IntegerProgramSpecification(integer_variables=[0])
        result = BranchAndBoundSolver().solve(
            objective, np.zeros(2), constraints, spec, minimize=False
        )

        assert result.objective_value == pytest.approx(3.5)
        assert abs(result.solution[0] - round(result.solution[0])) < 1e-6
        assert result.solution[0] <= 2.0 + 1e-6
        # Only the integer coordinate is snapped
        assert result.integer_solution[0] == round(result.solution[0])
        assert result.integer_solution[1] == pytest.approx(result.solution[1])


@pytest.mark.parametrize("node_selection", list(NodeSelection))
@pytest.mark.parametrize("branching_rule", list(BranchingRule))
def test_strategies_agree(small_ilp, node_selection, branching_rule):
    objective, x0, constraints, spec = small_ilp
    solver = BranchAndBoundSolver(node_selection=node_selection, branching_rule=branching_rule)
    result = solver.solve(objective, x0, constraints, spec)

    assert result.status == IntegerSolutionStatus.OPTIMAL
    assert result.objective_value == pytest.approx(-20.0)


@pytest.mark.parametrize("node_selection", ["depth_first", "breadth_first", "best_bound"])
def test_strategies_agree_on_knapsack_with_cuts(knapsack, node_selection):
    objective, x0, constraints, spec = knapsack
    result = BranchAndCutSolver(node_selection=node_selection).solve(
        objective, x0, constraints, spec, minimize=False
    )
    assert result.objective_value == pytest.approx(23.0)


def test_without_heuristic(small_ilp):
    objective, x0, constraints, spec = small_ilp
    result = BranchAndBoundSolver(use_rounding_heuristic=False).solve(
        objective, x0, constraints, spec
    )
    assert result.objective_value == pytest.approx(-20.0)
    assert result.stats.heuristic_solutions == 0


class TestInfeasibility:
    def test_infeasible_root(self):
        constraints = [
            Constraint.linear_inequality([1.0], 1.0),
            Constraint.linear_inequality([1.0], 2.0, ">="),
        ]
        result = BranchAndBoundSolver().solve(
            LinearFunction([1.0]), [0.0], constraints, IntegerProgramSpecification.all_integer(1)
        )

        assert result.status == IntegerSolutionStatus.INFEASIBLE
        assert result.nodes_explored == 1
        assert not result.has_solution
        assert result.objective_value == float("inf")

    def test_no_integer_point_in_relaxation(self):
        constraints = [
            Constraint.linear_inequality([1.0], 0.6),
            Constraint.linear_inequality([1.0], 0.4, ">="),
        ]
        result = BranchAndBoundSolver().solve(
            LinearFunction([1.0]), [0.0], constraints, IntegerProgramSpecification.all_integer(1)
        )

        assert result.status == IntegerSolutionStatus.INFEASIBLE
        assert result.stats.nodes_infeasible == 2
        assert result.best_bound == float("inf")

    def test_infeasible_maximize_reports_negative_infinity(self):
        constraints = [
            Constraint.linear_inequality([1.0], 0.6),
            Constraint.linear_inequality([1.0], 0.4, ">="),
        ]
        result = BranchAndBoundSolver().solve(
            LinearFunction([1.0]),
            [0.0],
            constraints,
            IntegerProgramSpecification.all_integer(1),
            minimize=False,
        )
        assert result.status == IntegerSolutionStatus.INFEASIBLE
        assert result.objective_value == float("-inf")


class TestScenarios:
    def test_binary_knapsack(self):
        objective = LinearFunction([5.0, 4.0, 3.0])
        constraints = [Constraint.linear_inequality([2.0, 3.0, 1.0], 4.0)]
        result = BranchAndBoundSolver().solve(
            objective, np.zeros(3), constraints, IntegerProgramSpecification.all_binary(3),
            minimize=False,
        )
        assert result.integer_solution.tolist() == [1, 0, 1]
        assert result.objective_value == pytest.approx(8.0)

    def test_two_variable_integer_lp(self):
        objective = LinearFunction([-1.0, -1.0])
        constraints = [Constraint.linear_inequality([1.0, 1.0], 3.5)]
        result = BranchAndBoundSolver().solve(
            objective, np.zeros(2), constraints, IntegerProgramSpecification.all_integer(2)
        )
        assert result.status == IntegerSolutionStatus.OPTIMAL
        assert result.objective_value == pytest.approx(-3.0)
        assert sum(result.integer_solution) == 3

    def test_sos1_picks_one_variable(self):
        objective = LinearFunction([1.0, 1.0, 1.0])
        constraints = [Constraint.upper_bound(i, 1.0, 3) for i in range(3)]
        constraints.append(Constraint.linear_inequality([1.0, 1.0, 1.0], 2.5))
        spec = IntegerProgramSpecification(sos1=[[0, 1, 2]])
        result = BranchAndBoundSolver().solve(
            objective, np.zeros(3), constraints, spec, minimize=False
        )
        assert result.objective_value == pytest.approx(1.0)
        assert int(np.sum(np.abs(result.solution) > 1e-6)) == 1

    @pytest.mark.parametrize("minimize, expected_bound", [(True, float("inf")), (False, float("-inf"))])
    def test_conflicting_bounds(self, minimize, expected_bound):
        constraints = [Constraint.lower_bound(0, 5.0, 1), Constraint.upper_bound(0, 2.0, 1)]
        result = BranchAndBoundSolver().solve(
            LinearFunction([1.0]),
            [0.0],
            constraints,
            IntegerProgramSpecification.all_integer(1),
            minimize=minimize,
        )
        assert result.status == IntegerSolutionStatus.INFEASIBLE
        assert result.best_bound == expected_bound


def test_time_limit(knapsack):
    objective, x0, constraints, spec = knapsack
    result = BranchAndBoundSolver(time_limit=1e-12).solve(
        objective, x0, constraints, spec, minimize=False
    )
    assert result.status == IntegerSolutionStatus.TIME_LIMIT
    assert result.nodes_explored == 0
    assert result.best_bound == pytest.approx(23.5)


def test_node_limit(knapsack):
    objective, x0, constraints, spec = knapsack
    result = BranchAndBoundSolver(max_nodes=1).solve(
        objective, x0, constraints, spec, minimize=False
    )

    assert result.status == IntegerSolutionStatus.NODE_LIMIT
    assert result.nodes_explored == 1
    if result.has_solution:
        assert result.best_bound >= result.objective_value


def test_bound_history_is_monotone(small_ilp):
    objective, x0, constraints, spec = small_ilp
    result = BranchAndBoundSolver().solve(objective, x0, constraints, spec)
    history = result.stats.bound_history

    assert history[0] == pytest.approx(-21.0)
    assert all(b >= a - 1e-7 for a, b in zip(history, history[1:]))
    assert history[-1] == pytest.approx(-20.0)


def test_gap_never_increases_across_incumbents(knapsack):
    objective, x0, constraints, spec = knapsack
    result = BranchAndBoundSolver(
        node_selection="depth_first", use_rounding_heuristic=True
    ).solve(objective, x0, constraints, spec, minimize=False)
    history = result.stats.gap_history

    assert result.objective_value == pytest.approx(23.0)
    assert len(history) == result.stats.incumbent_updates
    assert len(history) >= 2
    assert all(b <= a + 1e-12 for a, b in zip(history, history[1:]))
    assert history[-1] == pytest.approx(0.0)


class _FailingRelaxation(SimplexRelaxationSolver):
    """Simplex relaxation whose listed calls (1-based) fail."""

    def __init__(self, failing_calls, raise_error=True):
        super().__init__()
        self.failing_calls = set(failing_calls)
        self.raise_error = raise_error
        self.calls = 0

    def solve_relaxation(self, objective, constraints, initial_guess, minimize):
        self.calls += 1
        if self.calls in self.failing_calls:
            if self.raise_error:
                raise RuntimeError("backend crashed")
            return RelaxationResult.failed(RelaxationStatus.ERROR, minimize, "backend crashed")
        return super().solve_relaxation(objective, constraints, initial_guess, minimize)


class TestRelaxationFailures:
    @pytest.mark.parametrize("raise_error", [True, False])
    def test_failed_child_does_not_abort_search(self, small_ilp, raise_error):
        objective, x0, constraints, spec = small_ilp
        # Call 2 is the y <= 1 child of the root, the subtree holding (4, 0)
        solver = BranchAndBoundSolver(relaxation_solver=_FailingRelaxation({2}, raise_error))
        result = solver.solve(objective, x0, constraints, spec)

        assert result.stats.relaxation_errors == 1
        assert result.stats.subtrees_lost == 1
        assert result.objective_value == pytest.approx(-18.0)
        assert result.status == IntegerSolutionStatus.FEASIBLE
        assert result.best_bound == pytest.approx(-21.0)
        assert result.relative_gap == pytest.approx(3.0 / 18.0)

    def test_lost_bound_survives_node_limit(self, small_ilp):
        objective, x0, constraints, spec = small_ilp
        solver = BranchAndBoundSolver(
            relaxation_solver=_FailingRelaxation({2}), max_nodes=3
        )
        result = solver.solve(objective, x0, constraints, spec)

        assert result.status != IntegerSolutionStatus.OPTIMAL
        assert result.best_bound == pytest.approx(-21.0)
        assert result.relative_gap > 0.0

    def test_search_without_failures_is_optimal(self, small_ilp):
        objective, x0, constraints, spec = small_ilp
        result = BranchAndBoundSolver(relaxation_solver=_FailingRelaxation(())).solve(
            objective, x0, constraints, spec
        )

        assert result.status == IntegerSolutionStatus.OPTIMAL
        assert result.stats.subtrees_lost == 0
        assert result.objective_value == pytest.approx(-20.0)


class TestCuttingPlanes:
    def test_cuts_reduce_tree(self, gomory_ilp):
        objective, x0, constraints, spec = gomory_ilp
        plain = BranchAndBoundSolver().solve(objective, x0, constraints, spec, minimize=False)
        cut = BranchAndCutSolver().solve(objective, x0, constraints, spec, minimize=False)

        assert plain.objective_value == pytest.approx(1.0)
        assert cut.objective_value == pytest.approx(1.0)
        assert cut.nodes_explored < plain.nodes_explored

    def test_cut_statistics(self, gomory_ilp):
        objective, x0, constraints, spec = gomory_ilp
        result = BranchAndCutSolver().solve(objective, x0, constraints, spec, minimize=False)
        stats = result.cutting_plane_stats

        assert stats is not None
        assert stats.gomory_cuts >= 1
        assert stats.cutting_rounds >= 1
        assert stats.lp_resolves == stats.cutting_rounds
        assert stats.root_bound_before_cuts == pytest.approx(1.5)
        assert stats.root_bound_after_cuts == pytest.approx(1.0)
        assert stats.percentage_gap_closed == pytest.approx(100.0)

    def test_no_statistics_without_cuts(self, gomory_ilp):
        objective, x0, constraints, spec = gomory_ilp
        result = BranchAndBoundSolver().solve(objective, x0, constraints, spec, minimize=False)
        assert result.cutting_plane_stats is None

    def test_cover_cuts_on_knapsack(self, knapsack):
        objective, x0, constraints, spec = knapsack
        result = BranchAndCutSolver(enable_mir_cuts=False).solve(
            objective, x0, constraints, spec, minimize=False
        )
        assert result.objective_value == pytest.approx(23.0)
        assert result.cutting_plane_stats.total_cuts_generated >= 1

    @pytest.mark.parametrize("normalize_cuts", [False, True])
    def test_branch_and_cut_on_small_ilp(self, small_ilp, normalize_cuts):
        objective, x0, constraints, spec = small_ilp
        result = BranchAndCutSolver(normalize_cuts=normalize_cuts, max_cuts_per_round=1).solve(
            objective, x0, constraints, spec
        )
        assert result.objective_value == pytest.approx(-20.0)
        assert np.allclose(result.solution, [4.0, 0.0])
        assert result.is_verified

    def test_zero_rounds_disables_cuts(self, gomory_ilp):
        objective, x0, constraints, spec = gomory_ilp
        result = BranchAndCutSolver(max_cutting_rounds=0).solve(
            objective, x0, constraints, spec, minimize=False
        )
        assert result.cutting_plane_stats.total_cuts_generated == 0
        assert result.objective_value == pytest.approx(1.0)


class TestSpecialOrderedSets:
    def test_sos1(self):
        objective = LinearFunction([1.0, 1.0])
        constraints = [
            Constraint.upper_bound(0, 1.0, 2),
            Constraint.upper_bound(1, 1.0, 2),
            Constraint.linear_inequality([1.0, 1.0], 1.5),
        ]
        spec = IntegerProgramSpecification(sos1=[[0, 1]])
        result = BranchAndBoundSolver().solve(
            objective, np.zeros(2), constraints, spec, minimize=False
        )

        assert result.status == IntegerSolutionStatus.OPTIMAL
        assert result.objective_value == pytest.approx(1.0)
        assert min(result.solution) == pytest.approx(0.0, abs=1e-9)
        assert result.stats.sos_branches >= 1

    def test_sos2(self):
        objective = LinearFunction([2.0, 1.0, 2.0])
        constraints = [
            Constraint.upper_bound(0, 0.5, 3),
            Constraint.upper_bound(2, 0.5, 3),
            Constraint.linear_inequality([1.0, 1.0, 1.0], 1.0),
        ]
        spec = IntegerProgramSpecification(sos2=[[0, 1, 2]])
        result = BranchAndBoundSolver().solve(
            objective, np.zeros(3), constraints, spec, minimize=False
        )

        assert result.objective_value == pytest.approx(1.5)
        assert spec.violated_sos_group(result.solution) is None


class TestVariableShifting:
    @staticmethod
    def _problem():
        objective = LinearFunction([1.0, 2.0])
        constraints = [
            Constraint.lower_bound(0, -3.0, 2),
            Constraint.lower_bound(1, -2.0, 2),
            Constraint.linear_inequality([1.0, 1.0], -4.5, ">="),
        ]
        return objective, np.zeros(2), constraints, IntegerProgramSpecification.all_integer(2)

    def test_negative_lower_bounds(self):
        objective, x0, constraints, spec = self._problem()
        result = BranchAndBoundSolver(enable_variable_shifting=True).solve(
            objective, x0, constraints, spec
        )

        assert result.status == IntegerSolutionStatus.OPTIMAL
        assert np.allclose(result.solution, [-2.0, -2.0])
        assert result.objective_value == pytest.approx(-6.0)
        assert result.is_verified

    def test_without_shifting_variables_stay_non_negative(self):
        objective, x0, constraints, spec = self._problem()
        result = BranchAndBoundSolver().solve(objective, x0, constraints, spec)
        assert result.objective_value == pytest.approx(0.0)


def test_nonlinear_relaxation():
    def objective(x):
        return (x[0] - 1.4) ** 2 + (x[1] - 2.6) ** 2

    constraints = [Constraint.linear_inequality([1.0, 1.0], 5.0)]
    solver = BranchAndBoundSolver(relaxation_solver="nlp", lp_tolerance=1e-6)
    result = solver.solve(
        objective, np.zeros(2), constraints, IntegerProgramSpecification.all_integer(2)
    )

    assert result.status == IntegerSolutionStatus.OPTIMAL
    assert np.allclose(result.solution, [1.0, 3.0])
    assert result.objective_value == pytest.approx(0.32)


class _WrongRelaxation:
    """Claims x = 5 is optimal regardless of the constraints."""

    def solve_relaxation(self, objective, constraints, initial_guess, minimize):
        x = np.array([5.0])
        return RelaxationResult(x, float(objective(x)), RelaxationStatus.OPTIMAL)


class TestVerification:
    @staticmethod
    def _problem():
        return (
            LinearFunction([1.0]),
            [0.0],
            [Constraint.linear_inequality([1.0], 1.0, name="cap")],
            IntegerProgramSpecification.all_integer(1),
        )

    def test_violations_warn(self):
        solver = BranchAndBoundSolver(relaxation_solver=_WrongRelaxation())
        with pytest.warns(SolutionVerificationWarning):
            result = solver.solve(*self._problem())

        assert not result.is_verified
        assert any("cap" in issue for issue in result.verification_issues)

    def test_violations_raise_when_requested(self):
        solver = BranchAndBoundSolver(
            relaxation_solver=_WrongRelaxation(), raise_on_verification_failure=True
        )
        with pytest.raises(SolutionVerificationError) as exc_info:
            solver.solve(*self._problem())
        assert exc_info.value.issues


class TestConfiguration:
    @pytest.mark.parametrize(
        "options",
        [
            {"lp_tolerance": 1e-5, "integrality_tolerance": 1e-6},
            {"integrality_tolerance": 1e-5, "cut_tolerance": 1e-6},
            {"node_selection": "random"},
            {"branching_rule": "alphabetical"},
            {"max_nodes": 0},
            {"time_limit": -1.0},
            {"max_cuts_per_round": 0},
            {"relaxation_solver": "no-such-solver"},
            {"relaxation_solver": object()},
        ],
    )
    def test_invalid_options(self, options):
        with pytest.raises(ConfigurationError):
            BranchAndBoundConfig(**options)

    def test_string_options_are_coerced(self):
        config = BranchAndBoundConfig(node_selection="depth_first", branching_rule="pseudo_cost")
        assert config.node_selection == NodeSelection.DEPTH_FIRST
        assert config.branching_rule == BranchingRule.PSEUDO_COST

    def test_config_object_with_overrides(self, small_ilp):
        objective, x0, constraints, spec = small_ilp
        base = BranchAndBoundConfig(max_nodes=1)
        solver = BranchAndBoundSolver(base, max_nodes=1000)
        assert solver.config.max_nodes == 1000
        assert solver.solve(objective, x0, constraints, spec).objective_value == pytest.approx(-20.0)

    def test_empty_constraints_rejected_for_simplex(self):
        with pytest.raises(ConfigurationError):
            BranchAndBoundSolver().solve(
                LinearFunction([1.0]), [0.0], [], IntegerProgramSpecification.all_integer(1)
            )

    def test_nonlinear_objective_rejected_when_validating(self):
        solver = BranchAndBoundSolver(validate_linearity=True)
        with pytest.raises(ConfigurationError):
            solver.solve(
                lambda x: x[0] ** 2,
                [0.5],
                [Constraint.linear_inequality([1.0], 3.0)],
                IntegerProgramSpecification.all_integer(1),
            )

    def test_dimension_mismatches(self, small_ilp):
        objective, x0, constraints, _ = small_ilp
        solver = BranchAndBoundSolver()
        with pytest.raises(ConfigurationError):
            solver.solve(objective, x0, constraints, IntegerProgramSpecification(integer_variables=[2]))
        with pytest.raises(ConfigurationError):
            solver.solve(LinearFunction([1.0]), x0, constraints, IntegerProgramSpecification())
        with pytest.raises(ConfigurationError):
            solver.solve(objective, [], constraints, IntegerProgramSpecification())


def test_verbose_summary(small_ilp, capsys):
    objective, x0, constraints, spec = small_ilp
    BranchAndBoundSolver(verbose=True).solve(objective, x0, constraints, spec)
    out = capsys.readouterr().out
    assert "Branch-and-Bound" in out
    assert "Status: optimal" in out
