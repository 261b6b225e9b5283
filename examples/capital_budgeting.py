"""Mixed-integer programming examples using bnbcut.

This module walks through a few small models that exercise the different
parts of the solver: binary selection with branch-and-cut, general integers
with different search strategies, a piecewise-linear cost modelled with an
SOS2 set, and a convex MINLP solved with the nonlinear relaxation backend.

Run this module directly to execute all examples, or import individual
functions to experiment interactively.
"""

from __future__ import annotations

import logging

import autograd.numpy as np

from bnbcut import (
    BranchAndBoundSolver,
    BranchAndCutSolver,
    Constraint,
    IntegerProgramSpecification,
    LinearFunction,
    BEST_BOUND,
    DEPTH_FIRST,
    MOST_FRACTIONAL,
    PSEUDO_COST,
    STRONG_BRANCHING,
)


# =============================================================================
# Capital Budgeting
# =============================================================================

def capital_budgeting():
    """
    Capital Budgeting
    -----------------
    Choose a portfolio of projects maximizing net present value without
    exceeding the budget available in each of two years.

    Formulation:
        maximize    sum(npv[i] * x[i])
        subject to  sum(cost[t][i] * x[i]) <= budget[t]   for t = 1, 2
                    x[i] in {0, 1}

    Each budget row is a knapsack over binaries, so the solver adds cover
    cuts alongside the Gomory cuts read off the simplex tableau.
    """
    print("=" * 60)
    print("CAPITAL BUDGETING")
    print("=" * 60)

    projects = ["Warehouse", "Fleet", "Software", "Solar", "Training", "Audit"]
    npv = [14.0, 11.0, 9.0, 7.0, 5.0, 4.0]
    cost_year1 = [8.0, 6.0, 5.0, 4.0, 3.0, 2.0]
    cost_year2 = [3.0, 5.0, 4.0, 2.0, 2.0, 1.0]
    budget = (16.0, 10.0)

    n = len(projects)
    objective = LinearFunction(npv)
    constraints = [
        Constraint.linear_inequality(cost_year1, budget[0], name="budget_year1"),
        Constraint.linear_inequality(cost_year2, budget[1], name="budget_year2"),
    ]
    spec = IntegerProgramSpecification.all_binary(n)

    solver = BranchAndCutSolver(verbose=True, max_cutting_rounds=10)
    result = solver.solve(objective, np.zeros(n), constraints, spec, minimize=False)

    print("\nSelected projects:")
    for i, name in enumerate(projects):
        mark = "X" if result.integer_solution[i] == 1 else " "
        print(f"  [{mark}] {name}: npv={npv[i]}, cost=({cost_year1[i]}, {cost_year2[i]})")

    print(f"\nTotal NPV: {result.objective_value:.1f}")
    print(f"Status: {result.status}")

    stats = result.cutting_plane_stats
    print(f"Cuts: {stats.gomory_cuts} Gomory, {stats.mir_cuts} MIR, {stats.cover_cuts} cover")
    print(f"Root gap closed by cuts: {stats.percentage_gap_closed:.1f}%")

    return result


# =============================================================================
# Workshop Production Planning
# =============================================================================

def production_planning():
    """
    Workshop Production Planning
    ----------------------------
    A workshop builds tables and chairs from limited wood and labor.

    Formulation:
        maximize    5 * tables + 4 * chairs
        subject to  6 * tables + 4 * chairs <= 24    (wood)
                    1 * tables + 2 * chairs <= 6     (labor)
                    tables, chairs integer >= 0

    The same model is solved with several node selection and branching
    strategies to compare the size of the search tree.
    """
    print("\n" + "=" * 60)
    print("WORKSHOP PRODUCTION PLANNING")
    print("=" * 60)

    objective = LinearFunction([5.0, 4.0])
    constraints = [
        Constraint.linear_inequality([6.0, 4.0], 24.0, name="wood"),
        Constraint.linear_inequality([1.0, 2.0], 6.0, name="labor"),
    ]
    spec = IntegerProgramSpecification.all_integer(2)

    print(f"\n{'Strategy':<14} {'Branching':<18} {'Nodes':>6} {'Profit':>8}")
    print("-" * 50)

    result = None
    for strategy in (BEST_BOUND, DEPTH_FIRST):
        for rule in (MOST_FRACTIONAL, PSEUDO_COST, STRONG_BRANCHING):
            solver = BranchAndBoundSolver(node_selection=strategy, branching_rule=rule)
            result = solver.solve(objective, np.zeros(2), constraints, spec, minimize=False)
            print(
                f"{strategy.value:<14} {rule.value:<18} {result.nodes_explored:>6} "
                f"{result.objective_value:>8.1f}"
            )

    tables, chairs = result.integer_solution
    print(f"\nBuild {tables} tables and {chairs} chairs")

    return result


# =============================================================================
# Piecewise-Linear Purchasing Cost (SOS2)
# =============================================================================

def piecewise_purchasing():
    """
    Piecewise-Linear Purchasing Cost
    --------------------------------
    A supplier offers volume discounts, so the purchase cost is a concave
    piecewise-linear function of the quantity bought. The cost is modelled
    with interpolation weights over the breakpoints; an SOS2 set forces the
    weights onto a single segment.

    Formulation:
        minimize    sum(cost[k] * w[k])
        subject to  sum(w[k]) = 1
                    sum(breakpoint[k] * w[k]) >= demand
                    w >= 0, SOS2(w)

    Without the SOS2 set the relaxation would interpolate between the first
    and last breakpoints and underestimate the cost.
    """
    print("\n" + "=" * 60)
    print("PIECEWISE-LINEAR PURCHASING COST (SOS2)")
    print("=" * 60)

    breakpoints = [0.0, 10.0, 20.0, 30.0]
    costs = [0.0, 50.0, 80.0, 95.0]
    demand = 17.0
    n = len(breakpoints)

    objective = LinearFunction(costs)
    constraints = [
        Constraint.linear_equality(np.ones(n), 1.0, name="convexity"),
        Constraint.linear_inequality(breakpoints, demand, ">=", name="demand"),
    ]
    spec = IntegerProgramSpecification(sos2=[list(range(n))])

    result = BranchAndBoundSolver().solve(objective, np.zeros(n), constraints, spec)

    quantity = float(np.dot(breakpoints, result.solution))
    print(f"\nDemand: {demand}")
    print(f"Quantity bought: {quantity:.2f}")
    print(f"Purchase cost: {result.objective_value:.2f}")
    print(f"SOS2 branches: {result.stats.sos_branches}")
    print(f"Status: {result.status}")

    return result


# =============================================================================
# Convex MINLP: Lot Sizing
# =============================================================================

def lot_sizing():
    """
    Lot Sizing with Quadratic Deviation Cost
    ----------------------------------------
    Orders come in whole lots. Pick lot counts as close as possible to the
    ideal (fractional) quantities while respecting shared storage.

    Formulation:
        minimize    (x - 2.3)^2 + (y - 1.6)^2 + 0.5 * (z - 0.8)^2
        subject to  x + y + z <= 4
                    x, y, z integer >= 0

    The continuous relaxations are solved by the nonlinear (SLSQP) backend
    with exact autograd gradients.
    """
    print("\n" + "=" * 60)
    print("CONVEX MINLP: LOT SIZING")
    print("=" * 60)

    target = np.array([2.3, 1.6, 0.8])
    weights = np.array([1.0, 1.0, 0.5])

    def deviation(x):
        return np.sum(weights * (x - target) ** 2)

    constraints = [Constraint.linear_inequality([1.0, 1.0, 1.0], 4.0, name="storage")]
    constraints.extend(Constraint.non_negativity(3))
    spec = IntegerProgramSpecification.all_integer(3)

    solver = BranchAndBoundSolver(relaxation_solver="nlp", lp_tolerance=1e-6)
    result = solver.solve(deviation, np.zeros(3), constraints, spec)

    print(f"\nIdeal quantities: {target}")
    print(f"Lots ordered: {result.integer_solution}")
    print(f"Deviation cost: {result.objective_value:.4f}")
    print(f"Nodes explored: {result.nodes_explored}")
    print(f"Status: {result.status}")

    return result


def run_all_examples():
    """Run all examples in sequence."""
    capital_budgeting()
    production_planning()
    piecewise_purchasing()
    lot_sizing()

    print("\n" + "=" * 60)
    print("ALL EXAMPLES COMPLETED")
    print("=" * 60)


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    run_all_examples()
