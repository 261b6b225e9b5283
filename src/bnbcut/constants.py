from enum import StrEnum


class NodeSelection(StrEnum):
    DEPTH_FIRST = "depth_first"  # Deepest node first (finds feasible solutions faster)
    BREADTH_FIRST = "breadth_first"  # Shallowest node first
    BEST_BOUND = "best_bound"  # Tightest relaxation bound first
    BEST_ESTIMATE = "best_estimate"  # Currently identical to BEST_BOUND


class BranchingRule(StrEnum):
    MOST_FRACTIONAL = "most_fractional"
    PSEUDO_COST = "pseudo_cost"
    STRONG_BRANCHING = "strong_branching"


class CutType(StrEnum):
    GOMORY = "gomory"
    MIXED_INTEGER_ROUNDING = "mixed_integer_rounding"
    COVER = "cover"
    CLIQUE = "clique"


class IntegerSolutionStatus(StrEnum):
    OPTIMAL = "optimal"
    FEASIBLE = "feasible"
    INFEASIBLE = "infeasible"
    NODE_LIMIT = "node_limit"
    TIME_LIMIT = "time_limit"


DEFAULT_LP_TOL = 1e-8
DEFAULT_INT_TOL = 1e-6
DEFAULT_CUT_TOL = 1e-6
DEFAULT_NEAR_ZERO = 1e-9
DEFAULT_NLP_FTOL = 1e-9
STRONG_BRANCH_EPS = 1e-6
