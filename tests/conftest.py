import autograd.numpy as np
import pytest

from bnbcut import Constraint, IntegerProgramSpecification, LinearFunction


@pytest.fixture
def knapsack():
    """0/1 knapsack: max 10a + 13b + 7c + 8d  s.t.  4a + 6b + 3c + 5d <= 10.

    Optimum is a = b = 1 (weight 10, value 23).
    """
    objective = LinearFunction([10.0, 13.0, 7.0, 8.0])
    constraints = [Constraint.linear_inequality([4.0, 6.0, 3.0, 5.0], 10.0)]
    spec = IntegerProgramSpecification.all_binary(4)
    return objective, np.zeros(4), constraints, spec


@pytest.fixture
def small_ilp():
    """min -5x - 4y  s.t.  6x + 4y <= 24,  x + 2y <= 6,  x, y integer >= 0.

    LP optimum (3, 1.5) with value -21; integer optimum (4, 0) with value -20.
    """
    objective = LinearFunction([-5.0, -4.0])
    constraints = [
        Constraint.linear_inequality([6.0, 4.0], 24.0),
        Constraint.linear_inequality([1.0, 2.0], 6.0),
    ]
    spec = IntegerProgramSpecification.all_integer(2)
    return objective, np.zeros(2), constraints, spec


@pytest.fixture
def gomory_ilp():
    """max x2  s.t.  3x1 + 2x2 <= 6,  -3x1 + 2x2 <= 0,  x integer >= 0.

    LP optimum (1, 1.5); integer optimum value 1, e.g. at (1, 1).
    """
    objective = LinearFunction([0.0, 1.0])
    constraints = [
        Constraint.linear_inequality([3.0, 2.0], 6.0),
        Constraint.linear_inequality([-3.0, 2.0], 0.0),
    ]
    spec = IntegerProgramSpecification.all_integer(2)
    return objective, np.zeros(2), constraints, spec
