"""Tests for node ordering and pruning."""
import autograd.numpy as np
import pytest

from bnbcut import BranchNode, NodeQueue, NodeSelection
from bnbcut.solvers.bnb.node import can_improve, is_better_bound


def _node(node_id, depth, bound, solution=True):
    return BranchNode(
        node_id=node_id,
        depth=depth,
        constraints=(),
        relaxation_bound=bound,
        relaxation_solution=np.zeros(1) if solution else None,
    )


def _drain(queue):
    order = []
    while queue:
        order.append(queue.pop().node_id)
    return order


def test_best_bound_minimize():
    queue = NodeQueue(NodeSelection.BEST_BOUND, minimize=True)
    for node in (_node(0, 0, 5.0), _node(1, 1, 2.0), _node(2, 1, 3.0)):
        queue.push(node)
    assert queue.best_bound() == 2.0
    assert _drain(queue) == [1, 2, 0]


def test_best_bound_maximize():
    queue = NodeQueue("best_bound", minimize=False)
    for node in (_node(0, 0, 5.0), _node(1, 1, 2.0), _node(2, 1, 7.0)):
        queue.push(node)
    assert queue.best_bound() == 7.0
    assert _drain(queue) == [2, 0, 1]


def test_depth_first_prefers_deepest():
    queue = NodeQueue(NodeSelection.DEPTH_FIRST)
    for node in (_node(0, 0, 1.0), _node(1, 2, 9.0), _node(2, 1, 0.0)):
        queue.push(node)
    assert queue.peek().node_id == 1
    assert _drain(queue) == [1, 2, 0]


def test_breadth_first_prefers_shallowest():
    queue = NodeQueue(NodeSelection.BREADTH_FIRST)
    for node in (_node(0, 2, 1.0), _node(1, 0, 9.0), _node(2, 1, 0.0)):
        queue.push(node)
    assert _drain(queue) == [1, 2, 0]


def test_ties_pop_in_insertion_order():
    queue = NodeQueue(NodeSelection.BEST_BOUND)
    for k in range(4):
        queue.push(_node(k, 1, 1.0))
    assert _drain(queue) == [0, 1, 2, 3]


def test_best_bound_scans_for_depth_strategies():
    queue = NodeQueue(NodeSelection.DEPTH_FIRST, minimize=True)
    queue.push(_node(0, 0, 4.0))
    queue.push(_node(1, 3, 6.0))
    queue.push(_node(2, 1, -1.0))
    assert queue.best_bound() == -1.0


def test_empty_queue():
    queue = NodeQueue()
    assert len(queue) == 0
    assert not queue
    assert queue.peek() is None
    assert queue.best_bound() is None
    with pytest.raises(IndexError):
        queue.pop()


def test_prune_removes_dominated_nodes():
    queue = NodeQueue(NodeSelection.BEST_BOUND, minimize=True)
    for node in (_node(0, 0, 1.0), _node(1, 1, 4.9), _node(2, 1, 5.0), _node(3, 1, 6.0)):
        queue.push(node)

    assert queue.prune(incumbent=5.0, tolerance=1e-6) == 2
    assert sorted(node.node_id for node in queue) == [0, 1]
    assert queue.pop().node_id == 0


def test_is_better():
    queue = NodeQueue(NodeSelection.BEST_BOUND, minimize=False)
    assert queue.is_better(_node(0, 0, 3.0), _node(1, 0, 2.0))
    assert not queue.is_better(_node(0, 0, 2.0), _node(1, 0, 2.0))


def test_bound_helpers():
    assert is_better_bound(1.0, 2.0, minimize=True)
    assert is_better_bound(2.0, 1.0, minimize=False)
    assert can_improve(4.0, 5.0, 1e-6, minimize=True)
    assert not can_improve(5.0, 5.0, 1e-6, minimize=True)
    assert can_improve(6.0, 5.0, 1e-6, minimize=False)


def test_infeasible_node():
    assert not _node(0, 0, float("inf"), solution=False).is_feasible
    assert _node(0, 0, 1.0).is_feasible
