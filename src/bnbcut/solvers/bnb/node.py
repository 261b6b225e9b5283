"""
Branch-and-Bound Node, Queue and Statistics

This module contains the core data structures of the branch-and-bound search:
tree nodes, the priority queue that orders them, and solve statistics.

Every node owns the full tuple of constraints defining its subproblem (the
original constraints plus branching rows plus any cuts added at or above it),
so nodes can be solved independently and never share mutable state.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import autograd.numpy as np

from ...constants import NodeSelection
from ...constraint import Constraint
from ..base import TableauInfo


@dataclass(frozen=True, eq=False)
class BranchNode:
    """
    A node in the branch-and-bound tree.

    Bound semantics:
    - `relaxation_bound` is the node's own relaxation objective, a valid bound
      for every integer-feasible point satisfying `constraints`.
    - A node without `relaxation_solution` is infeasible (or its relaxation
      failed) and is always pruned.
    """

    node_id: int
    depth: int
    constraints: Tuple[Constraint, ...]
    relaxation_bound: float
    relaxation_solution: Optional[np.ndarray] = None
    parent_id: Optional[int] = None
    branched_variable: Optional[int] = None
    tableau: Optional[TableauInfo] = None

    @property
    def is_feasible(self) -> bool:
        return self.relaxation_solution is not None


def is_better_bound(a: float, b: float, minimize: bool) -> bool:
    """Whether bound `a` is strictly tighter than `b` for the given sense."""
    return a < b if minimize else a > b


def can_improve(bound: float, incumbent: float, tolerance: float, minimize: bool) -> bool:
    """Whether a node with `bound` could beat `incumbent` by more than `tolerance`."""
    if minimize:
        return bound < incumbent - tolerance
    return bound > incumbent + tolerance


class NodeQueue:
    """
    Priority queue of open nodes.

    Backed by a binary heap; the key depends on the node selection strategy.
    Ties fall back to insertion order.
    """

    def __init__(self, strategy: NodeSelection | str = NodeSelection.BEST_BOUND, minimize: bool = True):
        self.strategy = NodeSelection(strategy)
        self.minimize = minimize
        self._heap: List[Tuple[float, int, BranchNode]] = []
        self._counter = itertools.count()

    def _key(self, node: BranchNode) -> float:
        if self.strategy == NodeSelection.DEPTH_FIRST:
            return -node.depth
        if self.strategy == NodeSelection.BREADTH_FIRST:
            return node.depth
        # best_bound; best_estimate has no estimate of its own
        return node.relaxation_bound if self.minimize else -node.relaxation_bound

    def is_better(self, a: BranchNode, b: BranchNode) -> bool:
        """Whether `a` would be selected before `b` (ignoring insertion order)."""
        return self._key(a) < self._key(b)

    def push(self, node: BranchNode) -> None:
        heapq.heappush(self._heap, (self._key(node), next(self._counter), node))

    def pop(self) -> BranchNode:
        if not self._heap:
            raise IndexError("pop from empty NodeQueue")
        return heapq.heappop(self._heap)[2]

    def peek(self) -> Optional[BranchNode]:
        return self._heap[0][2] if self._heap else None

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def __iter__(self):
        return (entry[2] for entry in self._heap)

    def best_bound(self) -> Optional[float]:
        """Tightest relaxation bound among queued nodes, or None when empty."""
        if not self._heap:
            return None
        if self.strategy in (NodeSelection.BEST_BOUND, NodeSelection.BEST_ESTIMATE):
            return self._heap[0][2].relaxation_bound
        bounds = [entry[2].relaxation_bound for entry in self._heap]
        return min(bounds) if self.minimize else max(bounds)

    def prune(self, incumbent: float, tolerance: float) -> int:
        """Drop nodes that cannot beat `incumbent` by more than `tolerance`."""
        kept = [
            entry
            for entry in self._heap
            if can_improve(entry[2].relaxation_bound, incumbent, tolerance, self.minimize)
        ]
        removed = len(self._heap) - len(kept)
        if removed:
            heapq.heapify(kept)
            self._heap = kept
        return removed


@dataclass
class BBStats:
    """Statistics from the branch-and-bound solve."""

    nodes_explored: int = 0
    nodes_pruned: int = 0
    nodes_infeasible: int = 0
    max_depth: int = 0
    relaxation_solves: int = 0
    relaxation_errors: int = 0
    subtrees_lost: int = 0
    incumbent_updates: int = 0
    heuristic_solutions: int = 0
    strong_branch_calls: int = 0
    sos_branches: int = 0
    cuts_added: int = 0
    bound_history: List[float] = field(default_factory=list)
    gap_history: List[float] = field(default_factory=list)
