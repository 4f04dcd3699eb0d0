"""Expected-cost routing on graphs with failure-prone edges.

This module computes, for a directed graph whose edges carry a cost and a
failure probability, the minimum expected cost to reach a destination:
- A failed attempt leaves the traveler where it was, at no cost
- The best edge is chosen at every node
- Expected costs are the fixed point of Gauss-Seidel value iteration

Key components:
- Graph / Edge: padded adjacency representation of the network
- ExpectedCostSolver: value iteration with explicit unbounded tags
- Solution / SolveStatus: converged, unreachable or non-convergence results
- GreedyPolicy, RandomPolicy, extract_route: decisions from solved values
- TraversalModel: Monte Carlo environment to check solved costs

Example:
    >>> from problems.expected_cost import Edge, Graph, solve
    >>>
    >>> graph = Graph.from_edges(2, [Edge(0, 1, cost=5.0, failure_probability=0.5)])
    >>> solution = solve(graph, destination=1, source=0)
    >>> solution.expected_cost
    5.0
"""

import jax

# Expected costs are reported to the cent; float32 loses that on large sums
jax.config.update("jax_enable_x64", True)

from .model import (
    Edge,
    Graph,
    ExpectedCostConfig,
    TraversalConfig,
    TraversalModel,
    ExogenousInfo,
    MalformedInputError,
    State,
    Decision,
    Reward,
    edge_values,
)

from .solver import (
    ExpectedCostSolver,
    SolverState,
    Solution,
    SolveStatus,
    solve,
)

from .policy import (
    GreedyPolicy,
    RandomPolicy,
    greedy_actions,
    extract_route,
)

from .io import (
    Network,
    parse_network,
    format_solution,
    sample_network,
)

__all__ = [
    # Model
    "Edge",
    "Graph",
    "ExpectedCostConfig",
    "TraversalConfig",
    "TraversalModel",
    "ExogenousInfo",
    "MalformedInputError",
    "State",
    "Decision",
    "Reward",
    "edge_values",
    # Solver
    "ExpectedCostSolver",
    "SolverState",
    "Solution",
    "SolveStatus",
    "solve",
    # Policies
    "GreedyPolicy",
    "RandomPolicy",
    "greedy_actions",
    "extract_route",
    # Text interface
    "Network",
    "parse_network",
    "format_solution",
    "sample_network",
]
