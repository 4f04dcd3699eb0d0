"""Routing policies for failure-prone graphs.

This module turns solved expected costs into decisions:
- Greedy: attempt the edge achieving the minimum expected cost
- Random: attempt a uniformly random outgoing edge (baseline)
- extract_route: node sequence followed on successful greedy traversals
"""

from functools import partial
from typing import List, Optional

import jax
import jax.numpy as jnp
from jaxtyping import Array, Int, PRNGKeyArray, PyTree

from .model import Graph, TraversalModel, edge_values
from .solver import Solution


# Type aliases
State = Int[Array, ""]
Decision = Int[Array, ""]
Key = PRNGKeyArray


def greedy_actions(
    graph: Graph,
    solution: Solution,
    charge_on_failure: bool = False,
) -> Int[Array, "n"]:
    """Best edge slot for every node under the solved values.

    Args:
        graph: Solved network.
        solution: Converged solution for that network.
        charge_on_failure: Must match the solver configuration.

    Returns:
        Slot index per node; -1 for the destination and unbounded nodes.
    """
    bounded = solution.bounded
    scores = edge_values(graph, solution.values, charge_on_failure)

    # Never pick an edge into an unbounded node or one that always fails
    usable = graph.mask & bounded[graph.targets] & (graph.failure_probs < 1.0)
    scores = jnp.where(usable, scores, jnp.inf)

    # Ties (e.g. zero-cost edges) go to the target closest to the destination
    lowest = jnp.min(scores, axis=1, keepdims=True)
    slack = 1e-6 * jnp.maximum(1.0, jnp.abs(jnp.where(jnp.isfinite(lowest), lowest, 0.0)))
    tied = usable & (scores <= lowest + slack)
    target_values = jnp.where(tied, solution.values[graph.targets], jnp.inf)

    best = jnp.argmin(target_values, axis=1).astype(jnp.int32)
    has_move = bounded & jnp.any(usable, axis=1)
    has_move = has_move.at[solution.destination].set(False)
    return jnp.where(has_move, best, -1)


def extract_route(
    graph: Graph,
    solution: Solution,
    charge_on_failure: bool = False,
) -> List[int]:
    """Follow greedy choices from the source until the destination.

    Returns:
        Node indices from source to destination, or [] when the source has no
        finite expected cost.
    """
    if solution.cost_of(solution.source) is None:
        return []

    actions = greedy_actions(graph, solution, charge_on_failure)
    route = [solution.source]
    node = solution.source
    while node != solution.destination:
        slot = int(actions[node])
        # A route longer than N nodes is circling a zero-cost plateau
        if slot < 0 or len(route) > graph.n_nodes:
            return []
        node = int(graph.targets[node, slot])
        route.append(node)
    return route


class GreedyPolicy:
    """Greedy policy over a solved expected-cost vector.

    Attempts, at every node, the edge slot that minimizes
    (1 - p) * (c + V[target]) + p * V[node].

    Example:
        >>> policy = GreedyPolicy(graph, solution)
    """

    def __init__(
        self,
        graph: Graph,
        solution: Solution,
        charge_on_failure: bool = False,
    ) -> None:
        """Initialize policy.

        Args:
            graph: Solved network.
            solution: Solution whose values drive the choices.
            charge_on_failure: Must match the solver configuration.
        """
        self.actions = greedy_actions(graph, solution, charge_on_failure)

    @partial(jax.jit, static_argnames=["self", "model"])
    def __call__(
        self,
        params: Optional[PyTree],
        state: State,
        key: Key,
        model: TraversalModel,
    ) -> Decision:
        """Look up the greedy slot of the current node.

        Args:
            params: Unused.
            state: Current node.
            key: Random key (unused for greedy).
            model: Model instance (unused, kept for a uniform interface).

        Returns:
            Edge slot to attempt.
        """
        return self.actions[state]

    def act(self, state: State, *, key: Key) -> Decision:
        return self.actions[state]


class RandomPolicy:
    """Random policy over outgoing edges.

    Selects uniformly at random among the current node's real edges.
    Useful as a baseline for comparison.

    Example:
        >>> policy = RandomPolicy(model)
    """

    def __init__(self, model: TraversalModel) -> None:
        self.model = model

    @partial(jax.jit, static_argnames=["self", "model"])
    def __call__(
        self,
        params: Optional[PyTree],
        state: State,
        key: Key,
        model: TraversalModel,
    ) -> Decision:
        """Select a random real edge slot (or -1 without any).

        Args:
            params: Unused.
            state: Current node.
            key: Random key.
            model: Model instance for graph access.

        Returns:
            Edge slot index.
        """
        valid = model.graph.mask[state]
        # Uniform logits over real slots; avoids boolean indexing under jit
        logits = jnp.where(valid, 0.0, -jnp.inf)
        slot = jax.random.categorical(key, logits).astype(jnp.int32)
        return jnp.where(jnp.any(valid), slot, -1)

    def act(self, state: State, *, key: Key) -> Decision:
        return self(None, state, key, self.model)
