"""JAX-native graph model for expected-cost routing under edge failures.

A directed graph where every edge has a traversal cost and a probability of
failure. A failed attempt leaves the traveler at the edge's origin; a
successful one moves it to the edge's target.

Graph Representation:
- Per-node padded adjacency: targets[u, k], costs[u, k], failure_probs[u, k]
- mask[u, k] = True if slot k of node u holds a real edge
- Slots are filled in input order, so parallel edges stay distinct actions

State (traversal): current node index
Decision: outgoing edge slot of the current node
Exogenous: whether the traversal attempt succeeded
"""

import math
from functools import partial
from typing import List, NamedTuple, Optional, Sequence

import chex
import jax
import jax.numpy as jnp
from jaxtyping import Array, Bool, Float, Int, PRNGKeyArray


# Type aliases
State = Int[Array, ""]  # Current node
Decision = Int[Array, ""]  # Edge slot of current node (-1 = no move)
Reward = Float[Array, ""]  # Negative cost paid
Key = PRNGKeyArray

_FLOAT = jnp.float64


class MalformedInputError(ValueError):
    """Raised when a graph description cannot describe a valid network."""


class Edge(NamedTuple):
    """A directed edge as given in the input."""

    origin: int
    target: int
    cost: float
    failure_probability: float


class ExogenousInfo(NamedTuple):
    """Exogenous information for one traversal attempt.

    Attributes:
        succeeded: True if the attempted edge was traversed.
    """
    succeeded: Bool[Array, ""]


@chex.dataclass(frozen=True)
class ExpectedCostConfig:
    """Configuration for the expected-cost solver.

    Attributes:
        tolerance: Sweep stops once no value moves by more than this.
        max_iterations: Ceiling on full sweeps before reporting non-convergence.
        charge_on_failure: Charge the edge cost on failed attempts too.
    """
    tolerance: float = 1e-8
    max_iterations: int = 10_000
    charge_on_failure: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.tolerance > 0.0:
            raise ValueError(f"tolerance must be > 0, got {self.tolerance}")
        if self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be >= 1, got {self.max_iterations}"
            )


@chex.dataclass(frozen=True)
class Graph:
    """Immutable padded adjacency representation of the network.

    Build with :meth:`Graph.from_edges`; slot ``k`` of node ``u`` is the
    ``k``-th edge listed with origin ``u``.
    """
    targets: Int[Array, "n k"]
    costs: Float[Array, "n k"]
    failure_probs: Float[Array, "n k"]
    mask: Bool[Array, "n k"]

    @classmethod
    def from_edges(cls, n_nodes: int, edges: Sequence[Edge]) -> "Graph":
        """Build a graph from an edge list.

        Args:
            n_nodes: Number of nodes N; nodes are 0..N-1.
            edges: Directed edges (origin, target, cost, failure_probability).

        Returns:
            Graph with one adjacency row per node.

        Raises:
            MalformedInputError: On out-of-range nodes, negative or
                non-finite costs, or probabilities outside [0, 1].
        """
        if n_nodes < 1:
            raise MalformedInputError(f"n_nodes must be >= 1, got {n_nodes}")

        rows: List[List[Edge]] = [[] for _ in range(n_nodes)]
        for i, edge in enumerate(edges):
            origin, target = int(edge.origin), int(edge.target)
            cost, prob = float(edge.cost), float(edge.failure_probability)
            if not (0 <= origin < n_nodes and 0 <= target < n_nodes):
                raise MalformedInputError(
                    f"edge {i} ({origin}->{target}) references a node outside "
                    f"[0, {n_nodes})"
                )
            if not math.isfinite(cost) or cost < 0:
                raise MalformedInputError(
                    f"edge {i} cost must be finite and non-negative, got {cost}"
                )
            if not 0.0 <= prob <= 1.0:
                raise MalformedInputError(
                    f"edge {i} failure probability must be in [0, 1], got {prob}"
                )
            rows[origin].append(Edge(origin, target, cost, prob))

        width = max(1, max(len(row) for row in rows))
        pad = [Edge(0, 0, 0.0, 1.0)]

        def column(field: str) -> list:
            return [
                [getattr(e, field) for e in row + pad * (width - len(row))]
                for row in rows
            ]

        return cls(
            targets=jnp.asarray(column("target"), dtype=jnp.int32),
            costs=jnp.asarray(column("cost"), dtype=_FLOAT),
            failure_probs=jnp.asarray(column("failure_probability"), dtype=_FLOAT),
            mask=jnp.asarray(
                [[k < len(row) for k in range(width)] for row in rows],
                dtype=bool,
            ),
        )

    @property
    def n_nodes(self) -> int:
        return int(self.targets.shape[0])

    @property
    def n_edges(self) -> int:
        return int(jnp.sum(self.mask))

    def out_degree(self, node: int) -> int:
        return int(jnp.sum(self.mask[node]))

    def edges_from(self, node: int) -> List[Edge]:
        """Outgoing edges of ``node`` in slot order."""
        return [
            Edge(
                node,
                int(self.targets[node, k]),
                float(self.costs[node, k]),
                float(self.failure_probs[node, k]),
            )
            for k in range(self.out_degree(node))
        ]

    def check_node(self, node: int, name: str = "node") -> None:
        if not 0 <= node < self.n_nodes:
            raise MalformedInputError(
                f"{name} must be in [0, {self.n_nodes}), got {node}"
            )


@chex.dataclass(frozen=True)
class TraversalConfig:
    """Configuration for Monte Carlo traversal of a graph.

    Attributes:
        source: Starting node index.
        destination: Goal node index.
        horizon: Maximum number of attempts per episode.
        n_episodes: Number of episodes used for cost estimates.
        charge_on_failure: Charge the edge cost on failed attempts too.
    """
    source: int = 0
    destination: int = -1  # -1 means last node
    horizon: int = 200
    n_episodes: int = 2_000
    charge_on_failure: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {self.horizon}")
        if self.n_episodes < 1:
            raise ValueError(f"n_episodes must be >= 1, got {self.n_episodes}")


class TraversalModel:
    """Traversal environment over a failure-prone graph.

    The traveler sits on a node, picks one of its outgoing edge slots and
    attempts it. The attempt succeeds with probability ``1 - p``. Once the
    destination is reached every further step is a zero-cost no-op.

    Example:
        >>> graph = Graph.from_edges(2, [Edge(0, 1, 5.0, 0.5)])
        >>> model = TraversalModel(graph, TraversalConfig(source=0, destination=1))
        >>> state = model.init_state()
    """

    def __init__(self, graph: Graph, config: TraversalConfig) -> None:
        """Initialize model.

        Args:
            graph: Network to traverse.
            config: Traversal configuration.
        """
        self.graph = graph
        self.config = config

        # Resolve destination (-1 means last node)
        self.destination = (
            config.destination if config.destination >= 0
            else graph.n_nodes - 1
        )
        self.source = config.source
        graph.check_node(self.source, "source")
        graph.check_node(self.destination, "destination")

    def init_state(self) -> State:
        """Start at the source node."""
        return jnp.asarray(self.source, dtype=jnp.int32)

    def reset(self, *, key: Key) -> State:
        del key
        return self.init_state()

    def _slot(self, state: State, decision: Decision):
        slot = jnp.clip(decision, 0, self.graph.targets.shape[1] - 1)
        valid = (
            (decision >= 0)
            & self.graph.mask[state, slot]
            & ~self.is_terminal(state)
        )
        return slot, valid

    def sample_exogenous(
        self,
        key: Key,
        state: State,
        decision: Decision,
    ) -> ExogenousInfo:
        """Draw the outcome of attempting ``decision`` from ``state``.

        Args:
            key: Random key.
            state: Current node.
            decision: Edge slot being attempted.

        Returns:
            Success flag for the attempt.
        """
        slot, _ = self._slot(state, decision)
        p = self.graph.failure_probs[state, slot]
        return ExogenousInfo(succeeded=jax.random.uniform(key) >= p)

    @partial(jax.jit, static_argnums=(0,))
    def transition(
        self,
        state: State,
        decision: Decision,
        exog: ExogenousInfo,
    ) -> State:
        """Move along the edge on success, stay put otherwise."""
        slot, valid = self._slot(state, decision)
        moved = valid & exog.succeeded
        return jnp.where(moved, self.graph.targets[state, slot], state)

    @partial(jax.jit, static_argnums=(0,))
    def reward(
        self,
        state: State,
        decision: Decision,
        exog: ExogenousInfo,
    ) -> Reward:
        """Negative cost paid for the attempt."""
        slot, valid = self._slot(state, decision)
        paid = valid & (exog.succeeded | self.config.charge_on_failure)
        return jnp.where(paid, -self.graph.costs[state, slot], 0.0)

    def step(self, state: State, decision: Decision, *, key: Key):
        exog = self.sample_exogenous(key, state, decision)
        return (
            self.transition(state, decision, exog),
            self.reward(state, decision, exog),
        )

    def is_terminal(self, state: State) -> Bool[Array, ""]:
        return state == self.destination

    def is_valid_decision(self, state: State, decision: Decision) -> Bool[Array, ""]:
        """Check if the decision names a real outgoing edge."""
        return self._slot(state, decision)[1]

    def neighbors(self, node: int) -> List[int]:
        return sorted({e.target for e in self.graph.edges_from(node)})


def edge_values(
    graph: Graph,
    values: Float[Array, "n"],
    charge_on_failure: bool = False,
) -> Float[Array, "n k"]:
    """Expected cost of every edge slot given fixed value estimates.

    ``(1 - p) * (c + V[target]) + p * V[origin]``, plus ``p * c`` when failed
    attempts are charged. Slots that are padding are ``inf``.
    """
    p = graph.failure_probs
    own = values[:, None]
    cost = (1.0 - p) * (graph.costs + values[graph.targets]) + p * own
    if charge_on_failure:
        cost = cost + p * graph.costs
    return jnp.where(graph.mask, cost, jnp.inf)


def node_names(n_nodes: int, names: Optional[Sequence[str]] = None) -> List[str]:
    if names is None:
        return [f"Node {i}" for i in range(n_nodes)]
    if len(names) != n_nodes:
        raise MalformedInputError(
            f"expected {n_nodes} node names, got {len(names)}"
        )
    return list(names)
