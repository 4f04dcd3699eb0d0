"""Gauss-Seidel value iteration for minimum expected cost-to-destination.

For every node ``u`` other than the destination the solver repeatedly applies

    V[u] <- min_e (1 - p_e) * (c_e + V[target_e]) + p_e * V[u]

sweeping nodes in a fixed order and reading values already updated earlier in
the same sweep. ``V[u]`` appears on both sides, so the values are the fixed
point of the sweep rather than the output of a single pass.

Unreached nodes carry an explicit ``bounded=False`` tag instead of a large
sentinel number. While ``u`` is unbounded the self term of an edge is
resolved by that edge's own fixed point ``success / (1 - p)``; an edge that
always fails cannot bound a node.
"""

import enum
import logging
from functools import partial
from typing import List, NamedTuple, Optional, Sequence

import jax
import jax.numpy as jnp
from jaxtyping import Array, Bool, Float, Int

from .model import ExpectedCostConfig, Graph, MalformedInputError

logger = logging.getLogger(__name__)

# Type aliases
Values = Float[Array, "n"]
Bounded = Bool[Array, "n"]


class SolveStatus(enum.Enum):
    CONVERGED = "converged"
    UNREACHABLE = "unreachable"
    NON_CONVERGENCE = "non_convergence"


class SolverState(NamedTuple):
    """Expected-cost vector plus loop bookkeeping.

    Attributes:
        values: Current estimates; meaningless where ``bounded`` is False.
        bounded: True once a finite expected cost has been established.
        delta: Largest change in the last sweep (inf when a node became bounded).
        iteration: Number of sweeps performed.
    """
    values: Values
    bounded: Bounded
    delta: Float[Array, ""]
    iteration: Int[Array, ""]


class Solution(NamedTuple):
    """Result of one solve.

    ``expected_cost`` is only set when ``status`` is CONVERGED. On
    NON_CONVERGENCE ``values`` hold the last upper bounds reached.
    """
    status: SolveStatus
    source: int
    destination: int
    expected_cost: Optional[float]
    values: Values
    bounded: Bounded
    iterations: int
    delta: float

    @property
    def converged(self) -> bool:
        """True once sweeping stopped within tolerance.

        UNREACHABLE counts as converged; only NON_CONVERGENCE does not.
        """
        return self.status is not SolveStatus.NON_CONVERGENCE

    def cost_of(self, node: int) -> Optional[float]:
        """Expected cost from ``node``, or None if it has none."""
        if not self.converged or not bool(self.bounded[node]):
            return None
        return float(self.values[node])

    def expected_costs(self) -> List[Optional[float]]:
        return [self.cost_of(u) for u in range(self.values.shape[0])]


class ExpectedCostSolver:
    """Value-iteration solver for one graph and destination.

    ``sweep`` and ``run`` are compiled per solver instance; reuse one solver
    to query several sources of the same graph.

    Example:
        >>> graph = Graph.from_edges(2, [Edge(0, 1, 5.0, 0.0)])
        >>> solver = ExpectedCostSolver(graph, destination=1)
        >>> solver.solve(source=0).expected_cost
        5.0
    """

    def __init__(
        self,
        graph: Graph,
        destination: int,
        config: Optional[ExpectedCostConfig] = None,
        order: Optional[Sequence[int]] = None,
    ) -> None:
        """Initialize solver.

        Args:
            graph: Network to solve.
            destination: Destination node index.
            config: Solver configuration (defaults if None).
            order: Sweep order, a permutation of all node indices.
                Ascending index if None.
        """
        graph.check_node(destination, "destination")
        self.graph = graph
        self.destination = destination
        self.config = config if config is not None else ExpectedCostConfig()

        n = graph.n_nodes
        if order is None:
            order = range(n)
        order = [int(u) for u in order]
        if sorted(order) != list(range(n)):
            raise MalformedInputError(
                f"order must be a permutation of 0..{n - 1}, got {order}"
            )
        # Destination is never updated
        self.order = jnp.asarray(
            [u for u in order if u != destination], dtype=jnp.int32
        )

    def init_state(self) -> SolverState:
        """Destination at 0, every other node unbounded."""
        n = self.graph.n_nodes
        bounded = jnp.zeros(n, dtype=bool).at[self.destination].set(True)
        return SolverState(
            values=jnp.zeros(n, dtype=self.graph.costs.dtype),
            bounded=bounded,
            delta=jnp.asarray(jnp.inf, dtype=self.graph.costs.dtype),
            iteration=jnp.asarray(0, dtype=jnp.int32),
        )

    def _update_node(self, u: Int[Array, ""], values: Values, bounded: Bounded):
        """Apply the update rule to node ``u``.

        Returns:
            (new value, new bounded flag, change).
        """
        g = self.graph
        targets, p = g.targets[u], g.failure_probs[u]
        costs = g.costs[u]

        success = (1.0 - p) * (costs + values[targets])
        if self.config.charge_on_failure:
            success = success + p * costs

        v_u, b_u = values[u], bounded[u]
        retryable = p < 1.0
        usable = g.mask[u] & bounded[targets] & (b_u | retryable)

        # Self term: current estimate once bounded, edge's own fixed point before
        safe_denominator = jnp.where(retryable, 1.0 - p, 1.0)
        candidates = jnp.where(b_u, success + p * v_u, success / safe_denominator)
        candidates = jnp.where(usable, candidates, jnp.inf)

        found = jnp.any(usable)
        best = jnp.min(candidates)

        new_v = jnp.where(b_u, jnp.minimum(v_u, best), jnp.where(found, best, v_u))
        new_b = b_u | found
        change = jnp.where(b_u, v_u - new_v, jnp.where(found, jnp.inf, 0.0))
        return new_v, new_b, change

    @partial(jax.jit, static_argnums=(0,))
    def sweep(self, state: SolverState) -> SolverState:
        """One in-place pass over every node except the destination.

        Args:
            state: Current solver state.

        Returns:
            State after the sweep, with ``delta`` set to the largest change.
        """
        def body(i, carry):
            values, bounded, delta = carry
            u = self.order[i]
            new_v, new_b, change = self._update_node(u, values, bounded)
            return (
                values.at[u].set(new_v),
                bounded.at[u].set(new_b),
                jnp.maximum(delta, change),
            )

        zero = jnp.zeros((), dtype=state.values.dtype)
        values, bounded, delta = jax.lax.fori_loop(
            0, self.order.shape[0], body, (state.values, state.bounded, zero)
        )
        return SolverState(values, bounded, delta, state.iteration + 1)

    @partial(jax.jit, static_argnums=(0,))
    def run(self, state: SolverState) -> SolverState:
        """Sweep until the largest change is within tolerance or the ceiling hits."""
        tolerance = self.config.tolerance
        max_iterations = self.config.max_iterations

        def cond(s: SolverState):
            return (s.delta > tolerance) & (s.iteration < max_iterations)

        return jax.lax.while_loop(cond, self.sweep, state)

    def solve(self, source: int) -> Solution:
        """Compute the expected cost from ``source`` to the destination.

        Args:
            source: Query node index.

        Returns:
            Solution carrying the status and the full expected-cost vector.
        """
        self.graph.check_node(source, "source")
        logger.debug(
            "Solving expected cost %d -> %d on %d nodes / %d edges",
            source, self.destination, self.graph.n_nodes, self.graph.n_edges,
        )

        state = self.run(self.init_state())
        iterations = int(state.iteration)
        delta = float(state.delta)

        if delta > self.config.tolerance:
            logger.warning(
                "No convergence after %d sweeps (last change %g)",
                iterations, delta,
            )
            status = SolveStatus.NON_CONVERGENCE
            expected_cost = None
        elif not bool(state.bounded[source]):
            logger.info("Node %d cannot reach node %d", source, self.destination)
            status = SolveStatus.UNREACHABLE
            expected_cost = None
        else:
            status = SolveStatus.CONVERGED
            expected_cost = float(state.values[source])
            logger.info(
                "Converged in %d sweeps: expected cost %d -> %d = %.6f",
                iterations, source, self.destination, expected_cost,
            )

        return Solution(
            status=status,
            source=source,
            destination=self.destination,
            expected_cost=expected_cost,
            values=state.values,
            bounded=state.bounded,
            iterations=iterations,
            delta=delta,
        )


def solve(
    graph: Graph,
    destination: int,
    source: int,
    config: Optional[ExpectedCostConfig] = None,
) -> Solution:
    """Minimum expected cost from ``source`` to ``destination``."""
    return ExpectedCostSolver(graph, destination, config).solve(source)
