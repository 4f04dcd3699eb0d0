"""Plain-text network description and result formatting.

Input format (whitespace separated)::

    N M
    u v cost failProb      (M lines)
    source destination
"""

from typing import List, NamedTuple, Optional

from .model import Edge, Graph, MalformedInputError, node_names
from .solver import Solution, SolveStatus


class Network(NamedTuple):
    """A graph together with the queried endpoints."""

    graph: Graph
    source: int
    destination: int
    names: Optional[List[str]] = None


def _next(tokens: List[str], pos: int, kind: type, what: str):
    if pos >= len(tokens):
        raise MalformedInputError(f"unexpected end of input, expected {what}")
    try:
        return kind(tokens[pos])
    except ValueError:
        raise MalformedInputError(
            f"expected {what} ({kind.__name__}), got {tokens[pos]!r}"
        ) from None


def parse_network(text: str) -> Network:
    """Parse the whitespace-separated network format.

    Args:
        text: Full input text.

    Returns:
        Network with the constructed graph and the query endpoints.

    Raises:
        MalformedInputError: On truncated, non-numeric or out-of-range input.
    """
    tokens = text.split()
    n_nodes = _next(tokens, 0, int, "node count")
    n_edges = _next(tokens, 1, int, "edge count")
    if n_edges < 0:
        raise MalformedInputError(f"edge count must be >= 0, got {n_edges}")

    edges = []
    pos = 2
    for i in range(n_edges):
        edges.append(
            Edge(
                origin=_next(tokens, pos, int, f"origin of edge {i}"),
                target=_next(tokens, pos + 1, int, f"target of edge {i}"),
                cost=_next(tokens, pos + 2, float, f"cost of edge {i}"),
                failure_probability=_next(
                    tokens, pos + 3, float, f"failure probability of edge {i}"
                ),
            )
        )
        pos += 4

    source = _next(tokens, pos, int, "source")
    destination = _next(tokens, pos + 1, int, "destination")
    if pos + 2 != len(tokens):
        raise MalformedInputError(
            f"trailing input after destination: {tokens[pos + 2]!r}"
        )

    graph = Graph.from_edges(n_nodes, edges)
    graph.check_node(source, "source")
    graph.check_node(destination, "destination")
    return Network(graph, source, destination)


def format_solution(solution: Solution) -> str:
    """Two-decimal expected cost, or a marker for the failure outcomes."""
    if solution.status is SolveStatus.CONVERGED:
        return f"{solution.expected_cost:.2f}"
    if solution.status is SolveStatus.UNREACHABLE:
        return "unreachable"
    return f"did not converge after {solution.iterations} sweeps"


def sample_network() -> Network:
    """Five-planet demonstration network, Earth to Zenith."""
    names = ["Earth", "Mars", "Jupiter", "Saturn", "Zenith"]
    edges = [
        Edge(0, 1, 10.0, 0.1),
        Edge(0, 2, 15.0, 0.2),
        Edge(1, 3, 12.0, 0.1),
        Edge(1, 2, 5.0, 0.05),
        Edge(2, 4, 20.0, 0.15),
        Edge(3, 4, 8.0, 0.3),
    ]
    graph = Graph.from_edges(len(names), edges)
    return Network(graph, 0, 4, node_names(len(names), names))
