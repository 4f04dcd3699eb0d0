"""Solve an expected-cost routing problem from a text description.

Reads ``N M``, then ``M`` lines ``u v cost failProb``, then ``source
destination`` and prints the minimum expected cost with two decimals. With
``--sample`` the five-planet demonstration network is solved instead and the
greedy policy is checked by Monte Carlo simulation.

Example:
    $ echo "2 1  0 1 5 0.5  0 1" | python examples/solve_expected_cost.py
    5.00
    $ python examples/solve_expected_cost.py --sample
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

import jax

from core.simulator import estimate_expected_cost
from problems.expected_cost import (
    ExpectedCostConfig,
    ExpectedCostSolver,
    GreedyPolicy,
    MalformedInputError,
    Network,
    RandomPolicy,
    TraversalConfig,
    TraversalModel,
    extract_route,
    format_solution,
    parse_network,
    sample_network,
)


def describe(network: Network, config: ExpectedCostConfig, key: jax.Array) -> None:
    """Print the per-node costs, the greedy route and simulated costs."""
    names = network.names or [str(u) for u in range(network.graph.n_nodes)]
    solver = ExpectedCostSolver(network.graph, network.destination, config)
    solution = solver.solve(network.source)

    print("Expected Cost Routing")
    print("=" * 70)
    print(f"Source: {names[network.source]}  Destination: {names[network.destination]}")
    print(f"Status: {solution.status.value} after {solution.iterations} sweeps")
    print()
    for u, cost in enumerate(solution.expected_costs()):
        shown = "unreachable" if cost is None else f"{cost:10.2f}"
        print(f"  {names[u]:<12} {shown}")

    route = extract_route(network.graph, solution, config.charge_on_failure)
    if route:
        print(f"\nRoute: {' -> '.join(names[u] for u in route)}")
    print(f"Expected cost: {format_solution(solution)}")

    if solution.expected_cost is None:
        return

    model = TraversalModel(
        network.graph,
        TraversalConfig(
            source=network.source,
            destination=network.destination,
            charge_on_failure=config.charge_on_failure,
        ),
    )
    policies = {
        "Greedy": GreedyPolicy(network.graph, solution, config.charge_on_failure),
        "Random": RandomPolicy(model),
    }
    print("\nSimulated policies")
    print("=" * 70)
    for name, policy in policies.items():
        key, subkey = jax.random.split(key)
        mean, stderr = estimate_expected_cost(
            model, policy, model.config.horizon, model.config.n_episodes, key=subkey
        )
        print(f"  {name:<8} {mean:10.2f} ± {stderr:.2f}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("path", nargs="?", help="input file (default: stdin)")
    parser.add_argument("--sample", action="store_true", help="solve the demo network")
    parser.add_argument(
        "--charge-on-failure",
        action="store_true",
        help="charge the edge cost on failed attempts too",
    )
    parser.add_argument("--tolerance", type=float, default=1e-8)
    parser.add_argument("--max-iterations", type=int, default=10_000)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = ExpectedCostConfig(
        tolerance=args.tolerance,
        max_iterations=args.max_iterations,
        charge_on_failure=args.charge_on_failure,
    )

    if args.sample:
        describe(sample_network(), config, jax.random.PRNGKey(42))
        return 0

    try:
        if args.path:
            with open(args.path) as f:
                network = parse_network(f.read())
        else:
            network = parse_network(sys.stdin.read())
    except MalformedInputError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    solver = ExpectedCostSolver(network.graph, network.destination, config)
    print(format_solution(solver.solve(network.source)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
