# core/simulator.py
# mypy: disable-error-code="no-any-return"
from __future__ import annotations

from typing import Any, Protocol, Tuple

import jax
import jax.numpy as jnp

PRNGKey = jax.Array  # alias for readability
Array = jax.Array


class Model(Protocol):
    def reset(self, *, key: PRNGKey) -> Any: ...
    def step(self, state: Any, action: Any, *, key: PRNGKey) -> Tuple[Any, Array]: ...


class Policy(Protocol):
    def act(self, state: Any, *, key: PRNGKey) -> Any: ...


def rollout(model: Model, policy: Policy, horizon: int, *, key: PRNGKey) -> Array:
    """Per-step rewards of one episode, scanned over ``horizon`` steps."""

    def _body(carry: tuple[Any, PRNGKey], _: None) -> tuple[tuple[Any, PRNGKey], Any]:
        state, k = carry
        k, sub = jax.random.split(k)
        action = policy.act(state, key=sub)
        k, sub = jax.random.split(k)
        state, reward = model.step(state, action, key=sub)
        return (state, k), reward

    k_reset, k_run = jax.random.split(key)
    state = model.reset(key=k_reset)
    (_, _), rewards = jax.lax.scan(_body, (state, k_run), xs=None, length=horizon)
    return rewards


def estimate_expected_cost(
    model: Model,
    policy: Policy,
    horizon: int,
    n_episodes: int,
    *,
    key: PRNGKey,
) -> Tuple[float, float]:
    """Monte Carlo mean and standard error of the total cost per episode."""
    keys = jax.random.split(key, n_episodes)
    rewards = jax.vmap(lambda k: rollout(model, policy, horizon, key=k))(keys)
    costs = -jnp.sum(rewards, axis=1)
    stderr = jnp.std(costs) / jnp.sqrt(n_episodes)
    return float(jnp.mean(costs)), float(stderr)
