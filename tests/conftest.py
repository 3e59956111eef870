"""Pytest helpers for the quantsim package."""

from __future__ import annotations

import numpy as np
import pytest

from quantsim.config import ParallelConfig, RandomConfig, SimulationConfig
from quantsim.numerics.grids import TimeGrid


@pytest.fixture
def base_params() -> dict:
    """Canonical GBM scenario used across tests."""
    return {
        "x0": 100.0,
        "mu": 0.05,
        "sigma": 0.2,
        "T": 1.0,
        "n_steps": 252,
    }


@pytest.fixture
def grid():
    """Uniform grid factory."""

    def _grid(horizon: float = 1.0, n_steps: int = 50) -> TimeGrid:
        return TimeGrid.uniform(horizon, n_steps)

    return _grid


@pytest.fixture
def make_config():
    """Factory for SimulationConfig with a seed and optional overrides."""

    def _make(
        seed: int | None = 123,
        *,
        chunk_size: int = 4096,
        max_workers: int | None = None,
        **kwargs,
    ) -> SimulationConfig:
        return SimulationConfig(
            random=RandomConfig(seed=seed),
            parallel=ParallelConfig(max_workers=max_workers, chunk_size=chunk_size),
            **kwargs,
        )

    return _make


@pytest.fixture
def rng():
    """Seeded RNG factory."""

    def _rng(seed: int) -> np.random.Generator:
        return np.random.default_rng(seed)

    return _rng
