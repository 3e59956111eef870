"""Path-generation strategies.

A :class:`PathGenerator` splits generation into two halves:

- ``sample(n, rng)`` makes all the random draws for ``n`` paths;
- ``build(draws)`` turns draws into a :class:`~quantsim.numerics.integrator.PathBatch`
  deterministically.

Draw objects expose ``negated()``, which is all the driver needs for
antithetic pairs. The strategy is picked once per run from the model's
:class:`~quantsim.models.processes.GenerationMethod`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Protocol

import numpy as np

from ..config import FloorPolicy, Scheme, SimulationConfig
from ..models.processes import GenerationMethod, ProcessKind, ProcessModel
from ..numerics.grids import TimeGrid
from ..numerics.integrator import PathBatch, check_scheme, integrate
from ..numerics.noise import (
    JumpDraws,
    NoiseBatch,
    NoiseGenerator,
    cholesky_factor,
    sample_jumps,
)
from ..numerics.spectral import CirculantEmbedding
from ..typing import FloatArray

__all__ = [
    "Draws",
    "PathGenerator",
    "SpectralDraws",
    "SpectralGenerator",
    "StepwiseDraws",
    "StepwiseGenerator",
    "make_generator",
]


class Draws(Protocol):
    def negated(self) -> Draws: ...


class PathGenerator(Protocol):
    model: ProcessModel

    def sample(self, n_paths: int, rng: np.random.Generator) -> Draws: ...

    def build(self, draws: Any) -> PathBatch: ...


# ---------------------------
# Stepwise integration
# ---------------------------


@dataclass(frozen=True, slots=True)
class StepwiseDraws:
    noise: NoiseBatch
    jumps: JumpDraws | None = None

    def negated(self) -> StepwiseDraws:
        # jump counts and sizes are shared by both legs of a pair
        return StepwiseDraws(noise=self.noise.negated(), jumps=self.jumps)


@dataclass(frozen=True, slots=True)
class StepwiseGenerator:
    """Noise generator plus path integrator.

    The correlation matrix is factorised at construction so a malformed one
    fails before any path is drawn.
    """

    model: ProcessModel
    params: Any
    grid: TimeGrid
    scheme: Scheme = Scheme.EULER_MARUYAMA
    floor_policy: FloorPolicy = FloorPolicy.NONE
    correlation: FloatArray | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        object.__setattr__(self, "scheme", check_scheme(self.model, self.scheme))
        object.__setattr__(self, "floor_policy", FloorPolicy(self.floor_policy))
        if self.model.correlation is not None and self.model.n_factors > 1:
            corr = np.asarray(self.model.correlation(self.params), dtype=np.float64)
            cholesky_factor(corr, self.model.n_factors)
            object.__setattr__(self, "correlation", corr)

    def sample(self, n_paths: int, rng: np.random.Generator) -> StepwiseDraws:
        noise = NoiseGenerator(rng).generate(
            n_paths,
            self.grid.n_steps,
            self.correlation,
            n_factors=self.model.n_factors,
        )
        jumps = None
        if self.model.jump is not None:
            jumps = sample_jumps(
                rng,
                n_paths,
                self.grid.dt,
                self.model.jump.intensity(self.params),
                self.model.jump.sizes(self.params),
            )
        return StepwiseDraws(noise=noise, jumps=jumps)

    def build(self, draws: StepwiseDraws) -> PathBatch:
        return integrate(
            self.model,
            self.params,
            self.grid,
            draws.noise,
            scheme=self.scheme,
            floor_policy=self.floor_policy,
            jumps=draws.jumps,
        )


# ---------------------------
# Spectral synthesis
# ---------------------------


@dataclass(frozen=True, slots=True)
class SpectralDraws:
    xi: np.ndarray  # complex, (n_paths, 2 * n_steps)

    def negated(self) -> SpectralDraws:
        return SpectralDraws(xi=-self.xi)


@dataclass(frozen=True, slots=True)
class SpectralGenerator:
    """Fractional processes from Davies-Harte fractional Gaussian noise.

    fBM is ``x0 + sigma * cumsum(dB^H)``. Other variants run an Euler
    recursion driven by the fGn increments, ``X' = X + a(X, t) h + b(X, t) dB^H``.
    Requires a uniform grid; the embedding is computed (and checked) once
    at construction.
    """

    model: ProcessModel
    params: Any
    grid: TimeGrid
    embedding: CirculantEmbedding = field(init=False)
    increment_scale: float = field(init=False)

    def __post_init__(self) -> None:
        if self.model.hurst is None:
            raise ValueError(f"{self.model.name} has no Hurst exponent")
        if not self.grid.is_uniform:
            raise ValueError("spectral synthesis requires a uniform time grid")
        hurst = float(self.model.hurst(self.params))
        h = float(self.grid.dt[0])
        object.__setattr__(
            self, "embedding", CirculantEmbedding.fgn(self.grid.n_steps, hurst)
        )
        object.__setattr__(self, "increment_scale", math.pow(h, hurst))

    def sample(self, n_paths: int, rng: np.random.Generator) -> SpectralDraws:
        return SpectralDraws(xi=self.embedding.draw(rng, n_paths))

    def increments(self, draws: SpectralDraws) -> FloatArray:
        """fBM increments on the grid, shape ``(n_paths, n_steps)``."""
        return self.increment_scale * self.embedding.synthesize(draws.xi)

    def build(self, draws: SpectralDraws) -> PathBatch:
        db = self.increments(draws)
        n_paths = db.shape[0]
        times = self.grid.times
        x = np.empty((1, n_paths, times.size), dtype=np.float64)
        x[:, :, 0] = self.model.initial_state(self.params)[0]

        with np.errstate(over="ignore", invalid="ignore"):
            if self.model.kind is ProcessKind.FBM:
                x[0, :, 1:] = x[0, :, :1] + self.params.sigma * np.cumsum(db, axis=1)
            else:
                dt = self.grid.dt
                for i in range(self.grid.n_steps):
                    cur = x[:, :, i]
                    t = float(times[i])
                    x[:, :, i + 1] = (
                        cur
                        + self.model.drift(cur, t, self.params) * dt[i]
                        + self.model.diffusion(cur, t, self.params) * db[None, :, i]
                    )

        failed = ~np.all(np.isfinite(x), axis=(0, 2))
        return PathBatch(times=times, values=x, failed=failed)


def make_generator(
    model: ProcessModel,
    params: Any,
    grid: TimeGrid,
    config: SimulationConfig,
) -> PathGenerator:
    """Pick the generation strategy for ``model``.

    Raises ``ValueError`` for a scheme the model does not support, and lets
    :class:`~quantsim.exceptions.InvalidCorrelationError` /
    :class:`~quantsim.exceptions.SpectralEmbeddingError` surface before any
    sampling.
    """
    check_scheme(model, config.scheme)
    if model.generation is GenerationMethod.SPECTRAL:
        return SpectralGenerator(model=model, params=params, grid=grid)
    return StepwiseGenerator(
        model=model,
        params=params,
        grid=grid,
        scheme=config.scheme,
        floor_policy=config.floor_policy,
    )
