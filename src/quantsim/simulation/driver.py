"""Parallel Monte Carlo driver.

A run is split into chunks of at most ``chunk_size`` paths. Chunk ``i`` owns
a generator seeded from the ``i``-th child of ``SeedSequence(seed)``, draws
its noise, builds its paths and reduces them to :class:`RunningMoments`
without touching any shared mutable state. Outcomes are folded into the
running totals in chunk order as they arrive, with only a small window of
chunks in flight, so a given seed reproduces the same statistics bit-for-bit
for any worker count and memory does not grow with the number of chunks.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import islice
from typing import Any

import numpy as np

from ..config import SimulationConfig
from ..exceptions import AllPathsFailedError
from ..models.processes import ProcessKind, ProcessModel, resolve_model
from ..numerics.grids import TimeGrid
from ..numerics.noise import make_rng, spawn_seeds
from ..numerics.stats import RunningMoments
from ..types import Path
from ..typing import FloatArray
from .result import SimulationResult
from .strategies import PathGenerator, make_generator

logger = logging.getLogger(__name__)

__all__ = ["MonteCarloSimulator", "partition", "simulate"]


def partition(n_units: int, chunk_size: int) -> list[int]:
    """Split ``n_units`` into consecutive chunks of at most ``chunk_size``."""
    if n_units <= 0:
        raise ValueError("n_units must be positive")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    full, rest = divmod(n_units, chunk_size)
    return [chunk_size] * full + ([rest] if rest else [])


def _default_workers() -> int:
    # same default as ThreadPoolExecutor
    return min(32, (os.cpu_count() or 1) + 4)


def _retained_per_chunk(sizes: list[int], budget: int) -> list[int]:
    # value-independent subsample for percentiles: the first k survivors of
    # each chunk, with sum(k) <= budget however many chunks there are
    total = sum(sizes)
    if budget >= total:
        return list(sizes)
    keep = [budget * n // total for n in sizes]
    rest = budget - sum(keep)
    for i, n in enumerate(sizes):
        if rest == 0:
            break
        if keep[i] < n:
            keep[i] += 1
            rest -= 1
    return keep


@dataclass(frozen=True, slots=True)
class _ChunkOutcome:
    index: int
    moments: RunningMoments
    n_units: int
    n_failed_units: int
    retained: FloatArray  # primary-factor rows kept for percentiles
    paths: tuple[Path, ...] | None


@dataclass(frozen=True, slots=True)
class MonteCarloSimulator:
    """
    Monte Carlo simulator for one process, parameter set and grid.

    Parameters
    ----------
    model
        A :class:`ProcessModel`, a :class:`ProcessKind` (or its string value),
        or None to infer the model from the type of ``params``.
    params
        Validated parameter set for the model.
    grid
        A :class:`TimeGrid` or a sequence of time points starting at 0.
    config
        Run options; see :class:`~quantsim.config.SimulationConfig`.

    Notes
    -----
    Construction does all fail-fast validation (parameter type, scheme
    support, correlation factorisation, spectral embedding), so a simulator
    that exists can always run.
    """

    model: ProcessModel | ProcessKind | str | None
    params: Any
    grid: TimeGrid | Any
    config: SimulationConfig = field(default_factory=SimulationConfig)
    generator: PathGenerator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        model = resolve_model(self.model, self.params)
        grid = self.grid
        if not isinstance(grid, TimeGrid):
            grid = TimeGrid.from_times(grid)
        object.__setattr__(self, "model", model)
        object.__setattr__(self, "grid", grid)
        object.__setattr__(
            self, "generator", make_generator(model, self.params, grid, self.config)
        )

    @property
    def legs(self) -> int:
        return 2 if self.config.antithetic else 1

    def run(self, n_paths: int) -> SimulationResult:
        """
        Simulate ``n_paths`` paths and reduce them to a :class:`SimulationResult`.

        Raises
        ------
        ValueError
            If ``n_paths`` is not positive, or is odd with antithetic variates.
        AllPathsFailedError
            If no path survived.
        """
        cfg = self.config
        n_paths = int(n_paths)
        if n_paths <= 0:
            raise ValueError("n_paths must be positive")
        if cfg.antithetic and n_paths % 2 != 0:
            raise ValueError("antithetic=True requires an even n_paths (paired samples).")

        legs = self.legs
        n_units = n_paths // legs
        sizes = partition(n_units, max(1, cfg.parallel.chunk_size // legs))
        # budget in rows; an antithetic chunk of n pairs offers 2n rows
        keep = _retained_per_chunk([legs * n for n in sizes], cfg.percentile_sample_size)
        entropy, seeds = spawn_seeds(cfg.seed, len(sizes))

        logger.info(
            "Simulating %d paths of %s on %d steps: scheme=%s antithetic=%s "
            "floor_policy=%s chunks=%d seed_entropy=%d",
            n_paths,
            self.model.name,
            self.grid.n_steps,
            cfg.scheme.value,
            cfg.antithetic,
            cfg.floor_policy.value,
            len(sizes),
            entropy,
        )

        jobs = zip(range(len(sizes)), sizes, seeds, keep)
        return self._collect(
            self._outcomes(jobs, len(sizes)), n_paths=n_paths, entropy=entropy
        )

    def _outcomes(
        self, jobs: Iterable[tuple[int, int, np.random.SeedSequence, int]], n_jobs: int
    ) -> Iterator[_ChunkOutcome]:
        """Yield chunk outcomes in chunk order.

        At most a small window of chunks is in flight or finished but not yet
        consumed, so memory does not grow with the number of chunks.
        """
        jobs = iter(jobs)
        if n_jobs == 1:
            yield self._run_chunk(*next(jobs))
            return
        max_workers = self.config.parallel.max_workers or _default_workers()
        window = 2 * max_workers
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            pending = deque(
                pool.submit(self._run_chunk, *job) for job in islice(jobs, window)
            )
            while pending:
                outcome = pending.popleft().result()
                job = next(jobs, None)
                if job is not None:
                    pending.append(pool.submit(self._run_chunk, *job))
                yield outcome

    def _run_chunk(
        self,
        index: int,
        n_units: int,
        seed: np.random.SeedSequence,
        keep: int,
    ) -> _ChunkOutcome:
        rng = make_rng(seed, self.config.random.rng_type)
        draws = self.generator.sample(n_units, rng)
        batch = self.generator.build(draws)

        if self.config.antithetic:
            mirror = self.generator.build(draws.negated())
            failed = batch.failed | mirror.failed
            samples = 0.5 * (batch.values + mirror.values)
            legs = (batch, mirror)
        else:
            failed = batch.failed
            samples = batch.values
            legs = (batch,)

        ok = np.flatnonzero(~failed)
        # (n_factors, n_units, n_points) -> samples along axis 0
        moments = RunningMoments.from_samples(np.moveaxis(samples[:, ok, :], 1, 0))

        paths = None
        if self.config.store_paths:
            paths = tuple(p for leg in legs for p in leg.paths(ok))
            retained = np.empty((0, samples.shape[2]))
        else:
            # interleave the legs so a cut keeps whole pairs first
            rows = ok[: -(-keep // len(legs))]
            retained = np.stack([leg.values[0, rows, :] for leg in legs], axis=1)
            retained = retained.reshape(-1, samples.shape[2])[:keep]

        n_failed = int(failed.sum())
        logger.debug(
            "chunk %d: %d/%d samples ok", index, n_units - n_failed, n_units
        )
        return _ChunkOutcome(
            index=index,
            moments=moments,
            n_units=n_units,
            n_failed_units=n_failed,
            retained=retained,
            paths=paths,
        )

    def _collect(
        self, outcomes: Iterable[_ChunkOutcome], *, n_paths: int, entropy: int
    ) -> SimulationResult:
        cfg = self.config
        total = RunningMoments.empty((self.model.n_factors, len(self.grid)))
        n_failed_units = 0
        retained: list[FloatArray] = []
        stored: list[Path] = []
        for o in outcomes:
            total = total.merge(o.moments)
            n_failed_units += o.n_failed_units
            if o.retained.shape[0]:
                retained.append(o.retained)
            if o.paths is not None:
                stored.extend(o.paths)
        n_failed = self.legs * n_failed_units

        if total.count == 0:
            raise AllPathsFailedError(n_failed)
        if n_failed:
            logger.warning(
                "%d of %d paths failed with non-finite values (failure rate %.4g); "
                "statistics use the %d surviving samples",
                n_failed,
                n_paths,
                n_failed / n_paths,
                total.count,
            )

        paths = None
        if cfg.store_paths:
            paths = tuple(stored)
            pool_values = np.stack([p.values for p in paths])
        else:
            pool_values = (
                np.concatenate(retained, axis=0)
                if retained
                else np.empty((0, len(self.grid)))
            )

        if pool_values.shape[0]:
            percentiles = {
                q: np.percentile(pool_values, q, axis=0) for q in cfg.percentiles
            }
        else:
            logger.warning(
                "no surviving path in the percentile subsample; percentiles are NaN"
            )
            percentiles = {q: np.full(len(self.grid), np.nan) for q in cfg.percentiles}
        variance = total.variance()
        two_factor = self.model.n_factors > 1

        return SimulationResult(
            times=self.grid.times,
            mean=total.mean[0],
            variance=variance[0],
            n_samples=total.count,
            n_requested=n_paths,
            n_failed=n_failed,
            model=self.model.kind,
            scheme=cfg.scheme,
            floor_policy=cfg.floor_policy,
            antithetic=cfg.antithetic,
            seed_entropy=entropy,
            percentiles=percentiles,
            n_percentile_samples=int(pool_values.shape[0]),
            paths=paths,
            auxiliary_mean=total.mean[1] if two_factor else None,
            auxiliary_variance=variance[1] if two_factor else None,
        )


def simulate(
    model: ProcessModel | ProcessKind | str | None,
    params: Any,
    grid: TimeGrid | Any,
    n_paths: int,
    config: SimulationConfig | None = None,
) -> SimulationResult:
    """
    Simulate ``n_paths`` sample paths and return their statistics.

    Parameters
    ----------
    model : ProcessModel | ProcessKind | str | None
        Process variant. None infers it from ``params``.
    params
        Parameter set, e.g. :class:`~quantsim.models.params.GBMParams`.
    grid : TimeGrid or sequence of float
        Time points ``0 = t_0 < ... < t_n``.
    n_paths : int
        Number of paths. Must be even when ``config.antithetic`` is True.
    config : SimulationConfig, optional
        Scheme, antithetic variates, path storage, floor policy, seed and
        parallelism. Defaults to ``SimulationConfig()``.

    Returns
    -------
    SimulationResult

    Raises
    ------
    InvalidParameterError
        If ``params`` do not match the model.
    InvalidCorrelationError, SpectralEmbeddingError
        If the noise structure cannot be built; raised before any sampling.
    AllPathsFailedError
        If every path became non-finite.

    Notes
    -----
    - Failed paths are dropped and counted (``n_failed``, ``failure_rate``);
      they are not retried.
    - With ``store_paths=False`` memory is bounded by the chunk size and the
      percentile subsample, not by ``n_paths``.

    Examples
    --------
    >>> grid = TimeGrid.uniform(1.0, 252)
    >>> res = simulate("gbm", GBMParams(x0=100, mu=0.05, sigma=0.2), grid, 10_000,
    ...                SimulationConfig(random=RandomConfig(seed=42)))
    >>> res.terminal_mean, res.terminal_std_error  # doctest: +SKIP
    (105.1..., 0.21...)
    """
    sim = MonteCarloSimulator(
        model=model,
        params=params,
        grid=grid,
        config=config if config is not None else SimulationConfig(),
    )
    return sim.run(n_paths)
