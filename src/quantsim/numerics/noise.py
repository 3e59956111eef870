"""Seedable Gaussian noise, correlation and jump draws.

All randomness in the package flows through explicit ``numpy.random.Generator``
instances. The Monte Carlo driver derives one generator per chunk from a
run-level seed via :func:`spawn_seeds`; nothing here touches global state.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import scipy.linalg
from numpy.typing import NDArray

from ..config import RngType
from ..exceptions import InvalidCorrelationError
from ..models.params import JumpSizes
from ..typing import FloatArray

__all__ = [
    "NoiseBatch",
    "NoiseGenerator",
    "JumpDraws",
    "cholesky_factor",
    "make_rng",
    "sample_jumps",
    "spawn_seeds",
]

_BIT_GENERATORS: dict[str, type[np.random.BitGenerator]] = {
    "pcg64": np.random.PCG64,
    "philox": np.random.Philox,
    "mt19937": np.random.MT19937,
    "sfc64": np.random.SFC64,
}


def make_rng(
    seed: int | np.random.SeedSequence | None, rng_type: RngType = "pcg64"
) -> np.random.Generator:
    try:
        bit_generator = _BIT_GENERATORS[rng_type]
    except KeyError as e:
        raise ValueError(f"Unknown rng_type: {rng_type!r}") from e
    return np.random.Generator(bit_generator(seed))


def spawn_seeds(
    seed: int | None, n_children: int
) -> tuple[int, list[np.random.SeedSequence]]:
    """Derive independent child seeds from a run-level seed.

    Returns the root entropy (so a run started with ``seed=None`` can be
    replayed) and ``n_children`` spawned sequences.
    """
    root = np.random.SeedSequence(seed)
    return int(root.entropy), root.spawn(int(n_children))


def cholesky_factor(
    correlation: FloatArray, n_factors: int | None = None
) -> FloatArray:
    """Lower Cholesky factor of a correlation matrix.

    Raises
    ------
    InvalidCorrelationError
        If the matrix is not square, not symmetric, has a non-unit diagonal,
        does not match ``n_factors`` or is not positive-definite. Nothing is
        clamped or repaired.
    """
    c = np.asarray(correlation, dtype=np.float64)
    if c.ndim != 2 or c.shape[0] != c.shape[1]:
        raise InvalidCorrelationError(f"correlation must be square, got shape {c.shape}")
    if n_factors is not None and c.shape[0] != n_factors:
        raise InvalidCorrelationError(
            f"correlation is {c.shape[0]}x{c.shape[0]} but there are {n_factors} factors"
        )
    if not np.all(np.isfinite(c)):
        raise InvalidCorrelationError("correlation must be finite")
    if not np.allclose(c, c.T, rtol=0.0, atol=1e-12):
        raise InvalidCorrelationError("correlation must be symmetric")
    if not np.allclose(np.diag(c), 1.0, rtol=0.0, atol=1e-12):
        raise InvalidCorrelationError("correlation must have a unit diagonal")
    try:
        return scipy.linalg.cholesky(c, lower=True)
    except np.linalg.LinAlgError as e:
        raise InvalidCorrelationError("correlation is not positive-definite") from e


@dataclass(frozen=True, slots=True, eq=False)
class NoiseBatch:
    """Standard-normal increments, shape ``(n_factors, n_paths, n_steps)``.

    Factors are already correlated when the batch was generated with a
    correlation matrix. ``antithetic`` marks batches whose second half of rows
    is the negation of the first half.
    """

    z: FloatArray
    antithetic: bool = False

    def __post_init__(self) -> None:
        if self.z.ndim != 3:
            raise ValueError("noise must have shape (n_factors, n_paths, n_steps)")

    @property
    def n_factors(self) -> int:
        return int(self.z.shape[0])

    @property
    def n_paths(self) -> int:
        return int(self.z.shape[1])

    @property
    def n_steps(self) -> int:
        return int(self.z.shape[2])

    def factor(self, k: int) -> FloatArray:
        return self.z[k]

    def negated(self) -> NoiseBatch:
        """Antithetic counterpart; no new draws are made."""
        return NoiseBatch(z=-self.z, antithetic=self.antithetic)


@dataclass
class NoiseGenerator:
    """Draws :class:`NoiseBatch` objects from one owned generator.

    Two generators built from the same seed and bit generator produce the
    same sequence of batches.
    """

    rng: np.random.Generator

    @classmethod
    def from_seed(
        cls, seed: int | np.random.SeedSequence | None, rng_type: RngType = "pcg64"
    ) -> NoiseGenerator:
        return cls(rng=make_rng(seed, rng_type))

    def generate(
        self,
        n_paths: int,
        n_steps: int,
        correlation: FloatArray | None = None,
        *,
        n_factors: int | None = None,
        antithetic: bool = False,
    ) -> NoiseBatch:
        """Generate a batch of (optionally correlated) standard normals.

        Parameters
        ----------
        n_paths, n_steps : int
            Rows and columns per factor.
        correlation : ndarray, optional
            Target cross-factor correlation at each step. Must be symmetric
            positive-definite with a unit diagonal.
        n_factors : int, optional
            Number of factors; defaults to the size of ``correlation`` or 1.
        antithetic : bool, default False
            If True only ``n_paths / 2`` rows are drawn and the remaining rows
            are their negations. ``n_paths`` must then be even.
        """
        if n_paths <= 0 or n_steps <= 0:
            raise ValueError("n_paths and n_steps must be positive")
        if n_factors is None:
            n_factors = 1 if correlation is None else int(np.shape(correlation)[0])
        if n_factors <= 0:
            raise ValueError("n_factors must be positive")

        chol = None if correlation is None else cholesky_factor(correlation, n_factors)

        if antithetic and n_paths % 2 != 0:
            raise ValueError("antithetic=True requires an even n_paths (paired samples).")
        n_draw = n_paths // 2 if antithetic else n_paths

        z = self.rng.standard_normal((n_factors, n_draw, n_steps))
        if chol is not None:
            z = np.einsum("ij,jps->ips", chol, z)
        if antithetic:
            z = np.concatenate([z, -z], axis=1)
        return NoiseBatch(z=z, antithetic=antithetic)


@dataclass(frozen=True, slots=True, eq=False)
class JumpDraws:
    """Per-step jump realisations, both shaped ``(n_paths, n_steps)``.

    ``counts`` holds the Poisson number of jumps in each step and ``total``
    the sum of the corresponding log-jump sizes (0 where no jump occurred).
    """

    counts: NDArray[np.int64]
    total: FloatArray


def sample_jumps(
    rng: np.random.Generator,
    n_paths: int,
    dt: FloatArray,
    intensity: float,
    sizes: JumpSizes,
) -> JumpDraws:
    dt = np.asarray(dt, dtype=np.float64)
    counts = rng.poisson(intensity * dt, size=(n_paths, dt.size))
    total = np.zeros(counts.shape, dtype=np.float64)

    n_jumps = int(counts.sum())
    if n_jumps:
        draws = sizes.sample(rng, n_jumps)
        owner = np.repeat(np.arange(counts.size), counts.ravel())
        total = np.bincount(owner, weights=draws, minlength=counts.size).reshape(
            counts.shape
        )
    return JumpDraws(counts=counts, total=total)
