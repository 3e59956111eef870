# src/quantsim/numerics/__init__.py
"""
Numerical building blocks (advanced API).

Top-level package `quantsim` exposes the everyday simulation API.
This subpackage exposes the noise, integration, spectral and reduction
primitives the driver is built from.
"""

from .grids import TimeGrid, build_time_grid, validate_times
from .integrator import PathBatch, apply_floor, check_scheme, integrate, integrate_path
from .noise import (
    JumpDraws,
    NoiseBatch,
    NoiseGenerator,
    cholesky_factor,
    make_rng,
    sample_jumps,
    spawn_seeds,
)
from .spectral import (
    CirculantEmbedding,
    circulant_eigenvalues,
    davies_harte,
    fgn_autocovariance,
    fractional_gaussian_noise,
)
from .stats import RunningMoments

__all__ = [
    # Grids
    "TimeGrid",
    "build_time_grid",
    "validate_times",
    # Noise
    "NoiseBatch",
    "NoiseGenerator",
    "JumpDraws",
    "cholesky_factor",
    "make_rng",
    "sample_jumps",
    "spawn_seeds",
    # Integration
    "PathBatch",
    "apply_floor",
    "check_scheme",
    "integrate",
    "integrate_path",
    # Spectral
    "CirculantEmbedding",
    "circulant_eigenvalues",
    "davies_harte",
    "fgn_autocovariance",
    "fractional_gaussian_noise",
    # Reduction
    "RunningMoments",
]
