# src/quantsim/numerics/grids.py
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

__all__ = [
    "TimeGrid",
    "build_time_grid",
    "validate_times",
]


def validate_times(times: Sequence[float] | NDArray[np.floating]) -> NDArray[np.floating]:
    """Return a float64 copy of ``times`` after checking the grid invariants.

    A valid grid has at least two points, starts at exactly 0 and is finite and
    strictly increasing.
    """
    t = np.array(times, dtype=np.float64)
    if t.ndim != 1:
        raise ValueError("time grid must be one-dimensional")
    if t.size < 2:
        raise ValueError("time grid needs at least 2 points")
    if not np.all(np.isfinite(t)):
        raise ValueError("time grid must be finite")
    if t[0] != 0.0:
        raise ValueError("time grid must start at 0")
    if not np.all(np.diff(t) > 0.0):
        raise ValueError("time grid must be strictly increasing")
    return t


def build_time_grid(horizon: float, n_steps: int) -> NDArray[np.floating]:
    if horizon <= 0:
        raise ValueError("horizon must be > 0")
    if n_steps < 1:
        raise ValueError("n_steps must be >= 1")
    return np.linspace(0.0, float(horizon), int(n_steps) + 1, dtype=np.float64)


@dataclass(frozen=True, slots=True, eq=False)
class TimeGrid:
    """Strictly increasing time points ``0 = t_0 < t_1 < ... < t_n = T``.

    The array is stored read-only; use :meth:`uniform` or :meth:`from_times`
    rather than the raw constructor when building grids by hand.
    """

    times: NDArray[np.floating]

    def __post_init__(self) -> None:
        t = validate_times(self.times)
        t.setflags(write=False)
        object.__setattr__(self, "times", t)

    @classmethod
    def uniform(cls, horizon: float, n_steps: int) -> TimeGrid:
        return cls(build_time_grid(horizon, n_steps))

    @classmethod
    def from_times(cls, times: Sequence[float] | NDArray[np.floating]) -> TimeGrid:
        return cls(np.asarray(times, dtype=np.float64))

    def __len__(self) -> int:
        return int(self.times.size)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeGrid):
            return NotImplemented
        return bool(np.array_equal(self.times, other.times))

    def __hash__(self) -> int:
        return hash(self.times.tobytes())

    @property
    def n_steps(self) -> int:
        return int(self.times.size - 1)

    @property
    def horizon(self) -> float:
        return float(self.times[-1])

    @property
    def dt(self) -> NDArray[np.floating]:
        """Step sizes, shape ``(n_steps,)``."""
        return np.diff(self.times)

    @property
    def is_uniform(self) -> bool:
        dt = self.dt
        return bool(np.allclose(dt, dt[0], rtol=1e-10, atol=0.0))
