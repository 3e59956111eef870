from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import numpy as np
import pandas as pd

from ..config import FloorPolicy, Scheme
from ..models.processes import ProcessKind
from ..types import Path
from ..typing import FloatArray

__all__ = ["SimulationResult"]


@dataclass(frozen=True, slots=True, eq=False)
class SimulationResult:
    """Statistics of one Monte Carlo run.

    Parameters
    ----------
    times : ndarray, shape (n_points,)
        Grid the statistics are aligned to.
    mean, variance : ndarray, shape (n_points,)
        Sample mean and variance (``ddof=1``) of the primary factor at every
        grid point. With antithetic variates these are statistics of the
        pair-averaged samples.
    n_samples : int
        Number of samples that entered the reduction (surviving paths, or
        surviving pairs in antithetic mode).
    n_requested : int
        Paths requested by the caller.
    n_failed : int
        Paths dropped because they became non-finite. In antithetic mode
        both legs of a failed pair are counted. Failed paths are never
        retried, so the effective sample size shrinks instead.
    model, scheme, floor_policy, antithetic, seed_entropy
        Run provenance. ``seed_entropy`` replays the run when passed back as
        the seed, including runs started without one.
    percentiles : mapping of float to ndarray
        Percentile paths of the primary factor. Exact when ``paths`` is
        stored, otherwise computed from a bounded subsample of survivors.
        Read-only.
    n_percentile_samples : int
        Rows the percentiles were computed from; at most
        ``percentile_sample_size`` unless paths were stored.
    paths : tuple of Path, optional
        Every surviving path, only when the run stored paths.
    auxiliary_mean, auxiliary_variance : ndarray, optional
        Statistics of the second factor of two-factor models.
    """

    times: FloatArray
    mean: FloatArray
    variance: FloatArray
    n_samples: int
    n_requested: int
    n_failed: int
    model: ProcessKind
    scheme: Scheme
    floor_policy: FloorPolicy
    antithetic: bool
    seed_entropy: int
    percentiles: Mapping[float, FloatArray] = field(default_factory=dict)
    n_percentile_samples: int = 0
    paths: tuple[Path, ...] | None = None
    auxiliary_mean: FloatArray | None = None
    auxiliary_variance: FloatArray | None = None

    def __post_init__(self) -> None:
        arrays = ("times", "mean", "variance", "auxiliary_mean", "auxiliary_variance")
        for name in arrays:
            a = getattr(self, name)
            if a is not None:
                a = np.array(a, dtype=np.float64)
                a.setflags(write=False)
                object.__setattr__(self, name, a)
        frozen = {}
        for q, a in self.percentiles.items():
            a = np.array(a, dtype=np.float64)
            a.setflags(write=False)
            frozen[float(q)] = a
        object.__setattr__(self, "percentiles", MappingProxyType(frozen))

    @property
    def n_succeeded(self) -> int:
        return self.n_requested - self.n_failed

    @property
    def failure_rate(self) -> float:
        return self.n_failed / self.n_requested if self.n_requested else 0.0

    @property
    def std_error(self) -> FloatArray:
        """Standard error of :attr:`mean` at every grid point."""
        if self.n_samples == 0:
            return np.zeros_like(self.mean)
        return np.sqrt(self.variance / self.n_samples)

    @property
    def terminal_mean(self) -> float:
        return float(self.mean[-1])

    @property
    def terminal_variance(self) -> float:
        return float(self.variance[-1])

    @property
    def terminal_std_error(self) -> float:
        return float(self.std_error[-1])

    def percentile_path(self, q: float) -> FloatArray:
        try:
            return self.percentiles[float(q)]
        except KeyError as e:
            raise KeyError(
                f"percentile {q} was not computed; available: {sorted(self.percentiles)}"
            ) from e

    def terminal_values(self) -> FloatArray:
        """Terminal values of the stored paths."""
        if self.paths is None:
            raise ValueError("paths were not stored; run with store_paths=True")
        return np.array([p.terminal for p in self.paths], dtype=np.float64)

    def to_frame(self) -> pd.DataFrame:
        """Per-time statistics as a DataFrame indexed by ``t``."""
        data: dict[str, FloatArray] = {
            "mean": self.mean,
            "variance": self.variance,
            "std_error": self.std_error,
        }
        for q in sorted(self.percentiles):
            data[f"p{q:g}"] = self.percentiles[q]
        if self.auxiliary_mean is not None:
            data["aux_mean"] = self.auxiliary_mean
        if self.auxiliary_variance is not None:
            data["aux_variance"] = self.auxiliary_variance
        return pd.DataFrame(data, index=pd.Index(self.times, name="t"))
