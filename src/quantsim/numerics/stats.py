from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..typing import FloatArray

__all__ = ["RunningMoments"]


@dataclass(frozen=True, slots=True, eq=False)
class RunningMoments:
    """Count, mean and sum of squared deviations of a stream of samples.

    Samples may be arrays (e.g. whole paths); ``mean`` and ``m2`` then carry
    the sample shape. Partial results combine with :meth:`merge` using the
    pairwise update of Chan, Golub and LeVeque, so the reduction does not
    depend on how the stream was split into chunks.
    """

    count: int
    mean: FloatArray
    m2: FloatArray

    @classmethod
    def empty(cls, shape: int | tuple[int, ...]) -> RunningMoments:
        return cls(
            count=0,
            mean=np.zeros(shape, dtype=np.float64),
            m2=np.zeros(shape, dtype=np.float64),
        )

    @classmethod
    def from_samples(cls, samples: FloatArray) -> RunningMoments:
        """Moments of a batch; samples are stacked along axis 0."""
        x = np.asarray(samples, dtype=np.float64)
        n = int(x.shape[0])
        if n == 0:
            return cls.empty(x.shape[1:])
        mean = x.mean(axis=0)
        dev = x - mean
        return cls(count=n, mean=mean, m2=np.einsum("i...,i...->...", dev, dev))

    def merge(self, other: RunningMoments) -> RunningMoments:
        if other.count == 0:
            return self
        if self.count == 0:
            return other
        n = self.count + other.count
        delta = other.mean - self.mean
        mean = self.mean + delta * (other.count / n)
        m2 = self.m2 + other.m2 + delta * delta * (self.count * other.count / n)
        return RunningMoments(count=n, mean=mean, m2=m2)

    def variance(self, ddof: int = 1) -> FloatArray:
        """Sample variance; zero when fewer than ``ddof + 1`` samples were seen."""
        if self.count <= ddof:
            return np.zeros_like(self.mean)
        return self.m2 / (self.count - ddof)

    def std_error(self) -> FloatArray:
        if self.count == 0:
            return np.zeros_like(self.mean)
        return np.sqrt(self.variance() / self.count)
