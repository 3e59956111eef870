from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


def _frozen_copy(a: NDArray[np.floating] | None) -> NDArray[np.floating] | None:
    if a is None:
        return None
    out = np.array(a, dtype=np.float64)
    out.setflags(write=False)
    return out


@dataclass(frozen=True, slots=True, eq=False)
class Path:
    """One simulated trajectory aligned to a time grid.

    Parameters
    ----------
    times : ndarray, shape (n_points,)
        Grid time points.
    values : ndarray, shape (n_points,)
        Process values (the asset for two-factor models).
    auxiliary : ndarray, shape (n_points,), optional
        Second state component of a coupled two-factor model, e.g. the
        variance path of a Heston-style process.

    Notes
    -----
    Arrays are copied and marked read-only, so a returned path cannot be
    mutated by consumers.
    """

    times: NDArray[np.floating]
    values: NDArray[np.floating]
    auxiliary: NDArray[np.floating] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "times", _frozen_copy(self.times))
        object.__setattr__(self, "values", _frozen_copy(self.values))
        object.__setattr__(self, "auxiliary", _frozen_copy(self.auxiliary))
        if self.values.shape != self.times.shape:
            raise ValueError("values must align with times")
        if self.auxiliary is not None and self.auxiliary.shape != self.times.shape:
            raise ValueError("auxiliary must align with times")

    def __len__(self) -> int:
        return int(self.times.size)

    @property
    def initial(self) -> float:
        return float(self.values[0])

    @property
    def terminal(self) -> float:
        return float(self.values[-1])

    def samples(self) -> list[tuple[float, float]]:
        """Return the path as ``(time, value)`` pairs."""
        return [(float(t), float(x)) for t, x in zip(self.times, self.values)]
