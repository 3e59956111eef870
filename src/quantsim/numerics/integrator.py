"""Stepwise SDE integration for every :class:`ProcessModel` variant.

One vectorised loop advances a state of shape ``(n_factors, n_paths)`` across
the grid. Per step ``i`` with ``h = t_{i+1} - t_i``:

Euler-Maruyama
    ``X' = X + a(X, t_i) h + b(X, t_i) sqrt(h) Z``
Milstein
    Euler plus ``0.5 b b_x h (Z^2 - 1)`` per factor, when the model provides
    ``diffusion_dx``; otherwise the Euler update is used unchanged.
Exact
    the model's closed-form transition ``exact_step(X, t_i, h, Z)``.

Jumps (if any) are added after the continuous update, using the step's total
realised log-jump. Non-negative factors are then treated according to the
:class:`~quantsim.config.FloorPolicy`. Rows that produce a non-finite value
are flagged in ``PathBatch.failed`` rather than raising.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..config import FloorPolicy, Scheme
from ..exceptions import NumericalInstabilityError
from ..models.processes import ProcessModel
from ..types import Path
from ..typing import FloatArray
from .grids import TimeGrid
from .noise import JumpDraws, NoiseBatch

__all__ = [
    "PathBatch",
    "apply_floor",
    "check_scheme",
    "integrate",
    "integrate_path",
]


@dataclass(frozen=True, slots=True, eq=False)
class PathBatch:
    """Paths produced from one noise batch.

    Attributes
    ----------
    times : ndarray, shape (n_points,)
    values : ndarray, shape (n_factors, n_paths, n_points)
    failed : ndarray of bool, shape (n_paths,)
        True where the row contains a non-finite value.
    """

    times: FloatArray
    values: FloatArray
    failed: NDArray[np.bool_]

    @property
    def n_factors(self) -> int:
        return int(self.values.shape[0])

    @property
    def n_paths(self) -> int:
        return int(self.values.shape[1])

    @property
    def n_failed(self) -> int:
        return int(self.failed.sum())

    def path(self, row: int) -> Path:
        aux = self.values[1, row] if self.n_factors > 1 else None
        return Path(self.times, self.values[0, row], auxiliary=aux)

    def paths(self, rows: NDArray[np.bool_] | NDArray[np.integer] | None = None) -> list[Path]:
        """Materialise rows (default: all surviving rows) as :class:`Path` objects."""
        if rows is None:
            rows = ~self.failed
        idx = np.flatnonzero(rows) if np.asarray(rows).dtype == bool else np.asarray(rows)
        return [self.path(int(r)) for r in idx]


def check_scheme(model: ProcessModel, scheme: Scheme | str) -> Scheme:
    scheme = Scheme(scheme)
    if not model.supports(scheme):
        raise ValueError(
            f"Scheme {scheme.value!r} is not available for {model.name!r} "
            f"(capabilities: {sorted(model.capabilities)})"
        )
    return scheme


def apply_floor(
    x: FloatArray, nonnegative: tuple[bool, ...], policy: FloorPolicy
) -> FloatArray:
    """Apply ``policy`` to the factors flagged non-negative; returns a new array."""
    if policy is FloorPolicy.NONE or not any(nonnegative):
        return x
    out = x.copy()
    for k, flag in enumerate(nonnegative):
        if not flag:
            continue
        if policy is FloorPolicy.REFLECT:
            out[k] = np.abs(out[k])
        else:
            out[k] = np.maximum(out[k], 0.0)
    return out


def integrate(
    model: ProcessModel,
    params: Any,
    grid: TimeGrid,
    noise: NoiseBatch,
    *,
    scheme: Scheme | str = Scheme.EULER_MARUYAMA,
    floor_policy: FloorPolicy | str = FloorPolicy.NONE,
    jumps: JumpDraws | None = None,
) -> PathBatch:
    """Integrate every row of ``noise`` along ``grid``.

    Parameters
    ----------
    model, params
        Process variant and a matching parameter set.
    grid
        Time grid with ``n_steps == noise.n_steps``.
    noise
        Standard-normal increments, already correlated across factors.
    scheme, floor_policy
        See :class:`~quantsim.config.Scheme` / :class:`~quantsim.config.FloorPolicy`.
    jumps
        Per-step jump draws, required exactly when the model has a jump term.

    Returns
    -------
    PathBatch
    """
    scheme = check_scheme(model, scheme)
    floor_policy = FloorPolicy(floor_policy)
    model.check_params(params)

    if noise.n_factors != model.n_factors:
        raise ValueError(
            f"{model.name} has {model.n_factors} factor(s), noise has {noise.n_factors}"
        )
    if noise.n_steps != grid.n_steps:
        raise ValueError(
            f"noise has {noise.n_steps} steps but the grid has {grid.n_steps}"
        )
    if (model.jump is None) != (jumps is None):
        raise ValueError(
            "jump draws must be supplied exactly when the model has a jump term"
        )

    times = grid.times
    dt = grid.dt
    n_paths = noise.n_paths
    x = np.empty((model.n_factors, n_paths, times.size), dtype=np.float64)
    x[:, :, 0] = np.asarray(model.initial_state(params), dtype=np.float64)[:, None]

    milstein = scheme is Scheme.MILSTEIN and model.diffusion_dx is not None

    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        for i in range(grid.n_steps):
            t = float(times[i])
            h = float(dt[i])
            cur = x[:, :, i]
            z = noise.z[:, :, i]

            if scheme is Scheme.EXACT:
                nxt = model.exact_step(cur, t, h, z, params)
            else:
                b = model.diffusion(cur, t, params)
                nxt = cur + model.drift(cur, t, params) * h + b * math.sqrt(h) * z
                if milstein:
                    bx = model.diffusion_dx(cur, t, params)
                    nxt = nxt + 0.5 * b * bx * h * (z * z - 1.0)

            if jumps is not None:
                nxt = nxt + model.jump.apply(nxt, jumps.total[:, i], params)

            x[:, :, i + 1] = apply_floor(nxt, model.nonnegative, floor_policy)

    failed = ~np.all(np.isfinite(x), axis=(0, 2))
    return PathBatch(times=times, values=x, failed=failed)


def integrate_path(
    model: ProcessModel,
    params: Any,
    grid: TimeGrid,
    noise: NoiseBatch,
    row: int = 0,
    *,
    scheme: Scheme | str = Scheme.EULER_MARUYAMA,
    floor_policy: FloorPolicy | str = FloorPolicy.NONE,
    jumps: JumpDraws | None = None,
) -> Path:
    """Integrate a single row of ``noise``.

    Raises
    ------
    NumericalInstabilityError
        If the path becomes non-finite; ``step`` holds the first bad grid index.
    """
    single = NoiseBatch(z=noise.z[:, row : row + 1, :])
    single_jumps = None
    if jumps is not None:
        single_jumps = JumpDraws(
            counts=jumps.counts[row : row + 1], total=jumps.total[row : row + 1]
        )
    batch = integrate(
        model,
        params,
        grid,
        single,
        scheme=scheme,
        floor_policy=floor_policy,
        jumps=single_jumps,
    )
    if batch.failed[0]:
        bad = ~np.all(np.isfinite(batch.values[:, 0, :]), axis=0)
        step = int(np.argmax(bad))
        raise NumericalInstabilityError(
            f"{model.name} path {row} became non-finite at grid index {step} "
            f"(t={grid.times[step]:g})",
            step=step,
        )
    return batch.path(0)
