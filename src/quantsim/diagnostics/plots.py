from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ..simulation.result import SimulationResult
from ..types import Path
from ._mpl import get_plt, pretty_ax


def plot_paths(
    paths: SimulationResult | Sequence[Path],
    *,
    n_plot: int = 20,
    ax=None,
    title: str = "Sample paths",
):
    """
    Plot up to ``n_plot`` stored paths against their time grid.

    Accepts a :class:`SimulationResult` run with ``store_paths=True`` or any
    sequence of :class:`Path`. Returns ``(fig, ax)``.
    """
    if isinstance(paths, SimulationResult):
        if paths.paths is None:
            raise ValueError("result has no stored paths; run with store_paths=True")
        paths = paths.paths
    if n_plot < 1:
        raise ValueError("n_plot must be >= 1")

    plt = get_plt()
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 5))
    else:
        fig = ax.figure

    for p in list(paths)[:n_plot]:
        ax.plot(p.times, p.values, lw=0.8, alpha=0.8)
    ax.set_title(title)
    ax.set_xlabel("t")
    ax.set_ylabel("Value")
    pretty_ax(ax)
    return fig, ax


def plot_mean_band(
    result: SimulationResult,
    *,
    lower: float | None = None,
    upper: float | None = None,
    ax=None,
    title: str = "Mean and percentile band",
):
    """
    Plot the mean path with a ``[lower, upper]`` percentile band.

    Defaults to the smallest and largest percentiles stored on the result.
    Returns ``(fig, ax)``.
    """
    qs = sorted(result.percentiles)
    if lower is None or upper is None:
        if len(qs) < 2:
            raise ValueError("result needs at least two percentiles for a band")
        lower = qs[0] if lower is None else lower
        upper = qs[-1] if upper is None else upper

    lo = result.percentile_path(lower)
    hi = result.percentile_path(upper)

    plt = get_plt()
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 5))
    else:
        fig = ax.figure

    t = result.times
    ax.fill_between(t, lo, hi, alpha=0.25, label=f"p{lower:g}-p{upper:g}")
    ax.plot(t, result.mean, lw=1.5, label="mean")
    se = result.std_error
    if np.any(se > 0.0):
        ax.plot(t, result.mean + 1.96 * se, lw=0.8, ls="--", color="k", label="95% CI")
        ax.plot(t, result.mean - 1.96 * se, lw=0.8, ls="--", color="k")
    ax.set_title(title)
    ax.set_xlabel("t")
    ax.set_ylabel("Value")
    ax.legend()
    pretty_ax(ax)
    return fig, ax
