"""Shared Matplotlib helpers for diagnostics plots."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from matplotlib.axes import Axes


def get_plt():
    """Import and return matplotlib.pyplot with a helpful error if missing."""
    try:
        import matplotlib.pyplot as plt
    except ModuleNotFoundError as e:
        raise ModuleNotFoundError(
            "Plotting requires matplotlib. Install it with: pip install quantsim[plot]"
        ) from e
    return plt


def pretty_ax(ax: Axes) -> None:
    """Apply a minimal consistent style to an axis."""
    ax.grid(axis="both", alpha=0.25)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)

    leg = ax.get_legend()
    if leg is not None:
        leg.set_frame_on(True)
        leg.get_frame().set_alpha(0.95)
