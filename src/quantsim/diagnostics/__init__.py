"""quantsim.diagnostics

Checks of simulated statistics against closed-form moments, plus optional
matplotlib plots. Plotting helpers import matplotlib lazily.
"""

from .moments import compare_moments, theoretical_moments
from .plots import plot_mean_band, plot_paths

__all__ = [
    "compare_moments",
    "theoretical_moments",
    "plot_mean_band",
    "plot_paths",
]
