"""quantsim.simulation

Monte Carlo driver, path-generation strategies and the run result.
"""

from .driver import MonteCarloSimulator, partition, simulate
from .result import SimulationResult
from .strategies import (
    PathGenerator,
    SpectralGenerator,
    StepwiseGenerator,
    make_generator,
)

__all__ = [
    "MonteCarloSimulator",
    "PathGenerator",
    "SimulationResult",
    "SpectralGenerator",
    "StepwiseGenerator",
    "make_generator",
    "partition",
    "simulate",
]
