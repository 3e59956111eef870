"""
quantsim

Stochastic-process simulation engine for Monte Carlo pricing and risk.

The everyday API is exposed at the top level, so you can write, for example:

    from quantsim import GBMParams, SimulationConfig, TimeGrid, simulate
"""

import logging

from .config import FloorPolicy, ParallelConfig, RandomConfig, Scheme, SimulationConfig
from .exceptions import (
    AllPathsFailedError,
    InvalidCorrelationError,
    InvalidParameterError,
    NumericalInstabilityError,
    SimulationError,
    SpectralEmbeddingError,
)
from .models.params import (
    BrownianMotionParams,
    CIRParams,
    FBMParams,
    FractionalOUParams,
    GBMParams,
    HestonParams,
    HoLeeParams,
    HullWhiteParams,
    KouJumps,
    MertonParams,
    NormalJumps,
    OUParams,
)
from .models.processes import ProcessKind, ProcessModel, available_models, get_model
from .numerics.grids import TimeGrid
from .simulation.driver import MonteCarloSimulator, simulate
from .simulation.result import SimulationResult
from .types import Path

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Config
    "Scheme",
    "FloorPolicy",
    "RandomConfig",
    "ParallelConfig",
    "SimulationConfig",
    # Errors
    "SimulationError",
    "InvalidParameterError",
    "InvalidCorrelationError",
    "NumericalInstabilityError",
    "SpectralEmbeddingError",
    "AllPathsFailedError",
    # Parameters
    "BrownianMotionParams",
    "GBMParams",
    "OUParams",
    "CIRParams",
    "MertonParams",
    "NormalJumps",
    "KouJumps",
    "HestonParams",
    "FBMParams",
    "FractionalOUParams",
    "HoLeeParams",
    "HullWhiteParams",
    # Models
    "ProcessKind",
    "ProcessModel",
    "available_models",
    "get_model",
    # Types
    "TimeGrid",
    "Path",
    "SimulationResult",
    # Driver
    "MonteCarloSimulator",
    "simulate",
]
