"""Validated, immutable parameter sets for every supported process family.

Each dataclass checks its coefficients in ``__post_init__`` and raises
:class:`~quantsim.exceptions.InvalidParameterError` before any simulation work
is attempted. Coefficient names follow the usual SDE notation:

- ``x0``: initial value of the (first) state
- ``mu``: drift rate
- ``sigma``: volatility / diffusion scale
- ``kappa`` / ``alpha``: mean-reversion speed
- ``theta``: long-run mean (or the time-dependent drift of short-rate models)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields
from typing import Any

import numpy as np

from ..exceptions import InvalidParameterError
from ..typing import Coefficient

logger = logging.getLogger(__name__)

__all__ = [
    "NormalJumps",
    "KouJumps",
    "JumpSizes",
    "BrownianMotionParams",
    "GBMParams",
    "OUParams",
    "CIRParams",
    "MertonParams",
    "HestonParams",
    "FBMParams",
    "FractionalOUParams",
    "HoLeeParams",
    "HullWhiteParams",
    "ProcessParams",
    "coefficient_at",
    "parameter_dict",
]


# ---------------------------
# Validation helpers
# ---------------------------


def _finite(name: str, value: float) -> float:
    v = float(value)
    if not math.isfinite(v):
        raise InvalidParameterError(f"{name} must be finite, got {value!r}")
    return v


def _non_negative(name: str, value: float) -> float:
    v = _finite(name, value)
    if v < 0.0:
        raise InvalidParameterError(f"{name} must be non-negative, got {v}")
    return v


def _positive(name: str, value: float) -> float:
    v = _finite(name, value)
    if v <= 0.0:
        raise InvalidParameterError(f"{name} must be positive, got {v}")
    return v


def _probability(name: str, value: float) -> float:
    v = _finite(name, value)
    if not (0.0 <= v <= 1.0):
        raise InvalidParameterError(f"{name} must lie in [0, 1], got {v}")
    return v


def _correlation(name: str, value: float) -> float:
    v = _finite(name, value)
    # |rho| = 1 would make the factor correlation matrix singular
    if not (-1.0 < v < 1.0):
        raise InvalidParameterError(f"{name} must lie in (-1, 1), got {v}")
    return v


def _hurst(value: float) -> float:
    v = _finite("hurst", value)
    if not (0.0 < v < 1.0):
        raise InvalidParameterError(f"hurst must lie in (0, 1), got {v}")
    return v


def _coefficient(name: str, value: Coefficient) -> Coefficient:
    if callable(value):
        return value
    return _finite(name, value)


def _non_negative_coefficient(name: str, value: Coefficient) -> Coefficient:
    if callable(value):
        return value
    return _non_negative(name, value)


def coefficient_at(value: Coefficient, t: float) -> float:
    """Evaluate a constant or time-dependent coefficient at time ``t``."""
    if callable(value):
        return float(value(t))
    return float(value)


def _set(obj: Any, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


# ---------------------------
# Jump-size distributions
# ---------------------------


@dataclass(frozen=True, slots=True)
class NormalJumps:
    """Log-jump sizes ``J ~ N(mean, std^2)`` (Merton)."""

    mean: float = 0.0
    std: float = 0.1

    def __post_init__(self) -> None:
        _set(self, "mean", _finite("jump mean", self.mean))
        _set(self, "std", _non_negative("jump std", self.std))

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        return rng.normal(self.mean, self.std, size=size)

    def mean_exp(self) -> float:
        """``E[exp(J)]``."""
        return math.exp(self.mean + 0.5 * self.std * self.std)

    def moments(self) -> tuple[float, float]:
        """Mean and variance of ``J``."""
        return self.mean, self.std * self.std


@dataclass(frozen=True, slots=True)
class KouJumps:
    """Double-exponential log-jump sizes (Kou).

    With probability ``p_up`` the jump is ``Exp(eta_up)``, otherwise it is
    ``-Exp(eta_down)``. ``eta_up > 1`` keeps ``E[exp(J)]`` finite.
    """

    p_up: float = 0.5
    eta_up: float = 10.0
    eta_down: float = 10.0

    def __post_init__(self) -> None:
        _set(self, "p_up", _probability("p_up", self.p_up))
        eta_up = _positive("eta_up", self.eta_up)
        if eta_up <= 1.0:
            raise InvalidParameterError(f"eta_up must be > 1, got {eta_up}")
        _set(self, "eta_up", eta_up)
        _set(self, "eta_down", _positive("eta_down", self.eta_down))

    def sample(self, rng: np.random.Generator, size: int) -> np.ndarray:
        up = rng.random(size) < self.p_up
        e = rng.standard_exponential(size)
        return np.where(up, e / self.eta_up, -e / self.eta_down)

    def mean_exp(self) -> float:
        p = self.p_up
        return p * self.eta_up / (self.eta_up - 1.0) + (1.0 - p) * self.eta_down / (
            self.eta_down + 1.0
        )

    def moments(self) -> tuple[float, float]:
        p = self.p_up
        m = p / self.eta_up - (1.0 - p) / self.eta_down
        second = 2.0 * p / self.eta_up**2 + 2.0 * (1.0 - p) / self.eta_down**2
        return m, second - m * m


type JumpSizes = NormalJumps | KouJumps


# ---------------------------
# Process parameter sets
# ---------------------------


@dataclass(frozen=True, slots=True)
class BrownianMotionParams:
    """Arithmetic Brownian motion ``dX = mu dt + sigma dW``."""

    x0: float = 0.0
    mu: float = 0.0
    sigma: float = 1.0

    def __post_init__(self) -> None:
        _set(self, "x0", _finite("x0", self.x0))
        _set(self, "mu", _finite("mu", self.mu))
        _set(self, "sigma", _non_negative("sigma", self.sigma))


@dataclass(frozen=True, slots=True)
class GBMParams:
    """Geometric Brownian motion ``dS = mu S dt + sigma S dW``."""

    x0: float
    mu: float
    sigma: float

    def __post_init__(self) -> None:
        _set(self, "x0", _positive("x0", self.x0))
        _set(self, "mu", _finite("mu", self.mu))
        _set(self, "sigma", _non_negative("sigma", self.sigma))


@dataclass(frozen=True, slots=True)
class OUParams:
    """Ornstein-Uhlenbeck ``dX = kappa (theta - X) dt + sigma dW``."""

    x0: float
    kappa: float
    theta: float
    sigma: float

    def __post_init__(self) -> None:
        _set(self, "x0", _finite("x0", self.x0))
        _set(self, "kappa", _non_negative("kappa", self.kappa))
        _set(self, "theta", _finite("theta", self.theta))
        _set(self, "sigma", _non_negative("sigma", self.sigma))


@dataclass(frozen=True, slots=True)
class CIRParams:
    """Square-root process ``dX = kappa (theta - X) dt + sigma sqrt(X+) dW``."""

    x0: float
    kappa: float
    theta: float
    sigma: float

    def __post_init__(self) -> None:
        _set(self, "x0", _non_negative("x0", self.x0))
        _set(self, "kappa", _non_negative("kappa", self.kappa))
        _set(self, "theta", _non_negative("theta", self.theta))
        _set(self, "sigma", _non_negative("sigma", self.sigma))
        if not self.feller_satisfied:
            logger.debug(
                "CIR parameters violate the Feller condition "
                "(2*kappa*theta=%g < sigma^2=%g); zero is attainable",
                2.0 * self.kappa * self.theta,
                self.sigma * self.sigma,
            )

    @property
    def feller_satisfied(self) -> bool:
        return 2.0 * self.kappa * self.theta >= self.sigma * self.sigma


@dataclass(frozen=True, slots=True)
class MertonParams:
    """Merton jump-diffusion: GBM plus compound-Poisson multiplicative jumps.

    Parameters
    ----------
    x0, mu, sigma
        GBM component.
    intensity : float
        Poisson jump rate ``lambda`` (expected jumps per unit time).
    jumps : NormalJumps or KouJumps
        Distribution of the log-jump size ``J``; each jump multiplies the
        state by ``exp(J)``.
    compensate : bool, default False
        If True the drift becomes ``mu - lambda * (E[exp(J)] - 1)`` so that
        ``E[S_t] = S_0 exp(mu t)``.
    """

    x0: float
    mu: float
    sigma: float
    intensity: float
    jumps: JumpSizes = field(default_factory=NormalJumps)
    compensate: bool = False

    def __post_init__(self) -> None:
        _set(self, "x0", _positive("x0", self.x0))
        _set(self, "mu", _finite("mu", self.mu))
        _set(self, "sigma", _non_negative("sigma", self.sigma))
        _set(self, "intensity", _non_negative("intensity", self.intensity))
        if not isinstance(self.jumps, (NormalJumps, KouJumps)):
            raise InvalidParameterError(
                f"Unsupported jump-size distribution: {type(self.jumps).__name__}"
            )

    @property
    def effective_drift(self) -> float:
        if not self.compensate:
            return self.mu
        return self.mu - self.intensity * (self.jumps.mean_exp() - 1.0)


@dataclass(frozen=True, slots=True)
class HestonParams:
    """Heston-style stochastic volatility.

    dS = mu S dt + sqrt(v+) S dW1
    dv = kappa (theta - v) dt + xi sqrt(v+) dW2,   d<W1, W2> = rho dt
    """

    s0: float
    v0: float
    mu: float
    kappa: float
    theta: float
    xi: float
    rho: float

    def __post_init__(self) -> None:
        _set(self, "s0", _positive("s0", self.s0))
        _set(self, "v0", _non_negative("v0", self.v0))
        _set(self, "mu", _finite("mu", self.mu))
        _set(self, "kappa", _non_negative("kappa", self.kappa))
        _set(self, "theta", _non_negative("theta", self.theta))
        _set(self, "xi", _non_negative("xi", self.xi))
        _set(self, "rho", _correlation("rho", self.rho))


@dataclass(frozen=True, slots=True)
class FBMParams:
    """Fractional Brownian motion ``X_t = x0 + sigma B^H_t``."""

    hurst: float
    sigma: float = 1.0
    x0: float = 0.0

    def __post_init__(self) -> None:
        _set(self, "hurst", _hurst(self.hurst))
        _set(self, "sigma", _non_negative("sigma", self.sigma))
        _set(self, "x0", _finite("x0", self.x0))


@dataclass(frozen=True, slots=True)
class FractionalOUParams:
    """Ornstein-Uhlenbeck process driven by fractional Gaussian noise."""

    x0: float
    kappa: float
    theta: float
    sigma: float
    hurst: float

    def __post_init__(self) -> None:
        _set(self, "x0", _finite("x0", self.x0))
        _set(self, "kappa", _non_negative("kappa", self.kappa))
        _set(self, "theta", _finite("theta", self.theta))
        _set(self, "sigma", _non_negative("sigma", self.sigma))
        _set(self, "hurst", _hurst(self.hurst))


@dataclass(frozen=True, slots=True)
class HoLeeParams:
    """Ho-Lee short rate ``dr = theta(t) dt + sigma(t) dW``.

    ``theta`` and ``sigma`` are constants or callables of time.
    """

    x0: float
    sigma: Coefficient
    theta: Coefficient = 0.0

    def __post_init__(self) -> None:
        _set(self, "x0", _finite("x0", self.x0))
        _set(self, "sigma", _non_negative_coefficient("sigma", self.sigma))
        _set(self, "theta", _coefficient("theta", self.theta))


@dataclass(frozen=True, slots=True)
class HullWhiteParams:
    """Hull-White / extended Vasicek ``dr = (theta(t) - alpha r) dt + sigma(t) dW``.

    ``theta`` and ``sigma`` are constants or callables of time.
    """

    x0: float
    alpha: float
    sigma: Coefficient
    theta: Coefficient = 0.0

    def __post_init__(self) -> None:
        _set(self, "x0", _finite("x0", self.x0))
        _set(self, "alpha", _non_negative("alpha", self.alpha))
        _set(self, "sigma", _non_negative_coefficient("sigma", self.sigma))
        _set(self, "theta", _coefficient("theta", self.theta))


type ProcessParams = (
    BrownianMotionParams
    | GBMParams
    | OUParams
    | CIRParams
    | MertonParams
    | HestonParams
    | FBMParams
    | FractionalOUParams
    | HoLeeParams
    | HullWhiteParams
)


def parameter_dict(p: Any) -> dict[str, Any]:
    """Flat ``name -> value`` view of a parameter set (jump specs expanded)."""
    out: dict[str, Any] = {}
    for f in fields(p):
        v = getattr(p, f.name)
        if isinstance(v, (NormalJumps, KouJumps)):
            for g in fields(v):
                out[f"jumps.{g.name}"] = getattr(v, g.name)
        elif callable(v):
            out[f.name] = getattr(v, "__name__", repr(v))
        else:
            out[f.name] = v
    return out
