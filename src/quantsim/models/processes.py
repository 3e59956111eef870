"""Process models as tagged capability records.

Every supported family is a :class:`ProcessModel` instance: a frozen record of
pure, vectorised coefficient functions tagged by :class:`ProcessKind`. The
integrator only ever talks to this record, so it stays a single algorithm
parameterised by whichever capabilities a variant provides:

- ``drift`` / ``diffusion`` (always)
- ``diffusion_dx`` (enables the Milstein correction)
- ``exact_step`` (enables :attr:`~quantsim.config.Scheme.EXACT`)
- ``jump`` (compound-Poisson term applied once per step)
- ``correlation`` with ``n_factors > 1`` (coupled variance process)
- ``hurst`` with ``generation = SPECTRAL`` (fractional noise)

State convention: ``x`` always has shape ``(n_factors, n_paths)`` and every
coefficient function returns an array of the same shape. The functions never
mutate their inputs, so they can be wrapped by an external AD layer.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from ..config import Scheme
from ..exceptions import InvalidParameterError
from ..typing import FloatArray
from .params import (
    BrownianMotionParams,
    CIRParams,
    FBMParams,
    FractionalOUParams,
    GBMParams,
    HestonParams,
    HoLeeParams,
    HullWhiteParams,
    JumpSizes,
    MertonParams,
    OUParams,
    coefficient_at,
)

__all__ = [
    "ProcessKind",
    "GenerationMethod",
    "JumpTerm",
    "ProcessModel",
    "available_models",
    "get_model",
    "model_for",
    "resolve_model",
    "BROWNIAN_MOTION",
    "GEOMETRIC_BROWNIAN_MOTION",
    "ORNSTEIN_UHLENBECK",
    "COX_INGERSOLL_ROSS",
    "MERTON_JUMP_DIFFUSION",
    "HESTON",
    "FRACTIONAL_BROWNIAN_MOTION",
    "FRACTIONAL_ORNSTEIN_UHLENBECK",
    "HO_LEE",
    "HULL_WHITE",
]

type CoefficientFn = Callable[[FloatArray, float, Any], FloatArray]
type ExactStepFn = Callable[[FloatArray, float, float, FloatArray, Any], FloatArray]


class ProcessKind(str, Enum):
    BROWNIAN_MOTION = "brownian_motion"
    GBM = "gbm"
    OU = "ou"
    CIR = "cir"
    MERTON = "merton"
    HESTON = "heston"
    FBM = "fbm"
    FRACTIONAL_OU = "fractional_ou"
    HO_LEE = "ho_lee"
    HULL_WHITE = "hull_white"


class GenerationMethod(str, Enum):
    STEPWISE = "stepwise"  # time-stepping integrator
    SPECTRAL = "spectral"  # circulant-embedding noise synthesis


@dataclass(frozen=True, slots=True)
class JumpTerm:
    """Compound-Poisson capability.

    Attributes
    ----------
    intensity
        ``params -> lambda``, the expected number of jumps per unit time.
    sizes
        ``params -> JumpSizes``, the distribution of a single log-jump.
    apply
        ``(x, total_log_jump, params) -> increment`` added to the state after
        the continuous update. ``total_log_jump`` is the sum of all jump sizes
        realised in the step (zero when no jump occurred).
    """

    intensity: Callable[[Any], float]
    sizes: Callable[[Any], JumpSizes]
    apply: Callable[[FloatArray, FloatArray, Any], FloatArray]


@dataclass(frozen=True, slots=True)
class ProcessModel:
    kind: ProcessKind
    params_type: type
    initial_state: Callable[[Any], tuple[float, ...]]
    drift: CoefficientFn
    diffusion: CoefficientFn
    diffusion_dx: CoefficientFn | None = None
    exact_step: ExactStepFn | None = None
    jump: JumpTerm | None = None
    correlation: Callable[[Any], FloatArray] | None = None
    hurst: Callable[[Any], float] | None = None
    n_factors: int = 1
    nonnegative: tuple[bool, ...] = (False,)
    generation: GenerationMethod = GenerationMethod.STEPWISE
    factor_names: tuple[str, ...] = ("x",)

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def capabilities(self) -> frozenset[str]:
        caps = {"drift", "diffusion"}
        if self.diffusion_dx is not None:
            caps.add("diffusion_dx")
        if self.exact_step is not None:
            caps.add("exact_step")
        if self.jump is not None:
            caps.add("jump")
        if self.correlation is not None:
            caps.add("correlation")
        if self.hurst is not None:
            caps.add("hurst")
        return frozenset(caps)

    def supports(self, scheme: Scheme | str) -> bool:
        scheme = Scheme(scheme)
        if self.generation is GenerationMethod.SPECTRAL:
            # the spectral route has its own recursion; only the default applies
            return scheme is Scheme.EULER_MARUYAMA
        if scheme is Scheme.EXACT:
            return self.exact_step is not None
        return True

    def check_params(self, params: Any) -> None:
        if not isinstance(params, self.params_type):
            raise InvalidParameterError(
                f"{self.kind.value} expects {self.params_type.__name__}, "
                f"got {type(params).__name__}"
            )

    def evaluate(
        self, state: float | FloatArray, t: float, params: Any
    ) -> tuple[FloatArray, FloatArray]:
        """Point evaluation of ``(drift, diffusion)``.

        ``state`` may be a scalar (single-factor models) or any array whose
        leading dimension is ``n_factors``.
        """
        x = np.asarray(state, dtype=np.float64).reshape(self.n_factors, -1)
        return self.drift(x, float(t), params), self.diffusion(x, float(t), params)


# ---------------------------
# Arithmetic Brownian motion
# ---------------------------


def _bm_drift(x: FloatArray, t: float, p: BrownianMotionParams) -> FloatArray:
    return np.full_like(x, p.mu)


def _bm_diffusion(x: FloatArray, t: float, p: BrownianMotionParams) -> FloatArray:
    return np.full_like(x, p.sigma)


def _zero_dx(x: FloatArray, t: float, p: Any) -> FloatArray:
    return np.zeros_like(x)


def _bm_exact(
    x: FloatArray, t: float, dt: float, z: FloatArray, p: BrownianMotionParams
) -> FloatArray:
    return x + p.mu * dt + p.sigma * math.sqrt(dt) * z


BROWNIAN_MOTION = ProcessModel(
    kind=ProcessKind.BROWNIAN_MOTION,
    params_type=BrownianMotionParams,
    initial_state=lambda p: (p.x0,),
    drift=_bm_drift,
    diffusion=_bm_diffusion,
    diffusion_dx=_zero_dx,
    exact_step=_bm_exact,
)


# ---------------------------
# Geometric Brownian motion
# ---------------------------


def _gbm_drift(x: FloatArray, t: float, p: GBMParams) -> FloatArray:
    return p.mu * x


def _gbm_diffusion(x: FloatArray, t: float, p: GBMParams) -> FloatArray:
    return p.sigma * x


def _gbm_diffusion_dx(x: FloatArray, t: float, p: GBMParams) -> FloatArray:
    return np.full_like(x, p.sigma)


def _lognormal_step(
    x: FloatArray, dt: float, z: FloatArray, mu: float, sigma: float
) -> FloatArray:
    return x * np.exp((mu - 0.5 * sigma * sigma) * dt + sigma * math.sqrt(dt) * z)


def _gbm_exact(
    x: FloatArray, t: float, dt: float, z: FloatArray, p: GBMParams
) -> FloatArray:
    return _lognormal_step(x, dt, z, p.mu, p.sigma)


GEOMETRIC_BROWNIAN_MOTION = ProcessModel(
    kind=ProcessKind.GBM,
    params_type=GBMParams,
    initial_state=lambda p: (p.x0,),
    drift=_gbm_drift,
    diffusion=_gbm_diffusion,
    diffusion_dx=_gbm_diffusion_dx,
    exact_step=_gbm_exact,
    factor_names=("s",),
)


# ---------------------------
# Ornstein-Uhlenbeck
# ---------------------------


def _mean_reverting_drift(x: FloatArray, t: float, p: Any) -> FloatArray:
    return p.kappa * (p.theta - x)


def _constant_sigma(x: FloatArray, t: float, p: Any) -> FloatArray:
    return np.full_like(x, p.sigma)


def _ou_exact(
    x: FloatArray, t: float, dt: float, z: FloatArray, p: OUParams
) -> FloatArray:
    if p.kappa == 0.0:
        return x + p.sigma * math.sqrt(dt) * z
    decay = math.exp(-p.kappa * dt)
    sd = p.sigma * math.sqrt(-math.expm1(-2.0 * p.kappa * dt) / (2.0 * p.kappa))
    return p.theta + (x - p.theta) * decay + sd * z


ORNSTEIN_UHLENBECK = ProcessModel(
    kind=ProcessKind.OU,
    params_type=OUParams,
    initial_state=lambda p: (p.x0,),
    drift=_mean_reverting_drift,
    diffusion=_constant_sigma,
    diffusion_dx=_zero_dx,
    exact_step=_ou_exact,
)


# ---------------------------
# Cox-Ingersoll-Ross (square root)
# ---------------------------


def _cir_diffusion(x: FloatArray, t: float, p: CIRParams) -> FloatArray:
    # full truncation: the square root only ever sees max(x, 0)
    return p.sigma * np.sqrt(np.maximum(x, 0.0))


def _sqrt_diffusion_dx(scale: float, x: FloatArray) -> FloatArray:
    root = np.sqrt(np.maximum(x, 0.0))
    return np.divide(scale, 2.0 * root, out=np.zeros_like(root), where=root > 0.0)


def _cir_diffusion_dx(x: FloatArray, t: float, p: CIRParams) -> FloatArray:
    return _sqrt_diffusion_dx(p.sigma, x)


COX_INGERSOLL_ROSS = ProcessModel(
    kind=ProcessKind.CIR,
    params_type=CIRParams,
    initial_state=lambda p: (p.x0,),
    drift=_mean_reverting_drift,
    diffusion=_cir_diffusion,
    diffusion_dx=_cir_diffusion_dx,
    nonnegative=(True,),
)


# ---------------------------
# Merton jump-diffusion
# ---------------------------


def _merton_drift(x: FloatArray, t: float, p: MertonParams) -> FloatArray:
    return p.effective_drift * x


def _merton_exact(
    x: FloatArray, t: float, dt: float, z: FloatArray, p: MertonParams
) -> FloatArray:
    return _lognormal_step(x, dt, z, p.effective_drift, p.sigma)


def _multiplicative_jump(
    x: FloatArray, total_log_jump: FloatArray, p: MertonParams
) -> FloatArray:
    return x * np.expm1(total_log_jump)


MERTON_JUMP_DIFFUSION = ProcessModel(
    kind=ProcessKind.MERTON,
    params_type=MertonParams,
    initial_state=lambda p: (p.x0,),
    drift=_merton_drift,
    diffusion=_gbm_diffusion,
    diffusion_dx=_gbm_diffusion_dx,
    exact_step=_merton_exact,
    jump=JumpTerm(
        intensity=lambda p: p.intensity,
        sizes=lambda p: p.jumps,
        apply=_multiplicative_jump,
    ),
    factor_names=("s",),
)


# ---------------------------
# Heston-style stochastic volatility
# ---------------------------


def _heston_drift(x: FloatArray, t: float, p: HestonParams) -> FloatArray:
    s, v = x
    return np.stack([p.mu * s, p.kappa * (p.theta - v)])


def _heston_diffusion(x: FloatArray, t: float, p: HestonParams) -> FloatArray:
    s, v = x
    root_v = np.sqrt(np.maximum(v, 0.0))
    return np.stack([root_v * s, p.xi * root_v])


def _heston_diffusion_dx(x: FloatArray, t: float, p: HestonParams) -> FloatArray:
    # derivative of each factor's diffusion w.r.t. its own state
    s, v = x
    root_v = np.sqrt(np.maximum(v, 0.0))
    return np.stack([root_v, _sqrt_diffusion_dx(p.xi, v)])


def _heston_correlation(p: HestonParams) -> FloatArray:
    return np.array([[1.0, p.rho], [p.rho, 1.0]])


HESTON = ProcessModel(
    kind=ProcessKind.HESTON,
    params_type=HestonParams,
    initial_state=lambda p: (p.s0, p.v0),
    drift=_heston_drift,
    diffusion=_heston_diffusion,
    diffusion_dx=_heston_diffusion_dx,
    correlation=_heston_correlation,
    n_factors=2,
    nonnegative=(False, True),
    factor_names=("s", "v"),
)


# ---------------------------
# Fractional processes (spectral route)
# ---------------------------


def _zero_drift(x: FloatArray, t: float, p: Any) -> FloatArray:
    return np.zeros_like(x)


FRACTIONAL_BROWNIAN_MOTION = ProcessModel(
    kind=ProcessKind.FBM,
    params_type=FBMParams,
    initial_state=lambda p: (p.x0,),
    drift=_zero_drift,
    diffusion=_constant_sigma,
    hurst=lambda p: p.hurst,
    generation=GenerationMethod.SPECTRAL,
)

FRACTIONAL_ORNSTEIN_UHLENBECK = ProcessModel(
    kind=ProcessKind.FRACTIONAL_OU,
    params_type=FractionalOUParams,
    initial_state=lambda p: (p.x0,),
    drift=_mean_reverting_drift,
    diffusion=_constant_sigma,
    hurst=lambda p: p.hurst,
    generation=GenerationMethod.SPECTRAL,
)


# ---------------------------
# Short-rate models with time-dependent coefficients
# ---------------------------


def _ho_lee_drift(x: FloatArray, t: float, p: HoLeeParams) -> FloatArray:
    return np.full_like(x, coefficient_at(p.theta, t))


def _hull_white_drift(x: FloatArray, t: float, p: HullWhiteParams) -> FloatArray:
    return coefficient_at(p.theta, t) - p.alpha * x


def _short_rate_sigma(x: FloatArray, t: float, p: Any) -> FloatArray:
    return np.full_like(x, coefficient_at(p.sigma, t))


HO_LEE = ProcessModel(
    kind=ProcessKind.HO_LEE,
    params_type=HoLeeParams,
    initial_state=lambda p: (p.x0,),
    drift=_ho_lee_drift,
    diffusion=_short_rate_sigma,
    diffusion_dx=_zero_dx,
    factor_names=("r",),
)

HULL_WHITE = ProcessModel(
    kind=ProcessKind.HULL_WHITE,
    params_type=HullWhiteParams,
    initial_state=lambda p: (p.x0,),
    drift=_hull_white_drift,
    diffusion=_short_rate_sigma,
    diffusion_dx=_zero_dx,
    factor_names=("r",),
)


# ---------------------------
# Registry (closed set)
# ---------------------------

_REGISTRY: dict[ProcessKind, ProcessModel] = {
    m.kind: m
    for m in (
        BROWNIAN_MOTION,
        GEOMETRIC_BROWNIAN_MOTION,
        ORNSTEIN_UHLENBECK,
        COX_INGERSOLL_ROSS,
        MERTON_JUMP_DIFFUSION,
        HESTON,
        FRACTIONAL_BROWNIAN_MOTION,
        FRACTIONAL_ORNSTEIN_UHLENBECK,
        HO_LEE,
        HULL_WHITE,
    )
}


def available_models() -> tuple[ProcessKind, ...]:
    return tuple(_REGISTRY)


def get_model(kind: ProcessKind | str) -> ProcessModel:
    try:
        return _REGISTRY[ProcessKind(kind)]
    except ValueError as e:
        raise ValueError(
            f"Unknown process kind: {kind!r}. "
            f"Available: {[k.value for k in _REGISTRY]}"
        ) from e


def model_for(params: Any) -> ProcessModel:
    """Return the model whose parameter type matches ``params``."""
    for model in _REGISTRY.values():
        if type(params) is model.params_type:
            return model
    raise InvalidParameterError(
        f"No process model accepts parameters of type {type(params).__name__}"
    )


def resolve_model(
    model: ProcessModel | ProcessKind | str | None, params: Any
) -> ProcessModel:
    """Normalise a model reference and check it against ``params``."""
    if model is None:
        return model_for(params)
    resolved = model if isinstance(model, ProcessModel) else get_model(model)
    resolved.check_params(params)
    return resolved
