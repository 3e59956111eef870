"""Closed-form moments and Monte Carlo-vs-theory tables.

Only variants with a simple Gaussian or log-normal marginal (or a known first
two moments) are covered; anything else raises ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
import pandas as pd
from scipy.stats import norm

from ..models.params import (
    BrownianMotionParams,
    CIRParams,
    FBMParams,
    GBMParams,
    HoLeeParams,
    HullWhiteParams,
    MertonParams,
    NormalJumps,
    OUParams,
)
from ..simulation.result import SimulationResult
from ..typing import FloatArray

__all__ = ["compare_moments", "theoretical_moments"]

type MomentFn = Callable[[Any, FloatArray], tuple[FloatArray, FloatArray]]


def _mean_reverting_var(sigma: float, kappa: float, t: FloatArray) -> FloatArray:
    if kappa == 0.0:
        return sigma * sigma * t
    return sigma * sigma * -np.expm1(-2.0 * kappa * t) / (2.0 * kappa)


def _bm(p: BrownianMotionParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    return p.x0 + p.mu * t, p.sigma**2 * t


def _gbm(p: GBMParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    mean = p.x0 * np.exp(p.mu * t)
    return mean, mean * mean * np.expm1(p.sigma**2 * t)


def _ou(p: OUParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    mean = p.theta + (p.x0 - p.theta) * np.exp(-p.kappa * t)
    return mean, _mean_reverting_var(p.sigma, p.kappa, t)


def _cir(p: CIRParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    if p.kappa == 0.0:
        return np.full_like(t, p.x0), p.x0 * p.sigma**2 * t
    e = np.exp(-p.kappa * t)
    mean = p.theta + (p.x0 - p.theta) * e
    s2k = p.sigma**2 / p.kappa
    var = p.x0 * s2k * (e - e * e) + 0.5 * p.theta * s2k * (1.0 - e) ** 2
    return mean, var


def _ho_lee(p: HoLeeParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    if callable(p.theta) or callable(p.sigma):
        raise ValueError("closed-form moments need constant theta and sigma")
    return p.x0 + p.theta * t, p.sigma**2 * t


def _hull_white(p: HullWhiteParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    if callable(p.theta) or callable(p.sigma):
        raise ValueError("closed-form moments need constant theta and sigma")
    if p.alpha == 0.0:
        return p.x0 + p.theta * t, p.sigma**2 * t
    e = np.exp(-p.alpha * t)
    mean = p.x0 * e + p.theta / p.alpha * (1.0 - e)
    return mean, _mean_reverting_var(p.sigma, p.alpha, t)


def _merton(p: MertonParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    if not isinstance(p.jumps, NormalJumps):
        raise ValueError("closed-form Merton moments need NormalJumps")
    j = p.jumps
    m1 = j.mean_exp()
    m2 = np.exp(2.0 * j.mean + 2.0 * j.std**2)  # E[exp(2J)]
    mu = p.effective_drift
    lam = p.intensity
    mean = p.x0 * np.exp((mu + lam * (m1 - 1.0)) * t)
    second = p.x0**2 * np.exp((2.0 * mu + p.sigma**2 + lam * (m2 - 1.0)) * t)
    return mean, second - mean * mean


def _fbm(p: FBMParams, t: FloatArray) -> tuple[FloatArray, FloatArray]:
    return np.full_like(t, p.x0), p.sigma**2 * t ** (2.0 * p.hurst)


_MOMENTS: dict[type, MomentFn] = {
    BrownianMotionParams: _bm,
    GBMParams: _gbm,
    OUParams: _ou,
    CIRParams: _cir,
    HoLeeParams: _ho_lee,
    HullWhiteParams: _hull_white,
    MertonParams: _merton,
    FBMParams: _fbm,
}


def theoretical_moments(
    params: Any, times: FloatArray
) -> tuple[FloatArray, FloatArray]:
    """Exact mean and variance of ``X_t`` at each of ``times``.

    Raises
    ------
    ValueError
        If no closed form is available for the parameter set.
    """
    try:
        fn = _MOMENTS[type(params)]
    except KeyError as e:
        raise ValueError(
            f"No closed-form moments for {type(params).__name__}"
        ) from e
    t = np.asarray(times, dtype=np.float64)
    mean, var = fn(params, t)
    return np.asarray(mean, dtype=np.float64), np.asarray(var, dtype=np.float64)


def compare_moments(
    result: SimulationResult,
    params: Any,
    *,
    every: int = 1,
) -> pd.DataFrame:
    """Monte Carlo statistics next to their closed-form values.

    Parameters
    ----------
    result
        Output of :func:`~quantsim.simulation.driver.simulate`.
    params
        Parameter set the run used.
    every
        Keep every ``every``-th grid point (the terminal point is always kept).

    Returns
    -------
    pandas.DataFrame
        Indexed by ``t`` with columns ``mean_mc``, ``mean_theory``,
        ``std_error``, ``z``, ``p_value``, ``var_mc``, ``var_theory`` and
        ``var_ratio``. ``z`` is NaN where the standard error is zero (e.g. at
        ``t = 0``). Variance columns compare per-path variances, so they are
        NaN for antithetic runs whose variance is that of pair averages.
    """
    if every < 1:
        raise ValueError("every must be >= 1")
    n_points = result.times.size
    idx = np.unique(np.r_[np.arange(0, n_points, every), n_points - 1])
    t = result.times[idx]
    mean_th, var_th = theoretical_moments(params, t)

    mean_mc = result.mean[idx]
    se = result.std_error[idx]
    z = np.divide(
        mean_mc - mean_th, se, out=np.full_like(se, np.nan), where=se > 0.0
    )

    if result.antithetic:
        var_mc = np.full_like(t, np.nan)
    else:
        var_mc = result.variance[idx]
    var_ratio = np.divide(
        var_mc, var_th, out=np.full_like(var_th, np.nan), where=var_th > 0.0
    )

    return pd.DataFrame(
        {
            "mean_mc": mean_mc,
            "mean_theory": mean_th,
            "std_error": se,
            "z": z,
            "p_value": 2.0 * norm.sf(np.abs(z)),
            "var_mc": var_mc,
            "var_theory": var_th,
            "var_ratio": var_ratio,
        },
        index=pd.Index(t, name="t"),
    )
