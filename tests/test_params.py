import dataclasses
import logging

import numpy as np
import pytest

from quantsim.exceptions import InvalidParameterError
from quantsim.models.params import (
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
    coefficient_at,
    parameter_dict,
)


@pytest.mark.parametrize(
    "factory",
    [
        lambda: GBMParams(x0=100.0, mu=0.05, sigma=-0.2),
        lambda: OUParams(x0=0.0, kappa=1.0, theta=0.0, sigma=-0.1),
        lambda: CIRParams(x0=0.04, kappa=1.0, theta=0.04, sigma=-0.1),
        lambda: BrownianMotionParams(sigma=-1.0),
        lambda: MertonParams(x0=1.0, mu=0.0, sigma=-0.1, intensity=1.0),
        lambda: HestonParams(s0=1.0, v0=0.04, mu=0.0, kappa=1.0, theta=0.04, xi=-0.1, rho=0.0),
        lambda: HoLeeParams(x0=0.01, sigma=-0.01),
        lambda: HullWhiteParams(x0=0.01, alpha=0.1, sigma=-0.01),
    ],
)
def test_negative_volatility_fails_construction(factory):
    with pytest.raises(InvalidParameterError):
        factory()


@pytest.mark.parametrize(
    "factory",
    [
        lambda: OUParams(x0=0.0, kappa=-1.0, theta=0.0, sigma=0.1),
        lambda: CIRParams(x0=0.04, kappa=-1.0, theta=0.04, sigma=0.1),
        lambda: HullWhiteParams(x0=0.01, alpha=-0.1, sigma=0.01),
        lambda: FractionalOUParams(x0=0.0, kappa=-1.0, theta=0.0, sigma=0.1, hurst=0.7),
    ],
)
def test_negative_mean_reversion_fails_construction(factory):
    with pytest.raises(InvalidParameterError):
        factory()


def test_invalid_parameter_is_a_value_error():
    with pytest.raises(ValueError):
        GBMParams(x0=-1.0, mu=0.0, sigma=0.2)


@pytest.mark.parametrize("p_up", [-0.1, 1.5, float("nan")])
def test_kou_probability_must_lie_in_unit_interval(p_up):
    with pytest.raises(InvalidParameterError):
        KouJumps(p_up=p_up)


@pytest.mark.parametrize("p_up", [0.0, 1.0])
def test_kou_probability_bounds_are_inclusive(p_up):
    assert KouJumps(p_up=p_up).p_up == p_up


def test_kou_eta_up_must_exceed_one():
    with pytest.raises(InvalidParameterError):
        KouJumps(eta_up=1.0)


@pytest.mark.parametrize("rho", [-1.0, 1.0, 1.2])
def test_heston_rho_must_lie_in_open_interval(rho):
    with pytest.raises(InvalidParameterError):
        HestonParams(s0=100.0, v0=0.04, mu=0.0, kappa=2.0, theta=0.04, xi=0.3, rho=rho)


@pytest.mark.parametrize("hurst", [0.0, 1.0, -0.5])
def test_hurst_must_lie_in_open_unit_interval(hurst):
    with pytest.raises(InvalidParameterError):
        FBMParams(hurst=hurst)


def test_params_are_immutable():
    p = GBMParams(x0=100.0, mu=0.05, sigma=0.2)
    with pytest.raises(dataclasses.FrozenInstanceError):
        p.sigma = 0.3  # type: ignore[misc]


def test_integers_are_stored_as_floats():
    p = OUParams(x0=1, kappa=2, theta=0, sigma=1)
    assert isinstance(p.x0, float)
    assert isinstance(p.kappa, float)


def test_time_dependent_theta():
    def theta(t: float) -> float:
        return 0.01 + 0.02 * t

    p = HoLeeParams(x0=0.01, sigma=0.01, theta=theta)
    assert coefficient_at(p.theta, 0.5) == pytest.approx(0.02)
    assert coefficient_at(0.03, 10.0) == 0.03
    assert parameter_dict(p)["theta"] == "theta"


def test_parameter_dict_expands_jumps():
    p = MertonParams(
        x0=100.0, mu=0.05, sigma=0.2, intensity=0.5, jumps=NormalJumps(-0.1, 0.15)
    )
    d = parameter_dict(p)
    assert d["intensity"] == 0.5
    assert d["jumps.mean"] == -0.1
    assert d["jumps.std"] == 0.15
    assert d["compensate"] is False


def test_merton_compensated_drift():
    jumps = NormalJumps(mean=-0.1, std=0.2)
    p = MertonParams(x0=1.0, mu=0.05, sigma=0.2, intensity=2.0, jumps=jumps, compensate=True)
    k = np.exp(-0.1 + 0.5 * 0.04) - 1.0
    assert p.effective_drift == pytest.approx(0.05 - 2.0 * k)
    assert MertonParams(x0=1.0, mu=0.05, sigma=0.2, intensity=2.0).effective_drift == 0.05


def test_merton_rejects_unknown_jump_distribution():
    with pytest.raises(InvalidParameterError):
        MertonParams(x0=1.0, mu=0.0, sigma=0.2, intensity=1.0, jumps=0.1)  # type: ignore[arg-type]


def test_kou_sample_moments(rng):
    jumps = KouJumps(p_up=0.3, eta_up=8.0, eta_down=5.0)
    n = 200_000
    x = jumps.sample(rng(3), n)
    mean, var = jumps.moments()

    se_mean = (var / n) ** 0.5
    assert abs(x.mean() - mean) <= 5.0 * se_mean
    assert x.var(ddof=1) == pytest.approx(var, rel=0.03)
    assert np.exp(x).mean() == pytest.approx(jumps.mean_exp(), rel=0.01)


def test_normal_jump_mean_exp(rng):
    jumps = NormalJumps(mean=0.05, std=0.1)
    x = jumps.sample(rng(4), 100_000)
    assert np.exp(x).mean() == pytest.approx(jumps.mean_exp(), rel=0.005)


def test_cir_feller_violation_is_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="quantsim.models.params")
    p = CIRParams(x0=0.04, kappa=0.5, theta=0.04, sigma=0.5)
    assert not p.feller_satisfied
    assert any("Feller" in r.getMessage() for r in caplog.records)


def test_cir_feller_satisfied():
    assert CIRParams(x0=0.04, kappa=2.0, theta=0.04, sigma=0.3).feller_satisfied
