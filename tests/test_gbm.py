import numpy as np
import pytest

from quantsim import GBMParams, Scheme, TimeGrid, simulate
from quantsim.exceptions import InvalidParameterError


def _scenario(base_params, make_config, **cfg):
    p = GBMParams(x0=base_params["x0"], mu=base_params["mu"], sigma=base_params["sigma"])
    g = TimeGrid.uniform(base_params["T"], base_params["n_steps"])
    return simulate("gbm", p, g, 10_000, make_config(42, **cfg))


def test_gbm_terminal_mean_within_monte_carlo_error(base_params, make_config):
    """E[S_T] = S0 exp(mu T) up to a few standard errors."""
    res = _scenario(base_params, make_config)

    target = base_params["x0"] * np.exp(base_params["mu"] * base_params["T"])
    se = res.terminal_std_error
    assert se > 0.0
    assert res.n_samples == 10_000
    assert res.failure_rate == 0.0
    # Euler drift bias is O(dt) and far below the MC error here
    assert abs(res.terminal_mean - target) <= 4.0 * se


def test_gbm_seed_42_reproduces_path_zero(base_params, make_config):
    a = _scenario(base_params, make_config, store_paths=True)
    b = _scenario(base_params, make_config, store_paths=True)

    assert len(a.paths) == 10_000
    np.testing.assert_array_equal(a.paths[0].values, b.paths[0].values)
    np.testing.assert_array_equal(a.mean, b.mean)
    np.testing.assert_array_equal(a.variance, b.variance)
    assert a.seed_entropy == 42


def test_gbm_exact_scheme_terminal_moments(base_params, make_config):
    res = _scenario(base_params, make_config, scheme=Scheme.EXACT)
    x0, mu, sigma, T = (base_params[k] for k in ("x0", "mu", "sigma", "T"))
    theo_var = x0**2 * np.exp(2 * mu * T) * np.expm1(sigma**2 * T)

    assert abs(res.terminal_mean - x0 * np.exp(mu * T)) <= 4.0 * res.terminal_std_error
    assert res.terminal_variance == pytest.approx(theo_var, rel=0.08)


def test_negative_volatility_fails_before_simulation():
    with pytest.raises(InvalidParameterError):
        simulate("gbm", GBMParams(x0=100.0, mu=0.05, sigma=-0.2), TimeGrid.uniform(1.0, 10), 10)
