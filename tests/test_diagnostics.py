import numpy as np
import pandas as pd
import pytest

from quantsim import (
    BrownianMotionParams,
    CIRParams,
    FBMParams,
    GBMParams,
    HestonParams,
    HoLeeParams,
    HullWhiteParams,
    KouJumps,
    MertonParams,
    OUParams,
    Scheme,
    TimeGrid,
    simulate,
)
from quantsim.diagnostics import compare_moments, theoretical_moments


def test_gbm_theoretical_moments():
    p = GBMParams(x0=100.0, mu=0.05, sigma=0.2)
    mean, var = theoretical_moments(p, np.array([0.0, 1.0]))
    np.testing.assert_allclose(mean, [100.0, 100.0 * np.exp(0.05)])
    np.testing.assert_allclose(var, [0.0, 100.0**2 * np.exp(0.1) * np.expm1(0.04)])


def test_ou_and_hull_white_agree_for_matching_parameters():
    t = np.linspace(0.0, 3.0, 7)
    ou = theoretical_moments(OUParams(x0=0.5, kappa=0.8, theta=0.02, sigma=0.1), t)
    hw = theoretical_moments(
        HullWhiteParams(x0=0.5, alpha=0.8, sigma=0.1, theta=0.8 * 0.02), t
    )
    np.testing.assert_allclose(ou[0], hw[0])
    np.testing.assert_allclose(ou[1], hw[1])


def test_zero_speed_limits():
    t = np.array([0.0, 2.0])
    _, var = theoretical_moments(OUParams(x0=0.0, kappa=0.0, theta=0.0, sigma=0.5), t)
    np.testing.assert_allclose(var, [0.0, 0.5])
    mean, var = theoretical_moments(CIRParams(x0=0.04, kappa=0.0, theta=0.0, sigma=0.5), t)
    np.testing.assert_allclose(mean, [0.04, 0.04])
    np.testing.assert_allclose(var, [0.0, 0.04 * 0.25 * 2.0])


def test_fbm_and_brownian_moments():
    t = np.array([0.0, 4.0])
    _, var = theoretical_moments(FBMParams(hurst=0.25, sigma=2.0), t)
    np.testing.assert_allclose(var, [0.0, 4.0 * 4.0**0.5])
    mean, var = theoretical_moments(BrownianMotionParams(x0=1.0, mu=0.5, sigma=0.3), t)
    np.testing.assert_allclose(mean, [1.0, 3.0])
    np.testing.assert_allclose(var, [0.0, 0.36])


@pytest.mark.parametrize(
    "params",
    [
        HestonParams(s0=100.0, v0=0.04, mu=0.0, kappa=1.0, theta=0.04, xi=0.3, rho=0.0),
        HoLeeParams(x0=0.0, sigma=0.01, theta=lambda t: t),
        HullWhiteParams(x0=0.0, alpha=1.0, sigma=lambda t: 0.01 + t),
        MertonParams(x0=1.0, mu=0.0, sigma=0.1, intensity=1.0, jumps=KouJumps()),
    ],
    ids=["heston", "ho_lee_callable", "hull_white_callable_sigma", "merton_kou"],
)
def test_unsupported_moments_raise(params):
    with pytest.raises(ValueError):
        theoretical_moments(params, np.array([0.0, 1.0]))


def test_compare_moments_table_for_exact_gbm(make_config):
    p = GBMParams(x0=100.0, mu=0.05, sigma=0.2)
    res = simulate("gbm", p, TimeGrid.uniform(1.0, 20), 20_000, make_config(1, scheme=Scheme.EXACT))
    df = compare_moments(res, p, every=5)

    assert isinstance(df, pd.DataFrame)
    assert df.index.name == "t"
    assert list(df.index) == pytest.approx([0.0, 0.25, 0.5, 0.75, 1.0])
    assert np.isnan(df["z"].iloc[0])
    assert (df["z"].iloc[1:].abs() < 4.0).all()
    assert df["var_ratio"].iloc[-1] == pytest.approx(1.0, abs=0.08)


def test_compare_moments_for_cir_with_many_steps(make_config):
    p = CIRParams(x0=0.03, kappa=2.0, theta=0.05, sigma=0.2)
    res = simulate("cir", p, TimeGrid.uniform(2.0, 200), 10_000, make_config(2))
    df = compare_moments(res, p, every=50)
    assert (df["z"].iloc[1:].abs() < 4.5).all()


def test_compare_moments_skips_variance_for_antithetic(make_config):
    p = OUParams(x0=1.0, kappa=1.0, theta=0.0, sigma=0.3)
    res = simulate("ou", p, TimeGrid.uniform(1.0, 10), 2000, make_config(3, antithetic=True))
    df = compare_moments(res, p)
    assert df["var_mc"].isna().all()
    assert len(df) == 11


def test_compare_moments_rejects_bad_stride(make_config):
    p = OUParams(x0=1.0, kappa=1.0, theta=0.0, sigma=0.3)
    res = simulate("ou", p, TimeGrid.uniform(1.0, 4), 10, make_config())
    with pytest.raises(ValueError):
        compare_moments(res, p, every=0)


def test_to_frame(make_config):
    p = HestonParams(s0=100.0, v0=0.04, mu=0.0, kappa=1.0, theta=0.04, xi=0.3, rho=-0.3)
    res = simulate("heston", p, TimeGrid.uniform(1.0, 8), 200, make_config(4))
    df = res.to_frame()
    assert list(df.columns) == [
        "mean",
        "variance",
        "std_error",
        "p5",
        "p50",
        "p95",
        "aux_mean",
        "aux_variance",
    ]
    assert len(df) == 9
    np.testing.assert_allclose(df["mean"].to_numpy(), res.mean)


def test_plots_render(make_config):
    mpl = pytest.importorskip("matplotlib")
    mpl.use("Agg")
    import matplotlib.pyplot as plt

    from quantsim.diagnostics import plot_mean_band, plot_paths

    p = GBMParams(x0=100.0, mu=0.05, sigma=0.2)
    res = simulate("gbm", p, TimeGrid.uniform(1.0, 10), 50, make_config(store_paths=True))

    fig, ax = plot_paths(res, n_plot=5)
    assert len(ax.lines) == 5
    plt.close(fig)

    fig, ax = plot_mean_band(res)
    assert ax.get_legend() is not None
    plt.close(fig)


def test_plot_paths_needs_stored_paths(make_config):
    from quantsim.diagnostics import plot_paths

    p = GBMParams(x0=100.0, mu=0.05, sigma=0.2)
    res = simulate("gbm", p, TimeGrid.uniform(1.0, 10), 10, make_config())
    with pytest.raises(ValueError, match="store_paths"):
        plot_paths(res)
