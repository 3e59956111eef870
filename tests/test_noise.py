import numpy as np
import pytest

from quantsim.exceptions import InvalidCorrelationError
from quantsim.models.params import NormalJumps
from quantsim.numerics.noise import (
    NoiseBatch,
    NoiseGenerator,
    cholesky_factor,
    make_rng,
    sample_jumps,
    spawn_seeds,
)


def test_same_seed_same_batch():
    a = NoiseGenerator.from_seed(7).generate(100, 20)
    b = NoiseGenerator.from_seed(7).generate(100, 20)
    c = NoiseGenerator.from_seed(8).generate(100, 20)
    assert np.array_equal(a.z, b.z)
    assert not np.array_equal(a.z, c.z)
    assert a.z.shape == (1, 100, 20)


@pytest.mark.parametrize("rng_type", ["pcg64", "philox", "mt19937", "sfc64"])
def test_bit_generators_are_reproducible(rng_type):
    a = NoiseGenerator.from_seed(11, rng_type).generate(10, 5)
    b = NoiseGenerator.from_seed(11, rng_type).generate(10, 5)
    assert np.array_equal(a.z, b.z)


def test_unknown_rng_type_raises():
    with pytest.raises(ValueError):
        make_rng(1, "xorshift")  # type: ignore[arg-type]


def test_standard_normal_moments():
    z = NoiseGenerator.from_seed(1).generate(20_000, 10).z.ravel()
    n = z.size
    assert abs(z.mean()) <= 5.0 / np.sqrt(n)
    assert z.var() == pytest.approx(1.0, abs=5.0 * np.sqrt(2.0 / n))


@pytest.mark.parametrize("rho", [-0.7, 0.0, 0.6])
def test_correlation_fidelity(rho):
    corr = np.array([[1.0, rho], [rho, 1.0]])
    batch = NoiseGenerator.from_seed(5).generate(50_000, 4, corr)

    assert batch.n_factors == 2
    sample = np.corrcoef(batch.factor(0).ravel(), batch.factor(1).ravel())[0, 1]
    # se of a sample correlation ~ (1 - rho^2) / sqrt(n)
    assert sample == pytest.approx(rho, abs=0.02)


def test_three_factor_correlation():
    corr = np.array(
        [
            [1.0, 0.5, -0.2],
            [0.5, 1.0, 0.3],
            [-0.2, 0.3, 1.0],
        ]
    )
    batch = NoiseGenerator.from_seed(9).generate(100_000, 2, corr)
    sample = np.corrcoef(batch.z.reshape(3, -1))
    np.testing.assert_allclose(sample, corr, atol=0.02)


@pytest.mark.parametrize(
    "corr",
    [
        [[1.0, 2.0], [2.0, 1.0]],  # not positive-definite
        [[1.0, 0.3], [0.1, 1.0]],  # not symmetric
        [[2.0, 0.0], [0.0, 1.0]],  # non-unit diagonal
        [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],  # not square
        [[1.0, np.nan], [np.nan, 1.0]],
        [[1.0, 1.0], [1.0, 1.0]],  # singular
    ],
)
def test_invalid_correlation_raises(corr):
    with pytest.raises(InvalidCorrelationError):
        cholesky_factor(np.array(corr))
    with pytest.raises(InvalidCorrelationError):
        NoiseGenerator.from_seed(1).generate(10, 5, np.array(corr))


def test_correlation_size_must_match_factor_count():
    with pytest.raises(InvalidCorrelationError):
        cholesky_factor(np.eye(2), n_factors=3)


def test_cholesky_factor_reproduces_matrix():
    corr = np.array([[1.0, 0.4], [0.4, 1.0]])
    L = cholesky_factor(corr)
    np.testing.assert_allclose(L @ L.T, corr, atol=1e-14)
    assert L[0, 1] == 0.0


def test_antithetic_batch_is_paired_negation():
    batch = NoiseGenerator.from_seed(3).generate(10, 6, antithetic=True)
    assert batch.antithetic
    assert batch.n_paths == 10
    np.testing.assert_array_equal(batch.z[:, 5:, :], -batch.z[:, :5, :])


def test_antithetic_requires_even_path_count():
    with pytest.raises(ValueError):
        NoiseGenerator.from_seed(3).generate(9, 6, antithetic=True)


def test_negated_batch():
    batch = NoiseGenerator.from_seed(3).generate(4, 3)
    np.testing.assert_array_equal(batch.negated().z, -batch.z)


def test_noise_batch_requires_three_dimensions():
    with pytest.raises(ValueError):
        NoiseBatch(z=np.zeros((4, 3)))


@pytest.mark.parametrize("n_paths,n_steps", [(0, 5), (5, 0)])
def test_generate_rejects_empty_shapes(n_paths, n_steps):
    with pytest.raises(ValueError):
        NoiseGenerator.from_seed(1).generate(n_paths, n_steps)


def test_sample_jumps_counts_and_totals(rng):
    dt = np.full(50, 0.02)
    draws = sample_jumps(rng(0), 20_000, dt, intensity=3.0, sizes=NormalJumps(0.1, 0.0))

    assert draws.counts.shape == (20_000, 50)
    lam_dt = 3.0 * 0.02
    assert draws.counts.mean() == pytest.approx(lam_dt, rel=0.03)
    # zero-variance jump sizes make the total an exact multiple of the count
    np.testing.assert_allclose(draws.total, 0.1 * draws.counts)


def test_sample_jumps_zero_intensity(rng):
    draws = sample_jumps(rng(0), 10, np.full(5, 0.1), intensity=0.0, sizes=NormalJumps())
    assert draws.counts.sum() == 0
    assert np.all(draws.total == 0.0)


def test_spawn_seeds_is_reproducible():
    e1, s1 = spawn_seeds(42, 3)
    e2, s2 = spawn_seeds(42, 3)
    assert e1 == e2 == 42
    a = [make_rng(s).standard_normal(3) for s in s1]
    b = [make_rng(s).standard_normal(3) for s in s2]
    for x, y in zip(a, b):
        np.testing.assert_array_equal(x, y)
    assert not np.array_equal(a[0], a[1])


def test_spawn_seeds_without_seed_reports_entropy():
    entropy, children = spawn_seeds(None, 2)
    replay_entropy, replay = spawn_seeds(entropy, 2)
    assert replay_entropy == entropy
    np.testing.assert_array_equal(
        make_rng(children[0]).random(4), make_rng(replay[0]).random(4)
    )
