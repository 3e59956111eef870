import numpy as np
import pytest

from quantsim.numerics.grids import TimeGrid, build_time_grid, validate_times


def test_uniform_grid_shape_and_steps():
    g = TimeGrid.uniform(2.0, 8)
    assert len(g) == 9
    assert g.n_steps == 8
    assert g.horizon == 2.0
    np.testing.assert_allclose(g.dt, 0.25)
    assert g.is_uniform


def test_build_time_grid_endpoints():
    t = build_time_grid(1.0, 4)
    np.testing.assert_allclose(t, [0.0, 0.25, 0.5, 0.75, 1.0])


def test_variable_step_grid():
    g = TimeGrid.from_times([0.0, 0.1, 0.5, 2.0])
    assert g.n_steps == 3
    assert not g.is_uniform
    np.testing.assert_allclose(g.dt, [0.1, 0.4, 1.5])


@pytest.mark.parametrize(
    "times",
    [
        [0.0],
        [0.1, 0.2, 0.3],
        [0.0, 0.5, 0.5],
        [0.0, 1.0, 0.5],
        [0.0, np.inf],
        [[0.0, 1.0]],
    ],
)
def test_invalid_grids_raise(times):
    with pytest.raises(ValueError):
        validate_times(times)
    with pytest.raises(ValueError):
        TimeGrid.from_times(times)


@pytest.mark.parametrize("horizon,n_steps", [(0.0, 10), (-1.0, 10), (1.0, 0)])
def test_uniform_rejects_bad_inputs(horizon, n_steps):
    with pytest.raises(ValueError):
        TimeGrid.uniform(horizon, n_steps)


def test_grid_is_read_only_and_copied():
    src = np.array([0.0, 0.5, 1.0])
    g = TimeGrid.from_times(src)
    src[1] = 0.9
    assert g.times[1] == 0.5
    with pytest.raises(ValueError):
        g.times[1] = 0.2


def test_grid_equality_and_hash():
    a = TimeGrid.uniform(1.0, 10)
    b = TimeGrid.from_times(np.linspace(0.0, 1.0, 11))
    assert a == b
    assert hash(a) == hash(b)
    assert a != TimeGrid.uniform(1.0, 5)
