import dataclasses

import pytest

from quantsim.config import (
    FloorPolicy,
    ParallelConfig,
    RandomConfig,
    Scheme,
    SimulationConfig,
)


def test_defaults():
    cfg = SimulationConfig()
    assert cfg.scheme is Scheme.EULER_MARUYAMA
    assert cfg.floor_policy is FloorPolicy.NONE
    assert cfg.antithetic is False
    assert cfg.store_paths is False
    assert cfg.seed is None
    assert cfg.random.rng_type == "pcg64"
    assert cfg.parallel.chunk_size == 4096
    assert cfg.percentiles == (5.0, 50.0, 95.0)


def test_strings_are_coerced_to_enums():
    cfg = SimulationConfig(scheme="milstein", floor_policy="reflect")
    assert cfg.scheme is Scheme.MILSTEIN
    assert cfg.floor_policy is FloorPolicy.REFLECT


def test_unknown_enum_value_raises():
    with pytest.raises(ValueError):
        SimulationConfig(scheme="runge_kutta")
    with pytest.raises(ValueError):
        SimulationConfig(floor_policy="clamp")


@pytest.mark.parametrize("percentiles", [(-1.0,), (50.0, 101.0)])
def test_percentiles_must_lie_in_range(percentiles):
    with pytest.raises(ValueError):
        SimulationConfig(percentiles=percentiles)


def test_random_config_validation():
    with pytest.raises(ValueError):
        RandomConfig(seed=-1)
    with pytest.raises(ValueError):
        RandomConfig(rng_type="xorshift")  # type: ignore[arg-type]
    assert RandomConfig(seed=3, rng_type="philox").seed == 3


@pytest.mark.parametrize("kwargs", [{"max_workers": 0}, {"chunk_size": 0}])
def test_parallel_config_validation(kwargs):
    with pytest.raises(ValueError):
        ParallelConfig(**kwargs)


def test_from_dict_builds_nested_configs():
    cfg = SimulationConfig.from_dict(
        {
            "scheme": "exact",
            "antithetic": True,
            "floor_policy": "absorb",
            "random": {"seed": 9, "rng_type": "sfc64"},
            "parallel": {"max_workers": 2, "chunk_size": 100},
            "percentiles": [10, 90],
        }
    )
    assert cfg.scheme is Scheme.EXACT
    assert cfg.antithetic is True
    assert cfg.floor_policy is FloorPolicy.ABSORB
    assert cfg.random == RandomConfig(seed=9, rng_type="sfc64")
    assert cfg.parallel == ParallelConfig(max_workers=2, chunk_size=100)
    assert cfg.percentiles == (10.0, 90.0)


def test_from_dict_folds_top_level_seed():
    cfg = SimulationConfig.from_dict({"seed": 5, "random": {"rng_type": "mt19937"}})
    assert cfg.seed == 5
    assert cfg.random.rng_type == "mt19937"


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ValueError, match="Unknown config keys"):
        SimulationConfig.from_dict({"n_paths": 100})


def test_config_is_frozen():
    cfg = SimulationConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.antithetic = True  # type: ignore[misc]
