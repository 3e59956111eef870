from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, get_args


class Scheme(str, Enum):
    EULER_MARUYAMA = "euler_maruyama"
    MILSTEIN = "milstein"
    EXACT = "exact"  # closed-form transition, where the model has one


class FloorPolicy(str, Enum):
    """What happens to a non-negative factor that steps below zero.

    Square roots in the diffusion always see ``max(x, 0)`` (full truncation);
    the policy only controls the stored state.
    """

    NONE = "none"  # leave the state unfloored
    REFLECT = "reflect"  # x -> |x|
    ABSORB = "absorb"  # x -> max(x, 0)


RngType = Literal["pcg64", "philox", "mt19937", "sfc64"]


@dataclass(frozen=True, slots=True)
class RandomConfig:
    seed: int | None = None
    rng_type: RngType = "pcg64"

    def __post_init__(self) -> None:
        if self.seed is not None and self.seed < 0:
            raise ValueError("seed must be a non-negative integer")
        if self.rng_type not in get_args(RngType):
            raise ValueError(f"Unknown rng_type: {self.rng_type!r}")


@dataclass(frozen=True, slots=True)
class ParallelConfig:
    max_workers: int | None = None
    chunk_size: int = 4096

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")


@dataclass(frozen=True, slots=True)
class SimulationConfig:
    """Run-level options for :func:`~quantsim.simulation.driver.simulate`.

    Parameters
    ----------
    scheme : Scheme, default Scheme.EULER_MARUYAMA
        Discretization scheme for stepwise processes. Ignored by the spectral
        route.
    antithetic : bool, default False
        Pair every draw with its negation and average each pair before it
        enters the statistics. Requires an even ``n_paths``.
    store_paths : bool, default False
        Keep every surviving :class:`~quantsim.types.Path` on the result.
        When False only the running moments (plus a bounded subsample used
        for percentiles) are kept.
    floor_policy : FloorPolicy, default FloorPolicy.NONE
        Treatment of non-negative factors (CIR state, Heston variance).
    random : RandomConfig
        Seed and bit generator.
    parallel : ParallelConfig
        Worker count and chunk size.
    percentiles : tuple of float, default (5.0, 50.0, 95.0)
        Percentile paths reported on the result, in ``[0, 100]``.
    percentile_sample_size : int, default 2048
        Upper bound on the number of paths retained for percentiles when
        ``store_paths`` is False.
    """

    scheme: Scheme = Scheme.EULER_MARUYAMA
    antithetic: bool = False
    store_paths: bool = False
    floor_policy: FloorPolicy = FloorPolicy.NONE
    random: RandomConfig = field(default_factory=RandomConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    percentiles: tuple[float, ...] = (5.0, 50.0, 95.0)
    percentile_sample_size: int = 2048

    def __post_init__(self) -> None:
        # Accept plain strings for the enum fields.
        object.__setattr__(self, "scheme", Scheme(self.scheme))
        object.__setattr__(self, "floor_policy", FloorPolicy(self.floor_policy))
        object.__setattr__(
            self, "percentiles", tuple(float(q) for q in self.percentiles)
        )
        if any(not (0.0 <= q <= 100.0) for q in self.percentiles):
            raise ValueError("percentiles must lie in [0, 100]")
        if self.percentile_sample_size <= 0:
            raise ValueError("percentile_sample_size must be > 0")

    @property
    def seed(self) -> int | None:
        return self.random.seed

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SimulationConfig:
        """Build a config from a plain mapping (e.g. parsed TOML/JSON).

        Nested ``random`` / ``parallel`` mappings become their dataclasses and
        a top-level ``seed`` key is folded into ``random``.
        """
        kwargs = dict(data)
        random_cfg = kwargs.pop("random", None)
        if isinstance(random_cfg, Mapping):
            random_cfg = RandomConfig(**random_cfg)
        if "seed" in kwargs:
            seed = kwargs.pop("seed")
            base = random_cfg if random_cfg is not None else RandomConfig()
            random_cfg = RandomConfig(seed=seed, rng_type=base.rng_type)
        if random_cfg is not None:
            kwargs["random"] = random_cfg

        parallel_cfg = kwargs.get("parallel")
        if isinstance(parallel_cfg, Mapping):
            kwargs["parallel"] = ParallelConfig(**parallel_cfg)
        if "percentiles" in kwargs:
            kwargs["percentiles"] = tuple(kwargs["percentiles"])

        unknown = set(kwargs) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**kwargs)
