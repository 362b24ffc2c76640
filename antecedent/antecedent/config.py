"""Run configuration: lag structure, sampler settings and tracked parameters."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from os import PathLike
from typing import Any, FrozenSet, Mapping, Optional, Sequence, Union

import numpy as np

from .blocks import LagBlockMap, build_lag_block_map
from .errors import ConfigurationError

# Parameter groups the sampler can report, sampled and derived.
TRACKABLE_PARAMETERS: FrozenSet[str] = frozenset(
    {
        "intercept",
        "alpha_antecedent",
        "alpha_event",
        "tau",
        "weights",
        "month_weights",
        "sumD1",
        "antecedent",
        "mu",
        "npp_rep",
        "deviance",
    }
)


@dataclass(frozen=True)
class SamplerSettings:
    """Chain counts and lengths handed to the sampling engine."""

    samples: int = 1000
    burn: int = 1000
    n_adapt: int = 500
    n_chains: int = 3
    thin: int = 1
    seed: Optional[int] = 42
    init_step_size: float = 0.1
    max_workers: int = 1
    timeout: Optional[float] = None

    def validate(self) -> None:
        for name in ("samples", "n_adapt", "n_chains", "thin", "max_workers"):
            value = getattr(self, name)
            if int(value) != value or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if int(self.burn) != self.burn or self.burn < 0:
            raise ConfigurationError(f"burn must be a non-negative integer, got {self.burn!r}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be positive when given")


def _as_int(value: Any, what: str) -> int:
    """Integer value of ``value``; fractional or non-numeric entries are rejected."""

    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{what} must be an integer, got {value!r}") from exc
    if not number.is_integer():
        raise ConfigurationError(f"{what} must be an integer, got {value!r}")
    return int(number)


@dataclass(frozen=True)
class ModelConfig:
    """One (Nlag, block partition) configuration of the antecedent model."""

    nlag: int
    block: tuple[tuple[int, ...], ...]
    sampler: SamplerSettings = field(default_factory=SamplerSettings)
    tracked: FrozenSet[str] = TRACKABLE_PARAMETERS

    def __post_init__(self) -> None:
        block = tuple(tuple(_as_int(v, "block id") for v in row) for row in self.block)
        object.__setattr__(self, "block", block)
        object.__setattr__(self, "tracked", frozenset(self.tracked))

    @property
    def name(self) -> str:
        return self.block_map().name

    def block_map(self) -> LagBlockMap:
        return build_lag_block_map(np.asarray(self.block, dtype=int), nlag=self.nlag)

    def validate(self) -> LagBlockMap:
        """Fail fast on malformed settings; returns the validated block map."""

        if _as_int(self.nlag, "nlag") < 1:
            raise ConfigurationError(f"nlag must be a positive integer, got {self.nlag!r}")
        unknown = sorted(self.tracked - TRACKABLE_PARAMETERS)
        if unknown:
            raise ConfigurationError(f"unknown tracked parameters {unknown}")
        if not self.tracked:
            raise ConfigurationError("at least one parameter must be tracked")
        self.sampler.validate()
        return self.block_map()

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ModelConfig":
        """Build from a plain mapping such as a parsed JSON document."""

        try:
            nlag = _as_int(values["nlag"], "nlag")
            block = values["block"]
        except KeyError as exc:
            raise ConfigurationError(f"model configuration is missing {exc.args[0]!r}") from exc
        sampler_keys = SamplerSettings.__dataclass_fields__.keys()
        sampler = SamplerSettings(**{k: values[k] for k in sampler_keys if k in values})
        tracked = values.get("tracked")
        config = cls(
            nlag=nlag,
            block=tuple(tuple(row) for row in block),
            sampler=sampler,
            tracked=TRACKABLE_PARAMETERS if tracked is None else frozenset(tracked),
        )
        config.validate()
        return config

    def to_mapping(self) -> dict[str, Any]:
        out: dict[str, Any] = {"nlag": self.nlag, "block": [list(row) for row in self.block]}
        out.update({k: getattr(self.sampler, k) for k in SamplerSettings.__dataclass_fields__})
        out["tracked"] = sorted(self.tracked)
        return out


def load_config(path: Union[str, "PathLike[str]"]) -> ModelConfig:
    with open(path, "r", encoding="utf-8") as handle:
        return ModelConfig.from_mapping(json.load(handle))


def config_from_partition(
    block: Sequence[Sequence[int]] | np.ndarray,
    *,
    sampler: Optional[SamplerSettings] = None,
    tracked: Optional[FrozenSet[str]] = None,
) -> ModelConfig:
    """Convenience constructor deriving ``nlag`` from the partition."""

    table = np.asarray(block, dtype=object)
    if table.ndim != 2:
        raise ConfigurationError(f"block partition must be two-dimensional, got shape {table.shape}")
    return ModelConfig(
        nlag=int(table.shape[0]),
        block=tuple(tuple(row) for row in table.tolist()),
        sampler=sampler or SamplerSettings(),
        tracked=TRACKABLE_PARAMETERS if tracked is None else tracked,
    )


__all__ = [
    "ModelConfig",
    "SamplerSettings",
    "TRACKABLE_PARAMETERS",
    "config_from_partition",
    "load_config",
]
