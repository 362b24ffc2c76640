"""Namespace package entry point for the antecedent NPP toolkit."""

from importlib import import_module
from typing import Any

__all__ = [
    "DataStore",
    "LagBlockMap",
    "build_lag_block_map",
    "monthly_partition",
    "grouped_partition",
    "Priors",
    "ModelConfig",
    "SamplerSettings",
    "make_target_log_prob_fn",
    "run_nuts",
    "summarise_draws",
    "yearly_weight_decomposition",
    "cumulative_monthly_weight",
    "memory_length",
    "goodness_of_fit",
    "compare_configurations",
    "compare_summaries",
    "simulate_store",
]


def __getattr__(name: str) -> Any:  # pragma: no cover - simple delegation
    if name in __all__:
        module = import_module(".antecedent", __name__)
        return getattr(module, name)
    raise AttributeError(f"module 'antecedent' has no attribute {name!r}")


def __dir__() -> list[str]:  # pragma: no cover - introspection helper
    return sorted(set(globals().keys()) | set(__all__))
