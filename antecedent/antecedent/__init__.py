"""Stochastic antecedent NPP model package with lazy attribute loading."""

from importlib import import_module
from typing import Any


_EXPORTS = {
    "DataStore": ("antecedent.antecedent.data", "DataStore"),
    "MonthlyPrecipitation": ("antecedent.antecedent.data", "MonthlyPrecipitation"),
    "YearlyObservation": ("antecedent.antecedent.data", "YearlyObservation"),
    "load_data_store": ("antecedent.antecedent.data", "load_data_store"),
    "LagBlockMap": ("antecedent.antecedent.blocks", "LagBlockMap"),
    "build_lag_block_map": ("antecedent.antecedent.blocks", "build_lag_block_map"),
    "monthly_partition": ("antecedent.antecedent.blocks", "monthly_partition"),
    "grouped_partition": ("antecedent.antecedent.blocks", "grouped_partition"),
    "antecedent_index_np": ("antecedent.antecedent.blocks", "antecedent_index_np"),
    "antecedent_index_tf": ("antecedent.antecedent.blocks", "antecedent_index_tf"),
    "Priors": ("antecedent.antecedent.priors", "Priors"),
    "ModelConfig": ("antecedent.antecedent.config", "ModelConfig"),
    "SamplerSettings": ("antecedent.antecedent.config", "SamplerSettings"),
    "load_config": ("antecedent.antecedent.config", "load_config"),
    "ParamSpec": ("antecedent.antecedent.posterior", "ParamSpec"),
    "make_target_log_prob_fn": ("antecedent.antecedent.posterior", "make_target_log_prob_fn"),
    "Draws": ("antecedent.antecedent.sampling", "Draws"),
    "run_nuts": ("antecedent.antecedent.sampling", "run_nuts"),
    "check_convergence": ("antecedent.antecedent.sampling", "check_convergence"),
    "Summary": ("antecedent.antecedent.summaries", "Summary"),
    "summarise_draws": ("antecedent.antecedent.summaries", "summarise_draws"),
    "save_summary": ("antecedent.antecedent.summaries", "save_summary"),
    "load_summary": ("antecedent.antecedent.summaries", "load_summary"),
    "yearly_weight_decomposition": ("antecedent.antecedent.analysis", "yearly_weight_decomposition"),
    "cumulative_monthly_weight": ("antecedent.antecedent.analysis", "cumulative_monthly_weight"),
    "memory_length": ("antecedent.antecedent.analysis", "memory_length"),
    "goodness_of_fit": ("antecedent.antecedent.analysis", "goodness_of_fit"),
    "compare_configurations": ("antecedent.antecedent.comparison", "compare_configurations"),
    "compare_summaries": ("antecedent.antecedent.comparison", "compare_summaries"),
    "simulate_store": ("antecedent.antecedent.synthetic", "simulate_store"),
    "ConfigurationError": ("antecedent.antecedent.errors", "ConfigurationError"),
    "InsufficientHistoryError": ("antecedent.antecedent.errors", "InsufficientHistoryError"),
    "MissingParameterError": ("antecedent.antecedent.errors", "MissingParameterError"),
    "SamplingFailure": ("antecedent.antecedent.errors", "SamplingFailure"),
    "MissingDataWarning": ("antecedent.antecedent.errors", "MissingDataWarning"),
}


__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:  # pragma: no cover - exercised via import
    try:
        module_name, attribute = _EXPORTS[name]
    except KeyError as exc:  # pragma: no cover - simple delegation
        raise AttributeError(f"module 'antecedent.antecedent' has no attribute {name!r}") from exc
    module = import_module(module_name)
    value = getattr(module, attribute)
    globals()[name] = value
    return value


def __dir__() -> list[str]:  # pragma: no cover - introspection helper
    return sorted(set(globals().keys()) | set(__all__))
