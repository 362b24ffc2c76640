"""Side-by-side comparison of lag length and block granularity configurations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .analysis import deviance_information_criterion, model_r2
from .config import ModelConfig
from .data import DataStore
from .errors import ConfigurationError, SamplingFailure
from .posterior import Mode, make_target_log_prob_fn
from .priors import Priors
from .sampling import check_convergence, run_nuts
from .summaries import PathType, Summary, save_summary, summarise_draws


logger = logging.getLogger(__name__)

TABLE_COLUMNS = [
    "name",
    "n_lag",
    "n_blocks",
    "mode",
    "r2",
    "dic",
    "max_rhat",
    "reliable",
    "r2_rank",
    "error",
]


@dataclass
class ConfigurationResult:
    """Outcome of one independent (configuration, mode) pipeline run."""

    name: str
    mode: str
    n_lag: int
    n_blocks: int
    summary: Optional[Summary]
    r2: float
    dic: float
    max_rhat: float
    reliable: bool
    error: Optional[str] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.name}_{self.mode}"


@dataclass
class ComparisonResult:
    """Per-configuration results plus the tabulated comparison."""

    results: Dict[str, ConfigurationResult]
    table: pd.DataFrame

    def best(self, mode: str = "posterior") -> Optional[ConfigurationResult]:
        """Reliable configuration with the highest R² in ``mode``."""

        ranked = self.table[(self.table["mode"] == mode) & (self.table["r2_rank"] == 1)]
        if ranked.empty:
            return None
        return self.results[f"{ranked.iloc[0]['name']}_{mode}"]


def _score_summary(summary: Summary, store: DataStore) -> tuple[float, float]:
    r2 = model_r2(summary, store) if summary.has_group("mu") else float("nan")
    dic = deviance_information_criterion(summary) if summary.has_group("deviance") else float("nan")
    return r2, dic


def _max_rhat(diagnostics: Mapping[str, Any]) -> float:
    value = diagnostics.get("max_rhat", float("nan"))
    return float("nan") if value is None else float(value)


def _check_posterior_mode(store: DataStore, modes: Iterable[str]) -> None:
    if "posterior" in modes and not store.observations.has_observations:
        raise ConfigurationError(
            "posterior mode needs at least one observed NPP value; the store has none"
        )


def run_configuration(
    store: DataStore,
    config: ModelConfig,
    *,
    mode: Mode = "posterior",
    priors: Optional[Priors] = None,
    rhat_threshold: float = 1.1,
    output_dir: Optional[PathType] = None,
) -> ConfigurationResult:
    """Run block map, model, sampler and summary for one configuration.

    Configuration and history errors propagate immediately.  Sampler failures
    and non-convergence are captured in the result, which is then flagged as
    unreliable instead of raising.
    """

    priors = priors or Priors()
    block_map = config.validate()
    store.check_history(config.nlag)
    _check_posterior_mode(store, (mode,))
    target_log_prob_fn, dims, param_spec = make_target_log_prob_fn(
        store,
        block_map,
        priors=priors,
        observe_npp=(mode == "posterior"),
    )
    settings = config.sampler
    name = block_map.name

    try:
        draws = run_nuts(
            target_log_prob_fn,
            dims,
            param_spec,
            num_chains=settings.n_chains,
            num_adapt=settings.n_adapt,
            num_burnin=settings.burn,
            num_samples=settings.samples,
            thin=settings.thin,
            tracked=config.tracked,
            init_step_size=settings.init_step_size,
            seed=settings.seed,
            max_workers=settings.max_workers,
            timeout=settings.timeout,
        )
    except SamplingFailure as exc:
        logger.warning("Configuration %s (%s) failed to sample: %s", name, dims["mode"], exc)
        return ConfigurationResult(
            name=name,
            mode=dims["mode"],
            n_lag=block_map.n_lag,
            n_blocks=block_map.n_blocks,
            summary=None,
            r2=float("nan"),
            dic=float("nan"),
            max_rhat=float("nan"),
            reliable=False,
            error=str(exc),
            diagnostics=exc.diagnostics,
        )

    summary = summarise_draws(draws, block_map, name=name)
    reliable, error = True, None
    try:
        check_convergence(draws, rhat_threshold=rhat_threshold)
    except SamplingFailure as exc:
        logger.warning("Configuration %s (%s) flagged unreliable: %s", name, summary.mode, exc)
        reliable, error = False, str(exc)

    if output_dir is not None:
        save_summary(summary, output_dir)

    r2, dic = _score_summary(summary, store)
    return ConfigurationResult(
        name=name,
        mode=summary.mode,
        n_lag=summary.n_lag,
        n_blocks=summary.n_blocks,
        summary=summary,
        r2=r2,
        dic=dic,
        max_rhat=_max_rhat(draws.diagnostics),
        reliable=reliable,
        error=error,
        diagnostics=dict(draws.diagnostics),
    )


def comparison_table(results: Iterable[ConfigurationResult]) -> pd.DataFrame:
    """Tabulate results; only reliable runs receive an R² rank within their mode."""

    rows = [
        {
            "name": r.name,
            "n_lag": r.n_lag,
            "n_blocks": r.n_blocks,
            "mode": r.mode,
            "r2": r.r2,
            "dic": r.dic,
            "max_rhat": r.max_rhat,
            "reliable": r.reliable,
            "error": r.error,
        }
        for r in results
    ]
    table = pd.DataFrame(rows, columns=[c for c in TABLE_COLUMNS if c != "r2_rank"])
    rankable = table["r2"].where(table["reliable"].astype(bool) & np.isfinite(table["r2"].astype(float)))
    table["r2_rank"] = rankable.groupby(table["mode"]).rank(ascending=False, method="min")
    return table[TABLE_COLUMNS]


def _check_unique_names(configs: Sequence[ModelConfig]) -> List[str]:
    names = [config.validate().name for config in configs]
    seen: Dict[str, int] = {}
    for name in names:
        seen[name] = seen.get(name, 0) + 1
    dupes = sorted(name for name, count in seen.items() if count > 1)
    if dupes:
        raise ConfigurationError(
            f"configurations {dupes} share a lag/block name and would overwrite each other"
        )
    return names


def compare_configurations(
    store: DataStore,
    configs: Sequence[ModelConfig],
    *,
    modes: Sequence[Mode] = ("posterior",),
    priors: Optional[Priors] = None,
    rhat_threshold: float = 1.1,
    output_dir: Optional[PathType] = None,
) -> ComparisonResult:
    """Run every (configuration, mode) pair independently and compare fits.

    All configurations are validated against the data store before any
    sampling starts.
    """

    if not configs:
        raise ConfigurationError("at least one configuration is required")
    unknown = sorted(set(modes) - {"prior", "posterior"})
    if unknown:
        raise ConfigurationError(f"unknown modes {unknown}")
    _check_unique_names(configs)
    for config in configs:
        store.check_history(config.nlag)
    _check_posterior_mode(store, modes)

    results: Dict[str, ConfigurationResult] = {}
    for config in configs:
        for mode in modes:
            result = run_configuration(
                store,
                config,
                mode=mode,
                priors=priors,
                rhat_threshold=rhat_threshold,
                output_dir=output_dir,
            )
            logger.info(
                "Configuration %s (%s): r2=%.3f reliable=%s",
                result.name,
                result.mode,
                result.r2,
                result.reliable,
            )
            results[result.key] = result

    return ComparisonResult(results=results, table=comparison_table(results.values()))


def compare_summaries(
    summaries: Iterable[Summary],
    store: DataStore,
    *,
    rhat_threshold: float = 1.1,
) -> ComparisonResult:
    """Compare persisted summaries without re-running the sampler."""

    results: Dict[str, ConfigurationResult] = {}
    for summary in summaries:
        r2, dic = _score_summary(summary, store)
        max_rhat = _max_rhat(summary.diagnostics)
        reliable = not (np.isfinite(max_rhat) and max_rhat > rhat_threshold)
        result = ConfigurationResult(
            name=summary.name,
            mode=summary.mode,
            n_lag=summary.n_lag,
            n_blocks=summary.n_blocks,
            summary=summary,
            r2=r2,
            dic=dic,
            max_rhat=max_rhat,
            reliable=reliable,
            error=None if reliable else f"max R-hat {max_rhat:.3f} exceeds {rhat_threshold}",
            diagnostics=dict(summary.diagnostics),
        )
        results[result.key] = result
    return ComparisonResult(results=results, table=comparison_table(results.values()))


__all__ = [
    "ComparisonResult",
    "ConfigurationResult",
    "compare_configurations",
    "compare_summaries",
    "comparison_table",
    "run_configuration",
]
