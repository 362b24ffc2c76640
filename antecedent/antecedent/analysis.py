"""Memory curves and goodness-of-fit diagnostics derived from summaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .constants import MONTHS
from .data import DataStore
from .errors import ConfigurationError
from .summaries import LOWER, UPPER, Summary


@dataclass(frozen=True)
class MemoryLength:
    """Months into the past needed to accumulate ``threshold`` of the weight.

    ``upper_bound`` is where the 97.5 % curve first crosses (the earliest
    plausible memory length), ``lower_bound`` where the 2.5 % curve does
    (the latest).  ``None`` means the curve never reaches the threshold.
    """

    threshold: float
    point: Optional[int]
    upper_bound: Optional[int]
    lower_bound: Optional[int]


def yearly_weight_decomposition(summary: Summary) -> pd.DataFrame:
    """Share of antecedent weight carried by each lag year.

    The ``sumD1`` mean and interval bounds of each lag year are divided by the
    total of the ``sumD1`` means, so the interval columns are not renormalised
    per draw.
    """

    rows = summary.group("sumD1")
    if len(rows) != summary.n_lag:
        raise ConfigurationError(
            f"summary has {len(rows)} sumD1 rows but n_lag={summary.n_lag}"
        )
    total = float(rows["mean"].sum())
    return pd.DataFrame(
        {
            "year_into_past": np.arange(summary.n_lag),
            "weight": rows["mean"].to_numpy() / total,
            "lower": rows[LOWER].to_numpy() / total,
            "upper": rows[UPPER].to_numpy() / total,
        }
    )


def cumulative_monthly_weight(summary: Summary) -> pd.DataFrame:
    """Cumulative month weight walking back from the most recent month."""

    rows = summary.group("month_weights")
    if len(rows) != summary.n_lag * MONTHS:
        raise ConfigurationError(
            f"summary has {len(rows)} month_weights rows, expected {summary.n_lag * MONTHS}"
        )
    return pd.DataFrame(
        {
            "month_into_past": np.arange(1, len(rows) + 1),
            "cumulative": np.cumsum(rows["mean"].to_numpy()),
            "lower": np.cumsum(rows[LOWER].to_numpy()),
            "upper": np.cumsum(rows[UPPER].to_numpy()),
        }
    )


def first_crossing(values: Sequence[float], threshold: float) -> Optional[int]:
    """1-based position of the first value ``>= threshold``, else ``None``."""

    hits = np.flatnonzero(np.asarray(values, dtype=float) >= threshold)
    return int(hits[0]) + 1 if hits.size else None


def memory_length(cumulative: pd.DataFrame, threshold: float = 0.9) -> MemoryLength:
    """Smallest month into the past whose cumulative weight reaches ``threshold``."""

    months = cumulative["month_into_past"].to_numpy()

    def _month(column: str) -> Optional[int]:
        pos = first_crossing(cumulative[column].to_numpy(), threshold)
        return None if pos is None else int(months[pos - 1])

    return MemoryLength(
        threshold=threshold,
        point=_month("cumulative"),
        upper_bound=_month("upper"),
        lower_bound=_month("lower"),
    )


def goodness_of_fit(predicted: Sequence[float], observed: Sequence[float]) -> float:
    """R² = 1 - RSS/TSS over the years with an observed value.

    Missing observations contribute to neither sum nor to the mean used for
    TSS.  Returns ``nan`` when nothing is observed or TSS is zero.
    """

    pred = np.asarray(predicted, dtype=float)
    obs = np.asarray(observed, dtype=float)
    if pred.shape != obs.shape:
        raise ConfigurationError(
            f"predicted {pred.shape} and observed {obs.shape} must have the same shape"
        )
    mask = np.isfinite(obs)
    if not mask.any():
        return float("nan")
    obs_m = obs[mask]
    rss = float(np.sum((pred[mask] - obs_m) ** 2))
    tss = float(np.sum((obs_m - np.mean(obs_m)) ** 2))
    if tss <= 0:
        return float("nan")
    return 1.0 - rss / tss


def fitted_npp(summary: Summary, store: DataStore) -> pd.DataFrame:
    """Predicted NPP per target year next to the observations."""

    mu = summary.group("mu")
    if len(mu) != store.n_years:
        raise ConfigurationError(
            f"summary predicts {len(mu)} years but the data store holds {store.n_years}"
        )
    frame = pd.DataFrame(
        {
            "observed": store.observations.npp,
            "predicted": mu["mean"].to_numpy(),
            "lower": mu[LOWER].to_numpy(),
            "upper": mu[UPPER].to_numpy(),
        },
        index=pd.Index(store.observations.years, name="year"),
    )
    if summary.has_group("npp_rep"):
        rep = summary.group("npp_rep")
        frame["predictive_lower"] = rep[LOWER].to_numpy()
        frame["predictive_upper"] = rep[UPPER].to_numpy()
    return frame


def gap_filled_npp(summary: Summary, store: DataStore) -> pd.Series:
    """Observed NPP with missing years filled by the predicted mean."""

    frame = fitted_npp(summary, store)
    filled = frame["observed"].where(frame["observed"].notna(), frame["predicted"])
    return filled.rename("npp")


def model_r2(summary: Summary, store: DataStore) -> float:
    frame = fitted_npp(summary, store)
    return goodness_of_fit(frame["predicted"].to_numpy(), frame["observed"].to_numpy())


def deviance_information_criterion(summary: Summary) -> float:
    """DIC = mean deviance + var(deviance) / 2."""

    row = summary.group("deviance").iloc[0]
    return float(row["mean"] + 0.5 * row["sd"] ** 2)


__all__ = [
    "MemoryLength",
    "cumulative_monthly_weight",
    "deviance_information_criterion",
    "first_crossing",
    "fitted_npp",
    "gap_filled_npp",
    "goodness_of_fit",
    "memory_length",
    "model_r2",
    "yearly_weight_decomposition",
]
