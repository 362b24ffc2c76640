"""Synthetic precipitation / NPP data with a known antecedent relationship."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .blocks import antecedent_index_np, build_lag_block_map, monthly_partition
from .constants import EVENT_COLUMNS, MONTHS
from .data import DataStore, MonthlyPrecipitation, YearlyObservation


@dataclass(frozen=True, eq=False)
class SyntheticTruth:
    """Parameters used to generate a synthetic data store."""

    block: np.ndarray
    weights: np.ndarray
    intercept: float
    alpha_antecedent: float
    alpha_event: np.ndarray
    noise_sd: float
    antecedent: np.ndarray


def simulate_store(
    *,
    n_years: int = 20,
    block: Optional[np.ndarray] = None,
    weights: Optional[Sequence[float]] = None,
    intercept: float = 50.0,
    alpha_antecedent: float = 2.0,
    alpha_event: Sequence[float] = (0.0, 0.0, 0.0, 0.0),
    noise_sd: float = 1.0,
    first_year: int = 1980,
    missing_years: Sequence[int] = (),
    extra_history: int = 0,
    seed: int = 0,
) -> tuple[DataStore, SyntheticTruth]:
    """Simulate ``NPP = intercept + alpha * antecedent + events @ alpha_event + noise``.

    Precipitation covers ``nlag`` extra years before the first target year, so
    every target year has a full window; ``extra_history`` prepends further
    years so that longer lags can be fitted to the same data.  Event-size totals split each target
    year's own rainfall across the four intensity buckets.
    """

    rng = np.random.default_rng(seed)
    block = monthly_partition(1) if block is None else np.asarray(block, dtype=int)
    block_map = build_lag_block_map(block)
    nlag = block_map.n_lag

    if weights is None:
        w = np.full(block_map.n_blocks, 1.0 / block_map.n_blocks)
    else:
        w = np.asarray(weights, dtype=float)
        w = w / w.sum()

    if extra_history < 0:
        raise ValueError("extra_history must be non-negative")
    history = nlag + int(extra_history)
    n_precip = n_years + history
    amounts = rng.gamma(shape=2.0, scale=30.0, size=(n_precip, MONTHS))
    precipitation = MonthlyPrecipitation(
        years=np.arange(first_year - history, first_year + n_years),
        amounts=amounts,
    )

    annual = amounts[history:].sum(axis=1)
    shares = rng.dirichlet([4.0, 3.0, 2.0, 1.0], size=n_years)
    events = shares * annual[:, None]

    years = np.arange(first_year, first_year + n_years)
    rows = np.arange(history, n_precip)
    windows = amounts[rows[:, None] - np.arange(1, nlag + 1)[None, :]]
    antecedent = antecedent_index_np(windows, w, block_map)

    gamma = np.asarray(alpha_event, dtype=float)
    if gamma.shape != (len(EVENT_COLUMNS),):
        raise ValueError(f"alpha_event must have {len(EVENT_COLUMNS)} entries")
    npp = intercept + alpha_antecedent * antecedent + events @ gamma
    npp = npp + rng.normal(scale=noise_sd, size=n_years)
    npp[np.isin(years, np.asarray(missing_years, dtype=int))] = np.nan

    store = DataStore(
        precipitation=precipitation,
        observations=YearlyObservation(years=years, npp=npp, event_totals=events),
    )
    truth = SyntheticTruth(
        block=block,
        weights=w,
        intercept=intercept,
        alpha_antecedent=alpha_antecedent,
        alpha_event=gamma,
        noise_sd=noise_sd,
        antecedent=antecedent,
    )
    return store, truth


__all__ = ["SyntheticTruth", "simulate_store"]
