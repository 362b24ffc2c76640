"""Read-only data tables for the antecedent NPP model."""

from __future__ import annotations

from dataclasses import dataclass, replace
from os import PathLike
from typing import Dict, Literal, Union

import numpy as np
import pandas as pd

from .constants import EVENT_COLUMNS, MONTH_COLUMNS, MONTHS
from .errors import ConfigurationError, InsufficientHistoryError

LengthUnit = Literal["mm", "cm", "in"]

# Conversion factors into the canonical unit (millimetres).
UNIT_TO_MM: Dict[str, float] = {"mm": 1.0, "cm": 10.0, "in": 25.4}

PathType = Union[str, "PathLike[str]"]


def _frozen_array(values, dtype) -> np.ndarray:
    array = np.array(values, dtype=dtype, copy=True)
    array.setflags(write=False)
    return array


def _unit_factor(unit: str) -> float:
    try:
        return UNIT_TO_MM[unit]
    except KeyError as exc:
        raise ConfigurationError(
            f"Unknown length unit {unit!r}; expected one of {sorted(UNIT_TO_MM)}"
        ) from exc


@dataclass(frozen=True, eq=False)
class MonthlyPrecipitation:
    """Monthly precipitation history in millimetres, one row per year."""

    years: np.ndarray
    amounts: np.ndarray

    def __post_init__(self) -> None:
        years = _frozen_array(self.years, int)
        amounts = _frozen_array(self.amounts, float)
        if years.ndim != 1:
            raise ConfigurationError("precipitation years must be a 1-D sequence")
        if amounts.shape != (years.shape[0], MONTHS):
            raise ConfigurationError(
                f"precipitation amounts have shape {amounts.shape}, expected {(years.shape[0], MONTHS)}"
            )
        if years.size > 1 and not np.all(np.diff(years) == 1):
            raise ConfigurationError("precipitation years must be consecutive and increasing")
        if not np.all(np.isfinite(amounts)):
            raise ConfigurationError("precipitation history contains missing values")
        if np.any(amounts < 0):
            raise ConfigurationError("precipitation amounts must be non-negative")
        object.__setattr__(self, "years", years)
        object.__setattr__(self, "amounts", amounts)

    @property
    def n_years(self) -> int:
        return int(self.years.shape[0])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.amounts,
            index=pd.Index(self.years, name="year"),
            columns=list(MONTH_COLUMNS),
        )


@dataclass(frozen=True, eq=False)
class YearlyObservation:
    """Observed NPP (NaN when missing) and event-size totals per analysed year."""

    years: np.ndarray
    npp: np.ndarray
    event_totals: np.ndarray

    def __post_init__(self) -> None:
        years = _frozen_array(self.years, int)
        npp = _frozen_array(self.npp, float)
        events = _frozen_array(self.event_totals, float)
        n = years.shape[0]
        if years.ndim != 1 or npp.shape != (n,):
            raise ConfigurationError("observation years and NPP must be 1-D of equal length")
        if events.shape != (n, len(EVENT_COLUMNS)):
            raise ConfigurationError(
                f"event totals have shape {events.shape}, expected {(n, len(EVENT_COLUMNS))}"
            )
        if np.unique(years).size != n:
            raise ConfigurationError("observation years must be unique")
        if not np.all(np.isfinite(events)):
            raise ConfigurationError("event-size totals contain missing values")
        object.__setattr__(self, "years", years)
        object.__setattr__(self, "npp", npp)
        object.__setattr__(self, "event_totals", events)

    @property
    def n_years(self) -> int:
        return int(self.years.shape[0])

    @property
    def observed_mask(self) -> np.ndarray:
        return np.isfinite(self.npp)

    @property
    def has_observations(self) -> bool:
        return bool(self.observed_mask.any())

    def withhold_npp(self) -> "YearlyObservation":
        """Return a copy with every NPP value withheld (prior predictive input)."""

        return replace(self, npp=np.full(self.n_years, np.nan))

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.event_totals, columns=list(EVENT_COLUMNS))
        frame.insert(0, "npp", self.npp)
        frame.index = pd.Index(self.years, name="year")
        return frame


@dataclass(frozen=True, eq=False)
class DataStore:
    """Precipitation history and yearly observations, loaded once per run."""

    precipitation: MonthlyPrecipitation
    observations: YearlyObservation

    def __post_init__(self) -> None:
        missing = np.setdiff1d(self.observations.years, self.precipitation.years)
        if missing.size:
            raise ConfigurationError(
                f"observation years {missing.tolist()} are not covered by the precipitation table"
            )

    @property
    def n_years(self) -> int:
        return self.observations.n_years

    def precip_rows(self) -> np.ndarray:
        """Row of each observation year within the precipitation table."""

        return self.observations.years - int(self.precipitation.years[0])

    def check_history(self, nlag: int) -> None:
        """Raise if any target year lacks ``nlag`` preceding years of precipitation."""

        if nlag < 1:
            raise ConfigurationError(f"nlag must be >= 1, got {nlag}")
        rows = self.precip_rows()
        short = self.observations.years[rows < nlag]
        if short.size:
            raise InsufficientHistoryError(
                f"nlag={nlag} needs {nlag} years of precipitation before each target year; "
                f"years {short.tolist()} have only {int(rows.min())} available"
            )

    def windows(self, nlag: int) -> np.ndarray:
        """Return ``[N, nlag, 12]`` precipitation slices ending just before each year.

        ``windows[i, l - 1, m - 1]`` is the month ``m`` amount of the year that lies
        ``l`` years before observation year ``i``.
        """

        self.check_history(nlag)
        rows = self.precip_rows()
        lag_rows = rows[:, None] - np.arange(1, nlag + 1)[None, :]
        return self.precipitation.amounts[lag_rows]

    def with_observations(self, observations: YearlyObservation) -> "DataStore":
        return replace(self, observations=observations)

    def withhold_npp(self) -> "DataStore":
        return self.with_observations(self.observations.withhold_npp())


def _month_columns(frame: pd.DataFrame) -> list[str]:
    lowered = {str(col).strip().lower(): col for col in frame.columns}
    if all(name in lowered for name in MONTH_COLUMNS):
        return [lowered[name] for name in MONTH_COLUMNS]
    numeric = [str(m) for m in range(1, MONTHS + 1)]
    if all(name in lowered for name in numeric):
        return [lowered[name] for name in numeric]
    raise ConfigurationError(
        "precipitation table needs twelve month columns named jan..dec or 1..12"
    )


def precipitation_from_frame(frame: pd.DataFrame, *, unit: LengthUnit = "mm") -> MonthlyPrecipitation:
    """Build :class:`MonthlyPrecipitation` from a ``year`` + twelve-month table."""

    if "year" not in frame.columns:
        raise ConfigurationError("precipitation table needs a 'year' column")
    ordered = frame.sort_values("year")
    amounts = ordered[_month_columns(ordered)].to_numpy(dtype=float) * _unit_factor(unit)
    return MonthlyPrecipitation(years=ordered["year"].to_numpy(dtype=int), amounts=amounts)


def observations_from_frame(frame: pd.DataFrame, *, unit: LengthUnit = "mm") -> YearlyObservation:
    """Build :class:`YearlyObservation` from a year / npp / event-total table."""

    required = ["year", "npp", *EVENT_COLUMNS]
    missing = [col for col in required if col not in frame.columns]
    if missing:
        raise ConfigurationError(f"observation table is missing columns {missing}")
    ordered = frame.sort_values("year")
    npp = pd.to_numeric(ordered["npp"], errors="coerce").to_numpy(dtype=float)
    events = ordered[list(EVENT_COLUMNS)].to_numpy(dtype=float) * _unit_factor(unit)
    return YearlyObservation(
        years=ordered["year"].to_numpy(dtype=int),
        npp=npp,
        event_totals=events,
    )


def load_precipitation(path: PathType, *, unit: LengthUnit = "mm") -> MonthlyPrecipitation:
    return precipitation_from_frame(pd.read_csv(path), unit=unit)


def load_observations(path: PathType, *, unit: LengthUnit = "mm") -> YearlyObservation:
    return observations_from_frame(pd.read_csv(path), unit=unit)


def load_data_store(
    precipitation_path: PathType,
    observations_path: PathType,
    *,
    precipitation_unit: LengthUnit = "mm",
    event_unit: LengthUnit = "mm",
) -> DataStore:
    """Load both input tables and validate that they line up."""

    return DataStore(
        precipitation=load_precipitation(precipitation_path, unit=precipitation_unit),
        observations=load_observations(observations_path, unit=event_unit),
    )


__all__ = [
    "DataStore",
    "LengthUnit",
    "MonthlyPrecipitation",
    "UNIT_TO_MM",
    "YearlyObservation",
    "load_data_store",
    "load_observations",
    "load_precipitation",
    "observations_from_frame",
    "precipitation_from_frame",
]
