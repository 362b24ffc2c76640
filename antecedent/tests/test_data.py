import numpy as np
import pandas as pd
import pytest

from antecedent.antecedent.constants import EVENT_COLUMNS, MONTH_COLUMNS
from antecedent.antecedent.data import (
    DataStore,
    MonthlyPrecipitation,
    YearlyObservation,
    load_data_store,
    observations_from_frame,
    precipitation_from_frame,
)
from antecedent.antecedent.errors import ConfigurationError, InsufficientHistoryError


def _precipitation(first_year=2000, n_years=5):
    amounts = np.arange(n_years * 12, dtype=float).reshape(n_years, 12)
    return MonthlyPrecipitation(years=np.arange(first_year, first_year + n_years), amounts=amounts)


def _observations(years, npp=None):
    years = np.asarray(years)
    if npp is None:
        npp = np.linspace(10.0, 20.0, years.size)
    return YearlyObservation(years=years, npp=npp, event_totals=np.ones((years.size, 4)))


def test_windows_end_just_before_target_year():
    store = DataStore(precipitation=_precipitation(), observations=_observations([2002, 2003, 2004]))
    windows = store.windows(2)

    assert windows.shape == (3, 2, 12)
    # Target 2002: lag year 1 is 2001 (row 1), lag year 2 is 2000 (row 0).
    np.testing.assert_array_equal(windows[0, 0], np.arange(12, 24))
    np.testing.assert_array_equal(windows[0, 1], np.arange(0, 12))
    np.testing.assert_array_equal(windows[2, 0], np.arange(36, 48))


def test_insufficient_history_is_reported_before_windows():
    store = DataStore(precipitation=_precipitation(), observations=_observations([2001, 2004]))
    store.check_history(1)
    with pytest.raises(InsufficientHistoryError, match="2001"):
        store.windows(2)
    with pytest.raises(ConfigurationError):
        store.check_history(0)


def test_observation_years_must_lie_in_precipitation_table():
    with pytest.raises(ConfigurationError, match="2010"):
        DataStore(precipitation=_precipitation(), observations=_observations([2003, 2010]))


def test_precipitation_validation():
    with pytest.raises(ConfigurationError):
        MonthlyPrecipitation(years=[2000, 2002], amounts=np.ones((2, 12)))
    with pytest.raises(ConfigurationError):
        MonthlyPrecipitation(years=[2000], amounts=np.ones((1, 11)))
    with pytest.raises(ConfigurationError):
        MonthlyPrecipitation(years=[2000], amounts=np.full((1, 12), np.nan))
    with pytest.raises(ConfigurationError):
        MonthlyPrecipitation(years=[2000], amounts=-np.ones((1, 12)))


def test_observation_validation_and_missing_npp():
    with pytest.raises(ConfigurationError):
        YearlyObservation(years=[2000, 2000], npp=[1.0, 2.0], event_totals=np.ones((2, 4)))
    with pytest.raises(ConfigurationError):
        YearlyObservation(years=[2000], npp=[1.0], event_totals=np.ones((1, 3)))

    obs = _observations([2001, 2002, 2003], npp=[1.0, np.nan, 3.0])
    np.testing.assert_array_equal(obs.observed_mask, [True, False, True])
    assert obs.has_observations
    assert not obs.withhold_npp().has_observations


def test_tables_are_immutable():
    store = DataStore(precipitation=_precipitation(), observations=_observations([2003]))
    with pytest.raises(ValueError):
        store.precipitation.amounts[0, 0] = 1.0
    with pytest.raises(ValueError):
        store.observations.npp[0] = 1.0


def test_withhold_npp_returns_new_store():
    store = DataStore(precipitation=_precipitation(), observations=_observations([2003, 2004]))
    prior_store = store.withhold_npp()

    assert prior_store is not store
    assert store.observations.has_observations
    assert np.isnan(prior_store.observations.npp).all()
    np.testing.assert_array_equal(prior_store.observations.event_totals, store.observations.event_totals)


def test_precipitation_from_frame_converts_units_and_sorts():
    frame = pd.DataFrame({"year": [2001, 2000]})
    for idx, name in enumerate(MONTH_COLUMNS):
        frame[name.upper()] = [float(idx + 12), float(idx)]
    precip = precipitation_from_frame(frame, unit="cm")

    np.testing.assert_array_equal(precip.years, [2000, 2001])
    np.testing.assert_allclose(precip.amounts[0], np.arange(12) * 10.0)
    np.testing.assert_allclose(precip.to_frame().loc[2001, "jan"], 120.0)


def test_precipitation_from_frame_accepts_numbered_months():
    frame = pd.DataFrame({"year": [2000], **{str(m): [1.0] for m in range(1, 13)}})
    precip = precipitation_from_frame(frame, unit="in")
    np.testing.assert_allclose(precip.amounts, 25.4)


def test_precipitation_from_frame_rejects_unknown_unit_and_columns():
    frame = pd.DataFrame({"year": [2000], **{str(m): [1.0] for m in range(1, 12)}})
    with pytest.raises(ConfigurationError):
        precipitation_from_frame(frame)
    frame["12"] = 1.0
    with pytest.raises(ConfigurationError, match="furlong"):
        precipitation_from_frame(frame, unit="furlong")


def test_observations_from_frame_keeps_missing_npp():
    frame = pd.DataFrame(
        {
            "year": [2001, 2002],
            "npp": [150.0, None],
            **{name: [1.0, 2.0] for name in EVENT_COLUMNS},
        }
    )
    obs = observations_from_frame(frame)
    assert obs.npp[0] == 150.0
    assert np.isnan(obs.npp[1])

    with pytest.raises(ConfigurationError, match="ppt_gt30"):
        observations_from_frame(frame.drop(columns="ppt_gt30"))


def test_load_data_store_from_csv(tmp_path):
    precip = _precipitation(first_year=1990, n_years=4).to_frame().reset_index()
    precip.to_csv(tmp_path / "precip.csv", index=False)
    obs = _observations([1992, 1993], npp=[np.nan, 12.0]).to_frame().reset_index()
    obs.to_csv(tmp_path / "npp.csv", index=False)

    store = load_data_store(tmp_path / "precip.csv", tmp_path / "npp.csv")

    assert store.n_years == 2
    assert store.precipitation.n_years == 4
    np.testing.assert_array_equal(store.observations.observed_mask, [False, True])
    assert store.windows(2).shape == (2, 2, 12)
