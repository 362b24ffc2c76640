import numpy as np
import pandas as pd
import pytest

from antecedent.antecedent.blocks import build_lag_block_map, grouped_partition, lag_year_mass
from antecedent.antecedent.errors import ConfigurationError, MissingParameterError
from antecedent.antecedent.sampling import Draws
from antecedent.antecedent.summaries import (
    LOWER,
    MEDIAN,
    UPPER,
    Summary,
    load_summaries,
    load_summary,
    quantile_label,
    save_summary,
    summarise_draws,
    summary_path,
)


BLOCK_MAP = build_lag_block_map(grouped_partition((3, 12)))


def _draws(mode="posterior", num_samples=200, num_chains=2, seed=0):
    rng = np.random.default_rng(seed)
    weights = rng.dirichlet(np.ones(BLOCK_MAP.n_blocks), size=(num_samples, num_chains))
    return Draws(
        mode=mode,
        alpha_antecedent=rng.normal(2.0, 0.1, size=(num_samples, num_chains)),
        alpha_event=rng.normal(size=(num_samples, num_chains, 4)),
        weights=weights,
        sumD1=lag_year_mass(weights, BLOCK_MAP),
        diagnostics={"max_rhat": 1.01, "rhat": {"weights": 1.01}},
    )


def test_quantile_labels():
    assert (LOWER, MEDIAN, UPPER) == ("2.5%", "50%", "97.5%")
    assert quantile_label(0.1) == "10%"


def test_summarise_draws_builds_one_row_per_element():
    summary = summarise_draws(_draws(), BLOCK_MAP)

    assert summary.name == "lag2_blocks5"
    assert summary.key == "lag2_blocks5_posterior"
    assert summary.groups == ["alpha_antecedent", "alpha_event", "weights", "sumD1"]
    assert list(summary.table.columns) == ["group", "mean", "sd", LOWER, MEDIAN, UPPER, "rhat", "n_eff"]
    assert summary.table.index.name == "parameter"
    assert "weights[5]" in summary.table.index
    assert "alpha_event[4]" in summary.table.index
    assert "alpha_antecedent" in summary.table.index

    weights = summary.group("weights")
    assert "group" not in weights.columns
    assert weights["mean"].sum() == pytest.approx(1.0)
    assert (weights[LOWER] <= weights[MEDIAN]).all()
    assert (weights[MEDIAN] <= weights[UPPER]).all()
    assert summary.group("alpha_antecedent")["mean"].iloc[0] == pytest.approx(2.0, abs=0.05)
    assert (summary.table["n_eff"] > 0).all()


def test_summary_group_missing_raises():
    summary = summarise_draws(_draws(), BLOCK_MAP)
    assert not summary.has_group("mu")
    with pytest.raises(MissingParameterError, match="mu"):
        summary.group("mu")


def test_summarise_draws_requires_some_group():
    with pytest.raises(MissingParameterError):
        summarise_draws(Draws(mode="prior"), BLOCK_MAP)


def test_summary_rejects_unknown_mode():
    with pytest.raises(ConfigurationError):
        Summary(name="x", mode="both", n_lag=1, n_blocks=1, table=pd.DataFrame({"group": []}))


def test_save_and_load_summary(tmp_path):
    summary = summarise_draws(_draws(mode="prior"), BLOCK_MAP)
    path = save_summary(summary, tmp_path / "summaries")

    assert path == summary_path(tmp_path / "summaries", "lag2_blocks5_prior")
    assert path.name == "lag2_blocks5_prior.json"
    assert [p.name for p in path.parent.iterdir()] == [path.name]

    loaded = load_summary(path)
    assert loaded.key == summary.key
    assert (loaded.n_lag, loaded.n_blocks) == (2, 5)
    assert loaded.diagnostics["max_rhat"] == pytest.approx(1.01)
    pd.testing.assert_frame_equal(loaded.table, summary.table, check_exact=False)


def test_save_summary_replaces_previous_file(tmp_path):
    first = summarise_draws(_draws(seed=1), BLOCK_MAP)
    second = summarise_draws(_draws(seed=2), BLOCK_MAP)
    save_summary(first, tmp_path)
    path = save_summary(second, tmp_path)

    loaded = load_summary(path)
    np.testing.assert_allclose(loaded.group("weights")["mean"], second.group("weights")["mean"])
    assert sorted(p.name for p in tmp_path.iterdir()) == ["lag2_blocks5_posterior.json"]


def test_load_summaries_keys_by_name_and_mode(tmp_path):
    save_summary(summarise_draws(_draws(mode="prior"), BLOCK_MAP), tmp_path)
    save_summary(summarise_draws(_draws(mode="posterior"), BLOCK_MAP), tmp_path)

    summaries = load_summaries(tmp_path)
    assert sorted(summaries) == ["lag2_blocks5_posterior", "lag2_blocks5_prior"]
    assert summaries["lag2_blocks5_prior"].mode == "prior"
