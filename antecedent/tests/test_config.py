import dataclasses
import json

import pytest

from antecedent.antecedent.blocks import grouped_partition, monthly_partition
from antecedent.antecedent.config import (
    TRACKABLE_PARAMETERS,
    ModelConfig,
    SamplerSettings,
    config_from_partition,
    load_config,
)
from antecedent.antecedent.errors import ConfigurationError


def test_config_from_partition_derives_nlag_and_name():
    config = config_from_partition(grouped_partition((1, 3, 12)))
    assert config.nlag == 3
    assert config.name == "lag3_blocks17"
    assert config.tracked == TRACKABLE_PARAMETERS
    assert config.validate().n_blocks == 17


def test_model_config_is_frozen():
    config = config_from_partition(monthly_partition(1))
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.nlag = 2  # type: ignore[misc]


def test_validate_rejects_nlag_mismatch_and_unknown_tracked():
    block = tuple(tuple(row) for row in monthly_partition(2).tolist())
    with pytest.raises(ConfigurationError):
        ModelConfig(nlag=3, block=block).validate()
    with pytest.raises(ConfigurationError, match="beta"):
        ModelConfig(nlag=2, block=block, tracked=frozenset({"weights", "beta"})).validate()
    with pytest.raises(ConfigurationError):
        ModelConfig(nlag=2, block=block, tracked=frozenset()).validate()


@pytest.mark.parametrize(
    "settings",
    [
        SamplerSettings(samples=0),
        SamplerSettings(n_chains=0),
        SamplerSettings(thin=1.5),
        SamplerSettings(burn=-1),
        SamplerSettings(timeout=0.0),
    ],
)
def test_sampler_settings_validation(settings):
    with pytest.raises(ConfigurationError):
        settings.validate()


def test_sampler_settings_allow_zero_burn():
    SamplerSettings(burn=0).validate()


def test_mapping_round_trip_and_load_config(tmp_path):
    config = config_from_partition(
        grouped_partition((3, 12)),
        sampler=SamplerSettings(samples=200, burn=50, n_chains=2, thin=2),
        tracked=frozenset({"weights", "sumD1", "mu"}),
    )
    mapping = config.to_mapping()
    assert mapping["tracked"] == ["mu", "sumD1", "weights"]

    path = tmp_path / "lag2.json"
    path.write_text(json.dumps(mapping), encoding="utf-8")
    loaded = load_config(path)

    assert loaded == config
    assert loaded.sampler.thin == 2


def test_from_mapping_requires_block():
    with pytest.raises(ConfigurationError, match="block"):
        ModelConfig.from_mapping({"nlag": 1})


def test_from_mapping_defaults_sampler_settings():
    config = ModelConfig.from_mapping({"nlag": 1, "block": monthly_partition(1).tolist()})
    assert config.sampler == SamplerSettings()
    assert config.name == "lag1_blocks12"


def test_fractional_block_id_is_rejected_not_truncated():
    rows = monthly_partition(1).astype(float)
    rows[0, 4] = 1.5
    with pytest.raises(ConfigurationError, match="1.5"):
        config_from_partition(rows)
    with pytest.raises(ConfigurationError, match="block id"):
        ModelConfig.from_mapping({"nlag": 1, "block": rows.tolist()})


def test_non_numeric_block_id_raises_configuration_error():
    rows = monthly_partition(1).tolist()
    rows[0][0] = "a"
    with pytest.raises(ConfigurationError, match="'a'"):
        ModelConfig(nlag=1, block=tuple(tuple(row) for row in rows))
    with pytest.raises(ConfigurationError, match="block id"):
        config_from_partition(rows)


def test_integral_float_block_ids_are_accepted():
    config = config_from_partition(monthly_partition(1).astype(float))
    assert config.block == tuple(tuple(row) for row in monthly_partition(1).tolist())
    assert config.name == "lag1_blocks12"


def test_fractional_nlag_is_rejected():
    with pytest.raises(ConfigurationError, match="nlag"):
        ModelConfig.from_mapping({"nlag": 1.5, "block": monthly_partition(1).tolist()})
