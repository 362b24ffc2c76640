import dataclasses

import pytest

from antecedent.antecedent.errors import ConfigurationError
from antecedent.antecedent.priors import Priors


def test_priors_default_values():
    priors = Priors()
    assert priors.weight_concentration == 1.0
    assert priors.tau_shape / priors.tau_rate == pytest.approx(10.0)
    assert priors.center_covariates
    priors.validate()


def test_priors_are_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        Priors().coef_sd = 1.0  # type: ignore[misc]


@pytest.mark.parametrize("field", ["intercept_sd", "coef_sd", "tau_shape", "tau_rate", "weight_concentration"])
def test_priors_reject_non_positive_hyperparameters(field):
    with pytest.raises(ConfigurationError, match=field):
        Priors(**{field: 0.0}).validate()


def test_priors_reference_npp_scale_must_be_positive():
    Priors(npp_center=-3.0, npp_scale=2.5).validate()
    with pytest.raises(ConfigurationError, match="npp_scale"):
        Priors(npp_scale=0.0).validate()
