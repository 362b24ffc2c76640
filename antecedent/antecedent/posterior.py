"""Target log density of the antecedent NPP regression model."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Tuple

import numpy as np
import tensorflow as tf
import tensorflow_probability as tfp

from .blocks import DTYPE, LagBlockMap, antecedent_index_tf
from .constants import EVENT_COLUMNS, TAU_MIN
from .data import DataStore
from .errors import ConfigurationError, MissingDataWarning
from .priors import Priors
from .scaling import ModelScales, fit_event_scaling, fit_precip_scaling, standardize_npp


tfd = tfp.distributions
tfb = tfp.bijectors


TargetLogProbFn = Callable[..., tf.Tensor]
Mode = Literal["prior", "posterior"]


@dataclass
class ParamSpec:
    """Specification for a model parameter used to construct NUTS kernels."""

    name: str
    shape: Tuple[int, ...]
    bijector: tfb.Bijector
    init: tf.Tensor


def resolve_mode(store: DataStore, *, observe_npp: bool = True) -> Mode:
    """``"posterior"`` when the likelihood term is active, ``"prior"`` otherwise."""

    if observe_npp and store.observations.has_observations:
        return "posterior"
    return "prior"


def make_target_log_prob_fn(
    store: DataStore,
    block_map: LagBlockMap,
    *,
    priors: Priors = Priors(),
    observe_npp: bool = True,
) -> Tuple[TargetLogProbFn, Dict[str, Any], List[ParamSpec]]:
    """
    Create the target log-probability of the antecedent regression model.

    One definition serves both modes: the Gaussian likelihood over observed
    NPP years is added only when ``observe_npp`` is true and at least one NPP
    value is present.  Otherwise the density is the prior alone and the
    sampler produces prior predictive draws.

    Returns:
      - target_log_prob: closure over the constrained parameters in `param_spec`,
        accepting arbitrary leading batch dimensions.
      - dims: dict with keys
          N: int, number of target years
          nlag: int, lag years in the window
          n_blocks: int, number of weight blocks
          mode: str, {"prior", "posterior"}
          block_map: LagBlockMap
          scales: ModelScales used to centre and standardise inputs
          windows: np.ndarray [N, nlag, 12] raw precipitation slices (mm)
          events: np.ndarray [N, 4] raw event-size totals (mm)
          npp: np.ndarray [N] raw NPP, NaN where missing
          observed: np.ndarray [N] bool mask of years entering the likelihood
          years: np.ndarray [N]
      - param_spec: list[ParamSpec] describing parameter bijectors and init values.
    """

    const = lambda value: tf.constant(value, dtype=DTYPE)

    priors.validate()
    nlag = block_map.n_lag
    n_blocks = block_map.n_blocks
    windows = store.windows(nlag)
    events = np.asarray(store.observations.event_totals, dtype=float)
    npp = np.asarray(store.observations.npp, dtype=float)
    n_years = store.n_years
    if n_years < 1:
        raise ConfigurationError("at least one target year is required")

    mode = resolve_mode(store, observe_npp=observe_npp)
    observed = np.isfinite(npp) if mode == "posterior" else np.zeros(n_years, dtype=bool)
    if mode == "posterior" and not observed.all():
        missing_years = store.observations.years[~observed].tolist()
        warnings.warn(
            f"NPP is missing for years {missing_years}; they are excluded from the "
            "likelihood and receive predictive draws only.",
            MissingDataWarning,
            stacklevel=2,
        )

    precip_center, precip_scale = fit_precip_scaling(
        windows, store.precipitation.amounts, center=priors.center_covariates
    )
    event_center, event_scale = fit_event_scaling(events, center=priors.center_covariates)
    # NPP scaling comes from the store, never from the mode, so prior and
    # posterior runs on one store share the same data-scale priors.
    if priors.standardize_npp:
        y_std, npp_center, npp_scale = standardize_npp(
            npp, center=priors.npp_center, scale=priors.npp_scale
        )
    else:
        y_std, npp_center, npp_scale = npp, 0.0, 1.0
    scales = ModelScales(
        precip_center=precip_center,
        precip_scale=precip_scale,
        event_center=event_center,
        event_scale=event_scale,
        npp_center=npp_center,
        npp_scale=npp_scale,
    )

    X_tf = tf.constant((windows - precip_center) / precip_scale, dtype=DTYPE)
    E_tf = tf.constant((events - event_center) / event_scale, dtype=DTYPE)
    obs_idx = tf.constant(np.flatnonzero(observed), dtype=tf.int32)
    y_obs_tf = tf.constant(y_std[observed], dtype=DTYPE)
    likelihood_active = bool(observed.any())

    num_events = len(EVENT_COLUMNS)
    prior_intercept = tfd.Normal(loc=const(0.0), scale=const(priors.intercept_sd))
    prior_coef = tfd.Normal(loc=const(0.0), scale=const(priors.coef_sd))
    prior_tau = tfd.Gamma(concentration=const(priors.tau_shape), rate=const(priors.tau_rate))
    prior_weights = (
        tfd.Dirichlet(concentration=tf.fill([n_blocks], const(priors.weight_concentration)))
        if n_blocks > 1
        else None
    )
    fixed_weights = tf.ones([1], dtype=DTYPE)

    tau_init = priors.tau_shape / priors.tau_rate
    param_spec: List[ParamSpec] = [
        ParamSpec("intercept", (), tfb.Identity(), tf.zeros([], DTYPE)),
        ParamSpec("alpha_antecedent", (), tfb.Identity(), tf.zeros([], DTYPE)),
        ParamSpec("alpha_event", (num_events,), tfb.Identity(), tf.zeros([num_events], DTYPE)),
        ParamSpec("tau", (), tfb.Softplus(), const(tau_init)),
    ]
    if n_blocks > 1:
        param_spec.append(
            ParamSpec(
                "weights",
                (n_blocks,),
                tfb.SoftmaxCentered(),
                tf.fill([n_blocks], const(1.0 / n_blocks)),
            )
        )

    spec_names = [spec.name for spec in param_spec]

    def _predicted_mean(
        intercept: tf.Tensor,
        alpha_antecedent: tf.Tensor,
        alpha_event: tf.Tensor,
        weights: tf.Tensor,
    ) -> tf.Tensor:
        antecedent = antecedent_index_tf(X_tf, weights, block_map)
        mean = intercept[..., None] + alpha_antecedent[..., None] * antecedent
        return mean + tf.einsum("nj,...j->...n", E_tf, alpha_event)

    def _log_likelihood(mean: tf.Tensor, tau: tf.Tensor) -> tf.Tensor:
        sigma = tf.math.rsqrt(tf.maximum(tau, const(TAU_MIN)))
        mean_obs = tf.gather(mean, obs_idx, axis=-1)
        dist = tfd.Normal(loc=mean_obs, scale=sigma[..., None])
        return tf.reduce_sum(dist.log_prob(y_obs_tf), axis=-1)

    def target_log_prob(*params: tf.Tensor) -> tf.Tensor:
        tensors = {name: tensor for name, tensor in zip(spec_names, params)}
        intercept = tensors["intercept"]
        alpha_antecedent = tensors["alpha_antecedent"]
        alpha_event = tensors["alpha_event"]
        tau = tensors["tau"]
        if prior_weights is not None:
            weights = tensors["weights"]
        else:
            weights = tf.broadcast_to(fixed_weights, tf.concat([tf.shape(intercept), [1]], 0))

        lp = prior_intercept.log_prob(intercept)
        lp += prior_coef.log_prob(alpha_antecedent)
        lp += tf.reduce_sum(prior_coef.log_prob(alpha_event), axis=-1)
        lp += prior_tau.log_prob(tau)
        if prior_weights is not None:
            lp += prior_weights.log_prob(weights)

        if not likelihood_active:
            return lp
        mean = _predicted_mean(intercept, alpha_antecedent, alpha_event, weights)
        return lp + _log_likelihood(mean, tau)

    dims = {
        "N": n_years,
        "nlag": nlag,
        "n_blocks": n_blocks,
        "mode": mode,
        "block_map": block_map,
        "scales": scales,
        "windows": windows,
        "events": events,
        "npp": npp,
        "observed": observed,
        "years": np.asarray(store.observations.years),
    }

    return target_log_prob, dims, param_spec


__all__ = ["Mode", "ParamSpec", "TargetLogProbFn", "make_target_log_prob_fn", "resolve_mode"]
