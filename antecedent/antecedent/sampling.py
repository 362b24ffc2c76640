"""Sampling engine adapter and derived draws for the antecedent NPP model."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

import numpy as np
import tensorflow as tf
import tensorflow_probability as tfp

from .blocks import (
    DTYPE,
    antecedent_index_np,
    lag_year_mass,
    month_weights_np,
    months_into_past,
)
from .constants import TAU_MIN
from .errors import MissingParameterError, SamplingFailure
from .posterior import ParamSpec, TargetLogProbFn


logger = logging.getLogger(__name__)

# Groups sampled directly (as opposed to derived from sampled values).
SAMPLED_GROUPS = ("intercept", "alpha_antecedent", "alpha_event", "tau", "weights")


def _stack_last_two(array: np.ndarray) -> np.ndarray:
    if array.size == 0:
        return array
    return array.reshape((-1, *array.shape[2:]))


@dataclass
class Draws:
    """Draws on the data scale, each group shaped ``[samples, chains, ...]``.

    Untracked groups are ``None``.  ``deviance`` is only produced when the
    likelihood was active (``mode == "posterior"``).
    """

    mode: str
    intercept: Optional[np.ndarray] = None
    alpha_antecedent: Optional[np.ndarray] = None
    alpha_event: Optional[np.ndarray] = None
    tau: Optional[np.ndarray] = None
    weights: Optional[np.ndarray] = None
    month_weights: Optional[np.ndarray] = None
    sumD1: Optional[np.ndarray] = None
    antecedent: Optional[np.ndarray] = None
    mu: Optional[np.ndarray] = None
    npp_rep: Optional[np.ndarray] = None
    deviance: Optional[np.ndarray] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def group_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name not in ("mode", "diagnostics")]

    def groups(self) -> Dict[str, np.ndarray]:
        """Present groups in declaration order."""

        return {
            name: getattr(self, name)
            for name in self.group_names()
            if getattr(self, name) is not None
        }

    def get(self, name: str) -> np.ndarray:
        value = getattr(self, name, None) if name in self.group_names() else None
        if value is None:
            raise MissingParameterError(f"parameter group {name!r} is not present in the draws")
        return value

    @property
    def num_samples(self) -> int:
        return int(next(iter(self.groups().values())).shape[0])

    @property
    def num_chains(self) -> int:
        return int(next(iter(self.groups().values())).shape[1])

    def stack_chains(self) -> Dict[str, np.ndarray]:
        """Return groups with chain and sample dimensions flattened."""

        return {name: _stack_last_two(array) for name, array in self.groups().items()}


def _max_finite(values: np.ndarray) -> float:
    finite = np.asarray(values, dtype=float)
    finite = finite[np.isfinite(finite)]
    return float(finite.max()) if finite.size else float("nan")


def potential_scale_reduction(array: np.ndarray) -> np.ndarray:
    """Split-free R-hat per element of a ``[samples, chains, ...]`` array."""

    values = np.asarray(array, dtype=np.float64)
    if values.shape[1] < 2 or values.shape[0] < 2:
        return np.full(values.shape[2:], np.nan)
    rhat = tfp.mcmc.potential_scale_reduction(
        tf.convert_to_tensor(values, dtype=DTYPE), independent_chain_ndims=1
    )
    return rhat.numpy()


def effective_sample_size(array: np.ndarray) -> np.ndarray:
    """Effective sample size per element, pooled across chains."""

    values = np.asarray(array, dtype=np.float64)
    if values.shape[0] < 2:
        return np.full(values.shape[2:], float(values.shape[0] * values.shape[1]))
    ess = tfp.mcmc.effective_sample_size(tf.convert_to_tensor(values, dtype=DTYPE))
    return np.sum(ess.numpy(), axis=0)


def derive_quantities(
    constrained: Dict[str, np.ndarray],
    dims: Dict[str, Any],
    *,
    seed: Optional[int] = None,
) -> Dict[str, np.ndarray]:
    """Map standardised-scale draws to data-scale parameters and derived curves."""

    scales = dims["scales"]
    block_map = dims["block_map"]
    s, c = scales.npp_scale, scales.npp_center

    b0 = constrained["intercept"]
    a = constrained["alpha_antecedent"]
    g = constrained["alpha_event"]
    tau = constrained["tau"]
    weights = constrained.get("weights")
    if weights is None:
        weights = np.ones((*b0.shape, 1))

    alpha_antecedent = s * a / scales.precip_scale
    alpha_event = s * g / scales.event_scale
    # Covariate centring depends on the weights, so the intercept shift is per draw.
    center_index = antecedent_index_np(scales.precip_center[None], weights, block_map)[..., 0]
    intercept = (
        c
        + s * b0
        - alpha_antecedent * center_index
        - np.einsum("j,...j->...", scales.event_center, alpha_event)
    )
    tau_data = tau / (s * s)

    antecedent = antecedent_index_np(dims["windows"], weights, block_map)
    mu = (
        intercept[..., None]
        + alpha_antecedent[..., None] * antecedent
        + np.einsum("nj,...j->...n", dims["events"], alpha_event)
    )
    sigma = 1.0 / np.sqrt(np.maximum(tau_data, TAU_MIN))
    rng = np.random.default_rng(seed)
    npp_rep = mu + rng.standard_normal(mu.shape) * sigma[..., None]

    out = {
        "intercept": intercept,
        "alpha_antecedent": alpha_antecedent,
        "alpha_event": alpha_event,
        "tau": tau_data,
        "weights": weights,
        "month_weights": months_into_past(month_weights_np(weights, block_map)),
        "sumD1": lag_year_mass(weights, block_map),
        "antecedent": antecedent,
        "mu": mu,
        "npp_rep": npp_rep,
    }

    observed = np.asarray(dims["observed"], dtype=bool)
    if dims["mode"] == "posterior" and observed.any():
        y = np.asarray(dims["npp"], dtype=float)[observed]
        resid = y - mu[..., observed]
        var = (sigma * sigma)[..., None]
        loglik = -0.5 * (resid**2 / var + np.log(2.0 * np.pi * var))
        out["deviance"] = -2.0 * loglik.sum(axis=-1)
    return out


def _run_single_chain(
    target_log_prob_fn: TargetLogProbFn,
    param_spec: List[ParamSpec],
    *,
    num_adapt: int,
    num_burnin: int,
    num_samples: int,
    thin: int,
    init_step_size: float,
    seed: Optional[int],
) -> List[np.ndarray]:
    """Run one independent NUTS chain and return constrained draws per parameter."""

    bijectors = [spec.bijector for spec in param_spec]
    init_state = [
        tf.broadcast_to(tf.convert_to_tensor(spec.init, dtype=DTYPE), spec.shape)
        for spec in param_spec
    ]

    nuts = tfp.mcmc.NoUTurnSampler(
        target_log_prob_fn=target_log_prob_fn,
        step_size=tf.constant(init_step_size, dtype=DTYPE),
    )

    transformed = tfp.mcmc.TransformedTransitionKernel(
        inner_kernel=nuts,
        bijector=bijectors,
    )

    adapt = tfp.mcmc.DualAveragingStepSizeAdaptation(
        inner_kernel=transformed,
        num_adaptation_steps=num_adapt,
        target_accept_prob=tf.constant(0.8, dtype=DTYPE),
        step_size_setter_fn=lambda pkr, new_step_size: pkr._replace(
            inner_results=pkr.inner_results._replace(step_size=new_step_size)
        ),
        step_size_getter_fn=lambda pkr: pkr.inner_results.step_size,
        log_accept_prob_getter_fn=lambda pkr: pkr.inner_results.log_accept_ratio,
    )

    @tf.function(autograph=False, jit_compile=False)
    def _sample():
        return tfp.mcmc.sample_chain(
            num_results=num_samples,
            num_burnin_steps=num_adapt + num_burnin,
            num_steps_between_results=thin - 1,
            current_state=init_state,
            kernel=adapt,
            trace_fn=None,
            return_final_kernel_results=False,
            seed=seed,
        )

    return [np.asarray(tensor.numpy()) for tensor in _sample()]


def run_nuts(
    target_log_prob_fn: TargetLogProbFn,
    dims: Dict[str, Any],
    param_spec: List[ParamSpec],
    *,
    num_chains: int = 3,
    num_adapt: int = 500,
    num_burnin: int = 1000,
    num_samples: int = 1000,
    thin: int = 1,
    tracked: Optional[Iterable[str]] = None,
    init_step_size: float = 0.1,
    seed: Optional[int] = 42,
    max_workers: int = 1,
    timeout: Optional[float] = None,
) -> Draws:
    """Run independent NUTS chains and return data-scale draws.

    Chains share only the read-only model closure.  Each runs its own warm-up
    (``num_adapt`` adaptation steps followed by ``num_burnin`` further burn-in
    steps) and thinning, and the outputs are concatenated in chain order once
    every chain has finished.  When ``timeout`` seconds elapse first, the
    unfinished chains are discarded and :class:`SamplingFailure` is raised.
    """

    if min(num_chains, num_adapt, num_samples, thin, max_workers) < 1 or num_burnin < 0:
        raise ValueError("chain counts and lengths must be positive")

    chain_seeds = [None if seed is None else int(seed) + idx for idx in range(num_chains)]
    logger.info(
        "Sampling %d chain(s) in %s mode: adapt=%d burn=%d samples=%d thin=%d",
        num_chains,
        dims["mode"],
        num_adapt,
        num_burnin,
        num_samples,
        thin,
    )

    executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)
    futures = [
        executor.submit(
            _run_single_chain,
            target_log_prob_fn,
            param_spec,
            num_adapt=num_adapt,
            num_burnin=num_burnin,
            num_samples=num_samples,
            thin=thin,
            init_step_size=init_step_size,
            seed=chain_seed,
        )
        for chain_seed in chain_seeds
    ]
    try:
        done, pending = concurrent.futures.wait(futures, timeout=timeout)
        if pending:
            raise SamplingFailure(
                f"sampling timed out after {timeout}s with {len(pending)} chain(s) unfinished",
                {"timeout": timeout, "unfinished_chains": len(pending)},
            )
        chains = []
        for idx, future in enumerate(futures):
            try:
                chains.append(future.result())
            except Exception as exc:
                raise SamplingFailure(f"chain {idx} failed: {exc}", {"chain": idx}) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    constrained = {
        spec.name: np.stack([chain[pos] for chain in chains], axis=1)
        for pos, spec in enumerate(param_spec)
    }
    bad = sorted(name for name, array in constrained.items() if not np.all(np.isfinite(array)))
    if bad:
        raise SamplingFailure(f"non-finite draws for {bad}", {"non_finite": bad})

    derived = derive_quantities(constrained, dims, seed=seed)
    keep: FrozenSet[str] = frozenset(derived if tracked is None else tracked)

    rhat = {
        name: _max_finite(potential_scale_reduction(derived[name]))
        for name in SAMPLED_GROUPS
        if name in constrained
    }
    finite_rhat = [value for value in rhat.values() if np.isfinite(value)]
    diagnostics: Dict[str, Any] = {
        "num_chains": num_chains,
        "num_samples": num_samples,
        "rhat": rhat,
        "max_rhat": max(finite_rhat) if finite_rhat else float("nan"),
    }
    logger.info("Sampling finished; max R-hat %.3f", diagnostics["max_rhat"])

    return Draws(
        mode=dims["mode"],
        diagnostics=diagnostics,
        **{name: array for name, array in derived.items() if name in keep},
    )


def check_convergence(draws: Draws, *, rhat_threshold: float = 1.1) -> None:
    """Raise :class:`SamplingFailure` when any sampled group's R-hat is too large."""

    rhat = draws.diagnostics.get("rhat", {})
    offending = {name: value for name, value in rhat.items() if np.isfinite(value) and value > rhat_threshold}
    if offending:
        raise SamplingFailure(
            f"chains did not converge (R-hat > {rhat_threshold}): {offending}",
            {"rhat": dict(rhat), "rhat_threshold": rhat_threshold},
        )


__all__ = [
    "Draws",
    "SAMPLED_GROUPS",
    "check_convergence",
    "derive_quantities",
    "effective_sample_size",
    "potential_scale_reduction",
    "run_nuts",
]
