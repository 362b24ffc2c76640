"""Centring and scaling of precipitation covariates and the NPP response."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .constants import SCALE_MIN


def _positive(values) -> np.ndarray:
    """Replace degenerate (zero, tiny or non-finite) scales with 1."""

    out = np.asarray(values, dtype=float)
    return np.where(np.isfinite(out) & (out > SCALE_MIN), out, 1.0)


def fit_precip_scaling(windows: np.ndarray, amounts: np.ndarray, *, center: bool = True) -> tuple[np.ndarray, float]:
    """Per-cell centre of the target-year windows and one scale for all months.

    The centre has the window shape ``[nlag, 12]`` so that subtracting it keeps
    the antecedent index linear in the weights; the scale is the standard
    deviation of the whole monthly history.
    """

    X = np.asarray(windows, dtype=float)
    offset = X.mean(axis=0) if center and X.shape[0] else np.zeros(X.shape[1:])
    return offset, float(_positive(np.std(np.asarray(amounts, dtype=float))))


def fit_event_scaling(event_totals: np.ndarray, *, center: bool = True) -> tuple[np.ndarray, np.ndarray]:
    """Per-column centre and scale of the event-size totals."""

    E = np.asarray(event_totals, dtype=float)
    offset = E.mean(axis=0) if center and E.shape[0] else np.zeros(E.shape[1])
    return offset, _positive(E.std(axis=0)) if E.shape[0] else np.ones(E.shape[1])


def standardize_npp(
    npp: np.ndarray,
    *,
    center: Optional[float] = None,
    scale: Optional[float] = None,
) -> tuple[np.ndarray, float, float]:
    """Centre and scale NPP using its finite values only.

    Returns the standardised series (NaN stays NaN), the removed mean and the
    divisor.  With fewer than two finite values the divisor is 1, and with
    none the mean is 0 as well.  An explicit ``center`` or ``scale`` replaces
    the fitted value.
    """

    y = np.asarray(npp, dtype=float)
    finite = y[np.isfinite(y)]
    if center is None:
        center = float(finite.mean()) if finite.size else 0.0
    if scale is None:
        scale = float(_positive(finite.std(ddof=1))) if finite.size > 1 else 1.0
    center, scale = float(center), float(scale)
    return (y - center) / scale, center, scale


@dataclass(frozen=True, eq=False)
class ModelScales:
    """Offsets and divisors applied before sampling and undone afterwards."""

    precip_center: np.ndarray
    precip_scale: float
    event_center: np.ndarray
    event_scale: np.ndarray
    npp_center: float
    npp_scale: float


__all__ = [
    "ModelScales",
    "fit_event_scaling",
    "fit_precip_scaling",
    "standardize_npp",
]
