"""Prior configuration for the antecedent NPP model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import ConfigurationError


@dataclass(frozen=True)
class Priors:
    """Prior hyperparameters, expressed on the standardised model scale.

    NPP is centred and scaled by its observed mean and standard deviation,
    precipitation windows are centred per (lag year, month) cell and divided
    by the standard deviation of the monthly history, and each event-size
    column is centred and scaled on its own, so the defaults below are weakly
    informative for any site.
    """

    intercept_sd: float = 5.0
    coef_sd: float = 5.0

    # Observation precision tau ~ Gamma(shape, rate).
    tau_shape: float = 1.0
    tau_rate: float = 0.1

    # Symmetric Dirichlet concentration over the block weights.
    weight_concentration: float = 1.0

    # ---- scaling options ----
    center_covariates: bool = True
    standardize_npp: bool = True
    # Reference NPP mean / sd; override the values fitted from the store's
    # NPP, and are required to match a posterior run when NPP is withheld.
    npp_center: Optional[float] = None
    npp_scale: Optional[float] = None

    def validate(self) -> None:
        for name in ("intercept_sd", "coef_sd", "tau_shape", "tau_rate", "weight_concentration"):
            value = getattr(self, name)
            if not value > 0:
                raise ConfigurationError(f"Priors.{name} must be positive, got {value!r}")
        if self.npp_center is not None and not np.isfinite(self.npp_center):
            raise ConfigurationError(f"Priors.npp_center must be finite, got {self.npp_center!r}")
        if self.npp_scale is not None and not (np.isfinite(self.npp_scale) and self.npp_scale > 0):
            raise ConfigurationError(f"Priors.npp_scale must be positive, got {self.npp_scale!r}")


__all__ = ["Priors"]
