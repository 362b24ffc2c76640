"""Error taxonomy for the antecedent NPP package."""

from __future__ import annotations

from typing import Any, Dict, Optional


class AntecedentError(Exception):
    """Base class for all errors raised by the package."""


class ConfigurationError(AntecedentError, ValueError):
    """Malformed block map or inconsistent table dimensions."""


class InsufficientHistoryError(AntecedentError, ValueError):
    """The requested lag reaches beyond the available precipitation history."""


class MissingParameterError(AntecedentError, KeyError):
    """A tracked parameter group is absent from draws or a summary."""

    def __str__(self) -> str:  # KeyError quotes its argument otherwise
        return str(self.args[0]) if self.args else ""


class SamplingFailure(AntecedentError, RuntimeError):
    """The sampling engine errored, timed out, or did not converge."""

    def __init__(self, message: str, diagnostics: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.diagnostics: Dict[str, Any] = dict(diagnostics or {})


class MissingDataWarning(UserWarning):
    """Individual NPP observations are missing and excluded from the likelihood."""


__all__ = [
    "AntecedentError",
    "ConfigurationError",
    "InsufficientHistoryError",
    "MissingDataWarning",
    "MissingParameterError",
    "SamplingFailure",
]
