"""Error taxonomy for candidate fits and model searches."""

from __future__ import annotations


class ForecastEngineError(Exception):
    """Base class for all engine errors."""


class InvalidTransform(ForecastEngineError, ValueError):
    """Data violates the domain of the requested transform."""


class InvalidSpec(ForecastEngineError, ValueError):
    """Structurally invalid model specification."""


class InvalidOrder(InvalidSpec):
    """ARIMA order outside the admissible space."""


class UnstableModel(ForecastEngineError):
    """Estimated polynomial has roots on or inside the unit circle."""

    def __init__(self, message: str, min_root_modulus: float | None = None):
        super().__init__(message)
        self.min_root_modulus = min_root_modulus


class NonConvergence(ForecastEngineError):
    """Optimizer exhausted its budget without an acceptable likelihood."""

    def __init__(self, message: str, n_iter: int = 0, reason: str = "iterations"):
        super().__init__(message)
        self.n_iter = n_iter
        self.reason = reason


class NoViableModel(ForecastEngineError):
    """Every candidate in a search failed."""

    def __init__(self, attempted: int, failed: int, message: str | None = None):
        if message is None:
            message = f"No viable model: {failed} of {attempted} candidate fits failed."
        super().__init__(message)
        self.attempted = attempted
        self.failed = failed


# Errors local to one candidate; searches drop the candidate and continue.
CANDIDATE_ERRORS = (InvalidTransform, InvalidSpec, UnstableModel, NonConvergence)


__all__ = [
    "ForecastEngineError",
    "InvalidTransform",
    "InvalidSpec",
    "InvalidOrder",
    "UnstableModel",
    "NonConvergence",
    "NoViableModel",
    "CANDIDATE_ERRORS",
]
