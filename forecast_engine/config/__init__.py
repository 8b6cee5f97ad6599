"""Configuration for the forecasting engine."""

from .engine_config import (
    EngineConfig,
    load_config,
    SUPPORTED_CRITERIA,
    MAX_REGULAR_DIFFERENCES,
    MAX_SEASONAL_DIFFERENCES,
)

__all__ = [
    "EngineConfig",
    "load_config",
    "SUPPORTED_CRITERIA",
    "MAX_REGULAR_DIFFERENCES",
    "MAX_SEASONAL_DIFFERENCES",
]
