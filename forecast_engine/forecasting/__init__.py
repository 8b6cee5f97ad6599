"""Forecast generation from fitted models."""

from .generator import forecast, normal_quantile

__all__ = ["forecast", "normal_quantile"]
