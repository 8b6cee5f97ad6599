"""Stationarity and residual diagnostics."""

from .stationarity import (
    KPSSResult,
    kpss_test,
    unit_root_test,
    ndiffs,
    nsdiffs,
    seasonal_strength,
)
from .residuals import (
    LjungBoxResult,
    sample_acf,
    white_noise_band,
    ljung_box,
    white_noise_test,
    default_lb_lags,
    check_residuals,
)

__all__ = [
    "KPSSResult",
    "kpss_test",
    "unit_root_test",
    "ndiffs",
    "nsdiffs",
    "seasonal_strength",
    "LjungBoxResult",
    "sample_acf",
    "white_noise_band",
    "ljung_box",
    "white_noise_test",
    "default_lb_lags",
    "check_residuals",
]
