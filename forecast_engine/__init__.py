"""Univariate ETS / ARIMA forecasting engine."""

from .config import EngineConfig, load_config
from .errors import (
    ForecastEngineError,
    InvalidTransform,
    InvalidSpec,
    InvalidOrder,
    UnstableModel,
    NonConvergence,
    NoViableModel,
)
from .utils.series import SeriesData, as_series
from .transforms import TransformSpec, DifferencePlan, estimate_lambda
from .diagnostics import kpss_test, ljung_box, white_noise_test, check_residuals
from .eval import criteria, rank_candidates
from .models import (
    ETSSpec,
    ARIMASpec,
    FittedModel,
    ForecastResult,
    fit_ets,
    auto_ets,
    fit_arima,
    auto_arima,
    search_arima,
)
from .forecasting import forecast
from .pipelines import run_forecast_analysis, write_analysis_outputs

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "load_config",
    "ForecastEngineError",
    "InvalidTransform",
    "InvalidSpec",
    "InvalidOrder",
    "UnstableModel",
    "NonConvergence",
    "NoViableModel",
    "SeriesData",
    "as_series",
    "TransformSpec",
    "DifferencePlan",
    "estimate_lambda",
    "kpss_test",
    "ljung_box",
    "white_noise_test",
    "check_residuals",
    "criteria",
    "rank_candidates",
    "ETSSpec",
    "ARIMASpec",
    "FittedModel",
    "ForecastResult",
    "fit_ets",
    "auto_ets",
    "fit_arima",
    "auto_arima",
    "search_arima",
    "forecast",
    "run_forecast_analysis",
    "write_analysis_outputs",
]
