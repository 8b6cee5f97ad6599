"""ETS and ARIMA model specifications, estimation and search."""

from .specs import ETSSpec, ARIMASpec, ets_candidates
from .results import FittedModel, ForecastResult
from .ets import fit_ets, auto_ets, simulate_ets_paths
from .arima import fit_arima
from .arima_search import ARIMASearchResult, auto_arima, search_arima, choose_differencing

__all__ = [
    "ETSSpec",
    "ARIMASpec",
    "ets_candidates",
    "FittedModel",
    "ForecastResult",
    "fit_ets",
    "auto_ets",
    "simulate_ets_paths",
    "fit_arima",
    "ARIMASearchResult",
    "auto_arima",
    "search_arima",
    "choose_differencing",
]
