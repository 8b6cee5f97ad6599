"""h-step forecasts with prediction intervals from a fitted model.

Projection happens on the modelling scale: ETS states are iterated with zero
future innovations, ARIMA forecasts are built on the differenced scale and
integrated back. Only then is the variance transform inverted, so
undifferencing always precedes the inverse Box-Cox step.

Interval methods per family:
    ARIMA                         analytic, sigma^2 * sum psi_j^2
    ETS additive error            analytic (class 1)
    ETS mult. error, season N/A   analytic (class 2)
    ETS mult. error and season    seeded Monte-Carlo paths (class 3)
"""

from __future__ import annotations

import logging
from typing import Iterable, Tuple

import numpy as np
from scipy import stats

from forecast_engine.config import EngineConfig
from forecast_engine.models.arima import arima_forecast_variance, arima_point_forecast
from forecast_engine.models.ets import (
    ets_forecast_variance,
    ets_point_forecast,
    interval_class,
    simulate_ets_paths,
)
from forecast_engine.models.results import FittedModel, ForecastResult
from forecast_engine.models.specs import ARIMASpec, ETSSpec
from forecast_engine.transforms.boxcox import bias_adjusted_inverse, inverse, inverse_derivative

logger = logging.getLogger(__name__)


def _project_ets(fitted: FittedModel, h: int, config: EngineConfig):
    point = ets_point_forecast(fitted, h)
    if interval_class(fitted.spec) < 3:
        return point, ets_forecast_variance(fitted, h, point), None
    paths = simulate_ets_paths(fitted, h, config.n_simulations, config.random_seed)
    return point, np.var(paths, axis=0, ddof=1), paths


def _project_arima(fitted: FittedModel, h: int, config: EngineConfig):
    return arima_point_forecast(fitted, h), arima_forecast_variance(fitted, h), None


_PROJECTORS = {
    ETSSpec: _project_ets,
    ARIMASpec: _project_arima,
}


def normal_quantile(level: float) -> float:
    """Two-sided Gaussian multiplier for a `level` percent interval."""
    return float(stats.norm.ppf(0.5 + level / 200.0))


def _check_levels(levels: Iterable[float]) -> Tuple[float, ...]:
    levels = tuple(float(level) for level in levels)
    if not levels:
        raise ValueError("At least one prediction level is required.")
    for level in levels:
        if not 0 < level < 100:
            raise ValueError(f"Prediction levels must be in (0, 100); got {level}")
    return levels


def forecast(
    fitted: FittedModel,
    h: int,
    levels: Iterable[float] | None = None,
    config: EngineConfig | None = None,
) -> ForecastResult:
    """Forecast `h` steps ahead with intervals at each requested level (percent)."""
    config = config or EngineConfig()
    if int(h) != h or h < 1:
        raise ValueError(f"Forecast horizon must be a positive integer; got {h}")
    h = int(h)
    levels = _check_levels(levels if levels is not None else config.levels)

    try:
        projector = _PROJECTORS[type(fitted.spec)]
    except KeyError:
        raise TypeError(f"No forecast projection for spec type {type(fitted.spec).__name__}") from None

    point_z, var_z, paths = projector(fitted, h, config)
    var_z = np.clip(var_z, 0.0, None)
    se_z = np.sqrt(var_z)

    bounds_z = {}
    for level in levels:
        if paths is None:
            q = normal_quantile(level)
            bounds_z[level] = (point_z - q * se_z, point_z + q * se_z)
        else:
            tail = (100.0 - level) / 200.0
            lo, hi = np.quantile(paths, [tail, 1.0 - tail], axis=0)
            bounds_z[level] = (lo, hi)

    transform = fitted.transform
    if config.bias_adjust and not transform.is_identity:
        mean = bias_adjusted_inverse(point_z, var_z, transform)
    else:
        mean = inverse(point_z, transform)
    std_error = se_z * np.abs(inverse_derivative(point_z, transform))

    lower, upper = {}, {}
    for level, (lo, hi) in bounds_z.items():
        lo_y, hi_y = inverse(lo, transform), inverse(hi, transform)
        # The inverse transform (1/y) reverses the ordering of the bounds.
        lower[level] = np.minimum(lo_y, hi_y)
        upper[level] = np.maximum(lo_y, hi_y)

    method = "simulation" if paths is not None else "analytic"
    logger.debug("%s: %d-step forecast with %s intervals at %s", fitted.name, h, method, levels)
    return ForecastResult(
        model_name=fitted.name,
        index=fitted.series.future_index(h),
        mean=mean,
        std_error=std_error,
        levels=levels,
        lower=lower,
        upper=upper,
        interval_method=method,
    )
