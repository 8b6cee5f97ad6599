"""End-to-end univariate analysis: transform, diagnose, fit, forecast, validate residuals."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable

from forecast_engine.config import EngineConfig
from forecast_engine.diagnostics.residuals import LjungBoxResult, check_residuals
from forecast_engine.diagnostics.stationarity import KPSSResult, kpss_test, seasonal_strength
from forecast_engine.forecasting.generator import forecast
from forecast_engine.models.arima_search import ARIMASearchResult, search_arima
from forecast_engine.models.ets import auto_ets
from forecast_engine.models.results import FittedModel, ForecastResult
from forecast_engine.transforms.boxcox import TransformSpec, forward, resolve_transform
from forecast_engine.transforms.differencing import DifferencePlan
from forecast_engine.utils.run_manifest import write_run_manifest
from forecast_engine.utils.series import SeriesData, as_series

logger = logging.getLogger(__name__)

SUPPORTED_FAMILIES = {"arima", "ets"}


@dataclass
class AnalysisReport:
    """Everything a presentation layer needs from one analysis run."""

    series: SeriesData
    transform: TransformSpec
    kpss: KPSSResult
    seasonal_strength: float
    model: FittedModel
    forecast: ForecastResult
    residual_test: LjungBoxResult
    kpss_differenced: KPSSResult | None = None
    search: ARIMASearchResult | None = None

    def summary(self) -> Dict[str, Any]:
        out = {
            "n_obs": len(self.series),
            "period": self.series.period,
            "transform": self.transform.label(),
            "seasonal_strength": round(self.seasonal_strength, 4),
            "kpss": self.kpss.to_dict(),
            "model": self.model.to_dict(),
            "ljung_box": self.residual_test.to_dict(),
        }
        if self.kpss_differenced is not None:
            out["kpss_differenced"] = self.kpss_differenced.to_dict()
        if self.search is not None:
            out["search"] = {
                "mode": self.search.mode,
                "d": self.search.d,
                "D": self.search.D,
                "attempted": self.search.n_attempted,
                "failed": self.search.n_failed,
            }
        return out


def default_horizon(period: int) -> int:
    return 2 * period if period > 1 else 10


def run_forecast_analysis(
    series,
    period: int | None = None,
    family: str = "arima",
    horizon: int | None = None,
    levels: Iterable[float] | None = None,
    transform: str = "none",
    lam: float | None = None,
    config: EngineConfig | None = None,
) -> AnalysisReport:
    """Run the full analysis for one series and model family."""
    if family not in SUPPORTED_FAMILIES:
        raise ValueError(f"Unknown model family: {family}. Supported: {sorted(SUPPORTED_FAMILIES)}")
    config = config or EngineConfig()
    data = as_series(series, period=period)
    horizon = horizon or default_horizon(data.period)

    spec = resolve_transform(data.values, kind=transform, lam=lam, period=data.period)
    z = forward(data.values, spec)
    kpss_level = kpss_test(z, alpha=config.kpss_alpha)
    strength = seasonal_strength(z, data.period)
    logger.info(
        "Series n=%d m=%d transform=%s KPSS=%.4f seasonal strength=%.3f",
        len(data), data.period, spec.label(), kpss_level.statistic, strength,
    )

    search = None
    kpss_diff = None
    if family == "arima":
        search = search_arima(data, transform=spec, config=config)
        model = search.best
        if search.d or search.D:
            w = DifferencePlan.from_orders(search.d, search.D, data.period).apply(z)
            kpss_diff = kpss_test(w, alpha=config.kpss_alpha)
    else:
        model = auto_ets(data, transform=spec, config=config)

    result = forecast(model, horizon, levels=levels, config=config)
    residual_test = check_residuals(model, config=config)
    if residual_test.reject:
        logger.warning(
            "%s residuals fail the Ljung-Box test (Q=%.2f, p=%.4f); autocorrelation may be under-modelled",
            model.name, residual_test.statistic, residual_test.p_value,
        )

    return AnalysisReport(
        series=data,
        transform=spec,
        kpss=kpss_level,
        seasonal_strength=strength,
        model=model,
        forecast=result,
        residual_test=residual_test,
        kpss_differenced=kpss_diff,
        search=search,
    )


def write_analysis_outputs(
    report: AnalysisReport,
    output_dir: str | Path,
    config: EngineConfig | None = None,
) -> Dict[str, Path]:
    """Persist forecast, fitted values, model summary and run manifest."""
    config = config or EngineConfig()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        "forecast": output_dir / "forecast.csv",
        "fitted": output_dir / "fitted.csv",
        "coefficients": output_dir / "coefficients.csv",
        "summary": output_dir / "model_summary.json",
    }
    report.forecast.to_frame().to_csv(paths["forecast"], index=False)
    report.model.fitted_frame().to_csv(paths["fitted"], index=False)
    report.model.coefficients_frame().to_csv(paths["coefficients"], index=False)
    with open(paths["summary"], "w") as f:
        json.dump(report.summary(), f, indent=2, default=str)

    paths["manifest"] = write_run_manifest(
        output_dir,
        config=config.to_dict(),
        extra={"model": report.model.name, "horizon": report.forecast.horizon},
    )
    logger.info("Wrote analysis outputs to %s", output_dir)
    return paths
