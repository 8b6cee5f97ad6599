"""Analysis pipelines."""

from .run_forecast_analysis import (
    AnalysisReport,
    run_forecast_analysis,
    write_analysis_outputs,
    default_horizon,
)

__all__ = [
    "AnalysisReport",
    "run_forecast_analysis",
    "write_analysis_outputs",
    "default_horizon",
]
