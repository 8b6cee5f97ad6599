"""Plain data records produced by fits and forecasts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from forecast_engine.eval.information_criteria import InformationCriteria
from forecast_engine.transforms.boxcox import TransformSpec
from forecast_engine.utils.series import SeriesData


def _freeze(arr) -> np.ndarray:
    out = np.array(arr, dtype=float, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class FittedModel:
    """Result of one successful fit; immutable once created.

    `fitted` and `residuals` are on the original scale; `innovations` are the
    one-step errors on the modelling scale (relative errors for
    multiplicative-error ETS). Values before the first conditioned observation
    are NaN. `state` holds what the forecast projection needs (final ETS
    states, or the differenced history and boundary values for ARIMA).
    """

    spec: Any
    coefficients: Dict[str, float]
    loglik: float
    sigma2: float
    criteria: InformationCriteria
    n_obs: int
    n_params: int
    fitted: np.ndarray
    residuals: np.ndarray
    innovations: np.ndarray
    series: SeriesData
    transform: TransformSpec = field(default_factory=TransformSpec)
    differencing: Tuple[Tuple[int, int], ...] = ()
    state: Dict[str, Any] = field(default_factory=dict, repr=False)
    n_iter: int = 0
    converged: bool = True

    def __post_init__(self):
        object.__setattr__(self, "fitted", _freeze(self.fitted))
        object.__setattr__(self, "residuals", _freeze(self.residuals))
        object.__setattr__(self, "innovations", _freeze(self.innovations))
        object.__setattr__(self, "differencing", tuple(tuple(step) for step in self.differencing))

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def period(self) -> int:
        return self.series.period

    @property
    def n_coefficients(self) -> int:
        """Estimated coefficients excluding the error variance."""
        return self.n_params - 1

    @property
    def aic(self) -> float:
        return self.criteria.aic

    @property
    def aicc(self) -> float:
        return self.criteria.aicc

    @property
    def bic(self) -> float:
        return self.criteria.bic

    def coefficients_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"parameter": list(self.coefficients), "estimate": list(self.coefficients.values())}
        )

    def fitted_frame(self) -> pd.DataFrame:
        out = pd.DataFrame(
            {
                "actual": self.series.values,
                "fitted": self.fitted,
                "residual": self.residuals,
                "innovation": self.innovations,
            },
            index=self.series.index,
        )
        out.index.name = "date" if isinstance(self.series.index, pd.DatetimeIndex) else "t"
        return out.reset_index()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.name,
            "coefficients": {k: float(v) for k, v in self.coefficients.items()},
            "loglik": float(self.loglik),
            "sigma2": float(self.sigma2),
            **self.criteria.to_dict(),
            "n_obs": int(self.n_obs),
            "n_params": int(self.n_params),
            "transform": self.transform.label(),
            "differencing": [list(step) for step in self.differencing],
            "n_iter": int(self.n_iter),
            "converged": bool(self.converged),
        }


@dataclass(frozen=True)
class ForecastResult:
    """h-step point forecasts, standard errors and interval bounds on the original scale."""

    model_name: str
    index: pd.Index
    mean: np.ndarray
    std_error: np.ndarray
    levels: Tuple[float, ...]
    lower: Dict[float, np.ndarray]
    upper: Dict[float, np.ndarray]
    interval_method: str = "analytic"

    def __post_init__(self):
        object.__setattr__(self, "mean", _freeze(self.mean))
        object.__setattr__(self, "std_error", _freeze(self.std_error))
        object.__setattr__(self, "lower", {k: _freeze(v) for k, v in self.lower.items()})
        object.__setattr__(self, "upper", {k: _freeze(v) for k, v in self.upper.items()})

    @property
    def horizon(self) -> int:
        return len(self.mean)

    def to_frame(self) -> pd.DataFrame:
        out = pd.DataFrame(
            {"horizon": np.arange(1, self.horizon + 1), "forecast": self.mean, "std_error": self.std_error},
            index=self.index,
        )
        for level in self.levels:
            tag = f"{level:g}"
            out[f"lower_{tag}"] = self.lower[level]
            out[f"upper_{tag}"] = self.upper[level]
        out.index.name = "date" if isinstance(self.index, pd.DatetimeIndex) else "t"
        return out.reset_index()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "horizon": self.horizon,
            "interval_method": self.interval_method,
            "forecast": self.to_frame().to_dict(orient="records"),
        }
