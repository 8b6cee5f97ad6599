"""Autocorrelation and Ljung-Box white-noise diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from scipy import stats
from statsmodels.tsa.stattools import acf

from forecast_engine.config import EngineConfig


@dataclass(frozen=True)
class LjungBoxResult:
    """Ljung-Box portmanteau statistic on a residual sequence."""

    statistic: float
    p_value: float
    lags: int
    dof: int
    df: int
    alpha: float = 0.05

    @property
    def reject(self) -> bool:
        """True when residual autocorrelation is significant (under-modelled fit)."""
        return bool(self.p_value < self.alpha)

    def to_dict(self) -> dict:
        return {
            "lb_statistic": round(self.statistic, 4),
            "p_value": round(self.p_value, 4),
            "lags": int(self.lags),
            "model_dof": int(self.dof),
            "chi2_df": int(self.df),
            "white_noise": not self.reject,
        }


def _clean(x) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    return x[np.isfinite(x)]


def sample_acf(x, nlags: int) -> np.ndarray:
    """Sample autocorrelations r_1..r_nlags (lag 0 excluded)."""
    x = _clean(x)
    nlags = min(int(nlags), len(x) - 1)
    if nlags < 1:
        return np.array([])
    if np.isclose(np.var(x), 0.0):
        return np.zeros(nlags)
    return np.asarray(acf(x, nlags=nlags, fft=False))[1:]


def white_noise_band(n: int, alpha: float = 0.05) -> float:
    """Half-width of the approximate white-noise confidence band for sample ACF."""
    return float(stats.norm.ppf(1.0 - alpha / 2.0) / np.sqrt(n))


def ljung_box(residuals, lags: int, dof: int = 0, alpha: float = 0.05) -> LjungBoxResult:
    """Q = n (n + 2) sum_{k=1..l} r_k^2 / (n - k), referred to chi2(l - dof).

    Non-finite residuals (e.g. unconditioned start-up values) are dropped. When
    l - dof < 1 the reference distribution uses one degree of freedom.
    """
    x = _clean(residuals)
    n = len(x)
    lags = int(min(lags, n - 1))
    if lags < 1:
        return LjungBoxResult(0.0, 1.0, 0, int(dof), 1, alpha)

    r = sample_acf(x, lags)
    k = np.arange(1, lags + 1)
    q_stat = float(n * (n + 2) * np.sum(np.square(r) / (n - k)))
    df = max(lags - int(dof), 1)
    p_value = float(stats.chi2.sf(q_stat, df))
    return LjungBoxResult(q_stat, p_value, lags, int(dof), df, alpha)


def white_noise_test(residuals, lags: int, dof: int = 0) -> Tuple[float, float]:
    """(Q statistic, p-value) pair of the Ljung-Box test."""
    result = ljung_box(residuals, lags=lags, dof=dof)
    return result.statistic, result.p_value


def default_lb_lags(n: int, period: int = 1) -> int:
    """min(10, n/5) for non-seasonal data, min(2m, n/5) for seasonal data."""
    base = 2 * period if period > 1 else 10
    return max(1, int(min(base, n // 5)))


def check_residuals(fitted, config: EngineConfig | None = None, lags: int | None = None) -> LjungBoxResult:
    """Ljung-Box test on the innovation residuals of a fitted model."""
    config = config or EngineConfig()
    innovations = _clean(fitted.innovations)
    if lags is None:
        lags = default_lb_lags(len(innovations), fitted.period)
    return ljung_box(innovations, lags=lags, dof=fitted.n_coefficients, alpha=config.ljung_box_alpha)
