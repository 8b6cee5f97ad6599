"""Unit-root (KPSS) testing and differencing-order selection."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import kpss

from forecast_engine.config import EngineConfig
from forecast_engine.transforms.differencing import difference

logger = logging.getLogger(__name__)

# statsmodels tabulates level-stationarity critical values at these sizes.
_KPSS_LEVELS = {0.10: "10%", 0.05: "5%", 0.025: "2.5%", 0.01: "1%"}


@dataclass(frozen=True)
class KPSSResult:
    """KPSS statistic with the tabulated critical value at the chosen size."""

    statistic: float
    critical_value: float
    p_value: float
    lags: int
    alpha: float
    reject: bool

    def to_dict(self) -> dict:
        return {
            "kpss_statistic": round(self.statistic, 4),
            "critical_value": round(self.critical_value, 4),
            "p_value": round(self.p_value, 4),
            "lags_used": int(self.lags),
            "alpha": self.alpha,
            "stationary": not self.reject,
        }


def _is_constant(x: np.ndarray) -> bool:
    return bool(np.isclose(np.ptp(x), 0.0)) if len(x) else True


def _critical_key(alpha: float) -> str:
    nearest = min(_KPSS_LEVELS, key=lambda level: abs(level - alpha))
    return _KPSS_LEVELS[nearest]


def kpss_test(series, alpha: float = 0.05, nlags: int | None = None) -> KPSSResult:
    """KPSS test with null hypothesis of level stationarity.

    Uses the short truncation lag trunc(3 sqrt(n) / 13). Constant and very short
    series are reported as stationary rather than raising.
    """
    x = np.asarray(series, dtype=float)
    n = len(x)
    key = _critical_key(alpha)

    if n < 3 or _is_constant(x):
        return KPSSResult(
            statistic=0.0, critical_value=np.nan, p_value=1.0, lags=0, alpha=alpha, reject=False
        )

    if nlags is None:
        nlags = int(3.0 * np.sqrt(n) / 13.0)
    nlags = min(max(int(nlags), 0), n - 1)

    with warnings.catch_warnings():
        # statsmodels warns when the statistic lies outside its p-value table.
        warnings.simplefilter("ignore")
        stat, p_value, lags, crit_vals = kpss(x, regression="c", nlags=nlags)

    critical = float(crit_vals[key])
    return KPSSResult(
        statistic=float(stat),
        critical_value=critical,
        p_value=float(p_value),
        lags=int(lags),
        alpha=alpha,
        reject=bool(stat > critical),
    )


unit_root_test = kpss_test


def ndiffs(series, config: EngineConfig | None = None) -> int:
    """Number of regular differences: difference while KPSS rejects stationarity."""
    config = config or EngineConfig()
    x = np.asarray(series, dtype=float)
    d = 0
    if _is_constant(x):
        return 0

    result = kpss_test(x, alpha=config.kpss_alpha)
    while result.reject and d < config.max_d:
        if len(x) < 4:
            break
        d += 1
        x = difference(x, 1)
        if _is_constant(x):
            break
        result = kpss_test(x, alpha=config.kpss_alpha)

    logger.debug("ndiffs selected d=%d (last KPSS statistic %.4f)", d, result.statistic)
    return d


def seasonal_strength(series, period: int) -> float:
    """STL seasonal strength max(0, 1 - Var(R) / Var(S + R))."""
    x = np.asarray(series, dtype=float)
    if period < 2 or len(x) < 2 * period + 1 or _is_constant(x):
        return 0.0

    fit = STL(x, period=period, robust=True).fit()
    remainder = np.asarray(fit.resid)
    detrended = np.asarray(fit.seasonal) + remainder
    var_sr = np.var(detrended)
    if var_sr <= 0:
        return 0.0
    return float(max(0.0, 1.0 - np.var(remainder) / var_sr))


def nsdiffs(series, period: int, config: EngineConfig | None = None) -> int:
    """Number of seasonal differences: difference while seasonal strength exceeds the threshold."""
    config = config or EngineConfig()
    if period < 2:
        return 0

    x = np.asarray(series, dtype=float)
    D = 0
    while D < config.max_D and len(x) >= 2 * period + 1:
        strength = seasonal_strength(x, period)
        if strength <= config.seasonal_strength_threshold:
            break
        D += 1
        x = difference(x, period)

    logger.debug("nsdiffs selected D=%d for period %d", D, period)
    return D
