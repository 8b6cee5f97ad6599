"""Exponential smoothing state-space (ETS) models with Gaussian innovations.

All admissible (error, trend, season) combinations share one recursion. The
one-step prediction combines the damped level with the seasonal index
(`_PREDICT`), and the error application (`_INNOVATION`) turns the raw error
y - mu into the model innovation (additive) or relative innovation
(multiplicative). Given the raw error, the state corrections depend only on
the season type.

Interval classes (Hyndman et al., 2008, ch. 6):
    class 1  additive error                  closed form
    class 2  multiplicative error, season N/A closed form
    class 3  multiplicative error and season  Monte-Carlo simulation
"""

from __future__ import annotations

import logging
import math
import operator
import warnings
from typing import Dict, List, Tuple

import numpy as np
from statsmodels.tsa.seasonal import seasonal_decompose

from forecast_engine.config import EngineConfig
from forecast_engine.errors import InvalidSpec, NoViableModel
from forecast_engine.eval.information_criteria import criteria, rank_candidates
from forecast_engine.models.results import FittedModel
from forecast_engine.models.specs import ETSSpec, ets_candidates
from forecast_engine.transforms.boxcox import TransformSpec, forward, inverse
from forecast_engine.utils.optim import PENALTY, minimize_bounded
from forecast_engine.utils.parallel import evaluate_candidates
from forecast_engine.utils.series import SeriesData, as_series

logger = logging.getLogger(__name__)

_PREDICT = {
    "N": lambda level, season: level,
    "A": operator.add,
    "M": operator.mul,
}

_INNOVATION = {
    "A": lambda raw, mu: raw,
    "M": lambda raw, mu: raw / mu,
}


class _Infeasible(Exception):
    pass


def _ets_filter(y, spec: ETSSpec, alpha, beta, gamma, phi, level, trend, season, period):
    """Run the state recursion over y.

    Returns (one-step predictions, innovations, final level, final trend,
    final seasonal vector). The seasonal vector is indexed by t mod period.
    """
    n = len(y)
    predict = _PREDICT[spec.season]
    innovate = _INNOVATION[spec.error]
    mult_season = spec.season == "M"
    add_season = spec.season == "A"
    mult_error = spec.error == "M"
    damp = phi if spec.has_trend else 0.0
    m = period if spec.seasonal else 1

    s = [float(v) for v in season] if spec.seasonal else [0.0]
    l = float(level)
    b = float(trend) if spec.has_trend else 0.0
    mu_out = np.empty(n)
    e_out = np.empty(n)

    for t in range(n):
        j = t % m
        lpred = l + damp * b
        st = s[j]
        mu = predict(lpred, st)
        if mult_error and mu <= 0:
            raise _Infeasible()
        raw = y[t] - mu
        mu_out[t] = mu
        e_out[t] = innovate(raw, mu)

        if mult_season:
            if st <= 0 or lpred <= 0:
                raise _Infeasible()
            l = lpred + alpha * raw / st
            b = damp * b + beta * raw / st
            s[j] = st + gamma * raw / lpred
        else:
            l = lpred + alpha * raw
            b = damp * b + beta * raw
            if add_season:
                s[j] = st + gamma * raw

    return mu_out, e_out, l, b, np.asarray(s)


def _parameter_names(spec: ETSSpec, period: int) -> List[str]:
    names = ["alpha"]
    if spec.has_trend:
        names.append("beta_star")
    if spec.seasonal:
        names.append("gamma_star")
    if spec.damped:
        names.append("phi")
    names.append("l0")
    if spec.has_trend:
        names.append("b0")
    if spec.seasonal:
        names.extend(f"s{i}" for i in range(period - 1))
    return names


def initial_states(y: np.ndarray, spec: ETSSpec, period: int) -> Tuple[float, float, np.ndarray]:
    """Heuristic (l0, b0, seasonal) seed from the first few seasonal cycles.

    Seasonal indices come from a classical decomposition of up to three cycles;
    level and slope from a straight-line fit to the first max(10, 2m)
    seasonally adjusted observations.
    """
    n = len(y)
    if spec.seasonal:
        n_init = min(n, 3 * period)
        model = "multiplicative" if spec.season == "M" else "additive"
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            dec = seasonal_decompose(y[:n_init], model=model, period=period)
        season = np.asarray(dec.seasonal[:period], dtype=float)
        tiled = np.resize(season, n)
        y_sa = y / tiled if spec.season == "M" else y - tiled
    else:
        season = np.zeros(0)
        y_sa = y

    maxn = min(max(10, 2 * period), n)
    if spec.has_trend and maxn >= 2:
        slope, intercept = np.polyfit(np.arange(1, maxn + 1), y_sa[:maxn], 1)
        level, trend = float(intercept), float(slope)
    else:
        level, trend = float(np.mean(y_sa[:maxn])), 0.0
    return level, trend, season


class _ETSProblem:
    """Maps the flat optimizer vector to smoothing parameters and states."""

    def __init__(self, y: np.ndarray, spec: ETSSpec, period: int, config: EngineConfig):
        self.y = y
        self.spec = spec
        self.period = period
        self.config = config
        self.names = _parameter_names(spec, period)
        self.scale = max(float(np.mean(np.abs(y))), 1e-8)
        self.n = len(y)

    def unpack(self, x) -> Dict[str, object]:
        spec = self.spec
        it = iter(x)
        alpha = next(it)
        beta = alpha * next(it) if spec.has_trend else 0.0
        gamma = (1.0 - alpha) * next(it) if spec.seasonal else 0.0
        if spec.damped:
            phi = next(it)
        else:
            phi = 1.0 if spec.has_trend else 0.0
        level = next(it) * self.scale
        trend = next(it) * self.scale if spec.has_trend else 0.0

        season = np.zeros(0)
        if spec.seasonal:
            free = np.array([next(it) for _ in range(self.period - 1)], dtype=float)
            if spec.season == "M":
                season = np.append(free, self.period - free.sum())
            else:
                free = free * self.scale
                season = np.append(free, -free.sum())

        return {
            "alpha": float(alpha),
            "beta": float(beta),
            "gamma": float(gamma),
            "phi": float(phi),
            "level": float(level),
            "trend": float(trend),
            "season": season,
        }

    def start(self) -> np.ndarray:
        spec, cfg = self.spec, self.config
        level, trend, season = initial_states(self.y, spec, self.period)
        alpha0 = 0.2 / self.period if spec.seasonal else 0.2
        x0 = [np.clip(alpha0, *cfg.alpha_bounds)]
        if spec.has_trend:
            x0.append(np.clip(0.1, *cfg.beta_bounds))
        if spec.seasonal:
            x0.append(np.clip(0.05, *cfg.gamma_bounds))
        if spec.damped:
            x0.append(np.clip(0.97, *cfg.phi_bounds))
        x0.append(level / self.scale)
        if spec.has_trend:
            x0.append(trend / self.scale)
        if spec.seasonal:
            free = season[:-1]
            x0.extend(free if spec.season == "M" else free / self.scale)
        return np.asarray(x0, dtype=float)

    def bounds(self):
        spec, cfg = self.spec, self.config
        out = [cfg.alpha_bounds]
        if spec.has_trend:
            out.append(cfg.beta_bounds)
        if spec.seasonal:
            out.append(cfg.gamma_bounds)
        if spec.damped:
            out.append(cfg.phi_bounds)
        out.append((None, None))
        if spec.has_trend:
            out.append((None, None))
        if spec.seasonal:
            seasonal_bound = (1e-3, None) if spec.season == "M" else (None, None)
            out.extend([seasonal_bound] * (self.period - 1))
        return out

    def run(self, x):
        p = self.unpack(x)
        if self.spec.season == "M" and np.any(p["season"] <= 0):
            raise _Infeasible()
        return p, _ets_filter(
            self.y, self.spec, p["alpha"], p["beta"], p["gamma"], p["phi"],
            p["level"], p["trend"], p["season"], self.period,
        )

    @property
    def sigma2_floor(self) -> float:
        return 1e-12 if self.spec.error == "M" else 1e-12 * self.scale ** 2

    def loglik(self, innovations: np.ndarray, mu: np.ndarray) -> float:
        n = self.n
        sse = float(np.dot(innovations, innovations))
        sigma2 = max(sse / n, self.sigma2_floor)
        ll = -0.5 * n * (math.log(2.0 * math.pi * sigma2) + 1.0)
        if self.spec.error == "M":
            ll -= float(np.sum(np.log(np.abs(mu))))
        return ll

    def objective(self, x) -> float:
        try:
            _, (mu, e, *_rest) = self.run(x)
        except (_Infeasible, ZeroDivisionError, OverflowError):
            return PENALTY
        if not np.all(np.isfinite(e)):
            return PENALTY
        return -self.loglik(e, mu)

    def reproduces_series(self, x) -> bool:
        """True when the states in x already give (numerically) zero one-step errors."""
        try:
            _, (_mu, e, *_rest) = self.run(x)
        except (_Infeasible, ZeroDivisionError, OverflowError):
            return False
        return bool(np.all(np.isfinite(e))) and float(np.dot(e, e)) / self.n <= self.sigma2_floor

    def damp_smoothing(self, x) -> np.ndarray:
        """Copy of x with alpha, beta* and gamma* moved to their lower bounds."""
        spec, cfg = self.spec, self.config
        x = np.array(x, dtype=float)
        x[0] = cfg.alpha_bounds[0]
        pos = 1
        if spec.has_trend:
            x[pos] = cfg.beta_bounds[0]
            pos += 1
        if spec.seasonal:
            x[pos] = cfg.gamma_bounds[0]
        return x


def fit_ets(
    series,
    spec: ETSSpec,
    period: int | None = None,
    transform: TransformSpec | None = None,
    config: EngineConfig | None = None,
) -> FittedModel:
    """Maximum-likelihood fit of one ETS specification."""
    config = config or EngineConfig()
    transform = transform or TransformSpec()
    data = as_series(series, period=period)
    m = data.period
    z = forward(data.values, transform)

    spec.validate_for(m, bool(np.all(z > 0)), n_obs=len(z))
    if len(z) < 4:
        raise InvalidSpec(f"{spec.name} needs at least 4 observations; got {len(z)}.")

    problem = _ETSProblem(z, spec, m, config)
    x0 = problem.start()
    if problem.reproduces_series(x0):
        # The likelihood is flat in the smoothing parameters; prefer no updating.
        x0 = problem.damp_smoothing(x0)
    result = minimize_bounded(problem.objective, x0, problem.bounds(), config, label=spec.name)

    params, (mu, e, level, trend, season) = problem.run(result.x)
    loglik = problem.loglik(e, mu)
    n = len(z)
    k = len(result.x) + 1
    raw = z - mu
    sse = float(np.dot(e, e))
    sigma2 = sse / (n - len(result.x)) if n > len(result.x) else sse / n

    coefficients = {"alpha": params["alpha"]}
    if spec.has_trend:
        coefficients["beta"] = params["beta"]
    if spec.seasonal:
        coefficients["gamma"] = params["gamma"]
    if spec.damped:
        coefficients["phi"] = params["phi"]
    coefficients["l0"] = params["level"]
    if spec.has_trend:
        coefficients["b0"] = params["trend"]
    for i, value in enumerate(params["season"]):
        coefficients[f"s{i}"] = float(value)

    fitted = inverse(mu, transform)
    logger.debug("%s fitted: loglik=%.3f sigma2=%.5g iterations=%d", spec.name, loglik, sigma2, result.nit)
    return FittedModel(
        spec=spec,
        coefficients=coefficients,
        loglik=loglik,
        sigma2=sigma2,
        criteria=criteria(loglik, k, n),
        n_obs=n,
        n_params=k,
        fitted=fitted,
        residuals=data.values - fitted,
        innovations=e,
        series=data,
        transform=transform,
        differencing=(),
        state={
            "level": level,
            "trend": trend,
            "season": season,
            "phi": params["phi"],
            "raw_residuals": raw,
        },
        n_iter=int(result.nit),
        converged=bool(result.success),
    )


def auto_ets(
    series,
    period: int | None = None,
    transform: TransformSpec | None = None,
    config: EngineConfig | None = None,
    additive_only: bool | None = None,
) -> FittedModel:
    """Fit every admissible ETS combination and return the best by the configured criterion.

    Multiplicative components are skipped for non-positive data; when a
    variance transform is active only additive models are considered.
    """
    config = config or EngineConfig()
    transform = transform or TransformSpec()
    data = as_series(series, period=period)
    z = forward(data.values, transform)
    if additive_only is None:
        additive_only = not transform.is_identity

    specs = ets_candidates(data.period, positive=bool(np.all(z > 0)), additive_only=additive_only)
    if data.period > 1 and len(z) < 2 * data.period:
        specs = [s for s in specs if not s.seasonal]

    outcomes = evaluate_candidates(
        lambda spec: fit_ets(data, spec, transform=transform, config=config),
        specs,
        n_jobs=config.n_jobs,
    )
    fits = [o.fitted for o in outcomes if o.ok]
    failed = len(outcomes) - len(fits)
    if not fits:
        raise NoViableModel(attempted=len(outcomes), failed=failed)

    best = rank_candidates(fits, criterion=config.criterion)[0]
    logger.info(
        "ETS search: %d candidates, %d failed, best %s (%s=%.3f)",
        len(outcomes), failed, best.name, config.criterion, best.criteria.get(config.criterion),
    )
    return best


def _phi_cumulative(phi: float, h: int, has_trend: bool) -> np.ndarray:
    """phi_j = phi + phi^2 + ... + phi^j for j = 1..h."""
    if not has_trend:
        return np.zeros(h)
    return np.cumsum(np.power(phi, np.arange(1, h + 1)))


def ets_point_forecast(fitted: FittedModel, h: int) -> np.ndarray:
    """Project the final state forward with zero future innovations."""
    spec = fitted.spec
    st = fitted.state
    n = fitted.n_obs
    m = fitted.period if spec.seasonal else 1
    phi_j = _phi_cumulative(st["phi"], h, spec.has_trend)
    lpred = st["level"] + phi_j * st["trend"]
    if not spec.seasonal:
        return lpred
    season = st["season"][(n + np.arange(h)) % m]
    return _PREDICT[spec.season](lpred, season)


def _c_weights(fitted: FittedModel, h: int) -> np.ndarray:
    """c_j = alpha + beta phi_j + gamma d_{j,m} for j = 1..h-1."""
    spec = fitted.spec
    coef = fitted.coefficients
    j = np.arange(1, h)
    c = np.full(h - 1, coef["alpha"])
    if spec.has_trend:
        c = c + coef["beta"] * _phi_cumulative(fitted.state["phi"], h, True)[: h - 1]
    if spec.seasonal:
        c = c + coef["gamma"] * (j % fitted.period == 0)
    return c


def interval_class(spec: ETSSpec) -> int:
    if spec.error == "A":
        return 1
    return 3 if spec.season == "M" else 2


def ets_forecast_variance(fitted: FittedModel, h: int, point: np.ndarray) -> np.ndarray:
    """Closed-form h-step forecast variance for interval classes 1 and 2."""
    spec = fitted.spec
    sigma2 = fitted.sigma2
    c2 = np.square(_c_weights(fitted, h))
    klass = interval_class(spec)

    if klass == 1:
        return sigma2 * np.concatenate([[1.0], 1.0 + np.cumsum(c2)])
    if klass == 2:
        theta = np.empty(h)
        for i in range(h):
            theta[i] = point[i] ** 2 + sigma2 * np.sum(c2[:i] * theta[:i][::-1])
        return (1.0 + sigma2) * theta - np.square(point)
    raise InvalidSpec(f"{spec.name} has no closed-form forecast variance; use simulation.")


def simulate_ets_paths(fitted: FittedModel, h: int, n_paths: int, seed: int) -> np.ndarray:
    """Simulate future sample paths (n_paths x h) on the modelling scale."""
    spec = fitted.spec
    coef = fitted.coefficients
    st = fitted.state
    rng = np.random.default_rng(seed)
    sigma = math.sqrt(fitted.sigma2)
    n = fitted.n_obs
    m = fitted.period if spec.seasonal else 1
    alpha = coef["alpha"]
    beta = coef.get("beta", 0.0)
    gamma = coef.get("gamma", 0.0)
    damp = st["phi"] if spec.has_trend else 0.0

    level = np.full(n_paths, st["level"])
    trend = np.full(n_paths, st["trend"])
    season = np.tile(np.asarray(st["season"], dtype=float), (n_paths, 1)) if spec.seasonal else None
    predict = _PREDICT[spec.season]
    paths = np.empty((n_paths, h))

    for i in range(h):
        j = (n + i) % m
        lpred = level + damp * trend
        s_j = season[:, j] if spec.seasonal else 0.0
        mu = predict(lpred, s_j)
        eps = rng.normal(0.0, sigma, n_paths)
        raw = mu * eps if spec.error == "M" else eps
        paths[:, i] = mu + raw
        if spec.season == "M":
            level = lpred + alpha * raw / s_j
            trend = damp * trend + beta * raw / s_j
            season[:, j] = s_j + gamma * raw / lpred
        else:
            level = lpred + alpha * raw
            trend = damp * trend + beta * raw
            if spec.season == "A":
                season[:, j] = s_j + gamma * raw
    return paths
