"""Seasonal ARIMA estimation by conditional-sum-of-squares Gaussian likelihood."""

from __future__ import annotations

import logging
import math
from typing import Dict

import numpy as np
from scipy.signal import lfilter
from statsmodels.tsa.arima_process import arma2ma

from forecast_engine.config import EngineConfig
from forecast_engine.errors import InvalidOrder, UnstableModel
from forecast_engine.eval.information_criteria import criteria
from forecast_engine.models.results import FittedModel
from forecast_engine.models.specs import ARIMASpec
from forecast_engine.transforms.boxcox import TransformSpec, forward, inverse
from forecast_engine.transforms.differencing import DifferencePlan
from forecast_engine.utils.optim import PENALTY, minimize_bounded
from forecast_engine.utils.series import as_series

logger = logging.getLogger(__name__)

# Box bound on the unconstrained (arctanh-PACF) coefficients.
_PACF_BOUND = 7.0


def pacf_to_coefs(partials) -> np.ndarray:
    """Durbin-Levinson map from partial autocorrelations in (-1, 1) to stationary AR coefficients."""
    partials = np.asarray(partials, dtype=float)
    phi = np.zeros(len(partials))
    for k, r in enumerate(partials):
        prev = phi[:k].copy()
        phi[:k] = prev - r * prev[::-1]
        phi[k] = r
    return phi


def coefs_to_pacf(phi) -> np.ndarray:
    """Inverse of `pacf_to_coefs` for a stationary coefficient vector."""
    phi = np.asarray(phi, dtype=float).copy()
    p = len(phi)
    partials = np.zeros(p)
    for k in range(p - 1, -1, -1):
        r = phi[k]
        partials[k] = r
        if k == 0:
            break
        prev = phi[:k]
        phi[:k] = (prev + r * prev[::-1]) / (1.0 - r * r)
    return partials


def lag_polynomial(coefs, lag: int = 1, sign: float = -1.0) -> np.ndarray:
    """[1, sign*c1 at lag, sign*c2 at 2*lag, ...]; sign=-1 for AR, +1 for MA."""
    coefs = np.asarray(coefs, dtype=float)
    poly = np.zeros(len(coefs) * lag + 1)
    poly[0] = 1.0
    if len(coefs):
        poly[lag::lag] = sign * coefs
    return poly


def min_root_modulus(poly) -> float:
    """Smallest modulus among the roots of sum_i poly[i] z^i (inf for a constant polynomial)."""
    poly = np.trim_zeros(np.asarray(poly, dtype=float), trim="b")
    if len(poly) <= 1:
        return math.inf
    return float(np.min(np.abs(np.roots(poly[::-1]))))


def css_residuals(w, mean: float, ar, ma, n_cond: int) -> np.ndarray:
    """One-step errors of the ARMA recursion on w, conditioning on the first n_cond values.

    u_t = sum_i ar[i] (w_{t-i} - mean) for t >= n_cond, then e_t = u_t - sum_j ma[j] e_{t-j}
    with pre-sample errors set to zero.
    """
    w = np.asarray(w, dtype=float)
    u = np.convolve(w - mean, ar)[n_cond : len(w)]
    return lfilter([1.0], ma, u)


class _ARIMAProblem:
    def __init__(self, w: np.ndarray, spec: ARIMASpec, n_cond: int):
        self.w = w
        self.spec = spec
        self.n_cond = n_cond
        self.n_eff = len(w) - n_cond
        self.scale = float(np.std(w)) or 1.0
        self.floor = 1e-12 * max(float(np.mean(np.square(w))), 1e-300)

    def unpack(self, x) -> Dict[str, np.ndarray]:
        spec = self.spec
        pos = 0
        mean = 0.0
        if spec.include_mean:
            mean = x[0] * self.scale
            pos = 1
        blocks = {}
        for name, size, sign in (("ar", spec.p, 1.0), ("ma", spec.q, -1.0), ("sar", spec.P, 1.0), ("sma", spec.Q, -1.0)):
            raw = np.asarray(x[pos : pos + size])
            # MA polynomials use the AR map on -theta so they stay invertible.
            blocks[name] = sign * pacf_to_coefs(np.tanh(raw))
            pos += size
        blocks["mean"] = mean
        return blocks

    def polynomials(self, blocks):
        m = self.spec.m
        ar = np.convolve(lag_polynomial(blocks["ar"], 1, -1.0), lag_polynomial(blocks["sar"], m, -1.0))
        ma = np.convolve(lag_polynomial(blocks["ma"], 1, 1.0), lag_polynomial(blocks["sma"], m, 1.0))
        return ar, ma

    def start(self) -> np.ndarray:
        x0 = np.zeros(self.spec.n_arma + int(self.spec.include_mean))
        if self.spec.include_mean:
            x0[0] = float(np.mean(self.w)) / self.scale
        return x0

    def bounds(self):
        out = [(None, None)] if self.spec.include_mean else []
        return out + [(-_PACF_BOUND, _PACF_BOUND)] * self.spec.n_arma

    def loglik(self, e: np.ndarray) -> float:
        sigma2 = max(float(np.dot(e, e)) / self.n_eff, self.floor)
        return -0.5 * self.n_eff * (math.log(2.0 * math.pi * sigma2) + 1.0)

    def objective(self, x) -> float:
        blocks = self.unpack(x)
        ar, ma = self.polynomials(blocks)
        e = css_residuals(self.w, blocks["mean"], ar, ma, self.n_cond)
        if not np.all(np.isfinite(e)):
            return PENALTY
        return -self.loglik(e)


def fit_arima(
    series,
    spec: ARIMASpec,
    transform: TransformSpec | None = None,
    config: EngineConfig | None = None,
    n_cond: int | None = None,
) -> FittedModel:
    """Fit one (p,d,q)(P,D,Q)[m] specification.

    `n_cond` fixes how many differenced observations the likelihood conditions
    on; searches pass a common value so every candidate's criteria share the
    same effective sample size.
    """
    config = config or EngineConfig()
    transform = transform or TransformSpec()
    data = as_series(series, period=spec.m)
    z = forward(data.values, transform)

    plan = DifferencePlan.from_orders(spec.d, spec.D, spec.m)
    if plan.total_lag >= len(z) - 1:
        raise InvalidOrder(f"{spec.name}: differencing leaves too few observations.")
    w = plan.apply(z)

    n_cond = spec.max_ar_lag if n_cond is None else max(int(n_cond), spec.max_ar_lag)
    k = spec.n_arma + int(spec.include_mean) + 1
    if len(w) - n_cond <= k:
        raise InvalidOrder(
            f"{spec.name}: {len(w) - n_cond} usable observations for {k} parameters."
        )

    problem = _ARIMAProblem(w, spec, n_cond)
    result = minimize_bounded(problem.objective, problem.start(), problem.bounds(), config, label=spec.name)

    blocks = problem.unpack(result.x)
    ar, ma = problem.polynomials(blocks)
    min_modulus = min(min_root_modulus(ar), min_root_modulus(ma))
    if min_modulus < 1.0 + config.root_tolerance:
        raise UnstableModel(
            f"{spec.name}: polynomial root modulus {min_modulus:.4f} is on or inside the unit circle.",
            min_root_modulus=min_modulus,
        )

    e = css_residuals(w, blocks["mean"], ar, ma, n_cond)
    loglik = problem.loglik(e)
    sigma2 = float(np.dot(e, e)) / problem.n_eff

    n = len(z)
    lead = n - len(w) + n_cond
    innovations = np.full(n, np.nan)
    innovations[lead:] = e
    fitted_z = z - innovations
    fitted = inverse(fitted_z, transform)

    coefficients: Dict[str, float] = {}
    for name in ("ar", "ma", "sar", "sma"):
        for i, value in enumerate(blocks[name], start=1):
            coefficients[f"{name}{i}"] = float(value)
    if spec.include_mean:
        coefficients[spec.constant_name] = float(blocks["mean"])

    e_full = np.zeros(len(w))
    e_full[n_cond:] = e
    logger.debug("%s fitted: loglik=%.3f sigma2=%.5g n_eff=%d", spec.name, loglik, sigma2, problem.n_eff)
    return FittedModel(
        spec=spec,
        coefficients=coefficients,
        loglik=loglik,
        sigma2=sigma2,
        criteria=criteria(loglik, k, problem.n_eff),
        n_obs=problem.n_eff,
        n_params=k,
        fitted=fitted,
        residuals=data.values - fitted,
        innovations=innovations,
        series=data,
        transform=transform,
        differencing=tuple(plan.spec),
        state={
            "w": w,
            "e": e_full,
            "ar": ar,
            "ma": ma,
            "mean": float(blocks["mean"]),
            "plan": plan,
            "n_cond": n_cond,
        },
        n_iter=int(result.nit),
        converged=bool(result.success),
    )


def arima_point_forecast(fitted: FittedModel, h: int) -> np.ndarray:
    """Project the ARMA recursion on the differenced scale, then integrate."""
    st = fitted.state
    ar, ma, mean = st["ar"], st["ma"], st["mean"]
    n_w = len(st["w"])
    wc = np.concatenate([st["w"] - mean, np.zeros(h)])
    e = np.concatenate([st["e"], np.zeros(h)])

    for t in range(n_w, n_w + h):
        value = 0.0
        for i in range(1, min(len(ar), t + 1)):
            value -= ar[i] * wc[t - i]
        for j in range(1, min(len(ma), t + 1)):
            value += ma[j] * e[t - j]
        wc[t] = value

    return st["plan"].integrate(wc[n_w:] + mean)


def psi_weights(fitted: FittedModel, h: int) -> np.ndarray:
    """psi_0..psi_{h-1} of the integrated model (differencing folded into the AR side)."""
    st = fitted.state
    ar_integrated = np.convolve(st["ar"], st["plan"].polynomial())
    return np.asarray(arma2ma(ar_integrated, st["ma"], lags=h))


def arima_forecast_variance(fitted: FittedModel, h: int) -> np.ndarray:
    """sigma^2 * cumulative sum of squared psi-weights."""
    return fitted.sigma2 * np.cumsum(np.square(psi_weights(fitted, h)))

