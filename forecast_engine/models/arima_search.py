"""ARIMA order search: stepwise neighbourhood search with an exhaustive grid fallback.

Differencing orders are decided once up front (seasonal strength for D, KPSS
for d) and held fixed while p, q, P, Q and the constant are searched, so all
candidates share the same differenced series.

The stepwise search (Hyndman & Khandakar, 2008) only visits neighbours of the
incumbent and stops at a local optimum, so it can miss the global optimum of
the order space. The grid search fits every admissible order within the caps.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List

import numpy as np

from forecast_engine.config import EngineConfig
from forecast_engine.diagnostics.stationarity import ndiffs, nsdiffs
from forecast_engine.errors import InvalidOrder, NoViableModel
from forecast_engine.eval.information_criteria import is_improvement, rank_candidates
from forecast_engine.models.arima import fit_arima
from forecast_engine.models.results import FittedModel
from forecast_engine.models.specs import ARIMASpec
from forecast_engine.transforms.boxcox import TransformSpec, forward
from forecast_engine.transforms.differencing import DifferencePlan
from forecast_engine.utils.parallel import CandidateOutcome, evaluate_candidates
from forecast_engine.utils.series import SeriesData, as_series

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderCaps:
    """Effective order caps after shrinking to the available sample."""

    max_p: int
    max_q: int
    max_P: int
    max_Q: int
    max_order: int

    def admits(self, spec: ARIMASpec) -> bool:
        return (
            spec.p <= self.max_p
            and spec.q <= self.max_q
            and spec.P <= self.max_P
            and spec.Q <= self.max_Q
            and spec.n_arma <= self.max_order
        )


@dataclass
class ARIMASearchResult:
    best: FittedModel
    d: int
    D: int
    mode: str
    outcomes: List[CandidateOutcome] = field(default_factory=list)

    @property
    def n_attempted(self) -> int:
        return len(self.outcomes)

    @property
    def n_failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    def candidates_table(self) -> List[dict]:
        rows = []
        for outcome in self.outcomes:
            row = {"model": outcome.spec.name, "status": "ok" if outcome.ok else type(outcome.error).__name__}
            if outcome.ok:
                row.update(outcome.fitted.criteria.to_dict())
            rows.append(row)
        return rows


def choose_differencing(z: np.ndarray, period: int, config: EngineConfig) -> tuple:
    """(d, D): seasonal differences first, then regular differences on the result."""
    D = nsdiffs(z, period, config) if period > 1 else 0
    x = DifferencePlan.from_orders(0, D, period).apply(z) if D else z
    d = ndiffs(x, config)
    return d, D


def _order_caps(n_w: int, period: int, config: EngineConfig) -> OrderCaps:
    seasonal_room = n_w // (3 * period) if period > 1 else 0
    return OrderCaps(
        max_p=min(config.max_p, n_w // 3),
        max_q=min(config.max_q, n_w // 3),
        max_P=min(config.max_P, seasonal_room),
        max_Q=min(config.max_Q, seasonal_room),
        max_order=config.max_order,
    )


# Effective observations that must remain after the shared conditioning window.
_MIN_EFFECTIVE_OBS = 3


def _fit_conditioning(caps: OrderCaps, n_w: int, period: int) -> OrderCaps:
    """Shrink the AR caps until the shared conditioning window leaves enough data.

    Every candidate conditions on max_p + max_P * m observations so their
    criteria share one effective sample size; candidates with more parameters
    than that sample supports fail individually and are dropped.
    """
    max_p, max_P = caps.max_p, caps.max_P
    while n_w - (max_p + max_P * period) < _MIN_EFFECTIVE_OBS and (max_p or max_P):
        if max_P:
            max_P -= 1
        else:
            max_p -= 1
    if (max_p, max_P) != (caps.max_p, caps.max_P):
        logger.debug("AR caps shrunk to p<=%d, P<=%d for %d differenced observations", max_p, max_P, n_w)
    return replace(caps, max_p=max_p, max_P=max_P)


class _CandidateCache:
    """Fits each spec at most once across the stepwise and grid phases."""

    def __init__(self, data: SeriesData, transform: TransformSpec, config: EngineConfig, n_cond: int):
        self.data = data
        self.transform = transform
        self.config = config
        self.n_cond = n_cond
        self.outcomes: Dict[ARIMASpec, CandidateOutcome] = {}

    def _fit(self, spec: ARIMASpec) -> FittedModel:
        return fit_arima(self.data, spec, transform=self.transform, config=self.config, n_cond=self.n_cond)

    def evaluate(self, specs) -> List[CandidateOutcome]:
        pending = [s for s in dict.fromkeys(specs) if s not in self.outcomes]
        for outcome in evaluate_candidates(self._fit, pending, n_jobs=self.config.n_jobs):
            outcome.position = len(self.outcomes)
            self.outcomes[outcome.spec] = outcome
        return [self.outcomes[s] for s in dict.fromkeys(specs)]

    def successes(self) -> List[FittedModel]:
        ordered = sorted(self.outcomes.values(), key=lambda o: o.position)
        return [o.fitted for o in ordered if o.ok]


def _make_spec(p, q, P, Q, d, D, m, constant) -> ARIMASpec:
    return ARIMASpec(p=p, d=d, q=q, P=P, D=D, Q=Q, m=m, include_mean=constant)


def _seed_specs(d: int, D: int, m: int, caps: OrderCaps, allow_constant: bool) -> List[ARIMASpec]:
    seasonal = m > 1
    seeds = [(2, 2, 1, 1), (0, 0, 0, 0), (1, 0, 1, 0), (0, 1, 0, 1)]
    out = []
    for p, q, P, Q in seeds:
        if not seasonal:
            P = Q = 0
        p, q = min(p, caps.max_p), min(q, caps.max_q)
        P, Q = min(P, caps.max_P), min(Q, caps.max_Q)
        spec = _make_spec(p, q, P, Q, d, D, m, allow_constant)
        if caps.admits(spec):
            out.append(spec)
    if allow_constant:
        out.append(_make_spec(0, 0, 0, 0, d, D, m, False))
    return list(dict.fromkeys(out))


def _neighbours(spec: ARIMASpec, caps: OrderCaps, allow_constant: bool) -> List[ARIMASpec]:
    moves = []
    for delta in (-1, 1):
        moves.append({"p": spec.p + delta})
        moves.append({"q": spec.q + delta})
        moves.append({"p": spec.p + delta, "q": spec.q + delta})
        if spec.m > 1:
            moves.append({"P": spec.P + delta})
            moves.append({"Q": spec.Q + delta})
            moves.append({"P": spec.P + delta, "Q": spec.Q + delta})
    if allow_constant:
        moves.append({"include_mean": not spec.include_mean})

    out = []
    for change in moves:
        if any(isinstance(v, int) and not isinstance(v, bool) and v < 0 for v in change.values()):
            continue
        candidate = spec.replace(**change)
        if caps.admits(candidate):
            out.append(candidate)
    return out


def _stepwise(cache: _CandidateCache, d, D, m, caps, allow_constant, config) -> FittedModel | None:
    seeds = cache.evaluate(_seed_specs(d, D, m, caps, allow_constant))
    fits = [o.fitted for o in seeds if o.ok]
    if not fits:
        return None
    best = rank_candidates(fits, criterion=config.criterion)[0]

    for step in range(config.max_stepwise_iter):
        outcomes = cache.evaluate(_neighbours(best.spec, caps, allow_constant))
        fits = [o.fitted for o in outcomes if o.ok]
        if not fits:
            break
        challenger = rank_candidates(fits, criterion=config.criterion)[0]
        if not is_improvement(challenger, best, criterion=config.criterion):
            logger.debug("Stepwise search reached a local optimum after %d steps", step)
            break
        best = challenger
    else:
        logger.info("Stepwise search stopped at the %d-step cap", config.max_stepwise_iter)
    return best


def _grid_specs(d, D, m, caps: OrderCaps, allow_constant: bool) -> List[ARIMASpec]:
    constants = (True, False) if allow_constant else (False,)
    ranges = (
        range(caps.max_p + 1),
        range(caps.max_q + 1),
        range(caps.max_P + 1 if m > 1 else 1),
        range(caps.max_Q + 1 if m > 1 else 1),
    )
    specs = []
    for p, q, P, Q in itertools.product(*ranges):
        if p + q + P + Q > caps.max_order:
            continue
        for constant in constants:
            specs.append(_make_spec(p, q, P, Q, d, D, m, constant))
    return specs


def search_arima(
    series,
    period: int | None = None,
    transform: TransformSpec | None = None,
    config: EngineConfig | None = None,
    d: int | None = None,
    D: int | None = None,
    stepwise: bool | None = None,
) -> ARIMASearchResult:
    """Select d and D by diagnostics, then search p, q, P, Q and the constant."""
    config = config or EngineConfig()
    transform = transform or TransformSpec()
    stepwise = config.stepwise if stepwise is None else stepwise
    data = as_series(series, period=period)
    m = data.period
    z = forward(data.values, transform)

    if d is None or D is None:
        auto_d, auto_D = choose_differencing(z, m, config)
        d = auto_d if d is None else d
        D = auto_D if D is None else D
    if d > config.max_d or D > config.max_D:
        raise InvalidOrder(f"Differencing d={d}, D={D} exceeds caps d<={config.max_d}, D<={config.max_D}.")
    if D and m < 2:
        raise InvalidOrder("Seasonal differencing requires a seasonal period > 1.")

    n_w = len(z) - d - D * m
    if n_w < 3:
        raise InvalidOrder(f"Only {n_w} observations remain after differencing.")
    caps = _fit_conditioning(_order_caps(n_w, m, config), n_w, m)
    n_cond = caps.max_p + caps.max_P * m
    allow_constant = d + D <= 1

    cache = _CandidateCache(data, transform, config, n_cond)
    mode = "stepwise" if stepwise else "grid"
    best = None
    if stepwise:
        best = _stepwise(cache, d, D, m, caps, allow_constant, config)
        if best is None:
            logger.info("Stepwise search found no viable seed; falling back to grid search")
            mode = "grid"
    if best is None:
        cache.evaluate(_grid_specs(d, D, m, caps, allow_constant))
        fits = cache.successes()
        if fits:
            best = rank_candidates(fits, criterion=config.criterion)[0]

    outcomes = sorted(cache.outcomes.values(), key=lambda o: o.position)
    failed = sum(1 for o in outcomes if not o.ok)
    if best is None:
        raise NoViableModel(attempted=len(outcomes), failed=failed)

    logger.info(
        "ARIMA %s search (d=%d, D=%d): %d candidates, %d failed, best %s (%s=%.3f)",
        mode, d, D, len(outcomes), failed, best.name, config.criterion, best.criteria.get(config.criterion),
    )
    return ARIMASearchResult(best=best, d=d, D=D, mode=mode, outcomes=outcomes)


def auto_arima(
    series,
    period: int | None = None,
    transform: TransformSpec | None = None,
    config: EngineConfig | None = None,
    d: int | None = None,
    D: int | None = None,
    stepwise: bool | None = None,
) -> FittedModel:
    """Best ARIMA model for the series; see `search_arima`."""
    return search_arima(
        series, period=period, transform=transform, config=config, d=d, D=D, stepwise=stepwise
    ).best
