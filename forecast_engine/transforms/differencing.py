"""Seasonal and non-seasonal differencing with retained boundary values."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from forecast_engine.config import MAX_REGULAR_DIFFERENCES, MAX_SEASONAL_DIFFERENCES
from forecast_engine.errors import InvalidTransform


def difference(y, lag: int = 1) -> np.ndarray:
    """Return y[t] - y[t - lag] for t >= lag."""
    y = np.asarray(y, dtype=float)
    if lag < 1:
        raise InvalidTransform(f"Differencing lag must be >= 1; got {lag}")
    if lag >= len(y):
        raise InvalidTransform(f"Differencing lag {lag} exceeds series length {len(y)}.")
    return y[lag:] - y[:-lag]


def undifference(diffed, initial) -> np.ndarray:
    """Inverse of `difference`: rebuild the series from its first `lag` values.

    `initial` holds the `lag` values that precede `diffed`; the output has
    length len(initial) + len(diffed). Passing the last `lag` observed values
    integrates a block of future differences.
    """
    diffed = np.asarray(diffed, dtype=float)
    initial = np.asarray(initial, dtype=float)
    lag = len(initial)
    if lag < 1:
        raise InvalidTransform("undifference needs at least one boundary value.")

    out = np.empty(lag + len(diffed))
    out[:lag] = initial
    for j in range(lag):
        out[lag + j :: lag] = initial[j] + np.cumsum(diffed[j::lag])
    return out


@dataclass(frozen=True)
class DifferenceStep:
    """One application of the lag-`lag` difference, with its boundary values."""

    lag: int
    head: np.ndarray
    tail: np.ndarray


@dataclass
class DifferencePlan:
    """Ordered (lag, order) differencing, e.g. [(m, D), (1, d)].

    `apply` records the boundary values of every step so that `invert`
    (in-sample reconstruction) and `integrate` (forecast integration) can undo
    the differences in reverse order.
    """

    spec: List[Tuple[int, int]] = field(default_factory=list)
    steps: List[DifferenceStep] = field(default_factory=list)

    def __post_init__(self):
        seasonal = sum(order for lag, order in self.spec if lag > 1)
        regular = sum(order for lag, order in self.spec if lag == 1)
        if any(lag < 1 or order < 0 for lag, order in self.spec):
            raise InvalidTransform(f"Invalid differencing spec: {self.spec}")
        if seasonal > MAX_SEASONAL_DIFFERENCES or regular > MAX_REGULAR_DIFFERENCES:
            raise InvalidTransform(
                f"Differencing spec {self.spec} exceeds the caps of "
                f"{MAX_SEASONAL_DIFFERENCES} seasonal and {MAX_REGULAR_DIFFERENCES} regular differences."
            )

    @classmethod
    def from_orders(cls, d: int = 0, D: int = 0, period: int = 1) -> "DifferencePlan":
        spec = []
        if D:
            if period < 2:
                raise InvalidTransform("Seasonal differencing requires period > 1.")
            spec.append((period, D))
        if d:
            spec.append((1, d))
        return cls(spec=spec)

    @property
    def lags(self) -> List[int]:
        out = []
        for lag, order in self.spec:
            out.extend([lag] * order)
        return out

    @property
    def total_lag(self) -> int:
        return int(sum(self.lags))

    def apply(self, y) -> np.ndarray:
        """Difference y and remember the boundary values of each step."""
        x = np.asarray(y, dtype=float)
        steps = []
        for lag in self.lags:
            if lag >= len(x):
                raise InvalidTransform(
                    f"Differencing lag {lag} exceeds remaining series length {len(x)}."
                )
            steps.append(DifferenceStep(lag=lag, head=x[:lag].copy(), tail=x[-lag:].copy()))
            x = difference(x, lag)
        self.steps = steps
        return x

    def _require_applied(self):
        if len(self.steps) != len(self.lags):
            raise RuntimeError("DifferencePlan has no boundary values; run apply() first.")

    def invert(self, diffed) -> np.ndarray:
        """Reconstruct the original series from the fully differenced one."""
        self._require_applied()
        x = np.asarray(diffed, dtype=float)
        for step in reversed(self.steps):
            x = undifference(x, step.head)
        return x

    def integrate(self, future_diffs) -> np.ndarray:
        """Turn forecasts of the differenced series into forecasts of the original."""
        self._require_applied()
        x = np.asarray(future_diffs, dtype=float)
        for step in reversed(self.steps):
            x = undifference(x, step.tail)[step.lag :]
        return x

    def polynomial(self) -> np.ndarray:
        """Coefficients (by lag) of the differencing operator prod (1 - B^lag)."""
        poly = np.array([1.0])
        for lag in self.lags:
            factor = np.zeros(lag + 1)
            factor[0] = 1.0
            factor[lag] = -1.0
            poly = np.convolve(poly, factor)
        return poly


def difference_orders(spec: Sequence[Tuple[int, int]]) -> Tuple[int, int]:
    """(regular, seasonal) differencing orders of a spec."""
    regular = sum(order for lag, order in spec if lag == 1)
    seasonal = sum(order for lag, order in spec if lag > 1)
    return int(regular), int(seasonal)
