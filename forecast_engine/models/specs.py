"""Tagged model specifications for the ETS and ARIMA families."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import List, Tuple

from forecast_engine.config import MAX_REGULAR_DIFFERENCES, MAX_SEASONAL_DIFFERENCES
from forecast_engine.errors import InvalidOrder, InvalidSpec

ERROR_TYPES = ("A", "M")
TREND_TYPES = ("N", "A", "Ad")
SEASON_TYPES = ("N", "A", "M")


@dataclass(frozen=True)
class ETSSpec:
    """ETS(error, trend, season); multiplicative trend is not supported."""

    error: str = "A"
    trend: str = "N"
    season: str = "N"

    def __post_init__(self):
        if self.error not in ERROR_TYPES:
            raise InvalidSpec(f"Unknown ETS error type: {self.error}")
        if self.trend not in TREND_TYPES:
            raise InvalidSpec(f"Unknown ETS trend type: {self.trend}")
        if self.season not in SEASON_TYPES:
            raise InvalidSpec(f"Unknown ETS season type: {self.season}")
        if self.error == "A" and self.season == "M":
            raise InvalidSpec(f"{self.name} is numerically unstable and excluded.")

    @property
    def name(self) -> str:
        return f"ETS({self.error},{self.trend},{self.season})"

    @property
    def has_trend(self) -> bool:
        return self.trend != "N"

    @property
    def damped(self) -> bool:
        return self.trend == "Ad"

    @property
    def seasonal(self) -> bool:
        return self.season != "N"

    @property
    def additive_only(self) -> bool:
        return self.error == "A" and self.season != "M"

    @property
    def needs_positive(self) -> bool:
        return self.error == "M" or self.season == "M"

    def validate_for(self, period: int, positive: bool, n_obs: int | None = None) -> None:
        """Raise InvalidSpec when this spec cannot be fitted to the given data."""
        if self.seasonal and period < 2:
            raise InvalidSpec(f"{self.name} needs a seasonal period > 1; got {period}.")
        if self.needs_positive and not positive:
            raise InvalidSpec(f"{self.name} requires strictly positive data.")
        if n_obs is not None and self.seasonal and n_obs < 2 * period:
            raise InvalidSpec(
                f"{self.name} needs at least two seasonal cycles ({2 * period} obs); got {n_obs}."
            )


def ets_candidates(period: int = 1, positive: bool = True, additive_only: bool = False) -> List[ETSSpec]:
    """All admissible ETS specs for the data, in a fixed enumeration order."""
    specs = []
    for error, trend, season in itertools.product(ERROR_TYPES, TREND_TYPES, SEASON_TYPES):
        if error == "A" and season == "M":
            continue
        spec = ETSSpec(error, trend, season)
        if additive_only and not spec.additive_only:
            continue
        try:
            spec.validate_for(period, positive)
        except InvalidSpec:
            continue
        specs.append(spec)
    return specs


@dataclass(frozen=True)
class ARIMASpec:
    """Seasonal ARIMA (p,d,q)(P,D,Q)[m] with an optional constant."""

    p: int = 0
    d: int = 0
    q: int = 0
    P: int = 0
    D: int = 0
    Q: int = 0
    m: int = 1
    include_mean: bool = False

    def __post_init__(self):
        orders = (self.p, self.d, self.q, self.P, self.D, self.Q)
        if any(int(v) != v or v < 0 for v in orders):
            raise InvalidOrder(f"ARIMA orders must be non-negative integers: {orders}")
        if self.m < 1:
            raise InvalidOrder(f"Seasonal period must be >= 1; got {self.m}")
        if self.d > MAX_REGULAR_DIFFERENCES or self.D > MAX_SEASONAL_DIFFERENCES:
            raise InvalidOrder(
                f"Differencing (d={self.d}, D={self.D}) exceeds the caps "
                f"d <= {MAX_REGULAR_DIFFERENCES}, D <= {MAX_SEASONAL_DIFFERENCES}."
            )
        if self.m == 1 and (self.P or self.D or self.Q):
            raise InvalidOrder("Seasonal orders require a seasonal period > 1.")
        if self.include_mean and self.d + self.D > 1:
            raise InvalidOrder("A constant is only allowed when d + D <= 1.")

    @property
    def order(self) -> Tuple[int, int, int]:
        return (self.p, self.d, self.q)

    @property
    def seasonal_order(self) -> Tuple[int, int, int, int]:
        return (self.P, self.D, self.Q, self.m)

    @property
    def n_arma(self) -> int:
        return self.p + self.q + self.P + self.Q

    @property
    def max_ar_lag(self) -> int:
        return self.p + self.P * self.m

    @property
    def constant_name(self) -> str:
        return "drift" if self.d + self.D == 1 else "mean"

    @property
    def is_white_noise(self) -> bool:
        return self.n_arma == 0 and self.d == 0 and self.D == 0 and not self.include_mean

    @property
    def name(self) -> str:
        label = f"ARIMA({self.p},{self.d},{self.q})"
        if self.P or self.D or self.Q:
            label += f"({self.P},{self.D},{self.Q})[{self.m}]"
        if self.include_mean:
            label += f" with {'drift' if self.d + self.D == 1 else 'non-zero mean'}"
        return label

    def replace(self, **changes) -> "ARIMASpec":
        values = {
            "p": self.p, "d": self.d, "q": self.q,
            "P": self.P, "D": self.D, "Q": self.Q,
            "m": self.m, "include_mean": self.include_mean,
        }
        values.update(changes)
        return ARIMASpec(**values)
