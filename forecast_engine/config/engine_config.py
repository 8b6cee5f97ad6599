"""Explicit engine configuration record passed into every engine call."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Tuple


SUPPORTED_CRITERIA = {"aicc", "aic", "bic"}

# Hard caps on differencing; configurable caps may not exceed these.
MAX_REGULAR_DIFFERENCES = 2
MAX_SEASONAL_DIFFERENCES = 2


@dataclass(frozen=True)
class EngineConfig:
    """Search caps, significance levels and optimizer budgets."""

    # Stationarity / residual diagnostics
    kpss_alpha: float = 0.05
    ljung_box_alpha: float = 0.05
    seasonal_strength_threshold: float = 0.64

    # Differencing caps
    max_d: int = 2
    max_D: int = 1

    # ARIMA order search
    max_p: int = 5
    max_q: int = 5
    max_P: int = 2
    max_Q: int = 2
    max_order: int = 5
    stepwise: bool = True
    max_stepwise_iter: int = 94
    criterion: str = "aicc"
    root_tolerance: float = 0.01

    # Optimizer budget
    max_iter: int = 500
    tolerance: float = 1e-8
    fit_timeout: float | None = None
    n_jobs: int = 1

    # ETS parameter space
    alpha_bounds: Tuple[float, float] = (1e-4, 0.9999)
    beta_bounds: Tuple[float, float] = (1e-4, 0.9999)
    gamma_bounds: Tuple[float, float] = (1e-4, 0.9999)
    phi_bounds: Tuple[float, float] = (0.8, 0.998)

    # Forecasting
    levels: Tuple[float, ...] = (80.0,)
    n_simulations: int = 5000
    random_seed: int = 42
    bias_adjust: bool = False

    def __post_init__(self):
        if self.criterion not in SUPPORTED_CRITERIA:
            raise ValueError(
                f"Unknown criterion: {self.criterion}. Supported: {sorted(SUPPORTED_CRITERIA)}"
            )
        if not 0 <= self.max_d <= MAX_REGULAR_DIFFERENCES:
            raise ValueError(f"max_d must be in [0, {MAX_REGULAR_DIFFERENCES}]")
        if not 0 <= self.max_D <= MAX_SEASONAL_DIFFERENCES:
            raise ValueError(f"max_D must be in [0, {MAX_SEASONAL_DIFFERENCES}]")
        for name in ("max_p", "max_q", "max_P", "max_Q", "max_order"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.max_iter < 1:
            raise ValueError("max_iter must be >= 1")
        if self.n_jobs < 1:
            raise ValueError("n_jobs must be >= 1")
        if self.fit_timeout is not None and self.fit_timeout <= 0:
            raise ValueError("fit_timeout must be positive when set")
        for level in self.levels:
            if not 0 < level < 100:
                raise ValueError(f"Prediction levels must be in (0, 100); got {level}")
        for name in ("alpha_bounds", "beta_bounds", "gamma_bounds", "phi_bounds"):
            lo, hi = getattr(self, name)
            if not 0 <= lo < hi <= 1:
                raise ValueError(f"{name} must satisfy 0 <= lower < upper <= 1")

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {unknown}")
        kwargs = dict(payload)
        for name in ("alpha_bounds", "beta_bounds", "gamma_bounds", "phi_bounds", "levels"):
            if name in kwargs:
                kwargs[name] = tuple(float(v) for v in kwargs[name])
        return cls(**kwargs)


def load_config(path: str | Path) -> EngineConfig:
    """Load an EngineConfig from a JSON file of overrides."""
    with open(path) as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        raise ValueError(f"Configuration file must hold a JSON object: {path}")
    return EngineConfig.from_dict(payload)
