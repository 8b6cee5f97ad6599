"""Variance-stabilizing transforms (Box-Cox family) and Guerrero lambda search."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.optimize import minimize_scalar

from forecast_engine.errors import InvalidTransform

logger = logging.getLogger(__name__)

SUPPORTED_KINDS = {"none", "sqrt", "cube-root", "log", "inverse", "box-cox"}

# Kinds that need strictly positive data.
POSITIVE_KINDS = {"sqrt", "log", "box-cox"}

LAMBDA_BOUNDS = (-1.0, 2.0)


@dataclass(frozen=True)
class TransformSpec:
    """Variance transform; `lam` is only used by the box-cox kind."""

    kind: str = "none"
    lam: float | None = None

    def __post_init__(self):
        if self.kind not in SUPPORTED_KINDS:
            raise InvalidTransform(
                f"Unknown transform kind: {self.kind}. Supported: {sorted(SUPPORTED_KINDS)}"
            )
        if self.kind == "box-cox" and self.lam is None:
            raise InvalidTransform("box-cox transform requires a lambda; use estimate_lambda().")

    @property
    def is_identity(self) -> bool:
        return self.kind == "none"

    @property
    def power(self) -> float:
        """Equivalent Box-Cox power, used for bias adjustment."""
        return {
            "none": 1.0,
            "sqrt": 0.5,
            "cube-root": 1.0 / 3.0,
            "log": 0.0,
            "inverse": -1.0,
        }.get(self.kind, self.lam)

    def label(self) -> str:
        if self.kind == "box-cox":
            return f"box-cox({self.lam:.4f})"
        return self.kind


def _require_domain(y: np.ndarray, spec: TransformSpec):
    if spec.kind in POSITIVE_KINDS and np.any(y <= 0):
        raise InvalidTransform(f"{spec.label()} transform requires strictly positive data.")
    if spec.kind == "inverse" and np.any(y == 0):
        raise InvalidTransform("inverse transform is undefined at zero.")


def forward(y, spec: TransformSpec) -> np.ndarray:
    """Apply the variance transform."""
    y = np.asarray(y, dtype=float)
    _require_domain(y, spec)

    if spec.kind == "none":
        return y.copy()
    if spec.kind == "sqrt":
        return np.sqrt(y)
    if spec.kind == "cube-root":
        return np.cbrt(y)
    if spec.kind == "log":
        return np.log(y)
    if spec.kind == "inverse":
        return 1.0 / y

    lam = spec.lam
    if lam == 0:
        return np.log(y)
    return (np.power(y, lam) - 1.0) / lam


def inverse(z, spec: TransformSpec) -> np.ndarray:
    """Undo the variance transform.

    Box-Cox arguments that fall outside the image of the forward map (for
    example a lower interval bound below -1/lambda) are clamped to zero
    before the fractional power is taken.
    """
    z = np.asarray(z, dtype=float)

    if spec.kind == "none":
        return z.copy()
    if spec.kind == "sqrt":
        return np.square(np.clip(z, 0.0, None))
    if spec.kind == "cube-root":
        return np.power(z, 3)
    if spec.kind == "log":
        return np.exp(z)
    if spec.kind == "inverse":
        with np.errstate(divide="ignore"):
            return 1.0 / z

    lam = spec.lam
    if lam == 0:
        return np.exp(z)
    base = np.clip(lam * z + 1.0, 0.0, None)
    with np.errstate(divide="ignore"):
        return np.power(base, 1.0 / lam)


def inverse_derivative(z, spec: TransformSpec) -> np.ndarray:
    """d inverse(z) / dz, used for delta-method standard errors."""
    z = np.asarray(z, dtype=float)
    if spec.kind == "none":
        return np.ones_like(z)
    if spec.kind == "sqrt":
        return 2.0 * np.clip(z, 0.0, None)
    if spec.kind == "cube-root":
        return 3.0 * np.square(z)
    if spec.kind == "log":
        return np.exp(z)
    if spec.kind == "inverse":
        return -1.0 / np.square(z)

    lam = spec.lam
    if lam == 0:
        return np.exp(z)
    base = np.clip(lam * z + 1.0, 0.0, None)
    with np.errstate(divide="ignore"):
        return np.power(base, 1.0 / lam - 1.0)


def bias_adjusted_inverse(z, variance, spec: TransformSpec) -> np.ndarray:
    """Back-transform to the mean rather than the median of the forecast distribution."""
    z = np.asarray(z, dtype=float)
    variance = np.asarray(variance, dtype=float)
    point = inverse(z, spec)
    if spec.is_identity:
        return point
    if spec.kind == "sqrt":
        return point + variance
    if spec.kind == "cube-root":
        return point + 3.0 * z * variance
    if spec.kind == "inverse":
        return point * (1.0 + variance / np.square(z))

    lam = spec.power
    denom = 2.0 * np.square(lam * z + 1.0)
    with np.errstate(divide="ignore", invalid="ignore"):
        adj = 1.0 + variance * (1.0 - lam) / denom
    return point * np.where(np.isfinite(adj), adj, 1.0)


def _guerrero_cv(lam: float, y: np.ndarray, period: int) -> float:
    n_groups = len(y) // period
    offset = len(y) - n_groups * period
    blocks = y[offset:].reshape(n_groups, period)
    means = blocks.mean(axis=1)
    sds = blocks.std(axis=1, ddof=1)
    ratio = sds / np.power(means, 1.0 - lam)
    mean_ratio = np.mean(ratio)
    if mean_ratio == 0:
        return 0.0
    return float(np.std(ratio, ddof=1) / mean_ratio)


def estimate_lambda(y, period: int = 1, bounds=LAMBDA_BOUNDS) -> float:
    """Guerrero (1993) lambda: minimise the coefficient of variation of
    sub-series standard deviations scaled by their means.

    Sub-series are consecutive blocks of one seasonal period (two observations
    when the series is non-seasonal); the search is a bounded Brent/golden
    section minimisation over the closed interval `bounds`.
    """
    y = np.asarray(y, dtype=float)
    if np.any(y <= 0):
        raise InvalidTransform("Lambda estimation requires strictly positive data.")

    block = max(int(period), 2)
    if len(y) < 2 * block:
        raise InvalidTransform(
            f"Need at least {2 * block} observations to estimate lambda; got {len(y)}."
        )

    result = minimize_scalar(
        _guerrero_cv,
        bounds=bounds,
        args=(y, block),
        method="bounded",
        options={"xatol": 1e-6},
    )
    lam = float(result.x)
    logger.debug("Guerrero lambda estimate %.4f (objective %.5f)", lam, result.fun)
    return lam


def resolve_transform(y, kind: str = "none", lam: float | None = None, period: int = 1) -> TransformSpec:
    """Build a TransformSpec, estimating lambda once when box-cox is requested without one."""
    if kind == "box-cox" and lam is None:
        lam = estimate_lambda(y, period=period)
    spec = TransformSpec(kind=kind, lam=lam)
    _require_domain(np.asarray(y, dtype=float), spec)
    return spec
