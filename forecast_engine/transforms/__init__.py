"""Reversible series transforms: Box-Cox family and differencing."""

from .boxcox import (
    TransformSpec,
    forward,
    inverse,
    inverse_derivative,
    bias_adjusted_inverse,
    estimate_lambda,
    resolve_transform,
    SUPPORTED_KINDS,
)
from .differencing import (
    difference,
    undifference,
    DifferencePlan,
    DifferenceStep,
    difference_orders,
)

__all__ = [
    "TransformSpec",
    "forward",
    "inverse",
    "inverse_derivative",
    "bias_adjusted_inverse",
    "estimate_lambda",
    "resolve_transform",
    "SUPPORTED_KINDS",
    "difference",
    "undifference",
    "DifferencePlan",
    "DifferenceStep",
    "difference_orders",
]
