"""Bounded quasi-Newton minimisation with iteration and wall-clock budgets."""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence, Tuple

import numpy as np
from scipy.optimize import OptimizeResult, minimize

from forecast_engine.config import EngineConfig
from forecast_engine.errors import NonConvergence

logger = logging.getLogger(__name__)

# Objective value for infeasible parameter vectors.
PENALTY = 1e10


class _BudgetExceeded(Exception):
    pass


def minimize_bounded(
    objective: Callable[[np.ndarray], float],
    x0: Sequence[float],
    bounds: Sequence[Tuple[float | None, float | None]],
    config: EngineConfig,
    label: str = "model",
) -> OptimizeResult:
    """Minimise `objective` with L-BFGS-B inside `bounds`.

    Raises NonConvergence when the start point is infeasible, the wall-clock
    budget (`config.fit_timeout`) runs out, or the iteration budget is exhausted
    without improving the objective by more than `config.tolerance`.
    """
    x0 = np.asarray(x0, dtype=float)
    deadline = None
    if config.fit_timeout is not None:
        deadline = time.monotonic() + config.fit_timeout

    def _guarded(x):
        if deadline is not None and time.monotonic() > deadline:
            raise _BudgetExceeded()
        value = objective(x)
        return value if np.isfinite(value) else PENALTY

    try:
        f0 = _guarded(x0)
        if f0 >= PENALTY:
            raise NonConvergence(f"{label}: objective is not finite at the starting values.", reason="non-finite")
        if len(x0) == 0:
            return OptimizeResult(x=x0, fun=f0, success=True, nit=0, message="no free parameters")
        result = minimize(
            _guarded,
            x0,
            method="L-BFGS-B",
            bounds=list(bounds),
            options={"maxiter": config.max_iter},
        )
    except _BudgetExceeded:
        logger.warning("%s: discarded after exceeding %.1fs fit budget", label, config.fit_timeout)
        raise NonConvergence(f"{label}: fit exceeded {config.fit_timeout}s budget.", reason="timeout")

    if not np.isfinite(result.fun) or result.fun >= PENALTY:
        raise NonConvergence(f"{label}: optimizer ended in an infeasible region.", n_iter=int(result.nit), reason="non-finite")

    if not result.success:
        improvement = f0 - result.fun
        if improvement <= config.tolerance * max(1.0, abs(f0)):
            raise NonConvergence(
                f"{label}: {result.message} after {result.nit} iterations without improvement.",
                n_iter=int(result.nit),
            )
        logger.debug("%s: accepting improved estimate despite '%s'", label, result.message)

    return result
