"""Information criteria and deterministic candidate ranking."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence


@dataclass(frozen=True)
class InformationCriteria:
    aic: float
    aicc: float
    bic: float

    def get(self, name: str) -> float:
        return float(getattr(self, name))

    def to_dict(self) -> dict:
        return {"aic": self.aic, "aicc": self.aicc, "bic": self.bic}


def criteria(loglik: float, k: int, n: int) -> InformationCriteria:
    """AIC, AICc and BIC for a fit with k estimated parameters on n observations.

    k must already include the error variance. AICc is +inf when n - k - 1 <= 0,
    so such fits never win a ranking.
    """
    if not math.isfinite(loglik):
        return InformationCriteria(math.inf, math.inf, math.inf)
    aic = -2.0 * loglik + 2.0 * k
    denom = n - k - 1
    aicc = aic + 2.0 * k * (k + 1) / denom if denom > 0 else math.inf
    bic = aic + k * (math.log(n) - 2.0) if n > 0 else math.inf
    return InformationCriteria(aic=aic, aicc=aicc, bic=bic)


def _check_shared_differencing(candidates: Sequence) -> None:
    keys = {tuple(c.differencing) for c in candidates}
    if len(keys) > 1:
        raise ValueError(
            "Information criteria are not comparable across different differencing: "
            f"{sorted(keys)}"
        )


def rank_candidates(candidates: Iterable, criterion: str = "aicc") -> List:
    """Sort fitted candidates by criterion, then AIC, then fewest parameters.

    The sort is stable, so remaining ties keep enumeration order.
    """
    candidates = list(candidates)
    _check_shared_differencing(candidates)
    return sorted(
        candidates,
        key=lambda c: (c.criteria.get(criterion), c.criteria.aic, c.n_params),
    )


def select_best(candidates: Iterable, criterion: str = "aicc"):
    """Best candidate by `rank_candidates`, or None for an empty set."""
    ranked = rank_candidates(candidates, criterion=criterion)
    return ranked[0] if ranked else None


def is_improvement(candidate, incumbent, criterion: str = "aicc") -> bool:
    """Strict improvement test used by stepwise searches."""
    if incumbent is None:
        return True
    new = (candidate.criteria.get(criterion), candidate.criteria.aic, candidate.n_params)
    old = (incumbent.criteria.get(criterion), incumbent.criteria.aic, incumbent.n_params)
    return new < old
