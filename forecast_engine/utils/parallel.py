"""Independent candidate evaluation, serial or on a worker-thread pool."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence

from forecast_engine.errors import CANDIDATE_ERRORS

logger = logging.getLogger(__name__)


@dataclass
class CandidateOutcome:
    """Fit outcome of one enumerated candidate spec."""

    position: int
    spec: Any
    fitted: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.fitted is not None


def _run_single(fit_fn: Callable, position: int, spec) -> CandidateOutcome:
    try:
        return CandidateOutcome(position=position, spec=spec, fitted=fit_fn(spec))
    except CANDIDATE_ERRORS as exc:
        logger.debug("Candidate %s failed: %s: %s", spec.name, type(exc).__name__, exc)
        return CandidateOutcome(position=position, spec=spec, error=exc)


def evaluate_candidates(fit_fn: Callable, specs: Sequence, n_jobs: int = 1) -> List[CandidateOutcome]:
    """Fit every spec; outcomes come back in enumeration order regardless of completion order."""
    specs = list(specs)
    if n_jobs <= 1 or len(specs) <= 1:
        return [_run_single(fit_fn, i, spec) for i, spec in enumerate(specs)]

    results = []
    with concurrent.futures.ThreadPoolExecutor(max_workers=n_jobs) as executor:
        futures = {executor.submit(_run_single, fit_fn, i, spec): i for i, spec in enumerate(specs)}
        for future in concurrent.futures.as_completed(futures):
            results.append(future.result())
    results.sort(key=lambda outcome: outcome.position)
    return results
