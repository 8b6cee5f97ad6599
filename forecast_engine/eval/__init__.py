"""Model selection utilities."""

from .information_criteria import (
    InformationCriteria,
    criteria,
    rank_candidates,
    select_best,
    is_improvement,
)

__all__ = [
    "InformationCriteria",
    "criteria",
    "rank_candidates",
    "select_best",
    "is_improvement",
]
