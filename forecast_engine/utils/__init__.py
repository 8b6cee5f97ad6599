"""Shared utilities."""

from .series import SeriesData, as_series
from .run_manifest import write_run_manifest, hash_config

__all__ = ["SeriesData", "as_series", "write_run_manifest", "hash_config"]
