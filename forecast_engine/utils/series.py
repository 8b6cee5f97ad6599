"""Validation of the time-indexed series handed to the engine."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class SeriesData:
    """Immutable, gap-free univariate series with its seasonal period."""

    values: np.ndarray
    index: pd.Index
    period: int = 1
    freq: str | None = None
    name: str | None = None

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_positive(self) -> bool:
        return bool(np.all(self.values > 0))

    def to_series(self) -> pd.Series:
        return pd.Series(self.values.copy(), index=self.index, name=self.name)

    def future_index(self, steps: int) -> pd.Index:
        """Index labels for the `steps` periods following the last observation."""
        if steps < 1:
            raise ValueError("steps must be >= 1")
        if isinstance(self.index, pd.DatetimeIndex) and self.freq is not None:
            return pd.date_range(self.index[-1], periods=steps + 1, freq=self.freq)[1:]
        if pd.api.types.is_integer_dtype(self.index):
            step = int(self.index[1] - self.index[0]) if len(self.index) > 1 else 1
            start = int(self.index[-1]) + step
            return pd.RangeIndex(start, start + step * steps, step)
        return pd.RangeIndex(len(self.values), len(self.values) + steps)


def _check_index(index: pd.Index) -> str | None:
    if index.has_duplicates:
        raise ValueError("Series index contains duplicate labels.")
    if not index.is_monotonic_increasing:
        raise ValueError("Series index must be strictly increasing.")

    if isinstance(index, pd.DatetimeIndex):
        if len(index) < 3:
            return index.freqstr
        freq = index.freqstr or pd.infer_freq(index)
        if freq is None:
            raise ValueError(
                "DatetimeIndex has irregular spacing; gaps are not permitted in the fitting path."
            )
        return freq

    if pd.api.types.is_integer_dtype(index) and len(index) > 1:
        steps = np.diff(np.asarray(index, dtype=np.int64))
        if np.any(steps != steps[0]):
            raise ValueError("Integer index has irregular spacing; gaps are not permitted.")
    return None


def as_series(
    data: pd.Series | np.ndarray | Sequence[float],
    period: int | None = None,
    name: str | None = None,
) -> SeriesData:
    """Validate raw input and return an immutable SeriesData record.

    A SeriesData record is passed through unchanged unless an explicit
    `period` differs from its own, in which case a copy carrying the
    requested period is returned.
    """
    if period is not None and (int(period) != period or period < 1):
        raise ValueError(f"period must be a positive integer; got {period}")
    if isinstance(data, SeriesData):
        if period is None or int(period) == data.period:
            return data
        return replace(data, period=int(period))
    if period is None:
        period = 1

    if isinstance(data, pd.Series):
        series = data
    else:
        arr = np.asarray(data)
        if arr.ndim != 1:
            raise ValueError(f"Expected a one-dimensional series; got shape {arr.shape}")
        series = pd.Series(arr)

    try:
        values = series.to_numpy(dtype=float).copy()
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Series values must be numeric: {exc}") from exc

    if len(values) == 0:
        raise ValueError("Series is empty.")
    if not np.all(np.isfinite(values)):
        raise ValueError("Series contains missing or non-finite values.")

    freq = _check_index(series.index)
    values.setflags(write=False)
    return SeriesData(
        values=values,
        index=series.index,
        period=int(period),
        freq=freq,
        name=name if name is not None else series.name,
    )
