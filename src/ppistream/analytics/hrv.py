"""RMSSD over a trailing time window of a WindowedBuffer.

RMSSD (root mean square of successive differences) is the short-term HRV
statistic tracked in real time.  The windowed form inherits all duration
policies from :func:`ppistream.window.time_window_view`.
"""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from ppistream.buffer import WindowedAggregate, WindowedBuffer
from ppistream.config import settings
from ppistream.window import numeric_values, time_window_view


DEFAULT_VALUE_COLUMN = settings.columns.value_column


def compute_rmssd(intervals: Sequence[float]) -> float | None:
    """Root mean square of successive interval differences.

    Returns None if fewer than 2 intervals are provided.  The result is not
    rounded.
    """
    if len(intervals) < 2:
        return None
    arr = np.asarray(intervals, dtype=np.float64)
    diffs = np.diff(arr)
    return float(np.sqrt(np.mean(diffs ** 2)))


def rmssd(
    buffer: WindowedBuffer,
    timestamp_column: str,
    duration: Any,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> float | None:
    """RMSSD of *value_column* over the last *duration* of the buffer.

    Args:
        buffer: Live buffer handle.
        timestamp_column: Timestamp column; a missing one raises
            :class:`~ppistream.errors.ContractViolation`.
        duration: Window length (see :func:`~ppistream.window.time_window_view`).
        value_column: Interval column (ms).

    Returns:
        RMSSD in the value column's unit, or None when the window holds fewer
        than 2 rows or the buffer has no *value_column*.

    Raises:
        ContractViolation: *timestamp_column* is missing, or *value_column*
            is not numeric.
    """
    view = time_window_view(buffer, timestamp_column, duration)
    if value_column not in view:
        return None
    return compute_rmssd(numeric_values(view[value_column], value_column))


def rmssd_aggregate(
    timestamp_column: str = settings.columns.timestamp_column,
    duration: Any = settings.window.rmssd_window_ms,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> WindowedAggregate:
    """Bind :func:`rmssd` parameters into a replayable aggregate."""

    def aggregate(buffer: WindowedBuffer) -> float | None:
        return rmssd(buffer, timestamp_column, duration, value_column)

    aggregate.__name__ = f"rmssd_{duration}"
    return aggregate
