"""Chronological views and trailing time windows over a WindowedBuffer.

Buffer slots are stored in physical order; these functions translate them
into insertion order and, for time windows, cut the sequence down to the
rows whose timestamp lies within ``duration`` of the most recent row.

Views are materialized copies (read-only numpy arrays), so they stay valid
after the buffer they came from is written to again.
"""

from __future__ import annotations

import math
from bisect import bisect_left
from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from ppistream.buffer import WindowedBuffer
from ppistream.errors import ContractViolation


@dataclass(frozen=True)
class WindowView:
    """Immutable, chronologically ordered rows taken from a buffer."""

    columns: Mapping[str, np.ndarray]
    n_rows: int

    def __len__(self) -> int:
        return self.n_rows

    def __contains__(self, name: object) -> bool:
        return name in self.columns

    def __getitem__(self, name: str) -> np.ndarray:
        return self.columns[name]

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    def to_frame(self) -> pd.DataFrame:
        """Copy the view into a pandas DataFrame."""
        return pd.DataFrame({name: np.array(arr) for name, arr in self.columns.items()})

    def __repr__(self) -> str:
        return f"WindowView(columns={self.column_names}, rows={self.n_rows})"


def _materialize(buffer: WindowedBuffer, indices: np.ndarray) -> WindowView:
    columns = {}
    for name in buffer.column_names:
        arr = buffer._slots(name)[indices]  # fancy indexing copies
        arr.setflags(write=False)
        columns[name] = arr
    return WindowView(columns=MappingProxyType(columns), n_rows=len(indices))


# ---------------------------------------------------------------------------
# Chronological order
# ---------------------------------------------------------------------------


def chronological_indices(buffer: WindowedBuffer) -> np.ndarray:
    """Physical slot indices of the buffered rows, oldest first."""
    size = buffer.current_size
    capacity = buffer.max_size
    if size == 0:
        return np.empty(0, dtype=np.intp)
    if size < capacity:
        return np.arange(size, dtype=np.intp)
    # Full: the oldest row sits at the next slot to be overwritten
    return (np.arange(capacity, dtype=np.intp) + buffer.write_position) % capacity


def as_view(buffer: WindowedBuffer) -> WindowView:
    """All buffered rows in insertion order."""
    return _materialize(buffer, chronological_indices(buffer))


def numeric_values(values: np.ndarray, column: str) -> np.ndarray:
    """*values* as float64; a non-numeric column is a contract violation."""
    if values.dtype.kind not in "iuf":
        raise ContractViolation(f"column {column!r} holds {values.dtype}, not numbers")
    return values.astype(np.float64)


def tail_values(
    buffer: WindowedBuffer,
    value_column: str,
    count: int | None = None,
) -> np.ndarray:
    """The last *count* values of one column (all if None), as float64."""
    column = buffer._slots(value_column)
    indices = chronological_indices(buffer)
    if count is not None:
        indices = indices[max(len(indices) - count, 0):] if count > 0 else indices[:0]
    return numeric_values(column[indices], value_column)


# ---------------------------------------------------------------------------
# Time windows
# ---------------------------------------------------------------------------


def binary_search_start(
    timestamps: Sequence[Any],
    indices: Sequence[int],
    threshold: Any,
) -> int:
    """Position in *indices* of the first row whose timestamp >= *threshold*.

    *indices* addresses *timestamps* in chronological order, and the
    timestamps it points at must be non-decreasing.  Returns ``len(indices)``
    if every timestamp is below the threshold and 0 if none is.
    """
    return bisect_left(indices, threshold, key=lambda i: timestamps[i])


def _window_span(duration: Any, dtype: np.dtype) -> Any:
    """Normalize a window duration for a timestamp column of *dtype*.

    Returns None for an undefined (None/NaN) or negative duration.
    """
    if duration is None:
        return None

    if dtype.kind == "M":
        if isinstance(duration, (timedelta, np.timedelta64)):
            span = pd.Timedelta(duration)
        else:
            try:
                span = pd.Timedelta(float(duration), unit="ms")
            except (TypeError, ValueError) as exc:
                raise ContractViolation(f"invalid window duration: {duration!r}") from exc
        if span is pd.NaT:
            return None
        span = span.to_timedelta64()
        if span < np.timedelta64(0, "ns"):
            return None
        return span

    if dtype.kind not in "iuf":
        raise ContractViolation(f"timestamp column must be datetime or numeric, not {dtype}")
    if isinstance(duration, (timedelta, np.timedelta64)):
        raise ContractViolation(
            "a timedelta duration needs a datetime timestamp column; "
            "pass a number in the column's own unit instead"
        )
    try:
        span = float(duration)
    except (TypeError, ValueError) as exc:
        raise ContractViolation(f"invalid window duration: {duration!r}") from exc
    if math.isnan(span) or span < 0:
        return None
    return span


def time_window_view(
    buffer: WindowedBuffer,
    timestamp_column: str,
    duration: Any,
) -> WindowView:
    """Rows whose timestamp is within *duration* of the most recent row.

    Args:
        buffer: Live buffer handle.
        timestamp_column: Column holding non-decreasing timestamps.  Must
            exist in the buffer schema.
        duration: Trailing window length.  For datetime columns a number
            means milliseconds and a timedelta is used as is; for numeric
            columns it is in the column's own unit.  0 selects only the most
            recent row; None, NaN or a negative value selects nothing.
    """
    if not buffer.has_column(timestamp_column):
        raise ContractViolation(f"buffer has no timestamp column {timestamp_column!r}")

    indices = chronological_indices(buffer)
    timestamps = buffer._slots(timestamp_column)
    if len(indices) == 0:
        return _materialize(buffer, indices)

    span = _window_span(duration, timestamps.dtype)
    if span is None:
        return _materialize(buffer, indices[:0])
    if not span:
        return _materialize(buffer, indices[-1:])

    threshold = timestamps[indices[-1]] - span
    start = binary_search_start(timestamps, indices, threshold)
    return _materialize(buffer, indices[start:])
