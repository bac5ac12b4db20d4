"""Replay a historical batch through a windowed aggregate, row by row.

Each row is inserted into a fresh buffer in timestamp order and the
aggregate is evaluated right after the insert, so the output column shows
exactly what a live consumer would have seen at that moment.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

import numpy as np
import pandas as pd

from ppistream.buffer import WindowedAggregate, WindowedBuffer
from ppistream.config import settings
from ppistream.errors import ContractViolation
from ppistream.logging_utils import get_logger

logger = get_logger(__name__)


def progressive_values(
    rows: Iterable[Mapping[str, Any]],
    column_types: Mapping[str, Any],
    capacity: int,
    aggregate: WindowedAggregate,
) -> list[float | None]:
    """Fold *aggregate* over *rows*, one insert at a time.

    Args:
        rows: Rows already sorted by timestamp.
        column_types: Buffer schema (see :meth:`WindowedBuffer.create`).
        capacity: Buffer size in rows.
        aggregate: Called with the live buffer after every insert.  It must
            not keep the handle; the next insert makes it stale.

    Returns:
        One result per input row (None where the aggregate had too little
        data).
    """
    buffer = WindowedBuffer.create(column_types, capacity)
    results: list[float | None] = []
    for row in rows:
        buffer = buffer.insert(row)
        results.append(aggregate(buffer))

    logger.debug(
        "replayed %d rows through %s (capacity=%d, %d results)",
        len(results),
        getattr(aggregate, "__name__", repr(aggregate)),
        capacity,
        sum(r is not None for r in results),
    )
    return results


replay = progressive_values


def buffer_states(
    rows: Iterable[Mapping[str, Any]],
    column_types: Mapping[str, Any],
    capacity: int,
) -> Iterator[WindowedBuffer]:
    """Yield an independent snapshot of the buffer after each insert."""
    buffer = WindowedBuffer.create(column_types, capacity)
    for row in rows:
        buffer = buffer.insert(row)
        yield buffer.snapshot()


# ---------------------------------------------------------------------------
# DataFrame front end
# ---------------------------------------------------------------------------


def infer_column_types(frame: pd.DataFrame) -> dict[str, np.dtype]:
    """Buffer schema matching the columns of *frame*.

    Numeric, boolean and naive datetime columns keep their dtype.  tz-aware
    datetimes become ``datetime64[ns]`` (values are stored as naive UTC).
    Anything else (strings, categoricals) is stored as ``object``.
    """
    types: dict[str, np.dtype] = {}
    for name, dtype in frame.dtypes.items():
        if isinstance(dtype, pd.DatetimeTZDtype):
            types[str(name)] = np.dtype("datetime64[ns]")
        elif isinstance(dtype, np.dtype) and dtype.kind in "biufM":
            types[str(name)] = dtype
        else:
            types[str(name)] = np.dtype(object)
    return types


def replay_frame(
    frame: pd.DataFrame,
    capacity: int,
    aggregate: WindowedAggregate,
    timestamp_column: str = settings.columns.timestamp_column,
    output_column: str = "progressive",
    column_types: Mapping[str, Any] | None = None,
) -> pd.DataFrame:
    """Run :func:`progressive_values` over a DataFrame.

    Rows are stably sorted by *timestamp_column* first.  Returns a sorted
    copy of *frame* (fresh RangeIndex) with *output_column* appended; missing
    results become NaN.
    """
    if timestamp_column not in frame.columns:
        raise ContractViolation(f"frame has no timestamp column {timestamp_column!r}")

    ordered = frame.sort_values(timestamp_column, kind="stable").reset_index(drop=True)
    if column_types is None:
        column_types = infer_column_types(ordered)

    values = progressive_values(
        ordered.to_dict("records"),
        column_types,
        capacity,
        aggregate,
    )
    ordered[output_column] = pd.Series(values, index=ordered.index, dtype="float64")
    return ordered
