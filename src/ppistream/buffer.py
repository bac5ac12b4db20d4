"""Fixed-capacity circular buffer over typed, multi-column rows.

Each column is a pre-allocated numpy array of ``max_size`` slots.  Rows are
written at ``write_position``; once the buffer is full every insert
overwrites the logically oldest row.

Storage is mutated in place, so handles are single-use for writing:
:meth:`WindowedBuffer.insert` returns a *new* handle and the one it was
called on becomes stale.  Any later read or insert through a stale handle
raises :class:`~ppistream.errors.ContractViolation`.  Callers that need to
hold on to an older state take a :meth:`~WindowedBuffer.snapshot` first::

    buf = WindowedBuffer.create({"timestamp": "timestamp", "PpInMs": "int32"}, 4)
    buf = buf.insert({"timestamp": t0, "PpInMs": 800})
    kept = buf.snapshot()
    buf = buf.insert({"timestamp": t1, "PpInMs": 820})   # kept is unaffected
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional

import numpy as np
import pandas as pd

from ppistream.errors import ContractViolation


# Short names accepted in a column schema, besides any numpy dtype specifier.
TYPE_ALIASES: dict[str, Any] = {
    "int": np.int64,
    "integer": np.int64,
    "float": np.float64,
    "double": np.float64,
    "timestamp": "datetime64[ns]",
    "datetime": "datetime64[ns]",
    "string": object,
    "str": object,
}


# ---------------------------------------------------------------------------
# Column schema helpers
# ---------------------------------------------------------------------------


def resolve_dtype(spec: Any) -> np.dtype:
    """Turn a column type specifier into a numpy dtype.

    Fixed-width string dtypes are widened to ``object`` so that values are
    never silently truncated.
    """
    if isinstance(spec, str) and spec in TYPE_ALIASES:
        spec = TYPE_ALIASES[spec]
    if spec is str:
        spec = object
    try:
        dtype = np.dtype(spec)
    except TypeError as exc:
        raise ContractViolation(f"unknown column type: {spec!r}") from exc
    if dtype.kind in ("U", "S"):
        dtype = np.dtype(object)
    return dtype


def _empty_column(dtype: np.dtype, size: int) -> np.ndarray:
    if dtype.kind == "M":
        return np.full(size, np.datetime64("NaT"), dtype=dtype)
    if dtype.kind == "m":
        return np.full(size, np.timedelta64("NaT"), dtype=dtype)
    if dtype.kind == "O":
        return np.full(size, None, dtype=object)
    return np.zeros(size, dtype=dtype)


def _naive_datetime64(value: Any) -> np.datetime64:
    # tz-aware values are stored as naive UTC
    stamp = pd.Timestamp(value)
    if stamp.tz is not None:
        stamp = stamp.tz_convert(None)
    return stamp.to_datetime64()


def _check_kind(name: str, value: Any, dtype: np.dtype) -> Any:
    """Reject values whose kind does not match the column type.

    Conversions are never lossy or parsing.  An integer column takes
    integers and whole floats only; strings are not read as numbers, nor
    numbers as timestamps.
    """
    kind = dtype.kind
    if kind == "b":
        ok = isinstance(value, (bool, np.bool_))
    elif kind in "iu":
        if isinstance(value, (bool, np.bool_)):
            ok = False
        elif isinstance(value, numbers.Integral):
            ok = True
        elif isinstance(value, numbers.Real):
            ok = float(value).is_integer()
        else:
            ok = False
    elif kind == "f":
        ok = isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_))
    elif kind == "c":
        ok = isinstance(value, numbers.Complex) and not isinstance(value, (bool, np.bool_))
    elif kind == "M":
        if isinstance(value, datetime):
            return _naive_datetime64(value)
        ok = isinstance(value, np.datetime64)
    elif kind == "m":
        ok = isinstance(value, (timedelta, np.timedelta64))
    else:
        ok = False

    if not ok:
        raise ContractViolation(
            f"value {value!r} ({type(value).__name__}) for column {name!r} "
            f"does not match type {dtype}"
        )
    return value


def _coerce(name: str, value: Any, dtype: np.dtype) -> Any:
    """Convert *value* to something storable in a *dtype* slot, or fail."""
    if dtype.kind == "O":
        return value
    value = _check_kind(name, value, dtype)
    try:
        arr = np.asarray(value, dtype=dtype)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ContractViolation(
            f"value {value!r} for column {name!r} does not fit type {dtype}"
        ) from exc
    if arr.ndim != 0:
        raise ContractViolation(f"value for column {name!r} is not a scalar: {value!r}")
    return arr[()]


# ---------------------------------------------------------------------------
# Buffer
# ---------------------------------------------------------------------------


@dataclass
class _Storage:
    """Column arrays shared by all handles of one buffer lineage."""

    columns: dict[str, np.ndarray]
    generation: int = 0


class WindowedBuffer:
    """Circular buffer handle.  Build one with :meth:`create`."""

    __slots__ = (
        "_storage",
        "_column_types",
        "_max_size",
        "_current_size",
        "_write_position",
        "_generation",
    )

    def __init__(
        self,
        storage: _Storage,
        column_types: dict[str, np.dtype],
        max_size: int,
        current_size: int,
        write_position: int,
    ) -> None:
        self._storage = storage
        self._column_types = column_types
        self._max_size = max_size
        self._current_size = current_size
        self._write_position = write_position
        self._generation = storage.generation

    @classmethod
    def create(cls, column_types: Mapping[str, Any], max_size: int) -> WindowedBuffer:
        """Allocate an empty buffer.

        Args:
            column_types: Mapping of column name to type (``"int"``,
                ``"float"``, ``"timestamp"``, ``"string"`` or a numpy dtype).
            max_size: Number of rows to keep.  0 is allowed; such a buffer
                stays empty forever.
        """
        if isinstance(max_size, bool) or not isinstance(max_size, (int, np.integer)):
            raise ContractViolation(f"max_size must be an integer, got {max_size!r}")
        if max_size < 0:
            raise ContractViolation(f"max_size must be >= 0, got {max_size}")

        dtypes = {str(name): resolve_dtype(spec) for name, spec in column_types.items()}
        storage = _Storage(
            columns={name: _empty_column(dtype, int(max_size)) for name, dtype in dtypes.items()}
        )
        return cls(storage, dtypes, int(max_size), 0, 0)

    # -- state --------------------------------------------------------------

    def _check_live(self) -> None:
        if self._generation != self._storage.generation:
            raise ContractViolation(
                "stale buffer handle: it was superseded by a later insert; "
                "take a snapshot() to keep an old state"
            )

    @property
    def is_stale(self) -> bool:
        return self._generation != self._storage.generation

    @property
    def column_types(self) -> dict[str, np.dtype]:
        return dict(self._column_types)

    @property
    def column_names(self) -> list[str]:
        return list(self._column_types)

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def current_size(self) -> int:
        self._check_live()
        return self._current_size

    @property
    def write_position(self) -> int:
        self._check_live()
        return self._write_position

    def has_column(self, name: str) -> bool:
        return name in self._column_types

    def __len__(self) -> int:
        return self.current_size

    def __repr__(self) -> str:
        stale = ", stale" if self.is_stale else ""
        return (
            f"WindowedBuffer(columns={self.column_names}, "
            f"size={self._current_size}/{self._max_size}, "
            f"pos={self._write_position}{stale})"
        )

    def _slots(self, name: str) -> np.ndarray:
        """Physical column array.  Never hand this out past an insert."""
        self._check_live()
        try:
            return self._storage.columns[name]
        except KeyError:
            raise ContractViolation(f"buffer has no column {name!r}") from None

    # -- mutation -----------------------------------------------------------

    def insert(self, row: Mapping[str, Any]) -> WindowedBuffer:
        """Write *row* into the slot at ``write_position``.

        Keys of *row* that are not in the schema are ignored.  A missing
        column or an unstorable value raises before any slot is touched.

        Returns:
            The new handle.  ``self`` is stale afterwards, unless the buffer
            has capacity 0, in which case ``self`` is returned unchanged.
        """
        self._check_live()
        if self._max_size == 0:
            return self

        values = {}
        for name, dtype in self._column_types.items():
            if name not in row:
                raise ContractViolation(f"row is missing column {name!r}")
            values[name] = _coerce(name, row[name], dtype)

        pos = self._write_position
        for name, value in values.items():
            self._storage.columns[name][pos] = value

        self._storage.generation += 1
        return WindowedBuffer(
            self._storage,
            self._column_types,
            self._max_size,
            min(self._current_size + 1, self._max_size),
            (pos + 1) % self._max_size,
        )

    def snapshot(self) -> WindowedBuffer:
        """Deep copy with its own storage; unaffected by later inserts here."""
        self._check_live()
        storage = _Storage(
            columns={name: arr.copy() for name, arr in self._storage.columns.items()}
        )
        return WindowedBuffer(
            storage,
            self._column_types,
            self._max_size,
            self._current_size,
            self._write_position,
        )


make_buffer = WindowedBuffer.create


# A windowed aggregate reads a live buffer and returns a scalar, or None
# while there is not enough data yet.
WindowedAggregate = Callable[[WindowedBuffer], Optional[float]]
