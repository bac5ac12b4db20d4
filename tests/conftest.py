"""Shared fixtures and helpers for the ppistream test suite."""

from __future__ import annotations

from datetime import datetime, timedelta

import numpy as np
import pandas as pd
import pytest

from ppistream.buffer import WindowedBuffer


BASE_TIME = datetime(2025, 8, 6, 10, 0, 0)

PPI_SCHEMA = {"timestamp": "timestamp", "PpInMs": "int32"}


# ---------------------------------------------------------------------------
# Row-building helpers
# ---------------------------------------------------------------------------


def ppi_rows(
    intervals: list[float],
    step_ms: float | None = 1000.0,
    column: str = "PpInMs",
) -> list[dict]:
    """One row per interval, *step_ms* apart (or cumulative if None)."""
    rows = []
    t = BASE_TIME
    for i, interval in enumerate(intervals):
        if step_ms is None:
            t = t + timedelta(milliseconds=interval)
        else:
            t = BASE_TIME + timedelta(milliseconds=i * step_ms)
        rows.append({"timestamp": t, column: interval})
    return rows


def fill(buffer: WindowedBuffer, rows: list[dict]) -> WindowedBuffer:
    """Insert every row and return the final handle."""
    for row in rows:
        buffer = buffer.insert(row)
    return buffer


def value_buffer(values: list[float], capacity: int = 10) -> WindowedBuffer:
    """Buffer holding only a PpInMs column with *values* inserted."""
    buf = WindowedBuffer.create({"PpInMs": "float"}, capacity)
    return fill(buf, [{"PpInMs": v} for v in values])


def ppi_frame(n: int = 120, seed: int = 7) -> pd.DataFrame:
    """Realistic clean PPI segment: ~75 bpm with mild variability."""
    rng = np.random.default_rng(seed)
    intervals = np.round(800 + 30 * np.sin(np.arange(n) / 4.0) + rng.normal(0, 8, n))
    stamps = pd.Timestamp(BASE_TIME) + pd.to_timedelta(np.cumsum(intervals), unit="ms")
    return pd.DataFrame({"timestamp": stamps, "PpInMs": intervals.astype(np.int64)})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ppi_buffer() -> WindowedBuffer:
    """Empty buffer with the standard PPI schema and room for 10 rows."""
    return WindowedBuffer.create(PPI_SCHEMA, 10)


@pytest.fixture
def clean_frame() -> pd.DataFrame:
    return ppi_frame()
