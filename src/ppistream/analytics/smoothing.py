"""Artifact-robust smoothing of the most recent interval values.

Unlike RMSSD these work on the whole buffer content in insertion order, not
on a time window.  Each returns None while the buffer holds too few rows.

Median conventions:
  - ``median_filter`` of an even-sized window returns the *upper* middle
    element (sorted index ``window_size // 2``), never the mean of the two.
  - The cascaded filters leave the edge positions of their input untouched.
Both are part of the output contract; changing them changes HRV values.
"""

from __future__ import annotations

import numbers

import numpy as np

from ppistream.buffer import WindowedAggregate, WindowedBuffer
from ppistream.config import settings
from ppistream.errors import ContractViolation
from ppistream.window import tail_values


DEFAULT_VALUE_COLUMN = settings.columns.value_column

# cascaded_median_filter always looks at this many values
CASCADE_SIZE = 5


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_window(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise ContractViolation(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def _require_alpha(alpha: float) -> float:
    # Written so that NaN fails too
    if (
        isinstance(alpha, bool)
        or not isinstance(alpha, numbers.Real)
        or not (0.0 < alpha <= 1.0)
    ):
        raise ContractViolation(f"alpha must be in (0, 1], got {alpha!r}")
    return float(alpha)


def _upper_median(values: np.ndarray) -> float:
    return float(np.sort(values)[len(values) // 2])


def _centered_median_pass(values: np.ndarray, width: int) -> np.ndarray:
    """Median-filter every position that has a full centered window.

    The window for position ``i`` is ``values[i - width // 2 : i - width // 2 + width]``.
    Positions without a full window keep their input value.  All medians are
    taken from the unfiltered input.
    """
    out = values.copy()
    half = width // 2
    for start in range(len(values) - width + 1):
        out[start + half] = _upper_median(values[start:start + width])
    return out


# ---------------------------------------------------------------------------
# Smoothing functions
# ---------------------------------------------------------------------------


def moving_average(
    buffer: WindowedBuffer,
    window_size: int,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> float | None:
    """Arithmetic mean of the last *window_size* values."""
    window_size = _require_window("window_size", window_size)
    if buffer.current_size < window_size:
        return None
    return float(np.mean(tail_values(buffer, value_column, window_size)))


def median_filter(
    buffer: WindowedBuffer,
    window_size: int,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> float | None:
    """Median of the last *window_size* values (upper middle for even sizes)."""
    window_size = _require_window("window_size", window_size)
    if buffer.current_size < window_size:
        return None
    return _upper_median(tail_values(buffer, value_column, window_size))


def cascaded_median_filter(
    buffer: WindowedBuffer,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> float | None:
    """Two-stage median over the last 5 values.

    Stage one replaces positions 1-3 with the median of their 3-point
    neighbourhood; positions 0 and 4 pass through.  Stage two returns the
    median of the resulting 5 values.  A single outlier, or two outliers that
    are not adjacent, cannot reach the output.
    """
    if buffer.current_size < CASCADE_SIZE:
        return None
    values = tail_values(buffer, value_column, CASCADE_SIZE)
    return _upper_median(_centered_median_pass(values, 3))


def exponential_moving_average(
    buffer: WindowedBuffer,
    alpha: float,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> float | None:
    """EMA over every buffered value, seeded with the oldest one.

    ``ema = alpha * value + (1 - alpha) * ema`` for each newer value.
    *alpha* must be in (0, 1]; 1 returns the most recent value.
    """
    alpha = _require_alpha(alpha)
    if buffer.current_size < 1:
        return None
    values = tail_values(buffer, value_column)
    ema = values[0]
    for value in values[1:]:
        ema = alpha * value + (1.0 - alpha) * ema
    return float(ema)


def cascaded_smoothing_filter(
    buffer: WindowedBuffer,
    median_window: int,
    ma_window: int,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> float | None:
    """Median filter followed by a moving average.

    Takes the last ``median_window + ma_window`` values, median-filters every
    position with a full centered window of width *median_window* (edges pass
    through), then averages the final *ma_window* values.
    """
    median_window = _require_window("median_window", median_window)
    ma_window = _require_window("ma_window", ma_window)
    needed = median_window + ma_window
    if buffer.current_size < needed:
        return None
    values = tail_values(buffer, value_column, needed)
    filtered = _centered_median_pass(values, median_window)
    return float(np.mean(filtered[-ma_window:]))


# ---------------------------------------------------------------------------
# Aggregate factories
# ---------------------------------------------------------------------------


def moving_average_aggregate(
    window_size: int = settings.window.moving_average_window,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> WindowedAggregate:
    window_size = _require_window("window_size", window_size)

    def aggregate(buffer: WindowedBuffer) -> float | None:
        return moving_average(buffer, window_size, value_column)

    aggregate.__name__ = f"moving_average_{window_size}"
    return aggregate


def median_filter_aggregate(
    window_size: int = settings.window.median_window,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> WindowedAggregate:
    window_size = _require_window("window_size", window_size)

    def aggregate(buffer: WindowedBuffer) -> float | None:
        return median_filter(buffer, window_size, value_column)

    aggregate.__name__ = f"median_filter_{window_size}"
    return aggregate


def cascaded_median_aggregate(
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> WindowedAggregate:
    def aggregate(buffer: WindowedBuffer) -> float | None:
        return cascaded_median_filter(buffer, value_column)

    aggregate.__name__ = "cascaded_median"
    return aggregate


def ema_aggregate(
    alpha: float = settings.window.ema_alpha,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> WindowedAggregate:
    alpha = _require_alpha(alpha)

    def aggregate(buffer: WindowedBuffer) -> float | None:
        return exponential_moving_average(buffer, alpha, value_column)

    aggregate.__name__ = f"ema_{alpha}"
    return aggregate


def cascaded_smoothing_aggregate(
    median_window: int = settings.window.cascaded_median_window,
    ma_window: int = settings.window.cascaded_ma_window,
    value_column: str = DEFAULT_VALUE_COLUMN,
) -> WindowedAggregate:
    median_window = _require_window("median_window", median_window)
    ma_window = _require_window("ma_window", ma_window)

    def aggregate(buffer: WindowedBuffer) -> float | None:
        return cascaded_smoothing_filter(buffer, median_window, ma_window, value_column)

    aggregate.__name__ = f"cascaded_smoothing_{median_window}_{ma_window}"
    return aggregate
