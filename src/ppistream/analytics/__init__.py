"""Windowed aggregates over a WindowedBuffer.

Modules:
    hrv       -- RMSSD over a trailing time window
    smoothing -- moving average, median, cascaded median, EMA, cascaded smoothing
    impact    -- clean-vs-distorted comparison of progressive aggregates

Every ``*_aggregate`` factory returns a ``WindowedAggregate``: a callable
taking a live buffer and returning ``float | None``.  Any callable with that
shape can be driven through :mod:`ppistream.replay`.
"""

from ppistream.analytics.hrv import compute_rmssd, rmssd, rmssd_aggregate
from ppistream.analytics.smoothing import (
    moving_average,
    median_filter,
    cascaded_median_filter,
    exponential_moving_average,
    cascaded_smoothing_filter,
    moving_average_aggregate,
    median_filter_aggregate,
    cascaded_median_aggregate,
    ema_aggregate,
    cascaded_smoothing_aggregate,
)
from ppistream.analytics.impact import (
    ImpactResult,
    measure_impact,
    relative_error,
    compare_aggregates,
)

__all__ = [
    # hrv
    "compute_rmssd",
    "rmssd",
    "rmssd_aggregate",
    # smoothing
    "moving_average",
    "median_filter",
    "cascaded_median_filter",
    "exponential_moving_average",
    "cascaded_smoothing_filter",
    "moving_average_aggregate",
    "median_filter_aggregate",
    "cascaded_median_aggregate",
    "ema_aggregate",
    "cascaded_smoothing_aggregate",
    # impact
    "ImpactResult",
    "measure_impact",
    "relative_error",
    "compare_aggregates",
]
