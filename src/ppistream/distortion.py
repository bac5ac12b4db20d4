"""Synthetic artifacts for PPI data.

These simulate what wrist-worn optical sensors typically get wrong, so that
smoothing strategies can be scored against a clean ground truth:

  - Gaussian measurement noise
  - Outliers (an interval scaled up or down by a factor)
  - Missing beats (two intervals merge into one, roughly doubled)
  - Extra beats (one interval splits into two halves)
  - Slow trend drift

Every function takes the random generator explicitly (a
``numpy.random.Generator`` or an integer seed), returns a new DataFrame, and
never modifies its input.  Rows are assumed to be in beat order.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
import pandas as pd

from ppistream.config import DistortionSettings, settings
from ppistream.errors import ContractViolation
from ppistream.logging_utils import get_logger

logger = get_logger(__name__)

VALUE_COLUMN = settings.columns.value_column
TIMESTAMP_COLUMN = settings.columns.timestamp_column

RandomSource = np.random.Generator | int | None


def _check_probability(probability: float) -> float:
    if not (0.0 <= probability <= 1.0):
        raise ContractViolation(f"probability must be in [0, 1], got {probability!r}")
    return float(probability)


def _intervals(frame: pd.DataFrame, column: str) -> np.ndarray:
    if column not in frame.columns:
        raise ContractViolation(f"frame has no column {column!r}")
    return frame[column].to_numpy(dtype=np.float64, copy=True)


# ---------------------------------------------------------------------------
# Individual artifacts
# ---------------------------------------------------------------------------


def add_gaussian_noise(
    frame: pd.DataFrame,
    rng: RandomSource,
    column: str = VALUE_COLUMN,
    std_ms: float = 5.0,
) -> pd.DataFrame:
    """Add zero-mean Gaussian noise with standard deviation *std_ms*."""
    if std_ms < 0:
        raise ContractViolation(f"std_ms must be >= 0, got {std_ms!r}")
    rng = np.random.default_rng(rng)
    values = _intervals(frame, column)
    out = frame.copy()
    out[column] = values + rng.normal(0.0, std_ms, size=len(values))
    return out


def add_outliers(
    frame: pd.DataFrame,
    rng: RandomSource,
    column: str = VALUE_COLUMN,
    probability: float = 0.02,
    factor: float = 2.0,
) -> pd.DataFrame:
    """Scale each interval by *factor* (or 1 / *factor*) with *probability*."""
    probability = _check_probability(probability)
    if factor <= 0:
        raise ContractViolation(f"factor must be positive, got {factor!r}")
    rng = np.random.default_rng(rng)
    values = _intervals(frame, column)

    hit = rng.random(len(values)) < probability
    up = rng.random(len(values)) < 0.5
    values[hit & up] *= factor
    values[hit & ~up] /= factor

    out = frame.copy()
    out[column] = values
    return out


def add_missing_beats(
    frame: pd.DataFrame,
    rng: RandomSource,
    column: str = VALUE_COLUMN,
    probability: float = 0.01,
) -> pd.DataFrame:
    """Drop beats; the interval of a dropped beat is added to the next one.

    The surviving row keeps its own timestamp, which is where the merged
    interval ends.  The last row is never dropped.
    """
    probability = _check_probability(probability)
    rng = np.random.default_rng(rng)
    values = _intervals(frame, column)

    dropped = rng.random(len(values)) < probability
    if len(dropped):
        dropped[-1] = False

    carry = 0.0
    for i in range(len(values)):
        if dropped[i]:
            carry += values[i]
        else:
            values[i] += carry
            carry = 0.0

    out = frame.loc[~dropped].copy()
    out[column] = values[~dropped]
    return out.reset_index(drop=True)


def add_extra_beats(
    frame: pd.DataFrame,
    rng: RandomSource,
    column: str = VALUE_COLUMN,
    probability: float = 0.01,
    timestamp_column: str = TIMESTAMP_COLUMN,
) -> pd.DataFrame:
    """Split intervals in two, as if a spurious beat had been detected.

    A split interval becomes two rows of half its length; the inserted row is
    stamped half an interval before the original.  For numeric timestamp
    columns the interval unit (ms) is assumed to match the timestamp unit.
    """
    probability = _check_probability(probability)
    if timestamp_column not in frame.columns:
        raise ContractViolation(f"frame has no timestamp column {timestamp_column!r}")
    rng = np.random.default_rng(rng)
    values = _intervals(frame, column)

    split = rng.random(len(values)) < probability
    halves = values / 2.0

    main = frame.copy()
    main[column] = np.where(split, halves, values)

    extra = frame.loc[split].copy()
    extra[column] = halves[split]
    stamps = frame[timestamp_column].to_numpy()[split]
    if pd.api.types.is_datetime64_any_dtype(frame[timestamp_column]):
        offsets = pd.to_timedelta(halves[split], unit="ms").to_numpy()
    else:
        offsets = halves[split]
    extra[timestamp_column] = stamps - offsets

    out = pd.concat([main, extra], ignore_index=True)
    return out.sort_values(timestamp_column, kind="stable").reset_index(drop=True)


def add_trend_drift(
    frame: pd.DataFrame,
    column: str = VALUE_COLUMN,
    magnitude_ms: float = 20.0,
    direction: str = "increase",
) -> pd.DataFrame:
    """Add a linear ramp from 0 to +/- *magnitude_ms* across the rows."""
    if direction not in ("increase", "decrease"):
        raise ContractViolation(f"direction must be 'increase' or 'decrease', got {direction!r}")
    values = _intervals(frame, column)
    ramp = np.linspace(0.0, magnitude_ms, num=len(values))
    if direction == "decrease":
        ramp = -ramp

    out = frame.copy()
    out[column] = values + ramp
    return out


# ---------------------------------------------------------------------------
# Combined
# ---------------------------------------------------------------------------


def distort_segment(
    frame: pd.DataFrame,
    rng: RandomSource,
    params: DistortionSettings | None = None,
    column: str = VALUE_COLUMN,
    timestamp_column: str = TIMESTAMP_COLUMN,
) -> pd.DataFrame:
    """Apply noise, outliers, missing beats, extra beats and drift, in that order."""
    params = params or settings.distortion
    rng = np.random.default_rng(rng)

    out = add_gaussian_noise(frame, rng, column, params.noise_std_ms)
    out = add_outliers(out, rng, column, params.outlier_probability, params.outlier_factor)
    out = add_missing_beats(out, rng, column, params.missing_probability)
    out = add_extra_beats(out, rng, column, params.extra_probability, timestamp_column)
    out = add_trend_drift(out, column, params.drift_ms, params.drift_direction)

    logger.debug("distorted segment: %d rows in, %d rows out", len(frame), len(out))
    return out


def make_perturbation(
    params: DistortionSettings | None = None,
    seed: int = 0,
    column: str = VALUE_COLUMN,
    timestamp_column: str = TIMESTAMP_COLUMN,
) -> Callable[[pd.DataFrame], pd.DataFrame]:
    """A ``frame -> frame`` distortion that gives the same output for the same input.

    Each call starts a new generator from *seed*.
    """

    def perturb(frame: pd.DataFrame) -> pd.DataFrame:
        return distort_segment(
            frame,
            np.random.default_rng(seed),
            params,
            column,
            timestamp_column,
        )

    return perturb
