"""Measure how much a perturbation shifts a progressive aggregate.

The clean rows and the perturbed rows are replayed independently through
the same aggregate, the two result columns are joined on timestamp, and the
mean signed relative error over the usable pairs is reported.  Used to pick
the smoothing configuration that best survives injected artifacts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping

import numpy as np
import pandas as pd

from ppistream.buffer import WindowedAggregate
from ppistream.config import settings
from ppistream.logging_utils import get_logger
from ppistream.replay import replay_frame

logger = get_logger(__name__)

Perturbation = Callable[[pd.DataFrame], pd.DataFrame]

_RESULT = "_progressive"


@dataclass
class ImpactResult:
    """Summary of one clean-vs-perturbed comparison."""

    mean_relative_error: float | None  # None when no pair was usable
    n_valid_pairs: int

    def __repr__(self) -> str:
        if self.mean_relative_error is None:
            return f"ImpactResult(mre=n/a, pairs={self.n_valid_pairs})"
        return (
            f"ImpactResult(mre={self.mean_relative_error:+.4f}, "
            f"pairs={self.n_valid_pairs})"
        )


def _progressive(
    frame: pd.DataFrame,
    aggregate: WindowedAggregate,
    capacity: int,
    timestamp_column: str,
) -> pd.DataFrame:
    replayed = replay_frame(frame, capacity, aggregate, timestamp_column, output_column=_RESULT)
    return replayed[[timestamp_column, _RESULT]]


def relative_error(
    clean: pd.DataFrame,
    perturbed: pd.DataFrame,
    timestamp_column: str = settings.columns.timestamp_column,
    value_column: str = _RESULT,
) -> ImpactResult:
    """Mean of ``(perturbed - clean) / clean`` over timestamp-matched pairs.

    Pairs where either side is missing or non-finite, or the clean value is
    exactly 0, are dropped.
    """
    joined = clean[[timestamp_column, value_column]].merge(
        perturbed[[timestamp_column, value_column]],
        on=timestamp_column,
        how="inner",
        suffixes=("_clean", "_perturbed"),
    )
    c = joined[f"{value_column}_clean"].to_numpy(dtype=np.float64, na_value=np.nan)
    p = joined[f"{value_column}_perturbed"].to_numpy(dtype=np.float64, na_value=np.nan)

    valid = np.isfinite(c) & np.isfinite(p) & (c != 0.0)
    n_valid = int(np.sum(valid))
    logger.debug("%d joined pairs, %d usable", len(joined), n_valid)
    if n_valid == 0:
        return ImpactResult(mean_relative_error=None, n_valid_pairs=0)

    errors = (p[valid] - c[valid]) / c[valid]
    return ImpactResult(mean_relative_error=float(np.mean(errors)), n_valid_pairs=n_valid)


def measure_impact(
    clean_rows: pd.DataFrame,
    perturbation: Perturbation,
    aggregate: WindowedAggregate,
    capacity: int = settings.window.capacity,
    timestamp_column: str = settings.columns.timestamp_column,
) -> ImpactResult:
    """Replay clean and perturbed rows through *aggregate* and compare.

    Args:
        clean_rows: Ground-truth rows.
        perturbation: Returns a distorted copy of the rows it is given.  It
            may add or drop rows; only timestamps present on both sides count.
        aggregate: Windowed aggregate to evaluate.
        capacity: Buffer capacity used for both replays.
        timestamp_column: Join key and sort key.
    """
    perturbed_rows = perturbation(clean_rows.copy())
    clean = _progressive(clean_rows, aggregate, capacity, timestamp_column)
    perturbed = _progressive(perturbed_rows, aggregate, capacity, timestamp_column)
    return relative_error(clean, perturbed, timestamp_column)


def compare_aggregates(
    clean_rows: pd.DataFrame,
    perturbation: Perturbation,
    aggregates: Mapping[str, WindowedAggregate],
    capacity: int = settings.window.capacity,
    timestamp_column: str = settings.columns.timestamp_column,
) -> pd.DataFrame:
    """Rank several aggregates by how little the perturbation moves them.

    The perturbation is applied once, so every aggregate sees the same
    distorted rows.  Rows are sorted by absolute mean relative error;
    aggregates without usable pairs go last.
    """
    perturbed_rows = perturbation(clean_rows.copy())

    records = []
    for name, aggregate in aggregates.items():
        clean = _progressive(clean_rows, aggregate, capacity, timestamp_column)
        perturbed = _progressive(perturbed_rows, aggregate, capacity, timestamp_column)
        result = relative_error(clean, perturbed, timestamp_column)
        mre = result.mean_relative_error
        records.append({
            "name": name,
            "mean_relative_error": np.nan if mre is None else mre,
            "abs_relative_error": np.nan if mre is None else abs(mre),
            "n_valid_pairs": result.n_valid_pairs,
        })

    table = pd.DataFrame.from_records(
        records,
        columns=["name", "mean_relative_error", "abs_relative_error", "n_valid_pairs"],
    )
    return table.sort_values(
        "abs_relative_error", kind="stable", na_position="last"
    ).reset_index(drop=True)
