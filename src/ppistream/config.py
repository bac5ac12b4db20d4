"""Default parameters for the windowed analytics engine.

Everything here can be overridden per call; these are the values the CLI
and the evaluation helpers fall back to.

    from ppistream.config import settings
    settings.window.rmssd_window_ms
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ColumnSettings:
    """Default column names of a prepared PPI dataset."""

    timestamp_column: str = "timestamp"
    value_column: str = "PpInMs"


@dataclass(frozen=True)
class WindowSettings:
    """Window sizes used by the aggregate family."""

    # Trailing duration for RMSSD (ms)
    rmssd_window_ms: float = 30_000.0

    # Buffer capacity (rows) used by replay
    capacity: int = 500

    moving_average_window: int = 5
    median_window: int = 5
    ema_alpha: float = 0.3

    # Cascaded median + moving average
    cascaded_median_window: int = 5
    cascaded_ma_window: int = 3


@dataclass(frozen=True)
class DistortionSettings:
    """Artifact rates and magnitudes for synthetic distortion."""

    noise_std_ms: float = 5.0
    outlier_probability: float = 0.02
    outlier_factor: float = 2.0
    missing_probability: float = 0.01
    extra_probability: float = 0.01
    drift_ms: float = 20.0
    drift_direction: str = "increase"


@dataclass(frozen=True)
class AppSettings:
    columns: ColumnSettings = field(default_factory=ColumnSettings)
    window: WindowSettings = field(default_factory=WindowSettings)
    distortion: DistortionSettings = field(default_factory=DistortionSettings)


settings = AppSettings()
