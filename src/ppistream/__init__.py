"""ppistream -- windowed HRV analytics over pulse-to-pulse interval streams."""

from ppistream.errors import ContractViolation
from ppistream.buffer import WindowedAggregate, WindowedBuffer, make_buffer
from ppistream.window import (
    WindowView,
    as_view,
    binary_search_start,
    chronological_indices,
    time_window_view,
)
from ppistream.replay import progressive_values, replay, replay_frame, buffer_states

__version__ = "0.1.0"

__all__ = [
    "ContractViolation",
    "WindowedAggregate",
    "WindowedBuffer",
    "make_buffer",
    "WindowView",
    "as_view",
    "binary_search_start",
    "chronological_indices",
    "time_window_view",
    "progressive_values",
    "replay",
    "replay_frame",
    "buffer_states",
]
