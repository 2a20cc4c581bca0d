"""Playback state and per-tick data models."""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np


@dataclass
class PlaybackState:
    """Mutable playback state.

    Owned by a PlaybackSession and mutated only by its TimebaseController
    and StreamingEngine, from the tick driver's context. Everything else
    gets a PlaybackSnapshot.
    """
    is_streaming: bool = False
    speed_multiplier: float = 1.0
    recording_cursor_seconds: float = 0.0
    wall_clock_anchor: Optional[float] = None
    last_tick_wall_clock: Optional[float] = None
    session_number: int = 0
    # Next absolute sample index per channel, so no index is emitted twice
    next_sample_indices: List[int] = field(default_factory=list)

    def snapshot(self) -> "PlaybackSnapshot":
        return PlaybackSnapshot(
            is_streaming=self.is_streaming,
            speed_multiplier=self.speed_multiplier,
            recording_cursor_seconds=self.recording_cursor_seconds,
            wall_clock_anchor=self.wall_clock_anchor,
            session_number=self.session_number,
        )


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only copy of PlaybackState."""
    is_streaming: bool
    speed_multiplier: float
    recording_cursor_seconds: float
    wall_clock_anchor: Optional[float]
    session_number: int


@dataclass(frozen=True)
class TimebaseTick:
    """One advance of the recording-time cursor."""
    session_number: int
    previous_cursor: float
    cursor: float
    wall_clock: float
    real_elapsed: float  # Actual wall time since the previous tick
    speed_multiplier: float
    reached_end: bool = False


@dataclass(frozen=True)
class SampleBatch:
    """Newly available samples of one channel for one tick."""
    session_number: int
    channel_index: int
    start_sample_index: int
    end_sample_index: int
    values: np.ndarray  # Read-only view into the recording
    recording_time_seconds: float  # Time of the last sample in the batch

    def __len__(self) -> int:
        return self.end_sample_index - self.start_sample_index


@dataclass(frozen=True)
class EndOfRecording:
    """Published once when a session runs out of recording."""
    session_number: int
    cursor: float
    reason: str  # "end_of_recording" | "end_of_data"
    truncated_channels: tuple = ()
