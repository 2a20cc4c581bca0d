"""Timebase controller: maps wall-clock time to recording time."""

import time
import logging
from typing import Callable, Optional

from ..models.playback import PlaybackState, TimebaseTick

logger = logging.getLogger(__name__)

# 30mm/sec is standard EEG paper speed (1x)
BASE_DISPLAY_RATE_MM_PER_SEC = 30.0


def display_rate_to_multiplier(mm_per_second: float,
                               base_mm_per_second: float = BASE_DISPLAY_RATE_MM_PER_SEC) -> float:
    """Convert a display timebase to a playback speed multiplier.

    30mm/sec = 1x, 60mm/sec = 2x, 15mm/sec = 0.5x.
    """
    if mm_per_second is None or mm_per_second <= 0:
        raise ValueError(f"Display rate must be positive, got {mm_per_second}")
    if base_mm_per_second <= 0:
        raise ValueError(f"Base display rate must be positive, got {base_mm_per_second}")
    return float(mm_per_second) / float(base_mm_per_second)


class TimebaseController:
    """Advances the recording-time cursor on each tick while streaming.

    The cursor advances by the *measured* wall time since the previous tick
    times the speed multiplier, so scheduling jitter does not cause drift.
    """

    def __init__(self,
                 state: PlaybackState,
                 duration_seconds: float,
                 clock: Callable[[], float] = time.monotonic,
                 base_display_rate: float = BASE_DISPLAY_RATE_MM_PER_SEC,
                 playback_speed: float = 1.0):
        """Initialize timebase controller.

        Args:
            state: Session-owned playback state (mutated here)
            duration_seconds: Recording duration; the cursor is clamped to it
            clock: Monotonic wall clock in seconds
            base_display_rate: Display rate (mm/sec) that maps to 1x
            playback_speed: Extra multiplier applied on top of the display rate
        """
        self.state = state
        self.duration_seconds = float(duration_seconds)
        self.clock = clock
        self.base_display_rate = base_display_rate
        self.playback_speed = playback_speed

    @property
    def cursor(self) -> float:
        """Current recording time in seconds."""
        return self.state.recording_cursor_seconds

    @property
    def is_streaming(self) -> bool:
        return self.state.is_streaming

    @property
    def speed_multiplier(self) -> float:
        return self.state.speed_multiplier

    def start(self, resume: bool = False, now: Optional[float] = None) -> bool:
        """Start a new streaming session.

        Args:
            resume: Keep the cursor where the last session stopped
            now: Wall clock reading; defaults to the controller's clock

        Returns:
            True if a session started, False if already streaming
        """
        if self.state.is_streaming:
            logger.warning("Start requested while already streaming; ignoring")
            return False

        if not resume or self.state.recording_cursor_seconds >= self.duration_seconds:
            self.state.recording_cursor_seconds = 0.0

        now = self.clock() if now is None else now
        self.state.session_number += 1
        self.state.wall_clock_anchor = now
        self.state.last_tick_wall_clock = now
        self.state.is_streaming = True

        logger.info(f"Timebase started: session {self.state.session_number}, "
                    f"cursor {self.state.recording_cursor_seconds:.3f}s, "
                    f"speed {self.state.speed_multiplier:.2f}x")
        return True

    def stop(self) -> bool:
        """Stop streaming. Returns False if not streaming."""
        if not self.state.is_streaming:
            return False
        self.state.is_streaming = False
        logger.info(f"Timebase stopped at {self.state.recording_cursor_seconds:.3f}s")
        return True

    def set_speed(self, multiplier: float) -> None:
        """Set the speed multiplier; takes effect on the next tick."""
        if multiplier is None or multiplier <= 0:
            raise ValueError(f"Speed multiplier must be positive, got {multiplier}")
        self.state.speed_multiplier = float(multiplier)
        logger.info(f"Playback speed set to {self.state.speed_multiplier:.2f}x")

    def set_speed_from_display_rate(self, mm_per_second: float) -> float:
        """Set the speed from a display timebase (e.g. 60mm/sec -> 2x).

        Returns:
            The resulting speed multiplier
        """
        multiplier = self.playback_speed * display_rate_to_multiplier(
            mm_per_second, self.base_display_rate)
        self.set_speed(multiplier)
        return multiplier

    def tick(self, now: Optional[float] = None) -> Optional[TimebaseTick]:
        """Advance the cursor by the elapsed wall time times the speed.

        Returns:
            The tick, or None when not streaming
        """
        if not self.state.is_streaming:
            return None

        now = self.clock() if now is None else now
        last = self.state.last_tick_wall_clock
        real_elapsed = max(0.0, now - last) if last is not None else 0.0

        previous = self.state.recording_cursor_seconds
        cursor = min(previous + real_elapsed * self.state.speed_multiplier,
                     self.duration_seconds)
        reached_end = cursor >= self.duration_seconds

        self.state.recording_cursor_seconds = cursor
        self.state.last_tick_wall_clock = now
        if reached_end:
            self.state.is_streaming = False
            logger.info(f"Reached end of recording at {cursor:.3f}s")

        return TimebaseTick(
            session_number=self.state.session_number,
            previous_cursor=previous,
            cursor=cursor,
            wall_clock=now,
            real_elapsed=real_elapsed,
            speed_multiplier=self.state.speed_multiplier,
            reached_end=reached_end,
        )

    def finish(self) -> None:
        """End the session early because the data ran out."""
        if self.state.is_streaming:
            self.state.is_streaming = False
            logger.info(f"Streaming finished at {self.state.recording_cursor_seconds:.3f}s (end of data)")
