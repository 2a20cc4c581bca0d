"""Timebase speed monitor: checks that recording time advances at the configured rate."""

import logging
from typing import List, Optional

from pubsub import pub

from ..models.events import SpeedCheck
from ..models.playback import TimebaseTick
from .publisher import PlaybackTopics

logger = logging.getLogger(__name__)


class TimebaseSpeedMonitor:
    """Compares real-time vs recording-time progression over fixed real-time windows."""

    def __init__(self, topics: PlaybackTopics, window_seconds: float = 2.0,
                 tolerance: float = 0.1):
        """Initialize speed monitor.

        Args:
            topics: Topics of the session to observe
            window_seconds: Real time per check
            tolerance: Allowed |actual - expected| speed ratio difference
        """
        self.topics = topics
        self.window_seconds = window_seconds
        self.tolerance = tolerance
        self.checks: List[SpeedCheck] = []
        self._reset_window(None)

        pub.subscribe(self._on_tick, topics.tick)
        logger.info(f"TimebaseSpeedMonitor initialized: {window_seconds}s windows, "
                    f"tolerance {tolerance}")

    def _reset_window(self, session_number: Optional[int]) -> None:
        self.session_number = session_number
        self.real_elapsed = 0.0
        self.recording_elapsed = 0.0
        self.expected_elapsed = 0.0

    def _on_tick(self, tick: TimebaseTick) -> None:
        if tick.session_number != self.session_number:
            self._reset_window(tick.session_number)
            self.checks = []

        if tick.reached_end:
            # Clamped tick, the window cannot be judged
            self._reset_window(tick.session_number)
            return

        self.real_elapsed += tick.real_elapsed
        self.recording_elapsed += tick.cursor - tick.previous_cursor
        self.expected_elapsed += tick.real_elapsed * tick.speed_multiplier

        if self.real_elapsed >= self.window_seconds:
            self._emit_check()
            self._reset_window(tick.session_number)

    def _emit_check(self) -> SpeedCheck:
        actual = self.recording_elapsed / self.real_elapsed
        expected = self.expected_elapsed / self.real_elapsed
        check = SpeedCheck(
            session_number=self.session_number,
            real_elapsed=self.real_elapsed,
            recording_elapsed=self.recording_elapsed,
            actual_ratio=actual,
            expected_ratio=expected,
            within_tolerance=abs(actual - expected) < self.tolerance,
        )
        self.checks.append(check)
        if check.within_tolerance:
            logger.debug(f"⚡ Speed verification: {actual:.2f}x (expected {expected:.2f}x)")
        else:
            logger.warning(f"⚠️ Speed ratio mismatch: {actual:.2f}x, expected {expected:.2f}x")
        pub.sendMessage(self.topics.speed, check=check)
        return check

    def shutdown(self) -> None:
        try:
            pub.unsubscribe(self._on_tick, self.topics.tick)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
