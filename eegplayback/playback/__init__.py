"""Timebase, streaming engine and publishing for recording playback."""

from .publisher import PlaybackPublisher, PlaybackTopics
from .timebase import TimebaseController, display_rate_to_multiplier
from .streaming import StreamingEngine, StreamResult
from .speed_monitor import TimebaseSpeedMonitor

__all__ = [
    "PlaybackPublisher",
    "PlaybackTopics",
    "TimebaseController",
    "display_rate_to_multiplier",
    "StreamingEngine",
    "StreamResult",
    "TimebaseSpeedMonitor",
]
