"""Data models for the EEG playback engine."""

from .recording import ChannelSamples, RecordingBuffer
from .playback import (
    PlaybackState,
    PlaybackSnapshot,
    TimebaseTick,
    SampleBatch,
    EndOfRecording,
)
from .integrity import (
    IntegrityCounters,
    TimePointCheck,
    IntegrityReport,
    IntegritySummary,
)
from .events import (
    EventKind,
    IschemiaEvent,
    IschemiaEpisode,
    SessionEvent,
    SpeedCheck,
)

__all__ = [
    "ChannelSamples",
    "RecordingBuffer",
    "PlaybackState",
    "PlaybackSnapshot",
    "TimebaseTick",
    "SampleBatch",
    "EndOfRecording",
    # Integrity
    "IntegrityCounters",
    "TimePointCheck",
    "IntegrityReport",
    "IntegritySummary",
    # Events
    "EventKind",
    "IschemiaEvent",
    "IschemiaEpisode",
    "SessionEvent",
    "SpeedCheck",
]
