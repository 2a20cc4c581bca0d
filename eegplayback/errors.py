"""Error taxonomy for the playback engine.

Integrity issues and out-of-range reads are observational: the engine
builds them as records, logs and publishes them, and keeps streaming.
Only construction errors and detector faults from externally reported
detections are raised.
"""

from typing import Optional


class PlaybackError(Exception):
    """Base class for all playback engine errors."""


class RecordingError(PlaybackError, ValueError):
    """A decoded recording violates the buffer invariants."""


class IntegrityIssue(PlaybackError):
    """A streamed sample failed one of the integrity checks."""

    def __init__(self, message: str, channel_index: int, sample_index: int,
                 recording_time: float):
        super().__init__(message)
        self.channel_index = channel_index
        self.sample_index = sample_index
        self.recording_time = recording_time


class InvalidSampleError(IntegrityIssue):
    """NaN or non-finite sample encountered in a batch."""

    def __init__(self, channel_index: int, sample_index: int,
                 recording_time: float, value: float):
        super().__init__(
            f"Invalid sample {value!r} on channel {channel_index} at index {sample_index}",
            channel_index, sample_index, recording_time)
        self.value = value


class FidelityMismatchError(IntegrityIssue):
    """Streamed value diverges from the source recording."""

    def __init__(self, channel_index: int, sample_index: int,
                 recording_time: float, expected: float, actual: float):
        super().__init__(
            f"Sample mismatch on channel {channel_index} at index {sample_index}: "
            f"expected {expected!r}, streamed {actual!r}",
            channel_index, sample_index, recording_time)
        self.expected = expected
        self.actual = actual


class IndexMismatchError(IntegrityIssue):
    """Sample position does not correspond to the expected recording time."""

    def __init__(self, channel_index: int, sample_index: int,
                 recording_time: float, expected_time: float):
        super().__init__(
            f"Index {sample_index} on channel {channel_index} maps to "
            f"{expected_time:.4f}s but was streamed at {recording_time:.4f}s",
            channel_index, sample_index, recording_time)
        self.expected_time = expected_time


class OutOfRangeRead(PlaybackError):
    """A batch requested samples beyond the end of a channel.

    Expected once at the end of a recording; the batch is truncated.
    """

    def __init__(self, channel_index: int, requested_end: int, available: int,
                 cursor: float, message: Optional[str] = None):
        super().__init__(message or (
            f"Channel {channel_index} read to index {requested_end} "
            f"but only {available} samples are available (cursor {cursor:.3f}s)"))
        self.channel_index = channel_index
        self.requested_end = requested_end
        self.available = available
        self.cursor = cursor


class ShortReadError(OutOfRangeRead):
    """Out-of-range read before the recording end; indicates a bug upstream."""


class DetectorFault(PlaybackError):
    """A detection would break strict start/stop alternation."""

    def __init__(self, condition: str, kind: str, time_seconds: float, state: str):
        super().__init__(
            f"Detector fault on '{condition}': {kind} at {time_seconds:.2f}s "
            f"while {state}")
        self.condition = condition
        self.kind = kind
        self.time_seconds = time_seconds
        self.state = state
