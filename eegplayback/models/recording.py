"""Recording buffer data models."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Tuple

import numpy as np

from ..errors import RecordingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelSamples:
    """One decoded channel: a label and its samples (NaN marks invalid)."""
    label: str
    values: np.ndarray

    def __post_init__(self):
        values = np.array(self.values, dtype=np.float64)
        if values.ndim != 1:
            raise RecordingError(f"Channel '{self.label}' samples must be one-dimensional")
        values.setflags(write=False)
        object.__setattr__(self, "values", values)

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class RecordingBuffer:
    """Immutable in-memory recording shared read-only by a playback session."""
    channels: Tuple[ChannelSamples, ...]
    sample_rate_hz: float
    duration_seconds: float

    def __post_init__(self):
        object.__setattr__(self, "channels", tuple(self.channels))
        if not self.sample_rate_hz or self.sample_rate_hz <= 0:
            raise RecordingError(f"Sample rate must be positive, got {self.sample_rate_hz}")
        if not self.duration_seconds or self.duration_seconds <= 0:
            raise RecordingError(f"Duration must be positive, got {self.duration_seconds}")
        if not self.channels:
            raise RecordingError("Recording has no channels")

        expected = self.expected_sample_count
        for index, channel in enumerate(self.channels):
            if len(channel) != expected:
                raise RecordingError(
                    f"Channel {index} ('{channel.label}') has {len(channel)} samples, "
                    f"expected {expected} ({self.duration_seconds}s at {self.sample_rate_hz}Hz)")

    @property
    def expected_sample_count(self) -> int:
        return int(round(self.duration_seconds * self.sample_rate_hz))

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(channel.label for channel in self.channels)

    def read(self, channel_index: int, start: int, end: int) -> np.ndarray:
        """Return a read-only view of samples [start, end), clipped to the channel.

        Args:
            channel_index: Index into ``channels``
            start: First absolute sample index
            end: One past the last absolute sample index

        Returns:
            Read-only numpy view; shorter than requested when ``end`` is past the data
        """
        if not 0 <= channel_index < len(self.channels):
            raise ValueError(f"Unknown channel index {channel_index}")
        values = self.channels[channel_index].values
        start = max(0, min(start, len(values)))
        end = max(start, min(end, len(values)))
        return values[start:end]

    @classmethod
    def from_decoded(cls, decoded: Mapping[str, Any]) -> "RecordingBuffer":
        """Build a buffer from the file parser's output.

        Accepts ``{channels: [{label, values}], sampleRateHz, durationSeconds}``
        (snake_case keys work too). Channels without samples are skipped.
        """
        sample_rate = _first_key(decoded, "sampleRateHz", "sample_rate_hz")
        duration = _first_key(decoded, "durationSeconds", "duration_seconds")
        raw_channels: Sequence[Mapping[str, Any]] = decoded.get("channels") or []

        channels = []
        skipped = []
        for index, raw in enumerate(raw_channels):
            label = raw.get("label") or f"Channel-{index}"
            values = raw.get("values")
            if values is None or len(values) == 0:
                skipped.append(label)
                continue
            channels.append(ChannelSamples(label=label, values=values))

        if skipped:
            logger.warning(f"Skipping {len(skipped)} channels without data: {skipped}")
        if not channels:
            raise RecordingError("No valid channels with data found in decoded recording")

        logger.info(f"Loaded recording: {len(channels)} channels, {sample_rate}Hz, {duration}s")
        return cls(channels=tuple(channels), sample_rate_hz=float(sample_rate),
                   duration_seconds=float(duration))


def _first_key(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in mapping:
            return mapping[key]
    raise RecordingError(f"Decoded recording is missing '{keys[0]}'")
