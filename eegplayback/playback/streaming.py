"""Streaming engine: slices newly elapsed recording time into sample batches."""

import math
import logging
from typing import List, NamedTuple, Optional

from ..errors import OutOfRangeRead, ShortReadError
from ..models.playback import PlaybackState, SampleBatch, TimebaseTick
from ..models.recording import RecordingBuffer
from .publisher import PlaybackPublisher

logger = logging.getLogger(__name__)


class StreamResult(NamedTuple):
    """What one tick produced."""
    batches: List[SampleBatch]
    end_of_data: bool
    truncated_channels: tuple


class StreamingEngine:
    """Computes per-channel sample ranges for each tick and publishes them."""

    def __init__(self,
                 recording: RecordingBuffer,
                 state: PlaybackState,
                 publisher: Optional[PlaybackPublisher] = None):
        """Initialize streaming engine.

        Args:
            recording: Read-only source recording
            state: Session-owned playback state (next sample indices live here)
            publisher: Where batches go; None keeps batches local (returned only)
        """
        self.recording = recording
        self.state = state
        self.publisher = publisher
        self.read_faults: List[OutOfRangeRead] = []
        self.total_emitted: List[int] = [0] * recording.channel_count

    def begin_session(self) -> None:
        """Align every channel's next sample index with the current cursor."""
        first_index = int(math.floor(self.state.recording_cursor_seconds * self.recording.sample_rate_hz))
        self.state.next_sample_indices = [first_index] * self.recording.channel_count
        self.total_emitted = [0] * self.recording.channel_count
        self.read_faults.clear()
        logger.debug(f"Streaming engine aligned to sample index {first_index}")

    def process_tick(self, tick: TimebaseTick) -> StreamResult:
        """Emit the samples between the previous and the new cursor.

        Batches go out in channel order, synchronously, before this returns.
        Reads past the end of a channel are truncated; at the recording end
        that is expected, mid-stream it is reported as a ShortReadError.
        """
        rate = self.recording.sample_rate_hz
        end_index = int(math.floor(tick.cursor * rate))

        batches: List[SampleBatch] = []
        truncated = []
        for channel_index, channel in enumerate(self.recording.channels):
            start = self.state.next_sample_indices[channel_index]
            end = end_index
            if end <= start:
                continue

            available = len(channel)
            if end > available:
                self._record_out_of_range(tick, channel_index, end, available)
                truncated.append(channel_index)
                end = available
                if end <= start:
                    continue

            batch = SampleBatch(
                session_number=tick.session_number,
                channel_index=channel_index,
                start_sample_index=start,
                end_sample_index=end,
                values=self.recording.read(channel_index, start, end),
                recording_time_seconds=(end - 1) / rate,
            )
            self.state.next_sample_indices[channel_index] = end
            self.total_emitted[channel_index] += end - start
            batches.append(batch)

        if self.publisher is not None:
            for batch in batches:
                # A subscriber may stop the session partway through the tick
                if not self.is_current(tick.session_number):
                    logger.debug(f"Session {tick.session_number} stopped mid-tick, "
                                 f"dropping batch for channel {batch.channel_index}")
                    break
                self.publisher.publish_batch(batch)

        end_of_data = all(
            next_index >= len(channel)
            for next_index, channel in zip(self.state.next_sample_indices, self.recording.channels))
        return StreamResult(batches=batches, end_of_data=end_of_data,
                            truncated_channels=tuple(truncated))

    def is_current(self, session_number: int) -> bool:
        """True while the given session is still the one streaming."""
        return self.state.is_streaming and self.state.session_number == session_number

    def _record_out_of_range(self, tick: TimebaseTick, channel_index: int,
                             requested_end: int, available: int) -> None:
        if tick.reached_end:
            fault = OutOfRangeRead(channel_index, requested_end, available, tick.cursor)
            logger.info(f"End of data: {fault}")
        else:
            fault = ShortReadError(channel_index, requested_end, available, tick.cursor)
            logger.error(f"Mid-stream short read: {fault}")
        self.read_faults.append(fault)
        if self.publisher is not None:
            self.publisher.publish_fault(fault)
