"""Rolling trace buffer feeding the waveform renderer."""

import logging
import threading
from collections import deque
from typing import Deque, Dict, Optional, Tuple

import numpy as np
from pubsub import pub

from ..models.events import SessionEvent
from ..models.playback import SampleBatch
from ..playback.publisher import PlaybackTopics

logger = logging.getLogger(__name__)


class RollingTraceBuffer:
    """Keeps the most recent ``duration_seconds`` of streamed samples per channel.

    Batches are copied on arrival; the buffer never holds on to a batch.
    """

    def __init__(self, topics: PlaybackTopics, sample_rate_hz: float,
                 duration_seconds: float = 60.0):
        """Initialize rolling trace buffer.

        Args:
            topics: Topics of the session to observe
            sample_rate_hz: Recording sample rate
            duration_seconds: How many seconds of trace to keep per channel
        """
        self.topics = topics
        self.sample_rate_hz = sample_rate_hz
        self.duration_seconds = duration_seconds
        self.max_samples = int(duration_seconds * sample_rate_hz)

        # Renderer reads may come from another thread
        self.lock = threading.Lock()
        self.traces: Dict[int, Deque[Tuple[float, float]]] = {}
        self.session_number: Optional[int] = None

        pub.subscribe(self._on_session_event, topics.session)
        pub.subscribe(self._on_batch, topics.batch)

        logger.info(f"RollingTraceBuffer initialized: {duration_seconds}s capacity, "
                    f"{self.max_samples} samples per channel max")

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.event_type != "started":
            return
        with self.lock:
            self.session_number = event.session_number
            if not event.resumed:
                self.traces.clear()

    def _on_batch(self, batch: SampleBatch) -> None:
        if batch.session_number != self.session_number:
            return
        times = np.arange(batch.start_sample_index, batch.end_sample_index) / self.sample_rate_hz
        points = list(zip(times.tolist(), np.asarray(batch.values, dtype=np.float64).tolist()))
        with self.lock:
            trace = self.traces.setdefault(batch.channel_index, deque(maxlen=self.max_samples))
            trace.extend(points)

        logger.debug(f"Added {len(points)} points to channel {batch.channel_index}")

    def get_window(self, channel_index: int,
                   duration_seconds: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Get the latest window of a channel's trace.

        Args:
            channel_index: Channel to read
            duration_seconds: How many seconds back from the newest point; all if None

        Returns:
            Tuple of (times, values) arrays, oldest first
        """
        with self.lock:
            points = list(self.traces.get(channel_index, ()))

        if not points:
            return np.empty(0), np.empty(0)

        times, values = (np.array(column) for column in zip(*points))
        if duration_seconds is not None:
            keep = times > times[-1] - duration_seconds
            times, values = times[keep], values[keep]
        return times, values

    def get_buffer_stats(self) -> dict:
        """Get buffer statistics."""
        with self.lock:
            lengths = {channel: len(trace) for channel, trace in self.traces.items()}
            oldest = min((trace[0][0] for trace in self.traces.values() if trace), default=None)
            newest = max((trace[-1][0] for trace in self.traces.values() if trace), default=None)

        return {
            "channel_count": len(lengths),
            "samples_per_channel": lengths,
            "oldest_time": oldest,
            "newest_time": newest,
            "capacity_seconds": self.duration_seconds,
            "capacity_samples": self.max_samples,
        }

    def clear(self) -> None:
        """Clear the buffer."""
        with self.lock:
            self.traces.clear()
            logger.debug("Trace buffer cleared")

    def shutdown(self) -> None:
        for listener, topic in ((self._on_session_event, self.topics.session),
                                (self._on_batch, self.topics.batch)):
            try:
                pub.unsubscribe(listener, topic)
            except Exception as e:
                logger.warning(f"Error during unsubscribe: {e}")
