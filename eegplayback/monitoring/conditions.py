"""Monitored conditions for the event detector."""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..models.playback import SampleBatch

logger = logging.getLogger(__name__)


class MonitoredCondition(ABC):
    """A condition whose window the detector tracks.

    Conditions answer against the recording-time cursor, never the wall clock,
    so detection is replayable.
    """

    def __init__(self, name: str):
        self.name = name

    def reset(self) -> None:
        """Clear per-session state."""

    def observe_batch(self, batch: SampleBatch) -> None:
        """Feed a sample batch; signal-derived conditions override this."""

    @abstractmethod
    def is_active(self, cursor: float) -> bool:
        """Whether the condition holds at recording time ``cursor``."""

    def skipped_windows(self, previous_cursor: float, cursor: float) -> int:
        """Windows that began and ended entirely between two ticks."""
        return 0


class ScheduledWindowCondition(MonitoredCondition):
    """Condition active inside fixed recording-time windows [start, stop)."""

    def __init__(self, windows: Iterable[Tuple[float, float]], name: str = "ischemia"):
        super().__init__(name)
        windows = sorted((float(start), float(stop)) for start, stop in windows)
        for start, stop in windows:
            if stop <= start:
                raise ValueError(f"Window stop must be after start, got [{start}, {stop})")
        for (_, previous_stop), (next_start, _) in zip(windows, windows[1:]):
            if next_start < previous_stop:
                raise ValueError("Scheduled windows must not overlap")
        self.windows: List[Tuple[float, float]] = windows

    @classmethod
    def repeating(cls, until: float, first_start: float = 15.0, duration: float = 5.0,
                  gap: float = 20.0, name: str = "ischemia") -> "ScheduledWindowCondition":
        """Mock schedule: first window at ``first_start``, next one ``gap`` after each stop.

        Windows are generated up to recording time ``until``.
        """
        if duration <= 0 or gap <= 0:
            raise ValueError("Duration and gap must be positive")
        windows = []
        start = first_start
        while start < until:
            windows.append((start, start + duration))
            start += duration + gap
        return cls(windows, name=name)

    def is_active(self, cursor: float) -> bool:
        return any(start <= cursor < stop for start, stop in self.windows)

    def skipped_windows(self, previous_cursor: float, cursor: float) -> int:
        return sum(1 for start, stop in self.windows
                   if previous_cursor < start and stop <= cursor)


class PowerDropCondition(MonitoredCondition):
    """Active while recent signal power is well below the session baseline.

    Baseline is the mean power over the first ``baseline_seconds`` streamed;
    the condition holds when the mean power of the last ``window_seconds``
    dropped by at least ``drop_threshold`` (0.45 = 45%) from it.
    """

    def __init__(self,
                 sample_rate_hz: float,
                 channel_indices: Optional[Sequence[int]] = None,
                 baseline_seconds: float = 5.0,
                 window_seconds: float = 1.0,
                 drop_threshold: float = 0.45,
                 name: str = "ischemia"):
        super().__init__(name)
        if not 0 < drop_threshold < 1:
            raise ValueError(f"Drop threshold must be in (0, 1), got {drop_threshold}")
        self.sample_rate_hz = sample_rate_hz
        self.channel_indices = None if channel_indices is None else set(channel_indices)
        self.baseline_samples = max(1, int(round(baseline_seconds * sample_rate_hz)))
        self.window_samples = max(1, int(round(window_seconds * sample_rate_hz)))
        self.drop_threshold = drop_threshold
        self.reset()

    def reset(self) -> None:
        self._baseline_power: Optional[float] = None
        self._baseline_sum: dict = {}
        self._baseline_count: dict = {}
        self._recent: dict = {}

    @property
    def baseline_power(self) -> Optional[float]:
        return self._baseline_power

    def observe_batch(self, batch: SampleBatch) -> None:
        if self.channel_indices is not None and batch.channel_index not in self.channel_indices:
            return
        values = np.asarray(batch.values, dtype=np.float64)
        power = np.square(values[np.isfinite(values)])
        if len(power) == 0:
            return

        channel = batch.channel_index
        recent: Deque[float] = self._recent.setdefault(channel, deque(maxlen=self.window_samples))
        recent.extend(power.tolist())

        if self._baseline_power is None:
            seen = self._baseline_count.get(channel, 0)
            take = power[:max(0, self.baseline_samples - seen)]
            self._baseline_sum[channel] = self._baseline_sum.get(channel, 0.0) + float(take.sum())
            self._baseline_count[channel] = seen + len(take)
            if all(count >= self.baseline_samples for count in self._baseline_count.values()):
                total = sum(self._baseline_sum.values())
                self._baseline_power = total / sum(self._baseline_count.values())
                logger.info(f"Power baseline for '{self.name}': {self._baseline_power:.3f}")

    def current_power(self) -> Optional[float]:
        windows = [w for w in self._recent.values() if len(w) == self.window_samples]
        if not windows:
            return None
        return float(np.mean([np.mean(w) for w in windows]))

    def relative_drop(self) -> Optional[float]:
        current = self.current_power()
        if self._baseline_power is None or current is None or self._baseline_power <= 0:
            return None
        return 1.0 - current / self._baseline_power

    def is_active(self, cursor: float) -> bool:
        drop = self.relative_drop()
        return drop is not None and drop >= self.drop_threshold
