"""Event models published by the playback engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class EventKind(Enum):
    """Boundary of a monitored condition window."""
    START = "start"
    STOP = "stop"


@dataclass(frozen=True)
class IschemiaEvent:
    """A detected start/stop boundary."""
    kind: EventKind
    time_seconds: float  # Recording time of the detecting tick
    condition: str = "ischemia"
    session_number: int = 0
    detected_at_wall_clock: datetime = field(default_factory=datetime.now)


@dataclass
class IschemiaEpisode:
    """A start event paired with its stop (open while end_time is None)."""
    condition: str
    start_time: float
    end_time: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time


@dataclass
class SessionEvent:
    """Session lifecycle event."""
    session_number: int
    event_type: str  # "started", "stopped"
    cursor: float = 0.0
    resumed: bool = False
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SpeedCheck:
    """Measured vs configured playback speed over a real-time window."""
    session_number: int
    real_elapsed: float
    recording_elapsed: float
    actual_ratio: float
    expected_ratio: float
    within_tolerance: bool
