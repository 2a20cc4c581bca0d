"""Integrity monitoring data models."""

from dataclasses import dataclass, replace
from typing import Optional, Tuple


@dataclass
class IntegrityCounters:
    """Running tallies for one streaming session."""
    total_samples_checked: int = 0
    valid_count: int = 0
    invalid_count: int = 0
    zero_count: int = 0
    mismatch_count: int = 0
    index_mismatch_count: int = 0

    def snapshot(self) -> "IntegrityCounters":
        return replace(self)

    def reset(self) -> None:
        self.total_samples_checked = 0
        self.valid_count = 0
        self.invalid_count = 0
        self.zero_count = 0
        self.mismatch_count = 0
        self.index_mismatch_count = 0

    @property
    def has_failures(self) -> bool:
        return (self.invalid_count > 0 or self.mismatch_count > 0
                or self.index_mismatch_count > 0)

    @property
    def valid_percentage(self) -> float:
        if self.total_samples_checked == 0:
            return 0.0
        return 100.0 * self.valid_count / self.total_samples_checked


@dataclass(frozen=True)
class TimePointCheck:
    """Comparison of the streamed and source sample at a fixed recording time."""
    time_seconds: float
    sample_index: int
    original_value: float
    streamed_value: float
    matches: bool


@dataclass(frozen=True)
class IntegrityReport:
    """Periodic snapshot, emitted every report interval of recording time."""
    session_number: int
    elapsed_recording_seconds: float
    counters: IntegrityCounters
    time_point_checks: Tuple[TimePointCheck, ...] = ()


@dataclass(frozen=True)
class IntegritySummary:
    """Final report for a session."""
    session_number: int
    elapsed_recording_seconds: float
    counters: IntegrityCounters
    overall_pass: bool
    reason: str  # "stopped" | "end_of_recording" | "end_of_data"
    time_point_checks: Tuple[TimePointCheck, ...] = ()
    failed_time_points: Optional[Tuple[float, ...]] = None
