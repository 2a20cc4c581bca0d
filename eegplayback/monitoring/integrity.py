"""Data integrity monitor.

Subscribes to every sample batch of a session and cross-checks it against
the source recording: validity (finite), fidelity (equal to the source
within epsilon) and index-to-time mapping. It keeps running counters, emits
a periodic report every ``report_interval_seconds`` of *recording* time and
one final summary when the session stops or the recording ends.

The monitor is a pure observer. It cannot halt or slow streaming; every
problem it finds is counted, logged and published, never raised.
"""

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

import numpy as np
from pubsub import pub

from ..errors import (
    IntegrityIssue,
    InvalidSampleError,
    FidelityMismatchError,
    IndexMismatchError,
)
from ..models.events import SessionEvent
from ..models.integrity import (
    IntegrityCounters,
    IntegrityReport,
    IntegritySummary,
    TimePointCheck,
)
from ..models.playback import EndOfRecording, SampleBatch, TimebaseTick
from ..models.recording import RecordingBuffer
from ..playback.publisher import PlaybackTopics

logger = logging.getLogger(__name__)


class DataIntegrityMonitor:
    """Validates streamed batches against the recording buffer."""

    def __init__(self,
                 recording: RecordingBuffer,
                 topics: PlaybackTopics,
                 report_interval_seconds: float = 5.0,
                 epsilon: float = 1e-9,
                 zero_tolerance: float = 0.0,
                 time_points: Optional[Sequence[float]] = None,
                 max_logged_issues: int = 10,
                 max_recent_issues: int = 100):
        """Initialize integrity monitor.

        Args:
            recording: Source recording to compare against
            topics: Topics of the session to observe
            report_interval_seconds: Recording time between periodic reports
            epsilon: Largest tolerated difference between streamed and source values
            zero_tolerance: Finite samples with |value| <= this count as zero
            time_points: Recording times (s) to spot-check on the first channel;
                         defaults to every report interval
            max_logged_issues: Issues of each kind logged per session before going quiet
            max_recent_issues: How many issue records to keep
        """
        if report_interval_seconds <= 0:
            raise ValueError(f"Report interval must be positive, got {report_interval_seconds}")

        self.recording = recording
        self.topics = topics
        self.report_interval_seconds = float(report_interval_seconds)
        self.epsilon = epsilon
        self.zero_tolerance = zero_tolerance
        self.max_logged_issues = max_logged_issues

        if time_points is None:
            count = int(recording.duration_seconds // self.report_interval_seconds) + 1
            time_points = [i * self.report_interval_seconds for i in range(count)]
        self.time_points = sorted(t for t in time_points if 0 <= t < recording.duration_seconds)

        self.counters = IntegrityCounters()
        self.recent_issues: Deque[IntegrityIssue] = deque(maxlen=max_recent_issues)
        self.reports: List[IntegrityReport] = []
        self.summary: Optional[IntegritySummary] = None

        self.session_number: Optional[int] = None
        self.is_active = False
        self.elapsed_recording_seconds = 0.0
        self.next_report_at = self.report_interval_seconds
        self._expected_next_index: Dict[int, int] = {}
        self._time_point_checks: Dict[float, TimePointCheck] = {}
        self._logged_issue_counts: Dict[str, int] = {}

        pub.subscribe(self._on_session_event, topics.session)
        pub.subscribe(self._on_batch, topics.batch)
        pub.subscribe(self._on_tick, topics.tick)
        pub.subscribe(self._on_end, topics.end)

        logger.info(f"DataIntegrityMonitor initialized - subscribed to {topics.root} "
                    f"(report every {self.report_interval_seconds}s of recording time)")

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.event_type == "started":
            self._begin(event.session_number, event.cursor)
        elif event.event_type == "stopped":
            self.finalize("stopped", event.cursor)

    def _begin(self, session_number: int, cursor: float) -> None:
        self.session_number = session_number
        self.is_active = True
        self.counters.reset()
        self.recent_issues.clear()
        self.reports = []
        self.summary = None
        self.elapsed_recording_seconds = cursor
        self.next_report_at = (int(cursor // self.report_interval_seconds) + 1) * self.report_interval_seconds
        first_index = int(np.floor(cursor * self.recording.sample_rate_hz))
        self._expected_next_index = {
            channel_index: first_index for channel_index in range(self.recording.channel_count)}
        self._time_point_checks = {}
        self._logged_issue_counts = {}
        logger.info(f"Integrity monitoring started for session {session_number} at {cursor:.3f}s")

    def _accepts(self, session_number: int) -> bool:
        return self.is_active and session_number == self.session_number

    def _on_batch(self, batch: SampleBatch) -> None:
        if self._accepts(batch.session_number):
            self.check_batch(batch)

    def check_batch(self, batch: SampleBatch) -> None:
        """Run all checks on one batch and update the counters."""
        rate = self.recording.sample_rate_hz
        channel_index = batch.channel_index
        start = batch.start_sample_index
        values = np.asarray(batch.values, dtype=np.float64)
        count = len(values)
        if count == 0:
            return

        self._check_continuity(batch)
        if count != batch.end_sample_index - start:
            self.counters.index_mismatch_count += 1
            self._record_issue(IndexMismatchError(
                channel_index, start, batch.recording_time_seconds, start / rate))

        # (a) validity
        finite = np.isfinite(values)
        invalid = ~finite
        zero = finite & (np.abs(values) <= self.zero_tolerance)

        # (b) fidelity against the source buffer
        source = self.recording.read(channel_index, start, start + count)
        if len(source) < count:
            source = np.concatenate([source, np.full(count - len(source), np.nan)])
        with np.errstate(invalid="ignore"):
            mismatch = finite & ~(np.abs(values - source) <= self.epsilon)

        # (c) index-to-time: sample k sits (count-1-k) periods before the batch time
        positions = np.arange(count)
        implied_times = batch.recording_time_seconds - (count - 1 - positions) / rate
        index_times = (start + positions) / rate
        index_mismatch = np.abs(index_times - implied_times) > (1.0 / rate) + 1e-12

        self.counters.total_samples_checked += count
        self.counters.invalid_count += int(invalid.sum())
        self.counters.zero_count += int(zero.sum())
        self.counters.valid_count += int(finite.sum() - zero.sum())
        self.counters.mismatch_count += int(mismatch.sum())
        self.counters.index_mismatch_count += int(index_mismatch.sum())

        for k in np.flatnonzero(invalid)[:self.max_logged_issues]:
            self._record_issue(InvalidSampleError(
                channel_index, start + int(k), float(implied_times[k]), float(values[k])))
        for k in np.flatnonzero(mismatch)[:self.max_logged_issues]:
            self._record_issue(FidelityMismatchError(
                channel_index, start + int(k), float(implied_times[k]),
                float(source[k]), float(values[k])))
        for k in np.flatnonzero(index_mismatch)[:self.max_logged_issues]:
            self._record_issue(IndexMismatchError(
                channel_index, start + int(k), float(implied_times[k]), float(index_times[k])))

        if channel_index == 0:
            self._check_time_points(start, values)

    def _check_continuity(self, batch: SampleBatch) -> None:
        expected = self._expected_next_index.get(batch.channel_index)
        if expected is not None and batch.start_sample_index != expected:
            self.counters.index_mismatch_count += 1
            self._record_issue(IndexMismatchError(
                batch.channel_index, batch.start_sample_index,
                batch.start_sample_index / self.recording.sample_rate_hz,
                expected / self.recording.sample_rate_hz))
        self._expected_next_index[batch.channel_index] = batch.end_sample_index

    def _check_time_points(self, start: int, values: np.ndarray) -> None:
        rate = self.recording.sample_rate_hz
        end = start + len(values)
        for time_point in self.time_points:
            if time_point in self._time_point_checks:
                continue
            target = int(np.floor(time_point * rate))
            if not start <= target < end:
                continue
            original = float(self.recording.channels[0].values[target])
            streamed = float(values[target - start])
            matches = bool(abs(original - streamed) <= self.epsilon)
            self._time_point_checks[time_point] = TimePointCheck(
                time_seconds=time_point,
                sample_index=target,
                original_value=original,
                streamed_value=streamed,
                matches=matches,
            )
            if not matches:
                logger.warning(f"Time point validation failed at {time_point}s: "
                               f"expected {original:.6f}, streamed {streamed:.6f}")

    def _record_issue(self, issue: IntegrityIssue) -> None:
        self.recent_issues.append(issue)
        kind = type(issue).__name__
        logged = self._logged_issue_counts.get(kind, 0)
        if logged < self.max_logged_issues:
            self._logged_issue_counts[kind] = logged + 1
            logger.warning(f"⚠️ {kind}: {issue}")
        pub.sendMessage(self.topics.fault, fault=issue)

    def _on_tick(self, tick: TimebaseTick) -> None:
        if not self._accepts(tick.session_number):
            return
        self.elapsed_recording_seconds = tick.cursor
        while tick.cursor >= self.next_report_at:
            self._emit_report(tick.cursor)
            self.next_report_at += self.report_interval_seconds

    def _emit_report(self, cursor: float) -> IntegrityReport:
        report = IntegrityReport(
            session_number=self.session_number,
            elapsed_recording_seconds=cursor,
            counters=self.counters.snapshot(),
            time_point_checks=self._sorted_time_point_checks(),
        )
        self.reports.append(report)
        logger.info(f"📊 Integrity report at {cursor:.2f}s: "
                    f"{report.counters.total_samples_checked} checked, "
                    f"{report.counters.invalid_count} invalid, "
                    f"{report.counters.mismatch_count} mismatched, "
                    f"{report.counters.index_mismatch_count} index mismatches")
        pub.sendMessage(self.topics.integrity_report, report=report)
        return report

    def _on_end(self, notice: EndOfRecording) -> None:
        if self._accepts(notice.session_number):
            self.finalize(notice.reason, notice.cursor)

    def finalize(self, reason: str, cursor: Optional[float] = None) -> Optional[IntegritySummary]:
        """Emit the final summary once per session.

        Returns:
            The summary, or None if the session was already finalized
        """
        if not self.is_active:
            return None
        self.is_active = False
        if cursor is not None:
            self.elapsed_recording_seconds = cursor

        checks = self._sorted_time_point_checks()
        counters = self.counters.snapshot()
        summary = IntegritySummary(
            session_number=self.session_number,
            elapsed_recording_seconds=self.elapsed_recording_seconds,
            counters=counters,
            overall_pass=not counters.has_failures,
            reason=reason,
            time_point_checks=checks,
            failed_time_points=tuple(c.time_seconds for c in checks if not c.matches),
        )
        self.summary = summary

        if summary.overall_pass:
            logger.info(f"✅ All data integrity checks passed "
                        f"({counters.total_samples_checked} samples, {reason})")
        else:
            logger.warning(f"⚠️ Data integrity issues detected ({reason}): "
                           f"invalid={counters.invalid_count}, "
                           f"mismatches={counters.mismatch_count}, "
                           f"index mismatches={counters.index_mismatch_count}")
        pub.sendMessage(self.topics.integrity_summary, summary=summary)
        return summary

    def _sorted_time_point_checks(self):
        return tuple(self._time_point_checks[t] for t in sorted(self._time_point_checks))

    def shutdown(self) -> None:
        """Unsubscribe from all session topics."""
        for listener, topic in ((self._on_session_event, self.topics.session),
                                (self._on_batch, self.topics.batch),
                                (self._on_tick, self.topics.tick),
                                (self._on_end, self.topics.end)):
            try:
                pub.unsubscribe(listener, topic)
            except Exception as e:
                logger.warning(f"Error during unsubscribe: {e}")
        logger.info("DataIntegrityMonitor shutdown complete")
