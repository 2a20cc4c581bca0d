"""Playback session service: owns the playback state and wires the engine to its observers."""

import time
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import EEGPlaybackConfig
from ..display.buffer import RollingTraceBuffer
from ..models.events import SessionEvent
from ..models.playback import EndOfRecording, PlaybackSnapshot, PlaybackState, TimebaseTick
from ..models.recording import RecordingBuffer
from ..monitoring.conditions import MonitoredCondition, PowerDropCondition, ScheduledWindowCondition
from ..monitoring.events import EventDetector
from ..monitoring.integrity import DataIntegrityMonitor
from ..playback.publisher import PlaybackPublisher, PlaybackTopics, install_listener_exception_handler
from ..playback.speed_monitor import TimebaseSpeedMonitor
from ..playback.streaming import StreamingEngine
from ..playback.timebase import BASE_DISPLAY_RATE_MM_PER_SEC, TimebaseController

logger = logging.getLogger(__name__)


class PlaybackSession:
    """Streams one recording: timebase, streaming engine and their subscribers.

    All mutation happens under ``self.lock`` from whichever thread drives the
    ticks, so controls called from other threads never interleave with a tick.
    """

    def __init__(self,
                 recording: RecordingBuffer,
                 config: Optional[EEGPlaybackConfig] = None,
                 clock: Callable[[], float] = time.monotonic,
                 topics: Optional[PlaybackTopics] = None,
                 conditions: Optional[Sequence[MonitoredCondition]] = None):
        """Initialize playback session.

        Args:
            recording: Decoded recording to stream
            config: Application configuration (defaults apply when None)
            clock: Monotonic wall clock in seconds
            topics: Topic names; defaults to the ``eegplayback`` root
            conditions: Conditions for the event detector; built from config when None
        """
        self.config = config or EEGPlaybackConfig()
        self.clock = clock
        self.topics = topics or PlaybackTopics()
        self.tick_interval = self.config.get_tick_interval()
        self.lock = threading.RLock()
        self._custom_conditions = list(conditions) if conditions is not None else None

        install_listener_exception_handler()
        self.publisher = PlaybackPublisher(self.topics)

        logger.info("Initializing PlaybackSession...")
        self._build(recording)
        logger.info("PlaybackSession ready")

    def _build(self, recording: RecordingBuffer) -> None:
        self.recording = recording
        self.state = PlaybackState()

        self.timebase = TimebaseController(
            self.state,
            recording.duration_seconds,
            clock=self.clock,
            base_display_rate=self.config.get('playback.base_display_rate_mm_per_sec',
                                              BASE_DISPLAY_RATE_MM_PER_SEC),
            playback_speed=self.config.get('playback.playback_speed', 1.0),
        )
        self.timebase.set_speed_from_display_rate(
            self.config.get('playback.display_rate_mm_per_sec', BASE_DISPLAY_RATE_MM_PER_SEC))
        self.engine = StreamingEngine(recording, self.state, self.publisher)

        # Subscription order is delivery order
        self.integrity_monitor = DataIntegrityMonitor(
            recording,
            self.topics,
            report_interval_seconds=self.config.get('integrity.report_interval_seconds', 5.0),
            epsilon=self.config.get('integrity.epsilon', 1e-9),
            zero_tolerance=self.config.get('integrity.zero_tolerance', 0.0),
            time_points=self.config.get('integrity.time_points_seconds'),
            max_logged_issues=self.config.get('integrity.max_logged_issues', 10),
        )
        conditions = self._custom_conditions
        if conditions is None:
            conditions = self._conditions_from_config(recording)
        self.event_detector = EventDetector(self.topics, conditions)
        self.trace_buffer = RollingTraceBuffer(
            self.topics,
            recording.sample_rate_hz,
            duration_seconds=self.config.get('display.buffer_seconds', 60.0),
        )
        self.speed_monitor = TimebaseSpeedMonitor(
            self.topics,
            window_seconds=self.config.get('speed_monitor.window_seconds', 2.0),
            tolerance=self.config.get('speed_monitor.tolerance', 0.1),
        )

    def _conditions_from_config(self, recording: RecordingBuffer) -> List[MonitoredCondition]:
        conditions: List[MonitoredCondition] = []

        schedule = self.config.get('events.schedule')
        if schedule:
            windows = [(window['start'], window['stop']) for window in schedule]
            conditions.append(ScheduledWindowCondition(windows))
        else:
            repeating = self.config.get('events.repeating', {}) or {}
            conditions.append(ScheduledWindowCondition.repeating(
                until=recording.duration_seconds,
                first_start=repeating.get('first_start', 15.0),
                duration=repeating.get('duration', 5.0),
                gap=repeating.get('gap', 20.0),
            ))

        power_drop = self.config.get('events.power_drop', {}) or {}
        if power_drop.get('enabled', False):
            conditions.append(PowerDropCondition(
                recording.sample_rate_hz,
                baseline_seconds=power_drop.get('baseline_seconds', 5.0),
                window_seconds=power_drop.get('window_seconds', 1.0),
                drop_threshold=power_drop.get('drop_threshold', 0.45),
                name="power_drop",
            ))
        return conditions

    @property
    def is_streaming(self) -> bool:
        return self.state.is_streaming

    @property
    def cursor(self) -> float:
        return self.state.recording_cursor_seconds

    def snapshot(self) -> PlaybackSnapshot:
        """Read-only view of the playback state."""
        with self.lock:
            return self.state.snapshot()

    def start(self, resume: bool = False, now: Optional[float] = None) -> Dict[str, Any]:
        """Start streaming.

        Args:
            resume: Continue from the current cursor (counters still reset)
            now: Wall clock reading; defaults to the session clock

        Returns:
            Result dictionary with success status and details
        """
        with self.lock:
            if not self.timebase.start(resume=resume, now=now):
                return {
                    "success": False,
                    "error": "Already streaming",
                    "session_number": self.state.session_number,
                }

            self.engine.begin_session()
            self.publisher.publish_session_event(SessionEvent(
                session_number=self.state.session_number,
                event_type="started",
                cursor=self.state.recording_cursor_seconds,
                resumed=resume,
            ))

            logger.info(f"Started streaming session {self.state.session_number}")
            return {
                "success": True,
                "session_number": self.state.session_number,
                "cursor": self.state.recording_cursor_seconds,
                "resumed": resume,
                "started_at": datetime.now().isoformat(),
            }

    def stop(self) -> Dict[str, Any]:
        """Stop streaming; no further batches or counter updates for this session.

        Returns:
            Result dictionary with the final integrity summary
        """
        with self.lock:
            if not self.timebase.stop():
                return {
                    "success": False,
                    "error": "Not streaming",
                }

            self._publish_stopped("stopped")
            logger.info(f"Session stopped: {self.state.session_number}")
            return {
                "success": True,
                "session_number": self.state.session_number,
                "cursor": self.state.recording_cursor_seconds,
                "stopped_at": datetime.now().isoformat(),
                "integrity_summary": self.integrity_monitor.summary,
            }

    def set_speed(self, multiplier: float) -> None:
        with self.lock:
            self.timebase.set_speed(multiplier)

    def set_speed_from_display_rate(self, mm_per_second: float) -> float:
        with self.lock:
            return self.timebase.set_speed_from_display_rate(mm_per_second)

    def tick(self, now: Optional[float] = None) -> Optional[TimebaseTick]:
        """Run one tick: advance the cursor, stream batches, publish the tick.

        A subscriber that stops the session mid-tick ends the tick there:
        nothing further from it is published.

        Returns:
            The tick, or None when not streaming
        """
        with self.lock:
            tick = self.timebase.tick(now)
            if tick is None:
                return None

            result = self.engine.process_tick(tick)
            if not self.engine.is_current(tick.session_number):
                return tick
            self.publisher.publish_tick(tick)
            if not self.engine.is_current(tick.session_number):
                return tick

            if tick.reached_end or result.end_of_data:
                self.timebase.finish()
                notice = EndOfRecording(
                    session_number=tick.session_number,
                    cursor=tick.cursor,
                    reason="end_of_recording" if tick.reached_end else "end_of_data",
                    truncated_channels=result.truncated_channels,
                )
                self.publisher.publish_end(notice)
                self._publish_stopped(notice.reason)
                logger.info(f"Session {tick.session_number} reached end at {tick.cursor:.3f}s")
            return tick

    def _publish_stopped(self, reason: str) -> None:
        self.publisher.publish_session_event(SessionEvent(
            session_number=self.state.session_number,
            event_type="stopped",
            cursor=self.state.recording_cursor_seconds,
            metadata={"reason": reason},
        ))

    def load_recording(self, recording: RecordingBuffer) -> None:
        """Replace the recording wholesale; stops any running session."""
        with self.lock:
            if self.state.is_streaming:
                self.stop()
            self._shutdown_components()
            self._build(recording)
            logger.info(f"Loaded new recording: {recording.channel_count} channels, "
                        f"{recording.duration_seconds}s")

    def _shutdown_components(self) -> None:
        self.integrity_monitor.shutdown()
        self.event_detector.shutdown()
        self.trace_buffer.shutdown()
        self.speed_monitor.shutdown()

    def shutdown(self) -> None:
        """Stop streaming and unsubscribe every observer."""
        with self.lock:
            if self.state.is_streaming:
                self.stop()
            self._shutdown_components()
            logger.info("PlaybackSession shut down")
