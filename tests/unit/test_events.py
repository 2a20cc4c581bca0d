"""Unit tests for monitored conditions and the EventDetector."""

import numpy as np
import pytest

from eegplayback.errors import DetectorFault
from eegplayback.models.events import EventKind, SessionEvent
from eegplayback.models.playback import SampleBatch, TimebaseTick
from eegplayback.monitoring.conditions import PowerDropCondition, ScheduledWindowCondition
from eegplayback.monitoring.events import DetectorState, EventDetector
from eegplayback.playback.publisher import PlaybackPublisher


def _tick(previous, cursor, session_number=1):
    return TimebaseTick(session_number=session_number, previous_cursor=previous, cursor=cursor,
                        wall_clock=cursor, real_elapsed=cursor - previous, speed_multiplier=1.0)


def _batch(values, start=0, channel_index=0, rate=100.0):
    return SampleBatch(session_number=1, channel_index=channel_index, start_sample_index=start,
                       end_sample_index=start + len(values), values=np.asarray(values, dtype=float),
                       recording_time_seconds=(start + len(values) - 1) / rate)


@pytest.fixture
def detector(topics):
    detector = EventDetector(topics, [ScheduledWindowCondition([(15.0, 20.0)])])
    PlaybackPublisher(topics).publish_session_event(SessionEvent(session_number=1, event_type="started"))
    yield detector
    detector.shutdown()


def _run_ticks(topics, cursors, session_number=1):
    publisher = PlaybackPublisher(topics)
    previous = 0.0
    for cursor in cursors:
        publisher.publish_tick(_tick(previous, cursor, session_number))
        previous = cursor


@pytest.mark.unit
class TestScheduledWindowCondition:
    """Test cases for ScheduledWindowCondition."""

    def test_window_is_half_open(self):
        condition = ScheduledWindowCondition([(15.0, 20.0)])
        assert not condition.is_active(14.99)
        assert condition.is_active(15.0)
        assert condition.is_active(19.99)
        assert not condition.is_active(20.0)

    def test_rejects_empty_window(self):
        with pytest.raises(ValueError):
            ScheduledWindowCondition([(5.0, 5.0)])

    def test_rejects_overlap(self):
        with pytest.raises(ValueError, match="overlap"):
            ScheduledWindowCondition([(0.0, 10.0), (5.0, 12.0)])

    def test_repeating_schedule(self):
        condition = ScheduledWindowCondition.repeating(until=70.0)
        assert condition.windows == [(15.0, 20.0), (40.0, 45.0), (65.0, 70.0)]

    def test_skipped_windows(self):
        condition = ScheduledWindowCondition([(15.0, 16.0), (17.0, 18.0)])
        assert condition.skipped_windows(14.0, 18.5) == 2
        assert condition.skipped_windows(15.5, 18.5) == 1
        assert condition.skipped_windows(14.0, 17.5) == 1


@pytest.mark.unit
class TestPowerDropCondition:
    """Test cases for PowerDropCondition."""

    def test_active_after_power_drop(self):
        condition = PowerDropCondition(100.0, baseline_seconds=1.0, window_seconds=0.5,
                                       drop_threshold=0.45)
        condition.observe_batch(_batch(np.full(100, 2.0)))
        assert condition.baseline_power == pytest.approx(4.0)
        assert not condition.is_active(1.0)

        condition.observe_batch(_batch(np.full(50, 1.0), start=100))
        assert condition.relative_drop() == pytest.approx(0.75)
        assert condition.is_active(1.5)

        condition.observe_batch(_batch(np.full(50, 2.0), start=150))
        assert not condition.is_active(2.0)

    def test_no_decision_before_baseline(self):
        condition = PowerDropCondition(100.0, baseline_seconds=1.0, window_seconds=0.1)
        condition.observe_batch(_batch(np.zeros(20)))
        assert condition.relative_drop() is None
        assert not condition.is_active(0.2)

    def test_ignores_unselected_channels(self):
        condition = PowerDropCondition(100.0, channel_indices=[1], baseline_seconds=0.1)
        condition.observe_batch(_batch(np.full(10, 3.0), channel_index=0))
        assert condition.baseline_power is None

    def test_reset(self):
        condition = PowerDropCondition(100.0, baseline_seconds=0.1)
        condition.observe_batch(_batch(np.full(10, 3.0)))
        condition.reset()
        assert condition.baseline_power is None

    @pytest.mark.parametrize("threshold", [0, 1.0, 1.5])
    def test_threshold_range(self, threshold):
        with pytest.raises(ValueError):
            PowerDropCondition(100.0, drop_threshold=threshold)


@pytest.mark.unit
class TestEventDetector:
    """Test cases for EventDetector."""

    def test_start_and_stop_at_window_edges(self, detector, topics, recorder_factory):
        recorder = recorder_factory(topics)
        _run_ticks(topics, [0.5 * i for i in range(1, 50)])

        events = recorder.of("ischemia")
        assert [(e.kind, e.time_seconds) for e in events] == [
            (EventKind.START, 15.0), (EventKind.STOP, 20.0)]
        assert events[0].condition == "ischemia"
        assert detector.episodes[0].duration_seconds == 5.0
        assert detector.state_of("ischemia") is DetectorState.QUIESCENT

    def test_events_alternate(self, topics):
        detector = EventDetector(topics, [ScheduledWindowCondition.repeating(until=100.0)])
        PlaybackPublisher(topics).publish_session_event(SessionEvent(session_number=1, event_type="started"))
        _run_ticks(topics, [0.25 * i for i in range(1, 401)])

        kinds = [e.kind for e in detector.events]
        assert kinds == [EventKind.START, EventKind.STOP] * 4
        assert detector.faults == []
        assert all(not episode.is_open for episode in detector.episodes)

    def test_window_inside_one_tick(self, detector):
        _run_ticks(detector.topics, [14.0, 21.0])
        assert [(e.kind, e.time_seconds) for e in detector.events] == [
            (EventKind.START, 21.0), (EventKind.STOP, 21.0)]
        assert detector.faults == []

    def test_open_episode_when_stopped_mid_window(self, detector, topics):
        _run_ticks(topics, [10.0, 16.0])
        PlaybackPublisher(topics).publish_session_event(SessionEvent(session_number=1, event_type="stopped"))
        _run_ticks(topics, [17.0, 21.0])

        assert [e.kind for e in detector.events] == [EventKind.START]
        assert detector.episodes[0].is_open

    def test_new_session_resets_state(self, detector, topics):
        _run_ticks(topics, [16.0])
        PlaybackPublisher(topics).publish_session_event(SessionEvent(session_number=2, event_type="started"))
        assert detector.state_of("ischemia") is DetectorState.QUIESCENT
        assert detector.events == []

    def test_ticks_of_other_sessions_ignored(self, detector, topics):
        _run_ticks(topics, [16.0], session_number=9)
        assert detector.events == []

    def test_report_start_twice_is_a_fault(self, detector, topics, recorder_factory):
        recorder = recorder_factory(topics)
        detector.report("ischemia", EventKind.START, 3.0)
        with pytest.raises(DetectorFault) as excinfo:
            detector.report("ischemia", EventKind.START, 4.0)

        assert excinfo.value.state == "active"
        assert detector.faults == [excinfo.value]
        assert recorder.of("fault") == [excinfo.value]
        assert [e.kind for e in detector.events] == [EventKind.START]
        assert detector.state_of("ischemia") is DetectorState.ACTIVE

    def test_report_stop_without_start_is_a_fault(self, detector):
        with pytest.raises(DetectorFault):
            detector.report("ischemia", EventKind.STOP, 3.0)
        assert detector.events == []

    def test_report_unknown_condition(self, detector):
        with pytest.raises(ValueError):
            detector.report("seizure", EventKind.START, 1.0)

    def test_power_drop_condition_drives_detector(self, topics):
        condition = PowerDropCondition(100.0, baseline_seconds=1.0, window_seconds=0.5,
                                       name="power_drop")
        detector = EventDetector(topics, [condition])
        publisher = PlaybackPublisher(topics)
        publisher.publish_session_event(SessionEvent(session_number=1, event_type="started"))

        publisher.publish_batch(_batch(np.full(100, 2.0)))
        publisher.publish_tick(_tick(0.0, 1.0))
        publisher.publish_batch(_batch(np.full(50, 1.0), start=100))
        publisher.publish_tick(_tick(1.0, 1.5))

        assert [(e.kind, e.condition) for e in detector.events] == [(EventKind.START, "power_drop")]
