"""Unit tests for PlaybackSession."""

import logging

import pytest
from pubsub import pub

from eegplayback.config import EEGPlaybackConfig
from eegplayback.models.events import EventKind
from eegplayback.monitoring.conditions import PowerDropCondition, ScheduledWindowCondition
from eegplayback.services.playback_service import PlaybackSession


@pytest.fixture
def session(tiny_recording, topics, test_config):
    session = PlaybackSession(tiny_recording, test_config, topics=topics)
    yield session
    session.shutdown()


class StoppingSubscriber:
    """Stops the session from inside a batch or tick delivery."""

    def __init__(self, session, channel_index=0):
        self.session = session
        self.channel_index = channel_index
        self.stop_results = []
        pub.subscribe(self.on_batch, session.topics.batch)
        pub.subscribe(self.on_tick, session.topics.tick)

    def on_batch(self, batch):
        if self.channel_index is not None and batch.channel_index == self.channel_index:
            self.stop_results.append(self.session.stop())

    def on_tick(self, tick):
        if self.channel_index is None:
            self.stop_results.append(self.session.stop())


class FailingSubscriber:
    """Raises on every batch."""

    def __init__(self, topics):
        self.calls = 0
        pub.subscribe(self.on_batch, topics.batch)

    def on_batch(self, batch):
        self.calls += 1
        raise RuntimeError(f"renderer broke on channel {batch.channel_index}")


def published_after_stop(recorder):
    kinds = recorder.kinds()
    stopped = [i for i, (kind, payload) in enumerate(recorder.messages)
               if kind == "session" and payload.event_type == "stopped"]
    assert len(stopped) == 1
    return [k for k in kinds[stopped[0] + 1:] if k in ("batch", "tick", "end", "session")]


@pytest.mark.unit
class TestPlaybackSession:
    """Test cases for PlaybackSession."""

    def test_start(self, session):
        result = session.start(now=0.0)
        assert result["success"] is True
        assert result["session_number"] == 1
        assert session.is_streaming

    def test_start_twice(self, session):
        session.start(now=0.0)
        result = session.start(now=1.0)
        assert result["success"] is False
        assert "Already streaming" in result["error"]

    def test_stop_returns_integrity_summary(self, session):
        session.start(now=0.0)
        session.tick(now=0.5)
        result = session.stop()

        assert result["success"] is True
        summary = result["integrity_summary"]
        assert summary.reason == "stopped"
        assert summary.counters.total_samples_checked == 2 * 5
        assert summary.overall_pass is True

    def test_stop_when_not_streaming(self, session):
        assert session.stop()["success"] is False

    def test_tick_when_not_streaming(self, session):
        assert session.tick(now=1.0) is None

    def test_publish_order_per_tick(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        session.start(now=0.0)
        session.tick(now=0.5)
        assert recorder.kinds() == ["session", "batch", "batch", "tick"]

    def test_publish_order_at_end(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        session.start(now=0.0)
        session.tick(now=5.0)

        kinds = [k for k in recorder.kinds() if k in ("batch", "tick", "end", "session")]
        assert kinds == ["session", "batch", "batch", "tick", "end", "session"]
        end = recorder.of("end")[0]
        assert end.reason == "end_of_recording"
        assert end.cursor == 1.0
        assert recorder.of("session")[-1].event_type == "stopped"
        assert not session.is_streaming

    def test_summary_follows_end(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        session.start(now=0.0)
        session.tick(now=5.0)
        kinds = recorder.kinds()
        assert kinds.index("summary") > kinds.index("tick")
        assert kinds.count("summary") == 1

    def test_no_batches_after_stop(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        session.start(now=0.0)
        session.tick(now=0.3)
        session.stop()
        batches_before = len(recorder.of("batch"))
        session.tick(now=0.8)
        assert len(recorder.of("batch")) == batches_before

    def test_stop_from_batch_subscriber_ends_tick(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        stopper = StoppingSubscriber(session, channel_index=0)
        session.start(now=0.0)
        session.tick(now=0.5)

        assert stopper.stop_results[0]["success"] is True
        assert not session.is_streaming
        assert published_after_stop(recorder) == []
        assert [b.channel_index for b in recorder.of("batch")] == [0]
        assert recorder.of("tick") == []

        session.tick(now=1.0)
        assert [b.channel_index for b in recorder.of("batch")] == [0]

    def test_stop_from_tick_subscriber_at_end(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        StoppingSubscriber(session, channel_index=None)
        session.start(now=0.0)
        session.tick(now=5.0)

        assert published_after_stop(recorder) == []
        assert recorder.of("end") == []
        assert session.integrity_monitor.summary.reason == "stopped"

    def test_restart_after_mid_tick_stop(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        stopper = StoppingSubscriber(session, channel_index=1)
        session.start(now=0.0)
        session.tick(now=0.3)
        stopper.channel_index = None
        pub.unsubscribe(stopper.on_tick, topics.tick)

        session.start(resume=True, now=10.0)
        session.tick(now=10.3)
        second = [b for b in recorder.of("batch") if b.session_number == 2]
        assert [(b.channel_index, b.start_sample_index) for b in second] == [(0, 3), (1, 3)]
        assert session.integrity_monitor.counters.index_mismatch_count == 0

    def test_failing_subscriber_does_not_halt_tick(self, session, topics, recorder_factory, caplog):
        failing = FailingSubscriber(topics)
        recorder = recorder_factory(topics)
        session.start(now=0.0)

        with caplog.at_level(logging.ERROR):
            session.tick(now=0.5)

        assert failing.calls == 2
        assert recorder.kinds() == ["session", "batch", "batch", "tick"]
        assert session.is_streaming
        assert session.integrity_monitor.counters.total_samples_checked == 2 * 5
        errors = [r for r in caplog.records if r.levelno == logging.ERROR and "failed on topic" in r.getMessage()]
        assert len(errors) == 2

        session.tick(now=5.0)
        assert recorder.of("end")[0].reason == "end_of_recording"
        assert session.integrity_monitor.summary.overall_pass is True

    def test_display_rate_from_config(self, tiny_recording, topics):
        config = EEGPlaybackConfig.from_dict({"playback": {"display_rate_mm_per_sec": 60}})
        session = PlaybackSession(tiny_recording, config, topics=topics)
        assert session.snapshot().speed_multiplier == 2.0
        session.start(now=0.0)
        tick = session.tick(now=0.25)
        assert tick.cursor == 0.5
        session.shutdown()

    def test_set_speed_from_display_rate(self, session):
        assert session.set_speed_from_display_rate(15) == 0.5
        with pytest.raises(ValueError):
            session.set_speed(0)
        assert session.snapshot().speed_multiplier == 0.5

    def test_resume_continues_stream(self, session, topics, recorder_factory):
        recorder = recorder_factory(topics)
        session.start(now=0.0)
        session.tick(now=0.4)
        session.stop()
        session.start(resume=True, now=10.0)
        session.tick(now=10.3)

        second = [b for b in recorder.of("batch") if b.session_number == 2]
        assert second[0].start_sample_index == 4
        assert second[0].end_sample_index == 7
        assert session.integrity_monitor.counters.index_mismatch_count == 0

    def test_conditions_from_schedule(self, session):
        condition = session.event_detector.conditions[0]
        assert isinstance(condition, ScheduledWindowCondition)
        assert condition.windows == [(15.0, 20.0)]

    def test_default_conditions(self, small_recording, topics):
        config = EEGPlaybackConfig.from_dict({"events": {"power_drop": {"enabled": True}}})
        session = PlaybackSession(small_recording, config, topics=topics)
        scheduled, power_drop = session.event_detector.conditions
        assert scheduled.windows == [(15.0, 20.0)]
        assert isinstance(power_drop, PowerDropCondition)
        assert power_drop.name == "power_drop"
        session.shutdown()

    def test_custom_conditions(self, tiny_recording, topics, recorder_factory):
        recorder = recorder_factory(topics)
        session = PlaybackSession(tiny_recording, topics=topics,
                                  conditions=[ScheduledWindowCondition([(0.2, 0.6)])])
        session.start(now=0.0)
        for now in (0.25, 0.5, 0.75, 1.0):
            session.tick(now=now)
        events = recorder.of("ischemia")
        assert [(e.kind, e.time_seconds) for e in events] == [
            (EventKind.START, 0.25), (EventKind.STOP, 0.75)]
        session.shutdown()

    def test_load_recording(self, session, small_recording):
        session.start(now=0.0)
        session.load_recording(small_recording)
        assert not session.is_streaming
        assert session.recording is small_recording
        assert session.engine.recording is small_recording
        result = session.start(now=0.0)
        assert result["session_number"] == 1

    def test_snapshot_is_a_copy(self, session):
        session.start(now=0.0)
        snapshot = session.snapshot()
        session.tick(now=0.5)
        assert snapshot.recording_cursor_seconds == 0.0
        assert session.cursor == 0.5
