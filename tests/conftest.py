"""Pytest configuration and fixtures for eegplayback tests."""

import logging
import uuid
from typing import Any, List, Tuple

import numpy as np
import pytest
from pubsub import pub

from eegplayback.config import EEGPlaybackConfig
from eegplayback.models.recording import ChannelSamples, RecordingBuffer
from eegplayback.playback.publisher import PlaybackTopics
from eegplayback.recordings.synthetic import generate_synthetic_recording


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single component")
    config.addinivalue_line("markers", "integration: tests of a full playback session")
    config.addinivalue_line("markers", "slow: tests that run in real time")


@pytest.fixture(autouse=True)
def reset_pubsub():
    """Drop every subscription left behind by a test."""
    yield
    pub.unsubAll()


def make_recording(duration_seconds: float = 22.0, sample_rate_hz: float = 100.0,
                   channel_count: int = 4) -> RecordingBuffer:
    """Recording whose samples never hit zero: 1.5 + sin on every channel."""
    count = int(round(duration_seconds * sample_rate_hz))
    t = np.arange(count) / sample_rate_hz
    channels = tuple(
        ChannelSamples(label=f"C{i}", values=1.5 + np.sin(2 * np.pi * (i + 1) * t))
        for i in range(channel_count)
    )
    return RecordingBuffer(channels=channels, sample_rate_hz=sample_rate_hz,
                           duration_seconds=duration_seconds)


@pytest.fixture
def recording_factory():
    """Build recordings of any shape; see make_recording."""
    return make_recording


@pytest.fixture
def small_recording():
    """22 seconds, 4 channels at 100Hz."""
    return make_recording()


@pytest.fixture
def tiny_recording():
    """1 second, 2 channels at 10Hz."""
    return make_recording(duration_seconds=1.0, sample_rate_hz=10.0, channel_count=2)


@pytest.fixture(scope="session")
def synthetic_recording():
    """22 seconds of 8-channel synthetic EEG with ischemia in [15, 20)."""
    return generate_synthetic_recording(duration_seconds=22.0, sample_rate_hz=250.0, seed=7)


@pytest.fixture
def topics():
    """Topics under a root unique to the test."""
    return PlaybackTopics(root=f"test_{uuid.uuid4().hex[:8]}")


@pytest.fixture
def test_config():
    """In-memory configuration with one scheduled window at [15, 20)."""
    return EEGPlaybackConfig.from_dict({
        "playback": {
            "tick_interval_seconds": 0.1,
            "display_rate_mm_per_sec": 30,
        },
        "integrity": {
            "report_interval_seconds": 5.0,
        },
        "events": {
            "schedule": [{"start": 15.0, "stop": 20.0}],
        },
        "logging": {
            "console_output": False,
        },
    })


class TopicRecorder:
    """Records every message published on a session's topics, in delivery order."""

    def __init__(self, topics: PlaybackTopics):
        self.topics = topics
        self.messages: List[Tuple[str, Any]] = []
        pub.subscribe(self.on_session, topics.session)
        pub.subscribe(self.on_batch, topics.batch)
        pub.subscribe(self.on_tick, topics.tick)
        pub.subscribe(self.on_end, topics.end)
        pub.subscribe(self.on_report, topics.integrity_report)
        pub.subscribe(self.on_summary, topics.integrity_summary)
        pub.subscribe(self.on_ischemia, topics.ischemia)
        pub.subscribe(self.on_fault, topics.fault)
        pub.subscribe(self.on_speed, topics.speed)

    def on_session(self, event):
        self.messages.append(("session", event))

    def on_batch(self, batch):
        self.messages.append(("batch", batch))

    def on_tick(self, tick):
        self.messages.append(("tick", tick))

    def on_end(self, notice):
        self.messages.append(("end", notice))

    def on_report(self, report):
        self.messages.append(("report", report))

    def on_summary(self, summary):
        self.messages.append(("summary", summary))

    def on_ischemia(self, event):
        self.messages.append(("ischemia", event))

    def on_fault(self, fault):
        self.messages.append(("fault", fault))

    def on_speed(self, check):
        self.messages.append(("speed", check))

    def of(self, kind: str) -> list:
        return [payload for name, payload in self.messages if name == kind]

    def kinds(self) -> List[str]:
        return [name for name, _ in self.messages]


@pytest.fixture
def recorder_factory():
    """Build TopicRecorders; the fixture keeps them alive for the test."""
    recorders = []

    def make(topics: PlaybackTopics) -> TopicRecorder:
        recorder = TopicRecorder(topics)
        recorders.append(recorder)
        return recorder

    return make


@pytest.fixture
def run_session():
    """Drive a session deterministically with explicit wall-clock readings.

    Returns a function ``run(session, step, max_ticks=None, start_at=0.0)``
    that starts the session at ``start_at`` and ticks every ``step`` seconds
    until streaming ends (or ``max_ticks`` ticks). It returns the wall-clock
    time of the last tick.
    """
    def run(session, step: float, max_ticks: int = None, start_at: float = 0.0,
            resume: bool = False) -> float:
        result = session.start(resume=resume, now=start_at)
        assert result["success"], result
        now = start_at
        ticks = 0
        while session.is_streaming:
            if max_ticks is not None and ticks >= max_ticks:
                break
            now += step
            session.tick(now=now)
            ticks += 1
        return now

    return run
