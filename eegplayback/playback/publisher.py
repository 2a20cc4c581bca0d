"""Playback publisher module for pub/sub event publishing."""

import logging
from dataclasses import dataclass
from pubsub import pub

from ..models.playback import SampleBatch, TimebaseTick, EndOfRecording
from ..models.events import SessionEvent

logger = logging.getLogger(__name__)

DEFAULT_TOPIC_ROOT = "eegplayback"


@dataclass(frozen=True)
class PlaybackTopics:
    """Topic names for one playback session, all under a common root."""
    root: str = DEFAULT_TOPIC_ROOT

    @property
    def batch(self) -> str:
        return f"{self.root}.batch"

    @property
    def tick(self) -> str:
        return f"{self.root}.tick"

    @property
    def session(self) -> str:
        return f"{self.root}.session"

    @property
    def end(self) -> str:
        return f"{self.root}.end"

    @property
    def integrity_report(self) -> str:
        return f"{self.root}.integrity.report"

    @property
    def integrity_summary(self) -> str:
        return f"{self.root}.integrity.summary"

    @property
    def ischemia(self) -> str:
        return f"{self.root}.ischemia"

    @property
    def fault(self) -> str:
        return f"{self.root}.fault"

    @property
    def speed(self) -> str:
        return f"{self.root}.speed"


class ListenerExceptionLogger:
    """pypubsub listener exception handler.

    Logs the failing subscriber and lets delivery continue, so a broken
    observer cannot stop a tick.
    """

    def __call__(self, listenerID: str, topicObj) -> None:
        logger.exception(f"Subscriber {listenerID} failed on topic {topicObj.getName()}")


def install_listener_exception_handler() -> None:
    """Install ListenerExceptionLogger unless one is already installed."""
    if not isinstance(pub.getListenerExcHandler(), ListenerExceptionLogger):
        pub.setListenerExcHandler(ListenerExceptionLogger())
        logger.debug("Installed pub/sub listener exception handler")


class PlaybackPublisher:
    """Publishes playback events using pubsub.pub, one method per topic."""

    def __init__(self, topics: PlaybackTopics):
        """Initialize playback publisher.

        Args:
            topics: Topic names for this session
        """
        self.topics = topics
        logger.info(f"PlaybackPublisher initialized with topic root: {topics.root}")

    def publish_batch(self, batch: SampleBatch) -> None:
        pub.sendMessage(self.topics.batch, batch=batch)

    def publish_tick(self, tick: TimebaseTick) -> None:
        pub.sendMessage(self.topics.tick, tick=tick)

    def publish_session_event(self, event: SessionEvent) -> None:
        pub.sendMessage(self.topics.session, event=event)
        logger.debug(f"Published session event: {event.event_type} (session {event.session_number})")

    def publish_end(self, notice: EndOfRecording) -> None:
        pub.sendMessage(self.topics.end, notice=notice)
        logger.debug(f"Published end notice: {notice.reason} at {notice.cursor:.3f}s")

    def publish_fault(self, fault: Exception) -> None:
        pub.sendMessage(self.topics.fault, fault=fault)
