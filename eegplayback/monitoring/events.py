"""Event detector for monitored condition windows (ischemia start/stop)."""

import logging
from enum import Enum
from typing import List, Optional, Sequence

from pubsub import pub

from ..errors import DetectorFault
from ..models.events import EventKind, IschemiaEvent, IschemiaEpisode, SessionEvent
from ..models.playback import SampleBatch, TimebaseTick
from ..playback.publisher import PlaybackTopics
from .conditions import MonitoredCondition

logger = logging.getLogger(__name__)


class DetectorState(Enum):
    QUIESCENT = "quiescent"
    ACTIVE = "active"


class EventDetector:
    """Raises strictly alternating start/stop events per monitored condition.

    Each condition runs a two-state machine (Quiescent -> Active on start,
    Active -> Quiescent on stop). Conditions are evaluated on every tick
    against the recording-time cursor, so reported times are accurate to
    one tick of recording time.
    """

    def __init__(self, topics: PlaybackTopics, conditions: Sequence[MonitoredCondition]):
        """Initialize event detector.

        Args:
            topics: Topics of the session to observe
            conditions: Conditions to track, evaluated in this order every tick
        """
        self.topics = topics
        self.conditions = list(conditions)
        self.states: List[DetectorState] = [DetectorState.QUIESCENT] * len(self.conditions)

        self.events: List[IschemiaEvent] = []
        self.episodes: List[IschemiaEpisode] = []
        self.faults: List[DetectorFault] = []
        self.session_number: Optional[int] = None
        self.is_active = False

        pub.subscribe(self._on_session_event, topics.session)
        pub.subscribe(self._on_batch, topics.batch)
        pub.subscribe(self._on_tick, topics.tick)

        names = [condition.name for condition in self.conditions]
        logger.info(f"EventDetector initialized with conditions {names} - subscribed to {topics.root}")

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.event_type == "started":
            self.session_number = event.session_number
            self.is_active = True
            self.events = []
            self.episodes = []
            self.faults = []
            self.states = [DetectorState.QUIESCENT] * len(self.conditions)
            for condition in self.conditions:
                condition.reset()
        elif event.event_type == "stopped" and self.is_active:
            self.is_active = False
            open_conditions = [c.name for c, s in zip(self.conditions, self.states)
                               if s is DetectorState.ACTIVE]
            if open_conditions:
                logger.info(f"Session stopped with active conditions: {open_conditions}")

    def _on_batch(self, batch: SampleBatch) -> None:
        if not self.is_active or batch.session_number != self.session_number:
            return
        for condition in self.conditions:
            condition.observe_batch(batch)

    def _on_tick(self, tick: TimebaseTick) -> None:
        if not self.is_active or tick.session_number != self.session_number:
            return
        for index, condition in enumerate(self.conditions):
            active = condition.is_active(tick.cursor)
            skipped = condition.skipped_windows(tick.previous_cursor, tick.cursor)

            if self.states[index] is DetectorState.ACTIVE and (not active or skipped):
                self._transition(index, EventKind.STOP, tick.cursor)
            for _ in range(skipped):
                self._transition(index, EventKind.START, tick.cursor)
                self._transition(index, EventKind.STOP, tick.cursor)
            if self.states[index] is DetectorState.QUIESCENT and active:
                self._transition(index, EventKind.START, tick.cursor)

    def report(self, condition_name: str, kind: EventKind, time_seconds: float) -> IschemiaEvent:
        """Feed an externally detected boundary through the state machine.

        Raises:
            DetectorFault: the detection would break start/stop alternation
                           (it is recorded and published first)
            ValueError: unknown condition
        """
        for index, condition in enumerate(self.conditions):
            if condition.name == condition_name:
                result = self._transition(index, kind, time_seconds)
                if isinstance(result, DetectorFault):
                    raise result
                return result
        raise ValueError(f"Unknown condition '{condition_name}'")

    def _transition(self, index: int, kind: EventKind, time_seconds: float):
        condition = self.conditions[index]
        state = self.states[index]
        expected = DetectorState.QUIESCENT if kind is EventKind.START else DetectorState.ACTIVE
        if state is not expected:
            fault = DetectorFault(condition.name, kind.value, time_seconds, state.value)
            self.faults.append(fault)
            logger.error(f"❌ {fault}")
            pub.sendMessage(self.topics.fault, fault=fault)
            return fault

        event = IschemiaEvent(kind=kind, time_seconds=time_seconds,
                              condition=condition.name,
                              session_number=self.session_number or 0)
        self.events.append(event)
        if kind is EventKind.START:
            self.states[index] = DetectorState.ACTIVE
            self.episodes.append(IschemiaEpisode(condition=condition.name, start_time=time_seconds))
            logger.warning(f"🩺 {condition.name} START detected at {time_seconds:.2f} seconds")
        else:
            self.states[index] = DetectorState.QUIESCENT
            for episode in reversed(self.episodes):
                if episode.condition == condition.name and episode.is_open:
                    episode.end_time = time_seconds
                    break
            logger.info(f"✅ {condition.name} STOP detected at {time_seconds:.2f} seconds")

        pub.sendMessage(self.topics.ischemia, event=event)
        return event

    def state_of(self, condition_name: str) -> DetectorState:
        for condition, state in zip(self.conditions, self.states):
            if condition.name == condition_name:
                return state
        raise ValueError(f"Unknown condition '{condition_name}'")

    def shutdown(self) -> None:
        """Unsubscribe from all session topics."""
        for listener, topic in ((self._on_session_event, self.topics.session),
                                (self._on_batch, self.topics.batch),
                                (self._on_tick, self.topics.tick)):
            try:
                pub.unsubscribe(listener, topic)
            except Exception as e:
                logger.warning(f"Error during unsubscribe: {e}")
        logger.info("EventDetector shutdown complete")
