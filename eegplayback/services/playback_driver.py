"""Background tick driver for real-time playback."""

import logging
from threading import Thread, Event
from typing import Optional

from .playback_service import PlaybackSession

logger = logging.getLogger(__name__)


class PlaybackDriver:
    """Runs ``session.tick()`` on a daemon thread every tick interval.

    One thread drives every tick, so ticks never overlap and all downstream
    work for a tick finishes before the next one is scheduled.
    """

    def __init__(self, session: PlaybackSession, tick_interval: Optional[float] = None):
        """Initialize playback driver.

        Args:
            session: Session to drive
            tick_interval: Real seconds between ticks; defaults to the session's
        """
        self.session = session
        self.tick_interval = tick_interval or session.tick_interval

        self.tick_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.total_ticks = 0

    @property
    def is_running(self) -> bool:
        return self.tick_thread is not None and self.tick_thread.is_alive()

    def start(self, resume: bool = False) -> bool:
        """Start the session and the tick thread.

        Returns:
            False if the driver was already running
        """
        if self.is_running:
            logger.warning("Playback driver already running")
            return False

        result = self.session.start(resume=resume)
        if not result["success"]:
            logger.warning(f"Session did not start: {result.get('error')}")
            return False

        logger.info(f"Starting playback driver ({self.tick_interval * 1000:.0f}ms ticks)")
        self.stop_event.clear()
        self.total_ticks = 0
        self.tick_thread = Thread(target=self._tick_continuously, daemon=True)
        self.tick_thread.name = "PlaybackTickThread"
        self.tick_thread.start()
        return True

    def _tick_continuously(self) -> None:
        while not self.stop_event.is_set():
            tick = self.session.tick()
            if tick is None or not self.session.is_streaming:
                break
            self.total_ticks += 1
            self.stop_event.wait(self.tick_interval)
        logger.info(f"Tick thread exiting after {self.total_ticks} ticks")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for playback to end on its own.

        Returns:
            True if the tick thread finished within the timeout
        """
        if self.tick_thread is None:
            return True
        self.tick_thread.join(timeout)
        return not self.tick_thread.is_alive()

    def stop(self) -> None:
        """Stop ticking and stop the session."""
        self.stop_event.set()
        if self.tick_thread and self.tick_thread.is_alive():
            self.tick_thread.join(timeout=2.0)
            if self.tick_thread.is_alive():
                logger.warning("Tick thread did not stop cleanly")
        self.session.stop()
        logger.info(f"Playback driver stopped. Total ticks: {self.total_ticks}")
