"""Services layer for EEG playback."""

from .playback_service import PlaybackSession
from .playback_driver import PlaybackDriver

__all__ = [
    "PlaybackSession",
    "PlaybackDriver"
]
