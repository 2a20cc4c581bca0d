"""EEG recording playback, integrity validation and event detection."""

__version__ = "0.1.0"
