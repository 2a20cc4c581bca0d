"""Recording sources."""

from .synthetic import generate_synthetic_recording, DEFAULT_LABELS

__all__ = [
    "generate_synthetic_recording",
    "DEFAULT_LABELS",
]
