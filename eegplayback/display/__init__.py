"""Display-side buffering of streamed samples."""

from .buffer import RollingTraceBuffer

__all__ = [
    'RollingTraceBuffer'
]
