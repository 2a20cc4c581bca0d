"""Synthetic EEG recordings for demos and tests."""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from ..models.recording import ChannelSamples, RecordingBuffer

logger = logging.getLogger(__name__)

DEFAULT_LABELS = ("F3", "P3", "T3", "O1", "F4", "P4", "T4", "O2")

# (frequency Hz, amplitude uV, phase step per channel) for delta, theta, alpha, beta, gamma
BAND_COMPONENTS = (
    (2.0, 5.0, 0.5),
    (6.0, 3.0, 0.3),
    (10.0, 4.0, 0.2),
    (20.0, 2.0, 0.1),
    (40.0, 1.0, 0.05),
)


def generate_synthetic_recording(duration_seconds: float = 30.0,
                                 sample_rate_hz: float = 250.0,
                                 channel_labels: Sequence[str] = DEFAULT_LABELS,
                                 ischemia_windows: Sequence[Tuple[float, float]] = ((15.0, 20.0),),
                                 noise_amplitude: float = 1.0,
                                 seed: Optional[int] = None) -> RecordingBuffer:
    """Generate an EEG-like recording.

    Each channel is a sum of band sines plus uniform noise and a slow
    channel-specific drift. Inside ``ischemia_windows`` the band activity is
    scaled to 30% and extra 1.5Hz delta is added.

    Args:
        duration_seconds: Recording length
        sample_rate_hz: Sample rate
        channel_labels: One label per channel
        ischemia_windows: Recording-time windows [start, stop) with suppressed activity
        noise_amplitude: Peak amplitude of the uniform noise
        seed: Seed for the noise generator

    Returns:
        A RecordingBuffer holding the generated channels
    """
    rng = np.random.default_rng(seed)
    sample_count = int(round(duration_seconds * sample_rate_hz))
    t = np.arange(sample_count) / sample_rate_hz

    in_window = np.zeros(sample_count, dtype=bool)
    for start, stop in ischemia_windows:
        in_window |= (t >= start) & (t < stop)

    channels = []
    for channel_index, label in enumerate(channel_labels):
        signal = np.zeros(sample_count)
        for frequency, amplitude, phase_step in BAND_COMPONENTS:
            signal += amplitude * np.sin(2 * np.pi * frequency * t + channel_index * phase_step)
        signal += rng.uniform(-noise_amplitude, noise_amplitude, sample_count)

        signal = np.where(in_window,
                          signal * 0.3 + 2.0 * np.sin(2 * np.pi * 1.5 * t),
                          signal)
        signal += 2.0 * np.sin(2 * np.pi * 0.1 * t + channel_index)
        channels.append(ChannelSamples(label=label, values=signal))

    logger.info(f"Generated synthetic recording: {len(channels)} channels, "
                f"{duration_seconds}s at {sample_rate_hz}Hz, ischemia windows {list(ischemia_windows)}")
    return RecordingBuffer(channels=tuple(channels), sample_rate_hz=float(sample_rate_hz),
                           duration_seconds=float(duration_seconds))
