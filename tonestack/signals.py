"""Test signals for auditioning a tone stack."""

from typing import Optional

import numpy as np

from tonestack.config import settings

GUITAR_FUNDAMENTAL_HZ = 220.0   # A3
GUITAR_HARMONICS = (0.8, 0.4, 0.2, 0.1)


def generate_test_tone(
    frequency: float,
    duration: float,
    sample_rate: Optional[float] = None,
    amplitude: float = 0.5,
) -> np.ndarray:
    """Sine tone of `duration` seconds: amplitude·sin(2πf·n/fs)."""
    if sample_rate is None:
        sample_rate = settings.sample_rate
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    if duration < 0:
        raise ValueError(f"Duration must be non-negative, got {duration}")

    n = np.arange(int(np.floor(duration * sample_rate)))
    return amplitude * np.sin(2 * np.pi * frequency * n / sample_rate)


def generate_guitar_test_loop(sample_rate: Optional[float] = None, duration: float = 2.0) -> np.ndarray:
    """
    Plucked-string-like signal: 220 Hz plus three harmonics under a decaying
    envelope with a 5 Hz tremolo, scaled by 0.3.
    """
    if sample_rate is None:
        sample_rate = settings.sample_rate
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")

    t = np.arange(int(np.floor(duration * sample_rate))) / sample_rate
    envelope = np.exp(-2 * t) * (1 + 0.3 * np.sin(2 * np.pi * 5 * t))

    tone = np.zeros_like(t)
    for harmonic, level in enumerate(GUITAR_HARMONICS, start=1):
        tone += level * np.sin(2 * np.pi * GUITAR_FUNDAMENTAL_HZ * harmonic * t)

    return envelope * tone * 0.3
