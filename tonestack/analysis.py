"""
Frequency response evaluation for biquad cascades and exact transfer functions.

A biquad section is evaluated on the unit circle, z = e^(jω) with
ω = 2πf/fs:

    H(e^jω) = (b0 + b1·e^(−jω) + b2·e^(−j2ω)) / (1 + a1·e^(−jω) + a2·e^(−j2ω))

For a cascade the magnitudes multiply and the phases add. Sweeps use a
logarithmic frequency grid and report magnitude in dB and phase in degrees.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from tonestack.biquad import BiquadCoefficients
from tonestack.complex_math import magnitude, phase
from tonestack.config import settings

TransferFunction = Callable[[np.ndarray], np.ndarray]
ResponseSource = Union[BiquadCoefficients, Sequence[BiquadCoefficients], TransferFunction]


@dataclass(frozen=True)
class FrequencyPoint:
    frequency: float   # Hz
    magnitude: float   # dB
    phase: float       # degrees

    def to_dict(self) -> Dict[str, float]:
        return {'frequency': self.frequency, 'magnitude': self.magnitude, 'phase': self.phase}


def log_frequencies(
    start: float,
    end: float,
    num_points: int,
) -> np.ndarray:
    """
    Logarithmically-spaced frequency grid (Hz), ascending.

    f_i = 10^(log10(start) + i/(N−1)·(log10(end) − log10(start)))
    A single point yields [start].
    """
    if num_points < 1:
        raise ValueError(f"num_points must be at least 1, got {num_points}")
    if start <= 0:
        raise ValueError(f"Start frequency must be positive, got {start}")
    if end <= start:
        raise ValueError(f"End frequency ({end}) must be above start frequency ({start})")

    if num_points == 1:
        return np.array([float(start)])

    log_start = np.log10(start)
    log_end = np.log10(end)
    i = np.arange(num_points)
    return 10 ** (log_start + i / (num_points - 1) * (log_end - log_start))


def magnitude_to_db(mag, floor: Optional[float] = None):
    """20·log10(|mag|), with the magnitude clamped to `floor` first."""
    if floor is None:
        floor = settings.db_floor
    return 20 * np.log10(np.maximum(np.abs(mag), floor))


def evaluate_section(
    coeffs: BiquadCoefficients,
    omega,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Magnitude (linear) and phase (radians) of one section at normalized
    angular frequency omega (radians/sample). Accepts scalars or arrays.
    """
    omega = np.asarray(omega, dtype=float)
    z1 = np.exp(-1j * omega)
    z2 = np.exp(-2j * omega)

    numerator = coeffs.b0 + coeffs.b1 * z1 + coeffs.b2 * z2
    denominator = 1.0 + coeffs.a1 * z1 + coeffs.a2 * z2

    mag = magnitude(numerator) / magnitude(denominator)
    ph = phase(numerator) - phase(denominator)
    return mag, ph


def evaluate_cascade(
    sections: Sequence[BiquadCoefficients],
    omega,
) -> Tuple[np.ndarray, np.ndarray]:
    """Product of section magnitudes and sum of section phases. Empty cascade is unity."""
    omega = np.asarray(omega, dtype=float)
    total_mag = np.ones_like(omega)
    total_phase = np.zeros_like(omega)

    for coeffs in sections:
        mag, ph = evaluate_section(coeffs, omega)
        total_mag = total_mag * mag
        total_phase = total_phase + ph

    return total_mag, total_phase


def _response(
    source: ResponseSource,
    frequencies: np.ndarray,
    sample_rate: float,
) -> Tuple[np.ndarray, np.ndarray]:
    if callable(source):
        H = np.asarray(source(frequencies), dtype=complex)
        return magnitude(H), phase(H)

    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    omega = 2 * np.pi * frequencies / sample_rate
    if isinstance(source, BiquadCoefficients):
        return evaluate_section(source, omega)
    return evaluate_cascade(list(source), omega)


def sweep(
    source: ResponseSource,
    start_freq: Optional[float] = None,
    end_freq: Optional[float] = None,
    num_points: Optional[int] = None,
    sample_rate: Optional[float] = None,
    reference_hz: Optional[float] = None,
) -> List[FrequencyPoint]:
    """
    Sweep a response source over a log-spaced grid.

    Args:
        source: A BiquadCoefficients section, a sequence of them (a cascade, evaluated
                at ω = 2πf/fs) or a callable mapping a frequency array (Hz)
                to complex transfer values.
        start_freq, end_freq, num_points: Grid definition; defaults from settings.
        sample_rate: Needed for cascades only.
        reference_hz: When given, magnitudes are relative to the magnitude
                      at this frequency (0 dB there).

    Returns:
        FrequencyPoints in ascending frequency order.
    """
    start_freq = settings.sweep_start_hz if start_freq is None else start_freq
    end_freq = settings.sweep_end_hz if end_freq is None else end_freq
    num_points = settings.sweep_points if num_points is None else num_points
    sample_rate = settings.sample_rate if sample_rate is None else sample_rate

    frequencies = log_frequencies(start_freq, end_freq, num_points)
    mag, ph = _response(source, frequencies, sample_rate)

    magnitude_db = magnitude_to_db(mag)
    if reference_hz is not None:
        ref_mag, _ = _response(source, np.array([float(reference_hz)]), sample_rate)
        magnitude_db = magnitude_db - magnitude_to_db(ref_mag)[0]

    phase_deg = np.degrees(ph)

    return [
        FrequencyPoint(frequency=float(f), magnitude=float(m), phase=float(p))
        for f, m, p in zip(frequencies, magnitude_db, phase_deg)
    ]


def response_arrays(points: Sequence[FrequencyPoint]) -> Dict[str, list]:
    """Column-oriented view of a sweep, handy for plotting and JSON."""
    return {
        'frequencies': [p.frequency for p in points],
        'magnitude_db': [p.magnitude for p in points],
        'phase_deg': [p.phase for p in points],
        'num_points': len(points),
    }
