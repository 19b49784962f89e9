"""
Second-order (biquad) filter section synthesis.

Coefficients follow the RBJ "Audio EQ Cookbook" formulas:

    ω = 2π·f / fs
    shelves:          A = 10^(gain/40),  β = √A / Q
    peaking / pass:   α = sin(ω) / (2Q)

Every section is returned with a0 divided out, so the difference equation is

    y[n] = b0·x[n] + b1·x[n-1] + b2·x[n-2] − a1·y[n-1] − a2·y[n-2]
"""

import math
from dataclasses import dataclass
from typing import Dict

# Corner frequencies produced by the control mappings stay below this share of fs
NYQUIST_GUARD = 0.45

BUTTERWORTH_Q = 1.0 / math.sqrt(2.0)


@dataclass(frozen=True)
class BiquadCoefficients:
    """One normalized second-order section (a0 ≡ 1)."""
    b0: float
    b1: float
    b2: float
    a1: float
    a2: float

    def __post_init__(self):
        for name in ('b0', 'b1', 'b2', 'a1', 'a2'):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"Biquad coefficient {name} must be finite, got {value}")

    @classmethod
    def from_raw(cls, b0, b1, b2, a0, a1, a2) -> 'BiquadCoefficients':
        """Normalize raw cookbook coefficients by a0."""
        if a0 == 0:
            raise ValueError("a0 must be non-zero")
        return cls(b0=b0 / a0, b1=b1 / a0, b2=b2 / a0, a1=a1 / a0, a2=a2 / a0)

    def to_dict(self) -> Dict[str, float]:
        return {'b0': self.b0, 'b1': self.b1, 'b2': self.b2, 'a1': self.a1, 'a2': self.a2}


def _check_args(freq: float, q: float, sample_rate: float):
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    if not 0 < freq < sample_rate / 2:
        raise ValueError(
            f"Frequency must lie in (0, {sample_rate / 2:g}) Hz for fs={sample_rate:g}, got {freq}"
        )
    if q <= 0:
        raise ValueError(f"Q must be positive, got {q}")


def low_shelf(freq: float, gain_db: float, q: float, sample_rate: float) -> BiquadCoefficients:
    _check_args(freq, q, sample_rate)
    w = 2 * math.pi * freq / sample_rate
    cosw = math.cos(w)
    sinw = math.sin(w)
    A = 10 ** (gain_db / 40)
    beta = math.sqrt(A) / q

    return BiquadCoefficients.from_raw(
        b0=A * ((A + 1) - (A - 1) * cosw + beta * sinw),
        b1=2 * A * ((A - 1) - (A + 1) * cosw),
        b2=A * ((A + 1) - (A - 1) * cosw - beta * sinw),
        a0=(A + 1) + (A - 1) * cosw + beta * sinw,
        a1=-2 * ((A - 1) + (A + 1) * cosw),
        a2=(A + 1) + (A - 1) * cosw - beta * sinw,
    )


def high_shelf(freq: float, gain_db: float, q: float, sample_rate: float) -> BiquadCoefficients:
    _check_args(freq, q, sample_rate)
    w = 2 * math.pi * freq / sample_rate
    cosw = math.cos(w)
    sinw = math.sin(w)
    A = 10 ** (gain_db / 40)
    beta = math.sqrt(A) / q

    return BiquadCoefficients.from_raw(
        b0=A * ((A + 1) + (A - 1) * cosw + beta * sinw),
        b1=-2 * A * ((A - 1) + (A + 1) * cosw),
        b2=A * ((A + 1) + (A - 1) * cosw - beta * sinw),
        a0=(A + 1) - (A - 1) * cosw + beta * sinw,
        a1=2 * ((A - 1) - (A + 1) * cosw),
        a2=(A + 1) - (A - 1) * cosw - beta * sinw,
    )


def peaking(freq: float, gain_db: float, q: float, sample_rate: float) -> BiquadCoefficients:
    _check_args(freq, q, sample_rate)
    w = 2 * math.pi * freq / sample_rate
    cosw = math.cos(w)
    A = 10 ** (gain_db / 40)
    alpha = math.sin(w) / (2 * q)

    return BiquadCoefficients.from_raw(
        b0=1 + alpha * A,
        b1=-2 * cosw,
        b2=1 - alpha * A,
        a0=1 + alpha / A,
        a1=-2 * cosw,
        a2=1 - alpha / A,
    )


def low_pass(freq: float, q: float, sample_rate: float) -> BiquadCoefficients:
    _check_args(freq, q, sample_rate)
    w = 2 * math.pi * freq / sample_rate
    cosw = math.cos(w)
    alpha = math.sin(w) / (2 * q)

    return BiquadCoefficients.from_raw(
        b0=(1 - cosw) / 2,
        b1=1 - cosw,
        b2=(1 - cosw) / 2,
        a0=1 + alpha,
        a1=-2 * cosw,
        a2=1 - alpha,
    )


def high_pass(freq: float, q: float, sample_rate: float) -> BiquadCoefficients:
    _check_args(freq, q, sample_rate)
    w = 2 * math.pi * freq / sample_rate
    cosw = math.cos(w)
    alpha = math.sin(w) / (2 * q)

    return BiquadCoefficients.from_raw(
        b0=(1 + cosw) / 2,
        b1=-(1 + cosw),
        b2=(1 + cosw) / 2,
        a0=1 + alpha,
        a1=-2 * cosw,
        a2=1 - alpha,
    )


def clamp_to_nyquist(freq: float, sample_rate: float) -> float:
    """Keep a mapped corner frequency safely inside (0, fs/2)."""
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    return min(freq, NYQUIST_GUARD * sample_rate)


@dataclass(frozen=True)
class BandMapping:
    """
    Maps a 0..1 control onto one EQ band.

    corner = min_hz + control·span_hz
    gain   = control·gain_span_db − gain_span_db/2   (0.5 → 0 dB)
    """
    min_hz: float
    span_hz: float
    gain_span_db: float
    q: float

    def corner(self, control: float) -> float:
        return self.min_hz + control * self.span_hz

    def gain(self, control: float) -> float:
        return control * self.gain_span_db - self.gain_span_db / 2
