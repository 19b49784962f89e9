"""
Reference response curves.

Measured or externally calculated curves (for example a tone stack
calculator export or an analyzer measurement) are loaded from CSV and
compared against a computed sweep on a log-frequency axis.
"""

import csv
import io
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from tonestack.analysis import FrequencyPoint


@dataclass(frozen=True)
class ReferenceCurve:
    frequencies: np.ndarray      # Hz, ascending
    magnitude_db: np.ndarray
    phase_deg: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.frequencies)


def parse_response_csv(csv_content: str) -> ReferenceCurve:
    """
    Parse a CSV of frequency response data.

    Expects columns: frequency (Hz), magnitude (dB), [phase (degrees)]
    Header row is auto-detected. Supports comma and tab delimiters.
    Rows with a non-positive frequency or unparseable values are skipped.
    """
    delimiter = ',' if ',' in csv_content else '\t'

    reader = csv.reader(io.StringIO(csv_content), delimiter=delimiter)
    rows = [row for row in reader if row]

    if not rows:
        raise ValueError("Empty CSV content")

    # Skip header if first row contains non-numeric data
    start = 0
    try:
        float(rows[0][0])
    except (ValueError, IndexError):
        start = 1

    if start >= len(rows):
        raise ValueError("CSV must contain at least 2 valid data points")

    freqs = []
    mags = []
    phases = []
    has_phase = len(rows[start]) >= 3

    for row in rows[start:]:
        if len(row) < 2:
            continue
        try:
            f = float(row[0])
            m = float(row[1])
            p = float(row[2]) if has_phase and len(row) >= 3 else None
        except ValueError:
            continue
        if f <= 0 or not np.isfinite(m):
            continue
        freqs.append(f)
        mags.append(m)
        if p is not None:
            phases.append(p)

    if len(freqs) < 2:
        raise ValueError("CSV must contain at least 2 valid data points")

    order = np.argsort(freqs)
    freq_arr = np.array(freqs)[order]
    mag_arr = np.array(mags)[order]
    phase_arr = np.array(phases)[order] if phases and len(phases) == len(freqs) else None

    return ReferenceCurve(frequencies=freq_arr, magnitude_db=mag_arr, phase_deg=phase_arr)


def interpolate_response(
    curve: ReferenceCurve,
    target_freqs,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """
    Resample a reference curve onto new frequencies.

    dB and degrees are already logarithmic/linear quantities, so both are
    interpolated linearly against log10(frequency). Targets outside the
    curve's range take the nearest end value.

    Returns (magnitude_db, phase_deg_or_None)
    """
    target = np.asarray(target_freqs, dtype=float)
    if np.any(target <= 0):
        raise ValueError("Target frequencies must be positive")

    log_freq = np.log10(curve.frequencies)
    log_target = np.log10(target)

    interp_mag = np.interp(log_target, log_freq, curve.magnitude_db)

    interp_phase = None
    if curve.phase_deg is not None:
        interp_phase = np.interp(log_target, log_freq, curve.phase_deg)

    return interp_mag, interp_phase


def response_deviation(
    points: Sequence[FrequencyPoint],
    curve: ReferenceCurve,
    normalize_hz: Optional[float] = None,
) -> Dict[str, float]:
    """
    Compare a computed sweep against a reference curve.

    Args:
        points: Computed frequency points.
        curve: Reference curve, resampled onto the points' frequencies.
        normalize_hz: When given, both curves are shifted to 0 dB at this
                      frequency first, so only the shape is compared.

    Returns:
        dict with max_abs_db, mean_abs_db, rms_db and worst_frequency.
    """
    if not points:
        raise ValueError("No frequency points to compare")

    freqs = np.array([p.frequency for p in points])
    computed = np.array([p.magnitude for p in points])
    expected, _ = interpolate_response(curve, freqs)

    if normalize_hz is not None:
        computed = computed - np.interp(np.log10(normalize_hz), np.log10(freqs), computed)
        expected = expected - interpolate_response(curve, [normalize_hz])[0][0]

    error = computed - expected
    abs_error = np.abs(error)
    worst = int(np.argmax(abs_error))

    return {
        'max_abs_db': float(abs_error[worst]),
        'mean_abs_db': float(np.mean(abs_error)),
        'rms_db': float(np.sqrt(np.mean(error ** 2))),
        'worst_frequency': float(freqs[worst]),
    }
