"""
Tests for frequency response evaluation.

Validates:
1. Log frequency grid (N points, constant ratio, endpoints)
2. dB floor
3. Cascade = product of magnitudes, sum of phases
4. Sweeps of sections, cascades and exact transfer functions
5. Normalization to a reference frequency
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from tonestack.analysis import (
    FrequencyPoint,
    evaluate_cascade,
    evaluate_section,
    log_frequencies,
    magnitude_to_db,
    response_arrays,
    sweep,
)
from tonestack.biquad import BUTTERWORTH_Q, BiquadCoefficients, high_shelf, low_pass, peaking

FS = 44100.0


class TestLogFrequencies:
    """Test the sweep grid."""

    def test_count_and_endpoints(self):
        f = log_frequencies(10.0, 20000.0, 512)
        assert len(f) == 512
        assert f[0] == pytest.approx(10.0)
        assert f[-1] == pytest.approx(20000.0)

    def test_constant_ratio(self):
        f = log_frequencies(20.0, 20000.0, 31)
        ratios = f[1:] / f[:-1]
        np.testing.assert_allclose(ratios, ratios[0], rtol=1e-9)

    def test_ascending(self):
        f = log_frequencies(10.0, 1000.0, 50)
        assert np.all(np.diff(f) > 0)

    def test_single_point_is_start(self):
        np.testing.assert_allclose(log_frequencies(100.0, 1000.0, 1), [100.0])

    @pytest.mark.parametrize('start,end,n', [
        (0.0, 1000.0, 10),
        (-5.0, 1000.0, 10),
        (1000.0, 100.0, 10),
        (100.0, 100.0, 10),
        (10.0, 1000.0, 0),
    ])
    def test_invalid_grid_raises(self, start, end, n):
        with pytest.raises(ValueError):
            log_frequencies(start, end, n)


class TestMagnitudeToDb:
    """Test dB conversion with floor."""

    def test_unity_is_zero_db(self):
        assert magnitude_to_db(1.0) == pytest.approx(0.0)

    def test_floor(self):
        """Zero magnitude is clamped to 1e-10 → −200 dB, never −inf."""
        assert magnitude_to_db(0.0) == pytest.approx(-200.0)

    def test_complex_input(self):
        assert magnitude_to_db(0.1j) == pytest.approx(-20.0)


class TestEvaluate:
    """Test unit-circle evaluation."""

    def test_identity_section(self):
        identity = BiquadCoefficients(b0=1.0, b1=0.0, b2=0.0, a1=0.0, a2=0.0)
        mag, ph = evaluate_section(identity, np.linspace(0.01, 3.0, 20))
        np.testing.assert_allclose(mag, 1.0)
        np.testing.assert_allclose(ph, 0.0, atol=1e-15)

    def test_unit_delay_phase(self):
        """z^-1 has unit magnitude and phase −ω."""
        delay = BiquadCoefficients(b0=0.0, b1=1.0, b2=0.0, a1=0.0, a2=0.0)
        mag, ph = evaluate_section(delay, 0.5)
        assert mag == pytest.approx(1.0)
        assert ph == pytest.approx(-0.5)

    def test_cascade_multiplies_and_adds(self):
        a = peaking(1000.0, 6.0, 1.0, FS)
        b = low_pass(4000.0, BUTTERWORTH_Q, FS)
        omega = 2 * np.pi * np.array([100.0, 1000.0, 5000.0]) / FS

        mag_a, ph_a = evaluate_section(a, omega)
        mag_b, ph_b = evaluate_section(b, omega)
        mag, ph = evaluate_cascade([a, b], omega)

        np.testing.assert_allclose(mag, mag_a * mag_b)
        np.testing.assert_allclose(ph, ph_a + ph_b)

    def test_empty_cascade_is_unity(self):
        mag, ph = evaluate_cascade([], np.array([0.1, 0.2]))
        np.testing.assert_allclose(mag, 1.0)
        np.testing.assert_allclose(ph, 0.0)


class TestSweep:
    """Test sweeps over the three source kinds."""

    def test_point_count_and_order(self):
        points = sweep([peaking(1000.0, 3.0, 1.0, FS)], 20.0, 20000.0, 64, FS)
        assert len(points) == 64
        assert all(isinstance(p, FrequencyPoint) for p in points)
        freqs = [p.frequency for p in points]
        assert freqs == sorted(freqs)

    def test_single_section_source(self):
        coeffs = high_shelf(3000.0, 6.0, 0.7, FS)
        single = sweep(coeffs, 20.0, 20000.0, 16, FS)
        cascade = sweep([coeffs], 20.0, 20000.0, 16, FS)
        assert [p.magnitude for p in single] == pytest.approx([p.magnitude for p in cascade])

    def test_transfer_function_source(self):
        """A callable source is evaluated directly: first-order RC low-pass."""
        fc = 1000.0

        def rc(freqs):
            return 1.0 / (1.0 + 1j * freqs / fc)

        points = sweep(rc, 100.0, 10000.0, 3)
        mid = points[1]
        assert mid.frequency == pytest.approx(1000.0)
        assert mid.magnitude == pytest.approx(-3.0103, abs=1e-3)
        assert mid.phase == pytest.approx(-45.0)

    def test_defaults_from_settings(self):
        points = sweep([peaking(1000.0, 3.0, 1.0, FS)])
        assert len(points) == 512
        assert points[0].frequency == pytest.approx(10.0)
        assert points[-1].frequency == pytest.approx(20000.0)

    def test_reference_normalization(self):
        """With reference_hz the response is 0 dB at that frequency."""
        coeffs = [peaking(1000.0, 6.0, 1.0, FS)]
        points = sweep(coeffs, 100.0, 10000.0, 3, FS, reference_hz=1000.0)
        assert points[1].magnitude == pytest.approx(0.0, abs=1e-9)
        assert points[0].magnitude < 0.0

    def test_zero_response_is_floored(self):
        points = sweep(lambda f: np.zeros_like(f, dtype=complex), 10.0, 100.0, 4)
        assert all(p.magnitude == pytest.approx(-200.0) for p in points)

    def test_response_arrays(self):
        points = sweep([peaking(1000.0, 3.0, 1.0, FS)], 20.0, 20000.0, 8, FS)
        arrays = response_arrays(points)
        assert arrays['num_points'] == 8
        assert len(arrays['frequencies']) == len(arrays['magnitude_db']) == len(arrays['phase_deg']) == 8

    def test_point_to_dict(self):
        p = FrequencyPoint(frequency=100.0, magnitude=-3.0, phase=10.0)
        assert p.to_dict() == {'frequency': 100.0, 'magnitude': -3.0, 'phase': 10.0}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
