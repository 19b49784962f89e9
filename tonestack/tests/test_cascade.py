"""
Tests for the stateful biquad cascade.

Validates:
1. Direct Form I difference equation and register shifting
2. Section chaining order
3. Reset clears state (zero in → zero out)
4. Block processing equals one-shot processing (state carries over)
5. Coefficient updates keep state
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from tonestack.biquad import BUTTERWORTH_Q, BiquadCoefficients, low_pass, peaking
from tonestack.cascade import BiquadSection, CascadeProcessor

FS = 44100.0

IDENTITY = BiquadCoefficients(b0=1.0, b1=0.0, b2=0.0, a1=0.0, a2=0.0)
HALF = BiquadCoefficients(b0=0.5, b1=0.0, b2=0.0, a1=0.0, a2=0.0)
DELAY = BiquadCoefficients(b0=0.0, b1=1.0, b2=0.0, a1=0.0, a2=0.0)


def _noise(n, seed=1234):
    return np.random.default_rng(seed).standard_normal(n)


class TestBiquadSection:
    """Test one Direct Form I section."""

    def test_difference_equation(self):
        """Impulse response of y = x + 0.5·y[n-1] is 0.5^n."""
        section = BiquadSection(BiquadCoefficients(b0=1.0, b1=0.0, b2=0.0, a1=-0.5, a2=0.0))
        out = [section.process(x) for x in [1.0, 0.0, 0.0, 0.0]]
        np.testing.assert_allclose(out, [1.0, 0.5, 0.25, 0.125])

    def test_registers_shift(self):
        section = BiquadSection(IDENTITY)
        section.process(1.0)
        section.process(2.0)
        assert section.state == (2.0, 1.0, 2.0, 1.0)

    def test_unit_delay(self):
        section = BiquadSection(DELAY)
        out = [section.process(x) for x in [3.0, 4.0, 5.0]]
        assert out == [0.0, 3.0, 4.0]

    def test_reset(self):
        section = BiquadSection(IDENTITY)
        section.process(1.0)
        section.reset()
        assert section.state == (0.0, 0.0, 0.0, 0.0)


class TestCascadeProcessor:
    """Test chained processing."""

    def test_empty_cascade_passes_through(self):
        proc = CascadeProcessor([])
        np.testing.assert_allclose(proc.process_buffer([1.0, -2.0, 3.0]), [1.0, -2.0, 3.0])

    def test_sections_chain(self):
        """Half-gain then delay: y[n] = 0.5·x[n-1]."""
        proc = CascadeProcessor([HALF, DELAY])
        out = proc.process_buffer([2.0, 4.0, 6.0])
        np.testing.assert_allclose(out, [0.0, 1.0, 2.0])

    def test_len_and_coefficients(self):
        proc = CascadeProcessor([HALF, DELAY])
        assert len(proc) == 2
        assert proc.coefficients == [HALF, DELAY]

    def test_reset_then_zero_input_gives_zero(self):
        """After reset, silence in means silence out."""
        proc = CascadeProcessor([
            peaking(1000.0, 6.0, 1.0, FS),
            low_pass(3000.0, BUTTERWORTH_Q, FS),
        ])
        proc.process_buffer(_noise(256))
        proc.reset()
        out = proc.process_buffer(np.zeros(128))
        assert np.all(out == 0.0)

    def test_state_persists_between_buffers(self):
        """Two half-buffers equal one whole buffer."""
        coeffs = [peaking(800.0, -4.0, 1.2, FS), low_pass(5000.0, BUTTERWORTH_Q, FS)]
        signal = _noise(1000)

        whole = CascadeProcessor(coeffs).process_buffer(signal)

        streamed = CascadeProcessor(coeffs)
        first = streamed.process_buffer(signal[:437])
        second = streamed.process_buffer(signal[437:])

        np.testing.assert_allclose(np.concatenate([first, second]), whole, rtol=0, atol=1e-12)

    def test_rejects_2d_buffer(self):
        with pytest.raises(ValueError):
            CascadeProcessor([IDENTITY]).process_buffer(np.zeros((2, 4)))

    def test_output_is_array(self):
        out = CascadeProcessor([IDENTITY]).process_buffer([0.1, 0.2])
        assert isinstance(out, np.ndarray)
        assert out.dtype == float


class TestCoefficientUpdates:
    """Test swapping coefficients on a live cascade."""

    def test_update_keeps_state(self):
        proc = CascadeProcessor([IDENTITY])
        proc.process(1.0)
        proc.update_coefficients(0, DELAY)
        # x1 still holds the previous input
        assert proc.process(0.0) == 1.0

    def test_update_out_of_range(self):
        with pytest.raises(IndexError):
            CascadeProcessor([IDENTITY]).update_coefficients(3, HALF)

    def test_update_all_skips_none(self):
        proc = CascadeProcessor([IDENTITY, IDENTITY])
        proc.update_all([None, HALF])
        assert proc.coefficients == [IDENTITY, HALF]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
