"""
Stateful biquad cascade for sample-by-sample audio filtering.

A CascadeProcessor owns the delay registers of its sections. Use one
instance per audio stream; state carries over between process_buffer()
calls so a stream can be fed in blocks.
"""

from typing import Iterable, List, Sequence

import numpy as np

from tonestack.biquad import BiquadCoefficients


class BiquadSection:
    """Direct Form I section: coefficients plus x1, x2, y1, y2."""

    __slots__ = ('coeffs', 'x1', 'x2', 'y1', 'y2')

    def __init__(self, coeffs: BiquadCoefficients):
        self.coeffs = coeffs
        self.x1 = 0.0
        self.x2 = 0.0
        self.y1 = 0.0
        self.y2 = 0.0

    def process(self, sample: float) -> float:
        c = self.coeffs
        output = (c.b0 * sample + c.b1 * self.x1 + c.b2 * self.x2
                  - c.a1 * self.y1 - c.a2 * self.y2)

        self.x2 = self.x1
        self.x1 = sample
        self.y2 = self.y1
        self.y1 = output

        return output

    def reset(self):
        self.x1 = self.x2 = self.y1 = self.y2 = 0.0

    @property
    def state(self):
        return (self.x1, self.x2, self.y1, self.y2)


class CascadeProcessor:
    """Ordered chain of biquad sections; each section's output feeds the next."""

    def __init__(self, coefficients: Iterable[BiquadCoefficients]):
        self._sections: List[BiquadSection] = [BiquadSection(c) for c in coefficients]

    def __len__(self) -> int:
        return len(self._sections)

    @property
    def sections(self) -> List[BiquadSection]:
        return list(self._sections)

    @property
    def coefficients(self) -> List[BiquadCoefficients]:
        return [s.coeffs for s in self._sections]

    def process(self, sample: float) -> float:
        out = float(sample)
        for section in self._sections:
            out = section.process(out)
        return out

    def process_buffer(self, samples: Sequence[float]) -> np.ndarray:
        """Filter a block of samples, keeping state for the next block."""
        data = np.asarray(samples, dtype=float)
        if data.ndim != 1:
            raise ValueError(f"Expected a 1-D sample buffer, got shape {data.shape}")
        out = np.empty_like(data)
        for i, sample in enumerate(data.tolist()):
            out[i] = self.process(sample)
        return out

    def update_coefficients(self, index: int, coeffs: BiquadCoefficients):
        """Swap one section's coefficients; its delay registers are kept."""
        if not -len(self._sections) <= index < len(self._sections):
            raise IndexError(f"Section index {index} out of range for {len(self._sections)} sections")
        self._sections[index].coeffs = coeffs

    def update_all(self, coefficients: Sequence[BiquadCoefficients]):
        """Swap coefficients for every section that has a counterpart in `coefficients`."""
        for section, coeffs in zip(self._sections, coefficients):
            if coeffs is not None:
                section.coeffs = coeffs

    def reset(self):
        for section in self._sections:
            section.reset()
