"""
Tests for topology definitions and dispatch.

Validates:
1. Every enum member is registered
2. Unknown identifiers fall back to fender-tmb with a warning
3. Section mappers: three-band stacks give [low-shelf, peak, high-shelf],
   single-control stacks give one low-pass
4. Control → corner mappings (Vox cut, RAT RC corner)
5. Corner frequencies stay below Nyquist at low sample rates
"""

import math

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from tonestack.analysis import evaluate_cascade
from tonestack.biquad import BUTTERWORTH_Q, high_shelf, low_pass, low_shelf, peaking
from tonestack.components import ToneStackCircuitParameters
from tonestack.simulation import sweep
from tonestack.topology import (
    FENDER_BANDS,
    MARSHALL_BANDS,
    RAT_DISTORTION_VALUES,
    TOPOLOGIES,
    ToneStackTopology,
    get_topology,
    list_topologies,
    rc_cutoff,
    resolve_topology,
    vox_cutoff,
)

FS = 44100.0


def _sections(topology, controls=None, fs=FS):
    definition = get_topology(topology)
    params = ToneStackCircuitParameters.build(definition.values, controls)
    return definition.sections(params, fs)


class TestRegistry:
    """Test the closed topology registry."""

    def test_every_member_registered(self):
        assert set(TOPOLOGIES) == set(ToneStackTopology)

    def test_ids(self):
        ids = [t['id'] for t in list_topologies()]
        assert ids == ['fender-tmb', 'marshall-jcm800', 'boneyard-ray', 'vox-ac30', 'rat-distortion']

    def test_category_filter(self):
        single = [t['id'] for t in list_topologies('single-control')]
        assert single == ['vox-ac30', 'rat-distortion']

    def test_definition_id_matches_key(self):
        for key, definition in TOPOLOGIES.items():
            assert definition.topology is key
            assert definition.id == key.value


class TestResolve:
    """Test identifier resolution."""

    def test_known_string(self):
        assert resolve_topology('vox-ac30') is ToneStackTopology.VOX_AC30

    def test_enum_passthrough(self):
        assert resolve_topology(ToneStackTopology.RAT_DISTORTION) is ToneStackTopology.RAT_DISTORTION

    def test_unknown_falls_back(self, caplog):
        assert resolve_topology('orange-rockerverb') is ToneStackTopology.FENDER_TMB
        assert 'orange-rockerverb' in caplog.text

    def test_none_falls_back(self):
        assert resolve_topology(None) is ToneStackTopology.FENDER_TMB

    def test_get_unknown_returns_default_definition(self):
        assert get_topology('nope').id == 'fender-tmb'


class TestThreeBandSections:
    """Test Fender/Marshall/Boneyard section mapping."""

    @pytest.mark.parametrize('topology', ['fender-tmb', 'marshall-jcm800', 'boneyard-ray'])
    def test_three_sections_near_flat_at_noon(self, topology):
        sections = _sections(topology, {'bass': 0.5, 'mid': 0.5, 'treble': 0.5})
        assert len(sections) == 3
        mag, _ = evaluate_cascade(sections, 2 * np.pi * 1000.0 / FS)
        assert abs(20 * np.log10(mag)) <= 10.0

    def test_fender_section_order_and_values(self):
        sections = _sections('fender-tmb', {'bass': 1.0, 'mid': 0.0, 'treble': 0.25})
        expected = [
            low_shelf(250.0, 6.0, 0.7, FS),
            peaking(500.0, -6.0, 1.0, FS),
            high_shelf(4250.0, -3.0, 0.7, FS),
        ]
        for got, want in zip(sections, expected):
            assert got.to_dict() == pytest.approx(want.to_dict())

    def test_marshall_uses_wider_gain_span(self):
        assert MARSHALL_BANDS.bass.gain(1.0) == pytest.approx(7.5)
        assert FENDER_BANDS.bass.gain(1.0) == pytest.approx(6.0)
        sections = _sections('marshall-jcm800', {'bass': 0.0, 'mid': 1.0, 'treble': 0.5})
        assert sections[0].to_dict() == pytest.approx(low_shelf(80.0, -7.5, 0.8, FS).to_dict())
        assert sections[1].to_dict() == pytest.approx(peaking(1200.0, 7.5, 1.2, FS).to_dict())

    def test_boneyard_shares_fender_mapping(self):
        controls = {'bass': 0.3, 'mid': 0.9, 'treble': 0.6}
        assert _sections('boneyard-ray', controls) == _sections('fender-tmb', controls)

    def test_more_bass_more_low_end(self):
        flat = _sections('fender-tmb', {'bass': 0.0})
        boosted = _sections('fender-tmb', {'bass': 1.0})
        omega = 2 * np.pi * 50.0 / FS
        assert evaluate_cascade(boosted, omega)[0] > evaluate_cascade(flat, omega)[0]

    def test_corners_clamped_at_low_sample_rate(self):
        """At 8 kHz the 8 kHz treble corner would exceed Nyquist; it is clamped."""
        sections = _sections('fender-tmb', {'treble': 1.0}, fs=8000.0)
        assert sections[2].to_dict() == pytest.approx(high_shelf(3600.0, 6.0, 0.7, 8000.0).to_dict())


class TestSingleControlSections:
    """Test Vox cut and RAT filter mapping."""

    def test_vox_cut_mapping(self):
        assert vox_cutoff(0.0) == pytest.approx(5000.0)
        assert vox_cutoff(0.3) == pytest.approx(3800.0)
        assert vox_cutoff(1.0) == pytest.approx(1000.0)

    def test_vox_single_lowpass(self):
        sections = _sections('vox-ac30', {'cut': 0.3})
        assert len(sections) == 1
        assert sections[0].to_dict() == pytest.approx(low_pass(3800.0, BUTTERWORTH_Q, FS).to_dict())

    def test_vox_response_non_increasing_above_cutoff(self):
        """Default 10 Hz to 20 kHz, 512-point sweep at cut=0.3 (3.8 kHz corner)."""
        points = sweep('vox-ac30', {'cut': 0.3}, sample_rate=FS)
        assert len(points) == 512
        assert points[0].frequency == pytest.approx(10.0)
        assert points[-1].frequency == pytest.approx(20000.0)

        above = np.array([p.magnitude for p in points if p.frequency >= vox_cutoff(0.3)])
        assert len(above) > 100
        assert np.all(np.diff(above) <= 1e-9)
        # Passband untouched well below the corner
        assert all(abs(p.magnitude) < 0.01 for p in points if p.frequency < 200.0)

    def test_rat_rc_corner(self):
        params = ToneStackCircuitParameters.build(RAT_DISTORTION_VALUES, {'tone': 0.5})
        expected = 1.0 / (2 * math.pi * (1e3 + 50e3) * 3.3e-9)
        assert rc_cutoff(params) == pytest.approx(expected)

    def test_rat_single_lowpass(self):
        sections = _sections('rat-distortion', {'tone': 0.5})
        assert len(sections) == 1
        params = ToneStackCircuitParameters.build(RAT_DISTORTION_VALUES, {'tone': 0.5})
        assert sections[0] == low_pass(rc_cutoff(params), BUTTERWORTH_Q, FS)

    def test_rat_tone_zero_clamped_to_nyquist(self):
        """tone=0 puts the RC corner near 48 kHz, above Nyquist; it is clamped."""
        sections = _sections('rat-distortion', {'tone': 0.0})
        assert sections[0] == low_pass(0.45 * FS, BUTTERWORTH_Q, FS)


class TestNoNonFinite:
    """Every topology gives finite coefficients at the control extremes."""

    @pytest.mark.parametrize('topology', [t.value for t in ToneStackTopology])
    @pytest.mark.parametrize('position', [0.0, 1.0])
    def test_finite_response(self, topology, position):
        controls = {name: position for name in ('bass', 'mid', 'treble', 'cut', 'tone')}
        sections = _sections(topology, controls)
        freqs = np.array([10.0, 100.0, 1000.0, 10000.0, 20000.0])
        mag, ph = evaluate_cascade(sections, 2 * np.pi * freqs / FS)
        assert np.all(np.isfinite(mag)) and np.all(np.isfinite(ph))


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
