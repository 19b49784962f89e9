"""
Tone stack topology definitions.

Each topology pairs an immutable component table with two ways of computing
its response:

- a section mapper, which turns control positions into biquad sections
  (fast approximation, suitable for filtering audio), and
- a network builder, which sets up the exact nodal-admittance system.

Component values follow the published schematics of each circuit.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from tonestack.biquad import (
    BUTTERWORTH_Q,
    BandMapping,
    BiquadCoefficients,
    clamp_to_nyquist,
    high_shelf,
    low_pass,
    low_shelf,
    peaking,
)
from tonestack.components import CircuitValues, ToneStackCircuitParameters
from tonestack.config import settings
from tonestack.network import (
    NetworkBuilder,
    build_cut_system,
    build_rc_filter_system,
    build_tmb_system,
)

logger = logging.getLogger(__name__)

SectionMapper = Callable[[ToneStackCircuitParameters, float], List[BiquadCoefficients]]


class ToneStackTopology(str, Enum):
    FENDER_TMB = "fender-tmb"
    MARSHALL_JCM800 = "marshall-jcm800"
    VOX_AC30 = "vox-ac30"
    BONEYARD_RAY = "boneyard-ray"
    RAT_DISTORTION = "rat-distortion"


DEFAULT_TOPOLOGY = ToneStackTopology.FENDER_TMB


# --- Component tables ---

FENDER_TMB_VALUES = CircuitValues(
    R1=56e3,        # slope
    C1=250e-12,     # treble cap
    C2=20e-9,       # bass cap
    C3=20e-9,       # mid cap
    P1=250e3,       # treble pot
    P2=25e3,        # mid pot
    P3=1e6,         # bass pot
)

MARSHALL_JCM800_VALUES = CircuitValues(
    R1=33e3,
    C1=470e-12,
    C2=22e-9,
    C3=22e-9,
    P1=220e3,
    P2=25e3,
    P3=1e6,
)

BONEYARD_RAY_VALUES = CircuitValues(
    R1=47e3,
    R2=3.9e3,       # fixed resistor under the mid pot
    R3=10e3,        # fixed resistor in series with the bass pot
    C1=330e-12,
    C2=33e-9,
    C3=22e-9,
    P1=500e3,
    P2=50e3,
    P3=500e3,
)

VOX_AC30_VALUES = CircuitValues(
    R1=1e6,         # cut resistor
    C1=4.7e-9,      # cut cap
    P1=1e6,         # cut pot
)

RAT_DISTORTION_VALUES = CircuitValues(
    R1=1e3,         # series resistor
    C1=3.3e-9,      # filter cap
    P1=100e3,       # filter pot
)


# --- Band mappings for the biquad approximation ---

@dataclass(frozen=True)
class ThreeBandMapping:
    bass: BandMapping
    mid: BandMapping
    treble: BandMapping


FENDER_BANDS = ThreeBandMapping(
    bass=BandMapping(min_hz=100.0, span_hz=150.0, gain_span_db=12.0, q=0.7),
    mid=BandMapping(min_hz=500.0, span_hz=1000.0, gain_span_db=12.0, q=1.0),
    treble=BandMapping(min_hz=3000.0, span_hz=5000.0, gain_span_db=12.0, q=0.7),
)

MARSHALL_BANDS = ThreeBandMapping(
    bass=BandMapping(min_hz=80.0, span_hz=120.0, gain_span_db=15.0, q=0.8),
    mid=BandMapping(min_hz=400.0, span_hz=800.0, gain_span_db=15.0, q=1.2),
    treble=BandMapping(min_hz=2500.0, span_hz=4500.0, gain_span_db=15.0, q=0.8),
)

# Vox cut: 5 kHz fully open, 1 kHz at full cut
VOX_CUT_MAX_HZ = 5000.0
VOX_CUT_SPAN_HZ = 4000.0


def three_band_sections(
    bands: ThreeBandMapping,
    bass: float,
    mid: float,
    treble: float,
    sample_rate: float,
) -> List[BiquadCoefficients]:
    """[bass low-shelf, mid peak, treble high-shelf]."""
    b, m, t = bands.bass, bands.mid, bands.treble
    return [
        low_shelf(clamp_to_nyquist(b.corner(bass), sample_rate), b.gain(bass), b.q, sample_rate),
        peaking(clamp_to_nyquist(m.corner(mid), sample_rate), m.gain(mid), m.q, sample_rate),
        high_shelf(clamp_to_nyquist(t.corner(treble), sample_rate), t.gain(treble), t.q, sample_rate),
    ]


def _fender_sections(params: ToneStackCircuitParameters, sample_rate: float) -> List[BiquadCoefficients]:
    return three_band_sections(FENDER_BANDS, params.bass, params.mid, params.treble, sample_rate)


def _marshall_sections(params: ToneStackCircuitParameters, sample_rate: float) -> List[BiquadCoefficients]:
    return three_band_sections(MARSHALL_BANDS, params.bass, params.mid, params.treble, sample_rate)


def vox_cutoff(cut: float) -> float:
    return VOX_CUT_MAX_HZ - cut * VOX_CUT_SPAN_HZ


def _vox_sections(params: ToneStackCircuitParameters, sample_rate: float) -> List[BiquadCoefficients]:
    cutoff = clamp_to_nyquist(vox_cutoff(params.cut), sample_rate)
    return [low_pass(cutoff, BUTTERWORTH_Q, sample_rate)]


def rc_cutoff(params: ToneStackCircuitParameters) -> float:
    """Corner of the series R + pot into C1 low-pass: 1 / (2π(R1 + P1·tone)C1)."""
    values = params.values
    resistance = max(values.R1 + values.P1 * params.tone, settings.pot_floor_ohms)
    return 1.0 / (2 * math.pi * resistance * values.C1)


def _rat_sections(params: ToneStackCircuitParameters, sample_rate: float) -> List[BiquadCoefficients]:
    cutoff = clamp_to_nyquist(rc_cutoff(params), sample_rate)
    return [low_pass(cutoff, BUTTERWORTH_Q, sample_rate)]


@dataclass(frozen=True)
class TopologyDefinition:
    """Complete definition of a tone stack topology."""
    topology: ToneStackTopology
    name: str
    description: str
    controls: Tuple[str, ...]
    values: CircuitValues
    sections: SectionMapper
    network: NetworkBuilder
    category: str = 'three-band'

    @property
    def id(self) -> str:
        return self.topology.value


TOPOLOGIES: Dict[ToneStackTopology, TopologyDefinition] = {
    ToneStackTopology.FENDER_TMB: TopologyDefinition(
        topology=ToneStackTopology.FENDER_TMB,
        name='Fender TMB',
        description="Fender Treble-Mid-Bass stack ('59 Bassman values)",
        controls=('bass', 'mid', 'treble'),
        values=FENDER_TMB_VALUES,
        sections=_fender_sections,
        network=build_tmb_system,
    ),
    ToneStackTopology.MARSHALL_JCM800: TopologyDefinition(
        topology=ToneStackTopology.MARSHALL_JCM800,
        name='Marshall JCM800',
        description='Marshall TMB stack with lower slope resistor and larger treble cap',
        controls=('bass', 'mid', 'treble'),
        values=MARSHALL_JCM800_VALUES,
        sections=_marshall_sections,
        network=build_tmb_system,
    ),
    ToneStackTopology.BONEYARD_RAY: TopologyDefinition(
        topology=ToneStackTopology.BONEYARD_RAY,
        name='Boneyard Ray',
        description='Modern high-gain TMB variant with fixed bass and mid leg resistors',
        controls=('bass', 'mid', 'treble'),
        values=BONEYARD_RAY_VALUES,
        sections=_fender_sections,
        network=build_tmb_system,
    ),
    ToneStackTopology.VOX_AC30: TopologyDefinition(
        topology=ToneStackTopology.VOX_AC30,
        name='Vox AC30',
        description='Vox cut control: variable treble shunt to ground',
        controls=('cut',),
        values=VOX_AC30_VALUES,
        sections=_vox_sections,
        network=build_cut_system,
        category='single-control',
    ),
    ToneStackTopology.RAT_DISTORTION: TopologyDefinition(
        topology=ToneStackTopology.RAT_DISTORTION,
        name='RAT Distortion',
        description='ProCo RAT filter control: series resistance into a shunt cap',
        controls=('tone',),
        values=RAT_DISTORTION_VALUES,
        sections=_rat_sections,
        network=build_rc_filter_system,
        category='single-control',
    ),
}


def _default_topology() -> ToneStackTopology:
    try:
        return ToneStackTopology(settings.default_topology)
    except ValueError:
        logger.warning("Configured default topology %r is unknown, using %s",
                       settings.default_topology, DEFAULT_TOPOLOGY.value)
        return DEFAULT_TOPOLOGY


def resolve_topology(identifier: Union[str, ToneStackTopology, None]) -> ToneStackTopology:
    """
    Map an identifier onto a known topology.

    Unknown identifiers fall back to the default topology (fender-tmb unless
    configured otherwise) instead of failing.
    """
    if isinstance(identifier, ToneStackTopology):
        return identifier
    try:
        return ToneStackTopology(identifier)
    except ValueError:
        fallback = _default_topology()
        logger.warning("Unknown tone stack %r, falling back to %s", identifier, fallback.value)
        return fallback


def get_topology(identifier: Union[str, ToneStackTopology, None]) -> TopologyDefinition:
    """Get a topology definition by identifier (with default fallback)."""
    return TOPOLOGIES[resolve_topology(identifier)]


def list_topologies(category: Optional[str] = None) -> List[Dict]:
    """List all available topologies, optionally filtered by category."""
    result = []
    for topo in TOPOLOGIES.values():
        if category and topo.category != category:
            continue
        result.append({
            'id': topo.id,
            'name': topo.name,
            'description': topo.description,
            'category': topo.category,
            'controls': list(topo.controls),
            'values': topo.values.as_dict(),
        })
    return result
