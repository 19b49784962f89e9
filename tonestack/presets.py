"""
Tone stack preset catalog.

Seed data: one preset per built-in topology, with component values taken
from the topology tables, plus named control voicings for the Marshall
stack. Further presets can be loaded from JSON.
"""

import json
import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from tonestack.biquad import (
    BiquadCoefficients,
    clamp_to_nyquist,
    high_pass,
    high_shelf,
    low_pass,
    low_shelf,
    peaking,
)
from tonestack.components import (
    CONTROL_NAMES,
    CircuitComponent,
    CircuitValues,
    ComponentKind,
    ToneStackCircuitParameters,
)
from tonestack.reference import ReferenceCurve
from tonestack.topology import TOPOLOGIES, ToneStackTopology

logger = logging.getLogger(__name__)

_KIND_BY_PREFIX = {
    'R': ComponentKind.RESISTOR,
    'C': ComponentKind.CAPACITOR,
    'P': ComponentKind.POTENTIOMETER,
}


def _check_controls(v: Dict[str, float]) -> Dict[str, float]:
    for name, position in v.items():
        if name not in CONTROL_NAMES:
            raise ValueError(f"Unknown control {name!r}, expected one of {', '.join(CONTROL_NAMES)}")
        if not 0.0 <= position <= 1.0:
            raise ValueError(f"Control {name}={position} must lie in [0, 1]")
    return v


class ToneStackPreset(BaseModel):
    """A named circuit: component list plus default control positions."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    brand: str = ''
    description: str = ''
    topology: Optional[str] = Field(None, description="Topology id; defaults to the preset id")
    components: List[CircuitComponent] = Field(default_factory=list)
    controls: Dict[str, float] = Field(default_factory=dict)

    @field_validator('controls')
    @classmethod
    def validate_controls(cls, v: Dict[str, float]) -> Dict[str, float]:
        return _check_controls(v)

    @field_validator('components')
    @classmethod
    def validate_unique_components(cls, v: List[CircuitComponent]) -> List[CircuitComponent]:
        seen = set()
        for comp in v:
            if comp.id in seen:
                raise ValueError(f"Duplicate component id: {comp.id}")
            seen.add(comp.id)
        return v

    @property
    def topology_id(self) -> str:
        return self.topology or self.id

    def component(self, component_id: str) -> Optional[CircuitComponent]:
        for comp in self.components:
            if comp.id == component_id:
                return comp
        return None

    def value(self, component_id: str) -> Optional[float]:
        comp = self.component(component_id)
        return comp.value if comp is not None else None

    def circuit_values(self) -> CircuitValues:
        """
        Component table for the solver.

        R1, C1 and P1 are required. A missing fixed resistor is 0 Ω and a
        missing C2 is 0 F; missing C3, P2 and P3 stay None.
        """
        missing = [cid for cid in ('R1', 'C1', 'P1') if self.value(cid) is None]
        if missing:
            raise ValueError(f"Preset {self.id!r} is missing required components: {', '.join(missing)}")

        return CircuitValues(
            R1=self.value('R1'),
            C1=self.value('C1'),
            P1=self.value('P1'),
            R2=self.value('R2') or 0.0,
            R3=self.value('R3') or 0.0,
            C2=self.value('C2') or 0.0,
            C3=self.value('C3'),
            P2=self.value('P2'),
            P3=self.value('P3'),
        )


class SectionKind(str, Enum):
    LOW_SHELF = "low_shelf"
    HIGH_SHELF = "high_shelf"
    PEAKING = "peaking"
    LOW_PASS = "low_pass"
    HIGH_PASS = "high_pass"


class SectionSpec(BaseModel):
    """One biquad stage of a curve-matched chain."""
    model_config = ConfigDict(frozen=True)

    kind: SectionKind
    frequency: float = Field(..., gt=0, description="Corner or center frequency (Hz)")
    gain_db: float = 0.0
    q: float = Field(..., gt=0)

    def build(self, sample_rate: float) -> BiquadCoefficients:
        freq = clamp_to_nyquist(self.frequency, sample_rate)
        if self.kind == SectionKind.LOW_SHELF:
            return low_shelf(freq, self.gain_db, self.q, sample_rate)
        if self.kind == SectionKind.HIGH_SHELF:
            return high_shelf(freq, self.gain_db, self.q, sample_rate)
        if self.kind == SectionKind.PEAKING:
            return peaking(freq, self.gain_db, self.q, sample_rate)
        if self.kind == SectionKind.LOW_PASS:
            return low_pass(freq, self.q, sample_rate)
        return high_pass(freq, self.q, sample_rate)


class Voicing(BaseModel):
    """
    Named control settings for one topology.

    `reference` holds a sampled response of the real circuit at these
    settings as (frequency Hz, magnitude dB, phase degrees) rows, and
    `sections` a biquad chain fitted to that curve.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    description: str = ''
    topology: str
    controls: Dict[str, float]
    expected_attenuation_db: Optional[float] = Field(
        None, description="Expected deepest attenuation of the real circuit (dB)"
    )
    reference: List[Tuple[float, float, float]] = Field(default_factory=list)
    sections: List[SectionSpec] = Field(default_factory=list)

    @field_validator('controls')
    @classmethod
    def validate_controls(cls, v: Dict[str, float]) -> Dict[str, float]:
        return _check_controls(v)

    @field_validator('reference')
    @classmethod
    def validate_reference(cls, v: List[Tuple[float, float, float]]) -> List[Tuple[float, float, float]]:
        freqs = [row[0] for row in v]
        if any(f <= 0 for f in freqs):
            raise ValueError("Reference frequencies must be positive")
        if freqs != sorted(set(freqs)):
            raise ValueError("Reference frequencies must be strictly ascending")
        return v

    @property
    def reference_curve(self) -> Optional[ReferenceCurve]:
        if len(self.reference) < 2:
            return None
        rows = np.array(self.reference, dtype=float)
        return ReferenceCurve(frequencies=rows[:, 0], magnitude_db=rows[:, 1], phase_deg=rows[:, 2])

    def build_sections(self, sample_rate: float) -> List[BiquadCoefficients]:
        """Curve-matched biquad chain at `sample_rate`."""
        return [spec.build(sample_rate) for spec in self.sections]


def preset_to_parameters(
    preset: ToneStackPreset,
    controls: Optional[Mapping[str, Optional[float]]] = None,
) -> ToneStackCircuitParameters:
    """Preset values, with `controls` overriding the preset's own control positions."""
    merged = dict(preset.controls)
    for name, position in (controls or {}).items():
        if position is not None:
            merged[name] = position
    return ToneStackCircuitParameters.build(preset.circuit_values(), merged)


# --- Seed data ---

_TMB_LABELS = {
    'R1': 'Slope Resistor',
    'R2': 'Mid Resistor',
    'R3': 'Bass Resistor',
    'C1': 'Treble Cap',
    'C2': 'Bass Cap',
    'C3': 'Mid Cap',
    'P1': 'Treble',
    'P2': 'Mid',
    'P3': 'Bass',
}

SEED_PRESETS = [
    {"topology": ToneStackTopology.FENDER_TMB, "brand": "Fender",
     "labels": _TMB_LABELS,
     "controls": {"bass": 0.5, "mid": 0.5, "treble": 0.5}},

    {"topology": ToneStackTopology.MARSHALL_JCM800, "brand": "Marshall",
     "labels": _TMB_LABELS,
     "controls": {"bass": 0.7, "mid": 0.8, "treble": 0.6}},

    {"topology": ToneStackTopology.VOX_AC30, "brand": "Vox",
     "labels": {'R1': 'Cut Resistor', 'C1': 'Cut Cap', 'P1': 'Cut'},
     "controls": {"cut": 0.3}},

    {"topology": ToneStackTopology.BONEYARD_RAY, "brand": "Custom",
     "labels": _TMB_LABELS,
     "controls": {"bass": 0.6, "mid": 0.7, "treble": 0.8}},

    {"topology": ToneStackTopology.RAT_DISTORTION, "brand": "ProCo",
     "labels": {'R1': 'Filter Resistor', 'C1': 'Filter Cap', 'P1': 'Filter'},
     "controls": {"tone": 0.5}},
]

# Sampled from a tone stack calculator: (Hz, dB, degrees)
MARSHALL_NOON_CURVE = [
    (10, -18.0, -90), (20, -16.0, -85), (30, -14.0, -80), (50, -10.0, -70),
    (80, -7.0, -60), (100, -6.0, -50), (150, -6.5, -40), (200, -7.0, -30),
    (300, -7.5, -20), (500, -8.5, -10), (740, -10.0, -5), (1000, -9.0, 0),
    (1500, -7.5, 5), (2000, -6.8, 8), (3000, -6.2, 12), (5000, -5.8, 15),
    (8000, -5.5, 18), (10000, -5.8, 20), (15000, -6.0, 22), (20000, -6.2, 25),
]

MARSHALL_MODERN_CURVE = [
    (10, -45.0, -50), (20, -38.0, -45), (50, -28.0, -35), (100, -20.0, -25),
    (200, -10.0, -15), (400, -6.0, -8), (800, -4.0, -2), (1000, -3.5, 0),
    (1500, -3.0, 5), (2000, -2.5, 10), (3000, -2.0, 15), (5000, -1.5, 20),
    (8000, -1.0, 25), (10000, -0.8, 30), (15000, -0.5, 35), (20000, -0.2, 40),
]

MARSHALL_SCOOPED_CURVE = [
    (10, -42.0, -48), (20, -36.0, -42), (50, -26.0, -32), (100, -16.0, -22),
    (200, -8.0, -12), (400, -4.0, -5), (800, -8.0, -2), (1000, -12.0, 0),
    (1500, -10.0, 5), (2000, -6.0, 10), (3000, -3.0, 15), (5000, -2.0, 20),
    (8000, -1.5, 25), (10000, -1.2, 30), (15000, -1.0, 35), (20000, -0.8, 40),
]

MARSHALL_DIMED_CURVE = [
    (10, -35.0, -40), (20, -30.0, -35), (50, -20.0, -25), (100, -12.0, -15),
    (200, -6.0, -8), (400, -3.0, -3), (800, -1.0, 0), (1000, -0.5, 2),
    (1500, 0.0, 5), (2000, 0.5, 8), (3000, 1.0, 12), (5000, 1.5, 15),
    (8000, 2.0, 18), (10000, 2.2, 20), (15000, 2.5, 22), (20000, 2.8, 25),
]


def _stage(kind, frequency, q, gain_db=0.0):
    return {"kind": kind, "frequency": frequency, "gain_db": gain_db, "q": q}


SEED_VOICINGS = [
    {"id": "marshall-noon", "name": "All Knobs at Noon",
     "description": "Classic Marshall sound with all controls at 12 o'clock",
     "topology": "marshall-jcm800",
     "controls": {"bass": 0.5, "mid": 0.5, "treble": 0.5},
     "expected_attenuation_db": -8.5,
     "reference": MARSHALL_NOON_CURVE,
     "sections": [
         _stage("low_shelf", 60.0, 0.5, 8.0),
         _stage("high_pass", 25.0, 0.4),
         _stage("peaking", 100.0, 0.8, 2.0),
         _stage("peaking", 740.0, 2.0, -4.0),     # mid dip
         _stage("low_shelf", 200.0, 0.7, -2.0),
         _stage("high_shelf", 3000.0, 0.8, -1.0),
     ]},

    {"id": "marshall-modern", "name": "Modern Rock (B:10, M:11, T:1)",
     "description": "Tight low end, focused mids, bright treble",
     "topology": "marshall-jcm800",
     "controls": {"bass": 0.83, "mid": 0.58, "treble": 0.58},
     "expected_attenuation_db": -7.2,
     "reference": MARSHALL_MODERN_CURVE,
     "sections": [
         _stage("high_pass", 90.0, 0.8),
         _stage("low_shelf", 150.0, 0.9, -4.0),
         _stage("peaking", 400.0, 1.0, -2.0),
         _stage("high_shelf", 2500.0, 0.6, 3.0),
     ]},

    {"id": "marshall-scooped", "name": "Scooped (B:9, M:3, T:Noon)",
     "description": "Classic scooped midrange sound",
     "topology": "marshall-jcm800",
     "controls": {"bass": 0.75, "mid": 0.25, "treble": 0.5},
     "expected_attenuation_db": -12.8,
     "reference": MARSHALL_SCOOPED_CURVE,
     "sections": [
         _stage("high_pass", 85.0, 0.7),
         _stage("low_shelf", 180.0, 0.8, -1.0),
         _stage("peaking", 800.0, 2.0, -8.0),
         _stage("peaking", 1200.0, 1.5, -4.0),
         _stage("high_shelf", 3500.0, 0.7, 2.0),
     ]},

    {"id": "marshall-dimed", "name": "All Knobs Dimed",
     "description": "Maximum settings, aggressive and bright",
     "topology": "marshall-jcm800",
     "controls": {"bass": 1.0, "mid": 1.0, "treble": 1.0},
     "expected_attenuation_db": -4.8,
     "reference": MARSHALL_DIMED_CURVE,
     "sections": [
         _stage("high_pass", 75.0, 0.6),
         _stage("low_shelf", 120.0, 0.8, 2.0),
         _stage("peaking", 600.0, 0.8, 1.0),
         _stage("high_shelf", 2000.0, 0.6, 4.0),
     ]},
]


def _seed_preset(entry: Dict) -> ToneStackPreset:
    definition = TOPOLOGIES[entry['topology']]
    components = []
    for cid, label in entry['labels'].items():
        value = getattr(definition.values, cid)
        # Components the circuit does not have are left out
        if not value:
            continue
        components.append(CircuitComponent(
            id=cid,
            kind=_KIND_BY_PREFIX[cid[0]],
            value=value,
            label=label,
        ))

    return ToneStackPreset(
        id=definition.id,
        name=definition.name,
        brand=entry['brand'],
        description=definition.description,
        topology=definition.id,
        components=components,
        controls=entry['controls'],
    )


class PresetCatalog:
    """In-memory preset catalog with search and JSON import/export."""

    def __init__(self, seed: bool = True):
        self._presets: Dict[str, ToneStackPreset] = {}
        if seed:
            self._load_seed_data()

    def _load_seed_data(self):
        for entry in SEED_PRESETS:
            self.add(_seed_preset(entry))

    def add(self, preset: ToneStackPreset) -> ToneStackPreset:
        """Add a preset, replacing any existing preset with the same id."""
        if preset.id in self._presets:
            logger.info("Replacing preset %s", preset.id)
        self._presets[preset.id] = preset
        return preset

    def get(self, preset_id: str) -> Optional[ToneStackPreset]:
        preset = self._presets.get(preset_id)
        if preset is None:
            logger.warning("Unknown preset %r", preset_id)
        return preset

    def list(self) -> List[ToneStackPreset]:
        return list(self._presets.values())

    def search(
        self,
        query: Optional[str] = None,
        brand: Optional[str] = None,
        topology: Optional[str] = None,
    ) -> List[ToneStackPreset]:
        """Search presets by text query, brand, or topology id."""
        results = self.list()

        if brand:
            results = [p for p in results if p.brand.lower() == brand.lower()]

        if topology:
            results = [p for p in results if p.topology_id == topology]

        if query:
            q = query.lower()
            results = [
                p for p in results
                if q in p.id.lower()
                or q in p.name.lower()
                or q in p.brand.lower()
                or q in p.description.lower()
            ]

        return results

    def export_json(self) -> str:
        return json.dumps([p.model_dump(mode='json') for p in self._presets.values()], indent=2)

    def import_json(self, json_str: str) -> List[ToneStackPreset]:
        """
        Import presets from a JSON list (or a single JSON object).

        Raises ValueError for malformed JSON or invalid entries; nothing is
        added unless every entry validates.
        """
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid preset JSON: {e}") from e

        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise ValueError(f"Preset JSON must be an object or a list, got {type(data).__name__}")

        presets = [ToneStackPreset.model_validate(item) for item in data]
        for preset in presets:
            self.add(preset)
        return presets

    @property
    def brands(self) -> List[str]:
        return sorted(set(p.brand for p in self._presets.values() if p.brand))

    @property
    def count(self) -> int:
        return len(self._presets)


VOICINGS: Dict[str, Voicing] = {v['id']: Voicing(**v) for v in SEED_VOICINGS}


def get_voicing(voicing_id: str) -> Optional[Voicing]:
    voicing = VOICINGS.get(voicing_id)
    if voicing is None:
        logger.warning("Unknown voicing %r", voicing_id)
    return voicing


def list_voicings(topology: Optional[str] = None) -> List[Voicing]:
    return [v for v in VOICINGS.values() if topology is None or v.topology == topology]


# Module-level convenience functions
_default_catalog = None


def _get_catalog() -> PresetCatalog:
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = PresetCatalog()
    return _default_catalog


def get_preset(preset_id: str) -> Optional[ToneStackPreset]:
    return _get_catalog().get(preset_id)


def list_presets() -> List[ToneStackPreset]:
    return _get_catalog().list()


def search_presets(query: Optional[str] = None, **kwargs) -> List[ToneStackPreset]:
    return _get_catalog().search(query=query, **kwargs)
