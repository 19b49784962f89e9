"""
Passive component model for tone stack circuits.

Covers the three component kinds a tone stack is built from, the
potentiometer wiper split used by the nodal solver, and the resolved
parameter set (component values + control positions) that a single
analysis request works with.
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from tonestack.config import settings

logger = logging.getLogger(__name__)

CONTROL_NAMES = ('treble', 'bass', 'mid', 'cut', 'tone')
DEFAULT_CONTROL_POSITION = 0.5

# SI prefix table, largest first
_SI_PREFIXES = [
    (1e9, 'G'),
    (1e6, 'M'),
    (1e3, 'k'),
    (1e0, ''),
    (1e-3, 'm'),
    (1e-6, 'µ'),
    (1e-9, 'n'),
    (1e-12, 'p'),
]

_UNITS = {
    'resistor': 'Ω',
    'capacitor': 'F',
    'potentiometer': 'Ω',
}


class ComponentKind(str, Enum):
    RESISTOR = "resistor"
    CAPACITOR = "capacitor"
    POTENTIOMETER = "potentiometer"


class CircuitComponent(BaseModel):
    """One catalog component. Values are in base SI units (Ω, F)."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Reference designator, e.g. 'R1', 'C2', 'P1'")
    kind: ComponentKind
    value: float = Field(..., ge=0, description="Resistance (Ω) or capacitance (F)")
    unit: str = ''
    label: str = ''

    def describe(self) -> str:
        unit = self.unit or _UNITS[self.kind.value]
        text = engineering_notation(self.value, unit)
        return f"{text} ({self.label})" if self.label else text


@dataclass(frozen=True)
class PotentiometerSplit:
    """
    A potentiometer track cut in two by its wiper.

    `upper` is the segment that grows with rotation (total·p), `lower` the
    remainder (total·(1−p)). Both carry the floor resistance so neither
    segment ever reaches 0 Ω.
    """
    upper: float
    lower: float

    @property
    def total(self) -> float:
        return self.upper + self.lower


def split_potentiometer(
    total: float,
    position: float,
    floor: Optional[float] = None,
) -> PotentiometerSplit:
    """Split a pot of `total` Ω at `position` ∈ [0, 1] into two floored segments."""
    if total < 0:
        raise ValueError(f"Potentiometer resistance must be non-negative, got {total}")
    if floor is None:
        floor = settings.pot_floor_ohms

    p = min(max(position, 0.0), 1.0)
    return PotentiometerSplit(
        upper=total * p + floor,
        lower=total * (1.0 - p) + floor,
    )


@dataclass(frozen=True)
class CircuitValues:
    """
    Immutable component table of one tone stack circuit.

    R1 is the input (slope) resistor and C1 the first (treble) capacitor in
    every topology. P1..P3 are potentiometer track values. A fixed resistor
    a circuit does not have is 0 Ω.
    """
    R1: float
    C1: float
    P1: float
    R2: float = 0.0
    R3: float = 0.0
    C2: float = 0.0
    C3: Optional[float] = None
    P2: Optional[float] = None
    P3: Optional[float] = None

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {
            'R1': self.R1, 'R2': self.R2, 'R3': self.R3,
            'C1': self.C1, 'C2': self.C2, 'C3': self.C3,
            'P1': self.P1, 'P2': self.P2, 'P3': self.P3,
        }


@dataclass(frozen=True)
class ToneStackCircuitParameters:
    """Component values plus control positions for one analysis request."""
    values: CircuitValues
    treble: float = DEFAULT_CONTROL_POSITION
    bass: float = DEFAULT_CONTROL_POSITION
    mid: float = DEFAULT_CONTROL_POSITION
    cut: float = DEFAULT_CONTROL_POSITION
    tone: float = DEFAULT_CONTROL_POSITION

    @classmethod
    def build(
        cls,
        values: CircuitValues,
        controls: Optional[Mapping[str, Optional[float]]] = None,
    ) -> 'ToneStackCircuitParameters':
        return cls(values=values, **resolve_controls(controls))

    def with_controls(self, **controls: float) -> 'ToneStackCircuitParameters':
        resolved = resolve_controls({**self.controls, **controls})
        return replace(self, **resolved)

    @property
    def controls(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in CONTROL_NAMES}

    # Shorthands so solver code reads like the schematic
    @property
    def R1(self) -> float:
        return self.values.R1

    @property
    def R2(self) -> float:
        return self.values.R2

    @property
    def R3(self) -> float:
        return self.values.R3

    @property
    def C1(self) -> float:
        return self.values.C1

    @property
    def C2(self) -> float:
        return self.values.C2

    @property
    def C3(self) -> Optional[float]:
        return self.values.C3


def resolve_controls(controls: Optional[Mapping[str, Optional[float]]] = None) -> Dict[str, float]:
    """
    Fill in every named control.

    Missing or None controls sit at the midpoint. Values outside [0, 1] are
    clipped and non-finite values reset to the midpoint; both are logged.
    Unknown control names are ignored.
    """
    controls = controls or {}
    resolved = {}

    for name in CONTROL_NAMES:
        raw = controls.get(name)
        if raw is None:
            resolved[name] = DEFAULT_CONTROL_POSITION
            continue

        value = float(raw)
        if not math.isfinite(value):
            logger.warning("Control %s=%r is not finite, using %.1f", name, raw, DEFAULT_CONTROL_POSITION)
            value = DEFAULT_CONTROL_POSITION
        elif value < 0.0 or value > 1.0:
            clipped = min(max(value, 0.0), 1.0)
            logger.warning("Control %s=%g outside [0, 1], clipped to %g", name, value, clipped)
            value = clipped
        resolved[name] = value

    return resolved


def engineering_notation(value: float, unit: str = '', precision: int = 3) -> str:
    """
    Format a value with an SI prefix.

        engineering_notation(33000, 'Ω')    → '33kΩ'
        engineering_notation(2.2e-8, 'F')   → '22nF'
        engineering_notation(2.5e-10, 'F')  → '250pF'
    """
    if value == 0:
        return f"0{unit}"

    sign = '-' if value < 0 else ''
    magnitude = abs(value)

    for scale, prefix in _SI_PREFIXES:
        # Small tolerance so 1e-9 * 22 doesn't land on 21.999...p
        if magnitude >= scale * (1 - 1e-9):
            scaled = round(magnitude / scale, 9)
            if scaled == int(scaled):
                return f"{sign}{int(scaled)}{prefix}{unit}"
            return f"{sign}{scaled:.{precision}g}{prefix}{unit}"

    return f"{value:.{precision}g}{unit}"
