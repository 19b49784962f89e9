"""
Exact frequency response of passive tone stacks by nodal analysis.

Each topology is reduced to a 2- or 3-node linear network driven by a
1 V source. Kirchhoff's current law at the unknown nodes gives

    Y(jω) · V = I

where Y is the complex nodal-admittance matrix and I carries the currents
the source pushes into the nodes it is wired to. The systems are small and
of fixed size, so they are solved with explicit determinant (Cramer's rule)
formulas, vectorized over the whole frequency grid: Y has shape (n, n, F),
I has shape (n, F).

Topologies
----------
TMB (Fender/Marshall style Treble-Mid-Bass):

    Vin ──R1──┬── n1                    R1: slope resistor
              ├─C2─ n2                  C2: bass cap
              └─C3─ n3                  C3: mid cap
    Vin ──C1── [treble pot top ─ wiper(out) ─ bottom] ── n2
    n2 ── bass pot (rheostat) + R3 ── n3
    n3 ── mid pot (rheostat) + R2 ── ground

    The output (treble wiper) is unloaded, so C1 plus the whole treble track
    form a single branch from Vin to n2, and the output is the resistive
    divider tap along that branch:
        H = V2 + (1 − V2) · Y_treble · R_wiper→n2

Cut (Vox style):

    Vin ──R1── n1(out) ── cut pot (rheostat) ── n2 ──C1── ground

RC filter (RAT style):

    Vin ──R1── n1 ── filter pot (rheostat) ── n2(out) ──C1── ground
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from tonestack.complex_math import complex_divide
from tonestack.components import ToneStackCircuitParameters, split_potentiometer
from tonestack.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodalSystem:
    """Y·V = I over a frequency grid, plus the map from node voltages to H."""
    admittance: np.ndarray                       # (n, n, F) complex
    injection: np.ndarray                        # (n, F) complex
    output: Callable[[np.ndarray], np.ndarray]   # V (n, F) → H (F,)

    @property
    def size(self) -> int:
        return self.admittance.shape[0]


NetworkBuilder = Callable[[ToneStackCircuitParameters, np.ndarray, Optional[float]], NodalSystem]


def _conductance(resistance: float, floor: float) -> float:
    return 1.0 / max(resistance, floor)


def _singular(det: np.ndarray, Y: np.ndarray, epsilon: float) -> np.ndarray:
    """
    Near-singular test, relative to the size of the matrix entries.

    Admittances in a tone stack are tiny (µS and below), so an absolute
    threshold on det would misfire; compare against the product of each
    row's largest entry instead.
    """
    row_scale = np.max(np.abs(Y), axis=1)          # (n, F)
    scale = np.prod(row_scale, axis=0)             # (F,)
    return (scale == 0) | (np.abs(det) <= epsilon * scale)


def _det2(a, b, c, d):
    return a * d - b * c


def _det3(m):
    """Cofactor expansion along the first row; m is a 3x3 nested sequence."""
    return (m[0][0] * (m[1][1] * m[2][2] - m[1][2] * m[2][1])
            - m[0][1] * (m[1][0] * m[2][2] - m[1][2] * m[2][0])
            + m[0][2] * (m[1][0] * m[2][1] - m[1][1] * m[2][0]))


def solve_2x2(
    Y: np.ndarray,
    I: np.ndarray,
    epsilon: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve a 2-node system. Returns (V, singular_mask); V is 0 where singular.
    """
    if epsilon is None:
        epsilon = settings.det_epsilon

    det = _det2(Y[0, 0], Y[0, 1], Y[1, 0], Y[1, 1])
    singular = _singular(det, Y, epsilon)

    V = np.stack([
        complex_divide(_det2(I[0], Y[0, 1], I[1], Y[1, 1]), det),
        complex_divide(_det2(Y[0, 0], I[0], Y[1, 0], I[1]), det),
    ])
    V[:, singular] = 0
    return V, singular


def solve_3x3(
    Y: np.ndarray,
    I: np.ndarray,
    epsilon: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve a 3-node system by Cramer's rule. Returns (V, singular_mask);
    V is 0 where singular.
    """
    if epsilon is None:
        epsilon = settings.det_epsilon

    rows = [[Y[r, c] for c in range(3)] for r in range(3)]
    det = _det3(rows)
    singular = _singular(det, Y, epsilon)

    voltages = []
    for col in range(3):
        replaced = [
            [I[r] if c == col else rows[r][c] for c in range(3)]
            for r in range(3)
        ]
        voltages.append(complex_divide(_det3(replaced), det))

    V = np.stack(voltages)
    V[:, singular] = 0
    return V, singular


def solve(system: NodalSystem, epsilon: Optional[float] = None) -> np.ndarray:
    """Node voltages → transfer function H(jω); H is 0 at singular frequencies."""
    if system.size == 2:
        V, singular = solve_2x2(system.admittance, system.injection, epsilon)
    elif system.size == 3:
        V, singular = solve_3x3(system.admittance, system.injection, epsilon)
    else:
        raise ValueError(f"Only 2- and 3-node systems are supported, got {system.size}")

    H = np.asarray(system.output(V), dtype=complex)
    if np.any(singular):
        logger.debug("Nodal system singular at %d of %d frequencies", int(singular.sum()), singular.size)
        H = np.where(singular, 0, H)
    return H


def _omega(frequencies) -> np.ndarray:
    frequencies = np.atleast_1d(np.asarray(frequencies, dtype=float))
    if np.any(frequencies <= 0):
        raise ValueError("Frequencies must be positive")
    return 2 * np.pi * frequencies


def build_tmb_system(
    params: ToneStackCircuitParameters,
    frequencies,
    floor: Optional[float] = None,
) -> NodalSystem:
    """Treble-Mid-Bass stack, nodes n1 (slope junction), n2 (bass top), n3 (mid top)."""
    if floor is None:
        floor = settings.pot_floor_ohms
    values = params.values
    s = 1j * _omega(frequencies)
    ones = np.ones_like(s)

    treble = split_potentiometer(values.P1, params.treble, floor)
    bass = split_potentiometer(values.P3 or 0.0, params.bass, floor)
    mid = split_potentiometer(values.P2 or 0.0, params.mid, floor)

    Ys = _conductance(values.R1, floor) * ones
    Yc2 = s * values.C2
    Yc3 = s * (values.C3 or 0.0)
    # C1 in series with the whole treble track
    Yt = s * values.C1 / (1 + s * values.C1 * treble.total)
    Yb = _conductance(bass.upper + values.R3, floor) * ones
    Ym = _conductance(mid.upper + values.R2, floor) * ones
    zero = np.zeros_like(s)

    Y = np.array([
        [Ys + Yc2 + Yc3, -Yc2, -Yc3],
        [-Yc2, Yc2 + Yt + Yb, -Yb],
        [-Yc3, -Yb, Yc3 + Yb + Ym],
    ])
    I = np.array([Ys, Yt, zero])

    def output(V):
        V2 = V[1]
        return V2 + (1 - V2) * Yt * treble.upper

    return NodalSystem(admittance=Y, injection=I, output=output)


def _series_rc_shunt(
    R1: float,
    R_pot: float,
    C1: float,
    s: np.ndarray,
    floor: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Vin ─R1─ n1 ─R_pot─ n2 ─C1─ ground, shared by the cut and RC filter stacks."""
    ones = np.ones_like(s)
    Ys = _conductance(R1, floor) * ones
    Yp = _conductance(R_pot, floor) * ones
    Yc = s * C1

    Y = np.array([
        [Ys + Yp, -Yp],
        [-Yp, Yp + Yc],
    ])
    I = np.array([Ys, np.zeros_like(s)])
    return Y, I


def build_cut_system(
    params: ToneStackCircuitParameters,
    frequencies,
    floor: Optional[float] = None,
) -> NodalSystem:
    """Cut control: more cut means less pot resistance in the treble shunt."""
    if floor is None:
        floor = settings.pot_floor_ohms
    values = params.values
    s = 1j * _omega(frequencies)

    cut = split_potentiometer(values.P1, params.cut, floor)
    Y, I = _series_rc_shunt(values.R1, cut.lower, values.C1, s, floor)
    return NodalSystem(admittance=Y, injection=I, output=lambda V: V[0])


def build_rc_filter_system(
    params: ToneStackCircuitParameters,
    frequencies,
    floor: Optional[float] = None,
) -> NodalSystem:
    """Series R + pot into a shunt cap; more tone means more resistance (darker)."""
    if floor is None:
        floor = settings.pot_floor_ohms
    values = params.values
    s = 1j * _omega(frequencies)

    tone = split_potentiometer(values.P1, params.tone, floor)
    Y, I = _series_rc_shunt(values.R1, tone.upper, values.C1, s, floor)
    return NodalSystem(admittance=Y, injection=I, output=lambda V: V[1])


def transfer_function(
    builder: NetworkBuilder,
    params: ToneStackCircuitParameters,
    frequencies,
    floor: Optional[float] = None,
    epsilon: Optional[float] = None,
) -> np.ndarray:
    """Complex H(jω) of a topology at the given frequencies (Hz)."""
    return solve(builder(params, frequencies, floor), epsilon)
