"""
Tone stack simulation entry points.

    synthesize      topology + controls → biquad sections
    process_buffer  sections + samples → filtered samples
    sweep           topology + controls → frequency response, either from
                    the biquad approximation or the exact nodal solve
    analyze         all of the above in one result object

Voicings (named control settings with a sampled reference curve) get their
own sweep, a curve-matched section chain, and a deviation report against
the reference.

Each call builds its circuit parameters fresh from the topology table (or a
catalog preset) and the caller's controls; nothing is cached between calls.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from tonestack import analysis
from tonestack.biquad import BiquadCoefficients
from tonestack.cascade import CascadeProcessor
from tonestack.components import ToneStackCircuitParameters
from tonestack.config import settings
from tonestack.network import transfer_function
from tonestack.presets import ToneStackPreset, Voicing, get_preset, get_voicing, preset_to_parameters
from tonestack.reference import response_deviation
from tonestack.topology import TopologyDefinition, ToneStackTopology, get_topology

logger = logging.getLogger(__name__)

Controls = Optional[Mapping[str, Optional[float]]]
TopologyId = Union[str, ToneStackTopology, None]
PresetRef = Union[str, ToneStackPreset, None]

METHODS = ('biquad', 'network')


def _resolve(
    topology_id: TopologyId,
    controls: Controls = None,
    preset: PresetRef = None,
) -> Tuple[TopologyDefinition, ToneStackCircuitParameters]:
    """Topology definition plus the parameters for this request."""
    if isinstance(preset, str):
        preset = get_preset(preset)

    if preset is not None:
        definition = get_topology(topology_id if topology_id is not None else preset.topology_id)
        if definition.id != preset.topology_id:
            logger.warning("Preset %r is a %s circuit, solving it as %s",
                           preset.id, preset.topology_id, definition.id)
        return definition, preset_to_parameters(preset, controls)

    definition = get_topology(topology_id)
    return definition, ToneStackCircuitParameters.build(definition.values, controls)


def _sample_rate(sample_rate: Optional[float]) -> float:
    if sample_rate is None:
        return settings.sample_rate
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    return float(sample_rate)


def synthesize(
    topology_id: TopologyId,
    controls: Controls = None,
    sample_rate: Optional[float] = None,
    preset: PresetRef = None,
) -> List[BiquadCoefficients]:
    """
    Biquad sections approximating a tone stack at the given control positions.

    Three-band stacks give [bass low-shelf, mid peak, treble high-shelf];
    single-control stacks give one low-pass section.
    """
    fs = _sample_rate(sample_rate)
    definition, params = _resolve(topology_id, controls, preset)
    sections = definition.sections(params, fs)
    logger.debug("Synthesized %d sections for %s at %g Hz", len(sections), definition.id, fs)
    return sections


def process_buffer(
    sections: Sequence[BiquadCoefficients],
    samples: Sequence[float],
) -> np.ndarray:
    """Filter a whole buffer through a fresh cascade (state starts at zero)."""
    return CascadeProcessor(sections).process_buffer(samples)


def sweep(
    topology_id: TopologyId,
    controls: Controls = None,
    start_freq: Optional[float] = None,
    end_freq: Optional[float] = None,
    num_points: Optional[int] = None,
    method: str = 'biquad',
    sample_rate: Optional[float] = None,
    preset: PresetRef = None,
    reference_hz: Optional[float] = None,
) -> List[analysis.FrequencyPoint]:
    """
    Frequency response of a tone stack over a log-spaced grid.

    Args:
        topology_id: Topology identifier; unknown ids fall back to the default.
        controls: Control positions in [0, 1]; missing controls sit at 0.5.
        start_freq, end_freq, num_points: Grid definition (defaults from settings).
        method: 'biquad' for the section approximation, 'network' for the
                exact nodal solve of the passive circuit.
        sample_rate: Used by the biquad method.
        preset: Catalog preset (or preset id) supplying component values.
        reference_hz: Normalize magnitudes to 0 dB at this frequency.

    Returns:
        List of FrequencyPoint (Hz, dB, degrees) in ascending frequency.
    """
    if method not in METHODS:
        raise ValueError(f"Unknown method {method!r}, expected one of {', '.join(METHODS)}")

    fs = _sample_rate(sample_rate)
    definition, params = _resolve(topology_id, controls, preset)

    if method == 'network':
        source = functools.partial(transfer_function, definition.network, params)
    else:
        source = definition.sections(params, fs)

    return analysis.sweep(
        source,
        start_freq=start_freq,
        end_freq=end_freq,
        num_points=num_points,
        sample_rate=fs,
        reference_hz=reference_hz,
    )


@dataclass
class ToneStackAnalysis:
    """Result of analyze(): sections, response and optionally filtered audio."""
    topology: str
    method: str
    sample_rate: float
    controls: Dict[str, float]
    coefficients: List[BiquadCoefficients]
    response: List[analysis.FrequencyPoint]
    processed_audio: Optional[np.ndarray] = None

    @property
    def peak_magnitude_db(self) -> float:
        return max(p.magnitude for p in self.response)

    @property
    def peak_frequency(self) -> float:
        return max(self.response, key=lambda p: p.magnitude).frequency

    def to_dict(self) -> Dict:
        return {
            'topology': self.topology,
            'method': self.method,
            'sample_rate': self.sample_rate,
            'controls': dict(self.controls),
            'filter_coefficients': [c.to_dict() for c in self.coefficients],
            'frequency_response': [p.to_dict() for p in self.response],
            'peak_magnitude_db': self.peak_magnitude_db,
            'peak_frequency': self.peak_frequency,
            'processed_audio': (
                self.processed_audio.tolist() if self.processed_audio is not None else None
            ),
        }


def analyze(
    topology_id: TopologyId,
    controls: Controls = None,
    sample_rate: Optional[float] = None,
    audio: Optional[Sequence[float]] = None,
    method: str = 'biquad',
    preset: PresetRef = None,
    start_freq: Optional[float] = None,
    end_freq: Optional[float] = None,
    num_points: Optional[int] = None,
    reference_hz: Optional[float] = None,
) -> ToneStackAnalysis:
    """
    Synthesize sections, sweep the response and, when `audio` is given,
    filter it through the sections.
    """
    fs = _sample_rate(sample_rate)
    if isinstance(preset, str):
        preset = get_preset(preset)
    definition, params = _resolve(topology_id, controls, preset)

    coefficients = synthesize(definition.topology, params.controls, fs, preset=preset)
    response = sweep(
        definition.topology,
        params.controls,
        start_freq=start_freq,
        end_freq=end_freq,
        num_points=num_points,
        method=method,
        sample_rate=fs,
        preset=preset,
        reference_hz=reference_hz,
    )

    processed = None
    if audio is not None:
        processed = process_buffer(coefficients, audio)
        logger.info("Processed %d samples through %s", len(processed), definition.id)

    return ToneStackAnalysis(
        topology=definition.id,
        method=method,
        sample_rate=fs,
        controls={name: params.controls[name] for name in definition.controls},
        coefficients=coefficients,
        response=response,
        processed_audio=processed,
    )


VOICING_METHODS = METHODS + ('matched',)


def _voicing(voicing: Union[str, Voicing]) -> Voicing:
    if isinstance(voicing, Voicing):
        return voicing
    found = get_voicing(voicing)
    if found is None:
        raise ValueError(f"Unknown voicing: {voicing}")
    return found


def synthesize_voicing(
    voicing: Union[str, Voicing],
    sample_rate: Optional[float] = None,
) -> List[BiquadCoefficients]:
    """Curve-matched biquad chain of a voicing."""
    return _voicing(voicing).build_sections(_sample_rate(sample_rate))


def voicing_sweep(
    voicing: Union[str, Voicing],
    start_freq: Optional[float] = None,
    end_freq: Optional[float] = None,
    num_points: Optional[int] = None,
    method: str = 'network',
    sample_rate: Optional[float] = None,
    reference_hz: Optional[float] = None,
) -> List[analysis.FrequencyPoint]:
    """
    Frequency response of a voicing.

    'biquad' and 'network' sweep the voicing's topology at its control
    positions; 'matched' sweeps the voicing's curve-matched chain.
    """
    if method not in VOICING_METHODS:
        raise ValueError(f"Unknown method {method!r}, expected one of {', '.join(VOICING_METHODS)}")
    voicing = _voicing(voicing)

    if method != 'matched':
        return sweep(
            voicing.topology,
            voicing.controls,
            start_freq=start_freq,
            end_freq=end_freq,
            num_points=num_points,
            method=method,
            sample_rate=sample_rate,
            reference_hz=reference_hz,
        )

    fs = _sample_rate(sample_rate)
    return analysis.sweep(
        voicing.build_sections(fs),
        start_freq=start_freq,
        end_freq=end_freq,
        num_points=num_points,
        sample_rate=fs,
        reference_hz=reference_hz,
    )


def voicing_deviation(
    voicing: Union[str, Voicing],
    start_freq: Optional[float] = None,
    end_freq: Optional[float] = None,
    num_points: Optional[int] = None,
    method: str = 'network',
    normalize_hz: Optional[float] = 1000.0,
    sample_rate: Optional[float] = None,
) -> Dict[str, float]:
    """
    Compare a voicing's computed response against its sampled reference curve.

    Both curves are shifted to 0 dB at `normalize_hz` (1 kHz by default) so
    only the shape is compared. Returns the response_deviation() dict.
    """
    voicing = _voicing(voicing)
    curve = voicing.reference_curve
    if curve is None:
        raise ValueError(f"Voicing {voicing.id!r} has no reference curve")

    points = voicing_sweep(
        voicing,
        start_freq=start_freq,
        end_freq=end_freq,
        num_points=num_points,
        method=method,
        sample_rate=sample_rate,
    )
    result = response_deviation(points, curve, normalize_hz=normalize_hz)
    logger.debug("Voicing %s (%s): max %.2f dB, rms %.2f dB",
                 voicing.id, method, result['max_abs_db'], result['rms_db'])
    return result
