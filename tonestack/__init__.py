"""
Tone Stack Engine

Models passive guitar amplifier and pedal tone stacks two ways: as cascades
of biquad filter sections (for processing audio) and as exact nodal
networks (for the true frequency response of the passive circuit).
"""

from tonestack.biquad import BiquadCoefficients, low_shelf, high_shelf, peaking, low_pass, high_pass
from tonestack.cascade import CascadeProcessor
from tonestack.analysis import FrequencyPoint, log_frequencies, response_arrays
from tonestack.components import CircuitValues, ToneStackCircuitParameters, split_potentiometer, engineering_notation
from tonestack.network import transfer_function
from tonestack.topology import ToneStackTopology, TopologyDefinition, get_topology, list_topologies, resolve_topology
from tonestack.presets import PresetCatalog, ToneStackPreset, Voicing, SectionSpec, get_preset, list_presets, get_voicing, list_voicings
from tonestack.reference import parse_response_csv, interpolate_response, response_deviation
from tonestack.signals import generate_test_tone, generate_guitar_test_loop
from tonestack.simulation import synthesize, process_buffer, sweep, analyze, ToneStackAnalysis
from tonestack.simulation import synthesize_voicing, voicing_sweep, voicing_deviation

__version__ = "0.1.0"
