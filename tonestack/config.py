"""
Engine-wide numeric defaults.

Values can be overridden through environment variables (or a `.env` file)
prefixed with ``TONESTACK_``:

    TONESTACK_SAMPLE_RATE        default sample rate (Hz)
    TONESTACK_POT_FLOOR_OHMS     minimum resistance of a potentiometer segment
    TONESTACK_DB_FLOOR           smallest magnitude fed to log10
    TONESTACK_DET_EPSILON        relative determinant threshold for the nodal solver
    TONESTACK_SWEEP_START_HZ     default sweep start
    TONESTACK_SWEEP_END_HZ       default sweep end
    TONESTACK_SWEEP_POINTS       default sweep resolution
    TONESTACK_DEFAULT_TOPOLOGY   topology used for unknown identifiers
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSettings:
    sample_rate: float = 44100.0
    pot_floor_ohms: float = 1.0
    db_floor: float = 1e-10
    det_epsilon: float = 1e-12
    sweep_start_hz: float = 10.0
    sweep_end_hz: float = 20000.0
    sweep_points: int = 512
    default_topology: str = 'fender-tmb'


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


def load_settings(dotenv: bool = True) -> EngineSettings:
    """Build settings from the environment, falling back to the defaults."""
    if dotenv:
        load_dotenv()

    defaults = EngineSettings()
    loaded = EngineSettings(
        sample_rate=_env_float('TONESTACK_SAMPLE_RATE', defaults.sample_rate),
        pot_floor_ohms=_env_float('TONESTACK_POT_FLOOR_OHMS', defaults.pot_floor_ohms),
        db_floor=_env_float('TONESTACK_DB_FLOOR', defaults.db_floor),
        det_epsilon=_env_float('TONESTACK_DET_EPSILON', defaults.det_epsilon),
        sweep_start_hz=_env_float('TONESTACK_SWEEP_START_HZ', defaults.sweep_start_hz),
        sweep_end_hz=_env_float('TONESTACK_SWEEP_END_HZ', defaults.sweep_end_hz),
        sweep_points=_env_int('TONESTACK_SWEEP_POINTS', defaults.sweep_points),
        default_topology=os.getenv('TONESTACK_DEFAULT_TOPOLOGY') or defaults.default_topology,
    )

    for key, value in (
        ('TONESTACK_SAMPLE_RATE', loaded.sample_rate),
        ('TONESTACK_POT_FLOOR_OHMS', loaded.pot_floor_ohms),
        ('TONESTACK_DB_FLOOR', loaded.db_floor),
        ('TONESTACK_DET_EPSILON', loaded.det_epsilon),
        ('TONESTACK_SWEEP_START_HZ', loaded.sweep_start_hz),
        ('TONESTACK_SWEEP_POINTS', loaded.sweep_points),
    ):
        # NaN fails this comparison too
        if not value > 0:
            raise ValueError(f"{key} must be positive, got {value}")
    if not loaded.sweep_end_hz > loaded.sweep_start_hz:
        raise ValueError(
            f"TONESTACK_SWEEP_END_HZ ({loaded.sweep_end_hz}) must be above "
            f"TONESTACK_SWEEP_START_HZ ({loaded.sweep_start_hz})"
        )

    if loaded != defaults:
        logger.debug("Engine settings overridden from environment: %s", loaded)
    return loaded


settings = load_settings()
