"""
===============================================================================
ORBITAL CORE - Simulation Configuration
===============================================================================
Frozen configuration dataclasses for the orbital simulation core and the
YAML loader that builds them.

The on-disk layout mirrors the dataclass nesting:

    time:        step, time_acceleration, min/max_time_acceleration,
                 max_substeps
    kepler:      max_iterations, tolerance
    events:      tolerance_distance, atmospheric_entry_altitude, trigger_mode
    drag:        enabled, ceiling_altitude
    vehicle:     mass, drag_coefficient, reference_area, max_thrust
    propagation: mode, integrator, perturbation_threshold
    parallel:    max_workers
    central_body: name of the catalog body the orbital elements refer to
    bodies:      list of {name, position, velocity, mass, radius}

Every key is optional; omitted keys fall back to the defaults in
``core.constants``.  Unknown keys are rejected so that typos in a host's
configuration file surface immediately.
===============================================================================
"""

import logging
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from orbital_core.core.constants import (
    ATMOSPHERIC_ENTRY_ALTITUDE,
    DEFAULT_DRAG_COEFFICIENT,
    DEFAULT_MAX_SUBSTEPS,
    DEFAULT_MAX_THRUST,
    DEFAULT_REFERENCE_AREA,
    DEFAULT_TIME_STEP,
    DEFAULT_VEHICLE_MASS,
    DRAG_CEILING_ALTITUDE,
    EVENT_TOLERANCE_DISTANCE,
    KEPLER_MAX_ITERATIONS,
    KEPLER_TOLERANCE,
    MAX_TIME_ACCELERATION,
    MIN_TIME_ACCELERATION,
    PERTURBATION_THRESHOLD,
)

logger = logging.getLogger(__name__)

TRIGGER_MODES = ('edge', 'level')
PROPAGATION_MODES = ('auto', 'integrate', 'kepler')
INTEGRATORS = ('semi_implicit_euler', 'rk4')


# =============================================================================
# CONFIGURATION SECTIONS
# =============================================================================

@dataclass(frozen=True)
class TimeConfig:
    """
    Fixed-step timing parameters.

    Attributes:
        step: Integration step h in simulated seconds.  Never changes while
              the simulation runs; time acceleration only changes how often
              a step is taken.
        time_acceleration: Initial time-acceleration factor for new vehicles.
        min_time_acceleration: Lower clamp for the time-acceleration factor.
        max_time_acceleration: Upper clamp for the time-acceleration factor.
        max_substeps: Maximum steps a single ``advance`` may run per vehicle.
    """
    step: float = DEFAULT_TIME_STEP
    time_acceleration: float = 1.0
    min_time_acceleration: float = MIN_TIME_ACCELERATION
    max_time_acceleration: float = MAX_TIME_ACCELERATION
    max_substeps: int = DEFAULT_MAX_SUBSTEPS

    def __post_init__(self):
        if self.step <= 0.0:
            raise ValueError(f"time.step must be positive, got {self.step}")
        if not 0.0 < self.min_time_acceleration <= self.max_time_acceleration:
            raise ValueError(
                "time acceleration range must satisfy 0 < min <= max, got "
                f"[{self.min_time_acceleration}, {self.max_time_acceleration}]"
            )
        if self.max_substeps < 1:
            raise ValueError(f"time.max_substeps must be >= 1, got {self.max_substeps}")

    def clamp_time_acceleration(self, value: float) -> float:
        """Clamp *value* into the configured time-acceleration range."""
        return max(self.min_time_acceleration,
                   min(self.max_time_acceleration, float(value)))


@dataclass(frozen=True)
class KeplerConfig:
    """Iteration cap and residual tolerance for Kepler-equation solving."""
    max_iterations: int = KEPLER_MAX_ITERATIONS
    tolerance: float = KEPLER_TOLERANCE

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError(f"kepler.max_iterations must be >= 1, got {self.max_iterations}")
        if self.tolerance <= 0.0:
            raise ValueError(f"kepler.tolerance must be positive, got {self.tolerance}")


@dataclass(frozen=True)
class EventConfig:
    """
    Event detection thresholds.

    Attributes:
        tolerance_distance: Radius window (m) around periapsis/apoapsis.
        atmospheric_entry_altitude: Altitude (m) below which the vehicle is
                                    considered to have entered the atmosphere.
        trigger_mode: ``'edge'`` fires once when a condition becomes true and
                      re-arms when it clears; ``'level'`` fires every tick
                      the condition holds.
    """
    tolerance_distance: float = EVENT_TOLERANCE_DISTANCE
    atmospheric_entry_altitude: float = ATMOSPHERIC_ENTRY_ALTITUDE
    trigger_mode: str = 'edge'

    def __post_init__(self):
        if self.trigger_mode not in TRIGGER_MODES:
            raise ValueError(
                f"events.trigger_mode must be one of {TRIGGER_MODES}, "
                f"got {self.trigger_mode!r}"
            )
        if self.tolerance_distance <= 0.0:
            raise ValueError("events.tolerance_distance must be positive")


@dataclass(frozen=True)
class DragConfig:
    enabled: bool = True
    ceiling_altitude: float = DRAG_CEILING_ALTITUDE


@dataclass(frozen=True)
class VehicleConfig:
    """Default physical properties applied to newly added vehicles."""
    mass: float = DEFAULT_VEHICLE_MASS
    drag_coefficient: float = DEFAULT_DRAG_COEFFICIENT
    reference_area: float = DEFAULT_REFERENCE_AREA
    max_thrust: float = DEFAULT_MAX_THRUST

    def __post_init__(self):
        if self.mass <= 0.0:
            raise ValueError(f"vehicle.mass must be positive, got {self.mass}")
        if self.max_thrust < 0.0:
            raise ValueError(f"vehicle.max_thrust must be >= 0, got {self.max_thrust}")


@dataclass(frozen=True)
class PropagationConfig:
    """
    Selects how a tick advances the state.

    Attributes:
        mode: ``'auto'`` uses the Kepler propagator for unperturbed
              elliptical arcs and numerical integration otherwise;
              ``'integrate'`` always integrates; ``'kepler'`` propagates
              analytically whenever no thrust or drag acts, whatever the
              third-body pull.
        integrator: ``'semi_implicit_euler'`` or ``'rk4'``.
        perturbation_threshold: In ``'auto'`` mode, the largest ratio of
              non-central to central gravity still treated as unperturbed.
    """
    mode: str = 'auto'
    integrator: str = 'semi_implicit_euler'
    perturbation_threshold: float = PERTURBATION_THRESHOLD

    def __post_init__(self):
        if self.mode not in PROPAGATION_MODES:
            raise ValueError(
                f"propagation.mode must be one of {PROPAGATION_MODES}, got {self.mode!r}"
            )
        if self.integrator not in INTEGRATORS:
            raise ValueError(
                f"propagation.integrator must be one of {INTEGRATORS}, "
                f"got {self.integrator!r}"
            )


@dataclass(frozen=True)
class ParallelConfig:
    max_workers: int = 1

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError(f"parallel.max_workers must be >= 1, got {self.max_workers}")


@dataclass(frozen=True)
class BodyConfig:
    """One celestial body entry from the ``bodies`` list."""
    name: str
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    velocity: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    mass: float = 0.0
    radius: float = 0.0


@dataclass(frozen=True)
class SimulationConfig:
    """
    Top-level configuration for a :class:`SimulationContext`.

    ``bodies`` of ``None`` selects the built-in default catalog.
    """
    time: TimeConfig = field(default_factory=TimeConfig)
    kepler: KeplerConfig = field(default_factory=KeplerConfig)
    events: EventConfig = field(default_factory=EventConfig)
    drag: DragConfig = field(default_factory=DragConfig)
    vehicle: VehicleConfig = field(default_factory=VehicleConfig)
    propagation: PropagationConfig = field(default_factory=PropagationConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    central_body: str = 'Earth'
    bodies: Optional[Tuple[BodyConfig, ...]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SimulationConfig':
        """
        Build a configuration from a plain (YAML-decoded) dictionary.

        Raises
        ------
        ValueError
            If the dictionary contains unknown sections or keys, or a value
            fails validation.
        """
        data = dict(data or {})
        sections = {
            'time': TimeConfig,
            'kepler': KeplerConfig,
            'events': EventConfig,
            'drag': DragConfig,
            'vehicle': VehicleConfig,
            'propagation': PropagationConfig,
            'parallel': ParallelConfig,
        }
        known = set(sections) | {'central_body', 'bodies'}
        unknown = set(data) - known
        if unknown:
            raise ValueError(
                f"Unknown configuration sections: {sorted(unknown)}. "
                f"Valid: {sorted(known)}"
            )

        kwargs: Dict[str, Any] = {}
        for name, section_cls in sections.items():
            if name in data and data[name] is not None:
                kwargs[name] = _build_section(section_cls, data[name], name)

        if 'central_body' in data:
            kwargs['central_body'] = str(data['central_body'])

        if data.get('bodies') is not None:
            kwargs['bodies'] = tuple(
                _build_body(entry) for entry in data['bodies']
            )

        return cls(**kwargs)


def _build_section(section_cls, values: Dict[str, Any], name: str):
    if not isinstance(values, dict):
        raise ValueError(f"Section '{name}' must be a mapping, got {type(values).__name__}")
    defaults = {f.name: f.default for f in fields(section_cls)}
    unknown = set(values) - set(defaults)
    if unknown:
        raise ValueError(
            f"Unknown keys in section '{name}': {sorted(unknown)}. Valid: {sorted(defaults)}"
        )
    coerced = {
        key: _coerce(value, defaults[key], f"{name}.{key}")
        for key, value in values.items()
    }
    return section_cls(**coerced)


def _coerce(value: Any, default: Any, key: str) -> Any:
    """
    Convert a YAML scalar to the type of the field's default.

    PyYAML resolves ``1e-10`` (no sign on the exponent, no dot) as a string,
    so numeric fields accept numeric strings too.
    """
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be true or false, got {value!r}")
        return value
    if isinstance(default, (int, float)):
        if isinstance(value, bool):
            raise ValueError(f"{key} must be a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {value!r}") from None
        if not math.isfinite(number):
            raise ValueError(f"{key} must be finite, got {value!r}")
        if isinstance(default, int):
            if not number.is_integer():
                raise ValueError(f"{key} must be an integer, got {value!r}")
            return int(number)
        return number
    return value


def _build_body(entry: Dict[str, Any]) -> BodyConfig:
    body = _build_section(BodyConfig, entry, 'bodies')
    return BodyConfig(
        name=str(body.name),
        position=tuple(float(x) for x in body.position),
        velocity=tuple(float(x) for x in body.velocity),
        mass=float(body.mass),
        radius=float(body.radius),
    )


# =============================================================================
# LOADING
# =============================================================================

def load_config(config_path: Optional[Union[str, Path]] = None) -> SimulationConfig:
    """
    Load the simulation configuration from a YAML file.

    Args:
        config_path: Path to a YAML file.  ``None`` returns the defaults.

    Returns:
        The parsed :class:`SimulationConfig`.
    """
    if config_path is None:
        logger.info("No configuration file given; using defaults")
        return SimulationConfig()

    path = Path(config_path)
    logger.info("Loading configuration from: %s", path)
    with path.open('r', encoding='utf-8') as f:
        raw = yaml.safe_load(f)
    config = SimulationConfig.from_dict(raw)
    logger.info(
        "Configuration loaded: central body %s, h=%.5f s, %s bodies",
        config.central_body,
        config.time.step,
        'default' if config.bodies is None else len(config.bodies),
    )
    return config
