"""
===============================================================================
ORBITAL CORE - Event Detection
===============================================================================
Discrete orbital events evaluated once per tick after the state update.

    PERIAPSIS_REACHED        |r - r_p| < tolerance
    APOAPSIS_REACHED         |r - r_a| < tolerance      (closed orbits only)
    ATMOSPHERIC_ENTRY        altitude < entry altitude
    ESCAPE_VELOCITY_REACHED  |v| > sqrt(2*mu/r)
    TRANSFER_COMPUTED        published by the context when a plan is made

Apsis checks are skipped for orbits whose apsides are closer together than
the tolerance window (r_a - r_p < tolerance), since every point of such an
orbit is both.  A circular or near-circular orbit therefore never raises
PERIAPSIS_REACHED or APOAPSIS_REACHED; hosts that need a once-per-orbit
marker on such orbits must derive it from the true anomaly instead.

Trigger modes:
    edge  : an event fires once when its condition becomes true and re-arms
            when the condition clears (default)
    level : an event fires on every tick its condition holds
===============================================================================
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Set

from orbital_core.core.config import TRIGGER_MODES
from orbital_core.core.constants import (
    ATMOSPHERIC_ENTRY_ALTITUDE,
    EVENT_TOLERANCE_DISTANCE,
)
from orbital_core.dynamics.orbital_elements import OrbitalElements, OrbitRegime
from orbital_core.guidance.transfer_planner import TransferOrbit

logger = logging.getLogger(__name__)


class OrbitalEventType(Enum):
    """Discrete events published to observers."""
    PERIAPSIS_REACHED = auto()
    APOAPSIS_REACHED = auto()
    ATMOSPHERIC_ENTRY = auto()
    ESCAPE_VELOCITY_REACHED = auto()
    TRANSFER_COMPUTED = auto()


@dataclass(frozen=True)
class OrbitalEvent:
    """
    A single event occurrence.

    Attributes
    ----------
    event_type : OrbitalEventType
        What happened.
    vehicle_id : str
        Vehicle the event belongs to.
    simulation_time : float
        Vehicle simulation time (s) at which it was detected.
    radius, speed, altitude : float
        State relative to the central body at detection.
    transfer : TransferOrbit, optional
        The plan, for TRANSFER_COMPUTED only.
    """
    event_type: OrbitalEventType
    vehicle_id: str
    simulation_time: float
    radius: float
    speed: float
    altitude: float
    transfer: Optional[TransferOrbit] = None

    def to_record(self) -> Dict[str, Any]:
        """Flat dictionary for telemetry tables."""
        record: Dict[str, Any] = {
            'time': self.simulation_time,
            'vehicle_id': self.vehicle_id,
            'event': self.event_type.name,
            'radius': self.radius,
            'speed': self.speed,
            'altitude': self.altitude,
        }
        if self.transfer is not None:
            record['transfer_delta_v'] = self.transfer.delta_v
            record['transfer_arrival_delta_v'] = self.transfer.arrival_delta_v
            record['transfer_time'] = self.transfer.transfer_time
        return record


class EventDetector:
    """
    Per-vehicle event evaluator.

    In edge mode the detector remembers which conditions held on the
    previous tick, so each vehicle needs its own instance.

    Parameters
    ----------
    mu : float
        Gravitational parameter of the central body (m^3/s^2).
    tolerance_distance : float
        Apsis proximity window (m).
    atmospheric_entry_altitude : float
        Entry threshold (m).
    trigger_mode : str
        ``'edge'`` or ``'level'``.
    """

    def __init__(
        self,
        mu: float,
        tolerance_distance: float = EVENT_TOLERANCE_DISTANCE,
        atmospheric_entry_altitude: float = ATMOSPHERIC_ENTRY_ALTITUDE,
        trigger_mode: str = 'edge',
    ) -> None:
        if trigger_mode not in TRIGGER_MODES:
            raise ValueError(
                f"Unknown trigger mode {trigger_mode!r}. Valid: {TRIGGER_MODES}"
            )
        self.mu = mu
        self.tolerance_distance = tolerance_distance
        self.atmospheric_entry_altitude = atmospheric_entry_altitude
        self.trigger_mode = trigger_mode
        self._active: Set[OrbitalEventType] = set()

    @classmethod
    def from_config(cls, event_config, mu: float) -> 'EventDetector':
        return cls(
            mu=mu,
            tolerance_distance=event_config.tolerance_distance,
            atmospheric_entry_altitude=event_config.atmospheric_entry_altitude,
            trigger_mode=event_config.trigger_mode,
        )

    # ------------------------------------------------------------------ #
    def conditions(self, radius: float, speed: float, altitude: float,
                   elements: OrbitalElements) -> Set[OrbitalEventType]:
        """Set of event conditions that hold for the given state."""
        held: Set[OrbitalEventType] = set()
        tol = self.tolerance_distance

        r_p = elements.periapsis_radius
        r_a = elements.apoapsis_radius
        if elements.semi_latus_rectum > 0.0:
            apsides_distinct = r_a is None or (r_a - r_p) >= tol
            if apsides_distinct:
                if abs(radius - r_p) < tol:
                    held.add(OrbitalEventType.PERIAPSIS_REACHED)
                if r_a is not None and elements.regime is OrbitRegime.ELLIPTICAL \
                        and abs(radius - r_a) < tol:
                    held.add(OrbitalEventType.APOAPSIS_REACHED)

        if altitude < self.atmospheric_entry_altitude:
            held.add(OrbitalEventType.ATMOSPHERIC_ENTRY)

        if radius > 0.0 and speed > math.sqrt(2.0 * self.mu / radius):
            held.add(OrbitalEventType.ESCAPE_VELOCITY_REACHED)

        return held

    def evaluate(
        self,
        vehicle_id: str,
        simulation_time: float,
        radius: float,
        speed: float,
        altitude: float,
        elements: OrbitalElements,
    ) -> List[OrbitalEvent]:
        """
        Evaluate all conditions for the current tick and return the events
        that fire under the configured trigger mode.
        """
        held = self.conditions(radius, speed, altitude, elements)

        if self.trigger_mode == 'level':
            firing = held
        else:
            firing = held - self._active
        self._active = held

        events = [
            OrbitalEvent(event_type, vehicle_id, simulation_time,
                         radius, speed, altitude)
            for event_type in sorted(firing, key=lambda t: t.value)
        ]
        for event in events:
            logger.debug("Vehicle %s: %s at t=%.3f s (r=%.0f m, v=%.1f m/s)",
                         vehicle_id, event.event_type.name, simulation_time,
                         radius, speed)
        return events

    def reset(self) -> None:
        """Re-arm every edge-triggered condition."""
        self._active = set()
