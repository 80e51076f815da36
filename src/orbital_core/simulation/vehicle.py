"""
===============================================================================
ORBITAL CORE - Vehicle Orbital State
===============================================================================
Per-vehicle state and the fixed-step tick that advances it.

Each tick executes:

    1. FORCES     -- Reset the acceleration and evaluate gravity, thrust and
                     drag through the ForceModel.
    2. PROPAGATE  -- Unperturbed elliptical arcs use the Kepler propagator;
                     anything else is integrated numerically and the
                     orbital elements are recomputed from the new state.
    3. COMMIT     -- The new state is accepted only if every value is
                     finite; otherwise the previous state is kept.
    4. EVENTS     -- Evaluate periapsis/apoapsis, atmospheric entry and
                     escape conditions.

Vehicles are independent: nothing here touches another vehicle, and the
only shared object (the body catalog inside the ForceModel) is read-only.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from orbital_core.core.config import SimulationConfig
from orbital_core.core.constants import EVENT_TOLERANCE_DISTANCE
from orbital_core.dynamics.forces import (
    AccelerationBreakdown,
    ForceModel,
    ThrustCommand,
)
from orbital_core.dynamics.integrator import FixedStepScheduler, make_integrator
from orbital_core.dynamics.kepler import (
    PropagationResult,
    PropagationStatus,
    propagate,
)
from orbital_core.dynamics.orbital_elements import (
    ElementFlags,
    OrbitalElements,
    OrbitRegime,
    state_to_elements,
)
from orbital_core.simulation.events import EventDetector, OrbitalEvent

logger = logging.getLogger(__name__)

_NON_PROPAGABLE = ElementFlags.ZERO_RADIUS | ElementFlags.ZERO_ANGULAR_MOMENTUM

TICK_ERRORS = (FloatingPointError, ValueError, ZeroDivisionError, OverflowError)


class VehicleFault(Exception):
    """
    A tick failed partway through :meth:`VehicleOrbitalState.advance`.

    The vehicle is left at its last good tick.  ``steps`` and ``events``
    hold the work committed before the failure, ``cause`` the original error.
    """

    def __init__(self, vehicle_id: str, steps: int, events: List[OrbitalEvent],
                 cause: BaseException):
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.vehicle_id = vehicle_id
        self.steps = steps
        self.events = events
        self.cause = cause


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable copy of a vehicle's published state."""
    vehicle_id: str
    simulation_time: float
    position: np.ndarray
    velocity: np.ndarray
    elements: OrbitalElements
    element_flags: ElementFlags
    altitude: float
    radius: float
    speed: float
    orbital_period: Optional[float]
    regime: OrbitRegime
    time_acceleration: float

    def to_record(self) -> Dict[str, Any]:
        """Flat dictionary suitable for DataFrame construction."""
        el = self.elements
        return {
            'time': self.simulation_time,
            'vehicle_id': self.vehicle_id,
            'pos_x': self.position[0],
            'pos_y': self.position[1],
            'pos_z': self.position[2],
            'vel_x': self.velocity[0],
            'vel_y': self.velocity[1],
            'vel_z': self.velocity[2],
            'altitude_m': self.altitude,
            'radius_m': self.radius,
            'speed_m_s': self.speed,
            'semi_major_axis': el.semi_major_axis,
            'eccentricity': el.eccentricity,
            'inclination': el.inclination,
            'raan': el.longitude_of_ascending_node,
            'arg_periapsis': el.argument_of_periapsis,
            'true_anomaly': el.true_anomaly,
            'period_s': self.orbital_period,
            'regime': self.regime.name,
            'time_acceleration': self.time_acceleration,
        }


class VehicleOrbitalState:
    """
    Translational state of one vehicle and its tick sequence.

    Parameters
    ----------
    vehicle_id : str
        Identifier used in events and telemetry.
    position, velocity : array_like
        Initial state in the simulation frame (m, m/s).
    force_model : ForceModel
        Shared force model (catalog, central body, atmosphere).
    config : SimulationConfig, optional
        Timing, propagation, Kepler and event settings, plus the vehicle
        property defaults.
    mass, drag_coefficient, reference_area, max_thrust : float, optional
        Override the ``config.vehicle`` defaults.

    Attributes
    ----------
    acceleration : np.ndarray
        Total acceleration of the last tick.  Reset to zero at the start of
        every tick.
    simulation_time : float
        Simulated seconds elapsed for this vehicle.  Never decreases.
    last_status : PropagationStatus
        Outcome of the last propagation step.
    """

    def __init__(
        self,
        vehicle_id: str,
        position,
        velocity,
        force_model: ForceModel,
        config: Optional[SimulationConfig] = None,
        mass: Optional[float] = None,
        drag_coefficient: Optional[float] = None,
        reference_area: Optional[float] = None,
        max_thrust: Optional[float] = None,
    ) -> None:
        config = config if config is not None else SimulationConfig()
        vehicle_cfg = config.vehicle

        self.vehicle_id = str(vehicle_id)
        self.position = np.array(position, dtype=np.float64).reshape(3)
        self.velocity = np.array(velocity, dtype=np.float64).reshape(3)
        self.acceleration = np.zeros(3)
        self.simulation_time = 0.0

        self.mass = float(vehicle_cfg.mass if mass is None else mass)
        self.drag_coefficient = float(
            vehicle_cfg.drag_coefficient if drag_coefficient is None else drag_coefficient
        )
        self.reference_area = float(
            vehicle_cfg.reference_area if reference_area is None else reference_area
        )
        self.max_thrust = float(vehicle_cfg.max_thrust if max_thrust is None else max_thrust)
        if self.mass <= 0.0:
            raise ValueError(f"Vehicle {self.vehicle_id!r}: mass must be positive, got {self.mass}")
        if self.max_thrust < 0.0:
            raise ValueError(f"Vehicle {self.vehicle_id!r}: max_thrust must be >= 0")

        if not (np.all(np.isfinite(self.position)) and np.all(np.isfinite(self.velocity))):
            raise ValueError(f"Vehicle {self.vehicle_id!r}: initial state must be finite")

        self.force_model = force_model
        self.mu = force_model.central.mu
        self.propagation = config.propagation
        self.kepler = config.kepler
        self.scheduler = FixedStepScheduler.from_config(config.time)
        self.integrator = make_integrator(config.propagation.integrator)
        self.event_detector = EventDetector.from_config(config.events, self.mu)

        self.thrust = ThrustCommand.zero()
        self.last_status = PropagationStatus.OK
        self.last_breakdown: Optional[AccelerationBreakdown] = None
        self.last_used_kepler = False
        self.tick_count = 0

        conversion = state_to_elements(*self.relative_state(), self.mu)
        self.elements: OrbitalElements = conversion.elements
        self.element_flags: ElementFlags = conversion.flags

    # =========================================================================
    # QUERIES
    # =========================================================================

    def relative_state(self) -> Tuple[np.ndarray, np.ndarray]:
        """Position and velocity relative to the central body."""
        central = self.force_model.central
        return self.position - central.position, self.velocity - central.velocity

    @property
    def radius(self) -> float:
        return float(np.linalg.norm(self.position - self.force_model.central.position))

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity - self.force_model.central.velocity))

    @property
    def altitude(self) -> float:
        """Height above the central body's mean radius (m)."""
        return self.radius - self.force_model.central.radius

    @property
    def orbital_period(self) -> Optional[float]:
        """Period of the current osculating orbit (s); ``None`` when open."""
        return self.elements.period

    @property
    def regime(self) -> OrbitRegime:
        return self.elements.regime

    @property
    def time_acceleration(self) -> float:
        return self.scheduler.time_acceleration

    def has_reached_orbit(
        self,
        target_radius: float,
        radius_tolerance: float = EVENT_TOLERANCE_DISTANCE,
        eccentricity_tolerance: float = 1e-3,
    ) -> bool:
        """
        True when the osculating orbit is closed, nearly circular and both
        apsides lie within *radius_tolerance* of *target_radius*.
        """
        el = self.elements
        if el.regime is not OrbitRegime.ELLIPTICAL:
            return False
        return (
            el.eccentricity <= eccentricity_tolerance
            and abs(el.periapsis_radius - target_radius) <= radius_tolerance
            and abs(el.apoapsis_radius - target_radius) <= radius_tolerance
        )

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            vehicle_id=self.vehicle_id,
            simulation_time=self.simulation_time,
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            elements=self.elements,
            element_flags=self.element_flags,
            altitude=self.altitude,
            radius=self.radius,
            speed=self.speed,
            orbital_period=self.orbital_period,
            regime=self.regime,
            time_acceleration=self.time_acceleration,
        )

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def set_thrust(self, thrust: Optional[ThrustCommand]) -> ThrustCommand:
        """
        Set the thrust applied on subsequent ticks.  The magnitude is clamped
        to [0, max_thrust]; ``None`` stops thrusting.
        """
        thrust = ThrustCommand.zero() if thrust is None else thrust.clamped(self.max_thrust)
        self.thrust = thrust
        return thrust

    def set_time_acceleration(self, value: float) -> float:
        """
        Request a new time-acceleration factor.  The clamped value takes
        effect at the next tick boundary.
        """
        return self.scheduler.set_time_acceleration(value)

    # =========================================================================
    # TICK
    # =========================================================================

    def _use_kepler(self, breakdown: AccelerationBreakdown) -> bool:
        mode = self.propagation.mode
        if mode == 'integrate':
            return False
        if breakdown.thrust_active or breakdown.drag_active:
            return False
        if self.element_flags & _NON_PROPAGABLE:
            return False
        if mode == 'kepler':
            return True
        return (
            self.elements.regime is OrbitRegime.ELLIPTICAL
            and breakdown.perturbation_ratio < self.propagation.perturbation_threshold
        )

    def tick(self, h: Optional[float] = None,
             thrust: Optional[ThrustCommand] = None) -> List[OrbitalEvent]:
        """
        Advance the vehicle by one fixed step.

        Parameters
        ----------
        h : float, optional
            Step size in simulated seconds (default: the scheduler step).
        thrust : ThrustCommand, optional
            Thrust for this tick only; defaults to the command stored with
            :meth:`set_thrust`.

        Returns
        -------
        list of OrbitalEvent
            Events fired by this tick.

        Raises
        ------
        FloatingPointError
            On a non-finite result.  The previous state is left untouched.
        """
        h = self.scheduler.step if h is None else float(h)
        if h <= 0.0:
            raise ValueError(f"Tick step must be positive, got {h}")
        thrust = self.thrust if thrust is None else thrust.clamped(self.max_thrust)

        # 1. FORCES
        self.acceleration = np.zeros(3)
        central = self.force_model.central
        mass, cd, area = self.mass, self.drag_coefficient, self.reference_area

        with np.errstate(invalid='raise', divide='raise', over='raise'):
            breakdown = self.force_model.acceleration(
                self.position, self.velocity, mass, thrust, cd, area
            )

            # 2. PROPAGATE
            result: Optional[PropagationResult] = None
            if self._use_kepler(breakdown):
                result = propagate(self.elements, h,
                                   self.kepler.max_iterations, self.kepler.tolerance)
                if result.status is PropagationStatus.UNSUPPORTED_REGIME:
                    result = None

            if result is not None:
                new_position = central.position + result.position
                new_velocity = central.velocity + result.velocity
                new_elements, new_flags = result.elements, self.element_flags
                status = result.status
            else:
                def accel(r: np.ndarray, v: np.ndarray) -> np.ndarray:
                    return self.force_model.total_acceleration(r, v, mass, thrust, cd, area)

                new_position, new_velocity = self.integrator.step(
                    self.position, self.velocity, h, accel, breakdown.total
                )
                conversion = state_to_elements(
                    new_position - central.position,
                    new_velocity - central.velocity,
                    self.mu,
                )
                new_elements, new_flags = conversion.elements, conversion.flags
                status = PropagationStatus.OK

        # 3. COMMIT
        if not (np.all(np.isfinite(new_position)) and np.all(np.isfinite(new_velocity))
                and np.all(np.isfinite(breakdown.total))):
            raise FloatingPointError(
                f"Vehicle {self.vehicle_id!r}: non-finite state at t={self.simulation_time:.3f} s"
            )

        if new_elements.regime is not self.elements.regime:
            logger.info("Vehicle %s: regime %s -> %s at t=%.3f s",
                        self.vehicle_id, self.elements.regime.name,
                        new_elements.regime.name, self.simulation_time + h)
        if status is PropagationStatus.NOT_CONVERGED:
            logger.warning("Vehicle %s: Kepler propagation did not converge at t=%.3f s",
                           self.vehicle_id, self.simulation_time + h)

        self.position = new_position
        self.velocity = new_velocity
        self.acceleration = breakdown.total
        self.elements = new_elements
        self.element_flags = new_flags
        self.simulation_time += h
        self.last_status = status
        self.last_breakdown = breakdown
        self.last_used_kepler = result is not None
        self.tick_count += 1

        # 4. EVENTS
        return self.event_detector.evaluate(
            self.vehicle_id, self.simulation_time,
            self.radius, self.speed, self.altitude, self.elements,
        )

    def advance(self, wall_dt: float) -> Tuple[int, List[OrbitalEvent]]:
        """
        Run every step that *wall_dt* seconds of host time release at the
        current time acceleration.

        Returns
        -------
        (steps, events) : (int, list of OrbitalEvent)

        Raises
        ------
        VehicleFault
            If a tick fails.  Ticks before it stay committed and are carried
            on the exception; the released steps after it are discarded.
        """
        steps = self.scheduler.advance(wall_dt)
        events: List[OrbitalEvent] = []
        for completed in range(steps):
            try:
                events.extend(self.tick())
            except TICK_ERRORS as exc:
                raise VehicleFault(self.vehicle_id, completed, events, exc) from exc
        return steps, events

    def propagate_coast(self, dt: float) -> PropagationResult:
        """
        Jump the vehicle forward *dt* simulated seconds along its current
        osculating orbit, ignoring every force but central gravity.

        The state is only changed when the result carries a position; an
        ``UNSUPPORTED_REGIME`` result leaves it as it was.  Events are
        evaluated on the next tick.
        """
        if dt < 0.0:
            raise ValueError(f"Coast interval must be >= 0, got {dt}")
        if self.element_flags & _NON_PROPAGABLE:
            logger.warning("Vehicle %s: coast requested on a degenerate orbit (%s)",
                           self.vehicle_id, self.element_flags)
            result = PropagationResult(None, None, self.elements.true_anomaly,
                                       self.elements, PropagationStatus.UNSUPPORTED_REGIME)
        else:
            result = propagate(self.elements, dt,
                               self.kepler.max_iterations, self.kepler.tolerance)

        if result.position is not None:
            central = self.force_model.central
            self.position = central.position + result.position
            self.velocity = central.velocity + result.velocity
            self.elements = result.elements
            self.simulation_time += dt
            self.acceleration = np.zeros(3)
        self.last_status = result.status
        return result

    def __repr__(self) -> str:
        return (
            f"VehicleOrbitalState({self.vehicle_id!r}, t={self.simulation_time:.1f}s, "
            f"alt={self.altitude / 1e3:.1f} km, regime={self.regime.name})"
        )
