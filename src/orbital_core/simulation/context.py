"""
===============================================================================
ORBITAL CORE - Simulation Context
===============================================================================
Explicit owner of everything a running simulation needs: configuration,
the celestial body catalog, the force model, the set of active vehicles and
the observers that consume published state.

The host drives the context from its main loop:

    context = SimulationContext(load_config('config/simulation.yaml'))
    context.subscribe(TelemetryRecorder())
    context.add_vehicle('sat-1', position, velocity)
    while running:
        context.set_thrust('sat-1', flight_control.command())
        report = context.advance(wall_dt)

Per-vehicle ticks are independent and may run on a thread pool
(``parallel.max_workers``).  A vehicle whose tick fails numerically stops at
its last good tick and is reported as faulted in the StepReport, along with
the steps and events it completed first; the others are unaffected.
Observers are called on the thread that calls :meth:`advance`, after all
vehicles have finished.
===============================================================================
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from orbital_core.core.config import SimulationConfig, load_config
from orbital_core.dynamics.celestial_bodies import CelestialBodyCatalog
from orbital_core.dynamics.forces import ForceModel, ThrustCommand
from orbital_core.dynamics.orbital_elements import OrbitalElements, elements_to_state
from orbital_core.guidance.transfer_planner import TransferOrbit, TransferPlanner
from orbital_core.simulation.events import OrbitalEvent, OrbitalEventType
from orbital_core.simulation.vehicle import StateSnapshot, VehicleFault, VehicleOrbitalState

logger = logging.getLogger(__name__)


class SimulationObserver:
    """
    Consumer of published simulation output (rendering, replication,
    gameplay logic, telemetry).  Override either hook.
    """

    def on_state(self, snapshot: StateSnapshot) -> None:
        pass

    def on_event(self, event: OrbitalEvent) -> None:
        pass


@dataclass
class StepReport:
    """
    Outcome of one :meth:`SimulationContext.advance`.

    Attributes
    ----------
    steps : dict
        Steps committed per vehicle id, including those a faulted vehicle
        completed before its failing tick.
    events : list of OrbitalEvent
        Events fired this advance, in vehicle order.
    snapshots : list of StateSnapshot
        State of every vehicle that committed at least one step.
    faulted : dict
        vehicle id -> error message for vehicles whose tick failed.
    """
    steps: Dict[str, int] = field(default_factory=dict)
    events: List[OrbitalEvent] = field(default_factory=list)
    snapshots: List[StateSnapshot] = field(default_factory=list)
    faulted: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.faulted


class SimulationContext:
    """
    Owns the catalog and the active vehicles; replaces any global
    simulation controller.

    Parameters
    ----------
    config : SimulationConfig, optional
        Defaults to ``SimulationConfig()``.
    catalog : CelestialBodyCatalog, optional
        Prebuilt catalog; otherwise built from ``config.bodies``.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        catalog: Optional[CelestialBodyCatalog] = None,
    ) -> None:
        self.config = config if config is not None else SimulationConfig()
        self.catalog = catalog if catalog is not None \
            else CelestialBodyCatalog.from_config(self.config.bodies)
        self.force_model = ForceModel(
            self.catalog,
            central_body=self.config.central_body,
            drag_enabled=self.config.drag.enabled,
            drag_ceiling=self.config.drag.ceiling_altitude,
        )
        self.planner = TransferPlanner(self.force_model.central.mu)

        self._vehicles: Dict[str, VehicleOrbitalState] = {}
        self._observers: List[SimulationObserver] = []
        self._lock = threading.Lock()

        max_workers = self.config.parallel.max_workers
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='orbital-tick')
            if max_workers > 1 else None
        )

        logger.info(
            "SimulationContext created.  central=%s, bodies=%d, h=%.5f s, workers=%d",
            self.config.central_body, len(self.catalog), self.config.time.step, max_workers,
        )

    @classmethod
    def from_config_file(cls, config_path) -> 'SimulationContext':
        return cls(load_config(config_path))

    # =========================================================================
    # VEHICLES
    # =========================================================================

    def add_vehicle(self, vehicle_id: str, position, velocity, **properties) -> VehicleOrbitalState:
        """
        Enter a vehicle into the simulation.

        ``properties`` may override ``mass``, ``drag_coefficient``,
        ``reference_area`` and ``max_thrust``.

        Raises
        ------
        ValueError
            If the id is already in use or the state is invalid.
        """
        vehicle = VehicleOrbitalState(
            vehicle_id, position, velocity, self.force_model,
            config=self.config, **properties,
        )
        with self._lock:
            if vehicle.vehicle_id in self._vehicles:
                raise ValueError(f"Vehicle {vehicle.vehicle_id!r} already exists")
            self._vehicles[vehicle.vehicle_id] = vehicle
        logger.info("Vehicle %s added: alt=%.1f km, regime=%s",
                    vehicle.vehicle_id, vehicle.altitude / 1e3, vehicle.regime.name)
        return vehicle

    def add_vehicle_from_elements(self, vehicle_id: str, elements: OrbitalElements,
                                  **properties) -> VehicleOrbitalState:
        """Enter a vehicle on the orbit described by *elements*."""
        r, v = elements_to_state(elements)
        central = self.force_model.central
        return self.add_vehicle(vehicle_id, central.position + r,
                                central.velocity + v, **properties)

    def remove_vehicle(self, vehicle_id: str) -> VehicleOrbitalState:
        """Stop simulating a vehicle and return its final state."""
        with self._lock:
            try:
                vehicle = self._vehicles.pop(vehicle_id)
            except KeyError:
                raise KeyError(f"Unknown vehicle: {vehicle_id!r}") from None
        logger.info("Vehicle %s removed at t=%.1f s", vehicle_id, vehicle.simulation_time)
        return vehicle

    def get_vehicle(self, vehicle_id: str) -> VehicleOrbitalState:
        with self._lock:
            try:
                return self._vehicles[vehicle_id]
            except KeyError:
                raise KeyError(f"Unknown vehicle: {vehicle_id!r}") from None

    @property
    def vehicles(self) -> Dict[str, VehicleOrbitalState]:
        """Copy of the id -> vehicle mapping."""
        with self._lock:
            return dict(self._vehicles)

    def __contains__(self, vehicle_id: object) -> bool:
        with self._lock:
            return vehicle_id in self._vehicles

    def __len__(self) -> int:
        with self._lock:
            return len(self._vehicles)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def set_thrust(self, vehicle_id: str, thrust: Optional[ThrustCommand]) -> ThrustCommand:
        return self.get_vehicle(vehicle_id).set_thrust(thrust)

    def set_time_acceleration(self, value: float,
                              vehicle_id: Optional[str] = None) -> float:
        """
        Request a time-acceleration factor for one vehicle, or for all of
        them when *vehicle_id* is ``None``.  Applied at the next tick
        boundary; returns the clamped value.
        """
        if vehicle_id is not None:
            return self.get_vehicle(vehicle_id).set_time_acceleration(value)
        clamped = self.config.time.clamp_time_acceleration(value)
        for vehicle in self.vehicles.values():
            vehicle.set_time_acceleration(value)
        logger.info("Time acceleration x%g requested for all vehicles", clamped)
        return clamped

    def plan_transfer(self, vehicle_id: str, target_radius: float) -> TransferOrbit:
        """
        Plan a Hohmann transfer from the vehicle's current radius and
        publish ``TRANSFER_COMPUTED``.
        """
        vehicle = self.get_vehicle(vehicle_id)
        r_rel, _ = vehicle.relative_state()
        plan = self.planner.plan_to_position(r_rel, target_radius)
        logger.info(
            "Transfer planned for %s: %.0f km -> %.0f km, dv1=%.1f m/s, dv2=%.1f m/s, "
            "TOF=%.2f h",
            vehicle_id, plan.departure_radius / 1e3, plan.target_radius / 1e3,
            plan.delta_v, plan.arrival_delta_v, plan.transfer_time / 3600.0,
        )
        event = OrbitalEvent(
            OrbitalEventType.TRANSFER_COMPUTED, vehicle.vehicle_id,
            vehicle.simulation_time, vehicle.radius, vehicle.speed,
            vehicle.altitude, transfer=plan,
        )
        self._publish_event(event)
        return plan

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def subscribe(self, observer: SimulationObserver) -> None:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def unsubscribe(self, observer: SimulationObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _current_observers(self) -> List[SimulationObserver]:
        with self._lock:
            return list(self._observers)

    def _publish_event(self, event: OrbitalEvent) -> None:
        for observer in self._current_observers():
            observer.on_event(event)

    # =========================================================================
    # STEPPING
    # =========================================================================

    @staticmethod
    def _advance_vehicle(vehicle: VehicleOrbitalState, wall_dt: float
                         ) -> Tuple[str, int, List[OrbitalEvent], Optional[str]]:
        try:
            steps, events = vehicle.advance(wall_dt)
        except VehicleFault as fault:
            logger.error("Vehicle %s faulted at t=%.3f s after %d step(s): %s",
                         vehicle.vehicle_id, vehicle.simulation_time, fault.steps, fault,
                         exc_info=fault.cause)
            return vehicle.vehicle_id, fault.steps, fault.events, str(fault)
        return vehicle.vehicle_id, steps, events, None

    def advance(self, wall_dt: float) -> StepReport:
        """
        Advance every vehicle by the steps *wall_dt* seconds of host time
        release, then publish snapshots and events.

        Raises
        ------
        ValueError
            If *wall_dt* is negative.
        """
        if wall_dt < 0.0:
            raise ValueError(f"wall_dt must be >= 0, got {wall_dt}")

        vehicles = list(self.vehicles.values())
        if self._executor is not None and len(vehicles) > 1:
            outcomes = list(self._executor.map(
                lambda v: self._advance_vehicle(v, wall_dt), vehicles
            ))
        else:
            outcomes = [self._advance_vehicle(v, wall_dt) for v in vehicles]

        report = StepReport()
        for vehicle, (vehicle_id, steps, events, error) in zip(vehicles, outcomes):
            report.steps[vehicle_id] = steps
            report.events.extend(events)
            if error is not None:
                report.faulted[vehicle_id] = error
                if steps == 0:
                    continue
            report.snapshots.append(vehicle.snapshot())

        observers = self._current_observers()
        for snapshot in report.snapshots:
            for observer in observers:
                observer.on_state(snapshot)
        for event in report.events:
            for observer in observers:
                observer.on_event(event)

        if report.faulted:
            logger.warning("Advance finished with faulted vehicles: %s",
                           ', '.join(sorted(report.faulted)))
        return report

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Shut down the worker pool, if any."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> 'SimulationContext':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"SimulationContext(central={self.config.central_body!r}, "
            f"vehicles={len(self)}, observers={len(self._current_observers())})"
        )
