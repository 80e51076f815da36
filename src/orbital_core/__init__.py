"""
===============================================================================
ORBITAL CORE
===============================================================================
In-process orbital mechanics simulation for vehicles moving among a catalog
of gravitating bodies: state/element conversion, analytical and numerical
propagation, drag and thrust, event detection and Hohmann transfer plans.

Packages:
    core       -- Constants, frame rotations, configuration
    dynamics   -- Bodies, elements, Kepler propagation, forces, integrators
    guidance   -- Transfer planning
    simulation -- Vehicles, events, context, telemetry
===============================================================================
"""

from orbital_core.core.config import SimulationConfig, load_config
from orbital_core.dynamics.celestial_bodies import CelestialBody, CelestialBodyCatalog
from orbital_core.dynamics.forces import ThrustCommand
from orbital_core.dynamics.orbital_elements import (
    OrbitalElements,
    elements_to_state,
    state_to_elements,
)
from orbital_core.guidance.transfer_planner import TransferOrbit, TransferPlanner
from orbital_core.simulation.context import SimulationContext, SimulationObserver
from orbital_core.simulation.events import OrbitalEvent, OrbitalEventType
from orbital_core.simulation.telemetry import TelemetryRecorder
from orbital_core.simulation.vehicle import VehicleOrbitalState

__version__ = '0.1.0'
