"""
===============================================================================
ORBITAL CORE - Force Model
===============================================================================
Total acceleration acting on a vehicle:

    1. Point-mass gravity of every catalog body (summed, bodies do not
       attract one another)
    2. Thrust supplied by the flight-control collaborator
    3. Atmospheric drag of the central body, below the drag ceiling

Every contribution is kept separately in an :class:`AccelerationBreakdown`
so that the caller can judge whether the arc is unperturbed enough for
analytical propagation.

All vectors are in the simulation frame, SI units (m, m/s, kg, N).
===============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from orbital_core.core.constants import (
    DEFAULT_DRAG_COEFFICIENT,
    DEFAULT_REFERENCE_AREA,
    DRAG_CEILING_ALTITUDE,
    MIN_RADIUS,
)
from orbital_core.dynamics.celestial_bodies import CelestialBody, CelestialBodyCatalog
from orbital_core.dynamics.environment import LayeredAtmosphere

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThrustCommand:
    """
    Per-tick thrust request.

    Attributes
    ----------
    direction : np.ndarray
        Thrust direction in the simulation frame.  Normalised on use; a
        zero-length direction means no thrust.
    magnitude : float
        Thrust force (N).
    """
    direction: np.ndarray = field(default_factory=lambda: np.zeros(3))
    magnitude: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'direction',
                           np.array(self.direction, dtype=np.float64).reshape(3))
        object.__setattr__(self, 'magnitude', float(self.magnitude))

    @classmethod
    def zero(cls) -> 'ThrustCommand':
        return cls()

    @property
    def is_zero(self) -> bool:
        return self.magnitude <= 0.0 or not np.any(self.direction)

    def clamped(self, max_thrust: float) -> 'ThrustCommand':
        """Copy with the magnitude clamped to [0, max_thrust]."""
        magnitude = min(max(self.magnitude, 0.0), max_thrust)
        if magnitude == self.magnitude:
            return self
        return ThrustCommand(self.direction, magnitude)

    def force(self) -> np.ndarray:
        """Thrust force vector (N)."""
        norm = np.linalg.norm(self.direction)
        if norm == 0.0 or self.magnitude <= 0.0:
            return np.zeros(3)
        return self.direction / norm * self.magnitude


@dataclass(frozen=True)
class AccelerationBreakdown:
    """
    Acceleration contributions of one force evaluation (m/s^2).

    ``central_gravity`` is the part of ``gravity`` due to the central body
    alone; ``guarded_bodies`` lists bodies that were closer than the guard
    distance and therefore contributed nothing.
    """
    gravity: np.ndarray
    central_gravity: np.ndarray
    thrust: np.ndarray
    drag: np.ndarray
    total: np.ndarray
    drag_active: bool = False
    guarded_bodies: Tuple[str, ...] = ()

    @property
    def thrust_active(self) -> bool:
        return bool(np.any(self.thrust))

    @property
    def perturbation_ratio(self) -> float:
        """|non-central gravity| / |central gravity|, inf if the latter is 0."""
        central = float(np.linalg.norm(self.central_gravity))
        other = float(np.linalg.norm(self.gravity - self.central_gravity))
        if central == 0.0:
            return float('inf') if other > 0.0 else 0.0
        return other / central


class ForceModel:
    """
    Gravity, thrust and drag for vehicles moving among the catalog bodies.

    Parameters
    ----------
    catalog : CelestialBodyCatalog
        Shared, read-only body registry.
    central_body : str
        Name of the body whose atmosphere produces drag and relative to
        which altitude is measured.
    atmosphere : LayeredAtmosphere, optional
        Density model (default: :class:`LayeredAtmosphere`).
    drag_enabled : bool
        Master switch for drag.
    drag_ceiling : float
        Altitude (m) at and above which drag is not applied.
    """

    def __init__(
        self,
        catalog: CelestialBodyCatalog,
        central_body: str = 'Earth',
        atmosphere: Optional[LayeredAtmosphere] = None,
        drag_enabled: bool = True,
        drag_ceiling: float = DRAG_CEILING_ALTITUDE,
    ) -> None:
        self.catalog = catalog
        self.central: CelestialBody = catalog[central_body]
        self._central_index = catalog.names.index(central_body)
        self.atmosphere = atmosphere if atmosphere is not None else LayeredAtmosphere()
        self.drag_enabled = drag_enabled
        self.drag_ceiling = drag_ceiling

    # ------------------------------------------------------------------ #
    def altitude(self, position: np.ndarray) -> float:
        """Height above the central body's mean radius (m)."""
        r = np.asarray(position, dtype=np.float64) - self.central.position
        return float(np.linalg.norm(r)) - self.central.radius

    # ------------------------------------------------------------------ #
    def gravity(self, position: np.ndarray) -> Tuple[np.ndarray, np.ndarray, Tuple[str, ...]]:
        """
        Point-mass gravity summed over every catalog body:

            a = sum_k  mu_k * (r_k - r) / |r_k - r|^3

        Returns
        -------
        (total, central, guarded) : (ndarray, ndarray, tuple of str)
            Summed acceleration, the central body's share of it, and the
            names of bodies skipped because the vehicle is inside the
            guard distance of their centre.
        """
        pos = np.asarray(position, dtype=np.float64)
        d = self.catalog.positions - pos
        dist = np.linalg.norm(d, axis=1)
        guarded_mask = dist < MIN_RADIUS

        safe_dist = np.where(guarded_mask, 1.0, dist)
        contrib = self.catalog.mus[:, None] * d / safe_dist[:, None] ** 3
        contrib[guarded_mask] = 0.0

        guarded: Tuple[str, ...] = ()
        if np.any(guarded_mask):
            names = self.catalog.names
            guarded = tuple(names[i] for i in np.flatnonzero(guarded_mask))
            logger.warning("Gravity guard: vehicle inside %.1f m of %s",
                           MIN_RADIUS, ', '.join(guarded))

        return contrib.sum(axis=0), contrib[self._central_index].copy(), guarded

    # ------------------------------------------------------------------ #
    @staticmethod
    def thrust_acceleration(thrust: ThrustCommand, mass: float) -> np.ndarray:
        """a_thrust = direction_hat * magnitude / mass."""
        return thrust.force() / mass

    # ------------------------------------------------------------------ #
    def drag_acceleration(
        self,
        velocity: np.ndarray,
        altitude: float,
        mass: float,
        drag_coefficient: float = DEFAULT_DRAG_COEFFICIENT,
        reference_area: float = DEFAULT_REFERENCE_AREA,
    ) -> Tuple[np.ndarray, bool]:
        """
        Drag acceleration relative to the central body's atmosphere:

            a_drag = -0.5 * rho * Cd * A * |v| * v / m

        Returns the acceleration and whether drag was active at all.
        """
        if not self.drag_enabled or altitude >= self.drag_ceiling:
            return np.zeros(3), False

        v_rel = np.asarray(velocity, dtype=np.float64) - self.central.velocity
        v_mag = float(np.linalg.norm(v_rel))
        if v_mag == 0.0:
            return np.zeros(3), True

        rho = self.atmosphere.get_density(altitude)
        a_drag = -0.5 * rho * drag_coefficient * reference_area * v_mag * v_rel / mass
        return a_drag, True

    # ------------------------------------------------------------------ #
    def acceleration(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        mass: float,
        thrust: Optional[ThrustCommand] = None,
        drag_coefficient: float = DEFAULT_DRAG_COEFFICIENT,
        reference_area: float = DEFAULT_REFERENCE_AREA,
        altitude: Optional[float] = None,
    ) -> AccelerationBreakdown:
        """
        Compute the total acceleration on a vehicle.

        Parameters
        ----------
        position, velocity : np.ndarray
            Vehicle state in the simulation frame.
        mass : float
            Vehicle mass (kg), must be positive.
        thrust : ThrustCommand, optional
            Thrust for this evaluation; ``None`` means coasting.
        drag_coefficient, reference_area : float
            Vehicle drag properties.
        altitude : float, optional
            Altitude above the central body; computed from *position* when
            omitted.

        Returns
        -------
        AccelerationBreakdown
        """
        if mass <= 0.0:
            raise ValueError(f"Vehicle mass must be positive, got {mass}")

        gravity, central, guarded = self.gravity(position)

        if thrust is None or thrust.is_zero:
            a_thrust = np.zeros(3)
        else:
            a_thrust = self.thrust_acceleration(thrust, mass)

        if altitude is None:
            altitude = self.altitude(position)
        a_drag, drag_active = self.drag_acceleration(
            velocity, altitude, mass, drag_coefficient, reference_area
        )

        return AccelerationBreakdown(
            gravity=gravity,
            central_gravity=central,
            thrust=a_thrust,
            drag=a_drag,
            total=gravity + a_thrust + a_drag,
            drag_active=drag_active,
            guarded_bodies=guarded,
        )

    def total_acceleration(self, position: np.ndarray, velocity: np.ndarray,
                           mass: float, thrust: Optional[ThrustCommand] = None,
                           drag_coefficient: float = DEFAULT_DRAG_COEFFICIENT,
                           reference_area: float = DEFAULT_REFERENCE_AREA) -> np.ndarray:
        """Shortcut returning only ``acceleration(...).total``."""
        return self.acceleration(position, velocity, mass, thrust,
                                 drag_coefficient, reference_area).total

    def __repr__(self) -> str:
        return (
            f"ForceModel(central={self.central.name!r}, bodies={len(self.catalog)}, "
            f"drag={'on' if self.drag_enabled else 'off'} < {self.drag_ceiling:.0f} m)"
        )
