"""
===============================================================================
ORBITAL CORE - Celestial Body Catalog
===============================================================================
Registry of the gravitating bodies that act on every vehicle.

Bodies are kinematically prescribed: their positions and velocities are set
by configuration (and may be advanced by the host between ticks by building
a new catalog), but bodies never attract one another inside this core.  The
catalog is immutable after construction and can therefore be shared by any
number of worker threads without locking.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import numpy as np

from orbital_core.core.constants import (
    EARTH_MASS, EARTH_RADIUS,
    GRAVITATIONAL_CONSTANT,
    JUPITER_DISTANCE, JUPITER_MASS, JUPITER_RADIUS, JUPITER_VELOCITY,
    MARS_DISTANCE, MARS_MASS, MARS_RADIUS, MARS_VELOCITY,
    MOON_DISTANCE, MOON_MASS, MOON_RADIUS, MOON_VELOCITY,
    SATURN_DISTANCE, SATURN_MASS, SATURN_RADIUS, SATURN_VELOCITY,
)

logger = logging.getLogger(__name__)


def _frozen_vector(values) -> np.ndarray:
    vec = np.array(values, dtype=np.float64).reshape(3)
    vec.setflags(write=False)
    return vec


@dataclass(frozen=True, eq=False)
class CelestialBody:
    """
    A gravitating body of the simulation universe.

    Attributes
    ----------
    name : str
        Unique identifier within a catalog.
    position : np.ndarray
        Position (m) in the simulation frame.  Stored read-only.
    velocity : np.ndarray
        Velocity (m/s) in the simulation frame.  Stored read-only.
    mass : float
        Mass (kg).
    radius : float
        Mean radius (m), used for altitude.
    """
    name: str
    position: np.ndarray
    velocity: np.ndarray
    mass: float
    radius: float

    def __post_init__(self):
        if not self.name:
            raise ValueError("Celestial body name must be a non-empty string")
        if self.mass <= 0.0:
            raise ValueError(f"Body {self.name!r}: mass must be positive, got {self.mass}")
        if self.radius < 0.0:
            raise ValueError(f"Body {self.name!r}: radius must be >= 0, got {self.radius}")
        object.__setattr__(self, 'position', _frozen_vector(self.position))
        object.__setattr__(self, 'velocity', _frozen_vector(self.velocity))
        object.__setattr__(self, 'mass', float(self.mass))
        object.__setattr__(self, 'radius', float(self.radius))

    @property
    def mu(self) -> float:
        """Gravitational parameter G * M (m^3/s^2)."""
        return GRAVITATIONAL_CONSTANT * self.mass

    def __repr__(self) -> str:
        return (
            f"CelestialBody({self.name!r}, mass={self.mass:.4e} kg, "
            f"radius={self.radius:.0f} m)"
        )


class CelestialBodyCatalog:
    """
    Ordered, read-only collection of :class:`CelestialBody` objects.

    Typical usage:
        catalog = CelestialBodyCatalog.default()
        earth = catalog['Earth']
        mu = earth.mu
    """

    def __init__(self, bodies: Iterable[CelestialBody]) -> None:
        ordered: Dict[str, CelestialBody] = {}
        for body in bodies:
            if body.name in ordered:
                raise ValueError(f"Duplicate celestial body name: {body.name!r}")
            ordered[body.name] = body
        if not ordered:
            raise ValueError("A celestial body catalog needs at least one body")
        self._bodies = ordered
        # Packed arrays for the force model's vectorised gravity sum.
        self._positions = np.array([b.position for b in ordered.values()])
        self._mus = np.array([b.mu for b in ordered.values()])
        self._positions.setflags(write=False)
        self._mus.setflags(write=False)

    # ------------------------------------------------------------------ #
    @classmethod
    def default(cls) -> 'CelestialBodyCatalog':
        """Earth-centred catalog of Earth, Moon, Mars, Jupiter and Saturn."""
        return cls([
            CelestialBody('Earth', (0.0, 0.0, 0.0), (0.0, 0.0, 0.0),
                          EARTH_MASS, EARTH_RADIUS),
            CelestialBody('Moon', (MOON_DISTANCE, 0.0, 0.0),
                          (0.0, MOON_VELOCITY, 0.0), MOON_MASS, MOON_RADIUS),
            CelestialBody('Mars', (MARS_DISTANCE, 0.0, 0.0),
                          (0.0, MARS_VELOCITY, 0.0), MARS_MASS, MARS_RADIUS),
            CelestialBody('Jupiter', (JUPITER_DISTANCE, 0.0, 0.0),
                          (0.0, JUPITER_VELOCITY, 0.0), JUPITER_MASS, JUPITER_RADIUS),
            CelestialBody('Saturn', (SATURN_DISTANCE, 0.0, 0.0),
                          (0.0, SATURN_VELOCITY, 0.0), SATURN_MASS, SATURN_RADIUS),
        ])

    @classmethod
    def from_config(cls, body_configs: Optional[Sequence]) -> 'CelestialBodyCatalog':
        """
        Build a catalog from ``SimulationConfig.bodies``.

        Parameters
        ----------
        body_configs : sequence of BodyConfig or None
            ``None`` selects :meth:`default`.
        """
        if body_configs is None:
            catalog = cls.default()
        else:
            catalog = cls(
                CelestialBody(bc.name, bc.position, bc.velocity, bc.mass, bc.radius)
                for bc in body_configs
            )
        logger.info("Celestial catalog built: %s", ', '.join(catalog.names))
        return catalog

    # ------------------------------------------------------------------ #
    def __getitem__(self, name: str) -> CelestialBody:
        try:
            return self._bodies[name]
        except KeyError:
            raise KeyError(
                f"Unknown celestial body: {name!r}. Valid: {self.names}"
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._bodies

    def __iter__(self) -> Iterator[CelestialBody]:
        return iter(self._bodies.values())

    def __len__(self) -> int:
        return len(self._bodies)

    @property
    def names(self) -> List[str]:
        return list(self._bodies)

    @property
    def positions(self) -> np.ndarray:
        """(n, 3) read-only array of body positions, catalog order."""
        return self._positions

    @property
    def mus(self) -> np.ndarray:
        """(n,) read-only array of gravitational parameters, catalog order."""
        return self._mus

    def __repr__(self) -> str:
        return f"CelestialBodyCatalog({self.names})"
