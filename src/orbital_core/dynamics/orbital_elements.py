"""
===============================================================================
ORBITAL CORE - Orbital State Conversion
===============================================================================
Conversion between a Cartesian state (position, velocity) relative to a
central body and the classical orbital elements, plus the small set of
two-body relations the rest of the core builds on (vis-viva, period,
specific energy, escape velocity).

Degenerate geometry is part of normal play (a vehicle parked in a circular
equatorial orbit is the common case), so the conversion never returns NaN.
Angles that are undefined for the given geometry are set to 0 and the
condition is reported through :class:`ElementFlags` on the
:class:`ConversionResult`.

Angle conventions:
    - inclination in [0, pi]
    - RAAN, argument of periapsis and true anomaly in [0, 2*pi)
    - circular, inclined orbit : true anomaly measured from the ascending node
    - circular, equatorial     : true anomaly measured from the x-axis
    - elliptic, equatorial     : argument of periapsis measured from the x-axis

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.,
        Algorithms 9 and 10.
    [2] Curtis, "Orbital Mechanics for Engineering Students", 4th ed., Ch. 4.
===============================================================================
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum, Flag, auto
from typing import Optional, Tuple

import numpy as np

from orbital_core.core.constants import (
    ECCENTRICITY_TOLERANCE,
    MIN_ANGULAR_MOMENTUM,
    MIN_RADIUS,
    NODE_TOLERANCE,
    PARABOLIC_TOLERANCE,
    TWO_PI,
)
from orbital_core.core.frames import perifocal_rotation

logger = logging.getLogger(__name__)

_Z_HAT = np.array([0.0, 0.0, 1.0])
_X_HAT = np.array([1.0, 0.0, 0.0])


# =============================================================================
# REGIME AND DEGENERACY FLAGS
# =============================================================================

class OrbitRegime(Enum):
    """Conic section of the trajectory, selected by eccentricity."""
    ELLIPTICAL = auto()
    PARABOLIC = auto()
    HYPERBOLIC = auto()


class ElementFlags(Flag):
    """Degenerate-geometry signals raised by :func:`state_to_elements`."""
    NONE = 0
    CIRCULAR = auto()                # e ~ 0: argument of periapsis set to 0
    EQUATORIAL = auto()              # |N| ~ 0: RAAN set to 0
    ZERO_ANGULAR_MOMENTUM = auto()   # rectilinear: plane undefined
    ZERO_RADIUS = auto()             # position at the central body's centre
    PARABOLIC_ENERGY = auto()        # energy ~ 0: semi-major axis unbounded


def classify_regime(eccentricity: float) -> OrbitRegime:
    """
    Map eccentricity onto the orbit regime.

    Values within ``PARABOLIC_TOLERANCE`` of 1 are parabolic; below that
    band elliptical (circular included), above it hyperbolic.
    """
    if abs(eccentricity - 1.0) <= PARABOLIC_TOLERANCE:
        return OrbitRegime.PARABOLIC
    if eccentricity < 1.0:
        return OrbitRegime.ELLIPTICAL
    return OrbitRegime.HYPERBOLIC


# =============================================================================
# ORBITAL ELEMENTS
# =============================================================================

@dataclass(frozen=True)
class OrbitalElements:
    """
    Classical orbital elements of a trajectory about a central body.

    Attributes
    ----------
    semi_major_axis : float
        a (m).  Negative for hyperbolic trajectories, ``inf`` for parabolic.
    eccentricity : float
        e >= 0.
    inclination : float
        i (rad) in [0, pi].
    argument_of_periapsis : float
        omega (rad) in [0, 2*pi).
    longitude_of_ascending_node : float
        RAAN (rad) in [0, 2*pi).
    true_anomaly : float
        nu (rad) in [0, 2*pi).
    semi_latus_rectum : float
        p = h^2 / mu (m).  Finite for every conic.
    mu : float
        Gravitational parameter of the central body (m^3/s^2).
    """
    semi_major_axis: float
    eccentricity: float
    inclination: float
    argument_of_periapsis: float
    longitude_of_ascending_node: float
    true_anomaly: float
    semi_latus_rectum: float
    mu: float

    @classmethod
    def from_classical(
        cls,
        a: float, e: float, i: float,
        raan: float, argp: float, nu: float,
        mu: float,
    ) -> 'OrbitalElements':
        """
        Build elements from (a, e, i, RAAN, omega, nu).

        Raises
        ------
        ValueError
            For a parabolic eccentricity (a is undefined; construct the
            elements with an explicit ``semi_latus_rectum`` instead) or when
            the sign of *a* does not match the regime.
        """
        regime = classify_regime(e)
        if regime is OrbitRegime.PARABOLIC:
            raise ValueError(
                "Parabolic elements cannot be built from a semi-major axis; "
                "pass semi_latus_rectum directly."
            )
        if regime is OrbitRegime.ELLIPTICAL and a <= 0.0:
            raise ValueError(f"Elliptic orbit (e={e}) requires a > 0, got a={a}")
        if regime is OrbitRegime.HYPERBOLIC and a >= 0.0:
            raise ValueError(f"Hyperbolic orbit (e={e}) requires a < 0, got a={a}")
        return cls(
            semi_major_axis=float(a),
            eccentricity=float(e),
            inclination=float(i),
            argument_of_periapsis=float(argp) % TWO_PI,
            longitude_of_ascending_node=float(raan) % TWO_PI,
            true_anomaly=float(nu) % TWO_PI,
            semi_latus_rectum=float(a * (1.0 - e * e)),
            mu=float(mu),
        )

    @classmethod
    def circular(cls, radius: float, mu: float, inclination: float = 0.0,
                 raan: float = 0.0, true_anomaly: float = 0.0) -> 'OrbitalElements':
        """Circular orbit of the given radius."""
        return cls.from_classical(radius, 0.0, inclination, raan, 0.0,
                                  true_anomaly, mu)

    # ------------------------------------------------------------------ #
    @property
    def _closed(self) -> bool:
        return (self.regime is OrbitRegime.ELLIPTICAL
                and 0.0 < self.semi_major_axis < math.inf)

    @property
    def regime(self) -> OrbitRegime:
        return classify_regime(self.eccentricity)

    @property
    def periapsis_radius(self) -> float:
        """r_p = p / (1 + e), equal to a(1 - e) for closed orbits."""
        return self.semi_latus_rectum / (1.0 + self.eccentricity)

    @property
    def apoapsis_radius(self) -> Optional[float]:
        """r_a = a(1 + e) for closed orbits, ``None`` for open trajectories."""
        if not self._closed:
            return None
        return self.semi_major_axis * (1.0 + self.eccentricity)

    @property
    def period(self) -> Optional[float]:
        """Orbital period (s), ``None`` for open trajectories."""
        if not self._closed:
            return None
        return orbital_period(self.semi_major_axis, self.mu)

    @property
    def mean_motion(self) -> Optional[float]:
        """
        n = sqrt(mu / |a|^3) for elliptic and hyperbolic orbits.

        ``None`` for a parabola, whose time law is written in terms of p.
        """
        if self.regime is OrbitRegime.PARABOLIC or not 0.0 < abs(self.semi_major_axis) < math.inf:
            return None
        return math.sqrt(self.mu / abs(self.semi_major_axis) ** 3)

    def with_true_anomaly(self, nu: float) -> 'OrbitalElements':
        """Copy of these elements at a different point along the orbit."""
        return replace(self, true_anomaly=float(nu) % TWO_PI)


@dataclass(frozen=True)
class ConversionResult:
    """Elements plus the degeneracy flags raised while computing them."""
    elements: OrbitalElements
    flags: ElementFlags = ElementFlags.NONE

    @property
    def is_degenerate(self) -> bool:
        return self.flags != ElementFlags.NONE


# =============================================================================
# CARTESIAN -> KEPLERIAN
# =============================================================================

def state_to_elements(
    position: np.ndarray, velocity: np.ndarray, mu: float
) -> ConversionResult:
    """
    Convert a Cartesian state relative to the central body into classical
    orbital elements.

    The algorithm computes:
        h = r x v                       (specific angular momentum)
        n = z_hat x h                   (ascending node vector)
        e_vec = (v x h)/mu - r/|r|      (eccentricity vector)
        E = v^2/2 - mu/r                (specific energy)
        a = -mu / (2*E)
        i = arccos(h_z / |h|)
        RAAN = atan2(n_y, n_x)
        omega = angle from n to e_vec, sign from e_z
        nu = angle from e_vec to r, sign from r . v

    Parameters
    ----------
    position : np.ndarray
        3-element position vector (m) relative to the central body.
    velocity : np.ndarray
        3-element velocity vector (m/s) relative to the central body.
    mu : float
        Gravitational parameter of the central body (m^3/s^2).

    Returns
    -------
    ConversionResult
        Elements and the :class:`ElementFlags` describing any undefined
        angle that was replaced by its default.

    Raises
    ------
    ValueError
        If mu is not positive.
    """
    if mu <= 0.0:
        raise ValueError(f"Gravitational parameter must be positive, got {mu}")

    r = np.asarray(position, dtype=np.float64)
    v = np.asarray(velocity, dtype=np.float64)
    r_mag = float(np.linalg.norm(r))
    v_mag = float(np.linalg.norm(v))

    if r_mag < MIN_RADIUS:
        logger.warning("Element conversion at |r| = %.3e m; returning zero elements", r_mag)
        zero = OrbitalElements(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, mu)
        return ConversionResult(zero, ElementFlags.ZERO_RADIUS)

    flags = ElementFlags.NONE

    # Specific mechanical energy -> semi-major axis
    energy = 0.5 * v_mag * v_mag - mu / r_mag
    if abs(energy) <= PARABOLIC_TOLERANCE * mu / r_mag:
        a = math.inf
        flags |= ElementFlags.PARABOLIC_ENERGY
    else:
        a = -mu / (2.0 * energy)

    h = np.cross(r, v)
    h_mag = float(np.linalg.norm(h))

    if h_mag < MIN_ANGULAR_MOMENTUM:
        # Rectilinear trajectory: the orbital plane does not exist.
        flags |= ElementFlags.ZERO_ANGULAR_MOMENTUM
        elements = OrbitalElements(a, 1.0, 0.0, 0.0, 0.0, 0.0, 0.0, mu)
        return ConversionResult(elements, flags)

    h_hat = h / h_mag
    n = np.cross(_Z_HAT, h)
    n_mag = float(np.linalg.norm(n))

    e_vec = np.cross(v, h) / mu - r / r_mag
    e = float(np.linalg.norm(e_vec))
    p = h_mag * h_mag / mu

    inc = float(np.arccos(np.clip(h[2] / h_mag, -1.0, 1.0)))

    equatorial = n_mag <= NODE_TOLERANCE * h_mag
    circular = e < ECCENTRICITY_TOLERANCE

    # Longitude of the ascending node
    if equatorial:
        raan = 0.0
        flags |= ElementFlags.EQUATORIAL
    else:
        raan = float(np.arctan2(n[1], n[0])) % TWO_PI

    # Argument of periapsis (angles are taken with atan2 about h)
    if circular:
        argp = 0.0
        flags |= ElementFlags.CIRCULAR
    elif equatorial:
        # Longitude of periapsis, measured about h from the x-axis
        argp = _angle_about(_X_HAT, e_vec, h_hat)
    else:
        argp = _angle_about(n, e_vec, h_hat)

    # True anomaly
    if not circular:
        nu = _angle_about(e_vec, r, h_hat)
    elif not equatorial:
        nu = _angle_about(n, r, h_hat)
    else:
        nu = _angle_about(_X_HAT, r, h_hat)

    elements = OrbitalElements(
        semi_major_axis=a,
        eccentricity=e,
        inclination=inc,
        argument_of_periapsis=argp % TWO_PI,
        longitude_of_ascending_node=raan,
        true_anomaly=nu % TWO_PI,
        semi_latus_rectum=p,
        mu=mu,
    )
    if flags & (ElementFlags.PARABOLIC_ENERGY | ElementFlags.ZERO_ANGULAR_MOMENTUM):
        logger.debug("Degenerate element conversion: %s", flags)
    return ConversionResult(elements, flags)


def _angle_about(reference: np.ndarray, vec: np.ndarray, axis_hat: np.ndarray) -> float:
    """Angle from *reference* to *vec*, positive about *axis_hat*, in [0, 2*pi)."""
    sin_part = float(np.dot(np.cross(reference, vec), axis_hat))
    cos_part = float(np.dot(reference, vec))
    return math.atan2(sin_part, cos_part) % TWO_PI


# =============================================================================
# KEPLERIAN -> CARTESIAN
# =============================================================================

def elements_to_state(elements: OrbitalElements) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert orbital elements to a Cartesian state relative to the central
    body.

    Perifocal frame quantities:

        r     = p / (1 + e*cos(nu))
        r_pqw = r * [cos(nu), sin(nu), 0]
        v_pqw = sqrt(mu/p) * [-sin(nu), e + cos(nu), 0]

    followed by the 3-1-3 rotation (RAAN, i, omega) into the inertial frame.

    Raises
    ------
    ValueError
        If the semi-latus rectum is not positive (rectilinear or empty
        elements) or the true anomaly lies beyond the asymptote of an open
        trajectory.
    """
    p = elements.semi_latus_rectum
    if p <= 0.0:
        raise ValueError("Semi-latus rectum is not positive; degenerate orbit.")

    e = elements.eccentricity
    nu = elements.true_anomaly
    cos_nu = math.cos(nu)
    sin_nu = math.sin(nu)
    denom = 1.0 + e * cos_nu
    if denom <= 0.0:
        raise ValueError(
            f"True anomaly {nu:.6f} rad is outside the asymptotes of e={e:.6f}"
        )

    r_mag = p / denom
    r_pqw = np.array([r_mag * cos_nu, r_mag * sin_nu, 0.0], dtype=np.float64)
    v_pqw = math.sqrt(elements.mu / p) * np.array(
        [-sin_nu, e + cos_nu, 0.0], dtype=np.float64
    )

    R = perifocal_rotation(
        elements.longitude_of_ascending_node,
        elements.inclination,
        elements.argument_of_periapsis,
    )
    return R @ r_pqw, R @ v_pqw


# =============================================================================
# TWO-BODY RELATIONS
# =============================================================================

def vis_viva(r: float, a: float, mu: float) -> float:
    """
    Orbital speed from the vis-viva equation:

        v = sqrt( mu * (2/r - 1/a) )

    Valid for every conic; pass ``a = inf`` for a parabola.
    """
    return math.sqrt(mu * (2.0 / r - 1.0 / a))


def orbital_period(a: float, mu: float) -> float:
    """
    Orbital period from Kepler's third law, T = 2*pi*sqrt(a^3/mu).

    Raises
    ------
    ValueError
        If a <= 0 (open orbits have no finite period).
    """
    if a <= 0.0 or math.isinf(a):
        raise ValueError(
            f"Orbital period is undefined for a = {a:.4e} m. "
            "Open (hyperbolic/parabolic) orbits have infinite period."
        )
    return TWO_PI * math.sqrt(a ** 3 / mu)


def specific_energy(r: float, v: float, mu: float) -> float:
    """Specific mechanical energy E = v^2/2 - mu/r (J/kg)."""
    return 0.5 * v * v - mu / r


def escape_velocity(r: float, mu: float) -> float:
    """Escape speed sqrt(2*mu/r) at distance *r* (m/s)."""
    return math.sqrt(2.0 * mu / r)
