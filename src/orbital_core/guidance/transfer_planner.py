"""
===============================================================================
ORBITAL CORE - Transfer Planner
===============================================================================
Hohmann transfer plans between coplanar circular orbits.

The planner only produces values; executing the burns (pointing the vehicle
and commanding thrust) is the caller's job.

Sign conventions and units:
    - All distances in meters
    - All velocities in m/s
    - Delta-V is signed: positive is a prograde burn, negative retrograde
    - Gravitational parameters (mu) in m^3/s^2
===============================================================================
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from orbital_core.core.constants import EARTH_MU, PI

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferOrbit:
    """
    A computed Hohmann transfer plan.

    Attributes
    ----------
    semi_major_axis : float
        a_t of the transfer ellipse (m).
    eccentricity : float
        e_t of the transfer ellipse.
    transfer_time : float
        Half the transfer ellipse period (s).
    delta_v : float
        Departure burn, v_transfer(r1) - v_circular(r1) (m/s).
    arrival_delta_v : float
        Circularisation burn, v_circular(r2) - v_transfer(r2) (m/s).
    departure_radius : float
        r1 (m).
    target_radius : float
        r2 (m).
    """
    semi_major_axis: float
    eccentricity: float
    transfer_time: float
    delta_v: float
    arrival_delta_v: float
    departure_radius: float
    target_radius: float

    @property
    def total_delta_v(self) -> float:
        """|dv1| + |dv2| (m/s)."""
        return abs(self.delta_v) + abs(self.arrival_delta_v)


class TransferPlanner:
    """
    Computes Hohmann transfers about a single central body.

    The planner is stateless apart from the gravitational parameter.

    Typical usage:
        planner = TransferPlanner(EARTH_MU)
        plan = planner.plan_hohmann(6_671_000.0, 42_164_000.0)
        plan.delta_v, plan.arrival_delta_v, plan.transfer_time
    """

    def __init__(self, mu: float = EARTH_MU) -> None:
        if mu <= 0.0:
            raise ValueError(f"Gravitational parameter must be positive, got {mu}")
        self.mu = mu

    # -------------------------------------------------------------------------
    # Hohmann Transfer
    # -------------------------------------------------------------------------

    def plan_hohmann(self, r1: float, r2: float) -> TransferOrbit:
        """
        Plan a two-impulse Hohmann transfer between coplanar circular orbits.

        Equations:
            Transfer orbit semi-major axis and eccentricity:
                a_t = (r1 + r2) / 2
                e_t = |r2 - r1| / (r2 + r1)

            Departure burn at r1:
                dv1 = sqrt(mu * (2/r1 - 1/a_t)) - sqrt(mu/r1)

            Arrival burn at r2:
                dv2 = sqrt(mu/r2) - sqrt(mu * (2/r2 - 1/a_t))

            Time of flight (half the transfer period):
                tof = pi * sqrt(a_t^3 / mu)

        Args:
            r1: Radius of the initial circular orbit (m).
            r2: Radius of the target circular orbit (m).

        Returns:
            TransferOrbit describing the plan.

        Raises:
            ValueError: If either radius is not positive.
        """
        if r1 <= 0.0 or r2 <= 0.0:
            raise ValueError(f"Orbit radii must be positive, got r1={r1}, r2={r2}")

        mu = self.mu
        a_t = (r1 + r2) / 2.0
        e_t = abs(r2 - r1) / (r2 + r1)

        v_circ_1 = math.sqrt(mu / r1)
        v_circ_2 = math.sqrt(mu / r2)
        v_transfer_1 = math.sqrt(mu * (2.0 / r1 - 1.0 / a_t))
        v_transfer_2 = math.sqrt(mu * (2.0 / r2 - 1.0 / a_t))

        plan = TransferOrbit(
            semi_major_axis=a_t,
            eccentricity=e_t,
            transfer_time=PI * math.sqrt(a_t ** 3 / mu),
            delta_v=v_transfer_1 - v_circ_1,
            arrival_delta_v=v_circ_2 - v_transfer_2,
            departure_radius=float(r1),
            target_radius=float(r2),
        )

        logger.debug(
            "Hohmann transfer: r1=%.0f m, r2=%.0f m, dv1=%.2f m/s, dv2=%.2f m/s, "
            "TOF=%.1f s",
            r1, r2, plan.delta_v, plan.arrival_delta_v, plan.transfer_time,
        )
        return plan

    def plan_to_position(self, position: np.ndarray, target_radius: float) -> TransferOrbit:
        """
        Plan a Hohmann transfer departing from the vehicle's current radius.

        *position* is relative to the central body; the current orbit is
        assumed circular.
        """
        r1 = float(np.linalg.norm(position))
        return self.plan_hohmann(r1, target_radius)

    def __repr__(self) -> str:
        return f"TransferPlanner(mu={self.mu:.6e})"
