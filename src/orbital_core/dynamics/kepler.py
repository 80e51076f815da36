"""
===============================================================================
ORBITAL CORE - Kepler Propagator
===============================================================================
Analytical two-body propagation of a set of orbital elements over an
interval of simulated time.

The elements passed in act as the epoch: their true anomaly fixes the mean
anomaly at t = 0, and the result is the state ``dt`` seconds later.

Supported regimes:

    Elliptical : E - e*sin(E) = M           (Newton-Raphson)
    Hyperbolic : e*sinh(H) - H = M          (Newton-Raphson)
    Parabolic  : D + D^3/3 = A              (Barker's equation, closed form)

Rectilinear trajectories (zero angular momentum) have no orbital plane and
are reported as ``UNSUPPORTED_REGIME``; the state is left for the numerical
integrator.  Non-convergence never raises: the best available estimate is
returned with ``NOT_CONVERGED``.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.,
        Algorithms 2-4.
    [2] Danby, "Fundamentals of Celestial Mechanics", 2nd ed., Sec. 6.6.
===============================================================================
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

import numpy as np

from orbital_core.core.constants import (
    KEPLER_MAX_ITERATIONS,
    KEPLER_TOLERANCE,
    TWO_PI,
)
from orbital_core.dynamics.orbital_elements import (
    OrbitalElements,
    OrbitRegime,
    elements_to_state,
)

logger = logging.getLogger(__name__)


class PropagationStatus(Enum):
    OK = auto()
    NOT_CONVERGED = auto()
    UNSUPPORTED_REGIME = auto()


@dataclass(frozen=True)
class KeplerSolution:
    """
    Outcome of one Kepler-equation solve.

    Attributes
    ----------
    anomaly : float
        Eccentric (E), hyperbolic (H) or parabolic (D = tan(nu/2)) anomaly.
    iterations : int
        Newton iterations taken (0 for the closed-form parabolic case).
    residual : float
        Absolute residual of the equation at ``anomaly``.
    converged : bool
        ``residual`` is below the requested tolerance.
    """
    anomaly: float
    iterations: int
    residual: float
    converged: bool


@dataclass(frozen=True)
class PropagationResult:
    """
    Propagated state.  ``position``/``velocity`` are relative to the central
    body and are ``None`` only for ``UNSUPPORTED_REGIME``.
    """
    position: Optional[np.ndarray]
    velocity: Optional[np.ndarray]
    true_anomaly: float
    elements: OrbitalElements
    status: PropagationStatus
    solution: Optional[KeplerSolution] = None

    @property
    def ok(self) -> bool:
        return self.status is PropagationStatus.OK


# =============================================================================
# KEPLER EQUATION SOLVERS
# =============================================================================

def solve_kepler(
    mean_anomaly: float,
    eccentricity: float,
    max_iterations: int = KEPLER_MAX_ITERATIONS,
    tolerance: float = KEPLER_TOLERANCE,
) -> KeplerSolution:
    """
    Solve Kepler's equation  E - e*sin(E) = M  for 0 <= e < 1.

    Newton-Raphson iteration:

        E_{k+1} = E_k - (E_k - e*sin(E_k) - M) / (1 - e*cos(E_k))

    started from Danby's guess E_0 = M + 0.85*e*sign(sin M), which keeps the
    iteration count low up to e ~ 0.99.

    Parameters
    ----------
    mean_anomaly : float
        Mean anomaly M (rad).
    eccentricity : float
        Orbital eccentricity, 0 <= e < 1.
    max_iterations : int
        Iteration cap.
    tolerance : float
        Convergence threshold on |E - e*sin(E) - M|.

    Returns
    -------
    KeplerSolution
        Best estimate of E with the convergence report.

    Raises
    ------
    ValueError
        If the eccentricity is outside [0, 1).
    """
    e = float(eccentricity)
    if not 0.0 <= e < 1.0:
        raise ValueError(f"Elliptic Kepler equation requires 0 <= e < 1, got {e}")

    M = float(mean_anomaly)
    E = M + 0.85 * e * float(np.sign(math.sin(M)))
    residual = E - e * math.sin(E) - M

    iterations = 0
    while abs(residual) >= tolerance and iterations < max_iterations:
        E -= residual / (1.0 - e * math.cos(E))
        iterations += 1
        residual = E - e * math.sin(E) - M

    converged = abs(residual) < tolerance
    if not converged:
        logger.warning(
            "Kepler solve did not converge: e=%.6f M=%.6f residual=%.3e after %d iterations",
            e, M, residual, iterations,
        )
    return KeplerSolution(E, iterations, abs(residual), converged)


def solve_hyperbolic_kepler(
    mean_anomaly: float,
    eccentricity: float,
    max_iterations: int = KEPLER_MAX_ITERATIONS,
    tolerance: float = KEPLER_TOLERANCE,
) -> KeplerSolution:
    """
    Solve the hyperbolic Kepler equation  e*sinh(H) - H = M  for e > 1.

    The starting guess H_0 = sign(M) * ln(2|M|/e + 1.8) stays on the
    convergent side of the root for both small and large |M|.
    """
    e = float(eccentricity)
    if e <= 1.0:
        raise ValueError(f"Hyperbolic Kepler equation requires e > 1, got {e}")

    M = float(mean_anomaly)
    H = math.copysign(math.log(2.0 * abs(M) / e + 1.8), M)
    residual = e * math.sinh(H) - H - M

    iterations = 0
    while abs(residual) >= tolerance * max(1.0, abs(M)) and iterations < max_iterations:
        H -= residual / (e * math.cosh(H) - 1.0)
        iterations += 1
        residual = e * math.sinh(H) - H - M

    converged = abs(residual) < tolerance * max(1.0, abs(M))
    if not converged:
        logger.warning(
            "Hyperbolic Kepler solve did not converge: e=%.6f M=%.6f residual=%.3e",
            e, M, residual,
        )
    return KeplerSolution(H, iterations, abs(residual), converged)


def solve_barker(mean_anomaly: float) -> KeplerSolution:
    """
    Solve Barker's equation  D + D^3/3 = A  for the parabolic anomaly
    D = tan(nu/2).

    The cubic has the single real root

        D = Y - 1/Y,   Y = cbrt(3A/2 + sqrt(9A^2/4 + 1))

    evaluated for |A| and mirrored, since the root is odd in A.
    """
    A = float(mean_anomaly)
    q = 1.5 * abs(A)
    Y = float(np.cbrt(q + math.sqrt(q * q + 1.0)))
    D = math.copysign(Y - 1.0 / Y, A)
    residual = abs(D + D ** 3 / 3.0 - A)
    return KeplerSolution(D, 0, residual, True)


# =============================================================================
# ANOMALY CONVERSIONS
# =============================================================================

def _true_to_mean_elliptic(nu: float, e: float) -> float:
    E = 2.0 * math.atan2(math.sqrt(1.0 - e) * math.sin(nu / 2.0),
                         math.sqrt(1.0 + e) * math.cos(nu / 2.0))
    return E - e * math.sin(E)


def _true_to_mean_hyperbolic(nu: float, e: float) -> float:
    H = 2.0 * math.atanh(math.sqrt((e - 1.0) / (e + 1.0)) * math.tan(nu / 2.0))
    return e * math.sinh(H) - H


# =============================================================================
# PROPAGATION
# =============================================================================

def propagate(
    elements: OrbitalElements,
    dt: float,
    max_iterations: int = KEPLER_MAX_ITERATIONS,
    tolerance: float = KEPLER_TOLERANCE,
) -> PropagationResult:
    """
    Advance *elements* analytically by *dt* seconds of simulated time.

    Parameters
    ----------
    elements : OrbitalElements
        State at the epoch (t = 0).
    dt : float
        Elapsed simulated time (s).  May be negative.
    max_iterations, tolerance :
        Passed to the Kepler-equation solver.

    Returns
    -------
    PropagationResult
        Position and velocity relative to the central body, the new true
        anomaly, the elements at the new epoch and the solver status.
    """
    if elements.semi_latus_rectum <= 0.0:
        logger.warning("Kepler propagation requested for a rectilinear trajectory")
        return PropagationResult(
            None, None, elements.true_anomaly, elements,
            PropagationStatus.UNSUPPORTED_REGIME,
        )

    e = elements.eccentricity
    nu0 = elements.true_anomaly
    regime = elements.regime

    n = elements.mean_motion
    if regime is OrbitRegime.ELLIPTICAL and n is not None:
        M = (_true_to_mean_elliptic(nu0, e) + n * dt) % TWO_PI
        solution = solve_kepler(M, e, max_iterations, tolerance)
        E = solution.anomaly
        nu = 2.0 * math.atan2(math.sqrt(1.0 + e) * math.sin(E / 2.0),
                              math.sqrt(1.0 - e) * math.cos(E / 2.0))
    elif regime is OrbitRegime.HYPERBOLIC and n is not None:
        M = _true_to_mean_hyperbolic(nu0, e) + n * dt
        solution = solve_hyperbolic_kepler(M, e, max_iterations, tolerance)
        nu = 2.0 * math.atan(math.sqrt((e + 1.0) / (e - 1.0))
                             * math.tanh(solution.anomaly / 2.0))
    else:
        # Barker: tan(nu/2) + tan^3(nu/2)/3 = 2*sqrt(mu/p^3)*(t - T)
        p = elements.semi_latus_rectum
        D0 = math.tan(nu0 / 2.0)
        A = D0 + D0 ** 3 / 3.0 + 2.0 * math.sqrt(elements.mu / p ** 3) * dt
        solution = solve_barker(A)
        nu = 2.0 * math.atan(solution.anomaly)

    new_elements = elements.with_true_anomaly(nu)
    position, velocity = elements_to_state(new_elements)

    status = PropagationStatus.OK if solution.converged else PropagationStatus.NOT_CONVERGED
    return PropagationResult(
        position=position,
        velocity=velocity,
        true_anomaly=new_elements.true_anomaly,
        elements=new_elements,
        status=status,
        solution=solution,
    )
