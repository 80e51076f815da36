"""
===============================================================================
ORBITAL CORE - Kepler Propagator Test Suite
===============================================================================
Tests for the elliptic, hyperbolic and parabolic Kepler-equation solvers and
for analytical propagation, checked against a high-order numerical reference
(scipy.integrate.solve_ivp).
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.integrate import solve_ivp

from orbital_core.core.constants import EARTH_MU, PI, TWO_PI
from orbital_core.dynamics.kepler import (
    PropagationStatus,
    propagate,
    solve_barker,
    solve_hyperbolic_kepler,
    solve_kepler,
)
from orbital_core.dynamics.orbital_elements import (
    OrbitalElements,
    OrbitRegime,
    elements_to_state,
    specific_energy,
)


# =============================================================================
# Helpers
# =============================================================================

def two_body_reference(r0, v0, dt, mu=EARTH_MU):
    """Integrate the two-body problem with DOP853 at tight tolerance."""
    def rhs(_t, y):
        r = y[:3]
        a = -mu * r / np.linalg.norm(r) ** 3
        return np.concatenate([y[3:], a])

    sol = solve_ivp(rhs, (0.0, dt), np.concatenate([r0, v0]),
                    method='DOP853', rtol=1e-12, atol=1e-6)
    assert sol.success
    return sol.y[:3, -1], sol.y[3:, -1]


@pytest.fixture
def molniya():
    return OrbitalElements.from_classical(
        a=26_600e3, e=0.74, i=math.radians(63.4),
        raan=0.4, argp=math.radians(270.0), nu=0.3, mu=EARTH_MU,
    )


@pytest.fixture
def departure_hyperbola():
    return OrbitalElements.from_classical(
        a=-20_000e3, e=1.5, i=0.3, raan=1.0, argp=0.5, nu=-0.5, mu=EARTH_MU,
    )


@pytest.fixture
def parabola():
    r_p = 7_000e3
    return OrbitalElements(
        semi_major_axis=math.inf,
        eccentricity=1.0,
        inclination=0.2,
        argument_of_periapsis=0.0,
        longitude_of_ascending_node=0.0,
        true_anomaly=0.0,
        semi_latus_rectum=2.0 * r_p,
        mu=EARTH_MU,
    )


# =============================================================================
# Elliptic Kepler Equation
# =============================================================================

class TestSolveKepler:

    @pytest.mark.parametrize("e_val", np.linspace(0.0, 0.99, 12))
    def test_residual_over_anomaly_grid(self, e_val):
        for M in np.linspace(0.0, TWO_PI, 24, endpoint=False):
            sol = solve_kepler(M, e_val)
            assert sol.converged
            residual = sol.anomaly - e_val * math.sin(sol.anomaly) - M
            assert abs(residual) < 1e-6
            assert sol.residual < 1e-10

    def test_circular_anomaly_is_mean_anomaly(self):
        sol = solve_kepler(1.234, 0.0)
        assert sol.anomaly == pytest.approx(1.234, abs=1e-12)

    def test_zero_mean_anomaly(self):
        sol = solve_kepler(0.0, 0.7)
        assert sol.anomaly == pytest.approx(0.0, abs=1e-12)
        assert sol.iterations == 0

    def test_non_convergence_reported(self):
        sol = solve_kepler(0.1, 0.99, max_iterations=1)
        assert not sol.converged
        assert sol.iterations == 1
        assert sol.residual > 1e-10
        assert math.isfinite(sol.anomaly)

    @pytest.mark.parametrize("e_val", [-0.1, 1.0, 1.5])
    def test_rejects_non_elliptic_eccentricity(self, e_val):
        with pytest.raises(ValueError):
            solve_kepler(1.0, e_val)


# =============================================================================
# Hyperbolic and Parabolic Equations
# =============================================================================

class TestSolveHyperbolic:

    @pytest.mark.parametrize("e_val", [1.01, 1.5, 3.0, 10.0])
    @pytest.mark.parametrize("M", [-50.0, -2.0, -0.01, 0.0, 0.3, 5.0, 200.0])
    def test_residual(self, e_val, M):
        sol = solve_hyperbolic_kepler(M, e_val)
        assert sol.converged
        H = sol.anomaly
        assert abs(e_val * math.sinh(H) - H - M) <= 1e-9 * max(1.0, abs(M))

    def test_odd_symmetry(self):
        pos = solve_hyperbolic_kepler(3.0, 2.0).anomaly
        neg = solve_hyperbolic_kepler(-3.0, 2.0).anomaly
        assert pos == pytest.approx(-neg, rel=1e-12)

    def test_rejects_closed_eccentricity(self):
        with pytest.raises(ValueError):
            solve_hyperbolic_kepler(1.0, 0.5)


class TestSolveBarker:

    @pytest.mark.parametrize("A", [-100.0, -1.0, 0.0, 1e-6, 0.5, 4.0, 1e4])
    def test_cubic_satisfied(self, A):
        sol = solve_barker(A)
        D = sol.anomaly
        assert D + D ** 3 / 3.0 == pytest.approx(A, rel=1e-10, abs=1e-12)
        assert sol.converged
        assert sol.iterations == 0

    def test_root_is_odd(self):
        assert solve_barker(-2.5).anomaly == pytest.approx(-solve_barker(2.5).anomaly)


# =============================================================================
# Propagation
# =============================================================================

class TestPropagate:

    def test_full_period_returns_to_start(self, molniya):
        r0, v0 = elements_to_state(molniya)
        result = propagate(molniya, molniya.period)
        assert result.ok
        assert_allclose(result.position, r0, atol=1e-2)
        assert_allclose(result.velocity, v0, atol=1e-5)

    def test_zero_interval_is_identity(self, molniya):
        r0, v0 = elements_to_state(molniya)
        result = propagate(molniya, 0.0)
        assert_allclose(result.position, r0, atol=1e-2)
        assert_allclose(result.velocity, v0, atol=1e-5)

    def test_elements_other_than_anomaly_unchanged(self, molniya):
        result = propagate(molniya, 1234.5)
        el = result.elements
        assert el.semi_major_axis == molniya.semi_major_axis
        assert el.eccentricity == molniya.eccentricity
        assert el.inclination == molniya.inclination
        assert el.true_anomaly == pytest.approx(result.true_anomaly)
        assert el.true_anomaly != pytest.approx(molniya.true_anomaly)

    @pytest.mark.parametrize("fraction", [0.1, 0.37, 0.5, 0.93])
    def test_elliptic_matches_numerical_reference(self, molniya, fraction):
        dt = fraction * molniya.period
        r0, v0 = elements_to_state(molniya)
        r_ref, v_ref = two_body_reference(r0, v0, dt)

        result = propagate(molniya, dt)
        assert result.ok
        assert_allclose(result.position, r_ref, atol=1.0)
        assert_allclose(result.velocity, v_ref, atol=1e-3)

    def test_backward_propagation(self, molniya):
        forward = propagate(molniya, 2000.0)
        back = propagate(forward.elements, -2000.0)
        r0, v0 = elements_to_state(molniya)
        assert_allclose(back.position, r0, atol=1e-2)
        assert_allclose(back.velocity, v0, atol=1e-5)

    def test_hyperbolic_matches_numerical_reference(self, departure_hyperbola):
        dt = 3600.0
        r0, v0 = elements_to_state(departure_hyperbola)
        r_ref, v_ref = two_body_reference(r0, v0, dt)

        result = propagate(departure_hyperbola, dt)
        assert result.ok
        assert result.elements.regime is OrbitRegime.HYPERBOLIC
        assert_allclose(result.position, r_ref, atol=1.0)
        assert_allclose(result.velocity, v_ref, atol=1e-3)

    def test_parabolic_matches_numerical_reference(self, parabola):
        dt = 1800.0
        r0, v0 = elements_to_state(parabola)
        r_ref, v_ref = two_body_reference(r0, v0, dt)

        result = propagate(parabola, dt)
        assert result.ok
        assert_allclose(result.position, r_ref, atol=1.0)
        assert_allclose(result.velocity, v_ref, atol=1e-3)

    def test_energy_conserved(self, molniya):
        r0, v0 = elements_to_state(molniya)
        e0 = specific_energy(np.linalg.norm(r0), np.linalg.norm(v0), EARTH_MU)
        for dt in (500.0, 5000.0, 30000.0):
            res = propagate(molniya, dt)
            e1 = specific_energy(np.linalg.norm(res.position),
                                 np.linalg.norm(res.velocity), EARTH_MU)
            assert e1 == pytest.approx(e0, rel=1e-9)

    def test_rectilinear_unsupported(self):
        radial = OrbitalElements(7_000e3, 1.0, 0.0, 0.0, 0.0, 0.0, 0.0, EARTH_MU)
        result = propagate(radial, 10.0)
        assert result.status is PropagationStatus.UNSUPPORTED_REGIME
        assert result.position is None
        assert result.velocity is None

    def test_not_converged_status_still_returns_state(self):
        elements = OrbitalElements.from_classical(
            a=1e8, e=0.99, i=0.0, raan=0.0, argp=0.0, nu=0.0, mu=EARTH_MU,
        )
        dt = 0.1 / elements.mean_motion
        result = propagate(elements, dt, max_iterations=1)
        assert result.status is PropagationStatus.NOT_CONVERGED
        assert not result.ok
        assert result.position is not None
        assert np.all(np.isfinite(result.position))

    def test_circular_orbit_advances_uniformly(self):
        radius = 7_000e3
        circ = OrbitalElements.circular(radius, EARTH_MU, inclination=0.5)
        quarter = circ.period / 4.0
        result = propagate(circ, quarter)
        assert result.true_anomaly == pytest.approx(PI / 2.0, abs=1e-9)
        assert np.linalg.norm(result.position) == pytest.approx(radius, rel=1e-12)
