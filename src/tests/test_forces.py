"""
===============================================================================
ORBITAL CORE - Force Model Test Suite
===============================================================================
Tests for the celestial body catalog, the layered atmosphere and the
gravity / thrust / drag force model.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from orbital_core.core.config import BodyConfig
from orbital_core.core.constants import (
    DRAG_CEILING_ALTITUDE,
    EARTH_MASS,
    EARTH_MU,
    EARTH_RADIUS,
    SEA_LEVEL_DENSITY,
)
from orbital_core.dynamics.celestial_bodies import CelestialBody, CelestialBodyCatalog
from orbital_core.dynamics.environment import LayeredAtmosphere
from orbital_core.dynamics.forces import ForceModel, ThrustCommand


LEO_RADIUS = EARTH_RADIUS + 400e3


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def earth_only():
    return CelestialBodyCatalog([
        CelestialBody('Earth', (0.0, 0.0, 0.0), (0.0, 0.0, 0.0), EARTH_MASS, EARTH_RADIUS),
    ])


@pytest.fixture
def two_body_model(earth_only):
    return ForceModel(earth_only)


@pytest.fixture
def full_model():
    return ForceModel(CelestialBodyCatalog.default())


# =============================================================================
# Celestial Catalog
# =============================================================================

class TestCelestialCatalog:

    def test_default_catalog(self):
        catalog = CelestialBodyCatalog.default()
        assert catalog.names == ['Earth', 'Moon', 'Mars', 'Jupiter', 'Saturn']
        assert catalog['Earth'].mu == pytest.approx(EARTH_MU)
        assert catalog.positions.shape == (5, 3)
        assert catalog.mus.shape == (5,)

    def test_earth_mu_reference_value(self):
        assert EARTH_MU == pytest.approx(3.98589e14, rel=1e-5)

    def test_from_config_none_uses_default(self):
        assert CelestialBodyCatalog.from_config(None).names == \
            CelestialBodyCatalog.default().names

    def test_from_config_bodies(self):
        catalog = CelestialBodyCatalog.from_config((
            BodyConfig('Kerbin', (0.0, 0.0, 0.0), (0.0, 0.0, 0.0), 5.29e22, 600e3),
            BodyConfig('Mun', (12e6, 0.0, 0.0), (0.0, 543.0, 0.0), 9.76e20, 200e3),
        ))
        assert 'Mun' in catalog
        assert len(catalog) == 2
        assert_allclose(catalog['Mun'].position, [12e6, 0.0, 0.0])

    def test_duplicate_name_rejected(self, earth_only):
        earth = earth_only['Earth']
        with pytest.raises(ValueError):
            CelestialBodyCatalog([earth, earth])

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValueError):
            CelestialBodyCatalog([])

    def test_unknown_body(self, earth_only):
        with pytest.raises(KeyError):
            earth_only['Vulcan']

    @pytest.mark.parametrize("mass, radius", [(0.0, 1.0), (-1.0, 1.0), (1.0, -1.0)])
    def test_invalid_body_rejected(self, mass, radius):
        with pytest.raises(ValueError):
            CelestialBody('Rock', (0.0, 0.0, 0.0), (0.0, 0.0, 0.0), mass, radius)

    def test_body_vectors_read_only(self, earth_only):
        with pytest.raises(ValueError):
            earth_only['Earth'].position[0] = 1.0
        with pytest.raises(ValueError):
            earth_only.positions[0, 0] = 1.0


# =============================================================================
# Atmosphere
# =============================================================================

class TestLayeredAtmosphere:

    def test_sea_level(self):
        assert LayeredAtmosphere().get_density(0.0) == pytest.approx(SEA_LEVEL_DENSITY)

    def test_below_surface_is_sea_level(self):
        assert LayeredAtmosphere().get_density(-500.0) == SEA_LEVEL_DENSITY

    @pytest.mark.parametrize("boundary", [11000.0, 20000.0])
    def test_continuous_at_band_boundaries(self, boundary):
        atm = LayeredAtmosphere()
        below = atm.get_density(boundary - 1e-3)
        above = atm.get_density(boundary + 1e-3)
        assert above == pytest.approx(below, rel=5e-3)

    def test_monotonically_decreasing(self):
        atm = LayeredAtmosphere()
        altitudes = np.linspace(0.0, 150e3, 301)
        densities = np.array([atm.get_density(h) for h in altitudes])
        assert np.all(np.diff(densities) < 0.0)
        assert np.all(densities > 0.0)


# =============================================================================
# Gravity
# =============================================================================

class TestGravity:

    def test_inverse_square_central(self, two_body_model):
        pos = np.array([0.0, LEO_RADIUS, 0.0])
        total, central, guarded = two_body_model.gravity(pos)
        assert_allclose(total, [0.0, -EARTH_MU / LEO_RADIUS ** 2, 0.0], rtol=1e-12)
        assert_allclose(central, total)
        assert guarded == ()

    def test_superposition_of_bodies(self, full_model):
        pos = np.array([0.0, LEO_RADIUS, 0.0])
        total, _, _ = full_model.gravity(pos)
        expected = np.zeros(3)
        for body in full_model.catalog:
            d = body.position - pos
            expected += body.mu * d / np.linalg.norm(d) ** 3
        assert_allclose(total, expected, rtol=1e-12)

    def test_moon_perturbation_ratio_in_leo(self, full_model):
        breakdown = full_model.acceleration(
            np.array([0.0, LEO_RADIUS, 0.0]), np.array([-7670.0, 0.0, 0.0]), 1000.0,
        )
        assert 1e-6 < breakdown.perturbation_ratio < 1e-5

    def test_guard_inside_body_centre(self, two_body_model):
        total, central, guarded = two_body_model.gravity(np.zeros(3))
        assert_allclose(total, np.zeros(3))
        assert_allclose(central, np.zeros(3))
        assert guarded == ('Earth',)

    def test_guard_only_skips_offending_body(self, full_model):
        moon = full_model.catalog['Moon']
        total, central, guarded = full_model.gravity(moon.position)
        assert guarded == ('Moon',)
        assert np.all(np.isfinite(total))
        assert np.linalg.norm(central) > 0.0


# =============================================================================
# Thrust
# =============================================================================

class TestThrust:

    def test_thrust_acceleration(self, two_body_model):
        thrust = ThrustCommand([2.0, 0.0, 0.0], 1000.0)
        assert_allclose(two_body_model.thrust_acceleration(thrust, 500.0), [2.0, 0.0, 0.0])

    def test_direction_normalised(self):
        thrust = ThrustCommand([0.0, 3.0, 4.0], 10.0)
        assert_allclose(thrust.force(), [0.0, 6.0, 8.0])

    @pytest.mark.parametrize("direction, magnitude", [
        ([0.0, 0.0, 0.0], 100.0),
        ([1.0, 0.0, 0.0], 0.0),
        ([1.0, 0.0, 0.0], -5.0),
    ])
    def test_zero_thrust(self, direction, magnitude):
        thrust = ThrustCommand(direction, magnitude)
        assert thrust.is_zero
        assert_allclose(thrust.force(), np.zeros(3))

    def test_clamped(self):
        thrust = ThrustCommand([1.0, 0.0, 0.0], 5e5)
        assert thrust.clamped(1e5).magnitude == 1e5
        assert ThrustCommand([1.0, 0.0, 0.0], -3.0).clamped(1e5).magnitude == 0.0
        small = ThrustCommand([1.0, 0.0, 0.0], 10.0)
        assert small.clamped(1e5) is small

    def test_thrust_in_breakdown(self, two_body_model):
        pos = np.array([LEO_RADIUS, 0.0, 0.0])
        vel = np.array([0.0, 7670.0, 0.0])
        breakdown = two_body_model.acceleration(
            pos, vel, 1000.0, ThrustCommand([0.0, 1.0, 0.0], 2000.0),
        )
        assert breakdown.thrust_active
        assert_allclose(breakdown.thrust, [0.0, 2.0, 0.0])
        assert_allclose(breakdown.total, breakdown.gravity + breakdown.thrust)


# =============================================================================
# Drag
# =============================================================================

class TestDrag:

    def test_no_drag_above_ceiling(self, two_body_model):
        a, active = two_body_model.drag_acceleration(
            np.array([0.0, 7800.0, 0.0]), DRAG_CEILING_ALTITUDE, 1000.0,
        )
        assert not active
        assert_allclose(a, np.zeros(3))

    def test_drag_formula(self, two_body_model):
        vel = np.array([0.0, 7800.0, 0.0])
        altitude = 60e3
        mass, cd, area = 800.0, 2.2, 4.0
        a, active = two_body_model.drag_acceleration(vel, altitude, mass, cd, area)

        rho = two_body_model.atmosphere.get_density(altitude)
        expected = -0.5 * rho * cd * area * 7800.0 * vel / mass
        assert active
        assert_allclose(a, expected, rtol=1e-12)
        assert np.dot(a, vel) < 0.0

    def test_drag_disabled(self, earth_only):
        model = ForceModel(earth_only, drag_enabled=False)
        a, active = model.drag_acceleration(np.array([0.0, 7800.0, 0.0]), 10e3, 1000.0)
        assert not active
        assert_allclose(a, np.zeros(3))

    def test_drag_uses_velocity_relative_to_central_body(self):
        moving_earth = CelestialBodyCatalog([
            CelestialBody('Earth', (0.0, 0.0, 0.0), (100.0, 0.0, 0.0),
                          EARTH_MASS, EARTH_RADIUS),
        ])
        model = ForceModel(moving_earth)
        a, active = model.drag_acceleration(np.array([100.0, 0.0, 0.0]), 5e3, 1000.0)
        assert active
        assert_allclose(a, np.zeros(3))

    def test_altitude_computed_from_position(self, two_body_model):
        pos = np.array([EARTH_RADIUS + 50e3, 0.0, 0.0])
        vel = np.array([0.0, 7800.0, 0.0])
        breakdown = two_body_model.acceleration(pos, vel, 1000.0)
        assert breakdown.drag_active
        assert np.linalg.norm(breakdown.drag) > 0.0
        assert breakdown.perturbation_ratio == 0.0
        assert two_body_model.altitude(pos) == pytest.approx(50e3)


# =============================================================================
# Total Acceleration
# =============================================================================

class TestForceModel:

    def test_total_is_sum_of_parts(self, full_model):
        pos = np.array([EARTH_RADIUS + 80e3, 0.0, 0.0])
        vel = np.array([0.0, 7800.0, 100.0])
        breakdown = full_model.acceleration(
            pos, vel, 1200.0, ThrustCommand([1.0, 1.0, 0.0], 5000.0),
        )
        assert_allclose(breakdown.total,
                        breakdown.gravity + breakdown.thrust + breakdown.drag)
        assert_allclose(full_model.total_acceleration(
            pos, vel, 1200.0, ThrustCommand([1.0, 1.0, 0.0], 5000.0)), breakdown.total)

    @pytest.mark.parametrize("mass", [0.0, -10.0])
    def test_non_positive_mass_rejected(self, two_body_model, mass):
        with pytest.raises(ValueError):
            two_body_model.acceleration(np.array([LEO_RADIUS, 0.0, 0.0]), np.zeros(3), mass)

    def test_unknown_central_body(self, earth_only):
        with pytest.raises(KeyError):
            ForceModel(earth_only, central_body='Moon')

    def test_coasting_breakdown(self, two_body_model):
        breakdown = two_body_model.acceleration(
            np.array([LEO_RADIUS, 0.0, 0.0]), np.array([0.0, 7670.0, 0.0]), 1000.0,
        )
        assert not breakdown.thrust_active
        assert not breakdown.drag_active
        assert math.isclose(np.linalg.norm(breakdown.total),
                            EARTH_MU / LEO_RADIUS ** 2, rel_tol=1e-12)
