"""
===============================================================================
ORBITAL CORE - Physical Constants and Numerical Tolerances
===============================================================================
Central repository for the physical constants, default celestial body data
and numerical tolerances used throughout the orbital simulation core.  SI
units throughout (meters, seconds, kilograms, radians).

Body masses and radii match the values the game universe was authored with,
so gravitational parameters are derived as G * M rather than taken from the
IERS tables.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# FUNDAMENTAL PHYSICAL CONSTANTS
# =============================================================================
GRAVITATIONAL_CONSTANT = 6.67430e-11   # m^3 / (kg * s^2)

# =============================================================================
# EARTH PARAMETERS
# =============================================================================
EARTH_MASS = 5.972e24                  # kg
EARTH_RADIUS = 6371000.0               # Mean radius (m)
EARTH_MU = GRAVITATIONAL_CONSTANT * EARTH_MASS  # ~3.986e14 m^3/s^2
GEO_RADIUS = 42164000.0                # Geostationary orbit radius (m)

# =============================================================================
# DEFAULT CATALOG BODIES
# =============================================================================
# Positions and velocities are in the Earth-centred simulation frame.
MOON_MASS = 7.342e22                   # kg
MOON_RADIUS = 1737000.0                # m
MOON_DISTANCE = 384400000.0            # m
MOON_VELOCITY = 1022.0                 # m/s

MARS_MASS = 6.39e23                    # kg
MARS_RADIUS = 3389000.0                # m
MARS_DISTANCE = 225.0e9                # m
MARS_VELOCITY = 24000.0                # m/s

JUPITER_MASS = 1.898e27                # kg
JUPITER_RADIUS = 69911000.0            # m
JUPITER_DISTANCE = 778.0e9             # m
JUPITER_VELOCITY = 13000.0             # m/s

SATURN_MASS = 5.683e26                 # kg
SATURN_RADIUS = 58232000.0             # m
SATURN_DISTANCE = 1427.0e9             # m
SATURN_VELOCITY = 9600.0               # m/s

# =============================================================================
# ATMOSPHERE MODEL (three-band piecewise density)
# =============================================================================
SEA_LEVEL_DENSITY = 1.225              # kg/m^3
SEA_LEVEL_TEMPERATURE = 288.15         # K
TROPOSPHERE_LAPSE_RATE = 0.0065        # K/m
TROPOSPHERE_EXPONENT = 4.256           # g*M/(R*L) - 1
TROPOPAUSE_ALTITUDE = 11000.0          # m
TROPOPAUSE_DENSITY = 0.3639            # kg/m^3
STRATOSPHERE_SCALE_HEIGHT = 6341.62    # m
UPPER_BAND_ALTITUDE = 20000.0          # m
UPPER_BAND_DENSITY = 0.088             # kg/m^3
UPPER_BAND_SCALE_HEIGHT = 7400.0       # m

DRAG_CEILING_ALTITUDE = 120000.0       # m, no drag above this altitude
ATMOSPHERIC_ENTRY_ALTITUDE = 100000.0  # m, entry event threshold

# =============================================================================
# VEHICLE DEFAULTS
# =============================================================================
DEFAULT_VEHICLE_MASS = 1000.0          # kg
DEFAULT_DRAG_COEFFICIENT = 2.0         # typical for a blunt spacecraft
DEFAULT_REFERENCE_AREA = 10.0          # m^2
DEFAULT_MAX_THRUST = 100000.0          # N

# =============================================================================
# TIME STEPPING
# =============================================================================
DEFAULT_TIME_STEP = 1.0 / 60.0         # s of simulated time per tick
MIN_TIME_ACCELERATION = 0.1
MAX_TIME_ACCELERATION = 1000.0
DEFAULT_MAX_SUBSTEPS = 2000

# =============================================================================
# NUMERICAL TOLERANCES
# =============================================================================
KEPLER_MAX_ITERATIONS = 50
KEPLER_TOLERANCE = 1e-10               # rad, residual of Kepler's equation
ECCENTRICITY_TOLERANCE = 1e-10         # below this the orbit is circular
PARABOLIC_TOLERANCE = 1e-9             # |e - 1| band treated as parabolic
NODE_TOLERANCE = 1e-9                  # relative |N| / |H| for equatorial
MIN_RADIUS = 1.0                       # m, positions closer are degenerate
MIN_ANGULAR_MOMENTUM = 1e-6            # m^2/s
EVENT_TOLERANCE_DISTANCE = 1000.0      # m, periapsis/apoapsis proximity
PERTURBATION_THRESHOLD = 1e-4          # third-body / central gravity ratio
