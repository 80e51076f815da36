"""
===============================================================================
ORBITAL CORE - Atmosphere Model
===============================================================================
Three-band piecewise density model for the central body's atmosphere:

    h < 0 m          : sea-level density
    0 <= h < 11 km   : troposphere, power-law temperature lapse
    11 km <= h < 20 km : lower stratosphere, exponential decay
    h >= 20 km       : upper band, exponential decay with its own scale height

SI units throughout (m, kg/m^3).
===============================================================================
"""

import numpy as np

from orbital_core.core.constants import (
    SEA_LEVEL_DENSITY,
    SEA_LEVEL_TEMPERATURE,
    STRATOSPHERE_SCALE_HEIGHT,
    TROPOPAUSE_ALTITUDE,
    TROPOPAUSE_DENSITY,
    TROPOSPHERE_EXPONENT,
    TROPOSPHERE_LAPSE_RATE,
    UPPER_BAND_ALTITUDE,
    UPPER_BAND_DENSITY,
    UPPER_BAND_SCALE_HEIGHT,
)


# ============================================================================
#  LAYERED ATMOSPHERE MODEL
# ============================================================================

class LayeredAtmosphere:
    """
    Piecewise atmosphere density model.

    The density is modelled as:

        rho(h) = rho_0 * (1 - L*h/T_0)^k                   h < 11 km
        rho(h) = rho_11 * exp(-(h - 11000) / H_s)          11 km <= h < 20 km
        rho(h) = rho_20 * exp(-(h - 20000) / H_u)          h >= 20 km

    where
        rho_0  = sea-level density            (1.225 kg/m^3)
        L      = temperature lapse rate       (0.0065 K/m)
        T_0    = sea-level temperature        (288.15 K)
        k      = troposphere exponent         (4.256)
        rho_11 = density at the tropopause    (0.3639 kg/m^3)
        H_s    = stratosphere scale height    (6341.62 m)
        rho_20 = density at 20 km             (0.088 kg/m^3)
        H_u    = upper band scale height      (7400 m)

    The model has no upper cut-off of its own; the force model decides
    where drag stops being applied.
    """

    def __init__(
        self,
        rho_0: float = SEA_LEVEL_DENSITY,
        temperature_0: float = SEA_LEVEL_TEMPERATURE,
        lapse_rate: float = TROPOSPHERE_LAPSE_RATE,
        exponent: float = TROPOSPHERE_EXPONENT,
    ) -> None:
        self.rho_0 = rho_0
        self.temperature_0 = temperature_0
        self.lapse_rate = lapse_rate
        self.exponent = exponent

    # ------------------------------------------------------------------ #
    def get_density(self, altitude: float) -> float:
        """
        Return atmospheric density at the given geometric altitude.

        Parameters
        ----------
        altitude : float
            Geometric altitude above the surface in metres.

        Returns
        -------
        float
            Atmospheric density in kg/m^3.  Altitudes below the surface
            return sea-level density.
        """
        if altitude < 0.0:
            return self.rho_0

        if altitude < TROPOPAUSE_ALTITUDE:
            ratio = 1.0 - self.lapse_rate * altitude / self.temperature_0
            return float(self.rho_0 * ratio ** self.exponent)

        if altitude < UPPER_BAND_ALTITUDE:
            return float(TROPOPAUSE_DENSITY * np.exp(
                -(altitude - TROPOPAUSE_ALTITUDE) / STRATOSPHERE_SCALE_HEIGHT
            ))

        return float(UPPER_BAND_DENSITY * np.exp(
            -(altitude - UPPER_BAND_ALTITUDE) / UPPER_BAND_SCALE_HEIGHT
        ))
