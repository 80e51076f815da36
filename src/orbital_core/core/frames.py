"""
===============================================================================
ORBITAL CORE - Reference Frame Rotations
===============================================================================
Rotation helpers between the perifocal (PQW) frame of an orbit and the
inertial simulation frame.

The perifocal frame is defined by the orbit geometry:

    p-hat : toward periapsis
    q-hat : 90 deg ahead of p-hat in the direction of motion
    w-hat : along the specific angular momentum h

The inertial frame is the host's world frame, centred on the central body
of the catalog.  The two are related by the classical 3-1-3 Euler sequence
(RAAN, inclination, argument of periapsis).

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.
===============================================================================
"""

import numpy as np


# =============================================================================
# ELEMENTARY ROTATION MATRICES
# =============================================================================

def Rx(angle: float) -> np.ndarray:
    """
    Elementary frame rotation about the X-axis.

        Rx(a) = | 1    0       0     |
                | 0   cos(a)  sin(a)  |
                | 0  -sin(a)  cos(a)  |

    Parameters
    ----------
    angle : float
        Rotation angle in radians.

    Returns
    -------
    np.ndarray
        3x3 rotation matrix.
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [1.0,  0.0,  0.0],
        [0.0,    c,    s],
        [0.0,   -s,    c],
    ], dtype=np.float64)


def Rz(angle: float) -> np.ndarray:
    """
    Elementary frame rotation about the Z-axis.

        Rz(a) = |  cos(a)  sin(a)  0 |
                | -sin(a)  cos(a)  0 |
                |    0       0     1 |

    Parameters
    ----------
    angle : float
        Rotation angle in radians.

    Returns
    -------
    np.ndarray
        3x3 rotation matrix.
    """
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([
        [  c,    s,  0.0],
        [ -s,    c,  0.0],
        [0.0,  0.0,  1.0],
    ], dtype=np.float64)


# =============================================================================
# PERIFOCAL -> INERTIAL
# =============================================================================

def perifocal_rotation(raan: float, inc: float, argp: float) -> np.ndarray:
    """
    Direction cosine matrix taking perifocal vectors into the inertial frame.

    The combined rotation is

        R = Rz(-RAAN) * Rx(-inc) * Rz(-argp)

    so that ``v_inertial = R @ v_pqw``.  The same matrix rotates position
    and velocity.

    Parameters
    ----------
    raan : float
        Longitude of the ascending node (rad).
    inc : float
        Inclination (rad).
    argp : float
        Argument of periapsis (rad).

    Returns
    -------
    np.ndarray
        3x3 orthonormal rotation matrix.

    References
    ----------
    Vallado (2013), Algorithm 10.
    """
    return Rz(-raan) @ Rx(-inc) @ Rz(-argp)
