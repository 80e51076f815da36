"""
===============================================================================
ORBITAL CORE - Dynamics Module
===============================================================================
Physical models of the vehicles' motion among the catalog bodies.

Submodules:
    celestial_bodies -- Read-only catalog of gravitating bodies
    orbital_elements -- Cartesian <-> Keplerian conversion, two-body relations
    kepler           -- Analytical propagation (elliptic, hyperbolic, parabolic)
    environment      -- Three-band atmosphere density model
    forces           -- Gravity, thrust and drag acceleration
    integrator       -- Fixed-step integrators and the wall-clock scheduler
===============================================================================
"""
