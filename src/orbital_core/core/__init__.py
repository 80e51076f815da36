"""
===============================================================================
ORBITAL CORE - Core Package
===============================================================================
Shared foundations for the orbital simulation core.

Modules:
    constants : Physical constants, default body data, numerical tolerances
    frames    : Perifocal <-> inertial rotation helpers
    config    : YAML-backed simulation configuration dataclasses
===============================================================================
"""
