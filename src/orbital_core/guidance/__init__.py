"""
===============================================================================
ORBITAL CORE - Guidance Module
===============================================================================
Transfer planning between circular orbits.

Submodules:
    transfer_planner -- Hohmann transfer plans (TransferOrbit values)
===============================================================================
"""
