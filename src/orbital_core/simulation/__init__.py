"""
===============================================================================
ORBITAL CORE - Simulation Module
===============================================================================
Vehicle state, event detection and the context that drives them.

Submodules:
    events    -- Periapsis/apoapsis, atmospheric entry and escape events
    vehicle   -- VehicleOrbitalState tick sequence and StateSnapshot
    context   -- SimulationContext, observers and step reports
    telemetry -- pandas-backed TelemetryRecorder observer
===============================================================================
"""
