#!/usr/bin/env python3
"""
===============================================================================
ORBITAL CORE - SCENARIO RUNNER
===============================================================================
Host-side demonstration of the simulation core: a vehicle in low Earth orbit
plans and flies a Hohmann transfer while the context publishes telemetry.

USAGE:
    python scripts/run_scenario.py                      # default scenario
    python scripts/run_scenario.py --config config/simulation.yaml
    python scripts/run_scenario.py --target-altitude 35786 --accel 1000
    python scripts/run_scenario.py --output output/telemetry.csv

The script stands in for a host main loop: it feeds fixed wall-clock
frames into SimulationContext.advance and acts as the flight-control
collaborator that commands the two burns.
===============================================================================
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))

from orbital_core.core.config import load_config  # noqa: E402
from orbital_core.dynamics.forces import ThrustCommand  # noqa: E402
from orbital_core.dynamics.orbital_elements import OrbitalElements  # noqa: E402
from orbital_core.simulation.context import SimulationContext  # noqa: E402
from orbital_core.simulation.telemetry import TelemetryRecorder  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger('ORBITAL_SCENARIO')

FRAME_DT = 1.0 / 60.0   # host frame time (wall s)


def burn(context: SimulationContext, vehicle_id: str, delta_v: float) -> None:
    """
    Fly a tangential burn of *delta_v* at full thrust, one frame at a time.
    """
    vehicle = context.get_vehicle(vehicle_id)
    thrust_accel = vehicle.max_thrust / vehicle.mass
    remaining = abs(delta_v)
    sign = 1.0 if delta_v >= 0.0 else -1.0
    start = vehicle.simulation_time

    while remaining > 1e-3:
        _, v_rel = vehicle.relative_state()
        direction = sign * v_rel / np.linalg.norm(v_rel)
        h = vehicle.scheduler.step
        magnitude = min(vehicle.max_thrust, remaining / h * vehicle.mass)
        vehicle.tick(thrust=ThrustCommand(direction, magnitude))
        remaining -= magnitude / vehicle.mass * h

    vehicle.set_thrust(None)
    logger.info("Burn of %.1f m/s complete in %.1f s (a_max=%.1f m/s^2)",
                delta_v, vehicle.simulation_time - start, thrust_accel)


def run(args) -> int:
    config = load_config(args.config)
    recorder = TelemetryRecorder()

    with SimulationContext(config) as context:
        context.subscribe(recorder)
        central = context.force_model.central
        r1 = central.radius + args.start_altitude * 1e3
        r2 = central.radius + args.target_altitude * 1e3

        vehicle = context.add_vehicle_from_elements(
            'demo-1', OrbitalElements.circular(r1, central.mu)
        )
        context.set_time_acceleration(args.accel)

        plan = context.plan_transfer('demo-1', r2)
        print("=" * 70)
        print("  HOHMANN TRANSFER PLAN")
        print(f"  r1 = {plan.departure_radius / 1e3:.1f} km   r2 = {plan.target_radius / 1e3:.1f} km")
        print(f"  dv1 = {plan.delta_v:.1f} m/s   dv2 = {plan.arrival_delta_v:.1f} m/s")
        print(f"  transfer time = {plan.transfer_time / 3600.0:.2f} h")
        print("=" * 70)

        wall_start = time.time()
        burn(context, 'demo-1', plan.delta_v)

        # Coast to apoapsis by feeding host frames.
        target_time = vehicle.simulation_time + plan.transfer_time
        while vehicle.simulation_time < target_time - vehicle.time_acceleration * FRAME_DT:
            report = context.advance(FRAME_DT)
            if not report.ok:
                logger.error("Scenario aborted: %s", report.faulted)
                return 1

        burn(context, 'demo-1', plan.arrival_delta_v)
        context.advance(FRAME_DT)

        reached = vehicle.has_reached_orbit(r2, radius_tolerance=args.tolerance * 1e3,
                                            eccentricity_tolerance=1e-2)
        logger.info("Final orbit: a=%.1f km, e=%.5f, reached target: %s",
                    vehicle.elements.semi_major_axis / 1e3,
                    vehicle.elements.eccentricity, reached)
        logger.info("Scenario wall time: %.1f s", time.time() - wall_start)

    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        recorder.save_csv(output, output.with_name(output.stem + '_events.csv'))
    return 0


def main():
    parser = argparse.ArgumentParser(
        description='Orbital core scenario: LEO -> higher circular orbit via Hohmann transfer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--config', type=str, default=None,
                        help='Path to simulation config YAML')
    parser.add_argument('--start-altitude', type=float, default=300.0,
                        help='Initial circular orbit altitude in km (default: 300)')
    parser.add_argument('--target-altitude', type=float, default=35793.0,
                        help='Target circular orbit altitude in km (default: GEO)')
    parser.add_argument('--accel', type=float, default=1000.0,
                        help='Time acceleration factor (default: 1000)')
    parser.add_argument('--tolerance', type=float, default=50.0,
                        help='Target radius tolerance in km (default: 50)')
    parser.add_argument('--output', type=str, default=None,
                        help='CSV path for the telemetry table')
    args = parser.parse_args()
    sys.exit(run(args))


if __name__ == '__main__':
    main()
