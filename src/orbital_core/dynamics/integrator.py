"""
===============================================================================
ORBITAL CORE - Fixed-Step Integration
===============================================================================
Numerical advance of a vehicle's translational state and the scheduler that
turns host wall-clock time into whole integration steps.

    SemiImplicitEuler  : v += a*h ; x += v*h   (default, symplectic)
    RungeKutta4        : classical 4th-order Runge-Kutta
    FixedStepScheduler : accrues wall_dt * time_acceleration of simulated
                         time and releases it in steps of exactly h

The step h is fixed in simulated seconds.  Time acceleration only changes
how often a step is taken (the wall-clock tick period is h / acceleration);
it never enters the integration formulas.
===============================================================================
"""

import logging
import math
import threading
from typing import Callable, Optional, Tuple

import numpy as np

from orbital_core.core.constants import (
    DEFAULT_MAX_SUBSTEPS,
    DEFAULT_TIME_STEP,
    MAX_TIME_ACCELERATION,
    MIN_TIME_ACCELERATION,
)

logger = logging.getLogger(__name__)

# (position, velocity) -> acceleration
AccelerationFunction = Callable[[np.ndarray, np.ndarray], np.ndarray]


# =============================================================================
# INTEGRATORS
# =============================================================================

class SemiImplicitEuler:
    """
    First-order symplectic Euler:

        v_{n+1} = v_n + a(x_n, v_n) * h
        x_{n+1} = x_n + v_{n+1} * h

    Updating position with the *new* velocity keeps the energy error of a
    bound orbit oscillating instead of growing.
    """

    name = 'semi_implicit_euler'

    def step(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        h: float,
        accel_func: AccelerationFunction,
        initial_acceleration: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Advance (position, velocity) by one step of *h* seconds.

        ``initial_acceleration`` lets the caller reuse an acceleration it has
        already evaluated at the start of the step.
        """
        a = initial_acceleration if initial_acceleration is not None \
            else accel_func(position, velocity)
        v_new = velocity + a * h
        x_new = position + v_new * h
        return x_new, v_new


class RungeKutta4:
    """
    Classical 4th-order Runge-Kutta for

        dr/dt = v
        dv/dt = a(r, v)

    k1 = f(y_n)
    k2 = f(y_n + h/2 * k1)
    k3 = f(y_n + h/2 * k2)
    k4 = f(y_n + h * k3)

    y_{n+1} = y_n + (h/6) * (k1 + 2*k2 + 2*k3 + k4)

    Local truncation error O(h^5), global O(h^4).
    """

    name = 'rk4'

    def step(
        self,
        position: np.ndarray,
        velocity: np.ndarray,
        h: float,
        accel_func: AccelerationFunction,
        initial_acceleration: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        r = position
        v = velocity

        # Stage 1
        a1 = initial_acceleration if initial_acceleration is not None \
            else accel_func(r, v)
        kr1 = v
        kv1 = a1

        # Stage 2
        r2 = r + 0.5 * h * kr1
        v2 = v + 0.5 * h * kv1
        kr2 = v2
        kv2 = accel_func(r2, v2)

        # Stage 3
        r3 = r + 0.5 * h * kr2
        v3 = v + 0.5 * h * kv2
        kr3 = v3
        kv3 = accel_func(r3, v3)

        # Stage 4
        r4 = r + h * kr3
        v4 = v + h * kv3
        kr4 = v4
        kv4 = accel_func(r4, v4)

        r_new = r + (h / 6.0) * (kr1 + 2.0 * kr2 + 2.0 * kr3 + kr4)
        v_new = v + (h / 6.0) * (kv1 + 2.0 * kv2 + 2.0 * kv3 + kv4)
        return r_new, v_new


_INTEGRATORS = {
    SemiImplicitEuler.name: SemiImplicitEuler,
    RungeKutta4.name: RungeKutta4,
}


def make_integrator(name: str):
    """Return an integrator instance by its configuration name."""
    try:
        return _INTEGRATORS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown integrator {name!r}. Valid: {sorted(_INTEGRATORS)}"
        ) from None


# =============================================================================
# FIXED-STEP SCHEDULER
# =============================================================================

class FixedStepScheduler:
    """
    Converts host wall-clock time into a whole number of fixed steps.

    Every call to :meth:`advance` is a tick boundary.  A time-acceleration
    change requested with :meth:`set_time_acceleration` is latched under a
    lock and only takes effect at the start of the next :meth:`advance`, so
    no step is ever split between two rates.

    Parameters
    ----------
    step : float
        Integration step h (simulated seconds).
    time_acceleration : float
        Initial acceleration factor, clamped into [min, max].
    min_time_acceleration, max_time_acceleration : float
        Clamp range.
    max_substeps : int
        Most steps a single :meth:`advance` may release.  Older backlog is
        dropped so that a stalled host does not trigger a burst of work.
    """

    def __init__(
        self,
        step: float = DEFAULT_TIME_STEP,
        time_acceleration: float = 1.0,
        min_time_acceleration: float = MIN_TIME_ACCELERATION,
        max_time_acceleration: float = MAX_TIME_ACCELERATION,
        max_substeps: int = DEFAULT_MAX_SUBSTEPS,
    ) -> None:
        if step <= 0.0:
            raise ValueError(f"Integration step must be positive, got {step}")
        self.step = float(step)
        self.min_time_acceleration = float(min_time_acceleration)
        self.max_time_acceleration = float(max_time_acceleration)
        self.max_substeps = int(max_substeps)

        self._lock = threading.Lock()
        self._time_acceleration = self._clamp(time_acceleration)
        self._pending: Optional[float] = None
        self._accumulator = 0.0
        self.dropped_steps = 0

    @classmethod
    def from_config(cls, time_config) -> 'FixedStepScheduler':
        """Build from a :class:`~orbital_core.core.config.TimeConfig`."""
        return cls(
            step=time_config.step,
            time_acceleration=time_config.time_acceleration,
            min_time_acceleration=time_config.min_time_acceleration,
            max_time_acceleration=time_config.max_time_acceleration,
            max_substeps=time_config.max_substeps,
        )

    # ------------------------------------------------------------------ #
    def _clamp(self, value: float) -> float:
        return max(self.min_time_acceleration,
                   min(self.max_time_acceleration, float(value)))

    @property
    def time_acceleration(self) -> float:
        """Factor currently in effect."""
        return self._time_acceleration

    @property
    def pending_time_acceleration(self) -> Optional[float]:
        with self._lock:
            return self._pending

    @property
    def tick_period(self) -> float:
        """Wall-clock seconds between steps at the current rate."""
        return self.step / self._time_acceleration

    @property
    def backlog(self) -> float:
        """Simulated time accrued but not yet released as a step (s)."""
        return self._accumulator

    def set_time_acceleration(self, value: float) -> float:
        """
        Request a new time-acceleration factor.

        Returns the clamped value that will apply from the next tick
        boundary.
        """
        if not math.isfinite(value):
            raise ValueError(f"Time acceleration must be finite, got {value}")
        clamped = self._clamp(value)
        if clamped != value:
            logger.debug("Time acceleration %.3f clamped to %.3f", value, clamped)
        with self._lock:
            self._pending = clamped
        return clamped

    # ------------------------------------------------------------------ #
    def advance(self, wall_dt: float) -> int:
        """
        Account for *wall_dt* seconds of host time.

        Returns
        -------
        int
            Number of steps of size ``step`` to run now.
        """
        if wall_dt < 0.0:
            raise ValueError(f"wall_dt must be >= 0, got {wall_dt}")

        with self._lock:
            if self._pending is not None:
                self._time_acceleration = self._pending
                self._pending = None

        self._accumulator += wall_dt * self._time_acceleration
        # Small slack keeps e.g. 60 * (1/60) from landing just below 1 step.
        steps = int(math.floor(self._accumulator / self.step + 1e-9))

        if steps > self.max_substeps:
            dropped = steps - self.max_substeps
            self.dropped_steps += dropped
            logger.warning(
                "Scheduler backlog of %d steps exceeds max_substeps=%d; dropping %d",
                steps, self.max_substeps, dropped,
            )
            self._accumulator -= dropped * self.step
            steps = self.max_substeps

        self._accumulator = max(0.0, self._accumulator - steps * self.step)
        return steps

    def reset(self) -> None:
        """Discard any accrued backlog."""
        self._accumulator = 0.0

    def __repr__(self) -> str:
        return (
            f"FixedStepScheduler(h={self.step:.5f} s, "
            f"x{self._time_acceleration:g}, max_substeps={self.max_substeps})"
        )
