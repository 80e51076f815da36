"""
===============================================================================
ORBITAL CORE - Telemetry Recorder
===============================================================================
Observer that records every published snapshot and event as a flat record
and hands them out as pandas DataFrames for post-run analysis.
===============================================================================
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from orbital_core.simulation.context import SimulationObserver
from orbital_core.simulation.events import OrbitalEvent
from orbital_core.simulation.vehicle import StateSnapshot

logger = logging.getLogger(__name__)


class TelemetryRecorder(SimulationObserver):
    """
    Records snapshots and events from a :class:`SimulationContext`.

    Parameters
    ----------
    vehicle_ids : iterable of str, optional
        Record only these vehicles; all vehicles when omitted.
    """

    def __init__(self, vehicle_ids=None) -> None:
        self.vehicle_ids = set(vehicle_ids) if vehicle_ids is not None else None
        self.states: List[Dict[str, Any]] = []
        self.events: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def _wanted(self, vehicle_id: str) -> bool:
        return self.vehicle_ids is None or vehicle_id in self.vehicle_ids

    def on_state(self, snapshot: StateSnapshot) -> None:
        if self._wanted(snapshot.vehicle_id):
            with self._lock:
                self.states.append(snapshot.to_record())

    def on_event(self, event: OrbitalEvent) -> None:
        if self._wanted(event.vehicle_id):
            with self._lock:
                self.events.append(event.to_record())

    # ------------------------------------------------------------------ #
    def to_dataframe(self, vehicle_id: Optional[str] = None) -> pd.DataFrame:
        """
        Convert the state records to a DataFrame indexed by simulation time.

        Columns: vehicle_id, pos_x/y/z, vel_x/y/z, altitude_m, radius_m,
        speed_m_s, semi_major_axis, eccentricity, inclination, raan,
        arg_periapsis, true_anomaly, period_s, regime, time_acceleration.
        """
        with self._lock:
            records = list(self.states)
        if not records:
            logger.warning("No telemetry recorded.")
            return pd.DataFrame()

        df = pd.DataFrame(records)
        if vehicle_id is not None:
            df = df[df['vehicle_id'] == vehicle_id]
        return df.set_index('time')

    def events_dataframe(self) -> pd.DataFrame:
        """Event records indexed by simulation time."""
        with self._lock:
            records = list(self.events)
        if not records:
            return pd.DataFrame()
        return pd.DataFrame(records).set_index('time')

    def save_csv(self, filepath: Union[str, Path],
                 events_filepath: Optional[Union[str, Path]] = None) -> None:
        """
        Save the state telemetry (and optionally the events) to CSV.
        """
        df = self.to_dataframe()
        df.to_csv(filepath)
        logger.info("Telemetry saved to %s  (%d records)", filepath, len(df))
        if events_filepath is not None:
            events = self.events_dataframe()
            events.to_csv(events_filepath)
            logger.info("Events saved to %s  (%d records)", events_filepath, len(events))

    def clear(self) -> None:
        with self._lock:
            self.states.clear()
            self.events.clear()

    def __repr__(self) -> str:
        return f"TelemetryRecorder(states={len(self.states)}, events={len(self.events)})"
