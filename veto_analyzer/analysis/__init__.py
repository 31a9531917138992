"""Veto analysis package.

Design principle:
  - Ingest produces decoded, immutable :class:`~veto_analyzer.models.event.VetoRecord` values.
  - Analysis evaluates them against calibrated thresholds and run-level state,
    one fresh :class:`~veto_analyzer.models.event.VetoEvent` per entry and pass.

The processor (:mod:`.pipeline`) wires the components together:
thresholds -> error checks -> clock reconciliation -> LED frequency -> muon ID.
"""

from .clock import ClockReconciler, TimeEstimate, TimeTable
from .coincidence import CoincidenceType, Plane, classify_coincidence, energy_cut, time_cut
from .event_errors import ErrorCheck, check_event_errors
from .led import LedDetector, LedStats
from .pipeline import VetoProcessor, process_run
from .thresholds import CalibrationResult, calibrate_thresholds, find_pedestal_threshold

__all__ = [
    "ClockReconciler",
    "TimeEstimate",
    "TimeTable",
    "CoincidenceType",
    "Plane",
    "classify_coincidence",
    "energy_cut",
    "time_cut",
    "ErrorCheck",
    "check_event_errors",
    "LedDetector",
    "LedStats",
    "VetoProcessor",
    "process_run",
    "CalibrationResult",
    "calibrate_thresholds",
    "find_pedestal_threshold",
]
