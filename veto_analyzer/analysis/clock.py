"""Scaler / SBC time reconciliation.

Every veto entry carries two timestamps:

- the scaler clock (``time_sec``), normally authoritative, and
- the SBC clock (``time_sbc``), coarser, offset from the scaler by a constant
  measured on the run's first good event, and only trusted in later run eras.

Event time is chosen in priority order: scaler, else offset-corrected SBC,
else the mean of the nearest good scaler times around the entry
(interpolation, flagged with error 25).

Scaler jumps
------------
When a scaler/SBC desync (error 18) is detected, the scaler-SBC difference is
recorded and subtracted from following scaler times until the two clocks agree
again to within the resync tolerance. The SBC is accurate to microseconds, so
agreement below 1 ms ends the recovery.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

import numpy as np

from veto_analyzer.models.config import VetoConfig
from veto_analyzer.models.event import VetoEvent
from veto_analyzer.models.run import aux_clock_valid

logger = logging.getLogger(__name__)

ClockState = Literal["synced", "recovering"]


@dataclass
class TimeTable:
    """Parallel per-entry time tables used for interpolation.

    ``times`` holds the scaler time for good-scaler entries and a provisional
    estimate for bad-scaler entries; the error-tally pass replaces each entry
    with its reconciled time.
    """

    times: np.ndarray
    entries: np.ndarray
    bad_scaler: np.ndarray
    warnings: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.times = np.asarray(self.times, dtype=np.float64)
        self.entries = np.asarray(self.entries, dtype=np.int64)
        self.bad_scaler = np.asarray(self.bad_scaler, dtype=bool)
        if not (self.times.shape == self.entries.shape == self.bad_scaler.shape):
            raise ValueError(
                f"TimeTable arrays differ in size: times={self.times.shape}, "
                f"entries={self.entries.shape}, bad_scaler={self.bad_scaler.shape}"
            )

    def __len__(self) -> int:
        return int(self.times.size)

    def update(self, entry: int, time: float) -> None:
        self.times[entry] = float(time)

    def bounds(self, entry: int) -> Tuple[Optional[float], Optional[float]]:
        """Nearest good-scaler times strictly before and after ``entry``."""
        i = int(entry)
        if not (0 <= i < len(self)):
            raise IndexError(f"entry {i} outside time table of length {len(self)}")
        good = ~self.bad_scaler
        before = np.flatnonzero(good[:i])
        after = np.flatnonzero(good[i + 1 :])
        lower = float(self.times[before[-1]]) if before.size else None
        upper = float(self.times[i + 1 + after[0]]) if after.size else None
        return lower, upper

    def interpolate(self, entry: int) -> float:
        """Time for ``entry``: its own time if the scaler is good, else the mean of its bounds.

        With one bound missing (start or end of run) the other bound is used
        alone; with none, the provisional table value is kept.
        """
        i = int(entry)
        if not self.bad_scaler[i]:
            return float(self.times[i])
        lower, upper = self.bounds(i)
        if lower is not None and upper is not None:
            return 0.5 * (lower + upper)
        if lower is not None:
            return lower
        if upper is not None:
            return upper
        return float(self.times[i])


@dataclass(frozen=True)
class TimeEstimate:
    """Reconciled time of one event.

    ``time_sbc`` is the offset-corrected SBC time, or 0.0 when the SBC reading
    is outside its validity window.
    """

    time: float
    time_sbc: float
    interpolated: bool = False
    jump_corrected: bool = False

    @property
    def approximate(self) -> bool:
        return self.interpolated or self.jump_corrected


class ClockReconciler:
    """Best-estimate event time plus scaler-jump recovery state.

    One instance per pass: the jump state must start from ``synced`` at the
    beginning of the stream.
    """

    def __init__(
        self,
        offset: float,
        run: int,
        table: TimeTable,
        *,
        config: Optional[VetoConfig] = None,
    ):
        self.offset = float(offset)
        self.run = int(run)
        self.table = table
        self.config = config or VetoConfig()
        self.state: ClockState = "synced"
        self.jump_difference = 0.0
        self.last_difference = 0.0

    def aux_time(self, event: VetoEvent) -> Optional[float]:
        if aux_clock_valid(self.run, event.time_sbc):
            return float(event.time_sbc - self.offset)
        return None

    def select(self, event: VetoEvent) -> TimeEstimate:
        """Raw source selection (no jump correction)."""
        aux = self.aux_time(event)
        if not event.bad_scaler:
            return TimeEstimate(float(event.time_sec), aux if aux is not None else 0.0)
        if aux is not None:
            return TimeEstimate(aux, aux)
        return TimeEstimate(self.table.interpolate(event.entry), 0.0, interpolated=True)

    def estimate(self, event: VetoEvent, desync: bool) -> TimeEstimate:
        """Reconciled time for ``event``; ``desync`` is its error-18 flag.

        State transitions (only when both clocks are usable for this event):

        - ``synced -> recovering`` on desync, recording ``scaler - sbc``.
        - ``recovering -> synced`` once ``|scaler - sbc| < resync tolerance``.
        """
        raw = self.select(event)
        tol = self.config.resync_tolerance_s

        if not event.bad_scaler and self.aux_time(event) is not None:
            live = float(event.time_sec) - raw.time_sbc
            if desync and abs(live) >= tol:
                if self.state == "synced":
                    logger.info(
                        "Scaler jump at entry %d: scaler-SBC difference %.6f s", event.entry, live
                    )
                self.state = "recovering"
                self.jump_difference = live
            elif self.state == "recovering" and abs(live) < tol:
                logger.info("Scaler and SBC back in sync at entry %d", event.entry)
                self.state = "synced"
                self.jump_difference = 0.0
            self.last_difference = live

        if self.state == "recovering" and not event.bad_scaler:
            return TimeEstimate(
                raw.time - self.jump_difference,
                raw.time_sbc,
                interpolated=raw.interpolated,
                jump_corrected=True,
            )
        return raw
