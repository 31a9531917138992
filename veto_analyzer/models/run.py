from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Tuple

from .event import VetoEvent

if TYPE_CHECKING:
    from veto_analyzer.analysis.clock import TimeTable
    from veto_analyzer.analysis.led import LedStats

# Run-era lookup rules (from the detector configuration history).
CHANNEL_DISABLE_RUN = 45000000
LAST_ENABLED_CHANNEL = 23
SBC_VALID_RUN = 8557
SBC_OVERFLOW = 2000000000
MODULE2_RUNS = (60000000, 70000000)


def has_veto_data(run: int) -> bool:
    """Module 2 runs carry no veto data."""
    lo, hi = MODULE2_RUNS
    return not (lo < run < hi)


def channel_disabled(run: int, channel: int) -> bool:
    """Panels above 23 are physically absent after the channel-disable run."""
    return run > CHANNEL_DISABLE_RUN and channel > LAST_ENABLED_CHANNEL


def aux_clock_valid(run: int, time_sbc: float) -> bool:
    """The SBC clock is trusted only for later runs and below its overflow value."""
    return run > SBC_VALID_RUN and time_sbc < SBC_OVERFLOW


def qdc_card_slots(run: int) -> Tuple[int, int]:
    """VME slots of the (QDC1, QDC2) cards for a run."""
    if run > CHANNEL_DISABLE_RUN:
        return 11, 18
    return 13, 18


@dataclass(frozen=True)
class RunMetadata:
    """Run number and DAQ start/stop (unix seconds) from the run-metadata collaborator."""
    run: int
    start: int
    stop: int

    @classmethod
    def validated(cls, run, start, stop) -> "RunMetadata":
        """Coerce and validate metadata, raising ValueError when it is unusable."""
        try:
            run_i = int(run)
            start_i = int(start)
            stop_i = int(stop)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Unreadable run metadata: run={run!r} start={start!r} stop={stop!r}") from e
        if run_i <= 0:
            raise ValueError(f"Invalid run number: {run_i}")
        if not has_veto_data(run_i):
            raise ValueError(f"Veto data not present in Module 2 runs (run {run_i}).")
        return cls(run=run_i, start=start_i, stop=stop_i)

    @property
    def raw_duration(self) -> float:
        return float(self.stop - self.start)

    @property
    def qdc_cards(self) -> Tuple[int, int]:
        return qdc_card_slots(self.run)


@dataclass
class RunContext:
    """
    Cross-pass state for one run. Owned by the processor; never shared between runs.

    Event snapshots are immutable ``VetoEvent`` values, so ``prev``/``first``/``last``
    cannot alias the event currently being processed.
    """
    meta: RunMetadata
    n_entries: int

    first: Optional[VetoEvent] = None
    prev: Optional[VetoEvent] = None
    last: Optional[VetoEvent] = None
    prev_good_entry: int = 0

    first_good_scaler: Optional[float] = None
    prev_good_time: float = 0.0

    clock_offset: float = 0.0
    highest_multip: int = 0
    multip_threshold: int = 0
    led: Optional["LedStats"] = None
    time_table: Optional["TimeTable"] = None

    start: int = 0
    stop: int = 0
    duration: float = 0.0
    livetime: float = 0.0

    skipped: int = 0
    warnings: list = field(default_factory=list)

    def __post_init__(self) -> None:
        self.start = int(self.meta.start)
        self.stop = int(self.meta.stop)
        self.duration = self.meta.raw_duration

    @property
    def first_good_entry(self) -> int:
        return self.first.entry if self.first is not None else -1

    def end_of_event(self, event: VetoEvent) -> None:
        """Per-event reset shared by all passes."""
        self.prev = event
        self.last = event
        self.prev_good_entry = event.entry

    def reset_pass(self) -> None:
        self.prev = None
        self.prev_good_entry = 0
        self.skipped = 0
