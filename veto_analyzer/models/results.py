from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .errors import ErrorSet


@dataclass(frozen=True)
class CutFlags:
    """Per-event cut flags.

    Attributes
    ----------
    led_off:
        The run-level LED check failed, so every event passes the time cut.
    energy_cut:
        At least two panels above the muon energy threshold.
    approx_time:
        The event time was interpolated or jump-corrected.
    time_cut:
        The event is not an LED pulse (multiplicity below the LED threshold,
        or LED off).
    is_led, first_led:
        LED pulse flags.
    bad_led_freq:
        The LED frequency measurement is unreliable.
    """

    led_off: bool = False
    energy_cut: bool = False
    approx_time: bool = False
    time_cut: bool = False
    is_led: bool = False
    first_led: bool = False
    bad_led_freq: bool = False

    def as_tuple(self) -> Tuple[bool, ...]:
        return (
            self.led_off,
            self.energy_cut,
            self.approx_time,
            self.time_cut,
            self.is_led,
            self.first_led,
            self.bad_led_freq,
        )


@dataclass(frozen=True)
class OutputRecord:
    """One emitted entry. Exactly one per input entry, bad events included."""

    entry: int
    run: int
    time: float
    time_sbc: float
    led_delta_t: float

    qdc: Tuple[int, ...]
    relative_qdc: Tuple[int, ...]
    multiplicity: int

    errors: ErrorSet
    bad_event: bool
    cuts: CutFlags

    muon_candidate: bool = False
    coincidence: str = "none"
    coin_flags: Tuple[bool, ...] = (False, False, False, False)
    plane_hits: Tuple[int, ...] = (0,) * 12
    plane_true: Tuple[bool, ...] = (False,) * 12
    plane_hit_count: int = 0


@dataclass(frozen=True)
class RunSummary:
    """Run-level output: thresholds, LED stats, error tallies and livetime."""

    run: int
    n_entries: int
    thresholds: Tuple[int, ...]

    led_freq: float
    led_rms: float
    led_period: float
    bad_led_freq: bool
    simple_led_count: int
    highest_multip: int
    multip_threshold: int

    error_counts: Tuple[int, ...]
    run_errors: ErrorSet
    serious_error_count: int
    total_error_count: int

    start: int
    stop: int
    duration: float
    livetime: float

    skipped_events: int = 0
    report: str = ""
    warnings: Tuple[str, ...] = ()

    def count(self, kind: int) -> int:
        return int(self.error_counts[int(kind)])

    def as_dict(self) -> Dict[str, object]:
        return {
            "run": self.run,
            "n_entries": self.n_entries,
            "thresholds": list(self.thresholds),
            "led_freq": self.led_freq,
            "led_rms": self.led_rms,
            "led_period": self.led_period,
            "bad_led_freq": self.bad_led_freq,
            "simple_led_count": self.simple_led_count,
            "highest_multip": self.highest_multip,
            "multip_threshold": self.multip_threshold,
            "error_counts": list(self.error_counts),
            "run_errors": [int(k) for k in self.run_errors.kinds],
            "serious_error_count": self.serious_error_count,
            "total_error_count": self.total_error_count,
            "start": self.start,
            "stop": self.stop,
            "duration": self.duration,
            "livetime": self.livetime,
            "skipped_events": self.skipped_events,
        }


@dataclass(frozen=True)
class RunResult:
    summary: RunSummary
    outputs: Optional[Tuple[OutputRecord, ...]] = None

    @property
    def error_check_only(self) -> bool:
        return self.outputs is None
