"""Human-readable veto error report and per-entry serious-error messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from veto_analyzer.models.errors import (
    EXCLUDED_FROM_TOTAL,
    N_ERRORS,
    RUN_LEVEL,
    SERIOUS,
    ErrorKind,
    ErrorSet,
)
from veto_analyzer.models.event import VetoEvent

from .led import LedStats


@dataclass(frozen=True)
class ErrorTotals:
    serious: int
    total: int


def error_totals(counts: Sequence[int]) -> ErrorTotals:
    """Serious and total error counts from a 29-slot tally.

    Kinds 10 and 11 are left out of the total; a bad LED frequency is always
    serious.
    """
    if len(counts) != N_ERRORS:
        raise ValueError(f"Expected {N_ERRORS} error counts, got {len(counts)}")
    total = 0
    serious = 0
    for i in range(1, N_ERRORS):
        k = ErrorKind(i)
        if k not in EXCLUDED_FROM_TOTAL:
            total += int(counts[i])
        if k in SERIOUS or k is ErrorKind.BAD_LED_FREQUENCY:
            serious += int(counts[i])
    return ErrorTotals(serious=serious, total=total)


def describe_entry_errors(
    event: VetoEvent,
    prev: Optional[VetoEvent],
    errors: ErrorSet,
    *,
    time: float,
    time_sbc: float,
    ts_difference: float,
) -> List[str]:
    """Detail lines for the serious errors of one entry."""
    r = event.record
    p = prev.record if prev is not None else None
    p_sec = p.sec if p is not None else 0
    p_qec = p.qec if p is not None else 0
    p_qec2 = p.qec2 if p is not None else 0
    p_time = p.time_sec if p is not None else 0.0
    lines = []
    if errors[ErrorKind.MISSING_CHANNELS]:
        lines.append(
            f"EventError[1] Missing Packet.  Scaler index {r.scaler_index}  "
            f"Scaler Time {r.time_sec}  SBC Time {r.time_sbc}"
        )
    if errors[ErrorKind.QDC1_INDEX_DRIFT]:
        lines.append(
            "EventError[13] ORCA packet indexes of QDC1 and Scaler differ by more than 2.  "
            f"Scaler Index {r.scaler_index}  QDC1 Index {r.qdc1_index}"
        )
    if errors[ErrorKind.QDC2_INDEX_DRIFT]:
        lines.append(
            "EventError[14] ORCA packet indexes of QDC2 and Scaler differ by more than 2.  "
            f"Scaler Index {r.scaler_index}  QDC2 Index {r.qdc2_index}"
        )
    if errors[ErrorKind.CLOCK_DESYNC]:
        lines.append(
            "EventError[18] Scaler/SBC Desynch.  "
            f"DeltaT (adjusted) {r.time_sec - time_sbc - ts_difference:.6f}  "
            f"DeltaT {r.time_sec - time_sbc:.6f}  Prev TSdifference {ts_difference:.6f}  "
            f"Scaler DeltaT {r.time_sec - p_time:.6f}  Scaler Time {r.time_sec}  SBC Time {time_sbc}"
        )
    if errors[ErrorKind.SCALER_COUNT_RESET]:
        lines.append(f"EventError[19] Scaler Event Count Reset.  SEC {r.sec}  Previous SEC {p_sec}")
    if errors[ErrorKind.SCALER_COUNT_JUMP]:
        lines.append(f"EventError[20] Scaler Event Count Jump.  xTime {time:.3f}  SEC {r.sec}  Previous SEC {p_sec}")
    if errors[ErrorKind.QDC1_COUNT_RESET]:
        lines.append(f"EventError[21] QDC1 Event Count Reset.  QEC1 {r.qec}  Previous QEC1 {p_qec}")
    if errors[ErrorKind.QDC1_COUNT_JUMP]:
        lines.append(f"EventError[22] QDC 1 Event Count Jump.  xTime {time:.3f}  QEC 1 {r.qec}  Previous QEC 1 {p_qec}")
    if errors[ErrorKind.QDC2_COUNT_RESET]:
        lines.append(f"EventError[23] QDC2 Event Count Reset.  QEC2 {r.qec2}  Previous QEC2 {p_qec2}")
    if errors[ErrorKind.QDC2_COUNT_JUMP]:
        lines.append(f"EventError[24] QDC 2 Event Count Jump.  xTime {time:.3f}  QEC 2 {r.qec2}  Previous QEC 2 {p_qec2}")
    return lines


def format_error_report(
    counts: Sequence[int],
    *,
    n_entries: int,
    led: LedStats,
    duration: float,
    livetime: float,
    run_errors: ErrorSet,
) -> Tuple[str, ErrorTotals]:
    """Build the end-of-tally report. Details are listed only when serious errors exist."""
    totals = error_totals(counts)
    lines = ["=================== Veto Error Report ===================",
             f"Serious errors found :: {totals.serious}"]
    if totals.serious > 0:
        lines.append(f"Total Errors : {totals.total}")
        if duration != livetime:
            lines.append(f"Run duration ({duration} sec) doesn't match live time: {livetime}")
        for i in range(1, N_ERRORS):
            c = int(counts[i])
            kind = ErrorKind(i)
            # threshold run errors are listed once, below
            if c <= 0 or (kind in RUN_LEVEL and kind is not ErrorKind.BAD_LED_FREQUENCY):
                continue
            if kind is ErrorKind.BAD_LED_FREQUENCY:
                lines.append(f"  Error[26]: Bad LED rate: {led.freq:.6g}  Period: {led.period:.6g}")
                if led.period > 0.1 and abs(duration / led.period) - led.simple_count > 5:
                    lines.append(
                        f"   Simple LED count: {led.simple_count}  Expected: {int(duration / led.period)}"
                    )
            else:
                pct = 100.0 * c / n_entries if n_entries else 0.0
                lines.append(f"  Error[{i}]: {c} events ({pct:.4g} %)")
        lines.append('For reference, "serious" error types are: ' + " ".join(str(int(k)) for k in SERIOUS))
        lines.append("Please report these to the veto group.")
    for k in run_errors.kinds:
        if k is not ErrorKind.BAD_LED_FREQUENCY:
            lines.append(f"  Run-level error {int(k)}: {k.name}")
    return "\n".join(lines), totals
