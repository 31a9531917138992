"""Per-event error classification.

``check_event_errors`` is pure: it compares one event with the previous event
and the run's first good event, and returns ``(skip, errors)``. The same call
serves both the gating passes (callers act on ``skip``) and the counting pass
(callers only tally ``errors``).

Structural errors 1-17 come from the decoder. Synchronisation errors 18-24
need the SBC offset, which is only known once a first good event exists.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from veto_analyzer.models.config import VetoConfig
from veto_analyzer.models.errors import N_ERRORS, ErrorKind, ErrorSet
from veto_analyzer.models.event import N_STRUCTURAL_FLAGS, VetoEvent, empty_event


@dataclass(frozen=True)
class ErrorCheck:
    skip: bool
    errors: ErrorSet

    def __iter__(self):
        # allows ``skip, errors = check_event_errors(...)``
        yield self.skip
        yield self.errors


def clock_offset(first: Optional[VetoEvent]) -> float:
    """SBC - scaler offset anchored on the first good event (0.0 if none)."""
    if first is None:
        return 0.0
    return float(first.time_sbc - first.time_sec)


def _counter_jump(cur: int, prev: int, entry: int, prev_good_entry: int) -> bool:
    return abs(int(cur) - int(prev)) > (entry - prev_good_entry) and int(cur) != 0


def check_event_errors(
    event: VetoEvent,
    prev: Optional[VetoEvent],
    first: Optional[VetoEvent],
    prev_good_entry: int,
    *,
    config: Optional[VetoConfig] = None,
) -> ErrorCheck:
    """Classify one event.

    Parameters
    ----------
    event:
        The event under test.
    prev:
        Snapshot of the immediately preceding event (``None`` at the start of a pass).
    first:
        The run's first good event, or ``None`` while it is not yet established.
    prev_good_entry:
        Entry index of the previous event, used to size the allowed counter step.

    Returns
    -------
    ErrorCheck
        ``skip`` is True iff a blocking error is present.
    """
    cfg = config or VetoConfig()
    flags: List[bool] = [False] * N_ERRORS

    # Structural errors are computed by the decoder; slot 0 stays unused.
    for i in range(1, N_STRUCTURAL_FLAGS):
        flags[i] = event.flag(i)

    if first is None:
        errors = ErrorSet(tuple(flags))
        return ErrorCheck(skip=errors.blocking, errors=errors)

    if prev is None:
        prev = empty_event(event.thresholds)

    entry = event.entry
    first_entry = first.entry
    missing_packet = event.flag(ErrorKind.MISSING_CHANNELS)
    past_first = entry > first_entry

    offset = clock_offset(first)
    time_sbc = event.time_sbc - offset
    prev_time_sbc = prev.time_sbc - offset

    if (
        event.time_sec > 0
        and time_sbc > 0
        and offset != 0
        and not missing_packet
        and past_first
        and abs((event.time_sec - prev.time_sec) - (time_sbc - prev_time_sbc)) > cfg.desync_tolerance_s
    ):
        flags[ErrorKind.CLOCK_DESYNC] = True

    if event.sec == 0 and entry != 0 and past_first:
        flags[ErrorKind.SCALER_COUNT_RESET] = True
    if past_first and _counter_jump(event.sec, prev.sec, entry, prev_good_entry):
        flags[ErrorKind.SCALER_COUNT_JUMP] = True

    if event.qec == 0 and entry != 0 and past_first and not missing_packet:
        flags[ErrorKind.QDC1_COUNT_RESET] = True
    if past_first and _counter_jump(event.qec, prev.qec, entry, prev_good_entry):
        flags[ErrorKind.QDC1_COUNT_JUMP] = True

    if event.qec2 == 0 and entry != 0 and past_first and not missing_packet:
        flags[ErrorKind.QDC2_COUNT_RESET] = True
    if past_first and _counter_jump(event.qec2, prev.qec2, entry, prev_good_entry):
        flags[ErrorKind.QDC2_COUNT_JUMP] = True

    errors = ErrorSet(tuple(flags))
    return ErrorCheck(skip=errors.blocking, errors=errors)
