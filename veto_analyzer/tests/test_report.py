from __future__ import annotations

import pytest

from veto_analyzer.analysis.led import LedStats
from veto_analyzer.analysis.report import error_totals, format_error_report
from veto_analyzer.models.errors import N_ERRORS, ErrorKind, ErrorSet


def _led(bad: bool = False) -> LedStats:
    return LedStats(freq=0.5, rms=0.0, period=2.0, simple_count=30, n_deltas=29, short_run=False, bad=bad)


def _counts(**by_slot: int):
    counts = [0] * N_ERRORS
    for k, v in by_slot.items():
        counts[ErrorKind[k]] = v
    return counts


def test_totals_exclude_counter_mismatch_kinds() -> None:
    counts = _counts(SCALER_COUNT_ENTRY_MISMATCH=100, SCALER_QDC1_COUNT_MISMATCH=50, HW_COUNT_MISMATCH=3)
    totals = error_totals(counts)
    assert totals.total == 3
    assert totals.serious == 0


def test_bad_led_frequency_is_serious() -> None:
    totals = error_totals(_counts(CLOCK_DESYNC=2, BAD_LED_FREQUENCY=1, INTERPOLATED_TIME=4))
    assert totals.serious == 3
    assert totals.total == 7


def test_totals_need_every_slot() -> None:
    with pytest.raises(ValueError):
        error_totals([0] * 28)


def test_run_level_threshold_errors_listed_once() -> None:
    counts = _counts(CLOCK_DESYNC=1, THRESHOLD_NOT_FOUND=1, NO_EVENTS_ABOVE_THRESHOLD=1)
    run_errors = ErrorSet.of([ErrorKind.THRESHOLD_NOT_FOUND, ErrorKind.NO_EVENTS_ABOVE_THRESHOLD])
    text, totals = format_error_report(
        counts, n_entries=10, led=_led(), duration=10.0, livetime=10.0, run_errors=run_errors
    )
    assert totals.serious == 1
    assert "Error[18]: 1 events" in text
    for k in (27, 28):
        assert f"Error[{k}]" not in text
        assert text.count(f"Run-level error {k}:") == 1


def test_clean_report_has_no_details() -> None:
    text, totals = format_error_report(
        [0] * N_ERRORS, n_entries=10, led=_led(), duration=10.0, livetime=10.0, run_errors=ErrorSet()
    )
    assert text.splitlines() == [
        "=================== Veto Error Report ===================",
        "Serious errors found :: 0",
    ]
    assert totals.total == 0
