from __future__ import annotations

import pytest

from veto_analyzer.analysis.led import UNRELIABLE, LedDetector


def _feed(times, multiplicity: int = 32) -> LedDetector:
    det = LedDetector()
    for t in times:
        det.add(multiplicity, t)
    return det


def test_regular_pulser_gives_half_hertz() -> None:
    det = _feed([2.0 * k for k in range(30)])
    stats = det.estimate(duration=60.0, n_entries=200)
    assert stats.freq == pytest.approx(0.5)
    assert stats.period == pytest.approx(2.0)
    assert stats.rms == pytest.approx(0.0, abs=1e-9)
    assert stats.simple_count == 30
    assert stats.n_deltas == 29
    assert not stats.short_run
    assert not stats.bad


def test_low_multiplicity_events_are_not_candidates() -> None:
    det = LedDetector()
    assert det.add(10, 1.0) is False
    assert det.add(11, 2.0) is True
    assert det.simple_count == 1
    assert det.deltas.size == 0


def test_outlier_deltas_outside_window_are_ignored() -> None:
    # An extra high-multiplicity event at 4.3 s produces deltas of 0.3 and 1.7 s.
    times = [2.0 * k for k in range(30)] + [4.3]
    det = _feed(sorted(times))
    stats = det.estimate(duration=60.0, n_entries=200)
    assert stats.period == pytest.approx(2.0)
    assert stats.n_deltas == 30


def test_no_candidates_means_led_off() -> None:
    stats = LedDetector().estimate(duration=60.0, n_entries=200)
    assert stats.bad
    assert stats.freq == UNRELIABLE
    assert stats.simple_count == 0
    assert stats.warnings


def test_short_run_uses_count_over_duration() -> None:
    det = _feed([1.0, 3.0, 5.0, 7.0, 9.0])
    stats = det.estimate(duration=10.0, n_entries=50)
    assert stats.short_run
    assert stats.period == pytest.approx(2.0)
    assert not stats.bad
    assert any("Short run" in w for w in stats.warnings)


def test_short_run_with_too_few_candidates_is_unreliable() -> None:
    det = _feed([1.0, 3.0])
    stats = det.estimate(duration=10.0, n_entries=50)
    assert stats.short_run
    assert stats.period == UNRELIABLE
    assert stats.bad


def test_period_above_bound_is_bad() -> None:
    det = _feed([25.0 * k for k in range(10)])
    stats = det.estimate(duration=250.0, n_entries=500)
    # histogram period above 9 s triggers the count-based fallback, which is still 25 s
    assert stats.short_run
    assert stats.period == pytest.approx(25.0)
    assert stats.bad


def test_candidates_at_one_timestamp_are_unreliable() -> None:
    det = _feed([5.0] * 20)
    stats = det.estimate(duration=60.0, n_entries=200)
    assert stats.bad
    assert stats.freq == UNRELIABLE
    assert stats.period == UNRELIABLE
    assert not stats.short_run
    assert stats.warnings


def test_window_ignores_negative_deltas() -> None:
    # Fast pulser in the first histogram bin, then one step backwards in time.
    times = [0.0005 * k for k in range(21)] + [-0.08, -0.0795]
    stats = _feed(times).estimate(duration=60.0, n_entries=200)
    assert stats.n_deltas == 21
    assert stats.period == pytest.approx(0.0005)
    assert not stats.bad
