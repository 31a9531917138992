"""End-to-end processing of synthetic runs.

Covers:
- thresholds, LED frequency and LED tagging on a clean run
- scaler jump: desync flags, jump-corrected times, return to sync
- interpolated time for bad-scaler entries
- LED frequency flagged unusable when pulses carry no usable time
- validation-only runs, pass ordering and metadata checks
"""

from __future__ import annotations

import pytest

from veto_analyzer.analysis.pipeline import VetoProcessor, process_run
from veto_analyzer.ingest.stream import SequenceRecordStream
from veto_analyzer.models.errors import ErrorKind
from veto_analyzer.models.run import RunMetadata
from veto_analyzer.validation.synthetic import make_record, make_veto_run, shift_clock


@pytest.fixture(scope="module")
def clean_run():
    recs, meta = make_veto_run(200, seed=3)
    return recs, process_run(SequenceRecordStream(recs), meta)


def _desync_run():
    recs = [make_record(i, time_sec=1.0 + 0.2 * i) for i in range(10)]
    recs = shift_clock(recs, 5, scaler=9.8)
    recs = shift_clock(recs, 8, scaler=-9.8)
    return recs, RunMetadata(run=20000, start=0, stop=10)


# -----------------------------------------------------------------------
# Clean run
# -----------------------------------------------------------------------


def test_clean_run_thresholds_and_led(clean_run) -> None:
    _, result = clean_run
    s = result.summary
    assert all(78 <= t <= 92 for t in s.thresholds)
    assert s.led_freq == pytest.approx(0.5)
    assert not s.bad_led_freq
    assert s.highest_multip == 32
    assert s.multip_threshold == 27
    assert s.serious_error_count == 0
    assert "Serious errors found :: 0" in s.report
    # agreeing clocks: nothing interpolated or jump-corrected
    assert s.count(ErrorKind.INTERPOLATED_TIME) == 0
    assert s.count(ErrorKind.CLOCK_DESYNC) == 0
    assert not any(o.cuts.approx_time for o in result.outputs)


def test_clean_run_emits_one_record_per_entry(clean_run) -> None:
    recs, result = clean_run
    assert not result.error_check_only
    assert [o.entry for o in result.outputs] == list(range(len(recs)))
    assert not any(o.bad_event for o in result.outputs)


def test_clean_run_led_tagging(clean_run) -> None:
    _, result = clean_run
    leds = [o for o in result.outputs if o.cuts.is_led]
    assert len(leds) == 30
    assert all(o.multiplicity == 32 for o in leds)
    assert [o.entry for o in result.outputs if o.cuts.first_led] == [0]
    assert result.outputs[0].led_delta_t == -1.0
    # time since previous LED pulse
    assert leds[5].led_delta_t == pytest.approx(2.0)
    # LED pulses are not muons
    assert not any(o.muon_candidate for o in leds)
    assert all(o.cuts.time_cut for o in result.outputs if not o.cuts.is_led)


# -----------------------------------------------------------------------
# Clock handling
# -----------------------------------------------------------------------


def test_scaler_jump_end_to_end() -> None:
    recs, meta = _desync_run()
    result = process_run(SequenceRecordStream(recs), meta)
    out = result.outputs
    s = result.summary

    assert [o.entry for o in out if o.bad_event] == [5, 8]
    assert out[5].errors[ErrorKind.CLOCK_DESYNC]
    assert out[8].errors[ErrorKind.CLOCK_DESYNC]
    assert s.count(ErrorKind.CLOCK_DESYNC) == 2

    assert out[5].time == pytest.approx(2.0)
    assert out[6].time == pytest.approx(2.2)
    assert out[7].time == pytest.approx(2.4)
    assert out[6].cuts.approx_time and out[7].cuts.approx_time
    assert out[8].time == pytest.approx(2.6)
    assert not out[8].cuts.approx_time
    assert not out[4].cuts.approx_time

    # pedestal-only short run: no LED candidates
    assert s.bad_led_freq
    assert all(o.cuts.led_off and o.cuts.time_cut for o in out if not o.bad_event)
    assert s.run_errors[ErrorKind.BAD_LED_FREQUENCY]
    assert s.run_errors[ErrorKind.NO_EVENTS_ABOVE_THRESHOLD]
    # two desyncs plus the LED-frequency error
    assert s.serious_error_count == 3


def test_bad_scaler_entry_gets_interpolated_time() -> None:
    run = 5000  # SBC not trusted in this era
    recs = [make_record(i, time_sec=float(i + 1), run=run) for i in range(5)]
    recs[2] = make_record(2, time_sec=0.0, run=run, bad_scaler=True)
    result = process_run(SequenceRecordStream(recs), RunMetadata(run=run, start=0, stop=6))

    o = result.outputs[2]
    assert o.time == pytest.approx(3.0)
    assert o.errors[ErrorKind.INTERPOLATED_TIME]
    assert o.cuts.approx_time
    assert not o.bad_event
    assert result.summary.count(ErrorKind.INTERPOLATED_TIME) == 1
    assert all(out.time_sbc == 0.0 for out in result.outputs)


# -----------------------------------------------------------------------
# Orchestration
# -----------------------------------------------------------------------


def test_error_check_only_stops_after_tally() -> None:
    recs, meta = _desync_run()
    proc = VetoProcessor(SequenceRecordStream(recs), meta)
    result = proc.process(error_check_only=True)
    assert result.outputs is None
    assert result.error_check_only
    assert proc.stage == "done"
    assert result.summary.count(ErrorKind.CLOCK_DESYNC) == 2


def test_passes_must_run_in_order() -> None:
    recs, meta = _desync_run()
    proc = VetoProcessor(SequenceRecordStream(recs), meta)
    with pytest.raises(RuntimeError):
        proc.survey()
    proc.calibrate()
    with pytest.raises(RuntimeError):
        proc.emit()
    with pytest.raises(RuntimeError):
        proc.calibrate()


def test_empty_stream_is_rejected() -> None:
    with pytest.raises(ValueError):
        VetoProcessor(SequenceRecordStream([]), RunMetadata(run=20000, start=0, stop=10))


def test_module2_run_is_rejected() -> None:
    recs = [make_record(0, time_sec=1.0, run=65000000)]
    with pytest.raises(ValueError):
        VetoProcessor(SequenceRecordStream(recs), RunMetadata(run=65000000, start=0, stop=10))


def test_unusable_run_metadata_is_rejected() -> None:
    recs = [make_record(0, time_sec=1.0)]
    with pytest.raises(ValueError):
        VetoProcessor(SequenceRecordStream(recs), RunMetadata(run=-5, start=0, stop=10))
    with pytest.raises(ValueError):
        VetoProcessor(SequenceRecordStream(recs), RunMetadata(run=20000, start=None, stop=10))


def test_corrupted_duration_falls_back_to_timestamps() -> None:
    recs = [make_record(i, time_sec=1.0 + i) for i in range(6)]
    result = process_run(SequenceRecordStream(recs), RunMetadata(run=20000, start=100, stop=100))
    s = result.summary
    assert s.duration == pytest.approx(5.0)
    assert any("Corrupted duration" in w for w in s.warnings)


def test_led_pulses_without_usable_times_flag_bad_led_frequency() -> None:
    # No stop packet and no trusted clock: every LED pulse lands at t=0.
    run = 5000
    recs = []
    for i in range(120):
        qdc = (1500,) * 32 if i % 4 == 0 else None
        recs.append(make_record(i, time_sec=0.0, qdc=qdc, run=run, bad_scaler=True))
    result = process_run(SequenceRecordStream(recs), RunMetadata(run=run, start=100, stop=100))
    s = result.summary

    assert s.simple_led_count == 30
    assert s.bad_led_freq
    assert s.run_errors[ErrorKind.BAD_LED_FREQUENCY]
    assert s.count(ErrorKind.BAD_LED_FREQUENCY) == 1
    assert all(o.cuts.led_off and not o.cuts.is_led for o in result.outputs)
