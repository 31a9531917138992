"""Four-pass veto run processor.

Pass ordering (each pass re-reads the stream from entry 0)
----------------------------------------------------------
1) ``calibrating``: QDC pedestal scan and software thresholds.
2) ``run_survey``: first good event, SBC offset, highest multiplicity, LED
   frequency and the interpolation time table. Blocking-error events are
   skipped for all of these.
3) ``error_tally``: every entry is classified (nothing skipped) and counted;
   serious errors are logged per entry and the error report is built. A
   validation-only run stops here.
4) ``emitting``: reconciled time, cuts and muon identification. Exactly one
   :class:`~veto_analyzer.models.results.OutputRecord` per entry; bad events
   are flagged, never dropped.

Events within a pass are processed strictly in entry order; the error checks
compare each event only with its immediate predecessor.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional, Tuple

from veto_analyzer.ingest.stream import RecordStream
from veto_analyzer.models.config import VetoConfig
from veto_analyzer.models.errors import N_ERRORS, ErrorKind, ErrorSet
from veto_analyzer.models.event import ChannelThresholds, VetoEvent
from veto_analyzer.models.results import CutFlags, OutputRecord, RunResult, RunSummary
from veto_analyzer.models.run import RunContext, RunMetadata

from .clock import ClockReconciler, TimeEstimate, TimeTable
from .coincidence import MuonId, energy_cut, identify_muon, time_cut
from .event_errors import check_event_errors, clock_offset
from .led import LedDetector
from .report import describe_entry_errors, format_error_report
from .thresholds import CalibrationResult, calibrate_thresholds

logger = logging.getLogger(__name__)

Stage = Literal["calibrating", "run_survey", "error_tally", "emitting", "done"]
_ORDER: Tuple[Stage, ...] = ("calibrating", "run_survey", "error_tally", "emitting", "done")


class VetoProcessor:
    """Drives the four passes over one run and owns all cross-pass state.

    Parameters
    ----------
    stream:
        Re-iterable decoded records of one run.
    run:
        Run metadata (run number, start/stop).
    config:
        Tunable constants; production defaults when omitted.
    """

    def __init__(
        self,
        stream: RecordStream,
        run: RunMetadata,
        *,
        config: Optional[VetoConfig] = None,
    ):
        n = len(stream)
        if n == 0:
            raise ValueError(f"Empty record stream for run {run.run}: nothing to process.")
        # raises ValueError on unusable metadata and Module 2 runs
        run = RunMetadata.validated(run.run, run.start, run.stop)

        self.stream = stream
        self.config = config or VetoConfig()
        self.ctx = RunContext(meta=run, n_entries=n)
        self.stage: Stage = "calibrating"

        self.calibration: Optional[CalibrationResult] = None
        self.error_counts: List[int] = [0] * N_ERRORS
        self.run_errors = ErrorSet()
        self.report = ""
        self.serious_errors = 0
        self.total_errors = 0

    # ------------------------------------------------------------------
    # State machine helpers
    # ------------------------------------------------------------------

    def _enter(self, stage: Stage) -> None:
        if self.stage != stage:
            raise RuntimeError(f"Cannot run pass '{stage}' while processor is at '{self.stage}'.")
        self.ctx.reset_pass()
        logger.debug("Run %d: entering %s", self.ctx.meta.run, stage)

    def _advance(self) -> None:
        self.stage = _ORDER[_ORDER.index(self.stage) + 1]

    @property
    def thresholds(self) -> ChannelThresholds:
        if self.calibration is None:
            raise RuntimeError("Thresholds are not calibrated yet.")
        return self.calibration.thresholds

    def _check(self, ev: VetoEvent):
        return check_event_errors(ev, self.ctx.prev, self.ctx.first, self.ctx.prev_good_entry, config=self.config)

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def calibrate(self) -> CalibrationResult:
        self._enter("calibrating")
        self.calibration = calibrate_thresholds(self.stream, self.ctx.meta, config=self.config)
        self.ctx.warnings.extend(self.calibration.warnings)
        self._advance()
        return self.calibration

    def survey(self) -> None:
        self._enter("run_survey")
        ctx = self.ctx
        cfg = self.config
        thr = self.thresholds
        n = ctx.n_entries
        led = LedDetector(cfg)

        times: List[float] = []
        entries: List[int] = []
        bad: List[bool] = []
        for rec in self.stream:
            ev = VetoEvent(rec, thr)
            i = ev.entry
            if not ev.bad_scaler:
                x = float(ev.time_sec)
            else:
                # provisional; breaks down if the run duration is corrupted
                x = (i / n) * ctx.duration
            times.append(x)
            entries.append(i)
            bad.append(bool(ev.bad_scaler))

            if ctx.first_good_scaler is None and not ev.flag(ErrorKind.BAD_TIMESTAMP):
                ctx.first_good_scaler = float(ev.time_sec)

            check = self._check(ev)
            if check.skip:
                ctx.skipped += 1
            else:
                if (
                    ctx.first is None
                    and ev.time_sbc > 0
                    and ev.time_sec > 0
                    and not ev.flag(ErrorKind.BAD_TIMESTAMP)
                ):
                    ctx.first = ev
                ctx.highest_multip = max(ctx.highest_multip, ev.multiplicity)
                led.add(ev.multiplicity, x)

            ctx.prev_good_time = x
            ctx.end_of_event(ev)

        if ctx.skipped > 0:
            logger.info("Run survey skipped %d of %d entries.", ctx.skipped, n)

        ctx.clock_offset = clock_offset(ctx.first)
        if ctx.first is None:
            msg = "No good entry with both scaler and SBC times; clock checks disabled."
            ctx.warnings.append(msg)
            logger.warning(msg)

        first_scaler = ctx.first_good_scaler if ctx.first_good_scaler is not None else 0.0
        if ctx.duration <= 0:
            fallback = ctx.prev_good_time - first_scaler
            msg = (
                f"Corrupted duration ({ctx.duration}, start {ctx.start} stop {ctx.stop}). "
                f"Did we get a stop packet?  Using last good timestamp: {fallback}"
            )
            ctx.warnings.append(msg)
            logger.warning(msg)
            ctx.duration = fallback

        first_time = ctx.first.time_sec if ctx.first is not None else first_scaler
        ctx.livetime = ctx.duration - (first_time - first_scaler)
        logger.info("Veto livetime: %s seconds", ctx.livetime)

        ctx.multip_threshold = max(0, ctx.highest_multip - cfg.led_multip_margin)

        ctx.led = led.estimate(ctx.duration, n)
        ctx.warnings.extend(ctx.led.warnings)
        if ctx.led.bad:
            self.run_errors = self.run_errors.with_errors([ErrorKind.BAD_LED_FREQUENCY])

        ctx.time_table = TimeTable(times, entries, bad)
        self._advance()

    def tally(self) -> str:
        self._enter("error_tally")
        ctx = self.ctx
        thr = self.thresholds
        clock = ClockReconciler(ctx.clock_offset, ctx.meta.run, ctx.time_table, config=self.config)

        ts_difference = 0.0
        for rec in self.stream:
            ev = VetoEvent(rec, thr)
            check = self._check(ev)
            if check.skip:
                ctx.skipped += 1
            est = clock.select(ev)
            errors = _with_interpolation(check.errors, est)
            for k in errors.kinds:
                self.error_counts[k] += 1

            ctx.time_table.update(ev.entry, est.time)

            if errors.serious:
                lines = describe_entry_errors(
                    ev, ctx.prev, errors, time=est.time, time_sbc=est.time_sbc, ts_difference=ts_difference
                )
                logger.warning("Serious errors found in entry %d:\n%s", ev.entry, "\n".join(lines))

            ts_difference = ev.time_sec - est.time_sbc
            ctx.end_of_event(ev)

        self.run_errors = self.run_errors.with_errors(self.calibration.run_errors.kinds)
        for k in self.run_errors.kinds:
            self.error_counts[k] += 1

        self.report, totals = format_error_report(
            self.error_counts,
            n_entries=ctx.n_entries,
            led=ctx.led,
            duration=ctx.duration,
            livetime=ctx.livetime,
            run_errors=self.run_errors,
        )
        self.serious_errors = totals.serious
        self.total_errors = totals.total
        for line in self.report.splitlines():
            logger.info(line)
        self._advance()
        return self.report

    def emit(self) -> Tuple[OutputRecord, ...]:
        self._enter("emitting")
        ctx = self.ctx
        cfg = self.config
        thr = self.thresholds
        clock = ClockReconciler(ctx.clock_offset, ctx.meta.run, ctx.time_table, config=cfg)
        led_off = bool(ctx.led.bad)

        logger.info(
            "Highest multiplicity found: %d.  Using LED threshold: %d", ctx.highest_multip, ctx.multip_threshold
        )

        outputs: List[OutputRecord] = []
        prev_led_time: Optional[float] = None
        seen_led = False
        for rec in self.stream:
            ev = VetoEvent(rec, thr)
            check = self._check(ev)
            est = clock.estimate(ev, desync=check.errors[ErrorKind.CLOCK_DESYNC])
            errors = _with_interpolation(check.errors, est)
            led_dt = est.time - prev_led_time if prev_led_time is not None else -1.0

            if check.skip:
                ctx.skipped += 1
                cuts = CutFlags(led_off=led_off, approx_time=est.approximate, bad_led_freq=led_off)
                outputs.append(_output(ev, est, errors, True, cuts, led_dt, None))
                ctx.end_of_event(ev)
                continue

            tcut = time_cut(ev.multiplicity, ctx.multip_threshold, led_off)
            is_led = not tcut
            ecut = energy_cut(ev.qdc, cfg)
            muon = identify_muon(ev, energy=ecut, time=tcut)
            if muon.candidate:
                logger.info(
                    "Hit: %-12s Entry %-4d Time %-6.2f  QDC %-5d  Mult %d  LEDoff %d  ApxT %d",
                    muon.kind.label,
                    ev.entry,
                    est.time,
                    sum(ev.qdc),
                    ev.multiplicity,
                    led_off,
                    est.approximate,
                )

            cuts = CutFlags(
                led_off=led_off,
                energy_cut=ecut,
                approx_time=est.approximate,
                time_cut=tcut,
                is_led=is_led,
                first_led=is_led and not seen_led,
                bad_led_freq=led_off,
            )
            outputs.append(_output(ev, est, errors, False, cuts, led_dt, muon))

            if is_led:
                prev_led_time = est.time
                seen_led = True
            ctx.end_of_event(ev)

        if ctx.skipped > 0:
            logger.info("Flagged %d of %d entries as bad events.", ctx.skipped, ctx.n_entries)
        self._advance()
        return tuple(outputs)

    # ------------------------------------------------------------------

    def summary(self) -> RunSummary:
        ctx = self.ctx
        led = ctx.led
        return RunSummary(
            run=ctx.meta.run,
            n_entries=ctx.n_entries,
            thresholds=self.thresholds.values,
            led_freq=led.freq,
            led_rms=led.rms,
            led_period=led.period,
            bad_led_freq=led.bad,
            simple_led_count=led.simple_count,
            highest_multip=ctx.highest_multip,
            multip_threshold=ctx.multip_threshold,
            error_counts=tuple(self.error_counts),
            run_errors=self.run_errors,
            serious_error_count=self.serious_errors,
            total_error_count=self.total_errors,
            start=ctx.start,
            stop=ctx.stop,
            duration=ctx.duration,
            livetime=ctx.livetime,
            skipped_events=ctx.skipped,
            report=self.report,
            warnings=tuple(ctx.warnings),
        )

    def process(self, *, error_check_only: bool = False) -> RunResult:
        """Run all passes in order. ``error_check_only`` stops after the error tally."""
        logger.info(
            "========= Processing run %d ... %d entries. =========", self.ctx.meta.run, self.ctx.n_entries
        )
        cal = self.calibrate()
        logger.info("QDC1 in slot %d, QDC2 in slot %d", *self.ctx.meta.qdc_cards)
        logger.debug("Thresholds: %s", list(cal.thresholds.values))
        self.survey()
        self.tally()
        if error_check_only:
            self.stage = "done"
            return RunResult(summary=self.summary())
        outputs = self.emit()
        logger.info("=================== Done processing. ====================")
        return RunResult(summary=self.summary(), outputs=outputs)


def _with_interpolation(errors: ErrorSet, est: TimeEstimate) -> ErrorSet:
    if est.interpolated:
        return errors.with_errors([ErrorKind.INTERPOLATED_TIME])
    return errors


def _output(
    ev: VetoEvent,
    est: TimeEstimate,
    errors: ErrorSet,
    bad_event: bool,
    cuts: CutFlags,
    led_dt: float,
    muon: Optional[MuonId],
) -> OutputRecord:
    extra = {}
    if muon is not None:
        extra = dict(
            muon_candidate=muon.candidate,
            coincidence=muon.kind.label,
            coin_flags=muon.flags,
            plane_hits=muon.planes.counts,
            plane_true=muon.planes.hit,
            plane_hit_count=muon.planes.hit_count,
        )
    return OutputRecord(
        entry=ev.entry,
        run=ev.run,
        time=float(est.time),
        time_sbc=float(est.time_sbc),
        led_delta_t=float(led_dt),
        qdc=ev.qdc,
        relative_qdc=ev.relative_qdc,
        multiplicity=ev.multiplicity,
        errors=errors,
        bad_event=bad_event,
        cuts=cuts,
        **extra,
    )


def process_run(
    stream: RecordStream,
    run: RunMetadata,
    *,
    config: Optional[VetoConfig] = None,
    error_check_only: bool = False,
) -> RunResult:
    """Convenience wrapper: build a :class:`VetoProcessor` and run it."""
    return VetoProcessor(stream, run, config=config).process(error_check_only=error_check_only)
