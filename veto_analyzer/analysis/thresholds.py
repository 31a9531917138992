"""QDC software-threshold finder.

For each channel the QDC pedestal (zero-signal baseline) is located in a
histogram of raw QDC values, and the software threshold is set a fixed margin
above it:

1) Scan the run with every channel enabled, skipping structurally broken
   entries, and histogram each channel's QDC.
2) Find the first bin above the noise floor, then the highest bin within
   ``[first - 10, first + 50]``; its centre is the pedestal position.
3) ``threshold = int(pedestal + margin)``.
4) Re-scan with the new thresholds to build the multiplicity distribution
   and per-channel hit counts (diagnostics only).

Sentinels: ``-1`` when no bin exceeds the noise floor, ``9999`` for channels
that are physically absent in the run's detector configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from veto_analyzer.ingest.stream import RecordStream
from veto_analyzer.models.config import VetoConfig
from veto_analyzer.models.errors import ErrorKind, ErrorSet
from veto_analyzer.models.event import (
    N_CHANNELS,
    THRESHOLD_NEVER_FIRES,
    THRESHOLD_NOT_FOUND,
    ChannelThresholds,
    VetoEvent,
)
from veto_analyzer.models.run import RunMetadata, channel_disabled

from .event_errors import check_event_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationResult:
    """Output of :func:`calibrate_thresholds`.

    Attributes
    ----------
    thresholds:
        Calibrated software thresholds.
    pedestals:
        Pedestal bin centre per channel, ``nan`` where not found or disabled.
    low_hist, full_hist:
        QDC histograms, shape ``(32, low_bins)`` and ``(32, full_bins)``.
    low_edges, full_edges:
        Matching bin edges.
    multiplicity_hist:
        Counts of good events per multiplicity ``0..32`` with the new thresholds.
    channel_hits:
        Good events above threshold, per channel.
    skipped:
        Entries excluded from the threshold scan.
    run_errors:
        Run-level THRESHOLD_NOT_FOUND / NO_EVENTS_ABOVE_THRESHOLD flags.
    """

    thresholds: ChannelThresholds
    pedestals: np.ndarray
    low_hist: np.ndarray
    low_edges: np.ndarray
    full_hist: np.ndarray
    full_edges: np.ndarray
    multiplicity_hist: np.ndarray
    channel_hits: np.ndarray
    skipped: int
    run_errors: ErrorSet
    warnings: Tuple[str, ...] = ()


def find_pedestal_threshold(
    counts: np.ndarray,
    edges: np.ndarray,
    *,
    margin: int = 35,
    noise_floor: float = 1.0,
    window: Tuple[int, int] = (10, 50),
) -> Tuple[int, Optional[float]]:
    """Locate the pedestal in one channel's QDC histogram.

    Returns ``(threshold, pedestal_centre)``; ``(-1, None)`` when no bin
    exceeds ``noise_floor``. Ties in the search window go to the lowest bin.
    """
    c = np.asarray(counts)
    e = np.asarray(edges, dtype=np.float64)
    if e.size != c.size + 1:
        raise ValueError(f"edges must have len(counts)+1 entries, got {e.size} for {c.size} bins")

    above = np.flatnonzero(c > noise_floor)
    if above.size == 0:
        return THRESHOLD_NOT_FOUND, None

    first = int(above[0])
    below_w, above_w = window
    lo = max(0, first - int(below_w))
    hi = min(c.size - 1, first + int(above_w))
    mode = lo + int(np.argmax(c[lo : hi + 1]))
    centre = 0.5 * (e[mode] + e[mode + 1])
    return int(centre + margin), float(centre)


def _histogram_rows(values: np.ndarray, bins: int, rng: Tuple[float, float]) -> Tuple[np.ndarray, np.ndarray]:
    """Per-channel histograms of an (n_events, 32) array with half-open bins."""
    edges = np.linspace(rng[0], rng[1], bins + 1)
    hist = np.zeros((N_CHANNELS, bins), dtype=np.int64)
    if values.size == 0:
        return hist, edges
    width = (rng[1] - rng[0]) / bins
    idx = np.floor((values - rng[0]) / width).astype(np.int64)
    for ch in range(N_CHANNELS):
        col = idx[:, ch]
        col = col[(col >= 0) & (col < bins)]
        hist[ch] = np.bincount(col, minlength=bins)
    return hist, edges


def calibrate_thresholds(
    stream: RecordStream,
    run: RunMetadata,
    *,
    config: Optional[VetoConfig] = None,
) -> CalibrationResult:
    """Compute per-channel software thresholds from a full pre-scan of the run."""
    cfg = config or VetoConfig()
    baseline = ChannelThresholds.disabled()

    rows = []
    skipped = 0
    prev: Optional[VetoEvent] = None
    prev_good_entry = 0
    for rec in stream:
        ev = VetoEvent(rec, baseline)
        # No first-good event during calibration: only structural errors can block.
        check = check_event_errors(ev, prev, None, prev_good_entry, config=cfg)
        prev = ev
        prev_good_entry = ev.entry
        if check.skip:
            skipped += 1
            continue
        rows.append(rec.qdc)

    qdc = np.asarray(rows, dtype=np.float64).reshape((-1, N_CHANNELS))
    low_hist, low_edges = _histogram_rows(qdc, cfg.low_bins, cfg.low_range)
    full_hist, full_edges = _histogram_rows(qdc, cfg.full_bins, cfg.full_range)

    warnings = []
    if skipped > 0:
        msg = f"Threshold finder skipped {skipped} of {len(stream)} entries."
        warnings.append(msg)
        logger.info(msg)

    values = []
    pedestals = np.full(N_CHANNELS, np.nan)
    for ch in range(N_CHANNELS):
        if channel_disabled(run.run, ch):
            values.append(THRESHOLD_NEVER_FIRES)
            continue
        thr, ped = find_pedestal_threshold(
            low_hist[ch],
            low_edges,
            margin=cfg.threshold_margin,
            noise_floor=cfg.noise_floor,
            window=cfg.pedestal_window,
        )
        values.append(thr)
        if ped is not None:
            pedestals[ch] = ped
    thresholds = ChannelThresholds(tuple(values))

    multiplicity_hist, channel_hits = _rescan(stream, thresholds, cfg)

    run_errors = ErrorSet()
    if thresholds.not_found:
        run_errors = run_errors.with_errors([ErrorKind.THRESHOLD_NOT_FOUND])
        msg = f"QDC threshold not found for channels {list(thresholds.not_found)}"
        warnings.append(msg)
        logger.warning(msg)
    dead = [
        ch
        for ch in range(N_CHANNELS)
        if thresholds[ch] not in (THRESHOLD_NOT_FOUND, THRESHOLD_NEVER_FIRES) and channel_hits[ch] == 0
    ]
    if dead:
        run_errors = run_errors.with_errors([ErrorKind.NO_EVENTS_ABOVE_THRESHOLD])
        msg = f"No events above QDC threshold in channels {dead}"
        warnings.append(msg)
        logger.warning(msg)

    return CalibrationResult(
        thresholds=thresholds,
        pedestals=pedestals,
        low_hist=low_hist,
        low_edges=low_edges,
        full_hist=full_hist,
        full_edges=full_edges,
        multiplicity_hist=multiplicity_hist,
        channel_hits=channel_hits,
        skipped=skipped,
        run_errors=run_errors,
        warnings=tuple(warnings),
    )


def _rescan(
    stream: RecordStream,
    thresholds: ChannelThresholds,
    cfg: VetoConfig,
) -> Tuple[np.ndarray, np.ndarray]:
    multip = np.zeros(N_CHANNELS + 1, dtype=np.int64)
    hits = np.zeros(N_CHANNELS, dtype=np.int64)
    prev: Optional[VetoEvent] = None
    prev_good_entry = 0
    for rec in stream:
        ev = VetoEvent(rec, thresholds)
        check = check_event_errors(ev, prev, None, prev_good_entry, config=cfg)
        prev = ev
        prev_good_entry = ev.entry
        if check.skip:
            continue
        multip[ev.multiplicity] += 1
        hits += np.asarray(ev.hits, dtype=np.int64)
    return multip, hits
