"""LED pulser frequency measurement.

The veto LED pulser fires all panels at a roughly fixed rate. Events above a
simple multiplicity threshold are treated as LED candidates; the delta-t
between consecutive candidates is histogrammed in 1 ms bins and the period is
taken as the mean delta-t within +/- 0.1 s of the modal bin.

Short runs (few LED pulses, or a period too long to trust) fall back to
``duration / n_candidates``. Candidates that all share one timestamp give no usable
period and mark the LED frequency unreliable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from veto_analyzer.models.config import VetoConfig

logger = logging.getLogger(__name__)

UNRELIABLE = 9999.0


@dataclass(frozen=True)
class LedStats:
    """Run-level LED measurement.

    ``bad`` is True when the frequency is unreliable or outside the sanity bound;
    the processor then reports BAD_LED_FREQUENCY and treats the LED as off.
    """

    freq: float
    rms: float
    period: float
    simple_count: int
    n_deltas: int
    short_run: bool
    bad: bool
    warnings: Tuple[str, ...] = ()


class LedDetector:
    """Accumulates LED candidate delta-t values over one pass."""

    def __init__(self, config: Optional[VetoConfig] = None):
        self.config = config or VetoConfig()
        self._deltas: List[float] = []
        self._prev_time: Optional[float] = None
        self.simple_count = 0

    def add(self, multiplicity: int, time: float) -> bool:
        """Feed one good event; returns True if it counted as an LED candidate."""
        if multiplicity <= self.config.led_simple_threshold:
            return False
        if self._prev_time is not None:
            self._deltas.append(float(time) - self._prev_time)
        self._prev_time = float(time)
        self.simple_count += 1
        return True

    @property
    def deltas(self) -> np.ndarray:
        return np.asarray(self._deltas, dtype=np.float64)

    def histogram(self) -> Tuple[np.ndarray, np.ndarray]:
        cfg = self.config
        return np.histogram(self.deltas, bins=cfg.led_bins, range=cfg.led_range_s)

    def estimate(self, duration: float, n_entries: int) -> LedStats:
        cfg = self.config
        warnings: List[str] = []
        bad = False

        counts, edges = self.histogram()
        n_deltas = int(counts.sum())
        if n_deltas > 0:
            mode = int(np.argmax(counts))
            # window stays inside the histogrammed range
            lo = max(edges[mode] - cfg.led_window_s, cfg.led_range_s[0])
            hi = min(edges[mode + 1] + cfg.led_window_s, cfg.led_range_s[1])
            d = self.deltas
            win = d[(d >= lo) & (d < hi)]
            mean = float(np.mean(win))
            rms = float(np.sqrt(np.mean((win - mean) ** 2)))
            if mean > 0:
                freq = 1.0 / mean
            else:
                msg = f"LED candidates share one timestamp (mean delta-t {mean:.4g} s), LED frequency unreliable"
                warnings.append(msg)
                logger.warning(msg)
                freq = UNRELIABLE
                bad = True
        else:
            msg = f"No multiplicity > {cfg.led_simple_threshold} events.  LED may be off."
            warnings.append(msg)
            logger.warning(msg)
            rms = UNRELIABLE
            freq = UNRELIABLE
            bad = True

        period = UNRELIABLE if bad else 1.0 / freq
        short_run = not bad and (period > cfg.led_max_period_s or n_entries < cfg.short_run_entries)
        if short_run:
            if self.simple_count >= cfg.led_min_simple_count and duration > 0:
                period = duration / self.simple_count
                msg = (
                    f"Short run: histogram LED freq {freq:.4g} Hz, "
                    f"using approximate rate {self.simple_count / duration:.4g} Hz"
                )
            else:
                period = UNRELIABLE
                bad = True
                msg = f"Short run: only {self.simple_count} LED candidates, LED frequency unreliable"
            warnings.append(msg)
            logger.warning(msg)

        if period > cfg.led_period_bound_s or period <= 0:
            bad = True

        return LedStats(
            freq=float(freq),
            rms=float(rms),
            period=float(period),
            simple_count=int(self.simple_count),
            n_deltas=n_deltas,
            short_run=bool(short_run),
            bad=bool(bad),
            warnings=tuple(warnings),
        )
