from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class VetoConfig:
    """
    Tunable constants for veto processing. Defaults reproduce production.

    Threshold finder
      threshold_margin:
        QDC units above the pedestal mode at which the software threshold sits.
      noise_floor:
        A histogram bin must hold more than this many counts to start the
        pedestal search.
      pedestal_window:
        (below, above) bin offsets around the first populated bin searched
        for the pedestal mode.
      low_bins / low_range, full_bins / full_range:
        QDC histogram binning (pedestal search, and full-range diagnostics).

    Clock checks
      desync_tolerance_s:
        Maximum allowed disagreement between scaler and SBC deltas.
      resync_tolerance_s:
        Scaler-SBC difference below which a jump is considered recovered.

    LED (periodic pulser)
      led_multip_margin:
        LED multiplicity threshold = highest multiplicity - this margin.
      led_simple_threshold:
        Multiplicity above which an event counts toward the LED frequency.
      led_window_s:
        Half-width around the modal delta-t bin used for the frequency.
      led_bin_s / led_range_s:
        Delta-t histogram binning.
      led_max_period_s, short_run_entries, led_min_simple_count:
        Short-run fallback rule.
      led_period_bound_s:
        Sanity upper bound on the LED period.

    Muon ID
      energy_threshold / energy_min_channels:
        Energy cut: at least this many channels above this QDC value.
    """
    threshold_margin: int = 35
    noise_floor: float = 1.0
    pedestal_window: Tuple[int, int] = (10, 50)
    low_bins: int = 500
    low_range: Tuple[float, float] = (0.0, 500.0)
    full_bins: int = 420
    full_range: Tuple[float, float] = (0.0, 4200.0)

    desync_tolerance_s: float = 2.0
    resync_tolerance_s: float = 0.001

    led_multip_margin: int = 5
    led_simple_threshold: int = 10
    led_window_s: float = 0.1
    led_bin_s: float = 0.001
    led_range_s: Tuple[float, float] = (0.0, 100.0)
    led_max_period_s: float = 9.0
    short_run_entries: int = 100
    led_min_simple_count: int = 3
    led_period_bound_s: float = 20.0

    energy_threshold: int = 500
    energy_min_channels: int = 2

    @property
    def led_bins(self) -> int:
        lo, hi = self.led_range_s
        return int(round((hi - lo) / self.led_bin_s))
