"""Flatten processor output for persistence collaborators.

Rows use plain Python scalars so the resulting DataFrame can be written to
CSV/parquet without object columns, except ``qdc``-style vectors which are
expanded into one column per channel/plane.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

import pandas as pd

from veto_analyzer.models.errors import N_ERRORS
from veto_analyzer.models.results import OutputRecord, RunSummary

CUT_NAMES = ("led_off", "energy_cut", "approx_time", "time_cut", "is_led", "first_led", "bad_led_freq")
COIN_NAMES = ("coin_candidate", "coin_vertical", "coin_side_bottom", "coin_top_sides")


def output_row(rec: OutputRecord) -> Dict[str, object]:
    row: Dict[str, object] = {
        "run": rec.run,
        "entry": rec.entry,
        "time": rec.time,
        "time_sbc": rec.time_sbc,
        "led_delta_t": rec.led_delta_t,
        "multiplicity": rec.multiplicity,
        "bad_event": rec.bad_event,
        "muon_candidate": rec.muon_candidate,
        "coincidence": rec.coincidence,
        "plane_hit_count": rec.plane_hit_count,
    }
    for name, v in zip(CUT_NAMES, rec.cuts.as_tuple()):
        row[name] = bool(v)
    for name, v in zip(COIN_NAMES, rec.coin_flags):
        row[name] = bool(v)
    for i, q in enumerate(rec.qdc):
        row[f"qdc_{i}"] = int(q)
    for i, q in enumerate(rec.relative_qdc):
        row[f"rel_qdc_{i}"] = int(q)
    for k in range(12):
        row[f"plane_hits_{k}"] = int(rec.plane_hits[k])
        row[f"plane_true_{k}"] = bool(rec.plane_true[k])
    for k in range(1, N_ERRORS):
        row[f"error_{k}"] = bool(rec.errors[k])
    return row


def outputs_to_frame(records: Sequence[OutputRecord]) -> pd.DataFrame:
    """One row per emitted entry, in entry order."""
    rows: List[Dict[str, object]] = [output_row(r) for r in records]
    return pd.DataFrame(rows)


def summary_to_frame(summary: RunSummary) -> pd.DataFrame:
    """Single-row run summary with per-channel thresholds and per-kind error counts."""
    d = summary.as_dict()
    row: Dict[str, object] = {k: v for k, v in d.items() if k not in ("thresholds", "error_counts", "run_errors")}
    for i, t in enumerate(summary.thresholds):
        row[f"thresh_{i}"] = int(t)
    for k in range(1, N_ERRORS):
        row[f"error_count_{k}"] = summary.count(k)
    return pd.DataFrame([row])
