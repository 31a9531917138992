"""Synthetic veto runs with known properties.

Used by the test-suite and for validating threshold, LED and clock behaviour
without detector data. Generators are deterministic for a given seed.

Conventions:
- Counters (SEC, QEC1, QEC2) are ``entry + 1`` so no reset/jump errors occur.
- The SBC clock equals scaler time + ``sbc_offset``.
- Run numbers default to an era where the SBC is trusted and all 32 panels exist.
"""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from veto_analyzer.models.event import N_CHANNELS, N_STRUCTURAL_FLAGS, VetoRecord
from veto_analyzer.models.run import RunMetadata

DEFAULT_RUN = 20000
DEFAULT_START = 1_600_000_000
DEFAULT_SBC_OFFSET = 1000.0


def make_record(
    entry: int,
    *,
    time_sec: float,
    qdc: Optional[Sequence[int]] = None,
    pedestal: int = 50,
    run: int = DEFAULT_RUN,
    sbc_offset: float = DEFAULT_SBC_OFFSET,
    time_sbc: Optional[float] = None,
    counter: Optional[int] = None,
    flags: Iterable[int] = (),
    bad_scaler: bool = False,
) -> VetoRecord:
    """One record with consistent clocks and counters.

    ``qdc`` defaults to every channel at ``pedestal``; ``flags`` lists the
    structural error slots to raise.
    """
    c = entry + 1 if counter is None else int(counter)
    structural = [False] * N_STRUCTURAL_FLAGS
    for f in flags:
        structural[int(f)] = True
    return VetoRecord(
        entry=int(entry),
        run=int(run),
        qdc=tuple(qdc) if qdc is not None else (int(pedestal),) * N_CHANNELS,
        time_sec=float(time_sec),
        sec=c,
        time_sbc=float(time_sec + sbc_offset) if time_sbc is None else float(time_sbc),
        qec=c,
        qec2=c,
        scaler_index=3 * entry,
        qdc1_index=3 * entry + 1,
        qdc2_index=3 * entry + 2,
        structural=tuple(structural),
        bad_scaler=bool(bad_scaler),
    )


def make_veto_run(
    n_events: int = 200,
    *,
    n_led: int = 30,
    led_period: float = 2.0,
    led_qdc: int = 1500,
    pedestal: float = 50.0,
    noise: float = 5.0,
    run: int = DEFAULT_RUN,
    start: int = DEFAULT_START,
    sbc_offset: float = DEFAULT_SBC_OFFSET,
    seed: int = 0,
) -> Tuple[List[VetoRecord], RunMetadata]:
    """A run of pedestal-only events with LED pulses every ``led_period`` seconds.

    LED pulses fire every panel at ``led_qdc`` starting at t=0. The remaining
    ``n_events - n_led`` entries are spread evenly between pulses with Gaussian
    pedestal noise on every channel.

    Returns
    -------
    records, meta
        Records in time order (entry = position) and matching run metadata.
    """
    if n_led > n_events:
        raise ValueError(f"n_led={n_led} exceeds n_events={n_events}")
    rng = np.random.default_rng(seed)
    duration = max(n_led * led_period, 1.0)

    n_noise = n_events - n_led
    led_times = [k * led_period for k in range(n_led)]
    noise_times = list(np.linspace(0.0, duration, n_noise + 2)[1:-1]) if n_noise else []

    timeline = [(t, True) for t in led_times] + [(float(t), False) for t in noise_times]
    timeline.sort(key=lambda x: (x[0], not x[1]))

    records: List[VetoRecord] = []
    for entry, (t, is_led) in enumerate(timeline):
        if is_led:
            qdc = (int(led_qdc),) * N_CHANNELS
        else:
            vals = np.rint(rng.normal(pedestal, noise, N_CHANNELS)).astype(int)
            qdc = tuple(int(max(v, 0)) for v in vals)
        records.append(make_record(entry, time_sec=t, qdc=qdc, run=run, sbc_offset=sbc_offset))

    meta = RunMetadata(run=run, start=start, stop=start + int(math.ceil(duration)))
    return records, meta


def shift_clock(records: Sequence[VetoRecord], from_entry: int, *, scaler: float = 0.0, sbc: float = 0.0) -> List[VetoRecord]:
    """Copy of ``records`` with the scaler and/or SBC clock shifted from ``from_entry`` on."""
    out = []
    for r in records:
        if r.entry >= from_entry:
            r = replace(r, time_sec=r.time_sec + scaler, time_sbc=r.time_sbc + sbc)
        out.append(r)
    return out
