from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

N_CHANNELS = 32
N_STRUCTURAL_FLAGS = 18

THRESHOLD_NOT_FOUND = -1
THRESHOLD_NEVER_FIRES = 9999


@dataclass(frozen=True)
class VetoRecord:
    """
    One decoded veto entry, as delivered by the decoding collaborator.

    Notes
    - ``qdc`` holds exactly 32 channel amplitudes.
    - ``structural`` holds the 18 integrity flags computed by the decoder
      (index 0 unused). They are copied, never re-derived.
    - ``time_sec`` is the scaler (primary) clock, ``time_sbc`` the raw SBC
      (auxiliary) clock. Both are seconds.
    """
    entry: int
    run: int
    qdc: Tuple[int, ...]
    time_sec: float
    sec: int
    time_sbc: float = 0.0
    qec: int = 0
    qec2: int = 0
    scaler_index: int = 0
    qdc1_index: int = 0
    qdc2_index: int = 0
    structural: Tuple[bool, ...] = (False,) * N_STRUCTURAL_FLAGS
    bad_scaler: bool = False

    def __post_init__(self) -> None:
        qdc = tuple(int(q) for q in self.qdc)
        if len(qdc) != N_CHANNELS:
            raise ValueError(f"VetoRecord needs {N_CHANNELS} QDC values, got {len(qdc)}")
        flags = tuple(bool(f) for f in self.structural)
        if len(flags) != N_STRUCTURAL_FLAGS:
            raise ValueError(f"VetoRecord needs {N_STRUCTURAL_FLAGS} structural flags, got {len(flags)}")
        object.__setattr__(self, "qdc", qdc)
        object.__setattr__(self, "structural", flags)

    def flag(self, i: int) -> bool:
        return bool(self.structural[i]) if 0 <= i < N_STRUCTURAL_FLAGS else False


@dataclass(frozen=True)
class ChannelThresholds:
    """Software QDC threshold per channel.

    ``-1`` means no pedestal was found, ``9999`` means the channel is absent
    for this run and never fires.
    """
    values: Tuple[int, ...]

    def __post_init__(self) -> None:
        vals = tuple(int(v) for v in self.values)
        if len(vals) != N_CHANNELS:
            raise ValueError(f"ChannelThresholds needs {N_CHANNELS} values, got {len(vals)}")
        object.__setattr__(self, "values", vals)

    @classmethod
    def disabled(cls) -> "ChannelThresholds":
        """Calibration baseline: every channel with a positive reading hits."""
        return cls((1,) * N_CHANNELS)

    @classmethod
    def from_sequence(cls, values: Sequence[int]) -> "ChannelThresholds":
        return cls(tuple(values))

    def __getitem__(self, i: int) -> int:
        return self.values[i]

    def __len__(self) -> int:
        return N_CHANNELS

    @property
    def not_found(self) -> Tuple[int, ...]:
        return tuple(i for i, v in enumerate(self.values) if v == THRESHOLD_NOT_FOUND)


@dataclass(frozen=True)
class VetoEvent:
    """A record evaluated against a threshold set.

    Built fresh for every entry of every pass; run-level state keeps these
    values as snapshots, so there is no shared mutable accumulator.
    """
    record: VetoRecord
    thresholds: ChannelThresholds
    hits: Tuple[bool, ...] = field(init=False)
    multiplicity: int = field(init=False)

    def __post_init__(self) -> None:
        hits = tuple(q > t for q, t in zip(self.record.qdc, self.thresholds.values))
        object.__setattr__(self, "hits", hits)
        object.__setattr__(self, "multiplicity", int(sum(hits)))

    # Convenience pass-throughs used throughout the analysis code.
    @property
    def entry(self) -> int:
        return self.record.entry

    @property
    def run(self) -> int:
        return self.record.run

    @property
    def qdc(self) -> Tuple[int, ...]:
        return self.record.qdc

    @property
    def time_sec(self) -> float:
        return self.record.time_sec

    @property
    def time_sbc(self) -> float:
        return self.record.time_sbc

    @property
    def sec(self) -> int:
        return self.record.sec

    @property
    def qec(self) -> int:
        return self.record.qec

    @property
    def qec2(self) -> int:
        return self.record.qec2

    @property
    def bad_scaler(self) -> bool:
        return self.record.bad_scaler

    def flag(self, i: int) -> bool:
        return self.record.flag(i)

    @property
    def relative_qdc(self) -> Tuple[int, ...]:
        return tuple(q - t for q, t in zip(self.record.qdc, self.thresholds.values))


def empty_event(thresholds: Optional[ChannelThresholds] = None) -> VetoEvent:
    """The "no previous event" snapshot: all counters and clocks zero, entry -1."""
    rec = VetoRecord(entry=-1, run=0, qdc=(0,) * N_CHANNELS, time_sec=0.0, sec=0)
    return VetoEvent(rec, thresholds or ChannelThresholds.disabled())
