"""Re-iterable record streams.

Every processing pass re-reads the run from entry 0, so a stream must be
re-iterable and must reproduce identical records on each iteration. Raw
packet decoding happens upstream; these adapters only hand over decoded
:class:`~veto_analyzer.models.event.VetoRecord` values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np
import pandas as pd

from veto_analyzer.models.event import N_CHANNELS, N_STRUCTURAL_FLAGS, VetoRecord
from veto_analyzer.models.run import RunMetadata

QDC_COLUMNS: Tuple[str, ...] = tuple(f"qdc_{i}" for i in range(N_CHANNELS))
FLAG_COLUMNS: Tuple[str, ...] = tuple(f"err_{i}" for i in range(N_STRUCTURAL_FLAGS))
SCALAR_COLUMNS: Tuple[str, ...] = (
    "run",
    "time_sec",
    "sec",
    "time_sbc",
    "qec",
    "qec2",
    "scaler_index",
    "qdc1_index",
    "qdc2_index",
    "bad_scaler",
)


class RecordStream(Protocol):
    """Random-access, re-iterable sequence of decoded records."""

    def __len__(self) -> int: ...

    def __iter__(self) -> Iterator[VetoRecord]: ...


class SequenceRecordStream:
    """In-memory stream; ``entry`` must equal each record's position."""

    def __init__(self, records: Iterable[VetoRecord]):
        recs: List[VetoRecord] = []
        for i, r in enumerate(records):
            if r.entry != i:
                raise ValueError(f"Record at position {i} carries entry={r.entry}; streams must be in entry order.")
            recs.append(r)
        self._records: Tuple[VetoRecord, ...] = tuple(recs)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[VetoRecord]:
        return iter(self._records)

    def __getitem__(self, i: int) -> VetoRecord:
        return self._records[i]


@dataclass(frozen=True)
class DataFrameRecordStream:
    """
    Stream over a pandas DataFrame with one row per entry.

    Required columns: ``qdc_0..qdc_31``, ``run``, ``time_sec``, ``sec``.
    Optional columns (default 0/False): ``time_sbc``, ``qec``, ``qec2``,
    ``scaler_index``, ``qdc1_index``, ``qdc2_index``, ``bad_scaler``,
    ``err_0..err_17``.
    """
    df: pd.DataFrame

    def __post_init__(self) -> None:
        required = list(QDC_COLUMNS) + ["run", "time_sec", "sec"]
        missing = [c for c in required if c not in self.df.columns]
        if missing:
            raise KeyError(f"Missing required columns in record frame: {missing}")

    def __len__(self) -> int:
        return int(len(self.df))

    def _column(self, name: str, dtype, default) -> np.ndarray:
        if name in self.df.columns:
            return self.df[name].to_numpy(dtype=dtype)
        return np.full(len(self.df), default, dtype=dtype)

    def __iter__(self) -> Iterator[VetoRecord]:
        df = self.df
        qdc = df[list(QDC_COLUMNS)].to_numpy(dtype=np.int64)
        flags = np.column_stack([self._column(c, bool, False) for c in FLAG_COLUMNS])
        run = self._column("run", np.int64, 0)
        time_sec = self._column("time_sec", np.float64, 0.0)
        sec = self._column("sec", np.int64, 0)
        time_sbc = self._column("time_sbc", np.float64, 0.0)
        qec = self._column("qec", np.int64, 0)
        qec2 = self._column("qec2", np.int64, 0)
        s_idx = self._column("scaler_index", np.int64, 0)
        q1_idx = self._column("qdc1_index", np.int64, 0)
        q2_idx = self._column("qdc2_index", np.int64, 0)
        bad = self._column("bad_scaler", bool, False)

        for i in range(len(df)):
            yield VetoRecord(
                entry=i,
                run=int(run[i]),
                qdc=tuple(int(q) for q in qdc[i]),
                time_sec=float(time_sec[i]),
                sec=int(sec[i]),
                time_sbc=float(time_sbc[i]),
                qec=int(qec[i]),
                qec2=int(qec2[i]),
                scaler_index=int(s_idx[i]),
                qdc1_index=int(q1_idx[i]),
                qdc2_index=int(q2_idx[i]),
                structural=tuple(bool(f) for f in flags[i]),
                bad_scaler=bool(bad[i]),
            )


def records_to_frame(records: Sequence[VetoRecord]) -> pd.DataFrame:
    """Flatten records into the column layout read by :class:`DataFrameRecordStream`."""
    rows = []
    for r in records:
        row = {
            "run": r.run,
            "time_sec": r.time_sec,
            "sec": r.sec,
            "time_sbc": r.time_sbc,
            "qec": r.qec,
            "qec2": r.qec2,
            "scaler_index": r.scaler_index,
            "qdc1_index": r.qdc1_index,
            "qdc2_index": r.qdc2_index,
            "bad_scaler": r.bad_scaler,
        }
        row.update({c: q for c, q in zip(QDC_COLUMNS, r.qdc)})
        row.update({c: f for c, f in zip(FLAG_COLUMNS, r.structural)})
        rows.append(row)
    return pd.DataFrame(rows, columns=list(SCALAR_COLUMNS) + list(QDC_COLUMNS) + list(FLAG_COLUMNS))


def peek_run_number(stream: RecordStream) -> Optional[int]:
    """Run number of the first record, or None for an empty stream."""
    for rec in stream:
        return int(rec.run)
    return None


def run_metadata_from_stream(stream: RecordStream, start: int, stop: int) -> RunMetadata:
    """Build validated run metadata, taking the run number from the first record."""
    run = peek_run_number(stream)
    if run is None:
        raise ValueError("Empty record stream: no entries to process.")
    return RunMetadata.validated(run, start, stop)
