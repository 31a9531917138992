"""Ingest package - hand-over of decoded veto records.

Raw ORCA packet decoding is done upstream; this package only adapts decoded
records into re-iterable streams.

Key classes:
- RecordStream: protocol every input source satisfies
- SequenceRecordStream: in-memory records
- DataFrameRecordStream: one pandas row per entry
"""
from .stream import (
    DataFrameRecordStream,
    RecordStream,
    SequenceRecordStream,
    records_to_frame,
    run_metadata_from_stream,
)

__all__ = [
    "DataFrameRecordStream",
    "RecordStream",
    "SequenceRecordStream",
    "records_to_frame",
    "run_metadata_from_stream",
]
