"""Veto error taxonomy.

Event-level checks (``s`` marks a blocking kind that sets ``skip``)::

    s  1 missing channels (< 32 veto datas in event)
    s  2 extra channels (> 32 veto datas in event)
    s  3 scaler only (no QDC data)
       4 bad timestamp (FFFF FFFF FFFF FFFF)
    s  5 QDC index - scaler index != 1 or 2
    s  6 duplicate channels
       7 hardware count mismatch (SEC - QEC != 1 or 2)
       8 run number doesn't match input file
    s  9 QDC data cast failed
      10 scaler event count doesn't match entry
      11 scaler event count doesn't match QDC1 event count
      12 QDC1 event count doesn't match QDC2 event count
    s 13 indexes of QDC1 and scaler differ by more than 2
    s 14 indexes of QDC2 and scaler differ by more than 2
      15 QDC1 or QDC2 index precedes the scaler index
      16 QDC1 or QDC2 index equals the scaler index
      17 unknown card present
    s 18 scaler / SBC timestamp desync
    s 19 scaler event count reset
    s 20 scaler event count jump
    s 21 QDC1 event count reset
    s 22 QDC1 event count jump
    s 23 QDC2 event count reset
    s 24 QDC2 event count jump
      25 interpolated time used

Run-level checks::

      26 LED frequency very low/high, corrupted, or LED off
      27 QDC threshold not found
      28 no events above QDC threshold
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import FrozenSet, Iterable, Iterator, Tuple

N_ERRORS = 29


class ErrorKind(IntEnum):
    UNUSED = 0
    MISSING_CHANNELS = 1
    EXTRA_CHANNELS = 2
    SCALER_ONLY = 3
    BAD_TIMESTAMP = 4
    QDC_INDEX_OFFSET = 5
    DUPLICATE_CHANNEL = 6
    HW_COUNT_MISMATCH = 7
    RUN_NUMBER_MISMATCH = 8
    QDC_CAST_FAILED = 9
    SCALER_COUNT_ENTRY_MISMATCH = 10
    SCALER_QDC1_COUNT_MISMATCH = 11
    QDC1_QDC2_COUNT_MISMATCH = 12
    QDC1_INDEX_DRIFT = 13
    QDC2_INDEX_DRIFT = 14
    QDC_INDEX_PRECEDES = 15
    QDC_INDEX_EQUALS = 16
    UNKNOWN_CARD = 17
    CLOCK_DESYNC = 18
    SCALER_COUNT_RESET = 19
    SCALER_COUNT_JUMP = 20
    QDC1_COUNT_RESET = 21
    QDC1_COUNT_JUMP = 22
    QDC2_COUNT_RESET = 23
    QDC2_COUNT_JUMP = 24
    INTERPOLATED_TIME = 25
    BAD_LED_FREQUENCY = 26
    THRESHOLD_NOT_FOUND = 27
    NO_EVENTS_ABOVE_THRESHOLD = 28


STRUCTURAL_BLOCKING: FrozenSet[ErrorKind] = frozenset(
    ErrorKind(i) for i in (1, 2, 3, 5, 6, 9, 13, 14)
)
SYNC_BLOCKING: FrozenSet[ErrorKind] = frozenset(ErrorKind(i) for i in range(18, 25))
BLOCKING: FrozenSet[ErrorKind] = STRUCTURAL_BLOCKING | SYNC_BLOCKING

RUN_LEVEL: FrozenSet[ErrorKind] = frozenset(
    {ErrorKind.BAD_LED_FREQUENCY, ErrorKind.THRESHOLD_NOT_FOUND, ErrorKind.NO_EVENTS_ABOVE_THRESHOLD}
)

# Printed per entry during the error tally; BAD_LED_FREQUENCY also counts as serious.
SERIOUS: Tuple[ErrorKind, ...] = tuple(ErrorKind(i) for i in (1, 13, 14, 18, 19, 20, 21, 22, 23, 24))

# Always present unless the veto counters are reset at the start of a run.
EXCLUDED_FROM_TOTAL: FrozenSet[ErrorKind] = frozenset(
    {ErrorKind.SCALER_COUNT_ENTRY_MISMATCH, ErrorKind.SCALER_QDC1_COUNT_MISMATCH}
)


@dataclass(frozen=True)
class ErrorSet:
    """Fixed-size error vector indexed by :class:`ErrorKind`.

    Always 29 slots, slot 0 always False. Immutable; ``with_errors`` returns a
    new set.
    """
    flags: Tuple[bool, ...] = (False,) * N_ERRORS

    def __post_init__(self) -> None:
        flags = tuple(bool(f) for f in self.flags)
        if len(flags) != N_ERRORS:
            raise ValueError(f"ErrorSet needs {N_ERRORS} flags, got {len(flags)}")
        if flags[0]:
            flags = (False,) + flags[1:]
        object.__setattr__(self, "flags", flags)

    @classmethod
    def of(cls, kinds: Iterable[int]) -> "ErrorSet":
        return cls().with_errors(kinds)

    def with_errors(self, kinds: Iterable[int]) -> "ErrorSet":
        flags = list(self.flags)
        for k in kinds:
            flags[int(k)] = True
        return ErrorSet(tuple(flags))

    def __getitem__(self, kind: int) -> bool:
        return self.flags[int(kind)]

    def __len__(self) -> int:
        return N_ERRORS

    def __iter__(self) -> Iterator[bool]:
        return iter(self.flags)

    @property
    def kinds(self) -> Tuple[ErrorKind, ...]:
        return tuple(ErrorKind(i) for i, f in enumerate(self.flags) if f)

    @property
    def blocking(self) -> bool:
        return any(self.flags[k] for k in BLOCKING)

    @property
    def serious(self) -> Tuple[ErrorKind, ...]:
        return tuple(k for k in SERIOUS if self.flags[k])

    def any(self) -> bool:
        return any(self.flags)
