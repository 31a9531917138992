"""Muon identification from veto plane hit patterns.

The 32 veto panels are grouped into 12 logical planes. A plane is hit when
any of its panels is above its software threshold. An event is a muon
candidate when it passes both the energy cut (at least two panels above the
measured muon QDC of 500) and the time cut (not an LED pulse); candidates are
then classified by which plane pairs were hit.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence, Tuple

from veto_analyzer.models.config import VetoConfig
from veto_analyzer.models.event import N_CHANNELS, VetoEvent

N_PLANES = 12


class Plane(IntEnum):
    NONE = -1
    LOWER_BOTTOM = 0
    UPPER_BOTTOM = 1
    INNER_TOP = 2
    OUTER_TOP = 3
    INNER_NORTH = 4
    OUTER_NORTH = 5
    INNER_SOUTH = 6
    OUTER_SOUTH = 7
    INNER_WEST = 8
    OUTER_WEST = 9
    INNER_EAST = 10
    OUTER_EAST = 11


# Panel (channel) -> plane. Index is the channel number.
PLANE_MAP: Tuple[Plane, ...] = (
    # 0-5: lower bottom
    Plane.LOWER_BOTTOM, Plane.LOWER_BOTTOM, Plane.LOWER_BOTTOM,
    Plane.LOWER_BOTTOM, Plane.LOWER_BOTTOM, Plane.LOWER_BOTTOM,
    # 6-11: upper bottom
    Plane.UPPER_BOTTOM, Plane.UPPER_BOTTOM, Plane.UPPER_BOTTOM,
    Plane.UPPER_BOTTOM, Plane.UPPER_BOTTOM, Plane.UPPER_BOTTOM,
    # 12-14: west
    Plane.INNER_WEST, Plane.INNER_WEST, Plane.OUTER_WEST,
    # 15-16: north outer
    Plane.OUTER_NORTH, Plane.OUTER_NORTH,
    # 17-18: top outer
    Plane.OUTER_TOP, Plane.OUTER_TOP,
    # 19: north inner
    Plane.INNER_NORTH,
    # 20-21: top inner
    Plane.INNER_TOP, Plane.INNER_TOP,
    # 22: west outer
    Plane.OUTER_WEST,
    # 23: north inner
    Plane.INNER_NORTH,
    # 24-27: south
    Plane.INNER_SOUTH, Plane.OUTER_SOUTH, Plane.INNER_SOUTH, Plane.OUTER_SOUTH,
    # 28-31: east
    Plane.INNER_EAST, Plane.OUTER_EAST, Plane.INNER_EAST, Plane.OUTER_EAST,
)

BOTTOM_PAIR = (Plane.LOWER_BOTTOM, Plane.UPPER_BOTTOM)
TOP_PAIR = (Plane.INNER_TOP, Plane.OUTER_TOP)
LATERAL_PAIRS = (
    (Plane.INNER_NORTH, Plane.OUTER_NORTH),
    (Plane.INNER_SOUTH, Plane.OUTER_SOUTH),
    (Plane.INNER_WEST, Plane.OUTER_WEST),
    (Plane.INNER_EAST, Plane.OUTER_EAST),
)


class CoincidenceType(IntEnum):
    """Muon geometry. Values match the legacy ``type`` codes; NONE means < 2 planes."""

    NONE = -1
    MULTI_PLANE = 0
    VERTICAL = 1
    SIDE_BOTTOM = 2
    TOP_SIDES = 3
    COMPOUND = 4

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    CoincidenceType.NONE: "none",
    CoincidenceType.MULTI_PLANE: "2+ planes",
    CoincidenceType.VERTICAL: "vertical",
    CoincidenceType.SIDE_BOTTOM: "side+bottom",
    CoincidenceType.TOP_SIDES: "top+sides",
    CoincidenceType.COMPOUND: "compound",
}


def plane_of(channel: int) -> Plane:
    if 0 <= channel < N_CHANNELS:
        return PLANE_MAP[channel]
    return Plane.NONE


@dataclass(frozen=True)
class PlaneHits:
    """Per-plane hit counts and hit flags for one event."""

    counts: Tuple[int, ...]
    hit: Tuple[bool, ...]

    @property
    def hit_count(self) -> int:
        return int(sum(self.hit))


def plane_hits(hits: Sequence[bool]) -> PlaneHits:
    """Map per-channel above-threshold flags onto the 12 planes."""
    counts = [0] * N_PLANES
    for ch, h in enumerate(hits):
        if not h:
            continue
        p = plane_of(ch)
        if p is Plane.NONE:
            continue
        counts[p] += 1
    return PlaneHits(counts=tuple(counts), hit=tuple(c > 0 for c in counts))


def energy_cut(qdc: Sequence[int], config: VetoConfig = VetoConfig()) -> bool:
    """True if enough panels exceed the muon energy threshold (QDC 500)."""
    n = sum(1 for q in qdc if q > config.energy_threshold)
    return n >= config.energy_min_channels


def time_cut(multiplicity: int, multip_threshold: int, led_off: bool) -> bool:
    """True if the event is not an LED pulse.

    With the LED off (or its frequency unusable) every event passes.
    """
    return led_off or multiplicity < multip_threshold


def _pair(plane_true: Sequence[bool], pair: Tuple[Plane, Plane]) -> bool:
    return bool(plane_true[pair[0]] and plane_true[pair[1]])


def coincidence_flags(plane_true: Sequence[bool]) -> Tuple[bool, bool, bool]:
    """(vertical, side+bottom, top+sides) for a 12-plane hit vector."""
    if len(plane_true) != N_PLANES:
        raise ValueError(f"Expected {N_PLANES} plane flags, got {len(plane_true)}")
    bottom = _pair(plane_true, BOTTOM_PAIR)
    top = _pair(plane_true, TOP_PAIR)
    side = any(_pair(plane_true, p) for p in LATERAL_PAIRS)
    return bottom and top, bottom and side, top and side


def classify_coincidence(plane_true: Sequence[bool]) -> CoincidenceType:
    """Classify a hit pattern. Pure function of the 12-plane vector."""
    vertical, side_bottom, top_sides = coincidence_flags(plane_true)
    if sum((vertical, side_bottom, top_sides)) >= 2:
        return CoincidenceType.COMPOUND
    if vertical:
        return CoincidenceType.VERTICAL
    if side_bottom:
        return CoincidenceType.SIDE_BOTTOM
    if top_sides:
        return CoincidenceType.TOP_SIDES
    if sum(bool(p) for p in plane_true) >= 2:
        return CoincidenceType.MULTI_PLANE
    return CoincidenceType.NONE


@dataclass(frozen=True)
class MuonId:
    """Muon identification result for one event."""

    candidate: bool
    kind: CoincidenceType
    planes: PlaneHits
    flags: Tuple[bool, bool, bool, bool]


def identify_muon(event: VetoEvent, *, energy: bool, time: bool) -> MuonId:
    """Plane hits for every event; classification only when both cuts pass."""
    planes = plane_hits(event.hits)
    if not (energy and time):
        return MuonId(False, CoincidenceType.NONE, planes, (False, False, False, False))
    vertical, side_bottom, top_sides = coincidence_flags(planes.hit)
    kind = classify_coincidence(planes.hit)
    return MuonId(True, kind, planes, (True, vertical, side_bottom, top_sides))
