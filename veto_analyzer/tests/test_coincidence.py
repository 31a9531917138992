from __future__ import annotations

import pytest

from veto_analyzer.analysis.coincidence import (
    N_PLANES,
    PLANE_MAP,
    CoincidenceType,
    Plane,
    classify_coincidence,
    coincidence_flags,
    energy_cut,
    identify_muon,
    plane_hits,
    plane_of,
    time_cut,
)
from veto_analyzer.models.event import ChannelThresholds, VetoEvent
from veto_analyzer.validation.synthetic import make_record

THR = ChannelThresholds((85,) * 32)


def _planes(*hit: Plane):
    v = [False] * N_PLANES
    for p in hit:
        v[p] = True
    return v


def _event(hot_channels, value: int = 600) -> VetoEvent:
    qdc = [50] * 32
    for ch in hot_channels:
        qdc[ch] = value
    return VetoEvent(make_record(0, time_sec=1.0, qdc=qdc), THR)


def test_plane_map() -> None:
    assert len(PLANE_MAP) == 32
    assert plane_of(0) is Plane.LOWER_BOTTOM
    assert plane_of(11) is Plane.UPPER_BOTTOM
    assert plane_of(14) is Plane.OUTER_WEST
    assert plane_of(22) is Plane.OUTER_WEST
    assert plane_of(23) is Plane.INNER_NORTH
    assert plane_of(31) is Plane.OUTER_EAST
    assert plane_of(32) is Plane.NONE
    assert plane_of(-1) is Plane.NONE
    # every plane has at least one panel
    assert set(PLANE_MAP) == set(Plane) - {Plane.NONE}


def test_plane_hits_counts_panels() -> None:
    hits = [False] * 32
    for ch in (0, 1, 2, 20):
        hits[ch] = True
    ph = plane_hits(hits)
    assert ph.counts[Plane.LOWER_BOTTOM] == 3
    assert ph.counts[Plane.INNER_TOP] == 1
    assert ph.hit_count == 2


@pytest.mark.parametrize(
    "planes, expected",
    [
        ((Plane.LOWER_BOTTOM, Plane.UPPER_BOTTOM, Plane.INNER_TOP, Plane.OUTER_TOP), CoincidenceType.VERTICAL),
        ((Plane.LOWER_BOTTOM, Plane.UPPER_BOTTOM, Plane.INNER_NORTH, Plane.OUTER_NORTH), CoincidenceType.SIDE_BOTTOM),
        ((Plane.INNER_TOP, Plane.OUTER_TOP, Plane.INNER_EAST, Plane.OUTER_EAST), CoincidenceType.TOP_SIDES),
        (
            (
                Plane.LOWER_BOTTOM,
                Plane.UPPER_BOTTOM,
                Plane.INNER_TOP,
                Plane.OUTER_TOP,
                Plane.INNER_SOUTH,
                Plane.OUTER_SOUTH,
            ),
            CoincidenceType.COMPOUND,
        ),
        ((Plane.LOWER_BOTTOM, Plane.INNER_NORTH), CoincidenceType.MULTI_PLANE),
        # one side panel of a pair is not a side crossing
        ((Plane.LOWER_BOTTOM, Plane.UPPER_BOTTOM, Plane.INNER_WEST), CoincidenceType.MULTI_PLANE),
        ((Plane.OUTER_WEST,), CoincidenceType.NONE),
        ((), CoincidenceType.NONE),
    ],
)
def test_classify_coincidence(planes, expected) -> None:
    assert classify_coincidence(_planes(*planes)) is expected


def test_bottom_and_sides_with_top_is_compound() -> None:
    v = _planes(Plane.LOWER_BOTTOM, Plane.UPPER_BOTTOM, Plane.INNER_NORTH, Plane.OUTER_NORTH, Plane.INNER_TOP, Plane.OUTER_TOP)
    assert coincidence_flags(v) == (True, True, True)
    assert classify_coincidence(v) is CoincidenceType.COMPOUND


def test_flags_need_twelve_planes() -> None:
    with pytest.raises(ValueError):
        coincidence_flags([True] * 11)


def test_labels() -> None:
    assert CoincidenceType.MULTI_PLANE.label == "2+ planes"
    assert CoincidenceType.SIDE_BOTTOM.label == "side+bottom"
    assert CoincidenceType.NONE.label == "none"


def test_energy_cut() -> None:
    assert energy_cut(_event([0, 20]).qdc)
    assert not energy_cut(_event([0]).qdc)
    # threshold is strict
    assert not energy_cut(_event([0, 20], value=500).qdc)


def test_time_cut() -> None:
    assert time_cut(5, 27, led_off=False)
    assert not time_cut(27, 27, led_off=False)
    assert not time_cut(32, 27, led_off=False)
    assert time_cut(32, 27, led_off=True)


def test_two_hot_panels_make_a_muon_candidate() -> None:
    ev = _event([0, 20])
    muon = identify_muon(ev, energy=energy_cut(ev.qdc), time=time_cut(ev.multiplicity, 27, False))
    assert muon.candidate
    assert muon.kind is CoincidenceType.MULTI_PLANE
    assert muon.flags == (True, False, False, False)
    assert muon.planes.hit_count == 2


def test_failed_cut_keeps_plane_hits_but_no_classification() -> None:
    ev = _event([0, 6, 17, 20])
    muon = identify_muon(ev, energy=True, time=False)
    assert not muon.candidate
    assert muon.kind is CoincidenceType.NONE
    assert muon.flags == (False, False, False, False)
    assert muon.planes.hit_count == 4


def test_identification_is_pure() -> None:
    ev = _event([0, 6, 17, 20])
    a = identify_muon(ev, energy=True, time=True)
    b = identify_muon(ev, energy=True, time=True)
    assert a == b
    assert a.kind is CoincidenceType.VERTICAL
