import math

import pytest

from hemocount.models import Label, LabeledCandidate, Point
from hemocount.nms import circle_overlap, suppress


def lc(x, y, r, conf, label=Label.LIVE):
    return LabeledCandidate(center=Point(x, y), radius=r, score=conf, label=label, confidence=conf)


def test_disjoint_circles_do_not_overlap():
    assert circle_overlap(Point(0, 0), 2, Point(10, 0), 3) == 0.0
    assert circle_overlap(Point(0, 0), 2, Point(5, 0), 3) == 0.0  # tangent


def test_nested_circles_use_area_ratio():
    assert circle_overlap(Point(0, 0), 4, Point(1, 0), 2) == pytest.approx(0.25)
    assert circle_overlap(Point(0, 0), 3, Point(0, 0), 3) == pytest.approx(1.0)


def test_partial_overlap_matches_lens_formula():
    # equal radii r at distance d: lens = 2 r^2 acos(d/2r) - d/2 sqrt(4r^2 - d^2)
    r, d = 5.0, 5.0
    lens = 2 * r * r * math.acos(d / (2 * r)) - 0.5 * d * math.sqrt(4 * r * r - d * d)
    expected = lens / (2 * math.pi * r * r - lens)
    assert circle_overlap(Point(0, 0), r, Point(d, 0), r) == pytest.approx(expected)
    assert 0 < expected < 1


def test_overlap_is_symmetric():
    a = circle_overlap(Point(0, 0), 4, Point(3, 1), 2.5)
    b = circle_overlap(Point(3, 1), 2.5, Point(0, 0), 4)
    assert a == pytest.approx(b)


def test_overlapping_pair_collapses_to_higher_confidence():
    weak = lc(10, 10, 5, 0.6)
    strong = lc(11, 10, 5, 0.9, Label.DEAD)
    kept = suppress([weak, strong], 0.3)
    assert kept == [strong]


def test_pair_below_threshold_both_survive():
    a = lc(0, 0, 5, 0.9)
    b = lc(9, 0, 5, 0.8)
    assert circle_overlap(a.center, a.radius, b.center, b.radius) < 0.3
    kept = suppress([b, a], 0.3)
    assert kept == [a, b]


def test_suppress_empty():
    assert suppress([], 0.3) == []
