from dataclasses import replace

import numpy as np
import pytest

from hemocount.metrics import LabeledPoint, precision_recall_f1, variance_of_laplacian
from hemocount.models import CellObjectLabeled, ColorSampleStats, Label

from conftest import cell_object

NO_COLOR = ColorSampleStats(0, 0, 0, 0, 0, 0)


def detection(i, x, y, r, label):
    base = cell_object(i, x, y, pixel_count=int(np.pi * r * r))
    base = replace(base, area_px=float(np.pi * r * r))
    return CellObjectLabeled(i, base, NO_COLOR, label, 0.9)


def test_perfect_match():
    preds = [detection(0, 10, 10, 5, Label.LIVE), detection(1, 50, 50, 5, Label.DEAD)]
    truth = [LabeledPoint(10, 10, 5, Label.LIVE), LabeledPoint(50, 50, 5, Label.DEAD)]
    assert precision_recall_f1(preds, truth) == pytest.approx((1.0, 1.0, 1.0))


def test_wrong_label_is_a_miss():
    preds = [detection(0, 10, 10, 5, Label.DEAD)]
    truth = [LabeledPoint(10, 10, 5, Label.LIVE)]
    assert precision_recall_f1(preds, truth) == (0.0, 0.0, 0.0)


def test_partial_detection():
    preds = [detection(0, 10, 10, 5, Label.LIVE), detection(1, 90, 90, 5, Label.LIVE)]
    truth = [LabeledPoint(10, 10, 5, Label.LIVE), LabeledPoint(40, 40, 5, Label.LIVE)]
    p, r, f1 = precision_recall_f1(preds, truth)
    assert (p, r) == pytest.approx((0.5, 0.5))
    assert f1 == pytest.approx(0.5)


def test_each_truth_matched_once():
    preds = [detection(0, 10, 10, 5, Label.LIVE), detection(1, 10.5, 10, 5, Label.LIVE)]
    truth = [LabeledPoint(10, 10, 5, Label.LIVE)]
    p, r, _ = precision_recall_f1(preds, truth)
    assert p == pytest.approx(0.5)
    assert r == pytest.approx(1.0)


def test_variance_of_laplacian():
    assert variance_of_laplacian(np.full((16, 16), 0.4, np.float32)) == 0.0
    checker = (np.indices((16, 16)).sum(axis=0) % 2).astype(np.float32)
    assert variance_of_laplacian(checker) > 1.0
    assert variance_of_laplacian(np.zeros((0, 0), np.float32)) == 0.0
