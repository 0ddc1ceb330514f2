from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Tuple
import math

import cv2
import numpy as np

from .models import CellObjectLabeled, Label, Point
from .nms import circle_overlap
from .suppression import LAPLACIAN_3X3


@dataclass(frozen=True)
class LabeledPoint:
    """Ground-truth annotation: circle centre, radius and label."""
    x: float
    y: float
    r: float
    label: Label


def variance_of_laplacian(gray: np.ndarray) -> float:
    """Focus score; low values mean a blurry frame."""
    if gray.size == 0:
        return 0.0
    lap = cv2.filter2D(gray.astype(np.float32), cv2.CV_32F, LAPLACIAN_3X3, borderType=cv2.BORDER_REPLICATE)
    return float(lap.var())


def precision_recall_f1(
    predicted: Sequence[CellObjectLabeled],
    truth: Sequence[LabeledPoint],
    iou: float = 0.3,
) -> Tuple[float, float, float]:
    matched: set = set()
    tp = fp = 0
    for det in predicted:
        r = math.sqrt(det.base.area_px / math.pi)
        found = -1
        for j, gt in enumerate(truth):
            if j in matched or gt.label != det.label:
                continue
            if circle_overlap(det.base.centroid, r, Point(gt.x, gt.y), gt.r) > iou:
                found = j
                break
        if found >= 0:
            tp += 1
            matched.add(found)
        else:
            fp += 1
    fn = max(0, len(truth) - len(matched))
    precision = tp / (tp + fp) if tp else 0.0
    recall = tp / (tp + fn) if tp else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    return precision, recall, f1
