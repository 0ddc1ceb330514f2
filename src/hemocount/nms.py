from __future__ import annotations
from typing import List
import math

from .models import LabeledCandidate, Point


def circle_overlap(c1: Point, r1: float, c2: Point, r2: float) -> float:
    """Closed-form overlap of two disks: intersection / union, or min/max area when nested."""
    d = math.hypot(c1.x - c2.x, c1.y - c2.y)
    if d >= r1 + r2:
        return 0.0
    if d <= abs(r1 - r2):
        small, big = min(r1, r2), max(r1, r2)
        if big <= 0:
            return 0.0
        return (small * small) / (big * big)
    r1_2, r2_2 = r1 * r1, r2 * r2
    # half-angles subtended by the chord, law of cosines
    alpha = math.acos(max(-1.0, min(1.0, (r1_2 + d * d - r2_2) / (2 * r1 * d))))
    beta = math.acos(max(-1.0, min(1.0, (r2_2 + d * d - r1_2) / (2 * r2 * d))))
    kite = 0.5 * math.sqrt(max(0.0, (-d + r1 + r2) * (d + r1 - r2) * (d - r1 + r2) * (d + r1 + r2)))
    inter = r1_2 * alpha + r2_2 * beta - kite
    union = math.pi * (r1_2 + r2_2) - inter
    return inter / union if union > 0 else 0.0


def suppress(items: List[LabeledCandidate], iou_threshold: float) -> List[LabeledCandidate]:
    remaining = sorted(items, key=lambda c: c.confidence, reverse=True)
    kept: List[LabeledCandidate] = []
    while remaining:
        best = remaining.pop(0)
        kept.append(best)
        remaining = [
            c for c in remaining
            if circle_overlap(best.center, best.radius, c.center, c.radius) <= iou_threshold
        ]
    return kept
