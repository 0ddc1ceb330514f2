from __future__ import annotations
from typing import List, Optional

import cv2
import numpy as np
from skimage.color import rgb2lab

from .config import DetectorParams
from .helpers import sample_mask
from .models import Candidate, ColorSampleStats, Label, LabeledCandidate, Point


def hsv_image(img_bgr: np.ndarray) -> np.ndarray:
    """BGR uint8 -> float32 HSV with H in degrees [0, 360), S and V in [0, 1]."""
    return cv2.cvtColor(img_bgr.astype(np.float32) / 255.0, cv2.COLOR_BGR2HSV)


def hue_in_band(hue: np.ndarray, hue_min: float, hue_max: float) -> np.ndarray:
    if hue_min <= hue_max:
        return (hue >= hue_min) & (hue <= hue_max)
    # band wraps through 0/360, e.g. 350..10
    return (hue >= hue_min) | (hue <= hue_max)


class BlueMask:
    """Trypan-blue stained pixels: hue band x minimum saturation x maximum brightness."""

    @staticmethod
    def from_hsv(
        hsv: np.ndarray,
        hue_min: float,
        hue_max: float,
        min_saturation: float,
        max_value: float,
    ) -> np.ndarray:
        h, s, v = hsv[..., 0], hsv[..., 1], hsv[..., 2]
        return hue_in_band(h, hue_min, hue_max) & (s >= min_saturation) & (v <= max_value)

    @classmethod
    def from_bgr(cls, img_bgr: np.ndarray, params: Optional[DetectorParams] = None) -> np.ndarray:
        p = params or DetectorParams()
        return cls.from_hsv(hsv_image(img_bgr), p.blue_hue_min, p.blue_hue_max,
                            p.min_blue_saturation, p.max_blue_value)


class ColorClassifier:
    """Rule-based live/dead labelling of blob candidates."""

    def __init__(self, params: Optional[DetectorParams] = None) -> None:
        self.p = params or DetectorParams()

    def label(self, candidate: Candidate, blue_mask: np.ndarray) -> Optional[LabeledCandidate]:
        score = candidate.score
        if sample_mask(blue_mask, candidate.center.x, candidate.center.y):
            label, conf = Label.DEAD, min(1.0, 0.6 + 0.4 * score)
        elif score >= self.p.blob_score_threshold:
            label, conf = Label.LIVE, min(1.0, score)
        else:
            return None
        return LabeledCandidate(center=candidate.center, radius=candidate.radius, score=score,
                                label=label, confidence=conf)

    def classify(self, candidates: List[Candidate], blue_mask: np.ndarray) -> List[LabeledCandidate]:
        out: List[LabeledCandidate] = []
        for c in candidates:
            lc = self.label(c, blue_mask)
            if lc is not None:
                out.append(lc)
        return out


def sample_color(img_bgr: np.ndarray, point: Point, half: int = 2) -> ColorSampleStats:
    """Mean HSV / Lab over a (2*half+1)^2 patch around point; zeros when off-image."""
    h, w = img_bgr.shape[:2]
    cx, cy = int(round(point.x)), int(round(point.y))
    x0, x1 = max(0, cx - half), min(w, cx + half + 1)
    y0, y1 = max(0, cy - half), min(h, cy + half + 1)
    if x1 <= x0 or y1 <= y0:
        return ColorSampleStats(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    mean_bgr = img_bgr[y0:y1, x0:x1].reshape(-1, 3).astype(np.float32).mean(axis=0) / 255.0
    pixel = mean_bgr.reshape(1, 1, 3).astype(np.float32)
    hh, ss, vv = cv2.cvtColor(pixel, cv2.COLOR_BGR2HSV)[0, 0]
    L, a, b = rgb2lab(pixel[..., ::-1].astype(np.float64))[0, 0]
    return ColorSampleStats(float(hh), float(ss), float(vv), float(L), float(a), float(b))
