from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import logging
import math

import cv2
import numpy as np
from skimage import measure
from skimage.filters import threshold_otsu, threshold_sauvola
from skimage.morphology import binary_opening, disk, remove_small_objects

from .config import SegmentConfig
from .models import Point, Rect

logger = logging.getLogger(__name__)

METHODS = ("otsu", "adaptive")


@dataclass(frozen=True)
class RegionShape:
    """Measured shape of one connected foreground region (crop coordinates)."""
    label: int
    pixel_count: int
    perimeter_px: float
    circularity: float                  # 4 pi A / P^2, capped at 1
    solidity: float                     # area / convex hull area
    centroid: Point
    bbox: Rect


@dataclass
class Segmentation:
    mask: np.ndarray                    # bool, True on cells
    labels: np.ndarray                  # int32, 4-connected components, 0 = background
    threshold: float                    # global Otsu level, or mean Sauvola level
    polarity_inverted: bool
    regions: Dict[int, RegionShape] = field(default_factory=dict)

    def region_at(self, x: float, y: float) -> Optional[RegionShape]:
        xi, yi = int(round(x)), int(round(y))
        h, w = self.labels.shape
        if xi < 0 or yi < 0 or xi >= w or yi >= h:
            return None
        return self.regions.get(int(self.labels[yi, xi]))


def gray_unit(img_bgr: np.ndarray) -> np.ndarray:
    return cv2.cvtColor(img_bgr, cv2.COLOR_BGR2GRAY).astype(np.float32) / 255.0


def should_invert_polarity(gray: np.ndarray) -> bool:
    """Bright field with dark cells: invert so cells become the bright foreground."""
    if gray.size == 0:
        return False
    return float(gray.mean()) > 0.5


def measure_regions(labels: np.ndarray) -> Dict[int, RegionShape]:
    shapes: Dict[int, RegionShape] = {}
    for r in measure.regionprops(labels):
        area = int(r.area)
        perimeter = float(r.perimeter)
        circularity = min(1.0, 4.0 * math.pi * area / (perimeter * perimeter)) if perimeter > 0 else 0.0
        min_row, min_col, max_row, max_col = r.bbox
        # a 4-connected region spanning more than one row and column is never collinear
        if max_row - min_row > 1 and max_col - min_col > 1:
            solidity = float(r.solidity)
        else:
            solidity = 1.0
        cy, cx = r.centroid
        shapes[r.label] = RegionShape(
            label=r.label,
            pixel_count=area,
            perimeter_px=perimeter,
            circularity=circularity,
            solidity=solidity,
            centroid=Point(float(cx), float(cy)),
            bbox=Rect(float(min_col), float(min_row), float(max_col - min_col), float(max_row - min_row)),
        )
    return shapes


class CellSegmenter:
    """
    Classical foreground segmentation used to measure cell shape:
      1) grayscale, polarity check (dark cells on a bright field are inverted)
      2) Otsu global threshold, or Sauvola local threshold
      3) opening + small-object removal
      4) 4-connected components and per-region measurements
    """

    def __init__(self, config: Optional[SegmentConfig] = None) -> None:
        self.cfg = config or SegmentConfig()
        if self.cfg.method not in METHODS:
            raise ValueError(f"method must be one of {METHODS}, got {self.cfg.method!r}")
        if self.cfg.sauvola_window < 3 or self.cfg.sauvola_window % 2 == 0:
            raise ValueError("sauvola_window must be an odd integer >= 3")
        if self.cfg.max_area_ratio <= 0:
            raise ValueError("max_area_ratio must be > 0")

    def threshold(self, gray: np.ndarray) -> Tuple[np.ndarray, float]:
        if self.cfg.method == "otsu":
            t = float(threshold_otsu(gray))
            return gray > t, t
        # Sauvola expects dark objects on a bright page
        page = 1.0 - gray
        local = threshold_sauvola(page, window_size=self.cfg.sauvola_window)
        return page < local, float(local.mean())

    def cleanup(self, mask: np.ndarray) -> np.ndarray:
        if self.cfg.open_radius > 0:
            mask = binary_opening(mask, disk(self.cfg.open_radius))
        if self.cfg.min_object_area > 0:
            mask = remove_small_objects(mask, min_size=self.cfg.min_object_area)
        return mask.astype(bool)

    def run(self, img_bgr: np.ndarray) -> Segmentation:
        gray = gray_unit(img_bgr)
        invert = should_invert_polarity(gray)
        if invert:
            gray = 1.0 - gray
        if gray.size == 0 or float(gray.min()) == float(gray.max()):
            # nothing to separate
            shape = gray.shape[:2]
            return Segmentation(np.zeros(shape, bool), np.zeros(shape, np.int32), 0.0, invert)

        mask, level = self.threshold(gray)
        mask = self.cleanup(mask)
        labels = measure.label(mask, connectivity=1).astype(np.int32)
        regions = measure_regions(labels)
        logger.debug("Segmentation (%s, inverted=%s): level %.3f, %d regions",
                     self.cfg.method, invert, level, len(regions))
        return Segmentation(mask, labels, level, invert, regions)
