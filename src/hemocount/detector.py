from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple
import logging
import math
import time

import numpy as np

from .blobs import BlobDetector
from .classify import BlueMask, ColorClassifier, sample_color
from .config import PipelineConfig
from .helpers import as_bgr_u8, clip_roi
from .metrics import variance_of_laplacian
from .models import (
    Candidate,
    CellObject,
    CellObjectLabeled,
    DetectionResult,
    LabeledCandidate,
    Point,
    Rect,
)
from .nms import suppress
from .preprocess import IlluminationNormalizer, NormalizedImage
from .segment import CellSegmenter, Segmentation
from .suppression import GridSuppressor, TextureFilter
from .viz import Visualizer

logger = logging.getLogger(__name__)


@contextmanager
def _timed(stage: str, timings: Dict[str, float]) -> Iterator[None]:
    start = time.perf_counter()
    yield
    timings[stage] = (time.perf_counter() - start) * 1000
    logger.debug("%s: %.1f ms", stage, timings[stage])


class CellDetector:
    """
    End-to-end detection for one chamber photograph:
      normalize -> grid/texture masks -> DoG blobs -> live/dead -> NMS -> shape measurement -> cell objects
    Every call builds a fresh DetectionResult; nothing is cached between runs.
    """

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self.config = config or PipelineConfig()
        p = self.config.params
        self.normalizer = IlluminationNormalizer(self.config.preprocess)
        self.grid = GridSuppressor(self.config.suppression, enabled=p.enable_grid_suppression)
        self.texture = TextureFilter(self.config.suppression)
        self.blobs = BlobDetector(self.config.blobs)
        self.classifier = ColorClassifier(p)
        self.segmenter = CellSegmenter(self.config.segment)

    @staticmethod
    def to_objects(
        kept: List[LabeledCandidate],
        offset: Tuple[int, int],
        segmentation: Optional[Segmentation] = None,
        max_area_ratio: float = 4.0,
    ) -> List[CellObject]:
        """
        One CellObject per survivor, centred on the blob. Shape comes from the
        segmented region under the centre when there is one of plausible size,
        otherwise from the blob circle.
        """
        ox, oy = offset
        objects: List[CellObject] = []
        for idx, k in enumerate(kept):
            c = Point(k.center.x + ox, k.center.y + oy)
            area = math.pi * k.radius * k.radius
            region = segmentation.region_at(k.center.x, k.center.y) if segmentation is not None else None
            if region is not None and region.pixel_count <= max_area_ratio * area:
                b = region.bbox
                objects.append(CellObject(
                    id=idx,
                    pixel_count=region.pixel_count,
                    area_px=float(region.pixel_count),
                    perimeter_px=region.perimeter_px,
                    circularity=region.circularity,
                    solidity=region.solidity,
                    centroid=c,
                    bbox=Rect(b.x + ox, b.y + oy, b.width, b.height),
                ))
                continue
            objects.append(CellObject(
                id=idx,
                pixel_count=max(1, int(area)),
                area_px=area,
                perimeter_px=2 * math.pi * k.radius,
                circularity=1.0,
                solidity=1.0,
                centroid=c,
                bbox=Rect(c.x - k.radius, c.y - k.radius, 2 * k.radius, 2 * k.radius),
            ))
        return objects

    def detect(
        self,
        img: np.ndarray,
        roi: Optional[Rect] = None,
        px_per_micron: Optional[float] = None,
    ) -> DetectionResult:
        params = self.config.params
        timings: Dict[str, float] = {}

        img_bgr = as_bgr_u8(img)
        x0, y0, x1, y1 = clip_roi(roi, img_bgr.shape)
        if x1 - x0 < 1 or y1 - y0 < 1:
            logger.info("Empty region of interest %s; nothing to detect", roi)
            return DetectionResult.empty(px_per_micron)
        cropped = img_bgr[y0:y1, x0:x1]

        # 1) luminance + illumination flattening (+ equalization)
        with _timed("normalize", timings):
            norm = self.normalizer.run(cropped)
        focus = variance_of_laplacian(norm.luminance)
        logger.debug("Focus score (variance of Laplacian): %.6f", focus)

        # 2) grid and texture suppression
        with _timed("suppress", timings):
            grid_mask = self.grid.estimate(norm.equalized)
            texture_mask = self.texture.mask(norm.equalized)

        # 3) multi-scale DoG candidates
        with _timed("blobs", timings):
            candidates = self.blobs.detect(norm.equalized, texture_mask, grid_mask, params, px_per_micron)

        # 4) stain-based live/dead labels, sampled from the source colors
        with _timed("classify", timings):
            blue_mask = BlueMask.from_bgr(cropped, params)
            labeled = self.classifier.classify(candidates, blue_mask)

        # 5) collapse duplicates across scales
        with _timed("nms", timings):
            kept = suppress(labeled, params.nms_iou)

        # 6) measured shape from a thresholded mask
        segmentation: Optional[Segmentation] = None
        if self.config.segment.enabled and kept:
            with _timed("segment", timings):
                segmentation = self.segmenter.run(cropped)

        # 7) ROI -> image coordinates
        objects = self.to_objects(kept, (x0, y0), segmentation, self.config.segment.max_area_ratio)
        cells = [
            CellObjectLabeled(
                id=obj.id,
                base=obj,
                color=sample_color(cropped, k.center),
                label=k.label,
                confidence=k.confidence,
            )
            for obj, k in zip(objects, kept)
        ]
        logger.info("Detected %d cells (%d candidates, %d labeled) in %.1f ms",
                    len(cells), len(candidates), len(labeled), sum(timings.values()))

        result = DetectionResult(objects=objects, labeled=cells, px_per_micron=px_per_micron,
                                 focus_score=focus)
        if self.config.debug:
            result.debug_images = self.render_debug(cropped, norm, grid_mask, texture_mask,
                                                    blue_mask, candidates, cells, (x0, y0), segmentation)
        return result

    @staticmethod
    def render_debug(
        cropped: np.ndarray,
        norm: NormalizedImage,
        grid_mask: np.ndarray,
        texture_mask: np.ndarray,
        blue_mask: np.ndarray,
        candidates: List[Candidate],
        cells: List[CellObjectLabeled],
        offset: Tuple[int, int],
        segmentation: Optional[Segmentation] = None,
    ) -> Dict[str, np.ndarray]:
        """Visualization only; a failure here never aborts the measurement."""
        dbg: Dict[str, np.ndarray] = {}
        try:
            viz = Visualizer()
            dbg["01_luminance"] = viz.gray_preview(norm.luminance)
            dbg["03_illumination"] = viz.gray_preview(norm.background)
            dbg["04_flattened_eq"] = viz.gray_preview(norm.equalized)
            dbg["05_grid_mask"] = viz.mask_preview(grid_mask)
            dbg["06_texture_mask"] = viz.mask_preview(texture_mask)
            dbg["07_candidates"] = viz.draw_candidates(cropped, candidates)
            dbg["08_blue_mask"] = viz.mask_preview(blue_mask)
            dbg["09_detections"] = viz.draw_detections(cropped, cells, offset)
            if segmentation is not None:
                dbg["10_segmentation"] = viz.mask_preview(segmentation.mask)
        except Exception as e:
            logger.warning("Debug rendering failed: %s", e)
        return dbg
