from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple
import logging

import cv2
import numpy as np

from .calibration import pixel_radius_range
from .config import BlobConfig, DetectorParams
from .models import Candidate, Point

logger = logging.getLogger(__name__)

_NEIGHBORHOOD = np.ones((5, 5), np.uint8)


class BlobDetector:
    """
    Multi-scale Difference-of-Gaussians blob detector:
      1) |G(s) - G(1.6 s)| per sigma
      2) scores = response / strongest response over all scales
      3) 5x5 local maxima on a stride-limited sampling grid
      4) grid / texture gating, then radius gating (physical or pixel fallback)
    """

    def __init__(self, config: Optional[BlobConfig] = None) -> None:
        self.cfg = config or BlobConfig()
        if not self.cfg.sigmas or min(self.cfg.sigmas) <= 0:
            raise ValueError("sigmas must be a non-empty sequence of positive values")
        if self.cfg.sigma_ratio <= 1.0:
            raise ValueError("sigma_ratio must be > 1")

    @staticmethod
    def scan_step(width: int, height: int) -> int:
        return max(1, min(width, height) // 512)

    def dog(self, image: np.ndarray, sigma: float) -> np.ndarray:
        g1 = cv2.GaussianBlur(image, (0, 0), sigma, borderType=cv2.BORDER_REPLICATE)
        g2 = cv2.GaussianBlur(image, (0, 0), sigma * self.cfg.sigma_ratio, borderType=cv2.BORDER_REPLICATE)
        return np.abs(g1 - g2)

    def radius_bounds(self, params: DetectorParams, px_per_micron: Optional[float]) -> Tuple[float, float]:
        if px_per_micron is not None and px_per_micron > 0:
            return pixel_radius_range(params.min_cell_diameter_um, params.max_cell_diameter_um, px_per_micron)
        return self.cfg.fallback_radius_px

    @staticmethod
    def _scan(
        response: np.ndarray,
        peak: float,
        sigma_radius: float,
        threshold: float,
        texture_mask: np.ndarray,
        grid_mask: np.ndarray,
        step: int,
    ) -> List[Candidate]:
        h, w = response.shape
        # a point is a max unless some 5x5 neighbour is strictly greater
        is_max = response >= cv2.dilate(response, _NEIGHBORHOOD, borderType=cv2.BORDER_REPLICATE)
        ys = np.arange(2, h - 2, step)
        xs = np.arange(2, w - 2, step)
        if ys.size == 0 or xs.size == 0:
            return []
        yy, xx = np.meshgrid(ys, xs, indexing="ij")
        scores = response[yy, xx] / peak
        keep = (
            is_max[yy, xx]
            & (scores >= threshold)
            & ~grid_mask[yy, xx]
            & texture_mask[yy, xx]
        )
        return [
            Candidate(center=Point(float(x), float(y)), radius=sigma_radius, score=float(min(1.0, s)))
            for y, x, s in zip(yy[keep], xx[keep], scores[keep])
        ]

    def detect(
        self,
        image: np.ndarray,
        texture_mask: np.ndarray,
        grid_mask: np.ndarray,
        params: DetectorParams,
        px_per_micron: Optional[float] = None,
    ) -> List[Candidate]:
        h, w = image.shape[:2]
        if h < 5 or w < 5:
            return []
        img = image.astype(np.float32)
        sigmas = list(self.cfg.sigmas)

        if self.cfg.parallel:
            with ThreadPoolExecutor(max_workers=len(sigmas)) as pool:
                responses = list(pool.map(lambda s: self.dog(img, s), sigmas))
        else:
            responses = [self.dog(img, s) for s in sigmas]

        peak = max(float(r.max()) for r in responses)
        if peak < self.cfg.min_response:
            logger.debug("DoG peak %.4f below %.4f; no blob structure", peak, self.cfg.min_response)
            return []

        step = self.scan_step(w, h)
        ratio = self.cfg.sigma_ratio

        def scan(i: int) -> List[Candidate]:
            return self._scan(responses[i], peak, ratio * sigmas[i], params.blob_score_threshold,
                              texture_mask, grid_mask, step)

        if self.cfg.parallel:
            with ThreadPoolExecutor(max_workers=len(sigmas)) as pool:
                per_scale = list(pool.map(scan, range(len(sigmas))))
        else:
            per_scale = [scan(i) for i in range(len(sigmas))]

        candidates = [c for scale in per_scale for c in scale]
        r_min, r_max = self.radius_bounds(params, px_per_micron)
        kept = [c for c in candidates if r_min <= c.radius <= r_max]
        logger.debug("Blob candidates: %d raw, %d within radius [%.2f, %.2f] (step=%d)",
                     len(candidates), len(kept), r_min, r_max, step)
        return kept
