from __future__ import annotations
from typing import List, Optional

import cv2
import numpy as np

from .config import SuppressionConfig

LAPLACIAN_3X3 = np.array([[0, 1, 0], [1, -4, 1], [0, 1, 0]], dtype=np.float32)


class GridSuppressor:
    """
    Approximate the printed chamber grid as horizontal/vertical stripes:
      1) Sobel edge magnitude
      2) per-row / per-column edge sums
      3) local-mean-subtracted peak scores, top-K positive peaks
      4) paint fixed-width stripes at the peaks
    Returns a bool mask, True on grid lines.
    """

    def __init__(self, config: Optional[SuppressionConfig] = None, enabled: bool = True) -> None:
        self.cfg = config or SuppressionConfig()
        if self.cfg.grid_peaks < 0:
            raise ValueError("grid_peaks must be >= 0")
        if self.cfg.grid_stripe_px < 1:
            raise ValueError("grid_stripe_px must be >= 1")
        self.enabled = enabled

    @staticmethod
    def edge_magnitude(image: np.ndarray) -> np.ndarray:
        gx = cv2.Sobel(image, cv2.CV_32F, 1, 0, ksize=3, borderType=cv2.BORDER_REPLICATE)
        gy = cv2.Sobel(image, cv2.CV_32F, 0, 1, ksize=3, borderType=cv2.BORDER_REPLICATE)
        return cv2.magnitude(gx, gy)

    @staticmethod
    def peaks(values: np.ndarray, win: int, k: int) -> List[int]:
        n = values.size
        if n == 0 or k <= 0:
            return []
        idx = np.arange(n)
        lo = np.clip(idx - win, 0, n - 1)
        hi = np.clip(idx + win, 0, n - 1)
        csum = np.concatenate([[0.0], np.cumsum(values, dtype=np.float64)])
        local_mean = (csum[hi + 1] - csum[lo]) / (hi - lo + 1)
        scores = values - local_mean
        order = np.argsort(-scores, kind="stable")[:k]
        return [int(i) for i in order if scores[i] > 0]

    def estimate(self, image: np.ndarray) -> np.ndarray:
        h, w = image.shape[:2]
        mask = np.zeros((h, w), dtype=bool)
        if not self.enabled or h == 0 or w == 0:
            return mask

        edges = self.edge_magnitude(image.astype(np.float32))
        row_sum = edges.sum(axis=1).astype(np.float64)
        col_sum = edges.sum(axis=0).astype(np.float64)
        k = self.cfg.grid_peaks
        half = self.cfg.grid_stripe_px // 2
        for y in self.peaks(row_sum, max(1, h // 40), k):
            mask[max(0, y - half):y - half + self.cfg.grid_stripe_px, :] = True
        for x in self.peaks(col_sum, max(1, w // 40), k):
            mask[:, max(0, x - half):x - half + self.cfg.grid_stripe_px] = True
        return mask


class TextureFilter:
    """Textured (cell-bearing) vs smooth background from local Laplacian energy."""

    def __init__(self, config: Optional[SuppressionConfig] = None) -> None:
        self.cfg = config or SuppressionConfig()
        if self.cfg.texture_window < 1:
            raise ValueError("texture_window must be >= 1")

    def response(self, image: np.ndarray) -> np.ndarray:
        lap = cv2.filter2D(image.astype(np.float32), cv2.CV_32F, LAPLACIAN_3X3,
                           borderType=cv2.BORDER_REPLICATE)
        k = self.cfg.texture_window
        energy = cv2.blur(np.abs(lap), (k, k), borderType=cv2.BORDER_REPLICATE)
        return np.clip(energy * self.cfg.texture_gain, 0.0, 1.0)

    def mask(self, image: np.ndarray) -> np.ndarray:
        if image.size == 0:
            return np.zeros(image.shape[:2], dtype=bool)
        return self.response(image) > self.cfg.texture_threshold
