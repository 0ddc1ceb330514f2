from __future__ import annotations
from typing import Dict, Iterable, Optional, Sequence, Tuple

import cv2
import matplotlib.pyplot as plt
import numpy as np

from .models import Candidate, CellObjectLabeled, Label

# BGR
_LIVE_COLOR = (80, 200, 60)
_DEAD_COLOR = (200, 80, 40)
_CANDIDATE_COLOR = (0, 220, 255)


class Visualizer:
    """Debug rasters and plot helpers. Nothing here feeds back into measurements."""

    @staticmethod
    def gray_preview(img: np.ndarray) -> np.ndarray:
        lo, hi = float(img.min()), float(img.max())
        if hi - lo < 1e-12:
            return np.zeros(img.shape[:2], np.uint8)
        return ((img - lo) / (hi - lo) * 255.0).astype(np.uint8)

    @staticmethod
    def mask_preview(mask: np.ndarray) -> np.ndarray:
        return mask.astype(np.uint8) * 255

    @staticmethod
    def draw_candidates(img_bgr: np.ndarray, candidates: Iterable[Candidate]) -> np.ndarray:
        out = img_bgr.copy()
        for c in candidates:
            cv2.circle(out, (int(round(c.center.x)), int(round(c.center.y))),
                       max(1, int(round(c.radius))), _CANDIDATE_COLOR, 1, cv2.LINE_AA)
        return out

    @staticmethod
    def draw_detections(
        img_bgr: np.ndarray,
        labeled: Iterable[CellObjectLabeled],
        offset: Tuple[int, int] = (0, 0),
    ) -> np.ndarray:
        """Circles in image coordinates, shifted by -offset onto a cropped raster."""
        out = img_bgr.copy()
        ox, oy = offset
        for cell in labeled:
            color = _DEAD_COLOR if cell.label is Label.DEAD else _LIVE_COLOR
            r = max(1, int(round(cell.base.bbox.width / 2)))
            cx, cy = int(round(cell.base.centroid.x - ox)), int(round(cell.base.centroid.y - oy))
            cv2.circle(out, (cx, cy), r, color, 2, cv2.LINE_AA)
        return out

    @staticmethod
    def show_side_by_side(
        images: Sequence[np.ndarray],
        titles: Optional[Sequence[str]] = None,
        cmap_list: Optional[Sequence[Optional[str]]] = None,
        figsize: Tuple[int, int] = (18, 6),
        show: bool = True,
    ) -> plt.Figure:
        n = len(images)
        titles = titles or [f"Image {i+1}" for i in range(n)]
        cmap_list = cmap_list or [None] * n

        fig, axes = plt.subplots(1, n, figsize=figsize)
        if n == 1:
            axes = [axes]

        for ax, img, title, cmap in zip(axes, images, titles, cmap_list):
            if getattr(img, "ndim", 2) == 2 and cmap is None:
                cmap = "gray"
            elif getattr(img, "ndim", 2) == 3:
                img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
            ax.imshow(img, cmap=cmap)
            ax.set_title(title)
            ax.axis("off")

        fig.tight_layout()
        if show:
            plt.show()
        return fig

    @classmethod
    def show_debug(cls, debug_images: Dict[str, np.ndarray], show: bool = True) -> Optional[plt.Figure]:
        if not debug_images:
            return None
        names = sorted(debug_images)
        return cls.show_side_by_side([debug_images[k] for k in names], titles=names,
                                     figsize=(4 * len(names), 4), show=show)
