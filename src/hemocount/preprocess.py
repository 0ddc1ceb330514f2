from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import logging

import cv2
import numpy as np

from .config import PreprocessConfig

logger = logging.getLogger(__name__)

# Rec.709 luma weights in BGR order
_LUMA_BGR = np.array([0.0722, 0.7152, 0.2126], dtype=np.float32)


@dataclass
class NormalizedImage:
    luminance: np.ndarray               # float32 0..1, linear light
    background: np.ndarray              # float32 illumination estimate
    flattened: np.ndarray               # luminance / background (~1 on background)
    equalized: np.ndarray               # float32 0..1, input to the detectors


def linear_luminance(img_bgr: np.ndarray) -> np.ndarray:
    """BGR uint8 -> gamma-linearized luminance, float32 in [0, 1]."""
    lin = np.power(img_bgr.astype(np.float32) / 255.0, 2.2)
    return (lin @ _LUMA_BGR).astype(np.float32)


class IlluminationNormalizer:
    """Flatten vignetting with a heavy-blur background estimate, then equalize contrast."""

    def __init__(self, config: Optional[PreprocessConfig] = None) -> None:
        self.config = config or PreprocessConfig()
        if self.config.background_sigma <= 0:
            raise ValueError("background_sigma must be > 0")
        if not 0.0 < self.config.equalize_scale <= 1.0:
            raise ValueError("equalize_scale must be within (0, 1]")
        if self.config.contrast_floor <= 0:
            raise ValueError("contrast_floor must be > 0")

    def flatten(self, luma: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        eps = self.config.epsilon
        background = cv2.GaussianBlur(
            luma, (0, 0), self.config.background_sigma, borderType=cv2.BORDER_REPLICATE
        )
        flattened = (luma + eps) / (background + eps)
        return background, flattened.astype(np.float32)

    def to_u8(self, img: np.ndarray) -> np.ndarray:
        # spans under contrast_floor are not stretched (float noise on flat frames)
        lo, hi = float(img.min()), float(img.max())
        span = max(hi - lo, self.config.contrast_floor)
        return np.clip((img - lo) / span * 255.0 + 0.5, 0, 255).astype(np.uint8)

    def equalize(self, flattened: np.ndarray) -> np.ndarray:
        u8 = self.to_u8(flattened)
        h, w = u8.shape[:2]
        s = self.config.equalize_scale
        sw, sh = max(1, int(round(w * s))), max(1, int(round(h * s)))
        try:
            small = cv2.resize(u8, (sw, sh), interpolation=cv2.INTER_AREA)
            small = cv2.equalizeHist(small)
            out = cv2.resize(small, (w, h), interpolation=cv2.INTER_LINEAR)
        except cv2.error as e:
            logger.warning("Histogram equalization failed, using flattened image: %s", e)
            out = u8
        return out.astype(np.float32) / 255.0

    def run(self, img_bgr: np.ndarray) -> NormalizedImage:
        """BGR -> luminance -> flatten -> (optional) equalize."""
        luma = linear_luminance(img_bgr)
        background, flattened = self.flatten(luma)
        if self.config.equalize and luma.size > 0:
            equalized = self.equalize(flattened)
        else:
            equalized = self.to_u8(flattened).astype(np.float32) / 255.0
        return NormalizedImage(luma, background, flattened, equalized)
