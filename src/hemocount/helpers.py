from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Tuple

import cv2
import numpy as np
import os

from .models import Rect


IMAGE_EXTENSIONS: Tuple[str, ...] = (".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp")


# I/O & filesystem helpers

def ensure_dir(path: str | os.PathLike) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def load_image_bgr(path: str | os.PathLike) -> np.ndarray:
    """Load a chamber photograph as BGR uint8. Raises on failure."""
    img = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img is None:
        raise FileNotFoundError(f"Could not read image: {path}")
    return img


def list_images(dir_path: str | os.PathLike, extensions: Tuple[str, ...] = IMAGE_EXTENSIONS) -> List[str]:
    p = Path(dir_path)
    return [
        str(fp) for fp in sorted(p.iterdir())
        if fp.is_file() and fp.suffix.lower() in extensions
    ]


# Array helpers

def as_bgr_u8(img: np.ndarray) -> np.ndarray:
    """Accept gray, BGR or BGRA input (uint8 or float in [0, 1]) and return BGR uint8."""
    if img.dtype != np.uint8:
        img = (np.clip(img.astype(np.float32), 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


def clip_roi(roi: Optional[Rect], shape: Tuple[int, ...]) -> Tuple[int, int, int, int]:
    """Integral ROI clipped to the image: (x0, y0, x1, y1), possibly empty."""
    h, w = shape[:2]
    if roi is None:
        return 0, 0, w, h
    x0 = int(np.floor(roi.x))
    y0 = int(np.floor(roi.y))
    x1 = int(np.ceil(roi.x + roi.width))
    y1 = int(np.ceil(roi.y + roi.height))
    x0, x1 = max(0, x0), min(w, x1)
    y0, y1 = max(0, y0), min(h, y1)
    return x0, y0, max(x0, x1), max(y0, y1)


def sample_mask(mask: np.ndarray, x: float, y: float) -> bool:
    """Mask lookup at a (sub)pixel position; outside the raster is False."""
    xi, yi = int(round(x)), int(round(y))
    if xi < 0 or yi < 0 or yi >= mask.shape[0] or xi >= mask.shape[1]:
        return False
    return bool(mask[yi, xi])
