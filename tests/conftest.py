from __future__ import annotations
from typing import Sequence, Tuple

import numpy as np
import pytest
from skimage.draw import disk

from hemocount.config import DetectorParams, PipelineConfig, PreprocessConfig
from hemocount.models import CellObject, Point, Rect

BACKGROUND_BGR = (225, 225, 225)
PALE_BGR = (70, 70, 70)             # unstained cell, neutral grey
BLUE_BGR = (190, 90, 40)            # trypan-blue stained cell, hue ~220 deg


def make_slide(
    size: Tuple[int, int] = (128, 128),
    cells: Sequence[Tuple[float, float, float, Tuple[int, int, int]]] = (),
    background: Tuple[int, int, int] = BACKGROUND_BGR,
) -> np.ndarray:
    """BGR uint8 frame with filled disks; cells are (x, y, radius, bgr)."""
    h, w = size
    img = np.empty((h, w, 3), np.uint8)
    img[:] = background
    for x, y, r, color in cells:
        rr, cc = disk((y, x), r, shape=(h, w))
        img[rr, cc] = color
    return img


def cell_object(id: int, x: float, y: float, pixel_count: int = 10) -> CellObject:
    return CellObject(
        id=id,
        pixel_count=pixel_count,
        area_px=float(pixel_count),
        perimeter_px=float(pixel_count),
        circularity=1.0,
        solidity=1.0,
        centroid=Point(x, y),
        bbox=Rect(x, y, 1.0, 1.0),
    )


@pytest.fixture
def plain_config() -> PipelineConfig:
    # synthetic frames have no ruled grid and no illumination gradient
    return PipelineConfig(
        params=DetectorParams(enable_grid_suppression=False),
        preprocess=PreprocessConfig(equalize=False),
    )


@pytest.fixture
def two_cell_slide() -> np.ndarray:
    return make_slide(cells=[(40, 64, 6, PALE_BGR), (88, 64, 6, BLUE_BGR)])
