import numpy as np
import pytest

from hemocount.blobs import BlobDetector
from hemocount.config import BlobConfig, DetectorParams


def dark_disk(size=96, center=(48, 48), r=6):
    img = np.ones((size, size), np.float32)
    yy, xx = np.mgrid[:size, :size]
    img[(xx - center[0]) ** 2 + (yy - center[1]) ** 2 <= r * r] = 0.0
    return img


def open_masks(img):
    return np.ones(img.shape, bool), np.zeros(img.shape, bool)


@pytest.mark.parametrize("w,h,step", [(100, 100, 1), (1024, 768, 1), (2048, 1536, 3), (4000, 3000, 5)])
def test_scan_step(w, h, step):
    assert BlobDetector.scan_step(w, h) == step


def test_blank_image_has_no_candidates():
    img = np.full((64, 64), 0.7, np.float32)
    texture, grid = open_masks(img)
    assert BlobDetector().detect(img, texture, grid, DetectorParams()) == []


def test_tiny_image_has_no_candidates():
    img = np.zeros((4, 4), np.float32)
    texture, grid = open_masks(img)
    assert BlobDetector().detect(img, texture, grid, DetectorParams()) == []


def test_disk_centre_found():
    img = dark_disk()
    texture, grid = open_masks(img)
    found = BlobDetector().detect(img, texture, grid, DetectorParams())
    assert found
    best = max(found, key=lambda c: c.score)
    assert best.score == pytest.approx(1.0)
    assert abs(best.center.x - 48) <= 1 and abs(best.center.y - 48) <= 1
    assert all(0.0 <= c.score <= 1.0 for c in found)
    assert all(2 <= c.center.x < 94 and 2 <= c.center.y < 94 for c in found)


def test_masks_gate_candidates():
    img = dark_disk()
    texture, grid = open_masks(img)
    detector = BlobDetector()
    params = DetectorParams()
    assert detector.detect(img, np.zeros_like(texture), grid, params) == []
    assert detector.detect(img, texture, np.ones_like(grid), params) == []


def test_radius_gate_uses_physical_range():
    img = dark_disk()
    texture, grid = open_masks(img)
    detector = BlobDetector()
    params = DetectorParams(min_cell_diameter_um=8, max_cell_diameter_um=30)
    # 0.25 px/um -> radius range [1, 3.75] px, so only the 2.4 px scale survives
    assert detector.radius_bounds(params, 0.25) == pytest.approx((1.0, 3.75))
    for c in detector.detect(img, texture, grid, params, px_per_micron=0.25):
        assert 1.0 <= c.radius <= 3.75


def test_radius_gate_fallback_range():
    img = dark_disk()
    texture, grid = open_masks(img)
    detector = BlobDetector()
    assert detector.radius_bounds(DetectorParams(), None) == (3.0, 50.0)
    radii = {c.radius for c in detector.detect(img, texture, grid, DetectorParams())}
    assert radii
    assert all(3.0 <= r <= 50.0 for r in radii)


def test_parallel_matches_sequential():
    img = dark_disk()
    texture, grid = open_masks(img)
    params = DetectorParams()
    seq = BlobDetector().detect(img, texture, grid, params)
    par = BlobDetector(BlobConfig(parallel=True)).detect(img, texture, grid, params)
    assert seq == par


def test_invalid_config_rejected():
    with pytest.raises(ValueError):
        BlobDetector(BlobConfig(sigmas=()))
    with pytest.raises(ValueError):
        BlobDetector(BlobConfig(sigma_ratio=1.0))
