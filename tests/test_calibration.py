import pytest

from hemocount.calibration import (
    area_um2,
    fallback_px_per_micron,
    microns_per_pixel,
    pixel_count_from_area,
    pixel_radius_range,
    px_per_micron,
)


def test_area_unit_conversion():
    # 100 px at 2 px/um -> 25 um^2
    assert area_um2(100, 2.0) == pytest.approx(25.0)


@pytest.mark.parametrize("pixels,ppm", [(100, 2.0), (1234, 0.37), (7, 13.5)])
def test_area_round_trip(pixels, ppm):
    assert pixel_count_from_area(area_um2(pixels, ppm), ppm) == pytest.approx(pixels)


def test_non_positive_scale_yields_zero():
    assert area_um2(100, 0.0) == 0.0
    assert area_um2(100, -1.0) == 0.0
    assert pixel_count_from_area(25.0, 0.0) == 0.0
    assert pixel_radius_range(8, 30, 0.0) == (0.0, 0.0)
    assert microns_per_pixel(0.0) == 0.0
    assert px_per_micron(0.0) == 0.0


def test_square_width_scales():
    assert px_per_micron(2000.0) == pytest.approx(2.0)
    assert microns_per_pixel(2000.0) == pytest.approx(0.5)
    assert px_per_micron(250.0, square_width_um=50.0) == pytest.approx(5.0)


def test_pixel_radius_range():
    lo, hi = pixel_radius_range(8, 30, 2.0)
    assert lo == pytest.approx(8.0)
    assert hi == pytest.approx(30.0)


def test_fallback_assumes_full_chamber():
    assert fallback_px_per_micron(3000, 6000) == pytest.approx(1.0)
    assert fallback_px_per_micron(0, 100) == 0.0
