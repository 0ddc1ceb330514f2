"""Pixel <-> micron conversions. Non-positive scales yield 0 instead of raising."""
from __future__ import annotations
from typing import Tuple

LARGE_SQUARE_UM = 1000.0
CHAMBER_UM = 3000.0


def microns_per_pixel(square_width_px: float, square_width_um: float = LARGE_SQUARE_UM) -> float:
    if square_width_px <= 0:
        return 0.0
    return square_width_um / square_width_px


def px_per_micron(square_width_px: float, square_width_um: float = LARGE_SQUARE_UM) -> float:
    """Scale from a measured square: e.g. a 1000 um square spanning 2000 px -> 2.0."""
    if square_width_px <= 0 or square_width_um <= 0:
        return 0.0
    return square_width_px / square_width_um


def fallback_px_per_micron(width_px: int, height_px: int, chamber_um: float = CHAMBER_UM) -> float:
    """Assume the frame covers the whole 3x3 chamber."""
    if width_px <= 0 or height_px <= 0 or chamber_um <= 0:
        return 0.0
    return min(width_px / chamber_um, height_px / chamber_um)


def area_um2(pixel_count: float, px_per_micron: float) -> float:
    if px_per_micron <= 0:
        return 0.0
    return pixel_count / (px_per_micron * px_per_micron)


def pixel_count_from_area(area_um2: float, px_per_micron: float) -> float:
    if px_per_micron <= 0:
        return 0.0
    return area_um2 * px_per_micron * px_per_micron


def pixel_radius_range(min_diameter_um: float, max_diameter_um: float, px_per_micron: float) -> Tuple[float, float]:
    if px_per_micron <= 0:
        return 0.0, 0.0
    return (min_diameter_um / 2.0) * px_per_micron, (max_diameter_um / 2.0) * px_per_micron
