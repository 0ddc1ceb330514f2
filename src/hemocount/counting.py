"""
Neubauer-improved chamber geometry and counting statistics.

The active area is a 3x3 grid of 1000 um large squares, each split into 20x20
small squares of 50 um. Cells are attributed by centroid with closed top/left
and open bottom/right square edges, so a centroid on a shared line is counted
exactly once.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import math
import time

import numpy as np

from .models import CellObject, CellObjectLabeled, Label, Point

logger = logging.getLogger(__name__)

DEFAULT_SELECTED_SQUARES: Tuple[int, ...] = (0, 2, 6, 8)    # four corner squares
LARGE_SQUARE_FACTOR = 10_000.0      # 1 / 0.1 uL, large-square volume at 0.1 mm depth
_SNAP_EPS = 1e-9


@dataclass(frozen=True)
class GridGeometry:
    origin_px: Point                    # top-left of the ruled area in image pixels
    px_per_micron: float
    width_micron: float = 3000.0
    height_micron: float = 3000.0
    large_size_um: float = 1000.0
    small_size_um: float = 50.0


@dataclass(frozen=True)
class GridIndex:
    large_x: int                        # 0..2
    large_y: int                        # 0..2
    small_x: int                        # 0..19 within the large square
    small_y: int                        # 0..19

    @property
    def large_index(self) -> int:
        return self.large_y * 3 + self.large_x

    @property
    def small_index(self) -> int:
        return self.small_y * 20 + self.small_x


@dataclass(frozen=True)
class SeedingAdvice:
    volume_ml: float
    guidance: str


@dataclass(frozen=True)
class CountSummary:
    live: int
    dead: int
    mean_per_square: float
    selected_count: int
    outlier_flags: Dict[int, bool]      # large index -> rejected as outlier
    outlier_count: int
    concentration_per_ml: float
    viability_percent: float


def _snap(value: float, step: float) -> float:
    # values a hair below a grid line belong to the square starting on it
    nearest = round(value / step) * step
    if abs(value - nearest) <= _SNAP_EPS:
        return nearest
    return value


def map_centroid_to_grid(point: Point, geometry: GridGeometry) -> Optional[GridIndex]:
    ppm = geometry.px_per_micron
    if ppm <= 0:
        return None
    u = (point[0] - geometry.origin_px[0]) / ppm
    v = (point[1] - geometry.origin_px[1]) / ppm
    if not (math.isfinite(u) and math.isfinite(v)) or u < 0 or v < 0:
        return None
    u = _snap(u, geometry.small_size_um)
    v = _snap(v, geometry.small_size_um)
    if u >= geometry.width_micron or v >= geometry.height_micron:
        return None  # on or past the outer right/bottom border

    large_x = int(u // geometry.large_size_um)
    large_y = int(v // geometry.large_size_um)
    local_x = u - large_x * geometry.large_size_um
    local_y = v - large_y * geometry.large_size_um
    small_x = int(local_x // geometry.small_size_um)
    small_y = int(local_y // geometry.small_size_um)
    if not (0 <= large_x <= 2 and 0 <= large_y <= 2 and 0 <= small_x <= 19 and 0 <= small_y <= 19):
        return None
    return GridIndex(large_x, large_y, small_x, small_y)


def tally_by_large_square(objects: Iterable[CellObject], geometry: GridGeometry) -> Dict[int, int]:
    start = time.perf_counter()
    tally: Dict[int, int] = {}
    n = 0
    for obj in objects:
        n += 1
        idx = map_centroid_to_grid(obj.centroid, geometry)
        if idx is not None:
            tally[idx.large_index] = tally.get(idx.large_index, 0) + 1
    logger.debug("Tallied %d objects into %d squares in %.2f ms",
                 n, len(tally), (time.perf_counter() - start) * 1000)
    return tally


def robust_inliers(values: Sequence[float], threshold: float = 2.5) -> List[bool]:
    """Modified z-score (0.6745 * dev / MAD) test; a zero MAD keeps everything."""
    if len(values) == 0:
        return []
    v = np.asarray(values, dtype=float)
    m = np.median(v)
    mad = np.median(np.abs(v - m))
    if mad <= 0:
        return [True] * len(values)
    return (np.abs(0.6745 * (v - m) / mad) <= threshold).tolist()


def mean_count_per_large_square(
    tally: Dict[int, int],
    selected: Sequence[int] = DEFAULT_SELECTED_SQUARES,
    outlier_threshold: Optional[float] = 2.5,
) -> float:
    counts = [float(tally[i]) for i in selected if i in tally]
    if not counts:
        return 0.0
    if outlier_threshold is None:
        return sum(counts) / len(counts)
    mask = robust_inliers(counts, outlier_threshold)
    kept = [c for c, ok in zip(counts, mask) if ok] or counts
    return sum(kept) / len(kept)


def concentration_per_ml(mean_count: float, dilution_factor: float) -> float:
    return mean_count * LARGE_SQUARE_FACTOR * dilution_factor


def viability_percent(live: int, dead: int) -> float:
    total = live + dead
    if total <= 0:
        return 0.0
    return 100.0 * live / total


def seeding_volume(
    target_cells: int,
    final_volume_ml: float,
    concentration_per_ml: float,
    mean_count: float,
    density_limits: Tuple[float, float] = (10.0, 300.0),
) -> SeedingAdvice:
    """Volume of counted suspension to add for target_cells; guidance is advisory only."""
    if concentration_per_ml <= 0:
        return SeedingAdvice(0.0, "Concentration is zero; cannot compute volume.")
    vol = target_cells / concentration_per_ml
    lo, hi = density_limits
    notes: List[str] = []
    if mean_count > hi:
        notes.append(f"Overcrowding detected ({int(mean_count)}). Consider increasing dilution.")
    elif mean_count < lo:
        notes.append(f"Low density detected ({int(mean_count)}). Consider reducing dilution.")
    if vol > final_volume_ml:
        notes.append(
            f"Required volume ({vol:.2f} mL) exceeds final volume ({final_volume_ml:.2f} mL). "
            "Consider concentrating the sample."
        )
    guidance = " ".join(notes) if notes else f"Proceed with {vol:.2f} mL into {final_volume_ml:.2f} mL."
    return SeedingAdvice(vol, guidance)


def summarize(
    labeled: Sequence[CellObjectLabeled],
    tally: Dict[int, int],
    selected: Sequence[int] = DEFAULT_SELECTED_SQUARES,
    dilution_factor: float = 1.0,
    outlier_threshold: Optional[float] = 2.5,
) -> CountSummary:
    live = sum(1 for c in labeled if c.label is Label.LIVE)
    dead = sum(1 for c in labeled if c.label is Label.DEAD)
    present = [i for i in selected if i in tally]
    values = [float(tally[i]) for i in present]
    if outlier_threshold is None:
        mask = [True] * len(values)
    else:
        mask = robust_inliers(values, outlier_threshold)
    flags = {i: not ok for i, ok in zip(present, mask)}
    mean = mean_count_per_large_square(tally, selected, outlier_threshold)
    return CountSummary(
        live=live,
        dead=dead,
        mean_per_square=mean,
        selected_count=len(present),
        outlier_flags=flags,
        outlier_count=sum(flags.values()),
        concentration_per_ml=concentration_per_ml(mean, dilution_factor),
        viability_percent=viability_percent(live, dead),
    )
