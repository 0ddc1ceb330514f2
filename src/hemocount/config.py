from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple


# Config dataclasses (explicit, passed into every stage)

@dataclass(frozen=True)
class DetectorParams:
    enable_grid_suppression: bool = True
    blue_hue_min: float = 200.0         # degrees; min > max wraps through 0
    blue_hue_max: float = 260.0
    min_blue_saturation: float = 0.30
    max_blue_value: float = 0.90        # brighter pixels are never "stained"
    blob_score_threshold: float = 0.5
    nms_iou: float = 0.3
    min_cell_diameter_um: float = 8.0
    max_cell_diameter_um: float = 30.0

    def __post_init__(self) -> None:
        for name in ("blue_hue_min", "blue_hue_max"):
            v = getattr(self, name)
            if not 0.0 <= v <= 360.0:
                raise ValueError(f"{name} must be within [0, 360], got {v}")
        for name in ("min_blue_saturation", "max_blue_value", "blob_score_threshold", "nms_iou"):
            v = getattr(self, name)
            if not 0.0 <= v <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {v}")
        if self.min_cell_diameter_um <= 0:
            raise ValueError("min_cell_diameter_um must be > 0")
        if self.max_cell_diameter_um < self.min_cell_diameter_um:
            raise ValueError("max_cell_diameter_um must be >= min_cell_diameter_um")


@dataclass
class PreprocessConfig:
    background_sigma: float = 30.0      # large blur used as illumination estimate
    epsilon: float = 1e-3
    equalize: bool = True
    equalize_scale: float = 0.5         # equalize on a downsampled copy for speed
    contrast_floor: float = 0.05        # minimum flattened range stretched to 0..255


@dataclass
class SuppressionConfig:
    grid_peaks: int = 20                # rows and columns each
    grid_stripe_px: int = 4
    texture_window: int = 15            # local mean of |Laplacian|
    texture_gain: float = 2.0
    texture_threshold: float = 0.05


@dataclass
class BlobConfig:
    sigmas: Tuple[float, ...] = (1.5, 2.5, 3.5, 4.5)
    sigma_ratio: float = 1.6
    min_response: float = 0.02          # below this the image has no blob structure
    fallback_radius_px: Tuple[float, float] = (3.0, 50.0)
    parallel: bool = False


@dataclass
class SegmentConfig:
    enabled: bool = True                # measure shape from a thresholded mask
    method: str = "otsu"                # "otsu" (global) or "adaptive" (Sauvola)
    sauvola_window: int = 41            # odd
    open_radius: int = 1
    min_object_area: int = 9            # pixels
    max_area_ratio: float = 4.0         # region area vs blob disk area before it is ignored


@dataclass
class PipelineConfig:
    params: DetectorParams = field(default_factory=DetectorParams)
    preprocess: PreprocessConfig = field(default_factory=PreprocessConfig)
    suppression: SuppressionConfig = field(default_factory=SuppressionConfig)
    blobs: BlobConfig = field(default_factory=BlobConfig)
    segment: SegmentConfig = field(default_factory=SegmentConfig)
    debug: bool = False                 # render intermediate rasters
    save_dir: Optional[str] = None
    show: bool = False
