from .config import DetectorParams, PreprocessConfig, SuppressionConfig, BlobConfig, SegmentConfig, PipelineConfig
from .models import (
    Point, Rect, Label, Candidate, LabeledCandidate, CellObject, ColorSampleStats,
    CellObjectLabeled, DetectionResult,
)
from .preprocess import IlluminationNormalizer, NormalizedImage, linear_luminance
from .suppression import GridSuppressor, TextureFilter
from .blobs import BlobDetector
from .classify import BlueMask, ColorClassifier, sample_color
from .nms import circle_overlap, suppress
from .segment import CellSegmenter, RegionShape, Segmentation, should_invert_polarity
from .counting import (
    GridGeometry, GridIndex, CountSummary, SeedingAdvice,
    map_centroid_to_grid, tally_by_large_square, robust_inliers, mean_count_per_large_square,
    concentration_per_ml, viability_percent, seeding_volume, summarize,
)
from .detector import CellDetector
from .runner import DetectionRunner, RunOutcome, RunTicket

__all__ = [
    "DetectorParams", "PreprocessConfig", "SuppressionConfig", "BlobConfig", "SegmentConfig", "PipelineConfig",
    "Point", "Rect", "Label", "Candidate", "LabeledCandidate", "CellObject", "ColorSampleStats",
    "CellObjectLabeled", "DetectionResult",
    "IlluminationNormalizer", "NormalizedImage", "linear_luminance",
    "GridSuppressor", "TextureFilter",
    "BlobDetector",
    "BlueMask", "ColorClassifier", "sample_color",
    "circle_overlap", "suppress",
    "CellSegmenter", "RegionShape", "Segmentation", "should_invert_polarity",
    "GridGeometry", "GridIndex", "CountSummary", "SeedingAdvice",
    "map_centroid_to_grid", "tally_by_large_square", "robust_inliers", "mean_count_per_large_square",
    "concentration_per_ml", "viability_percent", "seeding_volume", "summarize",
    "CellDetector",
    "DetectionRunner", "RunOutcome", "RunTicket",
]
