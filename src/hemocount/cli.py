from __future__ import annotations
import argparse
import logging
import os
from typing import Optional

import cv2

from .calibration import fallback_px_per_micron, px_per_micron
from .config import BlobConfig, DetectorParams, PipelineConfig, PreprocessConfig, SegmentConfig
from .counting import GridGeometry, summarize, tally_by_large_square
from .detector import CellDetector
from .helpers import ensure_dir, list_images, load_image_bgr
from .models import Point, Rect
from .viz import Visualizer

logger = logging.getLogger(__name__)


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Hemocytometer cell counting and viability")
    g_io = p.add_argument_group("I/O")
    g_io.add_argument("--image", type=str, help="Path to a single image")
    g_io.add_argument("--dir", type=str, help="Path to a directory of images")
    g_io.add_argument("--save_dir", type=str, default=None, help="Write debug rasters here")
    g_io.add_argument("--show", action="store_true", help="Display debug panels")
    g_io.add_argument("--verbose", action="store_true", help="Debug logging")

    g_cal = p.add_argument_group("Calibration & counting")
    g_cal.add_argument("--roi", type=float, nargs=4, metavar=("X", "Y", "W", "H"), default=None)
    g_cal.add_argument("--px_per_micron", type=float, default=None)
    g_cal.add_argument("--square_px", type=float, default=None,
                       help="Measured width of a 1000 um large square in pixels")
    g_cal.add_argument("--origin", type=float, nargs=2, metavar=("X", "Y"), default=(0.0, 0.0),
                       help="Top-left corner of the ruled grid in pixels")
    g_cal.add_argument("--dilution", type=float, default=1.0)
    g_cal.add_argument("--squares", type=int, nargs="+", default=[0, 2, 6, 8],
                       help="Large squares (0..8) to average")

    g_det = p.add_argument_group("Detection")
    g_det.add_argument("--no_grid", action="store_true", help="Disable grid-line suppression")
    g_det.add_argument("--hue_min", type=float, default=200.0)
    g_det.add_argument("--hue_max", type=float, default=260.0)
    g_det.add_argument("--min_sat", type=float, default=0.30)
    g_det.add_argument("--max_value", type=float, default=0.90)
    g_det.add_argument("--blob_thresh", type=float, default=0.5)
    g_det.add_argument("--nms_iou", type=float, default=0.3)
    g_det.add_argument("--min_diam", type=float, default=8.0, help="Min cell diameter (um)")
    g_det.add_argument("--max_diam", type=float, default=30.0, help="Max cell diameter (um)")
    g_det.add_argument("--no_equalize", action="store_true")
    g_det.add_argument("--parallel", action="store_true", help="Scan DoG scales on a thread pool")

    g_seg = p.add_argument_group("Shape measurement")
    g_seg.add_argument("--no_segment", action="store_true", help="Use blob circles instead of measured regions")
    g_seg.add_argument("--threshold", choices=["otsu", "adaptive"], default="otsu")
    g_seg.add_argument("--sauvola_window", type=int, default=41)

    return p


def _resolve_ppm(args: argparse.Namespace) -> Optional[float]:
    if args.px_per_micron is not None:
        return args.px_per_micron
    if args.square_px is not None:
        return px_per_micron(args.square_px)
    return None


def _process_one(path: str, args: argparse.Namespace, detector: CellDetector, viz: Visualizer) -> None:
    img = load_image_bgr(path)
    roi = Rect(*args.roi) if args.roi else None
    ppm = _resolve_ppm(args)

    det = detector.detect(img, roi=roi, px_per_micron=ppm)
    if ppm is None or ppm <= 0:
        h, w = img.shape[:2]
        ppm = fallback_px_per_micron(w, h)
        logger.info("No calibration given; assuming the frame spans the chamber (%.4f px/um)", ppm)

    geometry = GridGeometry(origin_px=Point(*args.origin), px_per_micron=ppm)
    tally = tally_by_large_square(det.objects, geometry)
    summary = summarize(det.labeled, tally, args.squares, args.dilution)

    print(f"{os.path.basename(path)}")
    print(f"  cells: {len(det.labeled)} (live {summary.live}, dead {summary.dead})")
    print(f"  per square: {dict(sorted(tally.items()))}")
    print(f"  mean/square: {summary.mean_per_square:.2f} over {summary.selected_count} "
          f"(outliers {summary.outlier_count})")
    print(f"  concentration: {summary.concentration_per_ml:.3e} cells/mL")
    print(f"  viability: {summary.viability_percent:.1f} %")
    if not det.labeled:
        print("  no cells found: check focus, region of interest and calibration")

    if args.show:
        viz.show_debug(det.debug_images)

    if args.save_dir:
        ensure_dir(args.save_dir)
        base = os.path.splitext(os.path.basename(path))[0]
        for name, raster in det.debug_images.items():
            cv2.imwrite(os.path.join(args.save_dir, f"{base}_{name}.png"), raster)


def main() -> None:
    args = build_argparser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    params = DetectorParams(
        enable_grid_suppression=not args.no_grid,
        blue_hue_min=args.hue_min,
        blue_hue_max=args.hue_max,
        min_blue_saturation=args.min_sat,
        max_blue_value=args.max_value,
        blob_score_threshold=args.blob_thresh,
        nms_iou=args.nms_iou,
        min_cell_diameter_um=args.min_diam,
        max_cell_diameter_um=args.max_diam,
    )
    cfg = PipelineConfig(
        params=params,
        preprocess=PreprocessConfig(equalize=not args.no_equalize),
        blobs=BlobConfig(parallel=args.parallel),
        segment=SegmentConfig(enabled=not args.no_segment, method=args.threshold,
                              sauvola_window=args.sauvola_window),
        debug=bool(args.save_dir or args.show),
        save_dir=args.save_dir,
        show=args.show,
    )
    detector = CellDetector(cfg)
    viz = Visualizer()

    if args.image:
        _process_one(args.image, args, detector, viz)
    elif args.dir:
        for path in list_images(args.dir):
            _process_one(path, args, detector, viz)
    else:
        raise SystemExit("Provide either --image or --dir")


if __name__ == "__main__":
    main()
