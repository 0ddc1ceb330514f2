"""
Off-thread detection runs with last-run-wins commits.

Each submit() takes a new, strictly increasing run id. When a run finishes its
outcome is published only if no newer run has been submitted in the meantime;
superseded results are dropped. The committed outcome is replaced wholesale.
"""
from __future__ import annotations
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import itertools
import logging
import threading

import numpy as np

from .calibration import fallback_px_per_micron
from .counting import GridGeometry, tally_by_large_square
from .detector import CellDetector
from .models import DetectionResult, Point, Rect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    run_id: int
    detection: DetectionResult
    tally: Dict[int, int]
    geometry: GridGeometry


@dataclass
class RunTicket:
    run_id: int
    future: "Future[RunOutcome]"


class DetectionRunner:
    def __init__(
        self,
        detector: Optional[CellDetector] = None,
        executor: Optional[Executor] = None,
        on_commit: Optional[Callable[[RunOutcome], None]] = None,
    ) -> None:
        self.detector = detector or CellDetector()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="hemocount-run")
        self._on_commit = on_commit
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._latest_id = 0
        self._committed: Optional[RunOutcome] = None

    @property
    def state(self) -> Optional[RunOutcome]:
        with self._lock:
            return self._committed

    @property
    def latest_run_id(self) -> int:
        with self._lock:
            return self._latest_id

    def compute(
        self,
        run_id: int,
        image: np.ndarray,
        roi: Optional[Rect] = None,
        px_per_micron: Optional[float] = None,
        origin: Point = Point(0.0, 0.0),
    ) -> RunOutcome:
        det = self.detector.detect(image, roi=roi, px_per_micron=px_per_micron)
        ppm = det.px_per_micron
        if ppm is None or ppm <= 0:
            h, w = image.shape[:2]
            ppm = fallback_px_per_micron(w, h)
        geometry = GridGeometry(origin_px=origin, px_per_micron=ppm)
        tally = tally_by_large_square(det.objects, geometry)
        return RunOutcome(run_id=run_id, detection=det, tally=tally, geometry=geometry)

    def commit(self, outcome: RunOutcome) -> bool:
        """Publish outcome unless a newer run was submitted or already committed."""
        with self._lock:
            if outcome.run_id != self._latest_id:
                logger.debug("Discarding superseded run %d (latest %d)", outcome.run_id, self._latest_id)
                return False
            if self._committed is not None and self._committed.run_id >= outcome.run_id:
                return False
            self._committed = outcome
        logger.info("Committed run %d: %d cells", outcome.run_id, len(outcome.detection.labeled))
        if self._on_commit is not None:
            try:
                self._on_commit(outcome)
            except Exception:
                # the outcome is already published; a listener error does not fail the run
                logger.exception("on_commit callback failed for run %d", outcome.run_id)
        return True

    def _run(self, run_id: int, *args, **kwargs) -> RunOutcome:
        try:
            outcome = self.compute(run_id, *args, **kwargs)
        except Exception:
            logger.exception("Detection run %d failed", run_id)
            raise
        self.commit(outcome)
        return outcome

    def submit(
        self,
        image: np.ndarray,
        roi: Optional[Rect] = None,
        px_per_micron: Optional[float] = None,
        origin: Point = Point(0.0, 0.0),
    ) -> RunTicket:
        with self._lock:
            run_id = next(self._ids)
            self._latest_id = run_id
        future = self._executor.submit(self._run, run_id, image, roi, px_per_micron, origin)
        return RunTicket(run_id=run_id, future=future)

    def wait(self, ticket: RunTicket, timeout: Optional[float] = None) -> RunOutcome:
        return ticket.future.result(timeout=timeout)

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "DetectionRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
