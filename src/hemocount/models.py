"""Typed values passed between pipeline stages."""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, NamedTuple, Optional

import numpy as np


class Point(NamedTuple):
    x: float
    y: float


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float


class Label(str, Enum):
    LIVE = "live"
    DEAD = "dead"


@dataclass(frozen=True)
class Candidate:
    center: Point
    radius: float
    score: float                        # 0..1


@dataclass(frozen=True)
class LabeledCandidate:
    center: Point
    radius: float
    score: float
    label: Label
    confidence: float                   # 0..1


@dataclass(frozen=True)
class CellObject:
    id: int
    pixel_count: int
    area_px: float
    perimeter_px: float
    circularity: float
    solidity: float
    centroid: Point
    bbox: Rect


@dataclass(frozen=True)
class ColorSampleStats:
    hue: float                          # 0..360
    saturation: float                   # 0..1
    value: float                        # 0..1
    L: float                            # 0..100
    a: float
    b: float


@dataclass(frozen=True)
class CellObjectLabeled:
    id: int
    base: CellObject
    color: ColorSampleStats
    label: Label
    confidence: float

    def with_label(self, label: Label) -> "CellObjectLabeled":
        """Copy with a manually corrected label."""
        return replace(self, label=Label(label))


@dataclass
class DetectionResult:
    objects: List[CellObject]
    labeled: List[CellObjectLabeled]
    px_per_micron: Optional[float]
    debug_images: Dict[str, np.ndarray] = field(default_factory=dict)
    focus_score: float = 0.0

    @property
    def live_count(self) -> int:
        return sum(1 for c in self.labeled if c.label is Label.LIVE)

    @property
    def dead_count(self) -> int:
        return sum(1 for c in self.labeled if c.label is Label.DEAD)

    @classmethod
    def empty(cls, px_per_micron: Optional[float] = None) -> "DetectionResult":
        return cls(objects=[], labeled=[], px_per_micron=px_per_micron)
