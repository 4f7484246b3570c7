"""
Word geometry and line grouping.

Provides:
- WordRegion: oriented (possibly rotated) word bounding box
- LineGroup: words forming one visual text line, left to right
- Deterministic grouping of words into reading-order lines
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Rect = Tuple[float, float, float, float]  # (x0, y0, x1, y1)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class WordRegion:
    """
    Oriented bounding box of one candidate word, in image coordinates.

    Uses the OpenCV rotated rectangle convention: ``center`` and ``size`` in
    pixels, ``angle`` in degrees.
    """
    center: Tuple[float, float]
    size: Tuple[float, float]
    angle: float = 0.0

    @classmethod
    def from_rect(cls, x0: float, y0: float, x1: float, y1: float) -> 'WordRegion':
        """Create an axis-aligned region from corner coordinates."""
        return cls(
            center=((x0 + x1) / 2.0, (y0 + y1) / 2.0),
            size=(x1 - x0, y1 - y0),
            angle=0.0
        )

    @property
    def area(self) -> float:
        return self.size[0] * self.size[1]

    def corners(self) -> np.ndarray:
        """Four corner points as a (4, 2) float array."""
        cx, cy = self.center
        hw, hh = self.size[0] / 2.0, self.size[1] / 2.0
        theta = math.radians(self.angle)
        cos_t, sin_t = math.cos(theta), math.sin(theta)

        offsets = np.array([[-hw, -hh], [hw, -hh], [hw, hh], [-hw, hh]])
        rotation = np.array([[cos_t, -sin_t], [sin_t, cos_t]])
        return offsets @ rotation.T + np.array([cx, cy])

    def bounding_rect(self) -> Rect:
        """Axis-aligned rectangle enclosing the rotated box."""
        if self.angle == 0.0:
            cx, cy = self.center
            hw, hh = self.size[0] / 2.0, self.size[1] / 2.0
            return (cx - hw, cy - hh, cx + hw, cy + hh)
        pts = self.corners()
        x0, y0 = pts.min(axis=0)
        x1, y1 = pts.max(axis=0)
        return (float(x0), float(y0), float(x1), float(y1))

    def sort_key(self) -> Tuple:
        return (self.bounding_rect(), self.center, self.size, self.angle)


@dataclass(frozen=True)
class LineGroup:
    """Words judged to belong to one text line, in left-to-right order."""
    words: Tuple[WordRegion, ...]

    def __len__(self) -> int:
        return len(self.words)

    def __iter__(self) -> Iterator[WordRegion]:
        return iter(self.words)

    def bounding_rect(self) -> Optional[Rect]:
        """Union of the word bounding rects, or None for an empty line."""
        if not self.words:
            return None
        rects = [w.bounding_rect() for w in self.words]
        return (
            min(r[0] for r in rects),
            min(r[1] for r in rects),
            max(r[2] for r in rects),
            max(r[3] for r in rects),
        )


# ============================================================================
# Line Grouping
# ============================================================================

def vertical_overlap(a: Rect, b: Rect) -> float:
    """Vertical overlap of two rects as a fraction of the smaller height."""
    min_height = min(a[3] - a[1], b[3] - b[1])
    if min_height <= 0:
        return 0.0
    overlap = min(a[3], b[3]) - max(a[1], b[1])
    return max(0.0, overlap) / min_height


def group_words_into_lines(
    words: Iterable[WordRegion],
    min_vertical_overlap: float = 0.5,
    max_gap_ratio: float = 3.0
) -> List[LineGroup]:
    """
    Group word regions into text lines in reading order.

    Words are visited left to right. A word joins the line whose last word
    overlaps it most vertically, provided the overlap and the horizontal gap
    are within limits; otherwise it starts a new line. The result depends
    only on the set of words, not on their input order.

    Args:
        words: Detected word regions
        min_vertical_overlap: Minimum overlap, as a fraction of the smaller
            word height, for two neighbouring words to share a line
        max_gap_ratio: Maximum horizontal gap between neighbouring words, in
            multiples of the taller word's height

    Returns:
        Lines sorted top to bottom; words within a line sorted left to right.
        Every word appears in exactly one line.
    """
    ordered = sorted(words, key=lambda w: w.sort_key())
    lines: List[List[WordRegion]] = []
    last_rects: List[Rect] = []

    for word in ordered:
        rect = word.bounding_rect()
        best_line = None
        best_overlap = 0.0

        for idx, last in enumerate(last_rects):
            overlap = vertical_overlap(rect, last)
            if overlap < min_vertical_overlap:
                continue

            line_height = max(rect[3] - rect[1], last[3] - last[1])
            gap = rect[0] - last[2]
            if gap > max_gap_ratio * line_height:
                continue

            if best_line is None or overlap > best_overlap:
                best_line = idx
                best_overlap = overlap

        if best_line is None:
            lines.append([word])
            last_rects.append(rect)
        else:
            lines[best_line].append(word)
            last_rects[best_line] = rect

    groups = [LineGroup(words=tuple(line)) for line in lines]
    groups.sort(key=lambda g: (g.bounding_rect()[1], g.bounding_rect()[0]))

    logger.debug(f"Grouped {len(ordered)} words into {len(groups)} lines")
    return groups
