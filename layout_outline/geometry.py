"""
Axis-aligned rectangle helpers shared by NMS and the table overlap filter.

Rectangles are either objects exposing ``x1, y1, x2, y2`` (DetectionBox) or
plain ``(x1, y1, x2, y2)`` tuples.
"""

from typing import Sequence, Tuple, Union

from .data_models import DetectionBox

Rect = Union[DetectionBox, Sequence[float]]


def _coords(rect: Rect) -> Tuple[float, float, float, float]:
    if isinstance(rect, DetectionBox):
        return rect.x1, rect.y1, rect.x2, rect.y2
    x1, y1, x2, y2 = rect
    return float(x1), float(y1), float(x2), float(y2)


def box_area(rect: Rect) -> float:
    """Area of a rectangle, zero when it is degenerate."""
    x1, y1, x2, y2 = _coords(rect)
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def intersection_area(a: Rect, b: Rect) -> float:
    """Area shared by two rectangles."""
    ax1, ay1, ax2, ay2 = _coords(a)
    bx1, by1, bx2, by2 = _coords(b)

    x1 = max(ax1, bx1)
    y1 = max(ay1, by1)
    x2 = min(ax2, bx2)
    y2 = min(ay2, by2)

    if x2 <= x1 or y2 <= y1:
        return 0.0

    return (x2 - x1) * (y2 - y1)


def iou(a: Rect, b: Rect) -> float:
    """Compute Intersection over Union between two rectangles."""
    intersection = intersection_area(a, b)
    union = box_area(a) + box_area(b) - intersection

    return intersection / union if union > 0 else 0.0


def overlap_ratio(region: Rect, other: Rect) -> float:
    """Fraction of ``region``'s own area covered by ``other``."""
    area = box_area(region)
    if area <= 0:
        return 0.0
    return intersection_area(region, other) / area


def clip_to_image(box: DetectionBox, width: float, height: float) -> DetectionBox:
    """Clip a box to the image bounds, keeping its label and confidence."""
    return DetectionBox(
        x1=min(max(box.x1, 0.0), width),
        y1=min(max(box.y1, 0.0), height),
        x2=min(max(box.x2, 0.0), width),
        y2=min(max(box.y2, 0.0), height),
        confidence=box.confidence,
        class_id=box.class_id,
        label=box.label
    )
