"""
Greedy Non-Maximum Suppression over decoded layout regions.
"""

import logging
from typing import List, Sequence

from .data_models import DetectionBox
from .geometry import iou

logger = logging.getLogger(__name__)


def non_max_suppression(boxes: Sequence[DetectionBox], iou_threshold: float = 0.45) -> List[DetectionBox]:
    """
    Remove overlapping duplicate detections, keeping the most confident one.

    Suppression is class-agnostic: a "text" box can suppress an overlapping
    "paragraph_title" box. Boxes are visited by descending confidence with
    decode order breaking ties.

    Args:
        boxes: Candidate boxes in decode order
        iou_threshold: Boxes overlapping a kept box by more than this IoU are dropped

    Returns:
        Kept boxes in the order they were kept
    """
    if not boxes:
        return []

    # sorted() is stable, so equal confidences keep decode order
    order = sorted(range(len(boxes)), key=lambda i: -boxes[i].confidence)
    suppressed = [False] * len(boxes)
    kept = []

    for position, i in enumerate(order):
        if suppressed[i]:
            continue

        best = boxes[i]
        kept.append(best)

        for j in order[position + 1:]:
            if not suppressed[j] and iou(best, boxes[j]) > iou_threshold:
                suppressed[j] = True

    logger.debug(f"NMS kept {len(kept)} of {len(boxes)} boxes (IoU threshold {iou_threshold})")
    return kept
