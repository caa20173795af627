"""
Decoding of raw layout-model output into candidate regions.

The layout model emits a ``[4 + C, D]`` tensor: for each of the D candidate
detections, attributes 0-3 hold the box center/size in model space and the
remaining C attributes hold one score per document-layout class.

This module handles:
- Confidence-threshold decoding with the >1.0 logistic compatibility shim
- Class-id to layout-label mapping (DocLayNet order)
- The deterministic placeholder layout used when no model output is available
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .data_models import DetectionBox

logger = logging.getLogger(__name__)

# DocLayNet class order produced by the layout model
LAYOUT_CLASS_LABELS: Tuple[str, ...] = (
    "caption",          # Caption
    "footnote",         # Footnote
    "formula",          # Formula
    "list",             # List-item
    "footer",           # Page-footer
    "header",           # Page-header
    "figure",           # Picture
    "paragraph_title",  # Section-header
    "table",            # Table
    "text",             # Text
    "title",            # Title
)

PARAGRAPH_TITLE_CLASS_ID = 7
TABLE_CLASS_ID = 8
TITLE_CLASS_ID = 10
DEFAULT_LABEL = "text"

NUM_BOX_ATTRIBUTES = 4


def label_for_class(class_id: int, class_labels: Sequence[str] = LAYOUT_CLASS_LABELS) -> str:
    """Map a class id to its layout label; unknown ids fall back to "text"."""
    if 0 <= class_id < len(class_labels):
        return class_labels[class_id]
    return DEFAULT_LABEL


def squash_scores(raw_scores: np.ndarray) -> np.ndarray:
    """
    Apply the logistic function to scores above 1.0 only.

    Some exported models already apply a sigmoid internally and emit
    probabilities, others emit logits. Values above 1.0 cannot be
    probabilities, so only those are squashed.

    Args:
        raw_scores: Array of raw class scores

    Returns:
        New float64 array of class confidences
    """
    scores = np.array(raw_scores, dtype=np.float64)
    mask = scores > 1.0
    scores[mask] = 1.0 / (1.0 + np.exp(-scores[mask]))
    return scores


def _as_attribute_matrix(tensor, num_detections: Optional[int]) -> Optional[np.ndarray]:
    """
    Coerce model output into a 2-D ``[attributes, detections]`` array.

    Returns None for malformed input.
    """
    try:
        data = np.asarray(tensor, dtype=np.float32)
    except (TypeError, ValueError):
        return None

    if data.ndim == 3:
        # [batch, attributes, detections] with a single image per call
        if data.shape[0] != 1:
            logger.warning(f"Expected a batch of one, got shape {data.shape}; using the first entry")
        data = data[0]
    elif data.ndim == 1:
        if not num_detections or num_detections <= 0 or data.size % num_detections:
            return None
        data = data.reshape(-1, num_detections)
    elif data.ndim != 2:
        return None

    if data.shape[0] <= NUM_BOX_ATTRIBUTES or data.shape[1] == 0:
        return None

    return data


def decode_detections(tensor,
                      scale_x: float,
                      scale_y: float,
                      confidence_threshold: float = 0.5,
                      class_labels: Sequence[str] = LAYOUT_CLASS_LABELS,
                      num_detections: Optional[int] = None) -> List[DetectionBox]:
    """
    Turn a raw per-detection attribute tensor into candidate regions.

    Args:
        tensor: Model output shaped [4 + C, D] (a leading batch axis of one is
            accepted, as is a flat buffer when num_detections is given)
        scale_x: Factor mapping model-space x to source-image pixels
        scale_y: Factor mapping model-space y to source-image pixels
        confidence_threshold: Minimum best-class confidence to keep a candidate
        class_labels: Class-id to label table
        num_detections: Number of detections D, required for flat buffers

    Returns:
        Unordered list of DetectionBox candidates (no NMS applied)
    """
    data = _as_attribute_matrix(tensor, num_detections)
    if data is None:
        logger.debug("Skipping malformed or empty detection tensor")
        return []

    total = data.shape[1]
    scores = squash_scores(data[NUM_BOX_ATTRIBUTES:])

    best_class = np.argmax(scores, axis=0)
    best_score = scores[best_class, np.arange(total)]

    # Scores <= 0 never select a class
    keep_mask = (best_score > 0.0) & (best_score >= confidence_threshold)

    boxes = []
    for i in np.flatnonzero(keep_mask):
        x_center, y_center, width, height = (float(v) for v in data[:NUM_BOX_ATTRIBUTES, i])

        x1 = (x_center - width / 2.0) * scale_x
        y1 = (y_center - height / 2.0) * scale_y
        x2 = (x_center + width / 2.0) * scale_x
        y2 = (y_center + height / 2.0) * scale_y

        if not np.all(np.isfinite([x1, y1, x2, y2])):
            continue
        if x2 <= x1 or y2 <= y1:
            continue

        class_id = int(best_class[i])
        boxes.append(DetectionBox(
            x1=x1, y1=y1, x2=x2, y2=y2,
            confidence=float(best_score[i]),
            class_id=class_id,
            label=label_for_class(class_id, class_labels)
        ))

    logger.debug(f"Decoded {len(boxes)} of {total} candidates above threshold {confidence_threshold}")
    return boxes


def create_fallback_layout(width: Optional[float] = None, height: Optional[float] = None) -> List[DetectionBox]:
    """
    Build the deterministic placeholder layout used when the model is unavailable.

    With image dimensions, the layout is a title band plus three evenly spaced
    paragraph-title bands expressed as fractions of the page. Without them a
    fixed pixel layout is returned.

    Args:
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        List of synthetic DetectionBox regions
    """
    if not width or not height:
        boxes = [DetectionBox(50.0, 30.0, 500.0, 100.0, 0.95, TITLE_CLASS_ID, "title")]
        for y in (150.0, 250.0, 350.0):
            boxes.append(DetectionBox(50.0, y, 400.0, y + 30.0, 0.85,
                                      PARAGRAPH_TITLE_CLASS_ID, "paragraph_title"))
        logger.info(f"Using fixed fallback layout: {len(boxes)} regions")
        return boxes

    boxes = [DetectionBox(0.1 * width, 0.05 * height, 0.9 * width, 0.15 * height,
                          0.95, TITLE_CLASS_ID, "title")]

    for i in range(1, 4):
        y_start = 0.15 + i * 0.2
        if y_start < 0.8:
            boxes.append(DetectionBox(0.1 * width, y_start * height,
                                      0.7 * width, (y_start + 0.05) * height,
                                      0.85, PARAGRAPH_TITLE_CLASS_ID, "paragraph_title"))

    logger.info(f"Using fallback layout: {len(boxes)} regions")
    return boxes
