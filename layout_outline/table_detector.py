"""
Column-alignment table heuristic and the table overlap filter.

Tables are found from the PDF text layer rather than the layout model: when
enough text blocks line up in at least two left-aligned columns the page is
treated as holding one table whose extent is the union of all its blocks.
Layout regions that sit mostly inside that rectangle are kept away from
heading classification.
"""

import logging
from typing import List, Sequence, Tuple

from .data_models import DetectionBox, TextBlockGeometry
from .detection_decoder import TABLE_CLASS_ID
from .geometry import overlap_ratio

logger = logging.getLogger(__name__)


def group_into_columns(blocks: Sequence[TextBlockGeometry],
                       alignment_tolerance: float = 10.0) -> List[List[TextBlockGeometry]]:
    """
    Bucket blocks by left edge.

    Each block joins the first bucket whose first block has an x0 within
    the tolerance, otherwise it opens a new bucket.
    """
    columns: List[List[TextBlockGeometry]] = []

    for block in blocks:
        for column in columns:
            if abs(column[0].x0 - block.x0) < alignment_tolerance:
                column.append(block)
                break
        else:
            columns.append([block])

    return columns


def detect_table_regions(blocks: Sequence[TextBlockGeometry],
                         scale: float = 1.0,
                         alignment_tolerance: float = 10.0,
                         min_blocks: int = 6,
                         min_columns: int = 2,
                         min_blocks_per_column: int = 2) -> List[DetectionBox]:
    """
    Decide whether a page holds a table and return its rectangle.

    At most one table is reported per page. Two separate tables produce a
    single rectangle spanning both.

    Args:
        blocks: Text block geometry for one page, in PDF points
        scale: Factor from PDF points to image pixels (dpi / 72)
        alignment_tolerance: Maximum x0 difference for blocks in the same column
        min_blocks: Minimum number of blocks on the page
        min_columns: Minimum number of well-populated columns
        min_blocks_per_column: Blocks needed for a column to count

    Returns:
        Empty list, or a list holding one "table" DetectionBox in image pixels
    """
    if len(blocks) < min_blocks:
        return []

    columns = group_into_columns(blocks, alignment_tolerance)
    populated = sum(1 for column in columns if len(column) >= min_blocks_per_column)

    if populated < min_columns:
        return []

    x0 = min(b.x0 for b in blocks)
    y0 = min(b.y0 for b in blocks)
    x1 = max(b.x1 for b in blocks)
    y1 = max(b.y1 for b in blocks)

    table = DetectionBox(
        x1=x0 * scale, y1=y0 * scale,
        x2=x1 * scale, y2=y1 * scale,
        confidence=1.0,
        class_id=TABLE_CLASS_ID,
        label="table"
    )

    logger.debug(f"Table detected from {len(blocks)} blocks in {populated} columns: {table.as_tuple()}")
    return [table]


def is_region_overlapping_table(region: DetectionBox,
                                table_regions: Sequence[DetectionBox],
                                threshold: float = 0.3) -> bool:
    """Check whether more than ``threshold`` of the region lies inside any table."""
    return any(overlap_ratio(region, table) > threshold for table in table_regions)


def filter_table_regions(regions: Sequence[DetectionBox],
                         table_regions: Sequence[DetectionBox],
                         threshold: float = 0.3) -> Tuple[List[DetectionBox], List[DetectionBox]]:
    """
    Split regions into those kept for classification and those inside tables.

    Returns:
        Tuple of (kept, excluded) lists, each in input order
    """
    if not table_regions:
        return list(regions), []

    kept = []
    excluded = []

    for region in regions:
        if is_region_overlapping_table(region, table_regions, threshold):
            excluded.append(region)
        else:
            kept.append(region)

    if excluded:
        logger.debug(f"Excluded {len(excluded)} regions overlapping tables")

    return kept, excluded
