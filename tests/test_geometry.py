"""
Tests for rectangle geometry helpers.
"""

import pytest

from layout_outline.data_models import DetectionBox
from layout_outline.geometry import box_area, clip_to_image, intersection_area, iou, overlap_ratio


def make_box(x1, y1, x2, y2, confidence=0.9, label="text", class_id=9):
    return DetectionBox(x1, y1, x2, y2, confidence, class_id, label)


class TestGeometry:
    """Test cases for intersection, area and overlap helpers."""

    def test_box_area(self):
        assert box_area((0, 0, 10, 5)) == 50.0
        assert box_area(make_box(10, 10, 20, 30)) == 200.0

    def test_box_area_degenerate_is_zero(self):
        assert box_area((10, 10, 5, 20)) == 0.0
        assert box_area((0, 0, 10, 0)) == 0.0

    def test_intersection_area(self):
        assert intersection_area((0, 0, 10, 10), (5, 5, 15, 15)) == 25.0

    def test_touching_boxes_do_not_intersect(self):
        assert intersection_area((0, 0, 10, 10), (10, 0, 20, 10)) == 0.0

    def test_iou_identical(self):
        assert iou((0, 0, 10, 10), (0, 0, 10, 10)) == pytest.approx(1.0)

    def test_iou_partial(self):
        # 50 shared over 150 union
        assert iou((0, 0, 10, 10), (5, 0, 15, 10)) == pytest.approx(50 / 150)

    def test_iou_zero_union(self):
        assert iou((0, 0, 0, 0), (0, 0, 0, 0)) == 0.0

    def test_iou_mixed_inputs(self):
        assert iou(make_box(0, 0, 10, 10), (0, 0, 10, 10)) == pytest.approx(1.0)

    def test_overlap_ratio_uses_region_area(self):
        region = (0, 0, 10, 10)
        large = (0, 0, 100, 100)
        assert overlap_ratio(region, large) == pytest.approx(1.0)
        assert overlap_ratio(large, region) == pytest.approx(0.01)

    def test_overlap_ratio_zero_area_region(self):
        assert overlap_ratio((5, 5, 5, 5), (0, 0, 10, 10)) == 0.0

    def test_clip_to_image(self):
        clipped = clip_to_image(make_box(-10, -5, 120, 80, label="title", class_id=10), 100, 50)
        assert clipped.as_tuple() == (0.0, 0.0, 100, 50)
        assert clipped.label == "title"
        assert clipped.class_id == 10
        assert clipped.confidence == 0.9

    def test_clip_outside_image_is_degenerate(self):
        clipped = clip_to_image(make_box(200, 200, 300, 300), 100, 100)
        assert clipped.is_degenerate()
