"""
Tests for the ONNX layout model runner.
"""

import json
from unittest.mock import Mock, patch

import numpy as np
import pytest
from PIL import Image

from layout_outline.detection_decoder import LAYOUT_CLASS_LABELS
from layout_outline.layout_model import LayoutModelRunner, preprocess_image
from layout_outline.logging_config import LayoutModelError


def make_session(outputs=None, error=None):
    session = Mock()
    model_input = Mock()
    model_input.name = "images"
    session.get_inputs.return_value = [model_input]
    if error is not None:
        session.run.side_effect = error
    else:
        session.run.return_value = outputs
    return session


class TestPreprocessImage:
    """Test cases for preprocess_image."""

    def test_blob_shape_and_scales(self):
        image = Image.new("RGB", (850, 1100), (255, 255, 255))

        blob, scale_x, scale_y = preprocess_image(image, 64)

        assert blob.shape == (1, 3, 64, 64)
        assert blob.dtype == np.float32
        assert blob.max() == pytest.approx(1.0)
        assert scale_x == pytest.approx(850 / 64)
        assert scale_y == pytest.approx(1100 / 64)

    def test_grayscale_is_converted(self):
        image = Image.new("L", (32, 32), 0)
        blob, _, _ = preprocess_image(image, 16)
        assert blob.shape == (1, 3, 16, 16)
        assert blob.max() == 0.0


class TestLayoutModelRunner:
    """Test cases for LayoutModelRunner."""

    def test_missing_model_is_unavailable(self, tmp_path):
        runner = LayoutModelRunner(tmp_path)

        assert not runner.available
        assert runner.class_labels == LAYOUT_CLASS_LABELS
        with pytest.raises(LayoutModelError):
            runner.run(Image.new("RGB", (10, 10)))

    def test_model_config_is_read(self, tmp_path):
        config = {
            "confidence_threshold": 0.3,
            "nms_threshold": 0.6,
            "input_size": 1024,
            "class_names": ["title", "text"],
        }
        (tmp_path / "config.json").write_text(json.dumps(config), encoding="utf-8")

        runner = LayoutModelRunner(tmp_path)

        assert runner.class_labels == ("title", "text")
        assert runner.pipeline_overrides() == {"confidence_threshold": 0.3, "nms_iou_threshold": 0.6}

    def test_invalid_class_names_are_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({"class_names": [1, 2]}), encoding="utf-8")
        assert LayoutModelRunner(tmp_path).class_labels == LAYOUT_CLASS_LABELS

    def test_malformed_config_is_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text("{broken", encoding="utf-8")

        runner = LayoutModelRunner(tmp_path)

        assert runner.model_config == {}
        assert runner.pipeline_overrides() == {}

    def test_find_model_prefers_first_name(self, tmp_path):
        (tmp_path / "yolov12.onnx").write_bytes(b"")
        (tmp_path / "yolo_layout.onnx").write_bytes(b"")

        with patch("layout_outline.layout_model.ort.InferenceSession", return_value=make_session()):
            runner = LayoutModelRunner(tmp_path)

        assert runner.model_path.name == "yolo_layout.onnx"

    def test_run_returns_first_output(self, tmp_path):
        (tmp_path / "yolo_layout.onnx").write_bytes(b"")
        output = np.zeros((1, 15, 21), dtype=np.float32)
        session = make_session(outputs=[output])

        with patch("layout_outline.layout_model.ort.InferenceSession", return_value=session) as factory:
            runner = LayoutModelRunner(tmp_path, input_size=32)

        factory.assert_called_once_with(str(tmp_path / "yolo_layout.onnx"), providers=["CPUExecutionProvider"])
        assert runner.available
        assert runner.input_name == "images"

        tensor, scale_x, scale_y = runner.run(Image.new("RGB", (64, 96)))

        assert tensor.shape == (1, 15, 21)
        assert scale_x == pytest.approx(2.0)
        assert scale_y == pytest.approx(3.0)
        feed = session.run.call_args[0][1]
        assert feed["images"].shape == (1, 3, 32, 32)

    def test_session_creation_failure(self, tmp_path):
        (tmp_path / "yolo_layout.onnx").write_bytes(b"not a model")

        with patch("layout_outline.layout_model.ort.InferenceSession", side_effect=RuntimeError("bad model")):
            runner = LayoutModelRunner(tmp_path)

        assert not runner.available

    def test_inference_failure_raises(self, tmp_path):
        (tmp_path / "yolo_layout.onnx").write_bytes(b"")
        session = make_session(error=RuntimeError("shape mismatch"))

        with patch("layout_outline.layout_model.ort.InferenceSession", return_value=session):
            runner = LayoutModelRunner(tmp_path, input_size=16)

        with pytest.raises(LayoutModelError, match="inference failed"):
            runner.run(Image.new("RGB", (16, 16)))

    def test_empty_outputs_raise(self, tmp_path):
        (tmp_path / "yolo_layout.onnx").write_bytes(b"")

        with patch("layout_outline.layout_model.ort.InferenceSession", return_value=make_session(outputs=[])):
            runner = LayoutModelRunner(tmp_path, input_size=16)

        with pytest.raises(LayoutModelError):
            runner.run(Image.new("RGB", (16, 16)))
