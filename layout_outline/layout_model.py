"""
ONNX layout model runner.

Loads a YOLO-style document layout detector exported to ONNX and turns page
images into raw ``[4 + C, D]`` detection tensors for the decoder. The model
directory may also hold a ``config.json`` with detection thresholds and the
class names the model was trained with.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import onnxruntime as ort
from PIL import Image

from .detection_decoder import LAYOUT_CLASS_LABELS
from .logging_config import LayoutModelError

logger = logging.getLogger(__name__)

MODEL_FILENAMES = ("yolo_layout.onnx", "yolov12.onnx")
MODEL_CONFIG_FILENAME = "config.json"
MODEL_INPUT_SIZE = 1024

# config.json keys and the pipeline options they feed
_MODEL_CONFIG_KEYS = {
    'confidence_threshold': 'confidence_threshold',
    'nms_threshold': 'nms_iou_threshold',
}


def preprocess_image(image: Image.Image, input_size: int = MODEL_INPUT_SIZE) -> Tuple[np.ndarray, float, float]:
    """
    Convert a page image into the model's input blob.

    Args:
        image: Page image in any Pillow mode
        input_size: Square model input resolution

    Returns:
        Tuple of (blob shaped [1, 3, size, size] float32 in [0, 1], scale_x, scale_y)
    """
    width, height = image.size
    resized = image.convert("RGB").resize((input_size, input_size), Image.BILINEAR)

    pixels = np.asarray(resized, dtype=np.float32) / 255.0
    blob = np.ascontiguousarray(pixels.transpose(2, 0, 1)[np.newaxis, ...])

    return blob, width / float(input_size), height / float(input_size)


class LayoutModelRunner:
    """
    Runs the ONNX layout detector on page images.

    When no model file is found, or onnxruntime cannot create a session, the
    runner is marked unavailable and callers fall back to the placeholder layout.
    """

    def __init__(self, model_dir: Union[str, Path],
                 providers: Optional[Sequence[str]] = None,
                 input_size: int = MODEL_INPUT_SIZE):
        """
        Initialize the runner and try to load a model.

        Args:
            model_dir: Directory searched for the ONNX model and config.json
            providers: onnxruntime execution providers (CPU when omitted)
            input_size: Square model input resolution
        """
        self.model_dir = Path(model_dir)
        self.providers = list(providers) if providers else ["CPUExecutionProvider"]
        self.input_size = input_size

        self.model_path: Optional[Path] = None
        self.session = None
        self.input_name: Optional[str] = None
        self.model_config: Dict[str, Any] = {}
        self.class_labels: Tuple[str, ...] = LAYOUT_CLASS_LABELS

        self._load_model_config()
        self._load_session()

    @property
    def available(self) -> bool:
        return self.session is not None

    def find_model(self) -> Optional[Path]:
        """Return the first known model file present in the model directory."""
        for name in MODEL_FILENAMES:
            candidate = self.model_dir / name
            if candidate.is_file():
                return candidate
        return None

    def _load_model_config(self) -> None:
        config_path = self.model_dir / MODEL_CONFIG_FILENAME
        if not config_path.is_file():
            return

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read model config {config_path}: {e}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Model config {config_path} does not contain an object")
            return

        self.model_config = data

        class_names = data.get('class_names')
        if isinstance(class_names, list) and class_names and all(isinstance(n, str) for n in class_names):
            self.class_labels = tuple(class_names)

        logger.info(f"Loaded model config from {config_path}")

    def _load_session(self) -> None:
        self.model_path = self.find_model()
        if self.model_path is None:
            logger.warning(f"No layout model found in {self.model_dir} (expected one of {', '.join(MODEL_FILENAMES)})")
            return

        try:
            self.session = ort.InferenceSession(str(self.model_path), providers=self.providers)
            self.input_name = self.session.get_inputs()[0].name
        except Exception as e:
            logger.warning(f"Could not load layout model {self.model_path}: {str(e)}")
            self.session = None
            return

        logger.info(f"Layout model loaded from {self.model_path}")

    def pipeline_overrides(self) -> Dict[str, Any]:
        """
        Thresholds from the model's config.json, keyed by pipeline option name.
        """
        return {
            option: self.model_config[key]
            for key, option in _MODEL_CONFIG_KEYS.items()
            if key in self.model_config
        }

    def run(self, image: Image.Image) -> Tuple[np.ndarray, float, float]:
        """
        Run the layout model on one page image.

        Args:
            image: Page image

        Returns:
            Tuple of (raw output tensor, scale_x, scale_y)

        Raises:
            LayoutModelError: If the model is unavailable or inference fails
        """
        if not self.available:
            raise LayoutModelError("Layout model is not available")

        blob, scale_x, scale_y = preprocess_image(image, self.input_size)

        try:
            outputs = self.session.run(None, {self.input_name: blob})
        except Exception as e:
            raise LayoutModelError(f"Layout model inference failed: {str(e)}") from e

        if not outputs:
            raise LayoutModelError("Layout model returned no outputs")

        tensor = np.asarray(outputs[0])
        logger.debug(f"Layout model output shape: {tensor.shape}")
        return tensor, scale_x, scale_y
