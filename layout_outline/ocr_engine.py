"""
Tesseract OCR for detected layout regions.
"""

import math
import os
import logging
from typing import Optional

import pytesseract
from PIL import Image

from .data_models import DetectionBox
from .logging_config import OCRError

logger = logging.getLogger(__name__)


class TesseractOCR:
    """
    Reads the text inside a region of a page image with Tesseract.

    Any OCR failure is reported as an empty string so a bad region never
    stops the page.
    """

    def __init__(self, psm: int = 6, lang: str = "eng", tesseract_cmd: Optional[str] = None):
        """
        Initialize the OCR engine.

        Args:
            psm: Tesseract page segmentation mode (6 = single uniform block)
            lang: Tesseract language code
            tesseract_cmd: Path to the tesseract binary, defaults to $TESSERACT_PATH when set
        """
        self.psm = psm
        self.lang = lang

        tesseract_cmd = tesseract_cmd or os.environ.get("TESSERACT_PATH")
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    @property
    def config(self) -> str:
        return f"--psm {self.psm}"

    def is_available(self) -> bool:
        """Check that the tesseract binary can be run."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            logger.warning(f"Tesseract is not available: {e}")
            return False

    def read_region(self, image: Image.Image, box: DetectionBox) -> str:
        """
        OCR one region of a page image.

        Args:
            image: Full page image
            box: Region in image pixel coordinates

        Returns:
            Recognized text on a single line, empty when nothing was read
        """
        width, height = image.size
        left = max(0, int(math.floor(box.x1)))
        top = max(0, int(math.floor(box.y1)))
        right = min(width, int(math.ceil(box.x2)))
        bottom = min(height, int(math.ceil(box.y2)))

        if right <= left or bottom <= top:
            return ""

        try:
            return self.recognize(image.crop((left, top, right, bottom)))
        except OCRError as e:
            logger.debug(f"OCR failed for region {box.as_tuple()}: {e}")
            return ""

    def recognize(self, image: Image.Image) -> str:
        """
        Run Tesseract on an already cropped image.

        Raises:
            OCRError: If Tesseract is missing or fails
        """
        try:
            text = pytesseract.image_to_string(image, lang=self.lang, config=self.config)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, OSError, RuntimeError) as e:
            raise OCRError(f"Tesseract failed: {e}") from e

        return " ".join(text.split())
