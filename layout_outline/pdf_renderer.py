"""
PDF page rendering and text-layer geometry with PyMuPDF.

This module provides the document-facing adapters of the pipeline:
- Rasterizing pages to RGB Pillow images at a given DPI
- Reading text block rectangles for the table heuristic
- Reading document metadata for title extraction
"""

import fitz  # PyMuPDF
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from PIL import Image

from .data_models import TextBlockGeometry
from .logging_config import RasterizationError

logger = logging.getLogger(__name__)

# Block type reported by get_text("blocks") for text (1 is image)
TEXT_BLOCK_TYPE = 0


def _page_block_geometry(page: fitz.Page) -> List[TextBlockGeometry]:
    blocks = []
    for block in page.get_text("blocks"):
        x0, y0, x1, y1, text, _block_no, block_type = block[:7]
        if block_type != TEXT_BLOCK_TYPE or not text.strip():
            continue
        blocks.append(TextBlockGeometry(float(x0), float(y0), float(x1), float(y1)))
    return blocks


class PDFRenderer:
    """
    Opens PDF documents per call and converts their pages for the pipeline.

    No document handle is kept between calls, so one renderer can serve
    several worker threads.
    """

    def __init__(self):
        """Initialize the renderer."""
        self.supported_extensions = {'.pdf'}

    def _validate_path(self, pdf_path: Union[str, Path]) -> Path:
        pdf_path = Path(pdf_path)

        if not pdf_path.exists():
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")

        if pdf_path.suffix.lower() not in self.supported_extensions:
            raise ValueError(f"Unsupported file type: {pdf_path.suffix}")

        return pdf_path

    def render_pages(self, pdf_path: Union[str, Path], dpi: int = 100) -> List[Image.Image]:
        """
        Render every page of a PDF to an RGB image.

        Args:
            pdf_path: Path to the PDF file
            dpi: Rendering resolution

        Returns:
            One image per page, in document order

        Raises:
            FileNotFoundError: If the PDF file doesn't exist
            ValueError: If the file is not a PDF
            RasterizationError: If PyMuPDF fails to open or render the document
        """
        pdf_path = self._validate_path(pdf_path)
        zoom = dpi / 72.0
        matrix = fitz.Matrix(zoom, zoom)

        logger.info(f"Rendering {pdf_path} at {dpi} DPI")

        try:
            images = []
            with fitz.open(str(pdf_path)) as doc:
                for page in doc:
                    pix = page.get_pixmap(matrix=matrix, alpha=False)
                    images.append(Image.frombytes("RGB", [pix.width, pix.height], pix.samples))
        except Exception as e:
            raise RasterizationError(f"Could not render {pdf_path}: {str(e)}") from e

        logger.debug(f"Rendered {len(images)} pages from {pdf_path.name}")
        return images

    def extract_block_geometry(self, pdf_path: Union[str, Path], page_number: int) -> List[TextBlockGeometry]:
        """
        Get the rectangles of the text blocks on one page.

        Args:
            pdf_path: Path to the PDF file
            page_number: 1-based page number

        Returns:
            Text block rectangles in PDF points, empty for pages out of range
        """
        pdf_path = self._validate_path(pdf_path)

        try:
            with fitz.open(str(pdf_path)) as doc:
                if not 1 <= page_number <= doc.page_count:
                    logger.debug(f"Page {page_number} out of range for {pdf_path.name}")
                    return []

                return _page_block_geometry(doc[page_number - 1])
        except Exception as e:
            logger.warning(f"Error reading text blocks from page {page_number} of {pdf_path}: {str(e)}")
            return []

    def extract_document_geometry(self, pdf_path: Union[str, Path]) -> List[List[TextBlockGeometry]]:
        """
        Get the text block rectangles of every page with a single open.

        Args:
            pdf_path: Path to the PDF file

        Returns:
            One list of rectangles per page, in document order
        """
        pdf_path = self._validate_path(pdf_path)

        try:
            with fitz.open(str(pdf_path)) as doc:
                return [_page_block_geometry(page) for page in doc]
        except Exception as e:
            logger.warning(f"Error reading text blocks from {pdf_path}: {str(e)}")
            return []

    def get_document_metadata(self, pdf_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Get document metadata and page count.

        Args:
            pdf_path: Path to the PDF file

        Returns:
            Metadata dictionary with an added ``page_count`` key, empty on error
        """
        pdf_path = Path(pdf_path)

        if not pdf_path.exists():
            return {}

        try:
            with fitz.open(str(pdf_path)) as doc:
                metadata = dict(doc.metadata or {})
                metadata["page_count"] = doc.page_count
        except Exception as e:
            logger.warning(f"Error reading metadata from {pdf_path}: {str(e)}")
            return {}

        return metadata


def render_pages(pdf_path: Union[str, Path], dpi: int = 100) -> List[Image.Image]:
    """
    Convenience function to render all pages of a PDF.

    Args:
        pdf_path: Path to the PDF file
        dpi: Rendering resolution

    Returns:
        List of RGB images
    """
    return PDFRenderer().render_pages(pdf_path, dpi)


def extract_block_geometry(pdf_path: Union[str, Path], page_number: int) -> List[TextBlockGeometry]:
    """Convenience function to read text block rectangles from one page."""
    return PDFRenderer().extract_block_geometry(pdf_path, page_number)


def get_document_metadata(pdf_path: Union[str, Path]) -> Dict[str, Any]:
    """Convenience function to read PDF metadata."""
    return PDFRenderer().get_document_metadata(pdf_path)
