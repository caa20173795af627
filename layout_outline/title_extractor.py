"""
Document title extraction.

The title comes from the PDF metadata when the document has one, otherwise
it is derived from the file name.
"""

import re
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

FILENAME_SEPARATOR_RE = re.compile(r'[_\-.]+')


class TitleExtractor:
    """
    Two-strategy title extraction:
    1. PDF metadata title field
    2. Cleaned filename
    """

    def __init__(self):
        """Initialize the title extractor."""
        self.metadata_fields = ['title', 'Title', 'TITLE']

    def extract_title(self, pdf_path: Union[str, Path],
                      metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Extract the document title.

        Args:
            pdf_path: Path to the PDF file
            metadata: PDF metadata dictionary, if already read

        Returns:
            Title from metadata, else the cleaned file name
        """
        title = self._extract_from_metadata(metadata)
        if title:
            logger.debug(f"Title extracted from metadata: {title}")
            return title

        title = self._extract_from_filename(pdf_path)
        logger.debug(f"Title extracted from filename: {title}")
        return title

    def _extract_from_metadata(self, metadata: Optional[Dict[str, Any]]) -> str:
        if not metadata:
            return ""

        for field in self.metadata_fields:
            value = metadata.get(field)
            if value and str(value).strip():
                return re.sub(r'\s+', ' ', str(value)).strip()

        return ""

    def _extract_from_filename(self, pdf_path: Union[str, Path]) -> str:
        """
        Turn a file name into a title.

        Runs of ``_``, ``-`` and ``.`` become single spaces and each word gets
        an uppercase first letter. The raw stem is returned when nothing is left.

        Args:
            pdf_path: Path to the PDF file

        Returns:
            Title derived from the file name
        """
        stem = Path(pdf_path).stem
        words = FILENAME_SEPARATOR_RE.sub(' ', stem).split()
        title = ' '.join(word[0].upper() + word[1:] for word in words)
        return title or stem


def extract_title(pdf_path: Union[str, Path], metadata: Optional[Dict[str, Any]] = None) -> str:
    """
    Convenience function to extract a document title.

    Args:
        pdf_path: Path to the PDF file
        metadata: Optional PDF metadata dictionary

    Returns:
        Document title
    """
    return TitleExtractor().extract_title(pdf_path, metadata)
