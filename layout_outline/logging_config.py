"""
Logging configuration and error handling framework for the layout outline extractor.
"""

import logging
import sys


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("layout_outline")
    logger.setLevel(getattr(logging, level.upper()))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


class OutlineProcessingError(Exception):
    """Base exception for outline extraction errors."""
    pass


class RasterizationError(OutlineProcessingError):
    """Exception raised when a document cannot be rendered to page images."""
    pass


class LayoutModelError(OutlineProcessingError):
    """Exception raised when the layout model fails to produce detections."""
    pass


class OCRError(OutlineProcessingError):
    """Exception raised when the OCR engine cannot be invoked."""
    pass


class JSONOutputError(OutlineProcessingError):
    """Exception raised when JSON output generation fails."""
    pass


def handle_document_error(document_path: str, error: Exception, logger: logging.Logger) -> None:
    """
    Handle per-document processing errors with appropriate logging.

    Args:
        document_path: Path to the document that caused the error
        error: The exception that occurred
        logger: Logger instance for error reporting
    """
    error_msg = f"Error processing document '{document_path}': {str(error)}"

    if isinstance(error, OutlineProcessingError):
        logger.error(error_msg)
    else:
        logger.exception(error_msg)
