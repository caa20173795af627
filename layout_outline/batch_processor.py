"""
Batch processing system for layout-driven outline extraction.

This module wires the edge adapters (renderer, layout model, OCR, title
extraction, JSON output) around the page pipeline and processes single PDF
files or whole directories. A failing document is logged and counted, and
processing continues with the next one.
"""

import time
import logging
from functools import partial
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from PIL import Image

from .config import PipelineConfig
from .data_models import DocumentOutline, ProcessingStats, TextBlockGeometry
from .detection_decoder import LAYOUT_CLASS_LABELS
from .json_handler import VALID_LEVELS, JSONHandler
from .layout_model import LayoutModelRunner
from .logging_config import JSONOutputError, LayoutModelError, handle_document_error
from .ocr_engine import TesseractOCR
from .pdf_renderer import PDFRenderer
from .pipeline import PageInput, PagePipeline
from .title_extractor import TitleExtractor

logger = logging.getLogger(__name__)


class BatchProcessor:
    """
    Batch processing system for PDF outline extraction.

    Features:
    - Automatic PDF discovery from an input directory
    - Per-document error isolation
    - Layout model failures degrade to the placeholder layout
    - Optional parallel page processing within a document
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 model_runner: Optional[LayoutModelRunner] = None,
                 renderer: Optional[PDFRenderer] = None,
                 ocr: Optional[TesseractOCR] = None,
                 title_extractor: Optional[TitleExtractor] = None,
                 json_handler: Optional[JSONHandler] = None,
                 pipeline: Optional[PagePipeline] = None):
        """
        Initialize the batch processor.

        Args:
            config: Pipeline configuration (defaults when omitted)
            model_runner: Layout model runner; without one every page uses the fallback layout
            renderer: PDF renderer
            ocr: OCR engine
            title_extractor: Title extractor
            json_handler: JSON output handler
            pipeline: Page pipeline, built from the config when omitted
        """
        self.config = config or PipelineConfig()
        self.model_runner = model_runner
        self.renderer = renderer or PDFRenderer()
        self.ocr = ocr or TesseractOCR()
        self.title_extractor = title_extractor or TitleExtractor()
        self.json_handler = json_handler or JSONHandler()

        class_labels = model_runner.class_labels if model_runner is not None else LAYOUT_CLASS_LABELS
        self.pipeline = pipeline or PagePipeline(self.config, class_labels=class_labels)

        self.reset_stats()

    def reset_stats(self) -> None:
        """Reset processing statistics."""
        self.stats = {
            'total_files': 0,
            'successful': 0,
            'failed': 0,
            'start_time': None,
            'end_time': None,
            'errors': [],
            'headings_by_level': {level: 0 for level in VALID_LEVELS}
        }
        self.page_stats = ProcessingStats()

    def extract_outline(self, pdf_path: Union[str, Path]) -> DocumentOutline:
        """
        Extract the title and headings of one PDF.

        Args:
            pdf_path: Path to the PDF file

        Returns:
            DocumentOutline with headings in page order

        Raises:
            FileNotFoundError: If the PDF file doesn't exist
            RasterizationError: If the pages cannot be rendered
        """
        pdf_path = Path(pdf_path)

        images = self.renderer.render_pages(pdf_path, self.config.dpi)
        metadata = self.renderer.get_document_metadata(pdf_path)
        title = self.title_extractor.extract_title(pdf_path, metadata)

        if not images:
            logger.warning(f"No pages rendered from {pdf_path.name}")
            return DocumentOutline(title=title)

        geometry = self.renderer.extract_document_geometry(pdf_path)

        pages = []
        for index, image in enumerate(images):
            blocks = geometry[index] if index < len(geometry) else []
            pages.append(self._build_page_input(index + 1, image, blocks))

        headings = self.pipeline.process_document(pages, self.config.max_workers, self.page_stats)
        return DocumentOutline(title=title, headings=headings)

    def _build_page_input(self, page_number: int, image: Image.Image,
                          blocks: List[TextBlockGeometry]) -> PageInput:
        tensor, scale_x, scale_y = None, 1.0, 1.0

        if self.model_runner is not None and self.model_runner.available:
            try:
                tensor, scale_x, scale_y = self.model_runner.run(image)
            except LayoutModelError as e:
                logger.warning(f"Layout detection failed on page {page_number}, using fallback layout: {e}")

        return PageInput(
            page_number=page_number,
            image_size=image.size,
            read_text=partial(self.ocr.read_region, image),
            tensor=tensor,
            scale_x=scale_x,
            scale_y=scale_y,
            blocks=blocks
        )

    def process_single_pdf(self, pdf_path: Union[str, Path], output_path: Union[str, Path]) -> bool:
        """
        Process one PDF file and write its JSON outline.

        Args:
            pdf_path: Path to the PDF file
            output_path: Path to the output JSON file

        Returns:
            True if successful, False otherwise
        """
        pdf_file = Path(pdf_path)
        self.stats['total_files'] += 1

        try:
            self._process_document(pdf_file, Path(output_path))
            self.stats['successful'] += 1
            return True
        except Exception as e:
            self._handle_processing_error(pdf_file, e)
            return False

    def process_directory(self, input_dir: Union[str, Path], output_dir: Union[str, Path]) -> Dict[str, Any]:
        """
        Process all PDF files from an input directory.

        Args:
            input_dir: Directory containing PDF files
            output_dir: Directory for JSON output files

        Returns:
            Dictionary with processing statistics
        """
        input_path = Path(input_dir)
        output_path = Path(output_dir)

        logger.info(f"Starting batch processing: {input_dir} -> {output_dir}")

        if not input_path.exists():
            raise FileNotFoundError(f"Input directory does not exist: {input_dir}")

        if not input_path.is_dir():
            raise NotADirectoryError(f"Input path is not a directory: {input_dir}")

        output_path.mkdir(parents=True, exist_ok=True)

        pdf_files = self._discover_pdf_files(input_path)
        if not pdf_files:
            logger.warning(f"No PDF files found in {input_dir}")
            return self.get_processing_stats()

        logger.info(f"Found {len(pdf_files)} PDF files to process")
        self.stats['start_time'] = time.time()

        for i, pdf_file in enumerate(pdf_files, 1):
            logger.info(f"Processing file {i}/{len(pdf_files)}: {pdf_file.name}")
            if self.process_single_pdf(pdf_file, output_path / f"{pdf_file.stem}.json"):
                logger.info(f"Successfully processed: {pdf_file.name}")

        self.stats['end_time'] = time.time()
        self._log_final_results()

        return self.get_processing_stats()

    def _discover_pdf_files(self, input_dir: Path) -> List[Path]:
        pdf_files = [
            file_path for file_path in input_dir.iterdir()
            if file_path.is_file() and file_path.suffix.lower() == '.pdf'
        ]
        pdf_files.sort(key=lambda x: x.name.lower())

        logger.debug(f"Discovered PDF files: {[f.name for f in pdf_files]}")
        return pdf_files

    def _process_document(self, pdf_file: Path, output_file: Path) -> None:
        start_time = time.time()

        outline = self.extract_outline(pdf_file)

        if not self.json_handler.process_and_write(outline.title, outline.headings, output_file):
            raise JSONOutputError(f"Failed to write JSON output to {output_file}")

        for heading in outline.headings:
            self.stats['headings_by_level'][heading.level.value] += 1

        logger.debug(f"{pdf_file.name}: {len(outline.headings)} headings in {time.time() - start_time:.2f} seconds")

    def _handle_processing_error(self, pdf_file: Path, error: Exception) -> None:
        self.stats['failed'] += 1
        self.page_stats.errors_encountered += 1
        self.stats['errors'].append({
            'file': str(pdf_file),
            'error': str(error),
            'error_type': type(error).__name__,
            'timestamp': time.time()
        })

        handle_document_error(str(pdf_file), error, logger)
        logger.info("Continuing with next file...")

    def _log_final_results(self) -> None:
        total_time = self.stats['end_time'] - self.stats['start_time']

        logger.info("=" * 60)
        logger.info("BATCH PROCESSING COMPLETED")
        logger.info("=" * 60)
        logger.info(f"Total files: {self.stats['total_files']}")
        logger.info(f"Successful: {self.stats['successful']}")
        logger.info(f"Failed: {self.stats['failed']}")
        logger.info(f"Pages processed: {self.page_stats.pages_processed}")
        logger.info(f"Headings found: {self.page_stats.headings_found}")
        by_level = self.stats['headings_by_level']
        logger.info("Heading breakdown: " + ", ".join(f"{level}: {count}" for level, count in by_level.items()))
        logger.info(f"Pages using fallback layout: {self.page_stats.fallback_pages}")
        logger.info(f"Total time: {total_time:.2f} seconds")

        if self.stats['errors']:
            logger.info(f"Errors encountered: {len(self.stats['errors'])}")
            for error_info in self.stats['errors'][-5:]:
                logger.info(f"  - {error_info['file']}: {error_info['error_type']}")

        logger.info("=" * 60)

    def get_processing_stats(self) -> Dict[str, Any]:
        """Get processing statistics, including page-level counters."""
        stats = self.stats.copy()
        stats['headings_by_level'] = dict(self.stats['headings_by_level'])
        stats['pages'] = {
            'pages_processed': self.page_stats.pages_processed,
            'regions_detected': self.page_stats.regions_detected,
            'regions_excluded_as_table': self.page_stats.regions_excluded_as_table,
            'regions_without_text': self.page_stats.regions_without_text,
            'headings_found': self.page_stats.headings_found,
            'fallback_pages': self.page_stats.fallback_pages
        }

        if stats['start_time'] and stats['end_time']:
            stats['total_time'] = stats['end_time'] - stats['start_time']
            if stats['total_files'] > 0:
                stats['success_rate'] = (stats['successful'] / stats['total_files']) * 100

        return stats
