"""
Per-page heading extraction pipeline.

Each page runs a strict sequential chain:
decode -> NMS -> table filter -> OCR callback -> text correction -> classification.
Pages share no mutable state, so a document's pages can be processed in a
thread pool and re-ordered by page number afterwards.

The pipeline never calls the rasterizer, the layout model or the OCR engine
itself: it receives their outputs (a tensor, text block geometry) and an
injected ``read_text`` callback.
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .config import PipelineConfig
from .data_models import DetectionBox, HeadingRecord, ProcessingStats, TextBlockGeometry
from .detection_decoder import LAYOUT_CLASS_LABELS, create_fallback_layout, decode_detections
from .geometry import clip_to_image
from .heading_classifier import HeadingClassifier
from .nms import non_max_suppression
from .table_detector import detect_table_regions, filter_table_regions
from .text_corrector import TextCorrector

logger = logging.getLogger(__name__)

# Layout labels whose regions may hold a heading
HEADING_CANDIDATE_LABELS = frozenset({"title", "paragraph_title", "text"})

# OCR results this short are treated as no text
MIN_TEXT_LENGTH = 3

ReadText = Callable[[DetectionBox], Optional[str]]
ImageSize = Tuple[float, float]


@dataclass
class PageInput:
    """Everything the pipeline needs for one page, produced by the edge adapters."""
    page_number: int
    image_size: ImageSize
    read_text: ReadText
    tensor: Optional[object] = None
    scale_x: float = 1.0
    scale_y: float = 1.0
    blocks: List[TextBlockGeometry] = field(default_factory=list)


class PagePipeline:
    """
    Runs the heading extraction chain for pages of one document.
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 corrector: Optional[TextCorrector] = None,
                 classifier: Optional[HeadingClassifier] = None,
                 class_labels: Sequence[str] = LAYOUT_CLASS_LABELS):
        """
        Initialize the pipeline.

        Args:
            config: Thresholds and switches (defaults when omitted)
            corrector: Text corrector, built from the config when omitted
            classifier: Heading classifier, built-in rules when omitted
            class_labels: Class-id to label table of the layout model
        """
        self.config = config or PipelineConfig()
        self.corrector = corrector or TextCorrector(
            aggressive_mode=self.config.aggressive_correction,
            custom_corrections_path=self.config.corrections_path
        )
        self.classifier = classifier or HeadingClassifier()
        self.class_labels = tuple(class_labels)

    def detect_regions(self, tensor, scale_x: float, scale_y: float,
                       image_size: Optional[ImageSize] = None) -> List[DetectionBox]:
        """
        Decode model output and suppress duplicates.

        Falls back to the placeholder layout when the tensor is missing, or
        when nothing survives and ``fallback_on_empty`` is set.

        Args:
            tensor: Raw model output, or None when the model is unavailable
            scale_x: Model-space to image-space x factor
            scale_y: Model-space to image-space y factor
            image_size: (width, height) of the page image

        Returns:
            Detected regions in NMS keep order
        """
        regions, _ = self._detect_with_fallback(tensor, scale_x, scale_y, image_size)
        return regions

    def select_candidate_regions(self, regions: Sequence[DetectionBox],
                                 table_regions: Sequence[DetectionBox],
                                 image_size: Optional[ImageSize] = None) -> List[DetectionBox]:
        """
        Keep heading-candidate regions that do not sit inside a table.

        Args:
            regions: Regions after NMS
            table_regions: Table rectangles for the page
            image_size: (width, height) used to clip regions, no clipping when omitted

        Returns:
            Candidate regions, clipped to the image, in input order
        """
        candidates, _ = self._select_with_exclusions(regions, table_regions, image_size)
        return candidates

    def process_page(self, page_number: int,
                     regions: Sequence[DetectionBox],
                     table_regions: Sequence[DetectionBox],
                     read_text: ReadText,
                     image_size: Optional[ImageSize] = None,
                     stats: Optional[ProcessingStats] = None) -> List[HeadingRecord]:
        """
        Classify the candidate regions of one page.

        Args:
            page_number: 1-based page number
            regions: Regions after NMS
            table_regions: Table rectangles for the page
            read_text: OCR callback returning the text inside a region
            image_size: (width, height) used to clip regions
            stats: Counters updated in place when given

        Returns:
            Heading records in reading order (top to bottom, then left to right)
        """
        stats = stats if stats is not None else ProcessingStats()
        candidates, excluded = self._select_with_exclusions(regions, table_regions, image_size)
        stats.regions_excluded_as_table += len(excluded)

        headings = []
        for region in sorted(candidates, key=lambda r: (r.y1, r.x1)):
            text = self._read_corrected_text(region, read_text, page_number)
            if not text:
                stats.regions_without_text += 1
                continue

            level = self.classifier.determine_heading_level(text, region.label, page_number)
            if not level.is_heading:
                continue

            headings.append(HeadingRecord(
                level=level,
                text=text,
                page_number=page_number,
                bbox=region,
                confidence=region.confidence
            ))
            logger.debug(f"Page {page_number}: {level.value} '{text[:50]}'")

        stats.headings_found += len(headings)
        return headings

    def run_page(self, page: PageInput, stats: Optional[ProcessingStats] = None) -> List[HeadingRecord]:
        """
        Run the whole chain for one page.

        Args:
            page: Adapter outputs for the page
            stats: Counters updated in place when given

        Returns:
            Heading records for the page
        """
        stats = stats if stats is not None else ProcessingStats()
        start_time = time.time()

        regions, used_fallback = self._detect_with_fallback(
            page.tensor, page.scale_x, page.scale_y, page.image_size
        )
        stats.regions_detected += len(regions)
        if used_fallback:
            stats.fallback_pages += 1

        table_regions = detect_table_regions(
            page.blocks,
            scale=self.config.page_scale,
            alignment_tolerance=self.config.table_alignment_tolerance,
            min_blocks=self.config.table_min_blocks
        )

        headings = self.process_page(page.page_number, regions, table_regions,
                                     page.read_text, page.image_size, stats)

        stats.pages_processed += 1
        stats.processing_time += time.time() - start_time
        return headings

    def process_document(self, pages: Sequence[PageInput],
                         max_workers: int = 1,
                         stats: Optional[ProcessingStats] = None) -> List[HeadingRecord]:
        """
        Process all pages of a document and concatenate headings in page order.

        Args:
            pages: Page inputs in any order
            max_workers: Number of worker threads (1 processes sequentially)
            stats: Counters merged in from every page when given

        Returns:
            Heading records with non-decreasing page numbers
        """
        if not pages:
            return []

        ordered = sorted(pages, key=lambda p: p.page_number)
        page_stats = [ProcessingStats() for _ in ordered]

        if max_workers > 1 and len(ordered) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results = list(executor.map(self.run_page, ordered, page_stats))
        else:
            results = [self.run_page(page, page_stat) for page, page_stat in zip(ordered, page_stats)]

        if stats is not None:
            for page_stat in page_stats:
                stats.merge(page_stat)

        headings = [heading for page_headings in results for heading in page_headings]
        logger.info(f"Found {len(headings)} headings across {len(ordered)} pages")
        return headings

    def _detect_with_fallback(self, tensor, scale_x: float, scale_y: float,
                              image_size: Optional[ImageSize]) -> Tuple[List[DetectionBox], bool]:
        width, height = image_size if image_size else (None, None)

        if tensor is None:
            logger.info("No layout model output, using fallback layout")
            return create_fallback_layout(width, height), True

        boxes = decode_detections(
            tensor, scale_x, scale_y,
            confidence_threshold=self.config.confidence_threshold,
            class_labels=self.class_labels
        )
        regions = non_max_suppression(boxes, self.config.nms_iou_threshold)

        if not regions and self.config.fallback_on_empty:
            logger.info("No detections survived, using fallback layout")
            return create_fallback_layout(width, height), True

        return regions, False

    def _select_with_exclusions(self, regions: Sequence[DetectionBox],
                                table_regions: Sequence[DetectionBox],
                                image_size: Optional[ImageSize]) -> Tuple[List[DetectionBox], List[DetectionBox]]:
        labelled = [r for r in regions if r.label in HEADING_CANDIDATE_LABELS]
        kept, excluded = filter_table_regions(labelled, table_regions,
                                              self.config.table_overlap_threshold)

        if image_size:
            width, height = image_size
            clipped = (clip_to_image(r, width, height) for r in kept)
            kept = [r for r in clipped if not r.is_degenerate()]

        return kept, excluded

    def _read_corrected_text(self, region: DetectionBox, read_text: ReadText, page_number: int) -> str:
        try:
            raw_text = read_text(region)
        except Exception as e:
            logger.warning(f"Text extraction failed for region on page {page_number}: {e}")
            return ""

        if not raw_text or len(raw_text.strip()) < MIN_TEXT_LENGTH:
            return ""

        text = self.corrector.correct_text(raw_text)
        return text if len(text) >= MIN_TEXT_LENGTH else ""
