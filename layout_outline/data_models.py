"""
Core data models for the layout outline extractor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class DetectionBox:
    """
    A layout region in source-image pixel coordinates with its class label.
    """
    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float
    class_id: int
    label: str

    @property
    def width(self) -> float:
        """Width of the box (may be negative for malformed boxes)."""
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        """Height of the box (may be negative for malformed boxes)."""
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        """Area of the box, zero for degenerate boxes."""
        if self.is_degenerate():
            return 0.0
        return self.width * self.height

    def is_degenerate(self) -> bool:
        """Check whether the box has no positive area."""
        return self.x2 <= self.x1 or self.y2 <= self.y1

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)


@dataclass(frozen=True)
class TextBlockGeometry:
    """
    Page-space bounding box of one text block, as reported by the PDF text layer.
    """
    x0: float
    y0: float
    x1: float
    y1: float


class HeadingLevel(Enum):
    """Heading rank, or UNKNOWN for "not a heading"."""
    H1 = "H1"
    H2 = "H2"
    H3 = "H3"
    H4 = "H4"
    UNKNOWN = "UNKNOWN"

    @property
    def is_heading(self) -> bool:
        return self is not HeadingLevel.UNKNOWN


@dataclass(frozen=True)
class HeadingRecord:
    """
    One accepted heading. Never carries an UNKNOWN level.
    """
    level: HeadingLevel
    text: str
    page_number: int
    bbox: DetectionBox
    confidence: float

    def __post_init__(self):
        """Reject records that cannot appear in an outline."""
        if not isinstance(self.level, HeadingLevel) or not self.level.is_heading:
            raise ValueError(f"HeadingRecord requires a heading level, got {self.level!r}")
        if int(self.page_number) < 1:
            raise ValueError(f"Page numbers are 1-based, got {self.page_number}")

    def to_outline_entry(self) -> Dict[str, Any]:
        """Convert to the {level, text, page} entry used in JSON output."""
        return {
            'level': self.level.value,
            'text': self.text,
            'page': self.page_number
        }


@dataclass
class DocumentOutline:
    """
    Represents the complete outline of a processed document.
    """
    title: str
    headings: List[HeadingRecord] = field(default_factory=list)

    def __post_init__(self):
        """Normalize the title."""
        self.title = self.title.strip() if self.title else ""

    def get_headings_by_level(self, level: HeadingLevel) -> List[HeadingRecord]:
        """Get all headings of a specific level."""
        return [h for h in self.headings if h.level is level]

    def get_headings_by_page(self, page: int) -> List[HeadingRecord]:
        """Get all headings on a specific page."""
        return [h for h in self.headings if h.page_number == page]

    def to_json_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary matching the output schema."""
        return {
            'title': self.title,
            'outline': [heading.to_outline_entry() for heading in self.headings]
        }

    def is_empty(self) -> bool:
        """Check if the outline is empty."""
        return not self.title and not self.headings


@dataclass
class ProcessingStats:
    """
    Statistics and metrics for outline extraction runs.
    """
    pages_processed: int = 0
    regions_detected: int = 0
    regions_excluded_as_table: int = 0
    regions_without_text: int = 0
    headings_found: int = 0
    fallback_pages: int = 0
    errors_encountered: int = 0
    processing_time: float = 0.0

    def merge(self, other: "ProcessingStats") -> None:
        """Accumulate another stats object into this one."""
        self.pages_processed += other.pages_processed
        self.regions_detected += other.regions_detected
        self.regions_excluded_as_table += other.regions_excluded_as_table
        self.regions_without_text += other.regions_without_text
        self.headings_found += other.headings_found
        self.fallback_pages += other.fallback_pages
        self.errors_encountered += other.errors_encountered
        self.processing_time += other.processing_time

    @property
    def processing_speed(self) -> float:
        """Calculate pages processed per second."""
        if self.processing_time == 0.0:
            return 0.0
        return self.pages_processed / self.processing_time
