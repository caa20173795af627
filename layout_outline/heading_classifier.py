"""
Heading level classifier for OCR'd layout regions.

This module assigns H1-H4 levels (or UNKNOWN) to the corrected text of a
detected region through a prioritized rule cascade:
- Primary: the layout label predicted by the detector (title, text, list)
- Secondary: lexical and numbering indicators, most specific level first
- Tertiary: structural fallback for "text" regions that look like headings

Every level proposed by the first two stages must also fit the level's
length/word-count envelope. The rule tables are module constants so each
predicate can be exercised on its own.
"""

import re
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .data_models import HeadingLevel

logger = logging.getLogger(__name__)

# Predicates receive the candidate text and its 1-based page number
Predicate = Callable[[str, int], bool]


@dataclass(frozen=True)
class IndicatorRule:
    """A named boolean predicate over (text, page_number)."""
    name: str
    predicate: Predicate

    def __call__(self, text: str, page_number: int = 1) -> bool:
        return bool(self.predicate(text, page_number))


@dataclass(frozen=True)
class ValidationEnvelope:
    """Length and word-count bounds a heading of one level must respect."""
    min_length: int
    max_length: int
    max_words: int

    def accepts(self, text: str) -> bool:
        return (self.min_length <= len(text) <= self.max_length
                and count_words(text) <= self.max_words)


def count_words(text: str) -> int:
    return len(text.split())


def _starts_with_any(text: str, prefixes: Tuple[str, ...]) -> bool:
    return text.lower().startswith(prefixes)


# Body text filters

BODY_TEXT_FUNCTION_WORDS = ("the ", "this ", "in ", "for ", "with ", "as ")

BODY_TEXT_RULES: Tuple[IndicatorRule, ...] = (
    IndicatorRule("too_long", lambda t, p: len(t) > 200),
    IndicatorRule("too_many_words", lambda t, p: count_words(t) > 25),
    IndicatorRule("long_sentence", lambda t, p: t.endswith('.') and len(t) > 50),
    IndicatorRule("multiple_sentences",
                  lambda t, p: sum(t.count(c) for c in '.!?') > 1),
    IndicatorRule("function_word_opening",
                  lambda t, p: _starts_with_any(t, BODY_TEXT_FUNCTION_WORDS) and count_words(t) > 8),
)


# Level indicators

H1_SECTION_PREFIXES = ("abstract", "introduction", "executive summary",
                       "conclusion", "appendix", "summary")
H1_PHASE_MARKERS = ("phase i", "phase ii", "phase iii")
H1_NUMBERED_DIVISION_RE = re.compile(r'^(chapter|section|part|phase)\s+[IVX0-9]', re.IGNORECASE)

H2_SECTION_WORDS = frozenset({"background", "methodology", "results", "discussion",
                              "references", "bibliography", "acknowledgments"})
H2_SECTION_PREFIXES = ("timeline:", "evaluation", "funding")
H2_SUBSECTION_RE = re.compile(r'^\d+\.\d+')

H3_NUMBERED_ITEM_RE = re.compile(r'^\d+\.?\s')
H3_LETTERED_ITEM_RE = re.compile(r'^[a-z]\)\s', re.IGNORECASE)

H4_NUMERIC_DATE_RE = re.compile(r'\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b')
H4_WRITTEN_DATE_RE = re.compile(
    r'\b(january|february|march|april|may|june|july|august|september|'
    r'october|november|december)\s+\d{1,2},?\s+\d{4}',
    re.IGNORECASE
)
H4_TIMELINE_RE = re.compile(r'\btimeline:\s*', re.IGNORECASE)

H1_INDICATORS: Tuple[IndicatorRule, ...] = (
    IndicatorRule("major_section_keyword",
                  lambda t, p: (_starts_with_any(t, H1_SECTION_PREFIXES)
                                or any(marker in t.lower() for marker in H1_PHASE_MARKERS))),
    IndicatorRule("numbered_division", lambda t, p: bool(H1_NUMBERED_DIVISION_RE.search(t))),
    IndicatorRule("first_page_title", lambda t, p: p == 1 and len(t) > 20),
)

H2_INDICATORS: Tuple[IndicatorRule, ...] = (
    IndicatorRule("section_keyword",
                  lambda t, p: t.lower() in H2_SECTION_WORDS or _starts_with_any(t, H2_SECTION_PREFIXES)),
    IndicatorRule("subsection_numbering", lambda t, p: bool(H2_SUBSECTION_RE.search(t))),
)

H3_INDICATORS: Tuple[IndicatorRule, ...] = (
    IndicatorRule("list_marker",
                  lambda t, p: bool(H3_NUMBERED_ITEM_RE.search(t) or H3_LETTERED_ITEM_RE.search(t))),
    IndicatorRule("colon_label", lambda t, p: t.endswith(':') and 5 < len(t) < 60),
)

H4_INDICATORS: Tuple[IndicatorRule, ...] = (
    IndicatorRule("date_or_timeline",
                  lambda t, p: bool(H4_NUMERIC_DATE_RE.search(t)
                                    or H4_WRITTEN_DATE_RE.search(t)
                                    or H4_TIMELINE_RE.search(t))),
    IndicatorRule("short_bullet", lambda t, p: t[:1] in ('-', '*') and len(t) < 50),
)

# Most specific first after H1
PATTERN_STAGE_ORDER: Tuple[Tuple[HeadingLevel, Tuple[IndicatorRule, ...]], ...] = (
    (HeadingLevel.H1, H1_INDICATORS),
    (HeadingLevel.H4, H4_INDICATORS),
    (HeadingLevel.H3, H3_INDICATORS),
    (HeadingLevel.H2, H2_INDICATORS),
)

LAYOUT_LABEL_LEVELS: Dict[str, HeadingLevel] = {
    "title": HeadingLevel.H1,
    "text": HeadingLevel.H2,
    "list": HeadingLevel.H3,
}

VALIDATION_ENVELOPES: Dict[HeadingLevel, ValidationEnvelope] = {
    HeadingLevel.H1: ValidationEnvelope(min_length=10, max_length=150, max_words=20),
    HeadingLevel.H2: ValidationEnvelope(min_length=5, max_length=120, max_words=15),
    HeadingLevel.H3: ValidationEnvelope(min_length=3, max_length=100, max_words=12),
    HeadingLevel.H4: ValidationEnvelope(min_length=3, max_length=80, max_words=10),
}


# Structural fallback

NUMBERED_SECTION_RE = re.compile(r'^\s*(?:\d+\.|\d+\.\d+\.?|[IVX]+\.?|[A-Z]\.)\s')
NUMBERED_MAJOR_SECTION_RE = re.compile(r'^\s*(?:\d+\.|[IVX]+\.)\s|^\s*\d+\s+[A-Z]')


def _is_all_caps_label(text: str) -> bool:
    if not 3 < len(text) < 50:
        return False
    letters = [c for c in text if c.isalpha()]
    return len(letters) > 2 and not any(c.islower() for c in letters)


def _is_mostly_capitalized(text: str) -> bool:
    capitalized = 0
    total = 0
    for word in text.split():
        if total >= 10:
            break
        if word[0].isalpha():
            total += 1
            if word[0].isupper():
                capitalized += 1
    return 2 <= total <= 8 and capitalized / total >= 0.7


HEADING_STRUCTURE_RULES: Tuple[IndicatorRule, ...] = (
    IndicatorRule("numbered_prefix", lambda t, p: bool(NUMBERED_SECTION_RE.search(t))),
    IndicatorRule("trailing_colon", lambda t, p: t.endswith(':') and 5 < len(t) < 80),
    IndicatorRule("all_caps", lambda t, p: _is_all_caps_label(t)),
    IndicatorRule("title_case", lambda t, p: _is_mostly_capitalized(t)),
)


def _first_matching_rule(rules: Tuple[IndicatorRule, ...], text: str, page_number: int) -> Optional[str]:
    for rule in rules:
        if rule(text, page_number):
            return rule.name
    return None


class HeadingClassifier:
    """
    Classifies the corrected text of one layout region into a heading level.

    The classifier holds no per-call state; one instance can be shared by
    concurrent page workers.
    """

    def __init__(self, envelopes: Optional[Dict[HeadingLevel, ValidationEnvelope]] = None):
        self.envelopes = envelopes or VALIDATION_ENVELOPES

    def determine_heading_level(self, text: str, layout_label: str = "",
                                page_number: int = 1) -> HeadingLevel:
        """
        Determine the heading level of a candidate region.

        Args:
            text: Corrected OCR text of the region
            layout_label: Label assigned by the layout detector
            page_number: 1-based page number

        Returns:
            H1-H4, or UNKNOWN when the region is not a heading
        """
        if not text or len(text) < 3:
            return HeadingLevel.UNKNOWN

        body_rule = _first_matching_rule(BODY_TEXT_RULES, text, page_number)
        if body_rule:
            logger.debug(f"Rejected as body text ({body_rule}): '{text[:50]}'")
            return HeadingLevel.UNKNOWN

        # Stage 1: layout label hint
        level = self.classify_by_layout_label(layout_label)
        if level.is_heading and self.validate(text, level):
            return level

        # Stage 2: lexical and numbering indicators
        level = self.classify_by_patterns(text, page_number)
        if level.is_heading and self.validate(text, level):
            return level

        # Stage 3: structure of plain text regions
        if layout_label == "text" and self.has_heading_structure(text):
            return self.classify_by_structure(text, page_number)

        return HeadingLevel.UNKNOWN

    @staticmethod
    def is_likely_body_text(text: str, page_number: int = 1) -> bool:
        """Check whether the text reads like a paragraph rather than a heading."""
        return _first_matching_rule(BODY_TEXT_RULES, text, page_number) is not None

    @staticmethod
    def classify_by_layout_label(layout_label: str) -> HeadingLevel:
        """Map a detector label to a heading level, UNKNOWN for non-heading labels."""
        return LAYOUT_LABEL_LEVELS.get(layout_label, HeadingLevel.UNKNOWN)

    @staticmethod
    def classify_by_patterns(text: str, page_number: int = 1) -> HeadingLevel:
        """
        Return the first level whose indicators fire.

        Levels are checked in the order H1, H4, H3, H2.
        """
        for level, rules in PATTERN_STAGE_ORDER:
            rule_name = _first_matching_rule(rules, text, page_number)
            if rule_name:
                logger.debug(f"{level.value} indicator '{rule_name}' matched '{text[:50]}'")
                return level
        return HeadingLevel.UNKNOWN

    def validate(self, text: str, level: HeadingLevel) -> bool:
        """Check the text against the envelope of the proposed level."""
        envelope = self.envelopes.get(level)
        return envelope is not None and envelope.accepts(text)

    @staticmethod
    def has_heading_structure(text: str) -> bool:
        """Check for numbering, a trailing colon, all caps or title case."""
        return _first_matching_rule(HEADING_STRUCTURE_RULES, text, 1) is not None

    @staticmethod
    def classify_by_structure(text: str, page_number: int = 1) -> HeadingLevel:
        """
        Assign a level from the shape of the text alone.

        Args:
            text: Candidate text already known to look like a heading
            page_number: 1-based page number

        Returns:
            Heading level, UNKNOWN for text longer than ten words
        """
        word_count = count_words(text)

        if page_number == 1 and len(text) > 20 and word_count >= 3:
            return HeadingLevel.H1

        if NUMBERED_MAJOR_SECTION_RE.search(text):
            return HeadingLevel.H1 if word_count <= 6 else HeadingLevel.H2

        if text.endswith(':'):
            return HeadingLevel.H3 if word_count <= 4 else HeadingLevel.H4

        if word_count <= 3:
            return HeadingLevel.H4
        if word_count <= 6:
            return HeadingLevel.H3
        if word_count <= 10:
            return HeadingLevel.H2

        return HeadingLevel.UNKNOWN


_default_classifier = HeadingClassifier()


def determine_heading_level(text: str, layout_label: str = "", page_number: int = 1) -> HeadingLevel:
    """
    Convenience function to classify one candidate with the built-in rules.

    Args:
        text: Corrected OCR text
        layout_label: Detector label of the region
        page_number: 1-based page number

    Returns:
        Heading level or UNKNOWN
    """
    return _default_classifier.determine_heading_level(text, layout_label, page_number)
