"""
OCR text correction for detected layout regions.

Correction runs in two stages:
1. Literal substitutions for known OCR misreadings, followed by whitespace
   normalization.
2. Regex rewrites for numbering, ordinals, punctuation spacing and scanner
   artifacts (aggressive mode only).
"""

import re
import logging
from pathlib import Path
from typing import Dict, Optional, Pattern, Tuple, Union

logger = logging.getLogger(__name__)

# Applied in order. No replacement contains a key, so a second pass is a no-op.
BUILTIN_LITERAL_CORRECTIONS: Tuple[Tuple[str, str], ...] = (
    # rn -> m, vv -> w confusions
    ("rnatch", "match"),
    ("vvork", "work"),
    ("cornpany", "company"),
    ("rnoney", "money"),
    ("rnanage", "manage"),
    ("rnarket", "market"),
    ("tilie", "title"),
    ("nieet", "meet"),
    ("rnust", "must"),
    ("vvill", "will"),
    ("vvith", "with"),
    ("vvhen", "when"),
    ("vvhere", "where"),
    ("vvhat", "what"),
    ("vvhy", "why"),
    ("rnight", "might"),
    ("rnore", "more"),
    ("rnark", "mark"),

    # Technical vocabulary
    ("Aadile", "Agile"),
    ("aadile", "agile"),
    ("Testina", "Testing"),
    ("testina", "testing"),
    ("Entrv", "Entry"),
    ("entrv", "entry"),
    ("lntroduction", "Introduction"),
    ("Reguirements", "Requirements"),
    ("reguirements", "requirements"),
    ("Develooment", "Development"),
    ("develooment", "development"),
    ("Manaaement", "Management"),
    ("manaaement", "management"),
    ("Orqanization", "Organization"),
    ("orqanization", "organization"),
    ("Backaround", "Background"),
    ("backaround", "background"),
    ("Technoloaical", "Technological"),
    ("technoloaical", "technological"),

    # Spelling
    ("recieve", "receive"),
    ("seperate", "separate"),
    ("occured", "occurred"),
    ("definately", "definitely"),
    ("managment", "management"),
    ("enviroment", "environment"),
    ("accomodate", "accommodate"),
    ("begining", "beginning"),
    ("beleive", "believe"),
    ("occassion", "occasion"),
    ("profesional", "professional"),
    ("recomend", "recommend"),
    ("neccessary", "necessary"),
    ("accross", "across"),
    ("untill", "until"),
    ("thier", "their"),
    ("freind", "friend"),
    ("sence", "sense"),

    # Report vocabulary
    ("qgovernance", "governance"),
    ("decision-makina", "decision-making"),
    ("fundina", "funding"),
    ("reallv", "really"),
    ("librarv", "library"),
    ("fullv", "fully"),
    ("aovernment", "government"),
    ("Strateqy", "Strategy"),

    # Dash read in place of a colon
    ("timeline-", "Timeline:"),
    ("summary-", "Summary:"),
    ("background-", "Background:"),
    ("guidance-", "Guidance:"),
)

# Applied in order, each rule's output feeding the next
AGGRESSIVE_PATTERN_RULES: Tuple[Tuple[Pattern, str], ...] = (
    (re.compile(r'(\d)\s+(?=\d)'), r'\1.'),             # 1 2 3 -> 1.2.3
    (re.compile(r'(\d)\s*\.\s+(\d)'), r'\1.\2'),        # 1 . 2 -> 1.2
    (re.compile(r'\blst\b'), '1st'),
    (re.compile(r'\bncl\b'), '2nd'),
    (re.compile(r'\b(\d+)lst\b'), r'\1st'),
    (re.compile(r'\b(\d+)ncl\b'), r'\1nd'),
    (re.compile(r'\b(\d+)rcl\b'), r'\1rd'),
    (re.compile(r' {2,}'), ' '),
    (re.compile(r'\s+([,.;:!?])'), r'\1'),
    (re.compile(r'([|_-])\1+'), r'\1'),                 # ||| -> |, --- -> -
)

_WHITESPACE_RE = re.compile(r'\s+')


class TextCorrector:
    """
    Cleans OCR output with a literal dictionary and optional regex rewrites.

    The built-in tables are shared module constants; an instance only holds
    its own copy of the literal mapping when custom corrections are loaded.
    """

    def __init__(self, aggressive_mode: bool = False,
                 custom_corrections_path: Optional[Union[str, Path]] = None):
        """
        Initialize the corrector.

        Args:
            aggressive_mode: Whether to run the regex pattern pass
            custom_corrections_path: Optional ``wrong=correct`` file extending the built-ins
        """
        self.aggressive_mode = aggressive_mode
        self.literal_corrections: Dict[str, str] = dict(BUILTIN_LITERAL_CORRECTIONS)
        self.pattern_rules = AGGRESSIVE_PATTERN_RULES

        if custom_corrections_path:
            self.load_custom_corrections(custom_corrections_path)

    def correct_text(self, text: str) -> str:
        """
        Correct one OCR string.

        Args:
            text: Raw OCR text

        Returns:
            Corrected text, empty for empty input
        """
        if not text:
            return ""

        result = self._apply_literal_corrections(text)

        if self.aggressive_mode:
            result = self._apply_pattern_rules(result)

        return result

    def load_custom_corrections(self, path: Union[str, Path]) -> int:
        """
        Extend the literal corrections from a ``wrong=correct`` file.

        Blank lines and lines starting with ``#`` are ignored. A key already
        present overrides the built-in replacement in place; new keys are
        applied after the built-ins.

        Args:
            path: Path to the corrections file

        Returns:
            Number of corrections loaded
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                lines = f.readlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not open corrections file {path}: {e}")
            return 0

        loaded = 0
        for line_number, raw_line in enumerate(lines, 1):
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue

            wrong, separator, correct = line.partition('=')
            wrong = wrong.strip()
            if not separator or not wrong:
                logger.debug(f"Skipping malformed correction at {path}:{line_number}")
                continue

            self.literal_corrections[wrong] = correct.strip()
            loaded += 1

        logger.info(f"Loaded {loaded} custom corrections from {path}")
        return loaded

    @staticmethod
    def is_valid_correction(original: str, corrected: str) -> bool:
        """
        Check whether a correction looks related to its original.

        Args:
            original: Text before correction
            corrected: Text after correction

        Returns:
            False when either string is empty or one is more than twice as long as the other
        """
        if not original or not corrected:
            return False
        if len(corrected) > len(original) * 2:
            return False
        if len(original) > len(corrected) * 2:
            return False
        return True

    def _apply_literal_corrections(self, text: str) -> str:
        result = text
        for wrong, correct in self.literal_corrections.items():
            # str.replace resumes scanning after each inserted replacement
            result = result.replace(wrong, correct)

        return _WHITESPACE_RE.sub(' ', result).strip()

    def _apply_pattern_rules(self, text: str) -> str:
        result = text
        for pattern, replacement in self.pattern_rules:
            result = pattern.sub(replacement, result)
        return result
