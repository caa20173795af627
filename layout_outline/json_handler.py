"""
JSON output handler with schema validation for the layout outline extractor.

This module formats the extracted title and heading records into the
``{"title": ..., "outline": [{"level", "text", "page"}]}`` structure,
validates it with jsonschema and writes it to disk with UTF-8 encoding.
"""

import re
import json
import logging
import unicodedata
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from jsonschema import validate, ValidationError

from .data_models import DocumentOutline, HeadingLevel, HeadingRecord

logger = logging.getLogger(__name__)

OUTPUT_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "outline": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "level": {"type": "string", "pattern": "^H[1-4]$"},
                    "text": {"type": "string", "minLength": 1},
                    "page": {"type": "integer", "minimum": 1}
                },
                "required": ["level", "text", "page"],
                "additionalProperties": False
            }
        }
    },
    "required": ["title", "outline"],
    "additionalProperties": False
}

VALID_LEVELS = ("H1", "H2", "H3", "H4")

HeadingEntry = Union[HeadingRecord, Dict[str, Any]]


class JSONHandler:
    """
    Handles JSON output formatting and schema validation.

    Features:
    - Built-in output schema, optionally replaced by a schema file
    - Unicode normalization with control characters removed
    - Malformed heading entries skipped with a log message
    """

    def __init__(self, schema_path: Optional[str] = None):
        """
        Initialize the JSON handler.

        Args:
            schema_path: Optional JSON schema file used instead of the built-in schema
        """
        self.schema_path = schema_path
        self.schema = self._load_schema()

    def _load_schema(self) -> Dict[str, Any]:
        if not self.schema_path:
            return OUTPUT_SCHEMA

        try:
            with open(self.schema_path, 'r', encoding='utf-8') as f:
                schema = json.load(f)
            logger.debug(f"Loaded schema from {self.schema_path}")
            return schema
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load schema from {self.schema_path}, using built-in schema: {e}")
            return OUTPUT_SCHEMA

    def sanitize_for_json(self, text: str) -> str:
        """
        Normalize text and drop control characters.

        Args:
            text: Input text

        Returns:
            NFC-normalized single-line text
        """
        if not text:
            return ""

        normalized = unicodedata.normalize('NFC', text)
        normalized = ''.join(c for c in normalized if not unicodedata.category(c).startswith('C') or c.isspace())
        return re.sub(r'\s+', ' ', normalized).strip()

    def format_heading_level(self, level: Union[HeadingLevel, int, str]) -> Optional[str]:
        """
        Format a heading level as "H1".."H4".

        Args:
            level: HeadingLevel, integer 1-4, or a string such as "H2" or "2"

        Returns:
            Level string, or None when the level is not a heading level
        """
        if isinstance(level, HeadingLevel):
            return level.value if level.is_heading else None

        text = str(level).strip().upper()
        if not text.startswith('H'):
            text = f"H{text}"

        return text if text in VALID_LEVELS else None

    def _entry_fields(self, heading: HeadingEntry) -> Optional[Dict[str, Any]]:
        if isinstance(heading, HeadingRecord):
            return heading.to_outline_entry()

        if not isinstance(heading, dict):
            logger.warning(f"Invalid heading format: {heading!r}")
            return None

        if not all(key in heading for key in ('level', 'text', 'page')):
            logger.debug(f"Skipping heading with missing required fields: {heading}")
            return None

        return heading

    def format_output(self, title: str, headings: Sequence[HeadingEntry]) -> Dict[str, Any]:
        """
        Format the extracted data into the output structure.

        Args:
            title: Document title
            headings: HeadingRecord objects or dictionaries with level, text and page

        Returns:
            Dictionary matching the output schema
        """
        outline = []

        for heading in headings:
            fields = self._entry_fields(heading)
            if fields is None:
                continue

            level = self.format_heading_level(fields['level'])
            text = self.sanitize_for_json(str(fields['text']))

            try:
                page = int(fields['page'])
            except (TypeError, ValueError):
                logger.warning(f"Invalid page number in heading: {fields}")
                continue

            if level is None or not text or page < 1:
                logger.debug(f"Skipping invalid heading: {fields}")
                continue

            outline.append({"level": level, "text": text, "page": page})

        return {
            "title": self.sanitize_for_json(title) if title else "",
            "outline": outline
        }

    def format_document(self, document: DocumentOutline) -> Dict[str, Any]:
        """Format output from a DocumentOutline."""
        return self.format_output(document.title, document.headings)

    def validate_schema(self, json_data: Dict[str, Any]) -> bool:
        """
        Validate output data against the schema.

        Args:
            json_data: Dictionary to validate

        Returns:
            True if validation passes, False otherwise
        """
        try:
            validate(instance=json_data, schema=self.schema)
            logger.debug("Schema validation passed")
            return True
        except ValidationError as e:
            logger.error(f"Schema validation failed: {e.message}")
            logger.debug(f"Validation error path: {list(e.absolute_path)}")
            return False

    def write_json_file(self, json_data: Dict[str, Any], output_path: Union[str, Path]) -> bool:
        """
        Write JSON data to a file with UTF-8 encoding.

        Args:
            json_data: Dictionary to write
            output_path: Path to the output file

        Returns:
            True if successful, False otherwise
        """
        try:
            output_file = Path(output_path)
            output_file.parent.mkdir(parents=True, exist_ok=True)

            with open(output_file, 'w', encoding='utf-8') as f:
                json.dump(json_data, f, ensure_ascii=False, indent=2)

            logger.info(f"Wrote JSON output to {output_path}")
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write JSON file {output_path}: {e}")
            return False

    def process_and_write(self, title: str, headings: Sequence[HeadingEntry],
                          output_path: Union[str, Path], validate: bool = True) -> bool:
        """
        Format, validate and write the output.

        Args:
            title: Document title
            headings: Heading records or dictionaries
            output_path: Path to the output file
            validate: Whether to perform schema validation

        Returns:
            True if the file was written
        """
        json_data = self.format_output(title, headings)

        if validate and not self.validate_schema(json_data):
            logger.warning("Schema validation failed, but continuing with output")

        return self.write_json_file(json_data, output_path)


def create_json_handler(schema_path: Optional[str] = None) -> JSONHandler:
    """
    Factory function to create a JSONHandler instance.

    Args:
        schema_path: Optional path to a schema file

    Returns:
        Configured JSONHandler instance
    """
    return JSONHandler(schema_path)
