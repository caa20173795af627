#!/usr/bin/env python3
"""
Layout Outline Extractor - command-line entry point

Renders PDF pages, detects layout regions with the ONNX layout model, reads
candidate regions with Tesseract and writes a JSON outline (title plus H1-H4
headings) for each input document.
"""

import argparse
import sys
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from . import __version__
from .batch_processor import BatchProcessor
from .config import PipelineConfig, config_from_dict, load_config_with_keys
from .layout_model import LayoutModelRunner
from .logging_config import setup_logging

logger = logging.getLogger("layout_outline.main")

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list (sys.argv[1:] when omitted)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Extract title and H1-H4 headings from PDF files using layout detection and OCR',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  layout-outline --input report.pdf --output report.json
  layout-outline -i ./pdfs -o ./results --dpi 150 --workers 4
  layout-outline -i ./pdfs -o ./results --model-dir models/yolo_layout --aggressive
        """
    )

    parser.add_argument('--input', '-i', type=str, required=True,
                        help='PDF file or directory containing PDF files')
    parser.add_argument('--output', '-o', type=str, required=True,
                        help='Output JSON file (single PDF) or directory')
    parser.add_argument('--dpi', type=int, default=None,
                        help='Rendering resolution (default: 100)')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON file overriding pipeline settings')
    parser.add_argument('--model-dir', type=str, default=None,
                        help='Directory holding yolo_layout.onnx and config.json')
    parser.add_argument('--corrections', type=str, default=None,
                        help='Extra OCR corrections file (wrong=correct per line)')
    parser.add_argument('--aggressive', action='store_true', default=None,
                        help='Enable pattern-based OCR correction')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker threads for page processing (default: 1)')
    parser.add_argument('--log-level', type=str.upper, default='INFO', choices=LOG_LEVELS,
                        help='Logging level (default: INFO)')
    parser.add_argument('--version', '-v', action='version',
                        version=f'%(prog)s {__version__}')

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Tuple[PipelineConfig, Set[str]]:
    """
    Resolve pipeline settings: defaults, then the --config file, then flags.

    Args:
        args: Parsed command-line arguments

    Returns:
        Tuple of (resolved PipelineConfig, option names the user set explicitly)
    """
    config, user_keys = load_config_with_keys(args.config)
    flags = {
        'dpi': args.dpi,
        'model_dir': args.model_dir,
        'corrections_path': args.corrections,
        'aggressive_correction': args.aggressive,
        'max_workers': args.workers,
    }

    config = config.with_overrides(**flags)
    user_keys |= {name for name, value in flags.items() if value is not None}
    return config, user_keys


def apply_model_config(config: PipelineConfig, runner: LayoutModelRunner,
                       user_keys: Optional[Set[str]] = None) -> PipelineConfig:
    """
    Apply thresholds from the model's config.json to options the user did not set.

    Args:
        config: Resolved pipeline configuration
        runner: Layout model runner with its config.json loaded
        user_keys: Option names set by the --config file or a flag

    Returns:
        PipelineConfig with the model thresholds applied
    """
    user_keys = user_keys or set()
    overrides = {
        name: value for name, value in runner.pipeline_overrides().items()
        if name not in user_keys
    }

    if not overrides:
        return config

    try:
        return config_from_dict(overrides, config)
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring invalid thresholds in model config: {e}")
        return config


def format_heading_breakdown(stats: Dict[str, Any]) -> str:
    """Format per-level heading counts, e.g. "H1: 2, H2: 5, H3: 1, H4: 0"."""
    counts = stats.get('headings_by_level', {})
    return ", ".join(f"{level}: {counts.get(level, 0)}" for level in ('H1', 'H2', 'H3', 'H4'))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for layout outline extraction."""
    args = parse_arguments(argv)
    setup_logging(args.log_level)

    try:
        config, user_keys = build_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input path does not exist: {args.input}")
        return 1

    try:
        runner = LayoutModelRunner(config.model_dir)
        config = apply_model_config(config, runner, user_keys)
        processor = BatchProcessor(config, model_runner=runner)

        if not processor.ocr.is_available():
            logger.warning("Tesseract not found, regions will have no text")

        if input_path.is_file():
            output_path = Path(args.output)
            if output_path.suffix.lower() != '.json':
                output_path = output_path / f"{input_path.stem}.json"
            if not processor.process_single_pdf(input_path, output_path):
                return 1

            logger.info(f"Heading breakdown: {format_heading_breakdown(processor.get_processing_stats())}")
            return 0

        stats = processor.process_directory(input_path, args.output)

    except KeyboardInterrupt:
        logger.info("Processing interrupted by user")
        return 1
    except OSError as e:
        logger.error(f"Unexpected error: {e}")
        return 1

    if stats['total_files'] == 0:
        logger.error(f"No PDF files found in input directory: {args.input}")
        return 1

    if stats['successful'] == 0:
        logger.error("All PDF files failed to process - exiting with error code")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
