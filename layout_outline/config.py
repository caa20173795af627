"""
Pipeline configuration for the layout outline extractor.

Defaults can be overridden from a JSON file (the same file the layout model
directory ships as ``config.json``) and then from command-line flags.
"""

import os
import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)

# Keys accepted under a different name in model config files
_KEY_ALIASES = {
    'nms_threshold': 'nms_iou_threshold',
}

# Options holding a filesystem path rather than a number or switch
_PATH_OPTIONS = frozenset({'corrections_path', 'model_dir'})


def _has_option_type(value: Any, default: Any, path_option: bool) -> bool:
    if path_option:
        return isinstance(value, (str, os.PathLike)) or (value is None and default is None)
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if isinstance(default, int):
        return isinstance(value, int)
    return isinstance(value, (int, float))


@dataclass(frozen=True)
class PipelineConfig:
    """Thresholds and switches consumed by the page pipeline."""
    confidence_threshold: float = 0.5
    nms_iou_threshold: float = 0.45
    table_overlap_threshold: float = 0.3
    table_min_blocks: int = 6
    table_alignment_tolerance: float = 10.0
    aggressive_correction: bool = False
    corrections_path: Optional[str] = None
    dpi: int = 100
    max_workers: int = 1
    fallback_on_empty: bool = True
    model_dir: str = "models/yolo_layout"

    def __post_init__(self):
        for option in fields(self):
            value = getattr(self, option.name)
            if not _has_option_type(value, option.default, option.name in _PATH_OPTIONS):
                raise ValueError(f"{option.name} has invalid type {type(value).__name__}: {value!r}")

        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold must be in [0, 1], got {self.confidence_threshold}")
        if not 0.0 <= self.nms_iou_threshold <= 1.0:
            raise ValueError(f"nms_iou_threshold must be in [0, 1], got {self.nms_iou_threshold}")
        if not 0.0 <= self.table_overlap_threshold <= 1.0:
            raise ValueError(f"table_overlap_threshold must be in [0, 1], got {self.table_overlap_threshold}")
        if self.table_min_blocks < 1:
            raise ValueError(f"table_min_blocks must be at least 1, got {self.table_min_blocks}")
        if self.table_alignment_tolerance < 0:
            raise ValueError(f"table_alignment_tolerance must not be negative, got {self.table_alignment_tolerance}")
        if self.dpi <= 0:
            raise ValueError(f"dpi must be positive, got {self.dpi}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    @property
    def page_scale(self) -> float:
        """Scale from PDF points to rendered image pixels."""
        return self.dpi / 72.0

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


def config_from_dict(data: Dict[str, Any], base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    Build a config from a plain dictionary, ignoring unknown keys.

    Args:
        data: Mapping of option names to values
        base: Config whose values are used for missing keys

    Returns:
        New PipelineConfig instance
    """
    base = base or PipelineConfig()
    known = {f.name for f in fields(PipelineConfig)}
    overrides = {}

    for key, value in data.items():
        name = _KEY_ALIASES.get(key, key)
        if name in known:
            overrides[name] = value
        else:
            logger.warning(f"Ignoring unknown configuration key: {key}")

    return replace(base, **overrides)


def config_keys(data: Dict[str, Any]) -> Set[str]:
    """Option names set by a configuration mapping, with aliases resolved."""
    known = {f.name for f in fields(PipelineConfig)}
    return {_KEY_ALIASES.get(key, key) for key in data} & known


def load_config_with_keys(config_path: Optional[str],
                          base: Optional[PipelineConfig] = None) -> Tuple[PipelineConfig, Set[str]]:
    """
    Load pipeline configuration from a JSON file and report which options it set.

    A missing, unreadable or invalid file is not fatal: a warning is logged
    and the base configuration is returned with no options marked as set.

    Args:
        config_path: Path to the JSON configuration file
        base: Config to start from (defaults when omitted)

    Returns:
        Tuple of (loaded PipelineConfig, option names taken from the file)
    """
    base = base or PipelineConfig()
    if not config_path:
        return base, set()

    path = Path(config_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read configuration file {config_path}: {e}")
        return base, set()

    if not isinstance(data, dict):
        logger.warning(f"Configuration file {config_path} does not contain an object, using defaults")
        return base, set()

    try:
        config = config_from_dict(data, base)
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid configuration in {config_path}: {e}")
        return base, set()

    logger.info(f"Loaded configuration from {config_path}")
    return config, config_keys(data)


def load_config(config_path: Optional[str], base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    Load pipeline configuration from a JSON file.

    Args:
        config_path: Path to the JSON configuration file
        base: Config to start from (defaults when omitted)

    Returns:
        Loaded PipelineConfig, or the base configuration when the file is unusable
    """
    config, _ = load_config_with_keys(config_path, base)
    return config
