"""
Tests for pipeline configuration loading.
"""

import json
import logging

import pytest

from layout_outline.config import (
    PipelineConfig,
    config_from_dict,
    config_keys,
    load_config,
    load_config_with_keys,
)
from layout_outline.text_corrector import TextCorrector


class TestPipelineConfig:
    """Test cases for PipelineConfig."""

    def test_defaults(self):
        config = PipelineConfig()

        assert config.confidence_threshold == 0.5
        assert config.nms_iou_threshold == 0.45
        assert config.table_overlap_threshold == 0.3
        assert config.table_min_blocks == 6
        assert config.table_alignment_tolerance == 10.0
        assert config.aggressive_correction is False
        assert config.dpi == 100
        assert config.max_workers == 1
        assert config.fallback_on_empty is True

    def test_page_scale(self):
        assert PipelineConfig(dpi=144).page_scale == 2.0

    @pytest.mark.parametrize("kwargs", [
        {"confidence_threshold": 1.5},
        {"nms_iou_threshold": -0.1},
        {"table_overlap_threshold": 2.0},
        {"dpi": 0},
        {"max_workers": 0},
    ])
    def test_invalid_values_are_rejected(self, kwargs):
        with pytest.raises(ValueError):
            PipelineConfig(**kwargs)

    def test_with_overrides_ignores_none(self):
        config = PipelineConfig()

        updated = config.with_overrides(dpi=200, aggressive_correction=None)

        assert updated.dpi == 200
        assert updated.aggressive_correction is False
        assert config.dpi == 100
        assert config.with_overrides(dpi=None) is config


class TestConfigFromDict:
    """Test cases for config_from_dict."""

    def test_known_keys_and_alias(self):
        config = config_from_dict({"confidence_threshold": 0.25, "nms_threshold": 0.6})

        assert config.confidence_threshold == 0.25
        assert config.nms_iou_threshold == 0.6

    def test_unknown_keys_are_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = config_from_dict({"input_size": 1024, "dpi": 150})

        assert config.dpi == 150
        assert "input_size" in caplog.text

    def test_base_values_are_kept(self):
        base = PipelineConfig(dpi=300)
        assert config_from_dict({"max_workers": 4}, base).dpi == 300


class TestLoadConfig:
    """Test cases for load_config."""

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"table_overlap_threshold": 0.5, "aggressive_correction": True}))

        config = load_config(str(path))

        assert config.table_overlap_threshold == 0.5
        assert config.aggressive_correction is True

    def test_no_path_returns_base(self):
        base = PipelineConfig(dpi=72)
        assert load_config(None, base) is base

    def test_missing_file_falls_back(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            config = load_config(str(tmp_path / "missing.json"))

        assert config == PipelineConfig()
        assert "Could not read configuration file" in caplog.text

    def test_malformed_json_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_config(str(path)) == PipelineConfig()

    def test_non_object_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2, 3]")
        assert load_config(str(path)) == PipelineConfig()

    def test_out_of_range_value_falls_back(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"confidence_threshold": 3.0}))
        assert load_config(str(path)) == PipelineConfig()


class TestOptionTypes:
    """Test cases for option type checking."""

    @pytest.mark.parametrize("kwargs", [
        {"table_min_blocks": "6"},
        {"table_min_blocks": 6.5},
        {"dpi": True},
        {"confidence_threshold": "0.5"},
        {"aggressive_correction": "false"},
        {"fallback_on_empty": 1},
        {"model_dir": None},
        {"corrections_path": 42},
    ])
    def test_mistyped_values_are_rejected(self, kwargs):
        with pytest.raises(ValueError):
            PipelineConfig(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"table_min_blocks": 0},
        {"table_alignment_tolerance": -1.0},
    ])
    def test_table_options_are_range_checked(self, kwargs):
        with pytest.raises(ValueError):
            PipelineConfig(**kwargs)

    def test_integer_accepted_for_float_option(self):
        assert PipelineConfig(table_alignment_tolerance=12).table_alignment_tolerance == 12

    def test_string_number_in_file_keeps_defaults(self, tmp_path, caplog):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"table_min_blocks": "6", "dpi": 150}))

        with caplog.at_level(logging.WARNING):
            config = load_config(str(path))

        assert config == PipelineConfig()
        assert "Invalid configuration" in caplog.text

    def test_string_switch_in_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"aggressive_correction": "false"}))

        config = load_config(str(path))

        assert config.aggressive_correction is False
        assert TextCorrector(aggressive_mode=config.aggressive_correction).correct_text("Page 1 2") == "Page 1 2"


class TestLoadConfigWithKeys:
    """Test cases for reporting which options a file set."""

    def test_keys_are_reported_with_aliases_resolved(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"confidence_threshold": 0.5, "nms_threshold": 0.4, "extra": 1}))

        config, keys = load_config_with_keys(str(path))

        assert keys == {"confidence_threshold", "nms_iou_threshold"}
        assert config.nms_iou_threshold == 0.4

    def test_invalid_file_reports_no_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"dpi": "high"}))

        assert load_config_with_keys(str(path)) == (PipelineConfig(), set())

    def test_no_path(self):
        assert load_config_with_keys(None) == (PipelineConfig(), set())

    def test_config_keys(self):
        assert config_keys({"nms_threshold": 0.3, "unknown": 1}) == {"nms_iou_threshold"}
