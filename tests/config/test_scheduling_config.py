"""
Tests for scheduling_config loading and validation.

Covers:
- Shipped defaults equal the schema defaults
- Override files and partial sections
- Rejection of unknown keys and out-of-range values
- Deterministic checksum and the SCHEDULING_CONFIG_TRACE log
"""

from decimal import Decimal

import pytest

from scheduling_config import DEFAULT_CONFIG_PATH, get_active_config
from scheduling_config.loader import compute_checksum, parse_config, parse_decimal
from scheduling_config.schema import (
    CompressionSettings,
    CriticalPathSettings,
    EarnedValueSettings,
    LevelingSettings,
)


def write_config(tmp_path, text, name="override.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestDefaults:
    def test_shipped_defaults_match_schema(self):
        config = get_active_config()

        assert config.config_id == "defaults"
        assert config.critical_path == CriticalPathSettings()
        assert config.leveling == LevelingSettings()
        assert config.compression == CompressionSettings()
        assert config.earned_value == EarnedValueSettings()

    def test_default_path_exists(self):
        assert DEFAULT_CONFIG_PATH.exists()

    def test_values_are_decimals(self):
        config = get_active_config()

        assert config.earned_value.tcpi_achievable_threshold == Decimal("1.20")
        assert isinstance(config.compression.default_max_risk_score, Decimal)
        assert config.compression.risk_level_weights["moderate"] == Decimal("50")

    def test_empty_document_uses_defaults(self):
        config = parse_config({})

        assert config.leveling.default_priority == "minimum_total_float"
        assert config.version == 1


class TestOverrides:
    def test_partial_section(self, tmp_path):
        path = write_config(tmp_path, "leveling:\n  max_periods: 5\n")

        config = get_active_config(path)

        assert config.leveling.max_periods == 5
        assert config.leveling.max_tasks_per_period == 2

    def test_partial_risk_weights(self, tmp_path):
        path = write_config(
            tmp_path, "compression:\n  risk_level_weights:\n    high: 70\n"
        )

        weights = get_active_config(path).compression.risk_level_weights

        assert weights["high"] == Decimal("70")
        assert weights["extreme"] == Decimal("100")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestValidation:
    @pytest.mark.parametrize(
        "document",
        [
            {"surprise": 1},
            {"leveling": {"max_period": 3}},
            {"compression": {"risk_level_weights": {"severe": 90}}},
        ],
    )
    def test_unknown_keys_rejected(self, document):
        with pytest.raises(ValueError, match="unknown"):
            parse_config(document)

    @pytest.mark.parametrize(
        "document",
        [
            {"leveling": {"max_periods": 0}},
            {"leveling": {"delay_days_per_unit": 0}},
            {"leveling": {"default_priority": "random"}},
            {"compression": {"default_max_risk_score": 120}},
            {"critical_path": {"flexibility_horizon_days": 0}},
            {"critical_path": {"critical_float_tolerance_days": -1}},
            {"earned_value": {"tcpi_achievable_threshold": 0}},
            {"earned_value": {"index_decimal_places": True}},
        ],
    )
    def test_out_of_range_rejected(self, document):
        with pytest.raises(ValueError):
            parse_config(document)

    def test_parse_decimal_uses_string_form(self):
        assert parse_decimal(0.1, "x") == Decimal("0.1")

    def test_parse_decimal_rejects_bool(self):
        with pytest.raises(ValueError):
            parse_decimal(True, "x")


class TestChecksumAndTrace:
    def test_checksum_is_key_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_checksum_changes_with_content(self, tmp_path):
        first = get_active_config(write_config(tmp_path, "version: 1\n", "one.yaml"))
        second = get_active_config(write_config(tmp_path, "version: 2\n", "two.yaml"))

        assert first.checksum != second.checksum
        assert len(first.checksum) == 64

    def test_config_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "SCHEDULING_CONFIG_TRACE"]
        assert traces[0]["config_id"] == "defaults"
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["source"] == str(DEFAULT_CONFIG_PATH)
