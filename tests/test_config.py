"""Tests for analysis configuration."""

import pytest

from dbgraph.config import AnalysisConfig, OutputFormat, compile_pattern, table_selected
from dbgraph.constants import DEFAULT_MAX_DETAILED_TABLES
from dbgraph.core.naming import NamingPolicy


class TestAnalysisConfig:
    """Tests for AnalysisConfig defaults and validation."""

    def test_defaults(self):
        config = AnalysisConfig(database_url="sqlite:///./app.db")

        assert config.schema is None
        assert config.implied_constraints is True
        assert config.naming == NamingPolicy()
        assert config.virtual_foreign_keys == []
        assert config.max_detailed_tables == DEFAULT_MAX_DETAILED_TABLES
        assert config.output_formats == {OutputFormat.TEXT, OutputFormat.JSON, OutputFormat.SQL}
        assert config.allow_empty is False

    def test_invalid_include_pattern(self):
        with pytest.raises(ValueError, match="include_tables"):
            AnalysisConfig(include_tables="[oops")

    def test_invalid_exclude_columns(self):
        with pytest.raises(ValueError, match="exclude_columns"):
            AnalysisConfig(exclude_columns="(")

    def test_negative_threshold(self):
        with pytest.raises(ValueError, match="max_detailed_tables"):
            AnalysisConfig(max_detailed_tables=-1)


class TestTableSelection:
    """Tests for table inclusion/exclusion patterns."""

    def test_no_patterns_select_everything(self):
        config = AnalysisConfig()
        assert config.selects_table("anything")

    def test_include_is_full_match(self):
        config = AnalysisConfig(include_tables="app_.*")
        assert config.selects_table("app_users")
        assert not config.selects_table("legacy_app_users")

    def test_exclude_is_full_match(self):
        config = AnalysisConfig(exclude_tables="tmp|audit_.*")
        assert not config.selects_table("tmp")
        assert not config.selects_table("audit_log")
        assert config.selects_table("tmp_orders")

    def test_exclude_wins(self):
        config = AnalysisConfig(include_tables="app_.*", exclude_tables="app_tmp")
        assert config.selects_table("app_users")
        assert not config.selects_table("app_tmp")


class TestCompilePattern:
    """Tests for user regex handling."""

    def test_empty_means_none(self):
        assert compile_pattern(None, "--include") is None
        assert compile_pattern("", "--include") is None

    def test_error_names_option(self):
        with pytest.raises(ValueError, match="--exclude"):
            compile_pattern("(", "--exclude")

    def test_table_selected_without_patterns(self):
        assert table_selected("orders", None, None)
