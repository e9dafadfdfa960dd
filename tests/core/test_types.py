"""Tests for ``duckspine.core.adapters.types`` — connector configuration."""

from __future__ import annotations

import pytest

from duckspine.core.adapters.types import (
    MEMORY_DATABASE,
    ColumnInfo,
    ConnectorConfig,
    StatementState,
    TransactionState,
)
from duckspine.core.errors import ConfigError


class TestConnectorConfigDefaults:
    def test_in_memory_by_default(self):
        config = ConnectorConfig()
        assert config.in_memory is True
        assert config.target == MEMORY_DATABASE

    def test_memory_marker(self):
        assert ConnectorConfig(database=":memory:").in_memory is True

    def test_file_target(self):
        config = ConnectorConfig(database="/tmp/app.duckdb")
        assert config.in_memory is False
        assert config.target == "/tmp/app.duckdb"

    def test_options_are_read_only(self):
        config = ConnectorConfig(options={"threads": "2"})
        with pytest.raises(TypeError):
            config.options["threads"] = "4"  # type: ignore[index]

    def test_frozen(self):
        config = ConnectorConfig()
        with pytest.raises(AttributeError):
            config.database = "other"  # type: ignore[misc]


class TestConnectorConfigValidation:
    def test_option_value_must_be_string(self):
        with pytest.raises(ConfigError, match="must be a string"):
            ConnectorConfig(options={"threads": 4})  # type: ignore[dict-item]

    def test_blank_option_name(self):
        with pytest.raises(ConfigError):
            ConnectorConfig(options={" ": "x"})

    def test_extension_name_validated(self):
        with pytest.raises(ConfigError, match="Invalid extension name"):
            ConnectorConfig(extensions=("https; DROP TABLE users",))

    def test_blank_init_statement(self):
        with pytest.raises(ConfigError):
            ConnectorConfig(init_statements=("  ",))

    @pytest.mark.parametrize("size", [0, -1, True, "10"])
    def test_fetch_size_positive_int(self, size):
        with pytest.raises(ConfigError):
            ConnectorConfig(fetch_size=size)


class TestConnectorConfigEngineOptions:
    def test_read_only_sets_access_mode(self):
        assert ConnectorConfig(read_only=True).engine_options() == {"access_mode": "read_only"}

    def test_explicit_access_mode_wins(self):
        config = ConnectorConfig(options={"access_mode": "automatic"}, read_only=True)
        assert config.engine_options() == {"access_mode": "automatic"}


class TestConnectorConfigFromDsn:
    def test_empty(self):
        config = ConnectorConfig.from_dsn("")
        assert config.in_memory is True
        assert dict(config.options) == {}

    def test_none(self):
        assert ConnectorConfig.from_dsn(None).in_memory is True

    def test_path_and_options(self):
        config = ConnectorConfig.from_dsn("data/app.duckdb?threads=4&access_mode=read_only")
        assert config.database == "data/app.duckdb"
        assert dict(config.options) == {"threads": "4", "access_mode": "read_only"}

    def test_options_only(self):
        config = ConnectorConfig.from_dsn("?threads=1")
        assert config.in_memory is True
        assert config.options["threads"] == "1"

    def test_kwargs_pass_through(self):
        config = ConnectorConfig.from_dsn("", fetch_size=8, init_statements=("PRAGMA enable_progress_bar",))
        assert config.fetch_size == 8
        assert config.init_statements == ("PRAGMA enable_progress_bar",)

    def test_options_kwarg_merged(self):
        config = ConnectorConfig.from_dsn("?threads=1", options={"memory_limit": "1GB"})
        assert dict(config.options) == {"threads": "1", "memory_limit": "1GB"}

    def test_duplicate_option_rejected(self):
        with pytest.raises(ConfigError, match="Duplicate"):
            ConnectorConfig.from_dsn("?threads=1&threads=2")

    def test_malformed_query_rejected(self):
        with pytest.raises(ConfigError, match="Malformed"):
            ConnectorConfig.from_dsn("?threads")

    def test_round_trip_connection_string(self):
        config = ConnectorConfig.from_dsn("app.duckdb?threads=4")
        assert config.to_connection_string() == "app.duckdb?threads=4"


class TestStateEnums:
    def test_transaction_states(self):
        assert [s.value for s in TransactionState] == ["none", "active", "committing", "rolling_back"]

    def test_statement_states(self):
        assert StatementState.EXHAUSTED == "exhausted"


class TestColumnInfo:
    def test_description_tuple(self):
        assert ColumnInfo("age", "INTEGER").to_description() == ("age", "INTEGER", None, None, None, None, None)
