"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import logging
from unittest.mock import AsyncMock

import pytest

from data_agent.connectors.base import RowSet
from data_agent.models.schema import ColumnSchema, ForeignKeyRef, SchemaDescription, TableSchema
from data_agent.pipeline.aliases import AliasTable

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires a PostgreSQL database)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires PostgreSQL)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Logging and Environment
# ============================================================================


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture debug logs for every test."""
    caplog.set_level(logging.DEBUG)
    yield


@pytest.fixture(autouse=True)
def mock_llm_api_key(monkeypatch):
    """
    Provide an LLM key so settings validate without a real account.

    Runs automatically for all tests and ignores any local .env file.
    """
    from data_agent.config import clear_settings_cache

    clear_settings_cache()
    test_key = "sk-or-test-key-1234567890-abcdefghij"
    monkeypatch.setenv("DATA_AGENT_ENV_SOURCE", "environment")
    monkeypatch.setenv("LLM_PROVIDER", "openrouter")
    monkeypatch.setenv("LLM_API_KEY", test_key)
    yield test_key

    clear_settings_cache()


# ============================================================================
# Schema and Aliases
# ============================================================================


@pytest.fixture
def album_schema() -> SchemaDescription:
    """Messy music schema: albm, artist, trk and genre."""
    return SchemaDescription(
        tables=(
            TableSchema(
                name="albm",
                columns=(
                    ColumnSchema(name="AlbumId", data_type="integer", nullable=False, is_primary_key=True),
                    ColumnSchema(name="ttle", data_type="text", nullable=False),
                    ColumnSchema(
                        name="a_id",
                        data_type="integer",
                        nullable=False,
                        foreign_key=ForeignKeyRef(table="artist", column="ArtistId"),
                    ),
                    ColumnSchema(name="col1", data_type="integer"),
                ),
                row_count_hint=347,
            ),
            TableSchema(
                name="artist",
                columns=(
                    ColumnSchema(name="ArtistId", data_type="integer", nullable=False, is_primary_key=True),
                    ColumnSchema(name="NM", data_type="text"),
                    ColumnSchema(name="ctry", data_type="text"),
                ),
                row_count_hint=275,
            ),
            TableSchema(
                name="genre",
                columns=(
                    ColumnSchema(name="GenreId", data_type="integer", nullable=False, is_primary_key=True),
                    ColumnSchema(name="NM", data_type="text"),
                ),
                row_count_hint=25,
            ),
            TableSchema(
                name="trk",
                columns=(
                    ColumnSchema(name="TrackId", data_type="integer", nullable=False, is_primary_key=True),
                    ColumnSchema(name="NM", data_type="text", nullable=False),
                    ColumnSchema(
                        name="AlbmID",
                        data_type="integer",
                        foreign_key=ForeignKeyRef(table="albm", column="AlbumId"),
                    ),
                    ColumnSchema(
                        name="GenreID",
                        data_type="integer",
                        foreign_key=ForeignKeyRef(table="genre", column="GenreId"),
                    ),
                    ColumnSchema(name="cost", data_type="numeric", nullable=False),
                ),
                row_count_hint=3503,
            ),
        )
    )


@pytest.fixture
def aliases() -> AliasTable:
    """Built-in alias table."""
    return AliasTable.default()


# ============================================================================
# Mock LLM Provider
# ============================================================================


class MockLLMProvider:
    """Stand-in for BaseLLMProvider; only ``complete`` and ``close`` are used."""

    def __init__(self):
        self.provider_name = "mock"
        self.model = "mock-model"
        self.complete = AsyncMock(return_value="")
        self.close = AsyncMock()

    def set_response(self, response: str):
        """Return the same completion for every call."""
        self.complete.side_effect = None
        self.complete.return_value = response

    def set_responses(self, *responses):
        """Return completions in order; exceptions in the list are raised."""
        self.complete.side_effect = list(responses)


@pytest.fixture
def mock_llm_provider() -> MockLLMProvider:
    """
    Mock LLM provider for pipeline tests.

    Usage:
        def test_stage(mock_llm_provider):
            mock_llm_provider.set_response('{"sql": "SELECT 1"}')
    """
    return MockLLMProvider()


# ============================================================================
# Mock Database Connector
# ============================================================================


def make_row_set(rows: list[dict], execution_time_ms: float = 1.5) -> RowSet:
    return RowSet(
        rows=rows,
        row_count=len(rows),
        columns=list(rows[0].keys()) if rows else [],
        execution_time_ms=execution_time_ms,
    )


@pytest.fixture
def row_set():
    """Factory building connector RowSets from a list of dicts."""
    return make_row_set


@pytest.fixture
def mock_connector():
    """
    Mock PostgreSQL connector.

    Usage:
        def test_query(mock_connector, row_set):
            mock_connector.execute.return_value = row_set([{"ttle": "Hardwired"}])
    """
    connector = AsyncMock()
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.execute = AsyncMock()
    connector.get_schema = AsyncMock(return_value=[])
    return connector
