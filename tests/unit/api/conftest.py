"""Fixtures for API route tests."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from data_agent.api.main import app, app_state
from data_agent.conversations.store import ConversationStore


@pytest.fixture
def mock_pipeline(album_schema):
    """Initialized pipeline double with a loaded schema and an in-memory store."""
    pipeline = MagicMock()
    pipeline.run = AsyncMock()
    pipeline.connector.execute = AsyncMock()
    pipeline.catalog.snapshot = album_schema
    pipeline.catalog.get = AsyncMock(return_value=album_schema)
    pipeline.catalog.refresh = AsyncMock(return_value=album_schema)
    pipeline.conversations = ConversationStore()
    return pipeline


@pytest.fixture
def client(mock_pipeline):
    """Test client with the pipeline installed in app state (lifespan not run)."""
    with patch.dict(app_state, {"pipeline": mock_pipeline}):
        yield TestClient(app)


@pytest.fixture
def uninitialized_client():
    with patch.dict(app_state, {"pipeline": None}):
        yield TestClient(app)
