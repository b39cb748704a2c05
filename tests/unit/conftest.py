"""Pytest fixtures for unit tests."""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch

from charlib.api.dependencies import get_generation_service
from charlib.api.main import app
from charlib.api.services.smart_generation import SmartGenerationService
from charlib.config import OrchestratorConfig, RetryPolicy
from charlib.core.asset_store import InMemoryAssetStore
from charlib.core.modules.retry_orchestrator import RetryOrchestrator
from tests.unit.fakes import FakeAnalysisClient, FakeGenerationClient


@pytest.fixture
def fast_config():
    """Orchestrator config with no retry backoff."""
    return OrchestratorConfig(retry_policy=RetryPolicy(max_retries=2, initial_backoff_s=0, max_backoff_s=0))


@pytest.fixture
def store():
    return InMemoryAssetStore()


@pytest.fixture
def make_orchestrator(fast_config, store):
    """Factory for an orchestrator wired to fakes."""

    def _make(generation=None, analysis=None, asset_store=None, config=None):
        return RetryOrchestrator(
            generation or FakeGenerationClient(),
            analysis or FakeAnalysisClient(),
            asset_store if asset_store is not None else store,
            config=config or fast_config,
        )

    return _make


@pytest.fixture
def mock_service():
    """Create a mock service for API tests."""
    return AsyncMock(spec=SmartGenerationService)


@pytest.fixture
def client_with_mocks(mock_service):
    """TestClient with a mocked generation service."""
    app.dependency_overrides[get_generation_service] = lambda: mock_service

    # Keep startup from connecting to services, Postgres or Redis
    with patch("charlib.api.main.build_generation_service", new_callable=AsyncMock, return_value=None), \
            patch("charlib.api.main.get_redis_settings", return_value=None):
        with TestClient(app) as client:
            yield client, mock_service

    app.dependency_overrides.clear()
