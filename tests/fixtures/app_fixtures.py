"""Fixtures for FastAPI application and settings."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Ensure tests can import from parent directory
THIS_DIR = Path(__file__).parent
TESTS_DIR = THIS_DIR.parent
TESTS_DIR_PARENT = (TESTS_DIR / "..").resolve()
sys.path.insert(0, str(TESTS_DIR_PARENT))


@pytest.fixture
def mock_settings(engine_command):
    """Settings with test configuration: stub engine, no catalog database, no default pipes."""
    from datachef_api.settings import Settings

    with patch.dict(
        "os.environ",
        {
            "DATABASE_URL": "",
            "SEED_DEFAULT_PIPES": "false",
            "STORAGE_BUCKET": "data-chef-test",
            "STORAGE_ACCESS_KEY": "test-access-key",
            "STORAGE_SECRET_KEY": "test-secret-key",
            "ENGINE_COMMAND": json.dumps(engine_command("ok")),
            "LOG_LEVEL": "DEBUG",
        },
    ):
        settings = Settings()
        yield settings


@pytest.fixture
def app(mock_settings, object_storage, pipe_repository, execution_repository):
    """Create FastAPI test application wired to in-memory storage and catalog."""
    from datachef_api.main import attach_catalog_services
    from datachef_api.main import create_app

    app = create_app(settings=mock_settings)
    app.state.storage = object_storage
    attach_catalog_services(app, pipe_repository, execution_repository)
    yield app


@pytest.fixture
def bare_app(mock_settings):
    """Application exactly as create_app builds it without a catalog database."""
    from datachef_api.main import create_app

    yield create_app(settings=mock_settings)


@pytest.fixture
def client(app):
    """Create FastAPI test client."""
    with TestClient(app) as test_client:
        yield test_client
