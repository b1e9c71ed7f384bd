"""Fixtures for FastAPI application and settings."""

import sys
from pathlib import Path
from typing import Any
from typing import Dict
from typing import Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from starlette.testclient import TestClient as StarletteTestClient

# Ensure tests can import from parent directory
THIS_DIR = Path(__file__).parent
TESTS_DIR = THIS_DIR.parent
TESTS_DIR_PARENT = (TESTS_DIR / "..").resolve()
sys.path.insert(0, str(TESTS_DIR_PARENT))

TEST_JWT_SECRET = "test-jwt-secret-key-with-enough-length"


class AuthenticatedTestClient(StarletteTestClient):
    """Test client that automatically sends a bearer token."""

    def __init__(self, *args: Any, default_headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> None:
        """Initialize with default headers."""
        super().__init__(*args, **kwargs)
        self._default_headers = default_headers or {}

    def _merge_headers(self, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Merge default headers with provided headers."""
        merged = dict(self._default_headers)
        if headers:
            merged.update(headers)
        return merged

    def get(self, url: str, **kwargs: Any) -> Any:
        kwargs["headers"] = self._merge_headers(kwargs.get("headers"))
        return super().get(url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> Any:
        kwargs["headers"] = self._merge_headers(kwargs.get("headers"))
        return super().post(url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> Any:
        kwargs["headers"] = self._merge_headers(kwargs.get("headers"))
        return super().put(url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> Any:
        kwargs["headers"] = self._merge_headers(kwargs.get("headers"))
        return super().delete(url, **kwargs)


@pytest.fixture
def mock_settings():
    """Settings without a database; the in-memory store is installed by the ``app`` fixture."""
    from projectflow_api.settings import Settings

    with patch.dict(
        "os.environ",
        {
            "JWT_SECRET_KEY": TEST_JWT_SECRET,
            "ENABLE_REAPER": "false",
            "LOG_LEVEL": "WARNING",
            "DATABASE_CONNECTION_STRING": "",
        },
    ):
        settings = Settings()
        yield settings


@pytest.fixture
def app(mock_settings, store, email_sender, image_store):
    """FastAPI application wired to the memory store and the recording services."""
    from projectflow_api.main import create_app

    app = create_app(settings=mock_settings)
    app.state.store = store
    app.state.email_sender = email_sender
    app.state.image_store = image_store
    yield app


@pytest.fixture
def client(app, workspace, owner):
    """Test client authenticated as the tenant owner."""
    with AuthenticatedTestClient(app, default_headers=workspace.headers(owner)) as test_client:
        yield test_client


@pytest.fixture
def client_for(app, workspace):
    """Factory for a test client authenticated as any seeded account."""

    def make(account) -> AuthenticatedTestClient:
        return AuthenticatedTestClient(app, default_headers=workspace.headers(account))

    return make


@pytest.fixture
def unauthenticated_client(app):
    """Test client without a bearer token (login, registration, OTP and auth failures)."""
    with TestClient(app) as test_client:
        yield test_client
