"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", '{"kty": "EC", "crv": "P-256", "x": "", "y": ""}')
os.environ.setdefault("RESEND_API_KEY", "re_test_key")

CLIENT_ID = "550e8400-e29b-41d4-a716-446655440000"
ADMIN_ID = "990e8400-e29b-41d4-a716-446655440000"


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()
    settings = get_settings()
    yield settings
    get_settings.cache_clear()


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client_user() -> Any:
    """Authenticated client context."""
    from src.schemas.auth import UserContext

    return UserContext(user_id=UUID(CLIENT_ID), email="ana@acme.com.br", role="authenticated")


@pytest.fixture
def admin_user() -> Any:
    """Authenticated administrator context."""
    from src.schemas.auth import UserContext

    return UserContext(
        user_id=UUID(ADMIN_ID),
        email="admin@webq.com.br",
        role="authenticated",
        app_role="admin",
    )


@pytest.fixture
def client(mock_supabase_client: MagicMock, client_user: Any) -> Generator[TestClient, None, None]:
    """Test client authenticated as the owning client.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.api.deps import get_current_user
    from src.main import app

    app.dependency_overrides[get_current_user] = lambda: client_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(mock_supabase_client: MagicMock, admin_user: Any) -> Generator[TestClient, None, None]:
    """Test client authenticated as an administrator.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.api.deps import get_admin_user, get_current_user
    from src.main import app

    app.dependency_overrides[get_current_user] = lambda: admin_user
    app.dependency_overrides[get_admin_user] = lambda: admin_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Test client without authentication overrides.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client

