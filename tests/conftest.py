"""Shared test fixtures."""

import os

# Settings are read at import time; these must exist before src.* is imported
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-000")
os.environ.setdefault("GOCARDLESS_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("GOCARDLESS_ACCESS_TOKEN", "sandbox_test_token")

from collections.abc import Callable  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402

from config.settings import settings  # noqa: E402
from src.main import app  # noqa: E402


def make_token(sub: str = "member-1", admin: bool = False, role: str = "authenticated") -> str:
    """Supabase-shaped access token signed with the test secret."""
    claims: dict = {"sub": sub, "role": role, "aud": "authenticated"}
    if admin:
        claims["app_metadata"] = {"role": "admin"}
    return jwt.encode(claims, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def token_factory() -> Callable[..., str]:
    return make_token


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
