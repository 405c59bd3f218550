"""
Pytest configuration and fixtures for Markstyle backend tests.
"""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from backend.config import settings
from backend.main import app
from backend.services.sessions import session_manager
from engine.core.store import MemoryProjectStore


@pytest.fixture(autouse=True)
def memory_store(monkeypatch):
    """Every test starts with an empty in-memory store and no live sessions."""
    store = MemoryProjectStore()
    monkeypatch.setattr(settings, "DATABASE_URL", "")
    monkeypatch.setattr(session_manager, "store", store)
    monkeypatch.setattr(session_manager, "sessions", {})
    return store


@pytest_asyncio.fixture
async def async_client():
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
