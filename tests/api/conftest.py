"""API test fixtures — in-process ASGI client over a mocked session.

Route handlers get an AsyncMock session through the get_db override;
tests patch the coordinator and domain ops at the router module.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient


@pytest.fixture
def db_session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
async def api_client(db_session: AsyncMock):
    """HTTP client against the app with the database dependency overridden."""
    from changefeed.core.database import get_db
    from changefeed.main import app

    async def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", follow_redirects=True
    ) as client:
        yield client

    app.dependency_overrides.clear()
