"""Root conftest — test infrastructure for all changefeed tests.

Provides:
- Marker registration
- Autouse reset of process-wide state (GitHub metadata cache)

Unit tests are pure mocks: no database, GitHub or Claude access.
"""

from __future__ import annotations

import pytest

from changefeed.services.github import clear_github_caches


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: tests that need a real database")


@pytest.fixture(autouse=True)
def _reset_github_caches():
    """Repository metadata is cached across instances; start every test cold."""
    clear_github_caches()
    yield
    clear_github_caches()
