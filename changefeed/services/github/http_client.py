"""
Shared HTTP client for GitHub API operations.

One pooled AsyncClient per process, bound to the REST API base URL.
Ingestion issues one request per merged PR for its commit list, so the
pool is sized for that fan-out across parallel sweep workers.
"""

import logging

import httpx

from changefeed.config import settings

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

# Module-level singleton client
_client: httpx.AsyncClient | None = None


def _pool_limits() -> httpx.Limits:
    keepalive = settings.github_commit_concurrency * max(settings.sweep_concurrency, 1)
    return httpx.Limits(max_connections=keepalive * 2, max_keepalive_connections=keepalive)


def get_github_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for GitHub API calls.

    The client carries the API-wide headers. Authorization is passed
    per request so a token rotation never needs a new client.
    """
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            base_url=GITHUB_API_URL,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": "changefeed",
            },
            timeout=httpx.Timeout(settings.github_timeout_seconds, connect=5.0),
            limits=_pool_limits(),
            http2=True,
        )
        logger.debug("[github] HTTP client created")
    return _client


async def close_github_client() -> None:
    """Close the shared client on app shutdown."""
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
        _client = None
        logger.debug("[github] HTTP client closed")
