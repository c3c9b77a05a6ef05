"""Unit tests for the shared GitHub HTTP client and metadata cache."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

import changefeed.services.github.http_client as http_client_mod
from changefeed.config import settings
from changefeed.services.github.cache import (
    cached_github_call,
    clear_all_caches,
    repo_info_cache,
)
from changefeed.services.github.http_client import close_github_client, get_github_client


class TestGitHubHttpClient:
    """Tests for the shared HTTP client singleton."""

    def setup_method(self):
        self.original = http_client_mod._client
        http_client_mod._client = None

    def teardown_method(self):
        http_client_mod._client = self.original

    def test_client_returns_async_client(self):
        client = get_github_client()

        assert isinstance(client, httpx.AsyncClient)
        assert client.timeout.connect == 5.0
        assert client.timeout.pool == 30.0
        assert client.base_url.host == "api.github.com"
        assert client.headers["User-Agent"] == "changefeed"
        assert client.headers["X-GitHub-Api-Version"] == "2022-11-28"
        assert "Authorization" not in client.headers

    def test_returns_same_instance(self):
        assert get_github_client() is get_github_client()

    def test_pool_scales_with_sweep_concurrency(self):
        with patch.object(settings, "sweep_concurrency", 3), patch.object(
            settings, "github_commit_concurrency", 5
        ):
            limits = http_client_mod._pool_limits()

        assert limits.max_keepalive_connections == 15
        assert limits.max_connections == 30

    @pytest.mark.asyncio
    async def test_close_resets_singleton(self):
        first = get_github_client()

        await close_github_client()

        assert first.is_closed
        assert http_client_mod._client is None
        second = get_github_client()
        assert second is not first
        await close_github_client()

    @pytest.mark.asyncio
    async def test_close_without_client_is_noop(self):
        await close_github_client()
        assert http_client_mod._client is None


class TestCachedGitHubCall:
    """Tests for the TTL cache decorator."""

    @pytest.mark.asyncio
    async def test_hits_skip_the_call(self):
        calls = []

        class Reader:
            @cached_github_call(repo_info_cache)
            async def fetch(self, owner: str, name: str) -> str:
                calls.append((owner, name))
                return f"{owner}/{name}"

        reader = Reader()
        assert await reader.fetch("acme", "widgets") == "acme/widgets"
        assert await reader.fetch("acme", "widgets") == "acme/widgets"
        assert await reader.fetch("acme", "gadgets") == "acme/gadgets"

        assert calls == [("acme", "widgets"), ("acme", "gadgets")]

    @pytest.mark.asyncio
    async def test_exceptions_are_not_cached(self):
        attempts = []

        class Reader:
            @cached_github_call(repo_info_cache)
            async def fetch(self, owner: str) -> str:
                attempts.append(owner)
                if len(attempts) == 1:
                    raise RuntimeError("transient")
                return owner

        reader = Reader()
        with pytest.raises(RuntimeError):
            await reader.fetch("acme")
        assert await reader.fetch("acme") == "acme"
        assert len(attempts) == 2

    def test_clear_all_caches(self):
        repo_info_cache["test_key"] = "test_value"

        clear_all_caches()

        assert len(repo_info_cache) == 0
