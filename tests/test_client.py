"""
Unit tests for the ApiClient facade.
"""

import json

import httpx
import pytest
from pydantic import ValidationError
from unittest.mock import AsyncMock, patch

from apic import ApiClient, RequestConfig
from apic.cache import CacheEntry
from apic.errors import HttpError, MaxRetriesExceededError, UnsupportedMethodError
from apic.logging import clear_context, get_request_id, set_request_id

URL = "https://api.test/users"


@pytest.fixture
def api(http_client, clock):
    """Client wired to the fake endpoint."""
    return ApiClient(base_client=http_client, clock=clock)


class TestApiClientConfig:
    """Test cases for client configuration."""

    def test_defaults(self):
        client = ApiClient(base_client=httpx.AsyncClient())
        config = client.get_config()

        assert config.enable_cache is True
        assert config.cache_expiration_time == 300.0
        assert config.enable_retry is True
        assert config.retries == 3
        assert config.retry_delay == 1.0
        assert config.timeout == 30.0

    def test_partial_config_overlaid_on_defaults(self):
        client = ApiClient({"retries": 1, "timeout": 2.5}, base_client=httpx.AsyncClient())

        assert client.config.retries == 1
        assert client.config.timeout == 2.5
        assert client.config.retry_delay == 1.0

    def test_set_config_merges(self, api):
        api.set_config({"retries": 0})
        api.set_config(enable_cache=False)

        assert api.config.retries == 0
        assert api.config.enable_cache is False
        assert api.config.timeout == 30.0

    def test_set_config_with_model_only_applies_set_fields(self, api):
        api.set_config(retries=5)
        api.set_config(RequestConfig(timeout=1.0))

        assert api.config.retries == 5
        assert api.config.timeout == 1.0

    def test_invalid_config_rejected(self, api):
        with pytest.raises(ValidationError):
            api.set_config(retries=-1)
        assert api.config.retries == 3

    def test_unknown_config_key_rejected(self):
        with pytest.raises(ValidationError):
            ApiClient({"retry": 2}, base_client=httpx.AsyncClient())


class TestApiClientRequests:
    """Test cases for request delegation."""

    @pytest.mark.asyncio
    async def test_get_uses_facade_timeout(self, api):
        """Test the facade passes config.timeout as the per-call deadline."""
        with patch("apic.client.executors.fetch_data", new_callable=AsyncMock) as mock_fetch:
            mock_fetch.return_value = {"id": 1}

            result = await api.get(URL, "tok")

        assert result == {"id": 1}
        args, kwargs = mock_fetch.call_args
        assert args == (URL, "tok", api.config, 30.0)
        assert kwargs["cache"] is api.cache

    @pytest.mark.asyncio
    async def test_get_cached_per_client(self, api, endpoint):
        await api.get(URL)
        await api.get(URL)

        assert endpoint.calls == 1
        assert isinstance(api.get_cache()[URL], CacheEntry)

    @pytest.mark.asyncio
    async def test_clients_do_not_share_cache(self, http_client, endpoint):
        first = ApiClient(base_client=http_client)
        second = ApiClient(base_client=http_client)

        await first.get(URL)
        await second.get(URL)

        assert endpoint.calls == 2
        assert URL in first.get_cache()
        assert URL in second.get_cache()

    @pytest.mark.asyncio
    async def test_invalidate_single_url(self, api, endpoint):
        await api.get(URL)
        await api.get("https://api.test/teams")

        api.invalidate_cache(URL)
        await api.get(URL)

        assert endpoint.calls == 3
        assert set(api.get_cache()) == {URL, "https://api.test/teams"}

    @pytest.mark.asyncio
    async def test_invalidate_all(self, api):
        await api.get(URL)
        await api.get("https://api.test/teams")

        api.invalidate_cache()

        assert api.get_cache() == {}
        assert api.metrics.sample("cache_events_total", event="invalidate") == 1.0

    @pytest.mark.asyncio
    async def test_invalidate_uncached_url_not_counted(self, api):
        await api.get(URL)

        api.invalidate_cache("https://api.test/never-fetched")
        api.invalidate_cache(URL)
        api.invalidate_cache(URL)

        assert api.metrics.sample("cache_events_total", event="invalidate") == 1.0

    @pytest.mark.asyncio
    async def test_custom_headers_sent_with_every_request(self, api, endpoint):
        api.set_headers({"X-Tenant": "tenant-1", "Authorization": "Basic ignored"})

        await api.post(URL, {"name": "ann"}, "tok")
        await api.delete(URL)

        post, delete = endpoint.requests
        assert post.headers["X-Tenant"] == "tenant-1"
        assert post.headers["Authorization"] == "Bearer tok"
        assert delete.headers["X-Tenant"] == "tenant-1"
        assert delete.headers["Authorization"] == "Basic ignored"
        assert api.get_headers() == {"X-Tenant": "tenant-1", "Authorization": "Basic ignored"}

    @pytest.mark.asyncio
    async def test_put_and_patch(self, api, endpoint):
        await api.put(URL, {"a": 1})
        await api.patch(URL, {"b": 2}, content_type="application/merge-patch+json")

        put, patch_request = endpoint.requests
        assert put.method == "PUT"
        assert json.loads(put.content) == {"a": 1}
        assert patch_request.method == "PATCH"
        assert patch_request.headers["Content-Type"] == "application/merge-patch+json"

    @pytest.mark.asyncio
    async def test_request_dispatch(self, api, endpoint):
        result = await api.request("post", URL, {"x": 1})

        assert result == {"ok": True}
        assert endpoint.requests[0].method == "POST"

    @pytest.mark.asyncio
    async def test_request_unsupported_method(self, api, endpoint):
        with pytest.raises(UnsupportedMethodError):
            await api.request("OPTIONS", URL)
        assert endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_injected_refresh_hook(self, http_client, endpoint):
        endpoint.default = (401, {"error": "expired"})
        refresh = AsyncMock()
        client = ApiClient({"retries": 1}, base_client=http_client, refresh=refresh)

        with patch("apic.retry.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(MaxRetriesExceededError):
                await client.get(URL)

        assert endpoint.calls == 2
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_each_call_gets_its_own_request_id(self, api, endpoint):
        """Test every facade call binds a fresh id and restores the caller's."""
        clear_context()

        await api.get(URL)
        await api.post(URL, {"name": "ann"})

        first, second = endpoint.request_ids
        assert first is not None
        assert second is not None
        assert first != second
        assert get_request_id() is None

    @pytest.mark.asyncio
    async def test_caller_request_id_restored(self, api, endpoint):
        set_request_id("caller-1")
        try:
            await api.delete(URL)

            assert endpoint.request_ids[0] not in (None, "caller-1")
            assert get_request_id() == "caller-1"
        finally:
            clear_context()

    @pytest.mark.asyncio
    async def test_request_id_restored_after_failure(self, api, endpoint):
        clear_context()
        endpoint.respond(400, {"error": "bad"})
        api.set_config(enable_retry=False)

        with pytest.raises(HttpError):
            await api.get(URL)

        assert get_request_id() is None

    @pytest.mark.asyncio
    async def test_follows_redirects(self):
        """Test the client it creates follows redirects before checking the status."""
        async def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://api.test/new"})
            return httpx.Response(200, json={"moved": True})

        async with ApiClient({"enable_retry": False}, transport=httpx.MockTransport(handler)) as client:
            result = await client.get("https://api.test/old")

        assert result == {"moved": True}
        assert client.get_cache()["https://api.test/old"].value == {"moved": True}


class TestApiClientLifecycle:
    """Test cases for closing the client."""

    @pytest.mark.asyncio
    async def test_owned_client_closed(self):
        async with ApiClient() as client:
            inner = client._client
            assert inner.is_closed is False

        assert inner.is_closed is True

    @pytest.mark.asyncio
    async def test_external_client_left_open(self, http_client):
        async with ApiClient(base_client=http_client):
            pass

        assert http_client.is_closed is False
