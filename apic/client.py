"""
ApiClient: the public facade over the verb executors.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

import httpx

from . import executors
from .cache import CacheEntry, CacheStore
from .config import ConfigLike, RequestConfig, resolve_config
from .executors import JSON_CONTENT_TYPE
from .logging import get_logger, request_context
from .metrics import MetricsCollector
from .retry import RefreshHook
from .timeout import AbandonHook


class ApiClient:
    """JSON HTTP client with response caching, timeouts and retries.

    One client owns one cache store; it is shared by every call made through
    the client and never by other clients.
    """

    def __init__(self,
                 config: ConfigLike = None,
                 *,
                 base_client: Optional[httpx.AsyncClient] = None,
                 refresh: Optional[RefreshHook] = None,
                 headers: Optional[Mapping[str, str]] = None,
                 metrics: Optional[MetricsCollector] = None,
                 clock: Optional[Callable[[], float]] = None,
                 on_abandon: Optional[AbandonHook] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config: RequestConfig = resolve_config(config)
        self.cache = CacheStore(clock=clock)
        self.metrics = metrics if metrics is not None else MetricsCollector()
        self.refresh = refresh
        self.on_abandon = on_abandon
        self._headers: Dict[str, str] = dict(headers or {})
        self._owns_client = base_client is None
        # Deadlines are enforced by the timeout guard, not by httpx. Redirects
        # are followed before the status check.
        if base_client is None:
            base_client = httpx.AsyncClient(timeout=None, follow_redirects=True, transport=transport)
        self._client = base_client
        self.logger = get_logger("apic.client")

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    def _context(self) -> Dict[str, Any]:
        return {
            "client": self._client,
            "headers": self._headers,
            "refresh": self.refresh,
            "metrics": self.metrics,
            "on_abandon": self.on_abandon,
        }

    @contextmanager
    def _bound_request(self, method: str, url: str) -> Iterator[str]:
        """Give one facade call its own request id."""
        with request_context() as request_id:
            self.logger.info("Request", method=method, url=url)
            yield request_id

    async def get(self, url: str, auth_token: Optional[str] = None) -> Any:
        """GET request."""
        with self._bound_request("GET", url):
            return await executors.fetch_data(
                url, auth_token, self.config, self.config.timeout,
                cache=self.cache, **self._context()
            )

    async def post(self,
                   url: str,
                   body: Any,
                   auth_token: Optional[str] = None,
                   content_type: str = JSON_CONTENT_TYPE) -> Any:
        """POST request."""
        with self._bound_request("POST", url):
            return await executors.post_data(
                url, body, auth_token, content_type, self.config, self.config.timeout,
                **self._context()
            )

    async def put(self,
                  url: str,
                  body: Any,
                  auth_token: Optional[str] = None,
                  content_type: str = JSON_CONTENT_TYPE) -> Any:
        """PUT request."""
        with self._bound_request("PUT", url):
            return await executors.put_or_patch_data(
                "PUT", url, body, auth_token, content_type, self.config, self.config.timeout,
                **self._context()
            )

    async def patch(self,
                    url: str,
                    body: Any,
                    auth_token: Optional[str] = None,
                    content_type: str = JSON_CONTENT_TYPE) -> Any:
        """PATCH request."""
        with self._bound_request("PATCH", url):
            return await executors.put_or_patch_data(
                "PATCH", url, body, auth_token, content_type, self.config, self.config.timeout,
                **self._context()
            )

    async def delete(self, url: str, auth_token: Optional[str] = None) -> Any:
        """DELETE request."""
        with self._bound_request("DELETE", url):
            return await executors.delete_data(
                url, auth_token, self.config, self.config.timeout,
                **self._context()
            )

    async def request(self,
                      method: str,
                      url: str,
                      body: Any = None,
                      auth_token: Optional[str] = None,
                      content_type: str = JSON_CONTENT_TYPE) -> Any:
        """Request with the method given as data."""
        with self._bound_request(method.upper(), url):
            return await executors.request(
                method, url, body, auth_token, content_type, self.config, self.config.timeout,
                cache=self.cache, **self._context()
            )

    def set_config(self, config: ConfigLike = None, **overrides: Any) -> RequestConfig:
        """Overlay ``config`` and keyword overrides onto the current config."""
        merged = RequestConfig.merge(self.config, config)
        if overrides:
            merged = RequestConfig.merge(merged, overrides)
        self.config = merged
        self.logger.info("Configuration updated", config=merged.model_dump())
        return merged

    def get_config(self) -> RequestConfig:
        return self.config

    def set_headers(self, headers: Mapping[str, str]) -> None:
        """Register custom headers sent with every request."""
        self._headers = dict(headers)

    def get_headers(self) -> Dict[str, str]:
        return dict(self._headers)

    def get_cache(self) -> Dict[str, CacheEntry]:
        """The raw cache mapping."""
        return self.cache.entries

    def invalidate_cache(self, url: Optional[str] = None) -> None:
        """Drop the cached response for ``url``, or all responses."""
        if self.cache.invalidate(url):
            self.metrics.record_cache_event("invalidate")
