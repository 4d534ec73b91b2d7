"""
Verb executors: one network operation per HTTP method, composed with the
timeout guard, the response cache (GET only) and the retry orchestrator.
"""

import json
import time
from typing import Any, Mapping, Optional, TYPE_CHECKING

import httpx

from .cache import CacheStore
from .config import DEFAULT_REQUEST_TIMEOUT, ConfigLike, RequestConfig, resolve_config
from .errors import HttpError, RequestTimeoutError, ResponseParseError, TransportError, UnsupportedMethodError
from .headers import build_headers
from .logging import get_logger
from .retry import DEFAULT_REFRESH_LIMIT, BackoffPolicy, Operation, RefreshHook, with_retry
from .timeout import AbandonHook, with_timeout

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .metrics import MetricsCollector

JSON_CONTENT_TYPE = "application/json"
SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

logger = get_logger("apic.executors")


def _parse_json(response: httpx.Response, url: str) -> Any:
    """Decode a successful response; an empty body yields None."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as e:
        raise ResponseParseError(
            details={"url": url, "status": response.status_code, "error": str(e)}
        ) from e


async def _send(client: httpx.AsyncClient,
                method: str,
                url: str,
                headers: Mapping[str, str],
                timeout: Optional[float],
                content: Optional[str] = None,
                metrics: Optional["MetricsCollector"] = None,
                on_abandon: Optional[AbandonHook] = None) -> Any:
    """Send one request under the timeout guard and return the parsed body."""
    logger.debug("Sending request", method=method, url=url, timeout=timeout)

    status = "error"
    start_time = time.perf_counter()
    try:
        response = await with_timeout(
            client.request(method, url, headers=dict(headers), content=content),
            timeout,
            on_abandon=on_abandon
        )
        status = str(response.status_code)
    except RequestTimeoutError:
        status = "timeout"
        if metrics is not None:
            metrics.record_timeout(method)
        raise
    except httpx.TransportError as e:
        raise TransportError(
            f"{method} {url} failed: {e}",
            details={"method": method, "url": url, "error": str(e)}
        ) from e
    finally:
        if metrics is not None:
            metrics.record_request(method, status, time.perf_counter() - start_time)

    if not response.is_success:
        logger.warning("Request failed", method=method, url=url, status=response.status_code)
        raise HttpError(response.status_code, details={"method": method, "url": url})

    return _parse_json(response, url)


def _get_operation(url: str,
                   auth_token: Optional[str],
                   config: RequestConfig,
                   timeout: Optional[float],
                   *,
                   client: httpx.AsyncClient,
                   cache: CacheStore,
                   headers: Optional[Mapping[str, str]] = None,
                   metrics: Optional["MetricsCollector"] = None,
                   on_abandon: Optional[AbandonHook] = None) -> Operation:
    async def operation() -> Any:
        if config.enable_cache:
            entry = cache.get(url)
            if entry is not None and cache.is_fresh(entry, config.cache_expiration_time):
                logger.debug("Returning cached data", url=url)
                if metrics is not None:
                    metrics.record_cache_event("hit")
                return entry.value
            if metrics is not None:
                metrics.record_cache_event("miss")

        data = await _send(
            client,
            "GET",
            url,
            build_headers(JSON_CONTENT_TYPE, auth_token, headers),
            timeout,
            metrics=metrics,
            on_abandon=on_abandon
        )

        if config.enable_cache:
            cache.set(url, data)
            if metrics is not None:
                metrics.record_cache_event("store")

        return data

    return operation


def _send_operation(method: str,
                    url: str,
                    body: Any,
                    auth_token: Optional[str],
                    content_type: str,
                    timeout: Optional[float],
                    *,
                    client: httpx.AsyncClient,
                    headers: Optional[Mapping[str, str]] = None,
                    metrics: Optional["MetricsCollector"] = None,
                    on_abandon: Optional[AbandonHook] = None) -> Operation:
    # Serialized once; every attempt sends the same payload
    content = None if body is None else json.dumps(body)

    async def operation() -> Any:
        return await _send(
            client,
            method,
            url,
            build_headers(content_type, auth_token, headers),
            timeout,
            content=content,
            metrics=metrics,
            on_abandon=on_abandon
        )

    return operation


async def _run(operation: Operation,
               config: RequestConfig,
               refresh_limit: int = DEFAULT_REFRESH_LIMIT,
               refresh: Optional[RefreshHook] = None,
               metrics: Optional["MetricsCollector"] = None) -> Any:
    """Retry ``operation`` when enabled, else run it exactly once."""
    if not config.enable_retry:
        return await operation()

    return await with_retry(
        operation,
        config.retries,
        config.retry_delay,
        refresh_limit,
        refresh=refresh,
        policy=BackoffPolicy.from_config(config),
        metrics=metrics
    )


async def fetch_data(url: str,
                     auth_token: Optional[str] = None,
                     config: ConfigLike = None,
                     timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
                     *,
                     client: httpx.AsyncClient,
                     cache: CacheStore,
                     headers: Optional[Mapping[str, str]] = None,
                     refresh: Optional[RefreshHook] = None,
                     metrics: Optional["MetricsCollector"] = None,
                     on_abandon: Optional[AbandonHook] = None) -> Any:
    """GET ``url`` and return the parsed JSON, served from cache while fresh."""
    final_config = resolve_config(config)
    operation = _get_operation(
        url, auth_token, final_config, timeout,
        client=client, cache=cache, headers=headers, metrics=metrics, on_abandon=on_abandon
    )
    return await _run(operation, final_config, refresh=refresh, metrics=metrics)


async def post_data(url: str,
                    body: Any,
                    auth_token: Optional[str] = None,
                    content_type: str = JSON_CONTENT_TYPE,
                    config: ConfigLike = None,
                    timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
                    *,
                    client: httpx.AsyncClient,
                    headers: Optional[Mapping[str, str]] = None,
                    refresh: Optional[RefreshHook] = None,
                    metrics: Optional["MetricsCollector"] = None,
                    on_abandon: Optional[AbandonHook] = None) -> Any:
    """POST ``body`` as JSON and return the parsed response."""
    final_config = resolve_config(config)
    operation = _send_operation(
        "POST", url, body, auth_token, content_type, timeout,
        client=client, headers=headers, metrics=metrics, on_abandon=on_abandon
    )
    return await _run(operation, final_config, refresh=refresh, metrics=metrics)


async def put_or_patch_data(method: str,
                            url: str,
                            body: Any,
                            auth_token: Optional[str] = None,
                            content_type: str = JSON_CONTENT_TYPE,
                            config: ConfigLike = None,
                            timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
                            *,
                            client: httpx.AsyncClient,
                            headers: Optional[Mapping[str, str]] = None,
                            refresh: Optional[RefreshHook] = None,
                            metrics: Optional["MetricsCollector"] = None,
                            on_abandon: Optional[AbandonHook] = None) -> Any:
    """PUT or PATCH ``body`` as JSON and return the parsed response."""
    method = method.upper()
    if method not in ("PUT", "PATCH"):
        raise UnsupportedMethodError(method)

    final_config = resolve_config(config)
    operation = _send_operation(
        method, url, body, auth_token, content_type, timeout,
        client=client, headers=headers, metrics=metrics, on_abandon=on_abandon
    )
    return await _run(operation, final_config, refresh=refresh, metrics=metrics)


async def delete_data(url: str,
                      auth_token: Optional[str] = None,
                      config: ConfigLike = None,
                      timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
                      *,
                      client: httpx.AsyncClient,
                      headers: Optional[Mapping[str, str]] = None,
                      refresh: Optional[RefreshHook] = None,
                      metrics: Optional["MetricsCollector"] = None,
                      on_abandon: Optional[AbandonHook] = None) -> Any:
    """DELETE ``url`` and return the parsed response."""
    final_config = resolve_config(config)
    operation = _send_operation(
        "DELETE", url, None, auth_token, JSON_CONTENT_TYPE, timeout,
        client=client, headers=headers, metrics=metrics, on_abandon=on_abandon
    )
    return await _run(operation, final_config, refresh=refresh, metrics=metrics)


async def request(method: str,
                  url: str,
                  body: Any = None,
                  auth_token: Optional[str] = None,
                  content_type: str = JSON_CONTENT_TYPE,
                  config: ConfigLike = None,
                  timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
                  *,
                  client: httpx.AsyncClient,
                  cache: CacheStore,
                  headers: Optional[Mapping[str, str]] = None,
                  refresh: Optional[RefreshHook] = None,
                  metrics: Optional["MetricsCollector"] = None,
                  on_abandon: Optional[AbandonHook] = None) -> Any:
    """Dispatch on ``method``; refreshes are limited to ``config.retries``.

    An unrecognised method fails before any attempt is made.
    """
    method = method.upper()
    if method not in SUPPORTED_METHODS:
        raise UnsupportedMethodError(method)

    final_config = resolve_config(config)
    if method == "GET":
        operation = _get_operation(
            url, auth_token, final_config, timeout,
            client=client, cache=cache, headers=headers, metrics=metrics, on_abandon=on_abandon
        )
    elif method == "DELETE":
        operation = _send_operation(
            method, url, None, auth_token, JSON_CONTENT_TYPE, timeout,
            client=client, headers=headers, metrics=metrics, on_abandon=on_abandon
        )
    else:
        operation = _send_operation(
            method, url, body, auth_token, content_type, timeout,
            client=client, headers=headers, metrics=metrics, on_abandon=on_abandon
        )

    return await _run(
        operation,
        final_config,
        refresh_limit=final_config.retries,
        refresh=refresh,
        metrics=metrics
    )
