"""
apic: an async JSON HTTP client with response caching, per-call timeouts and
retries with a refresh hook.

Modules:

- client: ApiClient facade
- executors: per-verb request operations and the generic dispatcher
- retry: retry orchestration and backoff policy
- timeout: deadline guard for in-flight calls
- cache: per-client response cache
- headers: request header construction
- config: RequestConfig and defaults
- errors: error types
- logging: structlog configuration
- metrics: Prometheus metrics
"""

from .cache import CacheEntry, CacheStore
from .client import ApiClient
from .config import DEFAULT_CONFIG, DEFAULT_REQUEST_TIMEOUT, RequestConfig
from .errors import (
    ApicError,
    HttpError,
    MaxRetriesExceededError,
    RequestTimeoutError,
    ResponseParseError,
    TransportError,
    UnsupportedMethodError,
)
from .executors import delete_data, fetch_data, post_data, put_or_patch_data, request
from .headers import build_headers
from .logging import configure_logging, get_logger
from .metrics import MetricsCollector
from .retry import BackoffPolicy, refresh_noop, with_retry
from .timeout import with_timeout

__version__ = "1.0.0"

__all__ = [
    "ApiClient",
    "ApicError",
    "BackoffPolicy",
    "CacheEntry",
    "CacheStore",
    "DEFAULT_CONFIG",
    "DEFAULT_REQUEST_TIMEOUT",
    "HttpError",
    "MaxRetriesExceededError",
    "MetricsCollector",
    "RequestConfig",
    "RequestTimeoutError",
    "ResponseParseError",
    "TransportError",
    "UnsupportedMethodError",
    "build_headers",
    "configure_logging",
    "delete_data",
    "fetch_data",
    "get_logger",
    "post_data",
    "put_or_patch_data",
    "refresh_noop",
    "request",
    "with_retry",
    "with_timeout",
]
