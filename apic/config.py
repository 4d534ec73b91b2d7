"""
Request configuration for apic.

A ``RequestConfig`` is immutable. Callers pass partial overrides which are
overlaid on a base config to produce the config used for one call.
"""

from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Deadline used by the low-level executors when called directly. The client
# facade passes ``RequestConfig.timeout`` instead.
DEFAULT_REQUEST_TIMEOUT = 5.0


class RequestConfig(BaseModel):
    """Cache, retry and timeout settings for a request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enable_cache: bool = True
    cache_expiration_time: float = Field(default=300.0, ge=0)
    enable_retry: bool = True
    retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0)
    timeout: float = Field(default=30.0, ge=0)

    # Backoff between attempts; the defaults wait exactly ``retry_delay``
    backoff_strategy: Literal["fixed", "linear", "exponential"] = "fixed"
    max_retry_delay: float = Field(default=60.0, ge=0)
    exponential_base: float = Field(default=2.0, ge=1)
    jitter: bool = False

    @classmethod
    def merge(
        cls,
        base: Optional["RequestConfig"] = None,
        overrides: Union["RequestConfig", Mapping[str, Any], None] = None,
    ) -> "RequestConfig":
        """Overlay ``overrides`` onto ``base`` (or the defaults)."""
        if base is None:
            base = DEFAULT_CONFIG
        if overrides is None:
            return base
        if isinstance(overrides, RequestConfig):
            values = overrides.model_dump(exclude_unset=True)
        else:
            values = dict(overrides)
        # Re-validate the merged values; model_copy(update=...) skips validation
        return cls.model_validate({**base.model_dump(), **values})


DEFAULT_CONFIG = RequestConfig()


ConfigLike = Union[RequestConfig, Mapping[str, Any], None]


def resolve_config(config: ConfigLike = None) -> RequestConfig:
    """Produce the effective config for one call."""
    if isinstance(config, RequestConfig):
        return config
    return RequestConfig.merge(DEFAULT_CONFIG, config)
