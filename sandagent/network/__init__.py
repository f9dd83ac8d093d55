"""Outbound HTTP capability for sandagent."""

from .client import (
    HttpClient,
    HttpResponse,
    HttpRequestError,
    RateLimitExceededError,
    create_http_client,
)

__all__ = [
    "HttpClient",
    "HttpResponse",
    "HttpRequestError",
    "RateLimitExceededError",
    "create_http_client",
]
