"""Outbound HTTP request capability used by approved proposals."""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import requests

from ..constants import (
    HTTP_METHODS, DEFAULT_HTTP_TIMEOUT, DEFAULT_HTTP_MAX_REQUESTS,
    DEFAULT_HTTP_WINDOW_SECONDS, DEFAULT_HTTP_MAX_REDIRECTS
)
from ..utils.logging import logger


class HttpRequestError(Exception):
    """Raised when a request cannot be sent or no response arrives."""


class RateLimitExceededError(HttpRequestError):
    """Raised when the rolling request window is exhausted."""


@dataclass
class HttpResponse:
    """Status, headers and body of a completed request (any status code)."""
    status: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400


class HttpClient:
    """Sends requests with a fixed timeout and a per-window request limit.

    The counter resets once ``window_seconds`` have passed since the window opened.
    Non-2xx/3xx responses are returned normally; only transport failures raise.
    """

    def __init__(self,
                 timeout: int = DEFAULT_HTTP_TIMEOUT,
                 max_requests: int = DEFAULT_HTTP_MAX_REQUESTS,
                 window_seconds: int = DEFAULT_HTTP_WINDOW_SECONDS,
                 max_redirects: int = DEFAULT_HTTP_MAX_REDIRECTS,
                 clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_redirects = max_redirects
        self._clock = clock
        self._request_count = 0
        self._window_start: Optional[float] = None

    def get(self, url: str) -> HttpResponse:
        return self.request("GET", url)

    def post(self, url: str, data: Any = None) -> HttpResponse:
        return self.request("POST", url, data)

    def put(self, url: str, data: Any = None) -> HttpResponse:
        return self.request("PUT", url, data)

    def delete(self, url: str) -> HttpResponse:
        return self.request("DELETE", url)

    def request(self, method: str, url: str, data: Any = None) -> HttpResponse:
        """Send one request.

        Args:
            method: One of GET, POST, PUT, DELETE
            url: Absolute http(s) URL
            data: Request body; dicts and lists are sent as JSON

        Returns:
            HttpResponse for any HTTP status

        Raises:
            HttpRequestError: on invalid method or transport failure
            RateLimitExceededError: when the request window is exhausted
        """
        method = (method or "").upper()
        if method not in HTTP_METHODS:
            raise HttpRequestError(f"Unsupported HTTP method: {method or '(empty)'}")

        self._check_rate_limit()

        kwargs: Dict[str, Any] = {"timeout": self.timeout, "allow_redirects": True}
        if isinstance(data, (dict, list)):
            kwargs["json"] = data
        elif data is not None:
            kwargs["data"] = str(data).encode('utf-8')

        logger.debug(f"HTTP {method} {url}")

        try:
            with requests.Session() as session:
                session.max_redirects = self.max_redirects
                response = session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise HttpRequestError(f"HTTP request failed: {e}") from e
        finally:
            self._request_count += 1

        return HttpResponse(
            status=response.status_code,
            reason=response.reason or "",
            headers=dict(response.headers),
            body=response.text,
            url=response.url or url,
        )

    def _check_rate_limit(self) -> None:
        now = self._clock()
        if self._window_start is None or now - self._window_start >= self.window_seconds:
            self._window_start = now
            self._request_count = 0

        if self._request_count >= self.max_requests:
            raise RateLimitExceededError(
                f"Rate limit exceeded: at most {self.max_requests} requests per "
                f"{self.window_seconds} seconds. Retry in {self.get_rate_limit_status()['reset_in']}s."
            )

    def get_rate_limit_status(self) -> Dict[str, int]:
        """Current window usage: request count, limit and seconds until reset."""
        if self._window_start is None:
            reset_in = 0
        else:
            elapsed = self._clock() - self._window_start
            reset_in = max(0, int(round(self.window_seconds - elapsed)))
        return {"count": self._request_count, "limit": self.max_requests, "reset_in": reset_in}


def create_http_client(config: Dict[str, Any]) -> HttpClient:
    """Create an HTTP client from application configuration."""
    return HttpClient(
        timeout=config.get("http_timeout", DEFAULT_HTTP_TIMEOUT),
        max_requests=config.get("http_max_requests_per_window", DEFAULT_HTTP_MAX_REQUESTS),
        window_seconds=config.get("http_window_seconds", DEFAULT_HTTP_WINDOW_SECONDS),
    )
