"""Rate-limited JSON GET client used for Neynar and Snapchain calls."""

from __future__ import annotations

import logging
from typing import Any, Callable

import requests

from .errors import ClientError, TransientError
from .ratelimit import RateLimiter

LOG = logging.getLogger(__name__)

# 4xx statuses that are worth another attempt
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})

Transport = Callable[..., requests.Response]


def classify_status(status: int) -> type[Exception] | None:
    """Map an HTTP status to the error class it raises (None for success)."""
    if status < 400:
        return None
    if status < 500 and status not in RETRYABLE_CLIENT_STATUSES:
        return ClientError
    return TransientError


class ApiClient:
    """GET-only JSON client bound to one base URL with static headers.

    ``transport`` optionally decorates the underlying ``session.get`` (for
    example a payment-signing middleware); it receives the bound ``get``
    and must return a callable with the same signature.
    """

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 30,
        limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
        transport: Callable[[Transport], Transport] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.limiter = limiter
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if headers:
            self.session.headers.update(headers)
        get = self.session.get
        self._get: Transport = transport(get) if transport else get

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> dict:
        url = self.url(path)
        if self.limiter is not None:
            self.limiter.wait_if_needed()

        try:
            r = self._get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientError(f"GET {url} failed: {e}") from e

        error_cls = classify_status(r.status_code)
        if error_cls is not None:
            body = (r.text or "").strip()
            body = body[:400] + ("..." if len(body) > 400 else "")
            raise error_cls(f"HTTP {r.status_code} calling {url} with params {params}. Body: {body}", status=r.status_code)

        try:
            payload = r.json()
        except ValueError as e:
            raise TransientError(f"Undecodable JSON from {url}: {e}", status=r.status_code) from e
        if not isinstance(payload, dict):
            raise TransientError(f"Unexpected response type from {url}: {type(payload).__name__}", status=r.status_code)
        return payload


def neynar_client(settings, limiter: RateLimiter | None = None, **kwargs) -> ApiClient:
    return ApiClient(
        settings.neynar_url,
        headers={"x-api-key": settings.api_key, "User-Agent": settings.user_agent},
        timeout=settings.neynar_timeout,
        limiter=limiter,
        **kwargs,
    )


def snapchain_client(settings, limiter: RateLimiter | None = None, **kwargs) -> ApiClient:
    return ApiClient(
        settings.snapchain_url,
        timeout=settings.snapchain_timeout,
        limiter=limiter,
        **kwargs,
    )
