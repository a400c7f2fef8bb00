"""
Process-wide httpx.AsyncClient for Strava, opened in the app lifespan and
shared by every request so connections to the API host are pooled.
"""
from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

_http_client: httpx.AsyncClient | None = None

_DEFAULT_HEADERS = {"Accept": "application/json", "User-Agent": "strava-mirror/0.1"}


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug("Strava %s %s -> %s", request.method, request.url.path, response.status_code)


def get_http_client() -> httpx.AsyncClient:
    if _http_client is None:
        raise RuntimeError("Strava HTTP client not initialized; init_http_client() runs in the app lifespan.")
    return _http_client


def init_http_client(timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Open the shared client (idempotent). Tests pass an httpx.MockTransport."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers=_DEFAULT_HEADERS,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            event_hooks={"response": [_log_response]},
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
