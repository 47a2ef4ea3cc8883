"""
HTTP helpers.

This module centralizes the HTTP plumbing used by the backend client.

Design goals:
- One `httpx.AsyncClient` per process (connection pooling), built here with
  deterministic defaults (timeout + User-Agent).
- Decode JSON bodies in one place; empty bodies (204, `return=minimal`) become `None`.
"""

from __future__ import annotations

from typing import Any

import httpx


DEFAULT_USER_AGENT = "medshare/0.1.0 (+https://local)"


def build_async_client(
    base_url: str,
    *,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 15,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared async client.

    `transport` lets tests plug in `httpx.MockTransport` and keep everything offline.
    """
    request_headers = {"User-Agent": DEFAULT_USER_AGENT}
    if headers:
        request_headers.update(headers)
    return httpx.AsyncClient(
        base_url=base_url,
        headers=request_headers,
        timeout=timeout_seconds,
        transport=transport,
    )


def decode_json(resp: httpx.Response) -> Any:
    """Return the decoded JSON body, or None when the response has no content.

    Raises:
        ValueError: If a non-empty body is not valid JSON.
    """
    if resp.status_code == 204 or not resp.content:
        return None
    return resp.json()
