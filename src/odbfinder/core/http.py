"""
JSON-over-HTTP helper for the remote record store.

Non-2xx responses raise `httpx.HTTPStatusError` so the store can map status codes
(404, 409) onto its own error types. Empty bodies (e.g. 204 on delete) decode to None.
"""

from __future__ import annotations

from typing import Any

import httpx

USER_AGENT = "odbfinder/0.1.0"


def request_json(
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    json_body: Any | None = None,
    headers: dict[str, str] | None = None,
    timeout_seconds: float = 15,
) -> Any:
    merged = {"User-Agent": USER_AGENT, "Accept": "application/json", **(headers or {})}
    response = httpx.request(
        method, url, params=params, json=json_body, headers=merged, timeout=timeout_seconds
    )
    response.raise_for_status()
    return response.json() if response.content else None
