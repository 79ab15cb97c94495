from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx


def upstream_error_message(response: httpx.Response) -> str:
    """
    Best readable error from a failed upstream response: the JSON
    `error`/`message` field, else the body text, else the status line.
    """
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if message:
            return str(message)
        return f"Server error: {response.status_code}"

    text = response.text.strip()
    if text:
        return f"HTTP {response.status_code}: {text}"
    return f"HTTP {response.status_code}: {response.reason_phrase or 'Unknown server error'}"


def is_gateway_timeout(status_code: int, message: str) -> bool:
    return status_code == 504 or "Gateway Timeout" in message


class UpstreamClient:
    """
    Shared plumbing for the HTTP collaborators: use the injected AsyncClient
    when there is one, otherwise open a short-lived client per call.
    """

    def __init__(self, url: str, *, timeout_s: float = 120.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self._client = client

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            yield client
