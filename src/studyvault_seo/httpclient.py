"""Shared outbound HTTP client.

One httpx.AsyncClient per process, created by the app lifespan or the CLI
command and injected into the notifier and the Google API clients. The
client timeout is the only transport-level bound; nothing here retries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from studyvault_seo.config import HttpSettings


def build_http_client(settings: HttpSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )
