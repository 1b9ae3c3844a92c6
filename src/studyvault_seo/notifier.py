"""Crawler notifier: best-effort "sitemap changed" pings.

A ping only acknowledges receipt; it says nothing about indexing. Every
failure (non-2xx status or transport error) becomes a failed PingResult and
never an exception, so one engine being down cannot block the others.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from studyvault_seo.models.results import PingResult

if TYPE_CHECKING:
    from collections.abc import Mapping

log = structlog.get_logger()

DEFAULT_ENGINES: dict[str, str] = {
    "google": "http://www.google.com/ping",
    "bing": "http://www.bing.com/ping",
}


class CrawlerNotifier:
    def __init__(
        self,
        client: httpx.AsyncClient,
        engines: Mapping[str, str] | None = None,
    ) -> None:
        self._client = client
        self.engines = dict(engines if engines is not None else DEFAULT_ENGINES)

    async def notify(self, engine: str, sitemap_url: str) -> PingResult:
        endpoint = self.engines.get(engine)
        if endpoint is None:
            log.warning("ping_unknown_engine", engine=engine)
            return PingResult(engine=engine, success=False, error=f"Unknown engine: {engine}")

        try:
            response = await self._client.get(endpoint, params={"sitemap": sitemap_url})
        except httpx.HTTPError as exc:
            log.warning("ping_failed", engine=engine, sitemap_url=sitemap_url, error=str(exc))
            return PingResult(engine=engine, success=False, error=str(exc))

        if not response.is_success:
            log.warning(
                "ping_failed",
                engine=engine,
                sitemap_url=sitemap_url,
                status_code=response.status_code,
            )
            return PingResult(
                engine=engine,
                success=False,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        log.info("ping_sent", engine=engine, status_code=response.status_code)
        return PingResult(engine=engine, success=True, status_code=response.status_code)

    async def notify_all(self, sitemap_url: str) -> list[PingResult]:
        """Ping every configured engine in turn, regardless of earlier failures."""
        results = [await self.notify(engine, sitemap_url) for engine in self.engines]
        log.info(
            "ping_complete",
            succeeded=sum(result.success for result in results),
            total=len(results),
        )
        return results
