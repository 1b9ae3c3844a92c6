"""Sitemap handlers: build, render, publish.

Receives AppState and returns plain strings or dicts. No Starlette imports;
server.py handles the HTTP wiring and cli.py the terminal output.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from studyvault_seo.builder import build_sitemap, render_xml
from studyvault_seo.errors import ErrorCode, SeoSyncError

if TYPE_CHECKING:
    from studyvault_seo.models.sitemap import SitemapDocument
    from studyvault_seo.state import AppState


async def build_document(state: AppState, *, now: datetime | None = None) -> SitemapDocument:
    settings = state.settings
    return await build_sitemap(
        settings.site.base_url,
        settings.sitemap.static_routes,
        state.store,
        limit=settings.sitemap.paper_limit,
        now=now,
    )


async def sitemap_xml(state: AppState) -> str:
    """XML for ``GET /sitemap.xml``.

    In dynamic mode the document is rebuilt on every call; in static mode the
    last published artifact is returned (ARTIFACT_NOT_FOUND if none exists).
    """
    if state.settings.sitemap.serve_mode == "static":
        return state.publisher.read_sitemap()
    return render_xml(await build_document(state))


def robots_txt(state: AppState) -> str:
    return state.publisher.robots_txt()


async def generate_sitemap(state: AppState, *, ping: bool = False) -> dict:
    """Rebuild the sitemap and write the static artifacts."""
    log = structlog.get_logger().bind(handler="generate_sitemap")
    log.info("handler_called")

    document = await build_document(state)
    try:
        result = state.publisher.publish(document)
    except OSError as exc:
        raise SeoSyncError(
            code=ErrorCode.GENERATION_FAILED,
            message=f"Could not write sitemap artifacts: {exc}",
            recoverable=True,
        ) from exc

    output: dict = {
        "success": True,
        "message": "Sitemap generated successfully",
        "path": state.publisher.sitemap_url,
        "timestamp": datetime.now(UTC).isoformat(),
        "url_count": len(document),
        "written_to": str(result.written_to_path),
    }
    if ping:
        pings = await state.notifier.notify_all(state.publisher.sitemap_url)
        output["pings"] = [p.model_dump(mode="json") for p in pings]
    return output
