"""Google search handlers: Search Console registrations, Indexing API, pings.

Each handler validates its input first (INVALID_INPUT before any network
call), initializes the client it needs, and returns the JSON-ready success
payload. Failures propagate as SeoSyncError for server.py / cli.py to map.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from studyvault_seo.errors import ErrorCode, SeoSyncError
from studyvault_seo.models.api import (
    BulkIndexInput,
    RecrawlInput,
    RefreshSitemapInput,
    SubmitSitemapInput,
)

if TYPE_CHECKING:
    from studyvault_seo.state import AppState

SEARCH_CONSOLE_INIT_FAILED = "Failed to initialize Google Search Console API"
INDEXING_INIT_FAILED = "Failed to initialize Google Indexing API"

M = TypeVar("M", bound=BaseModel)


def _validate(model: type[M], body: Any, message: str) -> M:
    try:
        return model.model_validate(body if body is not None else {})
    except ValidationError as exc:
        raise SeoSyncError(code=ErrorCode.INVALID_INPUT, message=message) from exc


async def _init_search_console(state: AppState) -> None:
    if not await state.search_console.initialize():
        raise SeoSyncError(code=ErrorCode.NOT_INITIALIZED, message=SEARCH_CONSOLE_INIT_FAILED)


async def _init_indexer(state: AppState) -> None:
    if not await state.indexer.initialize():
        raise SeoSyncError(code=ErrorCode.NOT_INITIALIZED, message=INDEXING_INIT_FAILED)


async def submit_sitemap(state: AppState, body: Any = None) -> dict:
    validated = _validate(SubmitSitemapInput, body, "sitemapUrl must be an http(s) URL")
    sitemap_url = validated.sitemap_url or state.settings.site.sitemap_url

    log = structlog.get_logger().bind(handler="submit_sitemap", sitemap_url=sitemap_url)
    log.info("handler_called")

    await _init_search_console(state)
    details = await state.search_console.submit_sitemap(sitemap_url)
    return {"success": True, "message": "Sitemap submitted successfully", "details": details}


async def sitemap_status(state: AppState) -> dict:
    structlog.get_logger().bind(handler="sitemap_status").info("handler_called")

    await _init_search_console(state)
    sitemaps = await state.search_console.list_sitemaps()
    return {
        "success": True,
        "message": "Sitemap status retrieved successfully",
        "sitemaps": [s.model_dump(mode="json", by_alias=True) for s in sitemaps],
    }


async def refresh_sitemap(state: AppState, body: Any = None) -> dict:
    """Retire superseded registrations and submit the current sitemap."""
    validated = _validate(RefreshSitemapInput, body, "sitemapUrl/oldSitemapUrl must be http(s) URLs")
    sitemap_url = validated.sitemap_url or state.settings.site.sitemap_url

    log = structlog.get_logger().bind(handler="refresh_sitemap", sitemap_url=sitemap_url)
    log.info("handler_called")

    # refresh_sitemap runs its own authorize step and reports it by name
    try:
        report = await state.search_console.refresh_sitemap(sitemap_url, validated.old_sitemap_url)
    except SeoSyncError as exc:
        if exc.code == ErrorCode.NOT_INITIALIZED:
            raise SeoSyncError(
                code=ErrorCode.NOT_INITIALIZED,
                message=SEARCH_CONSOLE_INIT_FAILED,
                step=exc.step,
            ) from exc
        raise
    return {
        "success": True,
        "message": "Sitemap refreshed successfully",
        "deleted": report.deleted,
        "submitted": report.submitted,
    }


async def site_info(state: AppState) -> dict:
    await _init_search_console(state)
    info = await state.search_console.get_site_info()
    return {"success": True, "site": info.model_dump(mode="json", by_alias=True)}


async def recrawl(state: AppState, body: Any) -> dict:
    validated = _validate(RecrawlInput, body, "URL is required")

    log = structlog.get_logger().bind(handler="recrawl", url=validated.url)
    log.info("handler_called")

    await _init_indexer(state)
    details = await state.indexer.update_url(validated.url)
    return {"success": True, "message": "URL recrawl requested successfully", "details": details}


async def remove_url(state: AppState, body: Any) -> dict:
    validated = _validate(RecrawlInput, body, "URL is required")

    log = structlog.get_logger().bind(handler="remove_url", url=validated.url)
    log.info("handler_called")

    await _init_indexer(state)
    details = await state.indexer.delete_url(validated.url)
    return {"success": True, "message": "URL removal requested successfully", "details": details}


async def url_status(state: AppState, url: str | None) -> dict:
    validated = _validate(RecrawlInput, {"url": url} if url else {}, "URL is required")

    log = structlog.get_logger().bind(handler="url_status", url=validated.url)
    log.info("handler_called")

    await _init_indexer(state)
    metadata = await state.indexer.get_url_status(validated.url)
    return {"success": True, "message": "URL status retrieved successfully", "metadata": metadata}


async def bulk_index(state: AppState, body: Any, *, delete: bool = False) -> dict:
    """Submit many URLs one at a time; per-URL failures do not fail the request."""
    validated = _validate(BulkIndexInput, body, "Valid array of URLs is required")

    log = structlog.get_logger().bind(handler="bulk_index", url_count=len(validated.urls))
    log.info("handler_called", delete=delete)

    await _init_indexer(state)
    if delete:
        results = await state.indexer.bulk_delete_urls(validated.urls)
    else:
        results = await state.indexer.bulk_update_urls(validated.urls)

    succeeded = sum(result.success for result in results)
    verb = "removed" if delete else "indexed"
    return {
        "success": True,
        "message": f"{succeeded}/{len(validated.urls)} URLs {verb} successfully",
        "results": [result.model_dump(mode="json", exclude_none=True) for result in results],
    }


async def ping(state: AppState, body: Any = None) -> dict:
    """Notify every configured crawler. Individual ping failures are reported, not raised."""
    validated = _validate(SubmitSitemapInput, body, "sitemapUrl must be an http(s) URL")
    sitemap_url = validated.sitemap_url or state.settings.site.sitemap_url

    log = structlog.get_logger().bind(handler="ping", sitemap_url=sitemap_url)
    log.info("handler_called")

    results = await state.notifier.notify_all(sitemap_url)
    succeeded = sum(result.success for result in results)
    return {
        "success": True,
        "message": f"{succeeded}/{len(results)} search engines notified",
        "results": [result.model_dump(mode="json") for result in results],
    }
