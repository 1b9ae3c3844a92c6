"""Indexing API client (v3 REST): URL update/delete notifications.

All calls to the API go through one RequestThrottle per client, which holds
a lock for the duration of each request and enforces a minimum gap between
the start of successive requests. Bulk submissions are therefore strictly
sequential and never faster than one request per interval.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import ValidationError

from studyvault_seo.errors import ErrorCode, SeoSyncError
from studyvault_seo.models.google import IndexingAction, IndexingNotification
from studyvault_seo.models.results import UrlIndexResult
from studyvault_seo.search_console import api_error_message

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

    from studyvault_seo.protocols import AuthorizerProtocol

log = structlog.get_logger()

INDEXING_API_BASE = "https://indexing.googleapis.com/v3"
DEFAULT_REQUEST_INTERVAL_SECONDS = 1.0


class RequestThrottle:
    """Async context manager serialising calls with a minimum start-to-start gap."""

    def __init__(
        self,
        interval: float = DEFAULT_REQUEST_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_started: float | None = None

    async def __aenter__(self) -> None:
        await self._lock.acquire()
        try:
            if self._last_started is not None:
                remaining = self.interval - (self._clock() - self._last_started)
                if remaining > 0:
                    await self._sleep(remaining)
        except BaseException:
            self._lock.release()
            raise
        self._last_started = self._clock()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._lock.release()


def _notification(url: str, action: IndexingAction) -> IndexingNotification:
    try:
        return IndexingNotification(url=url, action=action)
    except ValidationError as exc:
        raise SeoSyncError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid URL {url!r}: {exc.errors()[0]['msg']}",
        ) from exc


class IndexingClient:
    """Implements UrlIndexerProtocol."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        authorizer: AuthorizerProtocol,
        *,
        throttle: RequestThrottle | None = None,
        api_base: str = INDEXING_API_BASE,
    ) -> None:
        self._client = client
        self._authorizer = authorizer
        self._throttle = throttle or RequestThrottle()
        self._api_base = api_base

    async def initialize(self) -> bool:
        if self._authorizer.authorized:
            return True
        ok = await self._authorizer.authorize()
        if ok:
            log.info("indexing_api_initialized")
        else:
            log.warning("indexing_api_init_failed")
        return ok

    def _require_initialized(self) -> None:
        if not self._authorizer.authorized:
            raise SeoSyncError(
                code=ErrorCode.NOT_INITIALIZED,
                message="Google Indexing API is not initialized",
            )

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        self._require_initialized()
        # Token refresh stays outside the throttled window
        token = await self._authorizer.access_token()
        async with self._throttle:
            try:
                response = await self._client.request(
                    method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs
                )
            except httpx.HTTPError as exc:
                raise SeoSyncError(
                    code=ErrorCode.API_REQUEST_FAILED,
                    message=f"Network error calling Indexing API: {exc}",
                    recoverable=True,
                ) from exc

        if not response.is_success:
            raise SeoSyncError(
                code=ErrorCode.API_REQUEST_FAILED,
                message=(
                    f"Indexing API returned HTTP {response.status_code}: "
                    f"{api_error_message(response)}"
                ),
                status_code=response.status_code,
                recoverable=response.status_code >= 500 or response.status_code == 429,
            )
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    async def _publish(self, notification: IndexingNotification) -> dict[str, Any]:
        result = await self._request(
            "POST",
            f"{self._api_base}/urlNotifications:publish",
            json=notification.to_request_body(),
        )
        log.info("url_notification_sent", url=notification.url, action=notification.action)
        return result

    async def update_url(self, url: str) -> dict[str, Any]:
        """Ask for ``url`` to be (re)crawled."""
        return await self._publish(_notification(url, IndexingAction.URL_UPDATED))

    async def delete_url(self, url: str) -> dict[str, Any]:
        """Ask for ``url`` to be dropped from the index."""
        return await self._publish(_notification(url, IndexingAction.URL_DELETED))

    async def get_url_status(self, url: str) -> dict[str, Any]:
        return await self._request(
            "GET",
            f"{self._api_base}/urlNotifications/metadata",
            params={"url": url},
        )

    async def bulk_update_urls(self, urls: list[str]) -> list[UrlIndexResult]:
        return await self._bulk(urls, IndexingAction.URL_UPDATED)

    async def bulk_delete_urls(self, urls: list[str]) -> list[UrlIndexResult]:
        return await self._bulk(urls, IndexingAction.URL_DELETED)

    async def _bulk(self, urls: list[str], action: IndexingAction) -> list[UrlIndexResult]:
        """Submit each URL in order; one failure never aborts the batch.

        Malformed URLs are reported as failures without reaching the API.
        """
        self._require_initialized()

        results: list[UrlIndexResult] = []
        for url in urls:
            try:
                result = await self._publish(_notification(url, action))
            except SeoSyncError as exc:
                log.warning(
                    "url_notification_failed",
                    url=url,
                    action=action,
                    status_code=exc.status_code,
                    message=exc.message,
                )
                results.append(UrlIndexResult(url=url, success=False, error=exc.message))
                continue
            results.append(UrlIndexResult(url=url, success=True, result=result))

        log.info(
            "bulk_index_complete",
            action=action,
            succeeded=sum(result.success for result in results),
            total=len(urls),
        )
        return results
