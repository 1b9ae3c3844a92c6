"""Search Console sitemap registry (webmasters v3 REST API).

Every call requires a successful ``initialize()``; calling before that
raises NOT_INITIALIZED without touching the network. API failures surface
as SeoSyncError(API_REQUEST_FAILED) carrying the HTTP status.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from studyvault_seo.errors import ErrorCode, SeoSyncError
from studyvault_seo.models.google import SiteInfo, SitemapRegistration
from studyvault_seo.models.results import RefreshReport

if TYPE_CHECKING:
    from studyvault_seo.protocols import AuthorizerProtocol

log = structlog.get_logger()

WEBMASTERS_API_BASE = "https://www.googleapis.com/webmasters/v3"


class RefreshStep(StrEnum):
    AUTHORIZE = "authorize"
    LIST_EXISTING = "list_existing"
    DELETE_SUPERSEDED = "delete_superseded"
    SUBMIT_NEW = "submit_new"


def api_error_message(response: httpx.Response) -> str:
    """Extract Google's ``error.message`` from an error response, if any."""
    try:
        error = response.json().get("error", {})
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    except (ValueError, AttributeError):
        pass
    return response.reason_phrase or "error"


class SearchConsoleClient:
    """Implements SitemapRegistryProtocol for one Search Console property."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        authorizer: AuthorizerProtocol,
        site_url: str,
        *,
        api_base: str = WEBMASTERS_API_BASE,
    ) -> None:
        self._client = client
        self._authorizer = authorizer
        self.site_url = site_url
        self._site_base = f"{api_base}/sites/{quote(site_url, safe='')}"

    async def initialize(self) -> bool:
        if self._authorizer.authorized:
            return True
        ok = await self._authorizer.authorize()
        if ok:
            log.info("search_console_initialized", site_url=self.site_url)
        else:
            log.warning("search_console_init_failed", site_url=self.site_url)
        return ok

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if not self._authorizer.authorized:
            raise SeoSyncError(
                code=ErrorCode.NOT_INITIALIZED,
                message="Google Search Console API is not initialized",
            )
        token = await self._authorizer.access_token()
        try:
            response = await self._client.request(
                method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs
            )
        except httpx.HTTPError as exc:
            raise SeoSyncError(
                code=ErrorCode.API_REQUEST_FAILED,
                message=f"Network error calling Search Console: {exc}",
                recoverable=True,
            ) from exc

        if not response.is_success:
            raise SeoSyncError(
                code=ErrorCode.API_REQUEST_FAILED,
                message=(
                    f"Search Console returned HTTP {response.status_code}: "
                    f"{api_error_message(response)}"
                ),
                status_code=response.status_code,
                recoverable=response.status_code >= 500 or response.status_code == 429,
            )
        return response

    def _sitemap_url(self, feedpath: str) -> str:
        return f"{self._site_base}/sitemaps/{quote(feedpath, safe='')}"

    async def submit_sitemap(self, sitemap_url: str) -> dict[str, Any]:
        """Register a sitemap. Resubmitting a registered URL is not an error."""
        await self._request("PUT", self._sitemap_url(sitemap_url))
        log.info("sitemap_submitted", site_url=self.site_url, feedpath=sitemap_url)
        return {"siteUrl": self.site_url, "feedpath": sitemap_url}

    async def list_sitemaps(self) -> list[SitemapRegistration]:
        response = await self._request("GET", f"{self._site_base}/sitemaps")
        try:
            raw_items = response.json().get("sitemap") or []
        except (ValueError, AttributeError):
            raw_items = []

        registrations: list[SitemapRegistration] = []
        for item in raw_items:
            try:
                registrations.append(SitemapRegistration.model_validate(item))
            except ValidationError:
                log.warning("sitemap_registration_invalid", site_url=self.site_url)
        log.info("sitemaps_listed", site_url=self.site_url, count=len(registrations))
        return registrations

    async def delete_sitemap(self, sitemap_url: str) -> None:
        """Remove a registration. An already-absent sitemap counts as removed."""
        try:
            await self._request("DELETE", self._sitemap_url(sitemap_url))
        except SeoSyncError as exc:
            if exc.status_code != 404:
                raise
            log.info("sitemap_already_absent", site_url=self.site_url, feedpath=sitemap_url)
            return
        log.info("sitemap_deleted", site_url=self.site_url, feedpath=sitemap_url)

    async def get_site_info(self) -> SiteInfo:
        response = await self._request("GET", self._site_base)
        try:
            return SiteInfo.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SeoSyncError(
                code=ErrorCode.API_REQUEST_FAILED,
                message="Search Console returned an unexpected site payload",
            ) from exc

    async def refresh_sitemap(
        self, new_sitemap_url: str, old_sitemap_url: str | None = None
    ) -> RefreshReport:
        """Replace superseded registrations with ``new_sitemap_url``.

        Steps: authorize → list existing → delete superseded → submit new.
        With ``old_sitemap_url`` only that registration is retired; otherwise
        every existing registration other than the new URL is. A failure after
        authorization raises REFRESH_FAILED naming the step that failed.
        """
        refresh_log = log.bind(site_url=self.site_url, new_sitemap_url=new_sitemap_url)
        refresh_log.info("sitemap_refresh_started")

        if not await self.initialize():
            raise SeoSyncError(
                code=ErrorCode.NOT_INITIALIZED,
                message="Google Search Console API is not initialized",
                step=RefreshStep.AUTHORIZE,
            )

        step = RefreshStep.LIST_EXISTING
        try:
            existing = await self.list_sitemaps()

            step = RefreshStep.DELETE_SUPERSEDED
            if old_sitemap_url is not None:
                superseded = [old_sitemap_url]
            else:
                superseded = [
                    reg.feedpath for reg in existing if reg.feedpath != new_sitemap_url
                ]
            for feedpath in superseded:
                await self.delete_sitemap(feedpath)

            step = RefreshStep.SUBMIT_NEW
            await self.submit_sitemap(new_sitemap_url)
        except SeoSyncError as exc:
            refresh_log.warning(
                "sitemap_refresh_failed",
                step=step,
                code=exc.code,
                status_code=exc.status_code,
                message=exc.message,
            )
            raise SeoSyncError(
                code=ErrorCode.REFRESH_FAILED,
                message=f"Sitemap refresh failed at step '{step}': {exc.message}",
                step=step,
                status_code=exc.status_code,
                recoverable=exc.recoverable,
            ) from exc

        refresh_log.info("sitemap_refresh_complete", deleted=len(superseded))
        return RefreshReport(deleted=superseded, submitted=new_sitemap_url)
