"""Protocol interfaces for swappable components.

Handlers and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other content store backends (e.g. a Firestore reader) to be plugged in
  without changing the builder
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from studyvault_seo.models.google import (
        ServiceAccountInfo,
        SiteInfo,
        SitemapRegistration,
    )
    from studyvault_seo.models.results import RefreshReport, UrlIndexResult
    from studyvault_seo.models.sitemap import Paper


class PaperStoreProtocol(Protocol):
    """Read handle on the content store's ``papers`` collection."""

    async def fetch_approved_papers(self, limit: int) -> list[Paper]: ...


class CredentialSourceProtocol(Protocol):
    """Supplies the service-account credential. Raises on missing/invalid data."""

    def load(self) -> ServiceAccountInfo: ...


class AuthorizerProtocol(Protocol):
    """Bearer-token source for one Google API scope."""

    @property
    def authorized(self) -> bool: ...

    async def authorize(self) -> bool: ...

    async def access_token(self) -> str: ...


class SitemapRegistryProtocol(Protocol):
    """Search Console sitemap registrations for one property."""

    async def initialize(self) -> bool: ...

    async def submit_sitemap(self, sitemap_url: str) -> dict[str, Any]: ...

    async def list_sitemaps(self) -> list[SitemapRegistration]: ...

    async def delete_sitemap(self, sitemap_url: str) -> None: ...

    async def get_site_info(self) -> SiteInfo: ...

    async def refresh_sitemap(
        self, new_sitemap_url: str, old_sitemap_url: str | None = None
    ) -> RefreshReport: ...


class UrlIndexerProtocol(Protocol):
    """Indexing API URL notifications."""

    async def initialize(self) -> bool: ...

    async def update_url(self, url: str) -> dict[str, Any]: ...

    async def delete_url(self, url: str) -> dict[str, Any]: ...

    async def get_url_status(self, url: str) -> dict[str, Any]: ...

    async def bulk_update_urls(self, urls: list[str]) -> list[UrlIndexResult]: ...

    async def bulk_delete_urls(self, urls: list[str]) -> list[UrlIndexResult]: ...
