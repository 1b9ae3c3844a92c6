"""Application state container.

AppState is created once, inside the Starlette lifespan (or by a CLI command),
and handed to every handler. Tests build it directly with fakes for the
protocol-typed fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from studyvault_seo.google_auth import (
    INDEXING_SCOPE,
    WEBMASTERS_SCOPE,
    FileCredentialSource,
    ServiceAccountAuthorizer,
)
from studyvault_seo.indexing import IndexingClient, RequestThrottle
from studyvault_seo.notifier import CrawlerNotifier
from studyvault_seo.publisher import SitemapPublisher
from studyvault_seo.search_console import SearchConsoleClient

if TYPE_CHECKING:
    import httpx

    from studyvault_seo.config import Settings
    from studyvault_seo.protocols import (
        PaperStoreProtocol,
        SitemapRegistryProtocol,
        UrlIndexerProtocol,
    )


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every handler."""

    settings: Settings
    publisher: SitemapPublisher
    notifier: CrawlerNotifier
    search_console: SitemapRegistryProtocol
    indexer: UrlIndexerProtocol
    store: PaperStoreProtocol | None = None
    http_client: httpx.AsyncClient | None = None


def build_state(
    settings: Settings,
    http_client: httpx.AsyncClient,
    store: PaperStoreProtocol | None = None,
) -> AppState:
    """Wire the concrete components around one shared HTTP client."""
    credentials = FileCredentialSource(Path(settings.google.credentials_path).expanduser())

    search_console = SearchConsoleClient(
        http_client,
        ServiceAccountAuthorizer(http_client, credentials, [WEBMASTERS_SCOPE]),
        settings.site.search_console_property,
    )
    indexer = IndexingClient(
        http_client,
        ServiceAccountAuthorizer(http_client, credentials, [INDEXING_SCOPE]),
        throttle=RequestThrottle(settings.google.indexing_interval_seconds),
    )
    publisher = SitemapPublisher(
        Path(settings.sitemap.output_dir).expanduser(),
        settings.site.base_url,
        serve_http=settings.sitemap.serve_mode == "dynamic",
    )

    return AppState(
        settings=settings,
        publisher=publisher,
        notifier=CrawlerNotifier(http_client, settings.crawler.engines),
        search_console=search_console,
        indexer=indexer,
        store=store,
        http_client=http_client,
    )
