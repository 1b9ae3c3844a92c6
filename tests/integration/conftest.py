"""Integration test fixtures.

Provides a fully wired AppState: real builder, publisher, notifier and Google
clients on one httpx client (mock outbound calls with respx), an in-memory
paper store seeded with sample papers, and fake authorizers so no service
account key is needed.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import pytest

from studyvault_seo.indexing import IndexingClient, RequestThrottle
from studyvault_seo.notifier import CrawlerNotifier
from studyvault_seo.publisher import SitemapPublisher
from studyvault_seo.search_console import SearchConsoleClient
from studyvault_seo.server import create_app
from studyvault_seo.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from studyvault_seo.config import Settings
    from studyvault_seo.models.sitemap import Paper
    from studyvault_seo.store import SqlitePaperStore


class FakeAuthorizer:
    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self._authorized = False

    @property
    def authorized(self) -> bool:
        return self._authorized

    async def authorize(self) -> bool:
        self._authorized = self.ok
        return self.ok

    async def access_token(self) -> str:
        return "test-token"


async def _no_sleep(_seconds: float) -> None:
    return None


def _build_state(
    settings: Settings,
    client: httpx.AsyncClient,
    store: SqlitePaperStore,
    *,
    authorized: bool,
) -> AppState:
    return AppState(
        settings=settings,
        publisher=SitemapPublisher(
            Path(settings.sitemap.output_dir),
            settings.site.base_url,
            serve_http=settings.sitemap.serve_mode == "dynamic",
        ),
        notifier=CrawlerNotifier(client, settings.crawler.engines),
        search_console=SearchConsoleClient(
            client, FakeAuthorizer(authorized), settings.site.search_console_property
        ),
        indexer=IndexingClient(
            client,
            FakeAuthorizer(authorized),
            throttle=RequestThrottle(1.0, sleep=_no_sleep),
        ),
        store=store,
        http_client=client,
    )


@pytest.fixture()
async def seeded_store(paper_store: SqlitePaperStore, sample_papers: list[Paper]) -> SqlitePaperStore:
    await paper_store.upsert_papers(sample_papers)
    return paper_store


@pytest.fixture()
async def app_state(settings: Settings, seeded_store: SqlitePaperStore) -> AsyncIterator[AppState]:
    """AppState whose Google clients authorize successfully."""
    async with httpx.AsyncClient() as client:
        yield _build_state(settings, client, seeded_store, authorized=True)


@pytest.fixture()
async def unauthorized_state(
    settings: Settings, seeded_store: SqlitePaperStore
) -> AsyncIterator[AppState]:
    """AppState whose Google clients fail to initialize."""
    async with httpx.AsyncClient() as client:
        yield _build_state(settings, client, seeded_store, authorized=False)


@pytest.fixture()
async def api(app_state: AppState) -> AsyncIterator[httpx.AsyncClient]:
    """ASGI client for the Starlette app wired to ``app_state``."""
    transport = httpx.ASGITransport(app=create_app(state=app_state))
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture()
async def unauthorized_api(unauthorized_state: AppState) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=create_app(state=unauthorized_state))
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
