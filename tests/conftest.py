"""Shared test fixtures for the studyvault_seo test suite."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from studyvault_seo.config import Settings
from studyvault_seo.models.sitemap import Paper
from studyvault_seo.store import SqlitePaperStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

BASE_URL = "https://study-vault2.vercel.app"
BUILD_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class FakePaperStore:
    """In-memory PaperStoreProtocol; optionally fails every read."""

    def __init__(self, papers: list[Paper] | None = None, *, error: Exception | None = None) -> None:
        self.papers = papers or []
        self.error = error
        self.calls: list[int] = []

    async def fetch_approved_papers(self, limit: int) -> list[Paper]:
        self.calls.append(limit)
        if self.error is not None:
            raise self.error
        return self.papers[:limit]


@pytest.fixture()
def sample_papers() -> list[Paper]:
    """Approved papers, newest first, with overlapping facet values."""
    return [
        Paper(
            id="42",
            status="approved",
            subject="Math",
            course="BSc",
            college="MIT",
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
        ),
        Paper(
            id="41",
            status="approved",
            subject="Physics",
            course="BSc",
            college="",
            created_at=datetime(2023, 12, 1, tzinfo=UTC),
        ),
        Paper(
            id="40",
            status="approved",
            subject="Math",
            course=None,
            college="IIT Delhi",
            created_at=None,
        ),
    ]


@pytest.fixture()
def fake_store(sample_papers: list[Paper]) -> FakePaperStore:
    return FakePaperStore(sample_papers)


@pytest.fixture()
async def paper_store() -> AsyncIterator[SqlitePaperStore]:
    """SqlitePaperStore backed by an in-memory database."""
    async with aiosqlite.connect(":memory:") as db:
        store = SqlitePaperStore(db)
        await store.init_db()
        yield store


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any local config: output and credentials under tmp_path."""
    return Settings(
        site={"base_url": BASE_URL},
        sitemap={"output_dir": str(tmp_path / "public")},
        store={"db_path": str(tmp_path / "papers.db")},
        google={"credentials_path": str(tmp_path / "credentials.json")},
    )


@pytest.fixture()
def failing_store() -> FakePaperStore:
    """A store whose every read raises, as when the database is unreachable."""
    return FakePaperStore(error=aiosqlite.OperationalError("unable to open database file"))


@pytest.fixture()
def empty_store() -> FakePaperStore:
    return FakePaperStore([])
