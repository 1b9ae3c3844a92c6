"""SQLite snapshot of the content store's ``papers`` collection.

The builder only ever reads from this store. Unlike a cache, read errors are
not swallowed here: ``aiosqlite.Error`` propagates so the builder can apply
its own degradation policy (static routes only) and log the failure once.
Writes happen through ``upsert_papers`` when a collection export is imported.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from studyvault_seo.models.sitemap import Paper

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

log = structlog.get_logger()

APPROVED_STATUS = "approved"

_CREATE_PAPERS_TABLE = """
CREATE TABLE IF NOT EXISTS papers (
    id         TEXT PRIMARY KEY,
    status     TEXT NOT NULL DEFAULT '',
    subject    TEXT,
    course     TEXT,
    college    TEXT,
    created_at TEXT
)
"""

_CREATE_STATUS_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_papers_status_created ON papers(status, created_at)"
)


class SqlitePaperStore:
    """aiosqlite-backed paper store implementing PaperStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_PAPERS_TABLE)
        await self._db.execute(_CREATE_STATUS_INDEX)
        await self._db.commit()

    async def fetch_approved_papers(self, limit: int) -> list[Paper]:
        """Return approved papers, newest first, at most ``limit`` rows.

        Rows without a creation time sort last.
        """
        cursor = await self._db.execute(
            "SELECT id, status, subject, course, college, created_at FROM papers "
            "WHERE status = ? "
            "ORDER BY created_at IS NULL, created_at DESC "
            "LIMIT ?",
            (APPROVED_STATUS, limit),
        )
        rows = await cursor.fetchall()
        return [
            Paper(
                id=row[0],
                status=row[1],
                subject=row[2],
                course=row[3],
                college=row[4],
                created_at=row[5],
            )
            for row in rows
        ]

    async def upsert_papers(self, papers: Iterable[Paper]) -> int:
        """Insert or replace papers. Returns the number of rows written."""
        rows = [
            (
                paper.id,
                paper.status,
                paper.subject,
                paper.course,
                paper.college,
                paper.created_at.astimezone(UTC).isoformat() if paper.created_at else None,
            )
            for paper in papers
            if paper.id
        ]
        await self._db.executemany(
            "INSERT OR REPLACE INTO papers "
            "(id, status, subject, course, college, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            rows,
        )
        await self._db.commit()
        log.info("papers_upserted", count=len(rows))
        return len(rows)


@asynccontextmanager
async def open_paper_store(db_path: str) -> AsyncIterator[SqlitePaperStore]:
    """Open (creating if needed) the snapshot database for the lifetime of the block."""
    if db_path != ":memory:":
        path = Path(db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        db_path = str(path)
    db = await aiosqlite.connect(db_path)
    try:
        store = SqlitePaperStore(db)
        await store.init_db()
        yield store
    finally:
        await db.close()
