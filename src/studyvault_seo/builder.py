"""Sitemap builder.

Assembles a SitemapDocument from the configured static routes plus routes
derived from approved papers and their distinct facet values, and renders it
as sitemaps.org 0.9 XML.

Output order is fixed: static → papers → subjects → courses → colleges.
Paths are de-duplicated with the first occurrence winning. If the paper store
cannot be read the document degrades to the static routes only.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import quote
from xml.sax.saxutils import escape

import structlog

from studyvault_seo.config import validate_base_url
from studyvault_seo.models.sitemap import ChangeFrequency, RouteEntry, SitemapDocument

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from studyvault_seo.config import StaticRoute
    from studyvault_seo.models.sitemap import Paper
    from studyvault_seo.protocols import PaperStoreProtocol

log = structlog.get_logger()

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
DEFAULT_PAPER_LIMIT = 1000

PAPER_CHANGEFREQ = ChangeFrequency.WEEKLY
PAPER_PRIORITY = 0.8

# facet attribute → (query parameter, changefreq, priority), in output order
FACETS: tuple[tuple[str, ChangeFrequency, float], ...] = (
    ("subject", ChangeFrequency.DAILY, 0.7),
    ("course", ChangeFrequency.DAILY, 0.7),
    ("college", ChangeFrequency.WEEKLY, 0.6),
)

# Characters encodeURIComponent leaves alone; keeps URLs stable across the
# frontend and the sitemap.
_QUERY_SAFE = "-_.!~*'()"


def _encode(value: str) -> str:
    return quote(value, safe=_QUERY_SAFE)


def _clamp(moment: datetime, now: datetime) -> datetime:
    """Never emit a lastmod later than build time."""
    return moment if moment <= now else now


def static_entries(routes: Iterable[StaticRoute], now: datetime) -> list[RouteEntry]:
    return [
        RouteEntry(
            path=route.path,
            last_modified=now,
            change_frequency=ChangeFrequency(route.changefreq),
            priority=route.priority,
        )
        for route in routes
    ]


def paper_entries(papers: Iterable[Paper], now: datetime) -> list[RouteEntry]:
    entries: list[RouteEntry] = []
    for paper in papers:
        if not paper.id:
            continue
        created = paper.created_at if paper.created_at is not None else now
        entries.append(
            RouteEntry(
                path=f"/browse?paper={_encode(paper.id)}",
                last_modified=_clamp(created, now),
                change_frequency=PAPER_CHANGEFREQ,
                priority=PAPER_PRIORITY,
            )
        )
    return entries


def facet_entries(papers: Sequence[Paper], now: datetime) -> list[RouteEntry]:
    """One route per distinct non-empty facet value, in first-seen order."""
    entries: list[RouteEntry] = []
    for facet, changefreq, priority in FACETS:
        seen: dict[str, None] = {}
        for paper in papers:
            value = getattr(paper, facet)
            if value:
                seen.setdefault(value, None)
        entries.extend(
            RouteEntry(
                path=f"/browse?{facet}={_encode(value)}",
                last_modified=now,
                change_frequency=changefreq,
                priority=priority,
            )
            for value in seen
        )
    return entries


def dedupe(entries: Iterable[RouteEntry]) -> tuple[RouteEntry, ...]:
    """Drop repeated paths; the first occurrence wins."""
    unique: dict[str, RouteEntry] = {}
    for entry in entries:
        unique.setdefault(entry.path, entry)
    return tuple(unique.values())


async def _load_papers(store: PaperStoreProtocol | None, limit: int) -> list[Paper]:
    if store is None or limit <= 0:
        return []
    try:
        papers = await store.fetch_approved_papers(limit)
    except Exception:
        log.warning("sitemap_dynamic_routes_unavailable", exc_info=True)
        return []
    # Guard against stores that ignore the status filter or the cap
    return [paper for paper in papers if paper.status == "approved"][:limit]


async def build_sitemap(
    base_url: str,
    static_routes: Iterable[StaticRoute],
    store: PaperStoreProtocol | None,
    *,
    limit: int = DEFAULT_PAPER_LIMIT,
    now: datetime | None = None,
) -> SitemapDocument:
    """Build a fresh sitemap document.

    Never raises because of the paper store: on failure the document holds
    the static routes only.
    """
    base_url = validate_base_url(base_url)
    now = now or datetime.now(UTC)

    papers = await _load_papers(store, limit)
    entries = dedupe(
        [
            *static_entries(static_routes, now),
            *paper_entries(papers, now),
            *facet_entries(papers, now),
        ]
    )

    log.info(
        "sitemap_built",
        url_count=len(entries),
        paper_count=len(papers),
    )
    return SitemapDocument(base_url=base_url, entries=entries, generated_at=now)


# ---------------------------------------------------------------------------
# XML rendering
# ---------------------------------------------------------------------------


def format_lastmod(moment: datetime) -> str:
    return moment.astimezone(UTC).strftime("%Y-%m-%d")


def format_priority(priority: float) -> str:
    """Shortest exact rendering: 1.0, 0.5, 0.85."""
    return repr(float(priority))


def render_xml(document: SitemapDocument) -> str:
    """Serialise a document to a ``<urlset>`` XML string."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<urlset xmlns="{SITEMAP_NAMESPACE}">',
    ]
    for entry in document.entries:
        lines.append("  <url>")
        lines.append(f"    <loc>{escape(document.base_url + entry.path)}</loc>")
        lines.append(f"    <lastmod>{format_lastmod(entry.last_modified)}</lastmod>")
        lines.append(f"    <changefreq>{entry.change_frequency.value}</changefreq>")
        lines.append(f"    <priority>{format_priority(entry.priority)}</priority>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def render_sitemap_index(locations: Iterable[str], lastmod: datetime) -> str:
    """Serialise a ``<sitemapindex>`` pointing at the given sitemap URLs."""
    stamp = format_lastmod(lastmod)
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<sitemapindex xmlns="{SITEMAP_NAMESPACE}">',
    ]
    for loc in locations:
        lines.append("  <sitemap>")
        lines.append(f"    <loc>{escape(loc)}</loc>")
        lines.append(f"    <lastmod>{stamp}</lastmod>")
        lines.append("  </sitemap>")
    lines.append("</sitemapindex>")
    return "\n".join(lines) + "\n"
