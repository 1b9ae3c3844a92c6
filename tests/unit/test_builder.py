"""Unit tests for studyvault_seo.builder."""

from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest

from studyvault_seo.builder import (
    SITEMAP_NAMESPACE,
    build_sitemap,
    dedupe,
    facet_entries,
    format_lastmod,
    format_priority,
    paper_entries,
    render_sitemap_index,
    render_xml,
)
from studyvault_seo.config import _DEFAULT_STATIC_ROUTES, StaticRoute
from studyvault_seo.models.sitemap import ChangeFrequency, Paper, RouteEntry, SitemapDocument
from studyvault_seo.validator import validate_sitemap

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
BASE = "https://study-vault2.vercel.app"


def _locs(xml: str) -> list[str]:
    return re.findall(r"<loc>(.*?)</loc>", xml)


def _paths(document: SitemapDocument) -> list[str]:
    return [entry.path for entry in document.entries]


# ---------------------------------------------------------------------------
# build_sitemap
# ---------------------------------------------------------------------------


class TestBuildSitemap:
    async def test_example_paper_scenario(self, empty_store) -> None:
        empty_store.papers = [
            Paper(id="42", status="approved", subject="Math", createdAt="2024-01-01T00:00:00Z")
        ]
        document = await build_sitemap("https://example.com", [], empty_store, now=NOW)
        xml = render_xml(document)

        assert "<loc>https://example.com/browse?paper=42</loc>" in xml
        assert "<lastmod>2024-01-01</lastmod>" in xml
        assert "<loc>https://example.com/browse?subject=Math</loc>" in xml

    async def test_entry_count_is_static_plus_deduped_dynamic(self, fake_store) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, fake_store, now=NOW)

        # 3 papers, subjects {Math, Physics}, courses {BSc}, colleges {MIT, IIT Delhi}
        assert len(document) == len(_DEFAULT_STATIC_ROUTES) + 3 + 2 + 1 + 2
        paths = _paths(document)
        assert len(paths) == len(set(paths))

    async def test_output_order(self, fake_store) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, fake_store, now=NOW)
        dynamic = _paths(document)[len(_DEFAULT_STATIC_ROUTES) :]

        assert dynamic == [
            "/browse?paper=42",
            "/browse?paper=41",
            "/browse?paper=40",
            "/browse?subject=Math",
            "/browse?subject=Physics",
            "/browse?course=BSc",
            "/browse?college=MIT",
            "/browse?college=IIT%20Delhi",
        ]

    async def test_static_routes_first_with_build_time(self, fake_store) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, fake_store, now=NOW)
        home = document.entries[0]

        assert home.path == "/"
        assert home.change_frequency == ChangeFrequency.DAILY
        assert home.priority == 1.0
        assert home.last_modified == NOW

    async def test_paper_without_created_at_uses_build_time(self, fake_store) -> None:
        document = await build_sitemap(BASE, [], fake_store, now=NOW)
        by_path = {entry.path: entry for entry in document.entries}

        assert by_path["/browse?paper=40"].last_modified == NOW
        assert by_path["/browse?paper=42"].change_frequency == ChangeFrequency.WEEKLY
        assert by_path["/browse?paper=42"].priority == 0.8

    async def test_future_created_at_is_clamped(self, empty_store) -> None:
        empty_store.papers = [
            Paper(id="9", status="approved", created_at=datetime(2030, 1, 1, tzinfo=UTC))
        ]
        document = await build_sitemap(BASE, [], empty_store, now=NOW)

        assert document.entries[0].last_modified == NOW

    async def test_store_failure_degrades_to_static_routes(self, failing_store) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, failing_store, now=NOW)

        assert _paths(document) == [route.path for route in _DEFAULT_STATIC_ROUTES]
        report = validate_sitemap(render_xml(document), today=NOW.date())
        assert report.valid

    async def test_no_store_builds_static_only(self) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, None, now=NOW)
        assert len(document) == len(_DEFAULT_STATIC_ROUTES)

    async def test_limit_passed_to_store_and_enforced(self, fake_store) -> None:
        document = await build_sitemap(BASE, [], fake_store, limit=1, now=NOW)

        assert fake_store.calls == [1]
        assert [p for p in _paths(document) if "paper=" in p] == ["/browse?paper=42"]

    async def test_unapproved_papers_are_ignored(self, empty_store) -> None:
        empty_store.papers = [
            Paper(id="1", status="pending", subject="Secret"),
            Paper(id="2", status="approved"),
        ]
        document = await build_sitemap(BASE, [], empty_store, now=NOW)

        assert _paths(document) == ["/browse?paper=2"]

    async def test_rebuild_is_idempotent_apart_from_lastmod(self, fake_store) -> None:
        first = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, fake_store, now=NOW)
        second = await build_sitemap(
            BASE, _DEFAULT_STATIC_ROUTES, fake_store, now=datetime(2024, 6, 2, tzinfo=UTC)
        )

        def _stable(document: SitemapDocument) -> list[tuple]:
            return [(e.path, e.change_frequency, e.priority) for e in document.entries]

        assert _stable(first) == _stable(second)

    async def test_static_route_duplicated_by_facet_keeps_first(self, empty_store) -> None:
        empty_store.papers = [Paper(id="7", status="approved", subject="Math")]
        static = [StaticRoute(path="/browse?subject=Math", changefreq="monthly", priority=0.3)]
        document = await build_sitemap(BASE, static, empty_store, now=NOW)

        matches = [e for e in document.entries if e.path == "/browse?subject=Math"]
        assert len(matches) == 1
        assert matches[0].priority == 0.3

    @pytest.mark.parametrize(
        "base_url",
        ["http://example.com", "https://example.com/", "https://example.com/app", "example.com"],
    )
    async def test_invalid_base_url_rejected(self, base_url: str) -> None:
        with pytest.raises(ValueError):
            await build_sitemap(base_url, [], None, now=NOW)


# ---------------------------------------------------------------------------
# Route helpers
# ---------------------------------------------------------------------------


class TestRouteHelpers:
    def test_paper_ids_are_url_encoded(self) -> None:
        entries = paper_entries([Paper(id="a b&c", status="approved")], NOW)
        assert entries[0].path == "/browse?paper=a%20b%26c"

    def test_paper_without_id_skipped(self) -> None:
        assert paper_entries([Paper(id="", status="approved")], NOW) == []

    def test_facet_values_encoded_like_encode_uri_component(self) -> None:
        papers = [Paper(id="1", subject="C++ & Data (Intro)")]
        paths = [entry.path for entry in facet_entries(papers, NOW)]
        assert paths == ["/browse?subject=C%2B%2B%20%26%20Data%20(Intro)"]

    def test_blank_facets_skipped(self) -> None:
        papers = [Paper(id="1", subject="  ", course="", college=None)]
        assert facet_entries(papers, NOW) == []

    def test_dedupe_first_wins(self) -> None:
        a = RouteEntry(path="/x", last_modified=NOW, change_frequency="daily", priority=0.1)
        b = RouteEntry(path="/x", last_modified=NOW, change_frequency="weekly", priority=0.9)
        c = RouteEntry(path="/y", last_modified=NOW, change_frequency="weekly", priority=0.9)

        assert dedupe([a, b, c]) == (a, c)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRenderXml:
    async def test_document_shape(self, fake_store) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, fake_store, now=NOW)
        xml = render_xml(document)

        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n')
        assert f'<urlset xmlns="{SITEMAP_NAMESPACE}">' in xml
        assert xml.count("<url>") == len(document)
        assert _locs(xml)[0] == f"{BASE}/"
        assert "<priority>1.0</priority>" in xml
        assert "<priority>0.5</priority>" in xml

    async def test_configured_priority_is_not_rounded(self) -> None:
        routes = [StaticRoute(path="/pricing", priority=0.85)]
        xml = render_xml(await build_sitemap(BASE, routes, None, now=NOW))
        assert "<priority>0.85</priority>" in xml
        assert validate_sitemap(xml).valid

    def test_format_priority(self) -> None:
        assert [format_priority(p) for p in (1.0, 1, 0.5, 0.85, 0.0)] == [
            "1.0",
            "1.0",
            "0.5",
            "0.85",
            "0.0",
        ]

    def test_loc_is_xml_escaped(self) -> None:
        entry = RouteEntry(
            path="/browse?subject=a&course=b",
            last_modified=NOW,
            change_frequency="daily",
            priority=0.7,
        )
        xml = render_xml(SitemapDocument(base_url=BASE, entries=(entry,), generated_at=NOW))
        assert f"<loc>{BASE}/browse?subject=a&amp;course=b</loc>" in xml

    def test_lastmod_format_is_utc_date(self) -> None:
        moment = datetime.fromisoformat("2024-01-01T23:30:00-05:00")
        assert format_lastmod(moment) == "2024-01-02"

    def test_sitemap_index(self) -> None:
        xml = render_sitemap_index([f"{BASE}/sitemap.xml"], NOW)
        assert f'<sitemapindex xmlns="{SITEMAP_NAMESPACE}">' in xml
        assert f"<loc>{BASE}/sitemap.xml</loc>" in xml
        assert "<lastmod>2024-06-01</lastmod>" in xml
