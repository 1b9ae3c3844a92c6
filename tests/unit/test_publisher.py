"""Unit tests for studyvault_seo.publisher and studyvault_seo.robots."""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from studyvault_seo.builder import build_sitemap, render_xml
from studyvault_seo.config import _DEFAULT_STATIC_ROUTES
from studyvault_seo.errors import ErrorCode, SeoSyncError
from studyvault_seo.publisher import SitemapPublisher, write_text_atomic
from studyvault_seo.robots import RobotsPolicy, render_robots_txt

if TYPE_CHECKING:
    from pathlib import Path

NOW = datetime(2024, 6, 1, tzinfo=UTC)
BASE = "https://study-vault2.vercel.app"


# ---------------------------------------------------------------------------
# robots.txt
# ---------------------------------------------------------------------------


class TestRobotsTxt:
    def test_contains_absolute_sitemap_url(self) -> None:
        text = render_robots_txt(RobotsPolicy(sitemap_url=f"{BASE}/sitemap.xml"))
        assert f"Sitemap: {BASE}/sitemap.xml" in text.splitlines()

    def test_default_group_and_disallows(self) -> None:
        lines = render_robots_txt(RobotsPolicy(sitemap_url=f"{BASE}/sitemap.xml")).splitlines()

        assert lines[1:3] == ["User-agent: *", "Allow: /"]
        assert "Disallow: /admin/" in lines
        assert "Disallow: /dashboard/" in lines
        assert "Disallow: /browse?*sort=*" in lines
        assert "Allow: /browse" in lines

    def test_crawl_delay_belongs_to_wildcard_group(self) -> None:
        lines = render_robots_txt(RobotsPolicy(sitemap_url=f"{BASE}/sitemap.xml")).splitlines()
        assert lines.index("Crawl-delay: 1") < lines.index("User-agent: Googlebot")

    def test_per_bot_groups(self) -> None:
        text = render_robots_txt(RobotsPolicy(sitemap_url=f"{BASE}/sitemap.xml"))
        assert "User-agent: Googlebot\nAllow: /" in text
        assert "User-agent: Bingbot\nAllow: /" in text

    def test_crawl_delay_can_be_omitted(self) -> None:
        text = render_robots_txt(RobotsPolicy(sitemap_url=f"{BASE}/sitemap.xml", crawl_delay=None))
        assert "Crawl-delay" not in text


# ---------------------------------------------------------------------------
# SitemapPublisher
# ---------------------------------------------------------------------------


@pytest.fixture()
def publisher(tmp_path: Path) -> SitemapPublisher:
    return SitemapPublisher(tmp_path / "public", BASE)


class TestPublish:
    async def test_writes_all_artifacts(self, publisher: SitemapPublisher) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, None, now=NOW)
        result = publisher.publish(document)

        assert result.served_via_http is False
        assert result.written_to_path == publisher.sitemap_path
        assert publisher.sitemap_path.read_text(encoding="utf-8") == render_xml(document)
        assert f"Sitemap: {BASE}/sitemap.xml" in publisher.robots_path.read_text(encoding="utf-8")
        assert f"<loc>{BASE}/sitemap.xml</loc>" in publisher.index_path.read_text(encoding="utf-8")

    async def test_overwrite_leaves_no_temp_files(self, publisher: SitemapPublisher) -> None:
        document = await build_sitemap(BASE, _DEFAULT_STATIC_ROUTES, None, now=NOW)
        publisher.publish(document)
        publisher.publish(document)

        names = sorted(p.name for p in publisher.output_dir.iterdir())
        assert names == ["robots.txt", "sitemap-index.xml", "sitemap.xml"]

    def test_read_back(self, publisher: SitemapPublisher) -> None:
        publisher.output_dir.mkdir(parents=True)
        publisher.sitemap_path.write_text("<urlset/>", encoding="utf-8")
        assert publisher.read_sitemap() == "<urlset/>"

    def test_read_missing_raises_not_found(self, publisher: SitemapPublisher) -> None:
        with pytest.raises(SeoSyncError) as exc_info:
            publisher.read_sitemap()
        assert exc_info.value.code == ErrorCode.ARTIFACT_NOT_FOUND

    def test_sitemap_url(self, publisher: SitemapPublisher) -> None:
        assert publisher.sitemap_url == f"{BASE}/sitemap.xml"


class TestWriteTextAtomic:
    def test_replaces_existing_content(self, tmp_path: Path) -> None:
        target = tmp_path / "sitemap.xml"
        target.write_text("old", encoding="utf-8")

        write_text_atomic(target, "new")

        assert target.read_text(encoding="utf-8") == "new"
        assert list(tmp_path.iterdir()) == [target]

    def test_failed_replace_keeps_old_file_and_cleans_temp(self, tmp_path: Path) -> None:
        target = tmp_path / "sitemap.xml"
        target.write_text("old", encoding="utf-8")

        with (
            patch("studyvault_seo.publisher.os.replace", side_effect=OSError("disk full")),
            pytest.raises(OSError),
        ):
            write_text_atomic(target, "new")

        assert target.read_text(encoding="utf-8") == "old"
        assert os.listdir(tmp_path) == ["sitemap.xml"]
