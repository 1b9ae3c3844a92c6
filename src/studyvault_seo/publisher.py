"""Sitemap publisher: static artifacts on disk and HTTP response headers.

Static files are replaced atomically (temp file, fsync, ``os.replace``,
directory fsync) so concurrent readers see either the previous or the new
file, never a torn one.
"""

from __future__ import annotations

import os
import secrets
import sys
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from studyvault_seo.builder import render_sitemap_index, render_xml
from studyvault_seo.errors import ErrorCode, SeoSyncError
from studyvault_seo.models.results import PublishResult
from studyvault_seo.robots import RobotsPolicy, render_robots_txt

if TYPE_CHECKING:
    from studyvault_seo.models.sitemap import SitemapDocument

log = structlog.get_logger()

SITEMAP_FILENAME = "sitemap.xml"
ROBOTS_FILENAME = "robots.txt"
SITEMAP_INDEX_FILENAME = "sitemap-index.xml"

SITEMAP_MEDIA_TYPE = "application/xml"
ROBOTS_MEDIA_TYPE = "text/plain"
SITEMAP_CACHE_CONTROL = "public, max-age=3600"
ROBOTS_CACHE_CONTROL = "public, max-age=86400"


class SitemapPublisher:
    """Writes sitemap artifacts under ``output_dir`` and reads them back."""

    def __init__(self, output_dir: Path, base_url: str, *, serve_http: bool = False) -> None:
        self.output_dir = output_dir
        self.base_url = base_url
        self.serve_http = serve_http

    @property
    def sitemap_path(self) -> Path:
        return self.output_dir / SITEMAP_FILENAME

    @property
    def robots_path(self) -> Path:
        return self.output_dir / ROBOTS_FILENAME

    @property
    def index_path(self) -> Path:
        return self.output_dir / SITEMAP_INDEX_FILENAME

    @property
    def sitemap_url(self) -> str:
        return f"{self.base_url}/{SITEMAP_FILENAME}"

    def robots_txt(self) -> str:
        return render_robots_txt(RobotsPolicy(sitemap_url=self.sitemap_url))

    def publish(self, document: SitemapDocument) -> PublishResult:
        """Write sitemap.xml, robots.txt and sitemap-index.xml."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

        write_text_atomic(self.sitemap_path, render_xml(document))
        write_text_atomic(self.robots_path, self.robots_txt())
        write_text_atomic(
            self.index_path,
            render_sitemap_index([self.sitemap_url], document.generated_at),
        )

        log.info(
            "sitemap_published",
            path=str(self.sitemap_path),
            url_count=len(document),
        )
        return PublishResult(
            served_via_http=self.serve_http,
            written_to_path=self.sitemap_path,
            robots_path=self.robots_path,
            index_path=self.index_path,
        )

    def read_sitemap(self) -> str:
        return _read_artifact(self.sitemap_path)


def _read_artifact(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise SeoSyncError(
            code=ErrorCode.ARTIFACT_NOT_FOUND,
            message=f"{path.name} not found",
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        log.warning("artifact_read_failed", path=str(path), exc_info=True)
        raise SeoSyncError(
            code=ErrorCode.GENERATION_FAILED,
            message=f"Could not read {path.name}",
            recoverable=True,
        ) from exc


def write_text_atomic(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` so readers never observe a partial file."""
    tmp_path = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
    try:
        _write_bytes_fsync(tmp_path, text.encode("utf-8"))
        os.replace(tmp_path, path)
        _fsync_directory(path.parent)
    finally:
        with suppress(OSError):
            tmp_path.unlink(missing_ok=True)


def _write_bytes_fsync(path: Path, data: bytes) -> None:
    with path.open("wb") as file_obj:
        file_obj.write(data)
        file_obj.flush()
        os.fsync(file_obj.fileno())


def _fsync_directory(path: Path) -> None:
    if sys.platform == "win32":
        return  # Windows does not support fsync on directory handles
    directory_fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(directory_fd)
    finally:
        os.close(directory_fd)
