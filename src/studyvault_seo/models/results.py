from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel


class PingResult(BaseModel):
    """Outcome of one crawler ping. Receipt only, not an indexing guarantee."""

    engine: str
    success: bool
    status_code: int | None = None
    error: str | None = None


class UrlIndexResult(BaseModel):
    """Per-URL outcome inside a bulk Indexing API submission."""

    url: str
    success: bool
    error: str | None = None
    result: dict[str, Any] | None = None


class PublishResult(BaseModel):
    served_via_http: bool
    written_to_path: Path | None = None
    robots_path: Path | None = None
    index_path: Path | None = None


class RefreshReport(BaseModel):
    deleted: list[str] = []
    submitted: str


class ValidationReport(BaseModel):
    url_count: int = 0
    errors: list[str] = []
    warnings: list[str] = []

    @property
    def valid(self) -> bool:
        return not self.errors
