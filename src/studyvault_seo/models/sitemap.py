from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

_UNSAFE_PATH_CHARS = re.compile(r'[\s<>"{}|\\^`]')


class ChangeFrequency(StrEnum):
    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


class RouteEntry(BaseModel):
    """Single ``<url>`` of a sitemap, relative to the site's base URL."""

    model_config = ConfigDict(frozen=True)

    path: str
    last_modified: datetime
    change_frequency: ChangeFrequency
    priority: float = Field(ge=0.0, le=1.0)

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v or not v.startswith("/"):
            raise ValueError(f"Route path must start with '/': {v!r}")
        if _UNSAFE_PATH_CHARS.search(v):
            raise ValueError(f"Route path is not URL-safe: {v!r}")
        return v


class Paper(BaseModel):
    """Read-only view of a record in the ``papers`` collection.

    Only the fields the sitemap reads are modelled. Empty facet strings are
    normalised to ``None``; naive timestamps are taken as UTC.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    status: str = ""
    subject: str | None = None
    course: str | None = None
    college: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @field_validator("subject", "course", "college", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> str | None:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> Any:
        # Firestore JSON exports serialise Timestamps as {"_seconds": ..., "_nanoseconds": ...}
        if isinstance(v, dict):
            seconds = v.get("_seconds", v.get("seconds"))
            if seconds is None:
                return None
            return datetime.fromtimestamp(int(seconds), tz=UTC)
        if v == "":
            return None
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


@dataclass(frozen=True)
class SitemapDocument:
    """An ordered, de-duplicated set of routes ready for serialisation.

    Built fresh on every generation trigger and never mutated.
    """

    base_url: str
    entries: tuple[RouteEntry, ...]
    generated_at: datetime

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def locations(self) -> list[str]:
        return [f"{self.base_url}{entry.path}" for entry in self.entries]
