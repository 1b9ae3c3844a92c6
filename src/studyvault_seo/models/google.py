from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def check_http_url(v: str) -> str:
    v = v.strip()
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    if len(v) > 2048:
        raise ValueError("URL must be at most 2048 characters")
    return v


class ServiceAccountInfo(BaseModel):
    """Subset of a Google service-account key file needed for JWT auth."""

    model_config = ConfigDict(extra="ignore")

    client_email: str = Field(min_length=1)
    private_key: str = Field(min_length=1, repr=False)
    private_key_id: str | None = None
    token_uri: str = GOOGLE_TOKEN_URI


class SitemapRegistration(BaseModel):
    """A sitemap as registered with the Search Console property."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    feedpath: str
    type: str = ""
    last_submitted: datetime | None = Field(default=None, alias="lastSubmitted")
    is_pending: bool = Field(default=False, alias="isPending")
    warnings: int = 0
    errors: int = 0


class SiteInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    site_url: str = Field(alias="siteUrl")
    permission_level: str = Field(default="", alias="permissionLevel")


class IndexingAction(StrEnum):
    URL_UPDATED = "URL_UPDATED"
    URL_DELETED = "URL_DELETED"


class IndexingNotification(BaseModel):
    url: str
    action: IndexingAction

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return check_http_url(v)

    def to_request_body(self) -> dict:
        return {"url": self.url, "type": self.action.value}
