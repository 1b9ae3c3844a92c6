from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from studyvault_seo.models.google import check_http_url


class RecrawlInput(BaseModel):
    url: str = Field(min_length=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return check_http_url(v)


class BulkIndexInput(BaseModel):
    # Elements are checked one by one during submission so a bad URL fails alone
    urls: list[str] = Field(min_length=1)

    @field_validator("urls")
    @classmethod
    def strip_urls(cls, v: list[str]) -> list[str]:
        return [url.strip() for url in v]


class SubmitSitemapInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sitemap_url: str | None = Field(default=None, alias="sitemapUrl")

    @field_validator("sitemap_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        return None if v is None else check_http_url(v)


class RefreshSitemapInput(SubmitSitemapInput):
    old_sitemap_url: str | None = Field(default=None, alias="oldSitemapUrl")

    @field_validator("old_sitemap_url")
    @classmethod
    def validate_old_url(cls, v: str | None) -> str | None:
        return None if v is None else check_http_url(v)
