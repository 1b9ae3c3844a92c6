from __future__ import annotations

from studyvault_seo.models.api import (
    BulkIndexInput,
    RecrawlInput,
    RefreshSitemapInput,
    SubmitSitemapInput,
)
from studyvault_seo.models.google import (
    IndexingAction,
    IndexingNotification,
    ServiceAccountInfo,
    SiteInfo,
    SitemapRegistration,
)
from studyvault_seo.models.results import (
    PingResult,
    PublishResult,
    RefreshReport,
    UrlIndexResult,
    ValidationReport,
)
from studyvault_seo.models.sitemap import ChangeFrequency, Paper, RouteEntry, SitemapDocument

__all__ = [
    # sitemap
    "ChangeFrequency",
    "RouteEntry",
    "Paper",
    "SitemapDocument",
    # google
    "ServiceAccountInfo",
    "SitemapRegistration",
    "SiteInfo",
    "IndexingAction",
    "IndexingNotification",
    # results
    "PingResult",
    "UrlIndexResult",
    "PublishResult",
    "RefreshReport",
    "ValidationReport",
    # http inputs
    "RecrawlInput",
    "BulkIndexInput",
    "SubmitSitemapInput",
    "RefreshSitemapInput",
]
