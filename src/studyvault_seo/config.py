"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (STUDYVAULT__SITE__BASE_URL=https://example.com)
  2. studyvault-seo.yaml    (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

import platformdirs
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("studyvault-seo")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "papers.db")
_DEFAULT_OUTPUT_DIR = str(Path(_DEFAULT_DATA_DIR) / "public")
_DEFAULT_CREDENTIALS_PATH = str(Path(_DEFAULT_DATA_DIR) / "credentials.json")

ChangeFreq = Literal["always", "hourly", "daily", "weekly", "monthly", "yearly", "never"]


def _find_config_file() -> str | None:
    """Return the path of the first studyvault-seo.yaml found, or None."""
    candidates = [
        Path("studyvault-seo.yaml"),
        Path(platformdirs.user_config_dir("studyvault-seo")) / "studyvault-seo.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


def validate_base_url(value: str) -> str:
    """Require an absolute HTTPS origin without a trailing slash."""
    parsed = urlparse(value)
    if parsed.scheme != "https" or not parsed.netloc:
        raise ValueError(f"Base URL must be an absolute https:// origin: {value!r}")
    if value.endswith("/") or parsed.path or parsed.query or parsed.fragment:
        raise ValueError(f"Base URL must not carry a path or trailing slash: {value!r}")
    return value


class StaticRoute(BaseModel):
    path: str
    changefreq: ChangeFreq = "weekly"
    priority: float = Field(default=0.5, ge=0.0, le=1.0)


_DEFAULT_STATIC_ROUTES = [
    StaticRoute(path="/", changefreq="daily", priority=1.0),
    StaticRoute(path="/browse", changefreq="hourly", priority=0.9),
    StaticRoute(path="/upload", changefreq="weekly", priority=0.8),
    StaticRoute(path="/about", changefreq="monthly", priority=0.7),
    StaticRoute(path="/contact", changefreq="monthly", priority=0.6),
    StaticRoute(path="/faq", changefreq="monthly", priority=0.6),
    StaticRoute(path="/help-center", changefreq="monthly", priority=0.6),
    StaticRoute(path="/privacy", changefreq="yearly", priority=0.5),
    StaticRoute(path="/terms", changefreq="yearly", priority=0.5),
    StaticRoute(path="/cookie-policy", changefreq="yearly", priority=0.5),
]


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: list[str] = ["http://localhost:5173"]


class SiteSettings(BaseModel):
    base_url: str = "https://study-vault2.vercel.app"
    # Search Console property; defaults to "<base_url>/"
    property_url: str | None = None

    @field_validator("base_url")
    @classmethod
    def check_base_url(cls, v: str) -> str:
        return validate_base_url(v)

    @property
    def sitemap_url(self) -> str:
        return f"{self.base_url}/sitemap.xml"

    @property
    def search_console_property(self) -> str:
        return self.property_url or f"{self.base_url}/"


class SitemapSettings(BaseModel):
    output_dir: str = _DEFAULT_OUTPUT_DIR
    paper_limit: int = Field(default=1000, ge=0)
    serve_mode: Literal["dynamic", "static"] = "dynamic"
    static_routes: list[StaticRoute] = _DEFAULT_STATIC_ROUTES


class StoreSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH


class GoogleSettings(BaseModel):
    credentials_path: str = _DEFAULT_CREDENTIALS_PATH
    # Minimum gap between successive Indexing API calls in one bulk run
    indexing_interval_seconds: float = Field(default=1.0, ge=1.0)


class CrawlerSettings(BaseModel):
    engines: dict[str, str] = {
        "google": "http://www.google.com/ping",
        "bing": "http://www.bing.com/ping",
    }


class HttpSettings(BaseModel):
    timeout_seconds: float = 30.0
    user_agent: str = "studyvault-seo/1.0"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: STUDYVAULT__SERVER__PORT=9090
        env_prefix="STUDYVAULT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    site: SiteSettings = SiteSettings()
    sitemap: SitemapSettings = SitemapSettings()
    store: StoreSettings = StoreSettings()
    google: GoogleSettings = GoogleSettings()
    crawler: CrawlerSettings = CrawlerSettings()
    http: HttpSettings = HttpSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
