"""Command-line entry point for studyvault-seo."""

from __future__ import annotations

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from pydantic import ValidationError

import studyvault_seo.handlers.google_search as h_google
import studyvault_seo.handlers.sitemap as h_sitemap
from studyvault_seo import __version__
from studyvault_seo.config import Settings
from studyvault_seo.errors import SeoSyncError
from studyvault_seo.httpclient import build_http_client
from studyvault_seo.models.sitemap import Paper
from studyvault_seo.server import run_server, setup_logging
from studyvault_seo.state import build_state
from studyvault_seo.store import open_paper_store
from studyvault_seo.validator import validate_sitemap

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from studyvault_seo.state import AppState


@asynccontextmanager
async def _app_state(settings: Settings, *, with_store: bool = False) -> AsyncIterator[AppState]:
    http_client = build_http_client(settings.http)
    try:
        if with_store:
            async with open_paper_store(settings.store.db_path) as store:
                yield build_state(settings, http_client, store)
        else:
            yield build_state(settings, http_client)
    finally:
        await http_client.aclose()


def _run(
    settings: Settings,
    handler: Callable[[AppState], Awaitable[dict]],
    *,
    with_store: bool = False,
) -> dict:
    """Run one handler against a fresh AppState; exit 1 on SeoSyncError."""

    async def _go() -> dict:
        async with _app_state(settings, with_store=with_store) as state:
            return await handler(state)

    try:
        return asyncio.run(_go())
    except SeoSyncError as exc:
        click.echo(f"Error [{exc.code}]: {exc.message}", err=True)
        if exc.step:
            click.echo(f"Failed step: {exc.step}", err=True)
        sys.exit(1)


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


@click.group()
@click.version_option(__version__, prog_name="studyvault-seo")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """StudyVault SEO - sitemap generation and search engine index sync."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    if verbose:
        settings.logging.level = "DEBUG"
    setup_logging(settings)
    ctx.obj = settings


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (defaults to server.host)")
@click.option("--port", type=int, default=None, help="Port (defaults to server.port)")
@click.pass_obj
def serve(settings: Settings, host: str | None, port: int | None) -> None:
    """Serve sitemap.xml, robots.txt and the Google search API over HTTP."""
    if host:
        settings.server.host = host
    if port:
        settings.server.port = port
    run_server(settings)


@cli.command("generate")
@click.option("--ping", "ping_engines", is_flag=True, help="Ping search engines afterwards")
@click.pass_obj
def generate(settings: Settings, ping_engines: bool) -> None:
    """Build the sitemap from the paper store and write the static artifacts."""
    result = _run(
        settings,
        lambda state: h_sitemap.generate_sitemap(state, ping=ping_engines),
        with_store=True,
    )
    click.echo(f"Sitemap written to {result['written_to']} ({result['url_count']} URLs)")
    for ping_result in result.get("pings", []):
        status = "ok" if ping_result["success"] else f"failed ({ping_result['error']})"
        click.echo(f"  ping {ping_result['engine']}: {status}")


@cli.command("ping")
@click.option("--sitemap-url", default=None, help="Sitemap URL (defaults to <base_url>/sitemap.xml)")
@click.pass_obj
def ping(settings: Settings, sitemap_url: str | None) -> None:
    """Notify search engines that the sitemap changed."""
    body = {"sitemapUrl": sitemap_url} if sitemap_url else None
    result = _run(settings, lambda state: h_google.ping(state, body))
    click.echo(result["message"])
    for ping_result in result["results"]:
        status = "ok" if ping_result["success"] else f"failed ({ping_result['error']})"
        click.echo(f"  {ping_result['engine']}: {status}")


@cli.command("submit")
@click.option("--sitemap-url", default=None, help="Sitemap URL (defaults to <base_url>/sitemap.xml)")
@click.option("--refresh", is_flag=True, help="Delete superseded registrations first")
@click.option("--old-url", default=None, help="With --refresh, retire only this registration")
@click.pass_obj
def submit(settings: Settings, sitemap_url: str | None, refresh: bool, old_url: str | None) -> None:
    """Register the sitemap with Google Search Console."""
    if old_url and not refresh:
        raise click.UsageError("--old-url requires --refresh")

    body: dict[str, str] = {}
    if sitemap_url:
        body["sitemapUrl"] = sitemap_url
    if old_url:
        body["oldSitemapUrl"] = old_url

    if refresh:
        result = _run(settings, lambda state: h_google.refresh_sitemap(state, body))
        for feedpath in result["deleted"]:
            click.echo(f"Deleted {feedpath}")
        click.echo(f"Submitted {result['submitted']}")
    else:
        result = _run(settings, lambda state: h_google.submit_sitemap(state, body))
        click.echo(f"Submitted {result['details']['feedpath']}")


@cli.command("list-sitemaps")
@click.pass_obj
def list_sitemaps(settings: Settings) -> None:
    """List sitemaps registered for the Search Console property."""
    result = _run(settings, h_google.sitemap_status)
    if not result["sitemaps"]:
        click.echo("No sitemaps registered")
    for sitemap in result["sitemaps"]:
        pending = " (pending)" if sitemap.get("isPending") else ""
        click.echo(f"{sitemap['feedpath']}{pending}")


@cli.command("site-info")
@click.pass_obj
def site_info(settings: Settings) -> None:
    """Show the Search Console property and the service account's permission on it."""
    result = _run(settings, h_google.site_info)
    site = result["site"]
    click.echo(f"{site['siteUrl']} ({site['permissionLevel'] or 'unknown permission'})")


@cli.command("index")
@click.argument("urls", nargs=-1, required=True)
@click.option("--delete", is_flag=True, help="Send URL_DELETED instead of URL_UPDATED")
@click.pass_obj
def index(settings: Settings, urls: tuple[str, ...], delete: bool) -> None:
    """Notify the Indexing API about one or more URLs, one per second."""
    body = {"urls": list(urls)}
    result = _run(settings, lambda state: h_google.bulk_index(state, body, delete=delete))
    for item in result["results"]:
        status = "ok" if item["success"] else f"failed ({item.get('error')})"
        click.echo(f"{item['url']}: {status}")
    click.echo(result["message"])

    if any(not item["success"] for item in result["results"]):
        sys.exit(1)


@cli.command("url-status")
@click.argument("url")
@click.pass_obj
def url_status(settings: Settings, url: str) -> None:
    """Show Indexing API notification metadata for a URL."""
    result = _run(settings, lambda state: h_google.url_status(state, url))
    _echo_json(result["metadata"])


@cli.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(path: Path) -> None:
    """Check a sitemap file for structural and date errors."""
    report = validate_sitemap(path.read_text(encoding="utf-8"))
    for warning in report.warnings:
        click.echo(f"warning: {warning}")
    for error in report.errors:
        click.echo(f"error: {error}", err=True)

    if not report.valid:
        click.echo(f"{path}: {len(report.errors)} error(s) in {report.url_count} URLs", err=True)
        sys.exit(1)
    click.echo(f"{path}: valid ({report.url_count} URLs)")


@cli.command("import-papers")
@click.argument("export", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def import_papers(settings: Settings, export: Path) -> None:
    """Load a JSON export of the papers collection into the local store.

    Accepts a list of paper objects or a mapping of document id to paper.
    """
    try:
        raw = json.loads(export.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise click.ClickException(f"{export} is not valid JSON: {exc}") from exc

    if isinstance(raw, dict):
        raw = [{"id": doc_id, **doc} for doc_id, doc in raw.items() if isinstance(doc, dict)]
    if not isinstance(raw, list):
        raise click.ClickException("Expected a JSON list or object of papers")

    papers: list[Paper] = []
    skipped = 0
    for item in raw:
        try:
            papers.append(Paper.model_validate(item))
        except ValidationError:
            skipped += 1

    async def _import() -> int:
        async with open_paper_store(settings.store.db_path) as store:
            return await store.upsert_papers(papers)

    written = asyncio.run(_import())
    click.echo(f"Imported {written} papers ({skipped} skipped)")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
