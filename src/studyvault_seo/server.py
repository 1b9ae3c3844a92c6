"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState inside the Starlette lifespan
- Map routes to handlers and SeoSyncError to JSON / plain-text responses
- Start uvicorn
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

import studyvault_seo.handlers.google_search as h_google
import studyvault_seo.handlers.sitemap as h_sitemap
from studyvault_seo import __version__
from studyvault_seo.config import Settings
from studyvault_seo.errors import ErrorCode, SeoSyncError
from studyvault_seo.httpclient import build_http_client
from studyvault_seo.publisher import (
    ROBOTS_CACHE_CONTROL,
    SITEMAP_CACHE_CONTROL,
    SITEMAP_MEDIA_TYPE,
)
from studyvault_seo.state import AppState, build_state
from studyvault_seo.store import open_paper_store

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable

    from starlette.requests import Request

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout carries CLI command output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    if getattr(app.state, "seo", None) is not None:
        # State injected by the caller (tests); it owns the resources
        yield
        return

    settings: Settings = app.state.settings
    log.info("server_starting", version=__version__, serve_mode=settings.sitemap.serve_mode)

    http_client = build_http_client(settings.http)
    try:
        async with open_paper_store(settings.store.db_path) as store:
            app.state.seo = build_state(settings, http_client, store)
            log.info(
                "server_started",
                version=__version__,
                base_url=settings.site.base_url,
                output_dir=settings.sitemap.output_dir,
            )
            yield
    finally:
        app.state.seo = None
        await http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _state(request: Request) -> AppState:
    return request.app.state.seo


def _error_response(route: str, failure_message: str, exc: SeoSyncError) -> JSONResponse:
    log.warning(
        "route_error",
        route=route,
        code=exc.code,
        message=exc.message,
        step=exc.step,
        status_code=exc.status_code,
        recoverable=exc.recoverable,
    )
    if exc.code == ErrorCode.INVALID_INPUT:
        return JSONResponse({"success": False, "message": exc.message}, status_code=400)
    if exc.code == ErrorCode.NOT_INITIALIZED:
        return JSONResponse({"success": False, "message": exc.message}, status_code=500)

    body: dict[str, Any] = {"success": False, "message": failure_message, "error": exc.message}
    if exc.step is not None:
        body["step"] = exc.step
    return JSONResponse(body, status_code=500)


async def _json_route(route: str, failure_message: str, call: Awaitable[dict]) -> JSONResponse:
    try:
        return JSONResponse(await call)
    except SeoSyncError as exc:
        return _error_response(route, failure_message, exc)
    except Exception:
        log.error("route_unexpected_error", route=route, exc_info=True)
        raise


async def _read_json(request: Request) -> Any:
    """Parsed request body; an empty body reads as ``None``."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise SeoSyncError(
            code=ErrorCode.INVALID_INPUT,
            message="Request body must be valid JSON",
        ) from exc


async def _with_body(request: Request, handler: Any) -> dict:
    return await handler(_state(request), await _read_json(request))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


async def sitemap_xml(request: Request) -> Response:
    try:
        xml = await h_sitemap.sitemap_xml(_state(request))
    except SeoSyncError as exc:
        if exc.code == ErrorCode.ARTIFACT_NOT_FOUND:
            log.warning("sitemap_artifact_missing", message=exc.message)
            return PlainTextResponse("Sitemap not found", status_code=404)
        log.warning("sitemap_generation_failed", code=exc.code, message=exc.message)
        return PlainTextResponse("Error generating sitemap", status_code=500)
    except Exception:
        log.error("sitemap_generation_failed", exc_info=True)
        return PlainTextResponse("Error generating sitemap", status_code=500)

    return Response(
        xml,
        media_type=SITEMAP_MEDIA_TYPE,
        headers={"Cache-Control": SITEMAP_CACHE_CONTROL},
    )


async def robots_txt(request: Request) -> Response:
    return PlainTextResponse(
        h_sitemap.robots_txt(_state(request)),
        headers={"Cache-Control": ROBOTS_CACHE_CONTROL},
    )


async def generate_sitemap(request: Request) -> Response:
    return await _json_route(
        "generate_sitemap",
        "Failed to generate sitemap",
        h_sitemap.generate_sitemap(_state(request)),
    )


async def submit_sitemap(request: Request) -> Response:
    return await _json_route(
        "submit_sitemap",
        "Failed to submit sitemap",
        _with_body(request, h_google.submit_sitemap),
    )


async def sitemap_status(request: Request) -> Response:
    return await _json_route(
        "sitemap_status",
        "Failed to get sitemap status",
        h_google.sitemap_status(_state(request)),
    )


async def refresh_sitemap(request: Request) -> Response:
    return await _json_route(
        "refresh_sitemap",
        "Failed to refresh sitemap",
        _with_body(request, h_google.refresh_sitemap),
    )


async def site_info(request: Request) -> Response:
    return await _json_route(
        "site_info",
        "Failed to get site info",
        h_google.site_info(_state(request)),
    )


async def recrawl(request: Request) -> Response:
    return await _json_route(
        "recrawl",
        "Failed to request URL recrawl",
        _with_body(request, h_google.recrawl),
    )


async def remove_url(request: Request) -> Response:
    return await _json_route(
        "remove_url",
        "Failed to request URL removal",
        _with_body(request, h_google.remove_url),
    )


async def url_status(request: Request) -> Response:
    return await _json_route(
        "url_status",
        "Failed to get URL status",
        h_google.url_status(_state(request), request.query_params.get("url")),
    )


async def bulk_index(request: Request) -> Response:
    return await _json_route(
        "bulk_index",
        "Failed to bulk index URLs",
        _with_body(request, h_google.bulk_index),
    )


async def ping(request: Request) -> Response:
    return await _json_route(
        "ping",
        "Failed to ping search engines",
        _with_body(request, h_google.ping),
    )


async def health(request: Request) -> Response:
    state = _state(request)
    return JSONResponse(
        {
            "status": "ok",
            "version": __version__,
            "serve_mode": state.settings.sitemap.serve_mode,
        }
    )


routes = [
    Route("/sitemap.xml", sitemap_xml, methods=["GET"]),
    Route("/robots.txt", robots_txt, methods=["GET"]),
    Route("/health", health, methods=["GET"]),
    Route("/api/generate-sitemap", generate_sitemap, methods=["POST"]),
    Route("/api/google-search/submit-sitemap", submit_sitemap, methods=["POST"]),
    Route("/api/google-search/sitemap-status", sitemap_status, methods=["GET"]),
    Route("/api/google-search/refresh-sitemap", refresh_sitemap, methods=["POST"]),
    Route("/api/google-search/site-info", site_info, methods=["GET"]),
    Route("/api/google-search/recrawl", recrawl, methods=["POST"]),
    Route("/api/google-search/remove-url", remove_url, methods=["POST"]),
    Route("/api/google-search/url-status", url_status, methods=["GET"]),
    Route("/api/google-search/bulk-index", bulk_index, methods=["POST"]),
    Route("/api/google-search/ping", ping, methods=["POST"]),
]


def create_app(settings: Settings | None = None, state: AppState | None = None) -> Starlette:
    """Build the Starlette app.

    Passing ``state`` skips resource creation in the lifespan; the caller
    owns the HTTP client and store.
    """
    if settings is None:
        settings = state.settings if state is not None else Settings()

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=settings.server.cors_origins,
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["Content-Type"],
            )
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.seo = state
    return app


def run_server(settings: Settings) -> None:
    """Serve the HTTP API with uvicorn."""
    setup_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )
