"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from pagecms import __description__, __version__
from pagecms.api.pages import router as pages_router
from pagecms.config import Settings
from pagecms.exceptions import InternalServerError
from pagecms.filesystem.seed_loader import resolve_seed_dir
from pagecms.services.page_service import CMSContext
from pagecms.store.document_store import DocumentStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.responses import Response

logger = logging.getLogger(__name__)

INTERNAL_SERVER_ERROR = "Internal Server Error"


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Request logging only in development
    logging.getLogger("uvicorn.access").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    _configure_logging(settings.debug)
    settings.validate_store()
    logger.info("Application: %s", __description__)
    logger.info("Version: %s", __version__)
    logger.info("Environment: %s", settings.environment)

    try:
        store = DocumentStore.from_settings(settings)
        await store.init()
    except Exception as exc:
        logger.critical(
            "Failed to initialize document store: %s. Check connection settings.", exc
        )
        raise
    app.state.store = store

    seed_dir = resolve_seed_dir(settings.seed_dir)
    logger.info("Seed directory: %s", seed_dir)
    context = CMSContext(store=store, seed_dir=seed_dir, debug=settings.debug)
    app.state.cms = context

    try:
        # Development re-seeds on every start to pick up template and page edits.
        await context.load_settings(force=settings.debug)
    except Exception as exc:
        logger.critical("Failed to load CMS settings: %s.", exc)
        await store.close()
        raise

    yield

    try:
        await store.close()
    except Exception as exc:
        logger.error("Error during document store shutdown: %s", exc, exc_info=True)

    logger.info("PageCMS stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="PageCMS",
        description=__description__,
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.middleware("http")
    async def security_headers(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        if settings.security_headers_enabled:
            response.headers.setdefault("X-Content-Type-Options", "nosniff")
            response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
            response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        return response

    app.include_router(pages_router)

    # Global exception handlers: details are logged, never sent to the client

    @app.exception_handler(InternalServerError)
    async def internal_server_error_handler(
        request: Request, exc: InternalServerError
    ) -> PlainTextResponse:
        logger.error(
            "%s in %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return PlainTextResponse(INTERNAL_SERVER_ERROR, status_code=500)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> PlainTextResponse:
        logger.error(
            "[DATA] ValidationError in %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return PlainTextResponse(INTERNAL_SERVER_ERROR, status_code=500)

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(request: Request, exc: RuntimeError) -> PlainTextResponse:
        if isinstance(exc, (NotImplementedError, RecursionError)):
            raise exc
        logger.error(
            "RuntimeError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return PlainTextResponse(INTERNAL_SERVER_ERROR, status_code=500)

    @app.exception_handler(TypeError)
    async def type_error_handler(request: Request, exc: TypeError) -> PlainTextResponse:
        logger.error(
            "[BUG] TypeError in %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return PlainTextResponse(INTERNAL_SERVER_ERROR, status_code=500)

    return app


app = create_app()


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings: Settings = app.state.settings
    uvicorn.run(
        "pagecms.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
