"""
Main FastAPI application entry point.
Responsibilities: App setup, router registration, CORS, error translation,
startup/shutdown hooks.
"""
import uuid
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .db.migrations import run_sql_migrations
from .dependencies import ServiceContainer, build_container
from .errors import AutoRAGError
from .logging_config import logger
from .ollama_boot import ensure_ollama_model
from .routes import documents, query
from .services.model_service import resolve_model

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message, "status": status_code}, status_code=status_code)


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Pre-built clients and pipelines. When omitted they are
            built from the environment at startup, migrations are run and
            models are warmed up.
    """
    app = FastAPI(title="AutoRAG", version="1.0.0")
    app.state.container = container

    app.include_router(query.router)
    app.include_router(documents.router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    # -------------------------------------------------
    # Middleware
    # -------------------------------------------------

    @app.middleware("http")
    async def cors_and_context(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request.headers.get("X-Request-ID") or str(uuid.uuid4()),
            method=request.method,
            path=request.url.path,
        )

        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error("Unhandled error", exc_info=e)
                response = _error(500, "Internal server error")

        response.headers.update(CORS_HEADERS)
        return response

    # -------------------------------------------------
    # Error translation
    # -------------------------------------------------

    @app.exception_handler(AutoRAGError)
    async def handle_app_error(request: Request, exc: AutoRAGError):
        if exc.status_code >= 500:
            logger.error("Request failed", error=str(exc))
            return _error(exc.status_code, "Internal server error")
        logger.warning("Request rejected", status=exc.status_code, error=exc.message)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request body", errors=str(exc.errors()))
        return _error(400, "Invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        # Unknown method/path combinations are reported as not found
        if exc.status_code in (404, 405):
            return _error(404, "Not found")
        return _error(exc.status_code, str(exc.detail))

    # -------------------------------------------------
    # Startup
    # -------------------------------------------------

    @app.on_event("startup")
    async def startup_event():
        """Build clients, run migrations and warm up models."""
        if app.state.container is not None:
            return

        settings = get_settings()
        app.state.container = build_container(settings)
        container = app.state.container

        try:
            if container.engine is not None:
                logger.info("Running database migrations...")
                run_sql_migrations(container.engine, settings.embed_dim)

            preload = getattr(container.embedder, "preload", None)
            if preload is not None:
                logger.info("Preloading embedding model...")
                preload()

            provider, model_name = resolve_model(settings.llm_model)
            if provider == "ollama":
                logger.info("Ensuring Ollama model is available...", model=model_name)
                await ensure_ollama_model(settings.ollama_url, model_name)
        except Exception as e:
            logger.error("Startup initialization error", exc_info=e)
            # Continue anyway - app might still be usable

    @app.on_event("shutdown")
    async def shutdown_event():
        container = app.state.container
        if container is not None and container.engine is not None:
            container.engine.dispose()
        logger.info("Application shutting down")

    return app


app = create_app()
