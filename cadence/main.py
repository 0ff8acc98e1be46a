"""FastAPI entrypoint for the periodic-note task service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cadence.config import configure_logging, load_config
from cadence.errors import ErrorResponse, McpError, error_response
from cadence.mcp import register_mcp_handlers
from cadence.vault_scope import AUTH_EXEMPT_PATHS, SERVICE_TOKEN_HEADER

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = load_config()
        configure_logging(config)
        app.state.config = config
        app.state.vault_path = config.vault_path
        logger.info("Serving vault %s", config.vault_path)
        yield

    app = FastAPI(lifespan=lifespan)

    @app.middleware("http")
    async def enforce_service_token(request: Request, call_next):
        if request.url.path in AUTH_EXEMPT_PATHS:
            return await call_next(request)

        config = getattr(request.app.state, "config", None)
        service_token = getattr(config, "service_token", None)
        if service_token and request.headers.get(SERVICE_TOKEN_HEADER) != service_token:
            error = ErrorResponse(
                code="AUTH_FORBIDDEN",
                message="Invalid service token.",
                details={"header": SERVICE_TOKEN_HEADER},
            )
            return JSONResponse(status_code=403, content=error_response(error))

        return await call_next(request)

    @app.exception_handler(McpError)
    def handle_mcp_error(request: Request, exc: McpError) -> JSONResponse:
        logger.debug("%s %s failed: %s", request.method, request.url.path, exc.error.code)
        return JSONResponse(status_code=400, content=error_response(exc.error))

    @app.get("/health", status_code=200)
    def health() -> dict[str, str]:
        return {"status": "ok"}

    register_mcp_handlers(app)
    return app


app = create_app()
