from contextlib import asynccontextmanager
import argparse
import json
import logging

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .mcp.dispatcher import get_dispatcher
from .routes.health import router as health_router
from .routes.mcp import router as mcp_router
from .utils.central_logging import log_startup_banner, setup_central_logging

logger = logging.getLogger("genvr.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_central_logging(
        console_level=logging.DEBUG if settings.debug else logging.INFO,
        log_dir=settings.log_dir,
    )
    log_startup_banner(settings)

    dispatcher = get_dispatcher()
    tools = await dispatcher.registry.ensure_built()
    logger.info("Registry ready: %d tools", len(tools))
    if dispatcher.registry.unknown_categories:
        logger.warning("Unknown catalog categories: %s", ", ".join(dispatcher.registry.unknown_categories))

    yield

    await dispatcher.aclose()
    logger.info("GenVR HTTP client closed")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="GenVR MCP Server",
        version=settings.mcp_server_version,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error("Request validation error: %s", json.dumps(exc.errors(), default=str))
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors(), "body": exc.body},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal Server Error",
                "error": {
                    "code": "internal_error",
                    "message": "An unexpected error occurred.",
                },
            },
        )

    allowed_origins = [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]

    # Without configured origins a reverse proxy is expected to handle CORS
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["mcp-session-id"],
        )

    app.include_router(health_router, tags=["Monitoring"])
    app.include_router(mcp_router, tags=["MCP Remote Server"])

    return app


def run() -> None:
    """Console entry point: serve the HTTP/SSE transport with uvicorn."""
    import uvicorn

    settings = get_settings()
    parser = argparse.ArgumentParser(description="GenVR MCP server (HTTP/SSE)")
    parser.add_argument("--host", default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    args = parser.parse_args()

    setup_central_logging(console_level=logging.DEBUG if settings.debug else logging.INFO, log_dir=settings.log_dir)
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


# Uvicorn Entry
app = create_app()
