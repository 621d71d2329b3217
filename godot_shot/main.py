"""
main.py - FastAPI application entry point for the Godot screenshot service.

Builds the shared `BridgeContext`, sets up logging and CORS, and mounts the
screenshot router under /api/v1. The MCP stdio server lives in
`godot_shot.mcp_stdio_worker`; this module is the HTTP alternative.
"""
import sys

import uvicorn
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from godot_shot import __version__
from godot_shot.api.routes import router as screenshot_router
from godot_shot.config import ScreenshotConfig
from godot_shot.context import BridgeContext
from godot_shot.logger import get_logger, setup_logging
from godot_shot.tools import ScreenshotTools

API_PREFIX = "/api/v1"


def create_app(context: BridgeContext | None = None, tools: ScreenshotTools | None = None) -> FastAPI:
    """Creates and configures the FastAPI application."""
    if tools is not None:
        context = tools.context
    if context is None:
        config = ScreenshotConfig.from_env()
        setup_logging(level=config.log_level, log_file=config.log_file, force=True)
        context = BridgeContext(config=config)
    if tools is None:
        tools = ScreenshotTools(context)

    logger = get_logger(__name__)
    logger.info(f"Starting Godot Screenshot API v{__version__} (wsl={context.wsl})")

    app = FastAPI(
        title="Godot Screenshot API",
        description="Screenshots of Godot editor and game windows captured from WSL via PowerShell",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.context = context
    app.state.tools = tools

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(screenshot_router, prefix=API_PREFIX)

    @app.get("/", summary="API Root", description="Returns basic API information.")
    async def root():
        return {
            "name": "Godot Screenshot API",
            "version": __version__,
            "status": "running",
            "docs_url": "/docs",
            "api_prefix": API_PREFIX,
        }

    @app.get("/health", summary="Health Check", description="Reports whether the PowerShell bridge answers.")
    async def health_check():
        bridge_ok = await tools.bridge.check_availability()
        return {
            "service": "godot-screenshot",
            "version": __version__,
            "status": "healthy" if bridge_ok else "degraded",
            "bridge_available": bridge_ok,
            "wsl": context.wsl,
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "detail": str(exc)},
        )

    logger.info("FastAPI application created and configured successfully")
    return app


def main_api_server() -> None:
    """Entry point for the `godot-shot-api` script."""
    config = ScreenshotConfig.from_env()
    setup_logging(level=config.log_level, log_file=config.log_file, force=True)
    context = BridgeContext(config=config)
    app = create_app(context)

    print(f"Starting Godot Screenshot API on {config.api_host}:{config.api_port}", file=sys.stderr)
    print(f"API Documentation: http://{config.api_host}:{config.api_port}/docs", file=sys.stderr)

    try:
        uvicorn.run(
            app,
            host=config.api_host,
            port=config.api_port,
            log_level=config.log_level.lower(),
            access_log=True,
            workers=1,
        )
    finally:
        context.close()


# For `uvicorn godot_shot.main:app`
app = create_app()

if __name__ == "__main__":
    main_api_server()
