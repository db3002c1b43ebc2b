"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from decision_memo import __version__
from decision_memo.api.deps import container
from decision_memo.api.v1 import health, slack
from decision_memo.core.config import settings
from decision_memo.core.constants import API_PREFIX, SLACK_PREFIX
from decision_memo.core.exceptions import DecisionMemoError
from decision_memo.core.logging import get_logger, setup_logging

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "Starting Decision Memo bot",
        app_name=settings.app_name,
        env=settings.app_env,
        port=settings.port,
    )
    logger.info("Environment check", **settings.environment_report())

    container.initialize()
    logger.info("Service container initialized")

    yield

    # Shutdown
    logger.info("Shutting down Decision Memo bot")
    await container.shutdown()


# Create FastAPI application
app = FastAPI(
    title="Decision Memo Bot",
    description="Slack bot that turns conversations into structured decision memos",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)


# Exception handlers
@app.exception_handler(DecisionMemoError)
async def decision_memo_error_handler(
    request: Request,
    exc: DecisionMemoError,
) -> JSONResponse:
    """Handle custom application errors."""
    logger.error(
        "Application error",
        error_code=exc.code,
        error_message=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected errors."""
    logger.exception(
        "Unexpected error",
        error=str(exc),
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# Include routers
app.include_router(health.router, prefix=API_PREFIX, tags=["Health"])
app.include_router(slack.router, prefix=SLACK_PREFIX, tags=["Slack"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "status": "Decision Memo bot is running",
    }


# API info endpoint
@app.get("/api")
async def api_info() -> dict[str, Any]:
    """API information endpoint."""
    return {
        "name": "Decision Memo Bot",
        "version": __version__,
        "prefix": API_PREFIX,
        "endpoints": {
            "health": f"{API_PREFIX}/health",
            "commands": f"{SLACK_PREFIX}/commands",
            "interactivity": f"{SLACK_PREFIX}/interactivity",
            "events": f"{SLACK_PREFIX}/events",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "decision_memo.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
