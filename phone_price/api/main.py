"""FastAPI application main entry point."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from phone_price import __version__
from phone_price.api.endpoints import router
from phone_price.api.models import HealthResponse
from phone_price.core.price_retriever import build_retriever
from phone_price.utils.config import ConfigError, load_settings
from phone_price.utils.logger import (
    ROOT_LOGGER_NAME,
    get_logger,
    log_exception,
    set_log_level,
    setup_logger,
)

# Initialize logger
setup_logger()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager.

    Builds the PriceRetriever on startup and keeps it on app.state for all
    requests. A retriever already present on app.state is left alone.
    """
    # Startup
    logger.info("Starting Phone Price API")

    if hasattr(app.state, "retriever"):
        logger.info("Using PriceRetriever provided on app.state")
    else:
        try:
            settings = load_settings()
            set_log_level(get_logger(ROOT_LOGGER_NAME), settings.log_level)
            logger.info("Configuration loaded successfully")
            logger.info(f"Spreadsheet: {settings.spreadsheet_id}, range {settings.sheet_range}")

            app.state.retriever = build_retriever(settings)
            app.state.expose_error_details = settings.expose_error_details
            logger.info("PriceRetriever initialized and ready")

        except Exception as e:
            log_exception(logger, "Failed to initialize application", e)
            raise

    logger.info("Phone Price API started successfully")

    yield

    # Shutdown
    logger.info("Shutting down Phone Price API")


def _cors_origins() -> list[str]:
    try:
        return load_settings().cors_origins
    except ConfigError as e:
        logger.warning(f"Settings unavailable at import, allowing all CORS origins: {e}")
        return ["*"]


# Create FastAPI application
app = FastAPI(
    title="Phone Price API",
    description=(
        "Answer Korean phone price questions from the price sheet. "
        "Serves a JSON query endpoint and a Kakao i Open Builder skill webhook."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint.

    Example:
        ```bash
        curl http://localhost:8000/health
        ```

        Response:
        ```json
        {
            "status": "healthy",
            "version": "0.1.0"
        }
        ```
    """
    return HealthResponse(status="healthy", version=__version__)


# Include API routers
app.include_router(router, tags=["Phone Price"])


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "phone_price.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
