"""FastAPI application factory, entry point for Folio."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from folio.adapters.llm.client import RateLimitedCompletionClient
from folio.api.dependencies import build_recommender
from folio.api.routes.recommendations import router as recommendations_router
from folio.config import settings
from folio.database import create_schema

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown events."""
    logger.info("Folio starting up...")
    logger.info("Completion model: %s", settings.completion_model)
    logger.info(
        "Rate limit: %d requests/min, %d retries",
        settings.rate_limit_max_requests,
        settings.retry_max_attempts,
    )
    if settings.auto_create_schema:
        await create_schema()

    client = RateLimitedCompletionClient(settings)
    app.state.recommender = build_recommender(settings, client)
    try:
        yield
    finally:
        await client.aclose()
        logger.info("Folio shutting down...")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Folio",
        description="Book catalog with personalized, model-assisted recommendations",
        version="1.0.0",
        lifespan=lifespan,
    )

    # ── Middleware ──────────────────────────────────
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routes ─────────────────────────────────────
    application.include_router(recommendations_router)

    # ── Health Check ───────────────────────────────
    @application.get("/health", tags=["System"])
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "folio"}

    return application


app = create_app()
