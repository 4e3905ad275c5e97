"""Wiring of the recommendation core for the FastAPI application."""

from fastapi import Request

from folio.adapters.llm.client import RateLimitedCompletionClient
from folio.adapters.storage.sql import (
    SqlBookRepository,
    SqlReviewRepository,
    SqlUserRepository,
)
from folio.config import Settings
from folio.database import async_session_factory
from folio.ports.recommender import RecommenderPort
from folio.services.preference import PreferenceProfileBuilder
from folio.services.recommendation import RecommendationOrchestrator


def build_recommender(
    settings: Settings, client: RateLimitedCompletionClient
) -> RecommendationOrchestrator:
    """Assemble the orchestrator over the SQL-backed repositories."""
    books = SqlBookRepository(async_session_factory)
    profiles = PreferenceProfileBuilder(
        users=SqlUserRepository(async_session_factory),
        reviews=SqlReviewRepository(async_session_factory),
        books=books,
    )
    return RecommendationOrchestrator(client, profiles, books, settings=settings)


def get_recommender(request: Request) -> RecommenderPort:
    """Return the process-wide orchestrator created at startup."""
    return request.app.state.recommender
