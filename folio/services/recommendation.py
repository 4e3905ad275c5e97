"""Personalized book recommendations built on the completion service."""

import asyncio
import logging
import time
from collections.abc import Callable

from folio.adapters.llm.client import RateLimitedCompletionClient
from folio.config import Settings, settings as default_settings
from folio.core.cache import TTLCache
from folio.domain.entities import RecommendationCandidate
from folio.domain.profile import PreferenceProfile
from folio.ports.catalog import BookRepository
from folio.ports.parser import ResponseParser
from folio.ports.recommender import RecommenderPort
from folio.prompts.templates import RECOMMEND_BOOKS, render_recommendation_messages
from folio.services.matching import reconcile
from folio.services.parsing import TwoStageResponseParser
from folio.services.preference import PreferenceProfileBuilder

logger = logging.getLogger(__name__)

FALLBACK_REASON = "This is one of our top-rated books that many readers enjoy."


def filter_recommendations(
    recommendations: list[RecommendationCandidate],
    limit: int,
    genre: str | None = None,
) -> list[RecommendationCandidate]:
    """Keep items carrying ``genre`` (case-insensitive), then truncate to ``limit``."""
    if genre:
        recommendations = [rec for rec in recommendations if rec.has_genre(genre)]
    return recommendations[: max(limit, 0)]


class RecommendationOrchestrator(RecommenderPort):
    """
    Turns a user's preference profile into a list of recommended books.

    Pipeline per call: cache check, profile, prompt, generation, parsing,
    catalog reconciliation, cache write, response filtering. Any failure
    while prompting, generating, parsing or reconciling is absorbed by the
    top-rated fallback; only a missing user (NotFoundError) and catalog read
    errors inside the fallback reach the caller.

    Concurrent calls for the same user share a single in-flight generation
    unless ``dedupe_in_flight`` is disabled.
    """

    def __init__(
        self,
        completion_client: RateLimitedCompletionClient,
        profile_builder: PreferenceProfileBuilder,
        books: BookRepository,
        *,
        parser: ResponseParser | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        cfg = settings or default_settings
        self._client = completion_client
        self._profiles = profile_builder
        self._books = books
        self._parser = parser or TwoStageResponseParser()
        self._dedupe = cfg.recommendation_dedupe_in_flight
        self._cache: TTLCache[list[RecommendationCandidate]] = TTLCache(
            cfg.recommendation_cache_ttl, clock=clock, name="recommendation-cache"
        )
        self._in_flight: dict[str, asyncio.Future[list[RecommendationCandidate]]] = {}

    @property
    def cache(self) -> TTLCache[list[RecommendationCandidate]]:
        return self._cache

    @staticmethod
    def cache_key(user_id: str) -> str:
        return str(user_id)

    async def recommend(
        self,
        user_id: str,
        *,
        limit: int = 5,
        genre: str | None = None,
        force_refresh: bool = False,
    ) -> list[RecommendationCandidate]:
        key = self.cache_key(user_id)

        if not force_refresh:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Serving cached recommendations for user %s", user_id)
                return filter_recommendations(cached, limit, genre)

        if not self._dedupe:
            recommendations = await self._produce(user_id)
            return filter_recommendations(recommendations, limit, genre)

        pending = self._in_flight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._produce(user_id))
            self._in_flight[key] = pending
            pending.add_done_callback(lambda _: self._in_flight.pop(key, None))
        else:
            logger.info("Joining in-flight recommendation request for user %s", user_id)

        recommendations = await asyncio.shield(pending)
        return filter_recommendations(recommendations, limit, genre)

    def invalidate(self, user_id: str) -> None:
        if self._cache.invalidate(self.cache_key(user_id)):
            logger.info("Invalidated cached recommendations for user %s", user_id)

    # ── Pipeline ───────────────────────────────────

    async def _produce(self, user_id: str) -> list[RecommendationCandidate]:
        """Generate (or fall back) and store the unfiltered list in the cache."""
        profile = await self._profiles.build(user_id)

        try:
            recommendations = await self._generate(profile)
        except Exception:
            logger.warning(
                "Recommendation generation failed for user %s; using top-rated fallback",
                user_id,
                exc_info=True,
            )
            recommendations = await self._fallback()

        self._cache.set(self.cache_key(user_id), recommendations)
        return recommendations

    async def _generate(self, profile: PreferenceProfile) -> list[RecommendationCandidate]:
        messages = render_recommendation_messages(profile)
        result = await self._client.create_chat_completion(
            messages,
            temperature=RECOMMEND_BOOKS.temperature,
            max_tokens=RECOMMEND_BOOKS.max_tokens,
        )
        candidates = self._parser.parse(result.text())
        logger.info(
            "Parsed %d candidate(s) for user %s", len(candidates), profile.user_id
        )
        books = await self._books.find_all()
        return reconcile(candidates, books)

    async def _fallback(self) -> list[RecommendationCandidate]:
        """
        The whole catalog, best rated first.

        Kept unfiltered so the cached list serves every later genre and
        limit; ``filter_recommendations`` narrows it per caller.
        """
        books = await self._books.find_all()
        books = sorted(books, key=lambda b: b.average_rating or 0.0, reverse=True)
        return [RecommendationCandidate.from_book(book, FALLBACK_REASON) for book in books]
