"""Recommender port: abstract interface for the recommendation engine."""

from abc import ABC, abstractmethod

from folio.domain.entities import RecommendationCandidate


class RecommenderPort(ABC):
    """Abstraction for the book recommendation engine."""

    @abstractmethod
    async def recommend(
        self,
        user_id: str,
        *,
        limit: int = 5,
        genre: str | None = None,
        force_refresh: bool = False,
    ) -> list[RecommendationCandidate]:
        """Return ranked book recommendations for a user."""
        ...

    @abstractmethod
    def invalidate(self, user_id: str) -> None:
        """Forget any cached recommendations for a user."""
        ...
