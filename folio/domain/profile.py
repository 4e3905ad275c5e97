"""Derived user preference profile. Computed per request, never persisted."""

from dataclasses import dataclass, field
from enum import Enum


class RatingBias(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class GenreScore:
    genre: str
    score: float


@dataclass(frozen=True)
class AuthorScore:
    author: str
    score: float


@dataclass(frozen=True)
class ThemeScore:
    theme: str
    score: float


@dataclass(frozen=True)
class RatingPattern:
    average_rating: float = 0.0
    rating_distribution: dict[int, int] = field(
        default_factory=lambda: {star: 0 for star in range(1, 6)}
    )
    rating_bias: RatingBias = RatingBias.NEUTRAL


@dataclass(frozen=True)
class PublicationEra:
    eras: dict[str, float]
    preferred_era: str = "contemporary"


@dataclass(frozen=True)
class PreferenceProfile:
    user_id: str
    genre_scores: tuple[GenreScore, ...]
    author_scores: tuple[AuthorScore, ...]
    theme_scores: tuple[ThemeScore, ...]
    rating_pattern: RatingPattern
    publication_era: PublicationEra

    def top_genres(self, n: int = 3) -> list[str]:
        return [g.genre for g in self.genre_scores[:n]]

    def top_authors(self, n: int = 3) -> list[str]:
        return [a.author for a in self.author_scores[:n]]

    def top_themes(self, n: int = 3) -> list[str]:
        return [t.theme for t in self.theme_scores[:n]]
