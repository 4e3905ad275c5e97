"""User preference analysis from reviews, ratings and favorite books."""

import logging
from collections.abc import Iterable

from folio.domain.entities import Book, Review
from folio.domain.errors import NotFoundError
from folio.domain.profile import (
    AuthorScore,
    GenreScore,
    PreferenceProfile,
    PublicationEra,
    RatingBias,
    RatingPattern,
    ThemeScore,
)
from folio.ports.catalog import BookRepository, ReviewRepository, UserRepository

logger = logging.getLogger(__name__)

FAVORITE_WEIGHT = 2.0

_REVIEW_WEIGHTS: dict[int, float] = {5: 2.0, 4: 1.5, 3: 1.0, 2: 0.5, 1: 0.25}

# Static genre -> theme table. A genre may imply several themes and a theme
# may be shared by several genres.
GENRE_THEMES: dict[str, tuple[str, ...]] = {
    "Fantasy": ("magic", "adventure", "mythical creatures"),
    "Science Fiction": ("technology", "space", "future", "dystopian"),
    "Mystery": ("crime", "detective", "suspense"),
    "Romance": ("love", "relationships", "emotional"),
    "Thriller": ("suspense", "tension", "psychological"),
    "Horror": ("fear", "supernatural", "suspense"),
    "Historical Fiction": ("history", "period", "cultural"),
    "Biography": ("life story", "personal journey"),
    "Self-help": ("personal development", "motivation"),
    "Business": ("entrepreneurship", "leadership", "strategy"),
}

# (name, first year, last year), inclusive
ERAS: tuple[tuple[str, int, int], ...] = (
    ("classic", 0, 1950),
    ("modern", 1951, 2000),
    ("contemporary", 2001, 2100),
)
DEFAULT_ERA = "contemporary"


def is_valid_rating(rating: object) -> bool:
    return isinstance(rating, int) and not isinstance(rating, bool) and 1 <= rating <= 5


def calculate_review_weight(rating: object) -> float:
    """Weight of a single review: higher ratings count for more."""
    if not is_valid_rating(rating):
        return 0.0
    return _REVIEW_WEIGHTS[rating]  # type: ignore[index]


def _ranked(scores: dict[str, float]) -> list[tuple[str, float]]:
    # sorted() is stable, and dicts keep insertion order, so ties stay in
    # encounter order.
    return sorted(scores.items(), key=lambda item: item[1], reverse=True)


def _era_for(year: int) -> str | None:
    for name, start, end in ERAS:
        if start <= year <= end:
            return name
    return None


class PreferenceProfileBuilder:
    """Builds a weighted preference profile for one user."""

    def __init__(
        self,
        users: UserRepository,
        reviews: ReviewRepository,
        books: BookRepository,
    ) -> None:
        self._users = users
        self._reviews = reviews
        self._books = books

    async def build(self, user_id: str) -> PreferenceProfile:
        """Compute the profile. Raises NotFoundError if the user does not exist."""
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        reviews = await self._reviews.find_by_user_id(user_id)

        # Resolve each referenced book once; dangling references are skipped.
        lookup: dict[str, Book | None] = {}
        for book_id in [r.book_id for r in reviews] + list(user.favorites):
            if book_id not in lookup:
                lookup[book_id] = await self._books.find_by_id(book_id)

        reviewed = [
            (review, lookup[review.book_id])
            for review in reviews
            if lookup[review.book_id] is not None
        ]
        favorites = [lookup[b] for b in user.favorites if lookup[b] is not None]

        weighted: list[tuple[Book, float]] = [
            (book, calculate_review_weight(review.rating)) for review, book in reviewed
        ]
        weighted += [(book, FAVORITE_WEIGHT) for book in favorites]

        profile = PreferenceProfile(
            user_id=user_id,
            genre_scores=tuple(
                GenreScore(genre=g, score=s) for g, s in self._genre_scores(weighted)
            ),
            author_scores=tuple(
                AuthorScore(author=a, score=s) for a, s in self._author_scores(weighted)
            ),
            theme_scores=tuple(
                ThemeScore(theme=t, score=s) for t, s in self._theme_scores(weighted)
            ),
            rating_pattern=self.analyze_rating_pattern(reviews),
            publication_era=self.analyze_publication_era(
                [book for _, book in reviewed], favorites
            ),
        )
        logger.info(
            "Built preference profile for user %s: %d genres, %d authors, %d themes",
            user_id,
            len(profile.genre_scores),
            len(profile.author_scores),
            len(profile.theme_scores),
        )
        return profile

    @staticmethod
    def _genre_scores(weighted: Iterable[tuple[Book, float]]) -> list[tuple[str, float]]:
        scores: dict[str, float] = {}
        for book, weight in weighted:
            for genre in book.genres:
                scores[genre] = scores.get(genre, 0.0) + weight
        return _ranked(scores)

    @staticmethod
    def _author_scores(weighted: Iterable[tuple[Book, float]]) -> list[tuple[str, float]]:
        scores: dict[str, float] = {}
        for book, weight in weighted:
            if book.author:
                scores[book.author] = scores.get(book.author, 0.0) + weight
        return _ranked(scores)

    @staticmethod
    def _theme_scores(weighted: Iterable[tuple[Book, float]]) -> list[tuple[str, float]]:
        scores: dict[str, float] = {}
        for book, weight in weighted:
            for genre in book.genres:
                for theme in GENRE_THEMES.get(genre, ()):
                    scores[theme] = scores.get(theme, 0.0) + weight
        return _ranked(scores)

    @staticmethod
    def analyze_rating_pattern(reviews: Iterable[Review]) -> RatingPattern:
        """Average, per-star distribution and overall bias of a user's ratings."""
        ratings = [r.rating for r in reviews if is_valid_rating(r.rating)]
        distribution = {star: ratings.count(star) for star in range(1, 6)}
        if not ratings:
            return RatingPattern(rating_distribution=distribution)

        average = sum(ratings) / len(ratings)
        if average > 4:
            bias = RatingBias.POSITIVE
        elif average < 3:
            bias = RatingBias.NEGATIVE
        else:
            bias = RatingBias.NEUTRAL
        return RatingPattern(
            average_rating=average,
            rating_distribution=distribution,
            rating_bias=bias,
        )

    @staticmethod
    def analyze_publication_era(
        reviewed: Iterable[Book], favorites: Iterable[Book]
    ) -> PublicationEra:
        """Weighted era counts (reviewed=1, favorite=2) and the leading era."""
        counts: dict[str, float] = {name: 0 for name, _, _ in ERAS}
        for books, weight in ((reviewed, 1), (favorites, 2)):
            for book in books:
                if book.published_year is None:
                    continue
                era = _era_for(book.published_year)
                if era is not None:
                    counts[era] += weight

        preferred, best = DEFAULT_ERA, 0.0
        for name, count in counts.items():
            if count > best:
                preferred, best = name, count
        return PublicationEra(eras=counts, preferred_era=preferred)
