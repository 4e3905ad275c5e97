"""Plain domain records exchanged between ports, adapters and services."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Book:
    id: str
    title: str
    author: str
    genres: list[str] = field(default_factory=list)
    published_year: int | None = None
    average_rating: float = 0.0
    review_count: int = 0
    description: str = ""
    cover_image: str = ""


@dataclass
class User:
    id: str
    favorites: list[str] = field(default_factory=list)


@dataclass
class Review:
    user_id: str
    book_id: str
    rating: int
    text: str = ""
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class RecommendationCandidate:
    """
    A reconciled recommendation.

    ``source`` is ``"catalog"`` when the fields were copied from an existing
    catalog record and ``"recommendation"`` when the record was synthesized
    from model output.
    """

    id: str
    title: str
    author: str
    reason: str
    genres: list[str] = field(default_factory=list)
    published_year: int | None = None
    average_rating: float | None = None
    review_count: int | None = None
    description: str = ""
    cover_image: str = ""
    source: str = "catalog"

    @classmethod
    def from_book(cls, book: Book, reason: str) -> "RecommendationCandidate":
        return cls(
            id=book.id,
            title=book.title,
            author=book.author,
            reason=reason,
            genres=list(book.genres),
            published_year=book.published_year,
            average_rating=book.average_rating,
            review_count=book.review_count,
            description=book.description,
            cover_image=book.cover_image,
            source="catalog",
        )

    def has_genre(self, genre: str) -> bool:
        wanted = genre.lower()
        return any(g.lower() == wanted for g in self.genres)
