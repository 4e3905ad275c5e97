"""SQLAlchemy-backed catalog, user and review repositories."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from folio.domain import models
from folio.domain.entities import Book, Review, User
from folio.ports.catalog import BookRepository, ReviewRepository, UserRepository

logger = logging.getLogger(__name__)


def book_from_row(row: models.Book) -> Book:
    return Book(
        id=row.id,
        title=row.title,
        author=row.author,
        genres=list(row.genres or []),
        published_year=row.published_year,
        average_rating=float(row.average_rating or 0.0),
        review_count=row.review_count or 0,
        description=row.description or "",
        cover_image=row.cover_image or "",
    )


class _SqlRepository:
    """Opens a short-lived session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory


class SqlBookRepository(_SqlRepository, BookRepository):
    async def find_by_id(self, book_id: str) -> Book | None:
        async with self._session_factory() as session:
            row = await session.get(models.Book, book_id)
            return book_from_row(row) if row else None

    async def find_all(self) -> list[Book]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.Book).order_by(models.Book.created_at)
            )
            books = [book_from_row(row) for row in result.scalars().all()]
        logger.debug("Loaded %d catalog books", len(books))
        return books


class SqlUserRepository(_SqlRepository, UserRepository):
    async def find_by_id(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            row = await session.get(models.User, user_id)
            if row is None:
                return None
            return User(id=row.id, favorites=[fav.book_id for fav in row.favorites])


class SqlReviewRepository(_SqlRepository, ReviewRepository):
    async def find_by_user_id(self, user_id: str) -> list[Review]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(models.Review)
                .where(models.Review.user_id == user_id)
                .order_by(models.Review.created_at)
            )
            return [
                Review(
                    id=row.id,
                    user_id=row.user_id,
                    book_id=row.book_id,
                    rating=row.rating,
                    text=row.text,
                    created_at=row.created_at,
                )
                for row in result.scalars().all()
            ]
