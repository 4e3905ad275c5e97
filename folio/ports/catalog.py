"""Read-side ports for the catalog, user and review stores."""

from abc import ABC, abstractmethod

from folio.domain.entities import Book, Review, User


class BookRepository(ABC):
    """Abstraction over the book catalog."""

    @abstractmethod
    async def find_by_id(self, book_id: str) -> Book | None:
        ...

    @abstractmethod
    async def find_all(self) -> list[Book]:
        ...


class UserRepository(ABC):
    @abstractmethod
    async def find_by_id(self, user_id: str) -> User | None:
        ...


class ReviewRepository(ABC):
    @abstractmethod
    async def find_by_user_id(self, user_id: str) -> list[Review]:
        """Return every review written by the user, oldest first."""
        ...
