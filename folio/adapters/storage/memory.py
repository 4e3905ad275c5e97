"""In-memory repositories for tests, demos and local development."""

from collections.abc import Iterable

from folio.domain.entities import Book, Review, User
from folio.ports.catalog import BookRepository, ReviewRepository, UserRepository


class InMemoryBookRepository(BookRepository):
    def __init__(self, books: Iterable[Book] = ()) -> None:
        self._books: dict[str, Book] = {}
        for book in books:
            self.add(book)

    def add(self, book: Book) -> Book:
        self._books[book.id] = book
        return book

    def remove(self, book_id: str) -> None:
        self._books.pop(book_id, None)

    async def find_by_id(self, book_id: str) -> Book | None:
        return self._books.get(book_id)

    async def find_all(self) -> list[Book]:
        return list(self._books.values())


class InMemoryUserRepository(UserRepository):
    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users: dict[str, User] = {u.id: u for u in users}

    def add(self, user: User) -> User:
        self._users[user.id] = user
        return user

    async def find_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)


class InMemoryReviewRepository(ReviewRepository):
    def __init__(self, reviews: Iterable[Review] = ()) -> None:
        self._reviews: list[Review] = list(reviews)

    def add(self, review: Review) -> Review:
        self._reviews.append(review)
        return review

    async def find_by_user_id(self, user_id: str) -> list[Review]:
        return [r for r in self._reviews if r.user_id == user_id]
