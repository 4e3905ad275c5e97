import json
from collections.abc import Callable

import httpx
import pytest

from folio.adapters.llm.client import RateLimitedCompletionClient
from folio.adapters.storage.memory import (
    InMemoryBookRepository,
    InMemoryReviewRepository,
    InMemoryUserRepository,
)
from folio.config import Settings
from folio.domain.entities import Book, Review, User
from folio.services.preference import PreferenceProfileBuilder
from folio.services.recommendation import RecommendationOrchestrator

BASE_URL = "https://llm.test/v1"


class FakeClock:
    """Manually advanced clock whose ``sleep`` moves time instead of waiting."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeCompletionService:
    """
    Stand-in for the hosted service, served through ``httpx.MockTransport``.

    Queue responses with ``reply`` / ``fail`` / ``disconnect``; when the queue
    runs dry the last queued behaviour repeats. Every request is recorded.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.request_times: list[float] = []
        self._clock = clock
        self._queue: list[Callable[[httpx.Request], httpx.Response]] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)

    def reply(self, content: str | None) -> "FakeCompletionService":
        body = completion_body(content)
        self._queue.append(lambda request: httpx.Response(200, json=body))
        return self

    def reply_json(self, status: int, body: object) -> "FakeCompletionService":
        self._queue.append(lambda request: httpx.Response(status, json=body))
        return self

    def reply_raw(self, status: int, text: str) -> "FakeCompletionService":
        self._queue.append(lambda request: httpx.Response(status, text=text))
        return self

    def fail(self, status: int, message: str = "upstream error") -> "FakeCompletionService":
        return self.reply_json(status, {"error": {"message": message}})

    def disconnect(self) -> "FakeCompletionService":
        return self.raise_error(httpx.ConnectError, "connection refused")

    def raise_error(
        self, error_cls: type[httpx.RequestError], message: str = "transport failure"
    ) -> "FakeCompletionService":
        def handler(request: httpx.Request) -> httpx.Response:
            raise error_cls(message, request=request)

        self._queue.append(handler)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._clock is not None:
            self.request_times.append(self._clock())
        if not self._queue:
            raise AssertionError("No fake completion response queued")
        handler = self._queue.pop(0) if len(self._queue) > 1 else self._queue[0]
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def completion_body(content: str | None) -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    }


def make_settings(**overrides) -> Settings:
    values = {
        "completion_api_key": "test-key",
        "completion_base_url": BASE_URL,
        "completion_model": "gpt-4o-mini",
        "completion_cache_enabled": True,
        "completion_cache_ttl": 300.0,
        "rate_limit_max_requests": 20,
        "retry_max_attempts": 3,
        "retry_backoff_factor": 1.5,
        "retry_base_delay": 1.0,
        "recommendation_cache_ttl": 24 * 60 * 60,
        "recommendation_dedupe_in_flight": True,
    }
    values.update(overrides)
    return Settings(**values)


# ── Fixtures ───────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(clock: FakeClock) -> FakeCompletionService:
    return FakeCompletionService(clock)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
async def client(settings: Settings, clock: FakeClock, service: FakeCompletionService):
    completion = RateLimitedCompletionClient(
        settings, clock=clock, sleep=clock.sleep, transport=service.transport
    )
    yield completion
    await completion.aclose()


@pytest.fixture
def catalog() -> list[Book]:
    return [
        Book(
            id="b-dune",
            title="Dune",
            author="Frank Herbert",
            genres=["Science Fiction"],
            published_year=1965,
            average_rating=4.6,
            review_count=120,
        ),
        Book(
            id="b-foundation",
            title="Foundation",
            author="Isaac Asimov",
            genres=["Science Fiction"],
            published_year=1951,
            average_rating=4.3,
            review_count=80,
        ),
        Book(
            id="b-hobbit",
            title="The Hobbit",
            author="J.R.R. Tolkien",
            genres=["Fantasy"],
            published_year=1937,
            average_rating=4.8,
            review_count=200,
        ),
        Book(
            id="b-mistborn",
            title="Mistborn",
            author="Brandon Sanderson",
            genres=["Fantasy"],
            published_year=2006,
            average_rating=4.5,
            review_count=95,
        ),
        Book(
            id="b-pride",
            title="Pride and Prejudice",
            author="Jane Austen",
            genres=["Romance", "Classic"],
            published_year=1813,
            average_rating=4.2,
            review_count=150,
        ),
        Book(
            id="b-gone-girl",
            title="Gone Girl",
            author="Gillian Flynn",
            genres=["Thriller", "Mystery"],
            published_year=2012,
            average_rating=3.9,
            review_count=70,
        ),
    ]


@pytest.fixture
def books(catalog: list[Book]) -> InMemoryBookRepository:
    return InMemoryBookRepository(catalog)


@pytest.fixture
def users() -> InMemoryUserRepository:
    return InMemoryUserRepository(
        [
            User(id="u-reader", favorites=["b-hobbit"]),
            User(id="u-new"),
        ]
    )


@pytest.fixture
def reviews() -> InMemoryReviewRepository:
    return InMemoryReviewRepository(
        [
            Review(user_id="u-reader", book_id="b-mistborn", rating=5, text="Loved it"),
            Review(user_id="u-reader", book_id="b-dune", rating=4, text="Dense but great"),
            Review(user_id="u-reader", book_id="b-pride", rating=2, text="Not for me"),
        ]
    )


@pytest.fixture
def profile_builder(users, reviews, books) -> PreferenceProfileBuilder:
    return PreferenceProfileBuilder(users=users, reviews=reviews, books=books)


@pytest.fixture
def orchestrator(client, profile_builder, books, settings, clock):
    return RecommendationOrchestrator(
        client, profile_builder, books, settings=settings, clock=clock
    )
