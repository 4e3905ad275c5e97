"""Exception hierarchy shared by the recommendation core."""

from typing import Any


class FolioError(Exception):
    """Base class for all errors raised by Folio."""


class NotFoundError(FolioError):
    """A requested record (user, book) does not exist."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} with ID {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class CompletionError(FolioError):
    """
    The hosted completion service could not produce a usable response.

    Carries the upstream HTTP status and decoded body (when a response was
    received) and the underlying exception for observability.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: Any = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.cause = cause


class TransientServiceError(CompletionError):
    """Rate limiting, 5xx, or transport failure that outlasted the retry budget."""


class PermanentServiceError(CompletionError):
    """A failure that retrying cannot fix (4xx other than 429, bad payload)."""


class EmptyCompletionError(PermanentServiceError):
    """The service answered but returned no choices."""
