"""Typed view of a chat-completion response."""

from typing import Any

from pydantic import BaseModel, ConfigDict

from folio.domain.errors import EmptyCompletionError


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str = "assistant"
    content: str | None = None


class CompletionChoice(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class CompletionResult(BaseModel):
    """
    Parsed completion payload.

    Only the fields the recommendation pipeline reads are modelled; anything
    else the service returns is kept as extra data.
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    model: str | None = None
    choices: list[CompletionChoice] = []
    usage: dict[str, Any] | None = None

    def text(self) -> str:
        """Content of the first choice. Raises EmptyCompletionError if none."""
        if not self.choices:
            raise EmptyCompletionError("Completion response contained no choices")
        return self.choices[0].message.content or ""
