"""Response parser port: turns free model text into candidate records."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


class ParsedCandidate(BaseModel):
    """A recommendation as the model described it, before reconciliation."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    title: str
    author: str = ""
    genres: list[str] = []
    year: int | None = None
    reason: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def _title_to_str(cls, value: Any) -> Any:
        # Numeric titles such as 1984 arrive as JSON numbers.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("author", "reason", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("year", mode="before")
    @classmethod
    def _coerce_year(cls, value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return int(value)
        digits = "".join(ch for ch in str(value) if ch.isdigit())
        return int(digits[:4]) if len(digits) >= 4 else None

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "ParsedCandidate":
        """Build from a model-shaped dict, accepting ``genre`` as str or list."""
        fields = {str(k).lower(): v for k, v in data.items()}
        raw_genre = fields.pop("genres", None) or fields.pop("genre", None)
        if isinstance(raw_genre, str):
            genres = [raw_genre.strip()] if raw_genre.strip() else []
        elif isinstance(raw_genre, list):
            genres = [str(g).strip() for g in raw_genre if str(g).strip()]
        else:
            genres = []
        return cls.model_validate({**fields, "genres": genres})


class ResponseParser(ABC):
    """Abstraction for extracting candidates from completion text."""

    @abstractmethod
    def parse(self, text: str) -> list[ParsedCandidate]:
        """Return every candidate found; an empty list when nothing parses."""
        ...
