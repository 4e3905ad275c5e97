"""Extract recommendation candidates from free-form completion text."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from folio.ports.parser import ParsedCandidate, ResponseParser

logger = logging.getLogger(__name__)

_ARRAY_START = re.compile(r"\[\s*\{")
_FIELD_LINE = re.compile(
    r'\b(title|author|genres?|year|reason|why)\b["*]*\s*:\s*(.*)$', re.IGNORECASE
)
_YEAR = re.compile(r"\d{4}")


def _candidates_from_items(items: list[Any]) -> list[ParsedCandidate]:
    candidates: list[ParsedCandidate] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            candidates.append(ParsedCandidate.from_mapping(item))
        except ValidationError as exc:
            logger.debug("Skipping unusable candidate %r: %s", item, exc)
    return candidates


class JsonArrayParser(ResponseParser):
    """
    Strict stage: find a JSON array of objects anywhere in the text.

    Every ``[ {`` opening is tried in turn with ``raw_decode`` so prose or
    markdown fences around the array do not matter. Returns an empty list if
    no opening decodes to a list.
    """

    def __init__(self) -> None:
        self._decoder = json.JSONDecoder()

    def find_array(self, text: str) -> list[Any] | None:
        for match in _ARRAY_START.finditer(text):
            try:
                value, _ = self._decoder.raw_decode(text, match.start())
            except json.JSONDecodeError:
                continue
            if isinstance(value, list):
                return value
        return None

    def parse(self, text: str) -> list[ParsedCandidate]:
        items = self.find_array(text)
        if items is None:
            return []
        return _candidates_from_items(items)


class LineHeuristicParser(ResponseParser):
    """
    Lenient stage: read ``Title:`` / ``Author:`` / ``Genre:`` / ``Year:`` /
    ``Reason:`` markers (or ``"title":`` style keys) line by line.

    Each title marker starts a new candidate; other markers fill in the
    current one. Missing fields are tolerated, but a candidate without a
    title is dropped.
    """

    def parse(self, text: str) -> list[ParsedCandidate]:
        raw: list[dict[str, Any]] = []
        current: dict[str, Any] | None = None

        for line in text.splitlines():
            match = _FIELD_LINE.search(line)
            if not match:
                continue
            key, value = match.group(1).lower(), _clean(match.group(2))
            if key == "title":
                current = {"title": value}
                raw.append(current)
            elif current is None:
                continue
            elif key == "year":
                year = _YEAR.search(value)
                if year:
                    current["year"] = int(year.group())
            elif key in ("reason", "why"):
                current["reason"] = value
            elif key.startswith("genre"):
                current["genre"] = [g.strip() for g in value.split(",") if g.strip()]
            else:
                current[key] = value

        return _candidates_from_items(raw)


class TwoStageResponseParser(ResponseParser):
    """Try the strict parser first, then the lenient one."""

    def __init__(
        self,
        strict: ResponseParser | None = None,
        lenient: ResponseParser | None = None,
    ) -> None:
        self._strict = strict or JsonArrayParser()
        self._lenient = lenient or LineHeuristicParser()

    def parse(self, text: str) -> list[ParsedCandidate]:
        candidates = self._strict.parse(text)
        if candidates:
            return candidates
        logger.info("No JSON array in completion text; using line heuristics")
        candidates = self._lenient.parse(text)
        if not candidates:
            logger.warning("Could not extract any recommendations from completion text")
        return candidates


def _clean(value: str) -> str:
    """Strip quotes, markdown emphasis and trailing JSON punctuation."""
    return value.strip().rstrip(",").replace('"', "").strip(" *_")
