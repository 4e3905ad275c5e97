"""Reconcile model-suggested books against the local catalog."""

import logging
from collections.abc import Sequence
from uuid import uuid4

from folio.domain.entities import Book, RecommendationCandidate
from folio.ports.parser import ParsedCandidate

logger = logging.getLogger(__name__)

DEFAULT_REASON = "This book matches your reading preferences."


def _overlaps(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def find_matching_book(
    candidate: ParsedCandidate, books: Sequence[Book]
) -> Book | None:
    """
    Locate the catalog record a candidate refers to.

    Rules, all case-insensitive:
      1. exact title and author;
      2. title contained in the catalog title or vice versa, if exactly one
         book qualifies;
      3. among several title matches, the first whose author overlaps.
    """
    title = candidate.title.lower()
    author = candidate.author.lower()

    if author:
        for book in books:
            if book.title.lower() == title and book.author.lower() == author:
                return book

    title_matches = [book for book in books if _overlaps(book.title.lower(), title)]
    if len(title_matches) == 1:
        return title_matches[0]

    if len(title_matches) > 1 and author:
        for book in title_matches:
            if _overlaps(book.author.lower(), author):
                return book

    return None


def synthesize(candidate: ParsedCandidate) -> RecommendationCandidate:
    """Build a record for a book the catalog does not hold."""
    return RecommendationCandidate(
        id=f"rec-{uuid4().hex[:12]}",
        title=candidate.title,
        author=candidate.author,
        reason=candidate.reason or DEFAULT_REASON,
        genres=list(candidate.genres),
        published_year=candidate.year,
        description="",
        cover_image="",
        source="recommendation",
    )


def reconcile(
    candidates: Sequence[ParsedCandidate], books: Sequence[Book]
) -> list[RecommendationCandidate]:
    """Map every candidate to a catalog-backed or synthetic recommendation."""
    results: list[RecommendationCandidate] = []
    matched = 0
    for candidate in candidates:
        book = find_matching_book(candidate, books)
        if book is not None:
            matched += 1
            results.append(
                RecommendationCandidate.from_book(book, candidate.reason or DEFAULT_REASON)
            )
        else:
            results.append(synthesize(candidate))
    logger.info(
        "Reconciled %d candidate(s): %d from catalog, %d synthesized",
        len(results),
        matched,
        len(results) - matched,
    )
    return results
