"""
Book finder pipeline: scan listings, dedupe links, extract details, filter and
rank by price per page.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from urllib.parse import quote_plus

from batching import run_batched
from book_page import DetailExtractor
from books import Book
from browser import Session
from finder_config import FinderSettings
from listing_scan import ListingScanner
from logging_utils import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinderReport:
    books: list[Book]
    queries_scanned: int = 0
    queries_failed: int = 0
    links_discovered: int = 0
    unique_links: int = 0
    books_extracted: int = 0
    extraction_failures: int = 0
    excluded_by_name: int = 0
    above_ceiling: int = 0
    errors: list[str] = field(default_factory=list)


def _minor_units(amount: Decimal) -> int:
    return int(amount * 100)


def build_search_url(query: str, settings: FinderSettings) -> str:
    return settings.search_url_template.format(
        query=quote_plus(query),
        min_price=_minor_units(settings.min_price),
        max_price=_minor_units(settings.max_price),
    )


def dedupe_urls(urls: Iterable[str]) -> list[str]:
    unique: list[str] = []
    seen: set[str] = set()
    for url in urls:
        if url in seen:
            continue
        seen.add(url)
        unique.append(url)
    return unique


def exclude_by_name(books: Iterable[Book], excluded_keywords: Sequence[str]) -> list[Book]:
    lowered = [keyword.lower() for keyword in excluded_keywords if keyword]
    return [book for book in books if not any(keyword in book.name.lower() for keyword in lowered)]


def apply_price_per_page_ceiling(books: Iterable[Book], ceiling: Decimal | None) -> list[Book]:
    if ceiling is None:
        return list(books)
    return [book for book in books if book.price_per_page <= ceiling]


def rank_books(books: Iterable[Book], limit: int | None = None) -> list[Book]:
    ranked = sorted(books, key=lambda book: book.price_per_page)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


class BookFinder:
    """
    Orchestrates one finder run over a shared browser session.
    """

    def __init__(
        self,
        *,
        settings: FinderSettings,
        scanner: ListingScanner | None = None,
        extractor: DetailExtractor | None = None,
    ) -> None:
        self._settings = settings
        self._scanner = scanner or ListingScanner(settings)
        self._extractor = extractor or DetailExtractor(settings)

    async def run(self, session: Session) -> FinderReport:
        errors: list[str] = []
        discovered: list[str] = []
        queries_failed = 0

        # One listing scan at a time, in query order.
        for query in self._settings.queries:
            search_url = build_search_url(query, self._settings)
            result = await self._scanner.scan_listing(session, search_url)
            if not result.ok:
                queries_failed += 1
                errors.append(f"query={query!r} {result.error.kind}: {result.error.message}")
                log_event(
                    logger,
                    logging.WARNING,
                    "listing_scan_failed",
                    query=query,
                    url=search_url,
                    error_kind=result.error.kind,
                    error=result.error.message,
                )
                continue
            discovered.extend(result.unwrap().links)

        unique = dedupe_urls(discovered)
        log_event(
            logger,
            logging.INFO,
            "links_deduplicated",
            discovered=len(discovered),
            unique=len(unique),
        )

        results = await run_batched(
            unique,
            self._settings.batch_size,
            lambda url: self._extractor.extract_book(session, url),
        )

        extracted: list[Book] = []
        for url, result in zip(unique, results):
            if result.ok:
                extracted.append(result.unwrap())
                continue
            errors.append(f"url={url} {result.error.kind}: {result.error.message}")
            log_event(
                logger,
                logging.WARNING,
                "book_dropped",
                url=result.error.url or url,
                error_kind=result.error.kind,
                error=result.error.message,
            )

        kept = exclude_by_name(extracted, self._settings.excluded_keywords)
        under_ceiling = apply_price_per_page_ceiling(kept, self._settings.max_price_per_page)
        ranked = rank_books(under_ceiling, self._settings.max_results)

        report = FinderReport(
            books=ranked,
            queries_scanned=len(self._settings.queries),
            queries_failed=queries_failed,
            links_discovered=len(discovered),
            unique_links=len(unique),
            books_extracted=len(extracted),
            extraction_failures=len(results) - len(extracted),
            excluded_by_name=len(extracted) - len(kept),
            above_ceiling=len(kept) - len(under_ceiling),
            errors=errors,
        )
        log_event(
            logger,
            logging.INFO,
            "finder_run_completed",
            ranked=len(report.books),
            extracted=report.books_extracted,
            failures=report.extraction_failures,
            queries_failed=report.queries_failed,
        )
        return report
