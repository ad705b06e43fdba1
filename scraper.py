from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from browser import open_session
from finder import BookFinder, FinderReport
from finder_config import FinderSettings, load_settings
from logging_utils import configure_logging, log_event
from outcomes import SessionAcquisitionError

logger = logging.getLogger("book-finder")


def format_report(report: FinderReport, currency: str) -> str:
    if not report.books:
        lines = ["No results: no books with valid price per page information found."]
    else:
        lines = ["Books sorted by price per page (cheapest first):"]
        for index, book in enumerate(report.books, start=1):
            lines.extend(
                [
                    "",
                    f"{index}. {book.name}",
                    f"   Price: {book.price:.2f} {currency}",
                    f"   Pages: {book.page_count}",
                    f"   Price per page: {book.price_per_page:.2f} {currency}",
                    f"   URL: {book.url}",
                ]
            )

    lines.extend(
        [
            "",
            f"Queries scanned: {report.queries_scanned} (failed: {report.queries_failed})",
            f"Links discovered: {report.links_discovered} (unique: {report.unique_links})",
            f"Total books processed: {report.books_extracted} (failed: {report.extraction_failures})",
            f"Books in report: {len(report.books)}",
        ]
    )
    return "\n".join(lines)


def write_report(output_path: Path, report: FinderReport) -> None:
    output_path.write_text(
        json.dumps(
            [{"rank": index, **book.to_dict()} for index, book in enumerate(report.books, start=1)],
            ensure_ascii=False,
            indent=2,
        ),
        encoding="utf-8",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find the cheapest books per page using Playwright")
    parser.add_argument("--config", default=None, help="Path to finder JSON config (default: finder_config.json)")
    parser.add_argument(
        "--query",
        action="append",
        default=None,
        help="Search query. Repeat to scan several queries; replaces the configured queries.",
    )
    parser.add_argument("--output", default=None, help="Optional JSON file for the ranked report")
    parser.add_argument("--headed", action="store_true", help="Run browser in headed mode")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def run(settings: FinderSettings, output: str | None = None) -> int:
    try:
        async with open_session(settings) as session:
            report = await BookFinder(settings=settings).run(session)
    except SessionAcquisitionError as exc:
        log_event(logger, logging.ERROR, "session_acquisition_failed", error=str(exc))
        return 1

    print(format_report(report, settings.currency))
    if output:
        write_report(Path(output), report)
        print(f"Saved {len(report.books)} ranked books to {output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = load_settings(args.config)
        if args.query:
            settings = replace(settings, queries=tuple(query.strip() for query in args.query if query.strip()))
        if args.headed:
            settings = replace(settings, headless=False)
    except (OSError, ValueError) as exc:
        log_event(logger, logging.ERROR, "invalid_configuration", error=str(exc))
        return 1

    if not settings.queries:
        log_event(logger, logging.WARNING, "no_queries_configured")

    return asyncio.run(run(settings, args.output))


if __name__ == "__main__":
    sys.exit(main())
