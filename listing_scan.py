"""
Scroll a lazily loaded listing page until the number of item links stops
growing, then collect the links.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from urllib.parse import urljoin

from browser import Document, Session
from finder_config import FinderSettings
from logging_utils import log_event
from outcomes import InteractionError, NoItemsFoundError, OperationResult, attempt

logger = logging.getLogger(__name__)

COUNT_ITEMS_JS = "selector => document.querySelectorAll(selector).length"
COLLECT_HREFS_JS = (
    "selector => Array.from(document.querySelectorAll(selector))"
    ".map(el => el.getAttribute('href')).filter(href => href !== null)"
)
SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"
PAGE_HEIGHT_JS = "() => document.body.scrollHeight"
SCROLL_TO_JS = "position => window.scrollTo(0, position)"

INCREMENTAL_SCROLL_STEPS = 3


@dataclass
class ScanState:
    stability_window: int
    seen_counts: list[int] = field(default_factory=list)

    def observe(self, count: int) -> None:
        self.seen_counts.append(count)

    @property
    def current(self) -> int:
        return self.seen_counts[-1] if self.seen_counts else 0

    def converged(self) -> bool:
        """
        True once the last ``stability_window`` observations show no growth
        over the first of them. A shrinking count is no growth.
        """

        if len(self.seen_counts) < self.stability_window:
            return False
        window = self.seen_counts[-self.stability_window:]
        return all(count <= window[0] for count in window[1:])


@dataclass(frozen=True)
class ScanOutcome:
    url: str
    links: list[str]
    attempts: int
    seen_counts: list[int]


def _parse_total(text: str | None) -> int | None:
    if not text:
        return None
    match = re.search(r"\d+", re.sub(r"\s+", "", text))
    return int(match.group()) if match else None


class ListingScanner:
    def __init__(self, settings: FinderSettings) -> None:
        self.settings = settings
        self.selectors = settings.listing

    async def scan(self, document: Document, url: str) -> ScanOutcome:
        state = ScanState(stability_window=self.settings.stability_window)
        expected_total = await self._expected_total(document)
        attempts = 0

        while attempts < self.settings.max_scroll_attempts:
            state.observe(int(await document.evaluate(COUNT_ITEMS_JS, self.selectors.item_link) or 0))
            attempts += 1
            log_event(
                logger,
                logging.DEBUG,
                "listing_count_observed",
                url=url,
                count=state.current,
                attempt=attempts,
            )

            if expected_total and state.current >= expected_total:
                log_event(logger, logging.INFO, "listing_total_reached", url=url, total=expected_total)
                break
            if state.converged():
                break
            if attempts >= self.settings.max_scroll_attempts:
                break

            await self._trigger_load(document, url, attempts)

        links = await self._collect_links(document, url)
        if not links:
            raise NoItemsFoundError(f"No item links found on {url}", url=url)

        log_event(
            logger,
            logging.INFO,
            "listing_scan_completed",
            url=url,
            links=len(links),
            attempts=attempts,
        )
        return ScanOutcome(url=url, links=links, attempts=attempts, seen_counts=list(state.seen_counts))

    async def _expected_total(self, document: Document) -> int | None:
        if not self.selectors.total_count:
            return None
        return _parse_total(await document.query_text(self.selectors.total_count))

    async def _trigger_load(self, document: Document, url: str, attempts: int) -> None:
        await document.evaluate(SCROLL_TO_BOTTOM_JS)
        await document.pause(random.uniform(self.settings.scroll_delay_min, self.settings.scroll_delay_max))

        if self.selectors.load_more:
            try:
                clicked = await document.click(self.selectors.load_more, self.settings.load_more_timeout_ms)
                if clicked:
                    log_event(logger, logging.DEBUG, "load_more_clicked", url=url)
            except InteractionError as exc:
                log_event(logger, logging.DEBUG, "load_more_failed", url=url, error=str(exc))

        every = self.settings.incremental_scroll_every
        if every and (attempts - 1) % every == 0:
            total_height = await document.evaluate(PAGE_HEIGHT_JS) or 0
            for step in range(1, INCREMENTAL_SCROLL_STEPS + 1):
                await document.evaluate(SCROLL_TO_JS, int(total_height / INCREMENTAL_SCROLL_STEPS * step))
                await document.pause(self.settings.incremental_scroll_pause)

    async def _collect_links(self, document: Document, url: str) -> list[str]:
        hrefs = await document.evaluate(COLLECT_HREFS_JS, self.selectors.item_link) or []
        links: list[str] = []
        seen: set[str] = set()
        for href in hrefs:
            if not href:
                continue
            absolute = urljoin(url, href)
            if absolute in seen:
                continue
            seen.add(absolute)
            links.append(absolute)
        return links

    async def scan_listing(self, session: Session, url: str) -> OperationResult[ScanOutcome]:
        return await attempt(self._open_and_scan(session, url), url=url)

    async def _open_and_scan(self, session: Session, url: str) -> ScanOutcome:
        document = await session.new_document(url)
        try:
            return await self.scan(document, url)
        finally:
            await document.close()
