"""
Detail-page extraction: name, price and page count of one book.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation

from books import Book
from browser import Document, Session
from finder_config import FinderSettings
from logging_utils import log_event
from outcomes import (
    HeaderNotFoundError,
    InvalidPriceError,
    MissingMeasureError,
    MissingNameError,
    OperationResult,
    attempt,
)

logger = logging.getLogger(__name__)

# Returns [label, value] pairs for every specification cell. A cell whose
# plain text mentions a page unit is reported under PAGE_COUNT_LABEL.
SPECIFICATIONS_JS = """
({cell, title, value, units, pageLabel}) => {
  const pairs = [];
  document.querySelectorAll(cell).forEach((element) => {
    const name = (element.querySelector(title)?.textContent || '').trim();
    const text = (element.querySelector(value)?.textContent || '').trim();
    if (name && text) {
      pairs.push([name, text]);
    }
    const spanText = (element.querySelector('span')?.textContent || '').trim();
    if (spanText && units.some((unit) => spanText.includes(unit))) {
      pairs.push([pageLabel, spanText]);
    }
  });
  return pairs;
}
"""
BODY_TEXT_JS = "() => document.body ? document.body.innerText : ''"

PAGE_COUNT_LABEL = "Количество страниц"

_PRICE_RE = re.compile(r"[\d\s,.]+")
_INT_RE = re.compile(r"\d+")


def _normalize_separators(candidate: str) -> str:
    """
    The last separator is the decimal point and earlier ones group thousands.
    Repeated identical separators before a three-digit tail all group.
    """

    positions = [index for index, char in enumerate(candidate) if char in ",."]
    if not positions:
        return candidate
    last = positions[-1]
    whole = re.sub(r"[,.]", "", candidate[:last])
    fraction = candidate[last + 1:]
    if len(positions) > 1 and candidate[positions[-2]] == candidate[last] and len(fraction) == 3:
        return whole + fraction
    return f"{whole}.{fraction}"


def parse_price(text: str | None) -> Decimal | None:
    """
    First numeric run of a price label, e.g. ``"1 299,50 ₽"`` -> ``1299.50``
    and ``"1,299.00"`` -> ``1299.00``.
    """

    if not text:
        return None
    for match in _PRICE_RE.finditer(text):
        candidate = re.sub(r"\s+", "", match.group()).strip(",.")
        if not candidate:
            continue
        try:
            return Decimal(_normalize_separators(candidate))
        except InvalidOperation:
            return None
    return None


def page_count_from_specifications(pairs: list[list[str]], keywords: tuple[str, ...]) -> int | None:
    lowered = [keyword.lower() for keyword in keywords]
    for label, value in pairs:
        if not any(keyword in label.lower() for keyword in lowered):
            continue
        match = _INT_RE.search(value)
        if match and int(match.group()) > 0:
            return int(match.group())
    return None


def page_count_from_text(text: str, units: tuple[str, ...]) -> int | None:
    if not text or not units:
        return None
    pattern = re.compile(
        r"(\d+)\s*(?:" + "|".join(re.escape(unit) for unit in units) + ")",
        re.IGNORECASE,
    )
    for match in pattern.finditer(text):
        value = int(match.group(1))
        if value > 0:
            return value
    return None


class DetailExtractor:
    def __init__(self, settings: FinderSettings) -> None:
        self.settings = settings
        self.selectors = settings.detail

    async def extract(self, document: Document, url: str) -> OperationResult[Book]:
        return await attempt(self._extract(document, url), url=url)

    async def _extract(self, document: Document, url: str) -> Book:
        header_found = await document.wait_for_selector(self.selectors.header, self.settings.header_timeout_ms)
        if not header_found:
            raise HeaderNotFoundError(f"Product header not found for {url}", url=url)

        name = (await document.query_text(self.selectors.header) or "").strip()
        if not name:
            raise MissingNameError(f"Could not extract product name for {url}", url=url)

        price_text = await document.query_text(self.selectors.price)
        price = parse_price(price_text)
        if price is None or price <= 0:
            raise InvalidPriceError(f"Could not extract valid price from {price_text!r} for {url}", url=url)

        page_count = await self._page_count(document)
        if not page_count:
            raise MissingMeasureError(f"Could not find page count for {url}", url=url)

        return Book(name=name, price=price, page_count=page_count, url=url)

    async def _page_count(self, document: Document) -> int | None:
        pairs = await document.evaluate(
            SPECIFICATIONS_JS,
            {
                "cell": self.selectors.spec_cell,
                "title": self.selectors.spec_title,
                "value": self.selectors.spec_value,
                "units": list(self.settings.page_units),
                "pageLabel": PAGE_COUNT_LABEL,
            },
        )
        page_count = page_count_from_specifications(pairs or [], self.settings.page_keywords)
        if page_count:
            return page_count

        log_event(logger, logging.DEBUG, "page_count_fallback_to_text", url=document.url)
        return page_count_from_text(await document.evaluate(BODY_TEXT_JS) or "", self.settings.page_units)

    async def extract_book(self, session: Session, url: str) -> OperationResult[Book]:
        """
        Open ``url`` in its own document, extract, and always close it.
        """

        return await attempt(self._open_and_extract(session, url), url=url)

    async def _open_and_extract(self, session: Session, url: str) -> Book:
        document = await session.new_document(url)
        try:
            return await self._extract(document, url)
        finally:
            await document.close()
