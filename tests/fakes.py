"""
Scripted stand-ins for the Playwright driver.
"""

from __future__ import annotations

import asyncio
from typing import Any

from book_page import BODY_TEXT_JS, SPECIFICATIONS_JS
from browser import Document, Session
from listing_scan import COLLECT_HREFS_JS, COUNT_ITEMS_JS, PAGE_HEIGHT_JS, SCROLL_TO_BOTTOM_JS, SCROLL_TO_JS
from outcomes import InteractionError, PageLoadError

HEADER = ".product-page__header h1"
PRICE = ".price-block__final-price"


class FakeDocument(Document):
    def __init__(
        self,
        url: str,
        *,
        counts: list[int] | None = None,
        hrefs: list[str | None] | None = None,
        texts: dict[str, str] | None = None,
        spec_pairs: list[list[str]] | None = None,
        body_text: str = "",
        load_more: str | None = None,
        delay: float = 0.0,
    ) -> None:
        self._url = url
        self.counts = list(counts or [])
        self.hrefs = list(hrefs or [])
        self.texts = dict(texts or {})
        self.spec_pairs = spec_pairs or []
        self.body_text = body_text
        # None: control absent, "ok": clickable, "fail": click raises
        self.load_more = load_more
        self.delay = delay

        self.count_reads = 0
        self.bottom_scrolls = 0
        self.step_scrolls: list[int] = []
        self.clicks = 0
        self.pauses: list[float] = []
        self.closed = False

    @property
    def url(self) -> str:
        return self._url

    async def query_text(self, selector: str) -> str | None:
        return self.texts.get(selector)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if self.delay:
            await asyncio.sleep(self.delay)
        if script == COUNT_ITEMS_JS:
            index = min(self.count_reads, len(self.counts) - 1)
            self.count_reads += 1
            return self.counts[index] if self.counts else 0
        if script == COLLECT_HREFS_JS:
            return list(self.hrefs)
        if script == SCROLL_TO_BOTTOM_JS:
            self.bottom_scrolls += 1
            return None
        if script == PAGE_HEIGHT_JS:
            return 3000
        if script == SCROLL_TO_JS:
            self.step_scrolls.append(arg)
            return None
        if script == SPECIFICATIONS_JS:
            return [list(pair) for pair in self.spec_pairs]
        if script == BODY_TEXT_JS:
            return self.body_text
        raise AssertionError(f"Unexpected script: {script!r}")

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        return selector in self.texts

    async def click(self, selector: str, timeout_ms: int) -> bool:
        if self.load_more is None:
            return False
        self.clicks += 1
        if self.load_more == "fail":
            raise InteractionError(f"Click on {selector} failed", url=self._url)
        return True

    async def pause(self, seconds: float) -> None:
        self.pauses.append(seconds)

    async def close(self) -> None:
        self.closed = True


def book_document(
    url: str,
    *,
    name: str = "Люди Икс. Том 1",
    price: str | None = "499 ₽",
    pages: int | None = 320,
    delay: float = 0.0,
) -> FakeDocument:
    texts = {HEADER: name}
    if price is not None:
        texts[PRICE] = price
    spec_pairs = [["Количество страниц", f"{pages} стр."]] if pages is not None else []
    return FakeDocument(url, texts=texts, spec_pairs=spec_pairs, delay=delay)


class FakeSession(Session):
    def __init__(self, documents: dict[str, FakeDocument | Exception] | None = None) -> None:
        self.documents = dict(documents or {})
        self.opened: list[str] = []
        self.closed = False

    async def new_document(self, url: str) -> Document:
        self.opened.append(url)
        document = self.documents.get(url)
        if document is None:
            raise PageLoadError(f"Navigation failed: no page scripted for {url}", url=url)
        if isinstance(document, Exception):
            raise document
        return document

    async def close(self) -> None:
        self.closed = True


class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status


class FakeLocator:
    def __init__(self, text: str) -> None:
        self._text = text

    async def inner_text(self) -> str:
        return self._text


class FakePage:
    """
    Minimal Playwright page. ``fail_on`` names the call that raises
    ``failure``: "goto" or "title".
    """

    def __init__(
        self,
        *,
        status: int = 200,
        title: str = "Каталог",
        body: str = "Книги и комиксы",
        fail_on: str | None = None,
        failure: BaseException | None = None,
    ) -> None:
        self.status = status
        self._title = title
        self.body = body
        self.fail_on = fail_on
        self.failure = failure
        self.visited: list[str] = []
        self.closed = False

    async def goto(self, url: str, **kwargs: Any) -> FakeResponse:
        self.visited.append(url)
        if self.fail_on == "goto":
            raise self.failure
        return FakeResponse(self.status)

    async def title(self) -> str:
        if self.fail_on == "title":
            raise self.failure
        return self._title

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self.body)

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, page: FakePage | None = None) -> None:
        self.page = page or FakePage()
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, context: FakeContext | None = None, context_error: BaseException | None = None) -> None:
        self.context = context or FakeContext()
        self.context_error = context_error
        self.context_options: dict[str, Any] = {}
        self.closed = False

    async def new_context(self, **kwargs: Any) -> FakeContext:
        if self.context_error is not None:
            raise self.context_error
        self.context_options = kwargs
        return self.context

    async def close(self) -> None:
        self.closed = True


class FakeChromium:
    def __init__(self, browser: FakeBrowser | None = None, launch_error: BaseException | None = None) -> None:
        self.browser = browser or FakeBrowser()
        self.launch_error = launch_error
        self.launch_options: dict[str, Any] = {}

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        if self.launch_error is not None:
            raise self.launch_error
        self.launch_options = kwargs
        return self.browser


class FakePlaywright:
    def __init__(self, chromium: FakeChromium | None = None) -> None:
        self.chromium = chromium or FakeChromium()
        self.stopped = False

    def __call__(self) -> "FakePlaywright":
        return self

    async def __aenter__(self) -> "FakePlaywright":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.stopped = True
