"""
Rendered-document driver: the narrow surface the finder needs from a browser,
with a Playwright implementation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from finder_config import FinderSettings
from logging_utils import log_event
from outcomes import BlockedPageError, InteractionError, PageLoadError, SessionAcquisitionError

logger = logging.getLogger(__name__)


class Document(ABC):
    """
    One rendered page. Owned by a single operation and closed by it.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @abstractmethod
    async def query_text(self, selector: str) -> str | None:
        """Text of the first match, or None when nothing matches."""

    @abstractmethod
    async def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        ...

    @abstractmethod
    async def click(self, selector: str, timeout_ms: int) -> bool:
        """
        Click the first match. False when absent; raises InteractionError when
        the element exists but the click or the load it triggers fails.
        """

    @abstractmethod
    async def pause(self, seconds: float) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class Session(ABC):
    @abstractmethod
    async def new_document(self, url: str) -> Document:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


def _is_bot_challenge(response_status: int | None, title: str, body_preview: str) -> bool:
    return (
        (response_status is not None and response_status == 403)
        or "just a moment" in title
        or "security verification" in body_preview
        or "cloudflare" in body_preview
    )


def _is_rate_limited(response_status: int | None, title: str, body_preview: str) -> bool:
    return (
        response_status == 429
        or "error 1015" in title
        or "rate limited" in title
        or "error 1015" in body_preview
        or "you are being rate limited" in body_preview
    )


class PlaywrightDocument(Document):
    def __init__(self, page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def query_text(self, selector: str) -> str | None:
        locator = self._page.locator(selector).first
        if await locator.count() == 0:
            return None
        return await locator.text_content()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightError:
            return False
        return True

    async def click(self, selector: str, timeout_ms: int) -> bool:
        locator = self._page.locator(selector).first
        if await locator.count() == 0:
            return False
        try:
            await locator.click(timeout=timeout_ms)
        except PlaywrightError as exc:
            raise InteractionError(f"Click on {selector} failed: {exc}", url=self.url) from exc
        try:
            await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightError:
            log_event(logger, logging.DEBUG, "load_after_click_timeout", selector=selector, url=self.url)
        return True

    async def pause(self, seconds: float) -> None:
        await self._page.wait_for_timeout(int(seconds * 1000))

    async def close(self) -> None:
        await self._page.close()


class PlaywrightSession(Session):
    def __init__(self, context, settings: FinderSettings) -> None:
        self._context = context
        self._settings = settings

    async def new_document(self, url: str) -> Document:
        page = await self._context.new_page()
        try:
            response = await page.goto(
                url,
                wait_until="networkidle",
                timeout=self._settings.navigation_timeout_ms,
            )
            status = response.status if response else None
            title = (await page.title()).strip().lower()
            body_preview = (await page.locator("body").inner_text())[:1000].lower()
        except PlaywrightError as exc:
            await page.close()
            raise PageLoadError(f"Navigation failed: {exc}", url=url) from exc
        except BaseException:
            await page.close()
            raise

        if _is_rate_limited(status, title, body_preview):
            await page.close()
            raise BlockedPageError("Rate limit detected (Error 1015/429).", url=url)
        if _is_bot_challenge(status, title, body_preview):
            await page.close()
            raise BlockedPageError("Target page returned a bot challenge.", url=url)
        return PlaywrightDocument(page)

    async def close(self) -> None:
        await self._context.close()


@asynccontextmanager
async def open_session(settings: FinderSettings) -> AsyncIterator[Session]:
    """
    Launch one browser for the whole run and close it on every exit path.
    """

    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(
                headless=settings.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
        except PlaywrightError as exc:
            raise SessionAcquisitionError(
                "Could not launch Chromium. If the browser binaries are missing run: "
                "python -m playwright install chromium"
            ) from exc

        try:
            context = await browser.new_context(
                viewport={"width": settings.viewport_width, "height": settings.viewport_height},
                user_agent=settings.user_agent,
            )
        except PlaywrightError as exc:
            await browser.close()
            raise SessionAcquisitionError(f"Could not create a browser context: {exc}") from exc

        session = PlaywrightSession(context, settings)
        log_event(logger, logging.INFO, "browser_session_opened", headless=settings.headless)
        try:
            yield session
        finally:
            await session.close()
            await browser.close()
            log_event(logger, logging.INFO, "browser_session_closed")
