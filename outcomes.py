"""
Error taxonomy and the result type that carries failures across component
boundaries without raising.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class FinderError(Exception):
    pass


class SessionAcquisitionError(FinderError):
    """The browser session could not be started. Aborts the run."""


class ScrapeError(FinderError):
    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class PageLoadError(ScrapeError):
    pass


class BlockedPageError(PageLoadError):
    """Target answered with a rate-limit or bot-challenge page."""


class NoItemsFoundError(ScrapeError):
    pass


class InteractionError(ScrapeError):
    pass


class ExtractionError(ScrapeError):
    pass


class HeaderNotFoundError(ExtractionError):
    pass


class MissingNameError(ExtractionError):
    pass


class InvalidPriceError(ExtractionError):
    pass


class MissingMeasureError(ExtractionError):
    pass


@dataclass(frozen=True)
class ErrorDetail:
    kind: str
    message: str
    url: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, url: str | None = None) -> "ErrorDetail":
        if isinstance(exc, ScrapeError) and exc.url:
            url = exc.url
        return cls(kind=type(exc).__name__, message=str(exc) or type(exc).__name__, url=url)


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Either a value or an error detail, never both.

    A missing value marks the error side, so a result cannot carry ``None``:
    ``OperationResult.success(None)`` raises ``ValueError``.
    """

    value: T | None = None
    error: ErrorDetail | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("OperationResult needs exactly one of value or error.")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorDetail) -> "OperationResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, raising ``ValueError`` on the error side."""
        if self.error is not None:
            raise ValueError(f"{self.error.kind}: {self.error.message}")
        return self.value  # type: ignore[return-value]


async def attempt(awaitable: Awaitable[T], *, url: str | None = None) -> OperationResult[T]:
    """
    Await and capture the outcome. Any exception becomes an error result.
    """

    try:
        return OperationResult.success(await awaitable)
    except Exception as exc:
        return OperationResult.failure(ErrorDetail.from_exception(exc, url))
