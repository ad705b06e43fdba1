"""
Static run configuration: defaults plus an optional JSON overlay.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "finder_config.json"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class ListingSelectors:
    item_link: str = ".product-card-list .product-card__link"
    load_more: str | None = ".pagination-next"
    total_count: str | None = None


@dataclass(frozen=True)
class DetailSelectors:
    header: str = ".product-page__header h1"
    price: str = ".price-block__final-price"
    spec_cell: str = ".product-params__cell"
    spec_title: str = ".product-params__cell-title"
    spec_value: str = ".product-params__cell-text"


@dataclass(frozen=True)
class FinderSettings:
    queries: tuple[str, ...] = ()
    # Search URL with {query}, {min_price} and {max_price} placeholders. Prices
    # are substituted in minor units (kopecks).
    search_url_template: str = (
        "https://www.wildberries.ru/catalog/0/search.aspx"
        "?page=1&sort=popular&search={query}&priceU={min_price}%3B{max_price}&foriginal=1"
    )
    min_price: Decimal = Decimal("0")
    max_price: Decimal = Decimal("100000")

    batch_size: int = 5
    max_results: int | None = None
    max_price_per_page: Decimal | None = None
    excluded_keywords: tuple[str, ...] = ()

    listing: ListingSelectors = field(default_factory=ListingSelectors)
    detail: DetailSelectors = field(default_factory=DetailSelectors)
    page_keywords: tuple[str, ...] = ("Количество страниц", "Страниц", "страниц", "Pages", "pages")
    page_units: tuple[str, ...] = ("страниц", "pages")

    stability_window: int = 3
    max_scroll_attempts: int = 50
    scroll_delay_min: float = 1.0
    scroll_delay_max: float = 2.0
    incremental_scroll_every: int = 3
    incremental_scroll_pause: float = 0.5

    header_timeout_ms: int = 5000
    navigation_timeout_ms: int = 60000
    load_more_timeout_ms: int = 5000

    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: str = DEFAULT_USER_AGENT
    currency: str = "₽"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        if self.stability_window < 1:
            raise ValueError("stability_window must be at least 1.")
        if self.max_scroll_attempts < 1:
            raise ValueError("max_scroll_attempts must be at least 1.")
        if self.max_results is not None and self.max_results < 0:
            raise ValueError("max_results must not be negative.")
        if self.min_price < 0 or self.max_price < self.min_price:
            raise ValueError("Price range must satisfy 0 <= min_price <= max_price.")
        if self.max_price_per_page is not None and self.max_price_per_page <= 0:
            raise ValueError("max_price_per_page must be positive.")
        if self.scroll_delay_min < 0 or self.scroll_delay_max < self.scroll_delay_min:
            raise ValueError("Scroll delay must satisfy 0 <= scroll_delay_min <= scroll_delay_max.")
        if self.incremental_scroll_every < 0:
            raise ValueError("incremental_scroll_every must not be negative.")


_DECIMAL_KEYS = {"min_price", "max_price", "max_price_per_page"}
_TUPLE_KEYS = {"queries", "excluded_keywords", "page_keywords", "page_units"}
_INT_KEYS = {
    "batch_size",
    "max_results",
    "stability_window",
    "max_scroll_attempts",
    "incremental_scroll_every",
    "header_timeout_ms",
    "navigation_timeout_ms",
    "load_more_timeout_ms",
    "viewport_width",
    "viewport_height",
}
_NULLABLE_KEYS = {"max_results", "max_price_per_page"}
_FLOAT_KEYS = {"scroll_delay_min", "scroll_delay_max", "incremental_scroll_pause"}
_BOOL_KEYS = {"headless"}
_STR_KEYS = {"search_url_template", "user_agent", "currency"}
_NESTED = {"listing": ListingSelectors, "detail": DetailSelectors}


def _to_decimal(name: str, raw: Any) -> Decimal | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError(f"Invalid decimal for '{name}': {raw!r}")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid decimal for '{name}': {raw!r}") from exc


def _to_int(name: str, raw: Any) -> int | None:
    if raw is None and name in _NULLABLE_KEYS:
        return None
    # bool is an int subclass; JSON true/false is never a count.
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"'{name}' must be an integer, got {raw!r}.")
    return raw


def _to_float(name: str, raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"'{name}' must be a number, got {raw!r}.")
    return float(raw)


def _to_bool(name: str, raw: Any) -> bool:
    if not isinstance(raw, bool):
        raise ValueError(f"'{name}' must be true or false, got {raw!r}.")
    return raw


def _to_str(name: str, raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"'{name}' must be a non-empty string.")
    return raw


def _to_str_tuple(name: str, raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, list):
        raise ValueError(f"'{name}' must be a list of strings.")
    return tuple(str(item).strip() for item in raw if str(item).strip())


def _build_nested(name: str, raw: Any) -> ListingSelectors | DetailSelectors:
    model = _NESTED[name]
    if not isinstance(raw, dict):
        raise ValueError(f"'{name}' must be an object.")
    allowed = {item.name for item in fields(model)}
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {', '.join(sorted(unknown))}.")
    return model(**raw)


def settings_from_dict(data: dict[str, Any], base: FinderSettings | None = None) -> FinderSettings:
    """
    Overlay a plain mapping onto ``base`` (or the defaults).
    """

    allowed = {item.name for item in fields(FinderSettings)}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}.")

    overrides: dict[str, Any] = {}
    for key, raw in data.items():
        if key in _DECIMAL_KEYS:
            overrides[key] = _to_decimal(key, raw)
        elif key in _TUPLE_KEYS:
            overrides[key] = _to_str_tuple(key, raw)
        elif key in _NESTED:
            overrides[key] = _build_nested(key, raw)
        elif key in _INT_KEYS:
            overrides[key] = _to_int(key, raw)
        elif key in _FLOAT_KEYS:
            overrides[key] = _to_float(key, raw)
        elif key in _BOOL_KEYS:
            overrides[key] = _to_bool(key, raw)
        elif key in _STR_KEYS:
            overrides[key] = _to_str(key, raw)

    for key in ("min_price", "max_price"):
        if key in overrides and overrides[key] is None:
            raise ValueError(f"'{key}' must not be null.")

    return replace(base or FinderSettings(), **overrides)


def load_settings(config_path: str | Path | None = None) -> FinderSettings:
    """
    Load finder settings from a JSON file.
    """

    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Finder config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw_data, dict):
        raise ValueError("Invalid finder config: top level must be an object.")
    return settings_from_dict(raw_data)
