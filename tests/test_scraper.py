from __future__ import annotations

import json
from contextlib import asynccontextmanager
from decimal import Decimal
from pathlib import Path

import pytest

import scraper
from books import Book
from fakes import FakeDocument, FakeSession, book_document
from finder import FinderReport, build_search_url
from finder_config import load_settings
from outcomes import SessionAcquisitionError


def make_report() -> FinderReport:
    return FinderReport(
        books=[
            Book(name="Люди Икс", price=Decimal("300"), page_count=240, url="https://shop.test/item/1"),
            Book(name="Batman", price=Decimal("500"), page_count=200, url="https://shop.test/item/2"),
        ],
        queries_scanned=1,
        links_discovered=3,
        unique_links=3,
        books_extracted=2,
        extraction_failures=1,
    )


def test_format_report_lists_ranked_books() -> None:
    text = scraper.format_report(make_report(), "₽")

    assert "1. Люди Икс" in text
    assert "   Price: 300.00 ₽" in text
    assert "   Pages: 240" in text
    assert "   Price per page: 1.25 ₽" in text
    assert "   URL: https://shop.test/item/1" in text
    assert text.index("1. Люди Икс") < text.index("2. Batman")
    assert "Total books processed: 2 (failed: 1)" in text


def test_format_report_without_books() -> None:
    assert scraper.format_report(FinderReport(books=[]), "₽").startswith("No results")


def test_write_report(tmp_path: Path) -> None:
    output = tmp_path / "ranked.json"

    scraper.write_report(output, make_report())

    data = json.loads(output.read_text(encoding="utf-8"))
    assert [entry["rank"] for entry in data] == [1, 2]
    assert data[0]["price_per_page"] == "1.25"
    assert data[0]["page_count"] == 240


def fake_open_session(session: FakeSession):
    @asynccontextmanager
    async def _open(settings):
        yield session

    return _open


def config_file(tmp_path: Path, queries: list[str]) -> Path:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "queries": queries,
                "search_url_template": "https://shop.test/search?q={query}&p={min_price}-{max_price}",
                "scroll_delay_min": 0,
                "scroll_delay_max": 0,
                "incremental_scroll_every": 0,
            }
        ),
        encoding="utf-8",
    )
    return path


def test_main_prints_report_and_exits_zero(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    path = config_file(tmp_path, ["comics"])
    search = build_search_url("comics", load_settings(path))
    session = FakeSession(
        {
            search: FakeDocument(search, counts=[2, 2, 2], hrefs=["/item/1", "/item/2"]),
            "https://shop.test/item/1": book_document("https://shop.test/item/1", name="A", price="400 ₽", pages=200),
            "https://shop.test/item/2": book_document("https://shop.test/item/2", name="B", price="не указана"),
        }
    )
    monkeypatch.setattr(scraper, "open_session", fake_open_session(session))
    output = tmp_path / "ranked.json"

    exit_code = scraper.main(["--config", str(path), "--output", str(output)])

    assert exit_code == 0
    assert "1. A" in capsys.readouterr().out
    assert len(json.loads(output.read_text(encoding="utf-8"))) == 1


def test_main_with_no_results_exits_zero(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr(scraper, "open_session", fake_open_session(FakeSession()))

    exit_code = scraper.main(["--config", str(config_file(tmp_path, ["comics"]))])

    assert exit_code == 0
    assert "No results" in capsys.readouterr().out


def test_main_exits_non_zero_when_session_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    @asynccontextmanager
    async def failing_open(settings):
        raise SessionAcquisitionError("Could not launch Chromium.")
        yield  # pragma: no cover

    monkeypatch.setattr(scraper, "open_session", failing_open)

    assert scraper.main(["--config", str(config_file(tmp_path, ["comics"]))]) == 1


def test_main_exits_non_zero_on_invalid_config(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"batch_size": 0}), encoding="utf-8")

    assert scraper.main(["--config", str(path)]) == 1


@pytest.mark.parametrize("batch_size", [2.5, "5"])
def test_main_exits_non_zero_on_mistyped_batch_size(tmp_path: Path, batch_size: object) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"batch_size": batch_size}), encoding="utf-8")

    assert scraper.main(["--config", str(path)]) == 1


def test_query_and_headed_flags_override_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    async def fake_run(settings, output=None):
        seen["settings"] = settings
        return 0

    monkeypatch.setattr(scraper, "run", fake_run)

    scraper.main(["--config", str(config_file(tmp_path, ["comics"])), "--query", "batman", "--headed"])

    assert seen["settings"].queries == ("batman",)
    assert seen["settings"].headless is False
