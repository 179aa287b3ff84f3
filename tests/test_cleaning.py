from __future__ import annotations

import allure
import pytest

from news_monitor.ingestion.cleaning import html_to_text, matches_keyword, split_aggregator_title

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Feed Intake & Cleaning"),
]


def test_html_to_text_removes_tags_and_scripts() -> None:
    raw = "<p>Hello <b>world</b></p><script>alert(1)</script><style>p{}</style> &amp; more"

    assert html_to_text(raw) == "Hello world & more"
    assert html_to_text(None) == ""


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Output rises - Reuters", ("Output rises", "Reuters")),
        ("Q1 - strong - Antara News", ("Q1 - strong", "Antara News")),
        ("No separator here", ("No separator here", None)),
        (" - Reuters", ("- Reuters", None)),
    ],
)
def test_split_aggregator_title(raw: str, expected: tuple[str, str | None]) -> None:
    assert split_aggregator_title(raw) == expected


def test_matches_keyword_is_case_insensitive() -> None:
    assert matches_keyword("New OFFSHORE block awarded", "offshore")
    assert not matches_keyword("New block awarded", "offshore")
    assert not matches_keyword("anything", "   ")
