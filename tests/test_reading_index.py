from __future__ import annotations

import pytest

from models import Page, PaginatedChapter, TypographyConfig
from parsers.text_parser import parse_text
from paginator import paginate
from reading_index import PositionIndex


def _chapter(chapter_id: str, title: str, pages: list[str], start: int) -> PaginatedChapter:
    return PaginatedChapter(
        chapter_id=chapter_id,
        title=title,
        pages=[Page(chapter_id, content) for content in pages],
        start_page=start,
        end_page=start + len(pages) - 1,
    )


@pytest.fixture
def index() -> PositionIndex:
    return PositionIndex([
        _chapter("chapter-1", "One", ["Alpha page. The whale.", "Beta page."], 0),
        _chapter("chapter-2", "Two", ["Gamma WHALE and whale.", "Delta.", "Epsilon."], 2),
    ])


def test_search_in_paginated_text_document() -> None:
    document = parse_text(b"Chapter 1\nHello world.\n\nChapter 2\nGoodbye.", "hello.txt")
    index = PositionIndex(paginate(document.chapters, TypographyConfig()))

    hits = index.search_text("world")

    assert len(hits) == 1
    assert hits[0].chapter_title == "Chapter 1"
    assert hits[0].global_page == 0
    assert "Hello world." in hits[0].context


def test_locate_and_page_info(index: PositionIndex) -> None:
    assert index.total_pages == 5
    chapter, page_in_chapter = index.locate(3)
    assert chapter.chapter_id == "chapter-2"
    assert page_in_chapter == 1

    info = index.get_page_info(3)
    assert info.content == "Delta."
    assert info.chapter_title == "Two"
    assert info.page_in_chapter == 1
    assert info.total_pages_in_chapter == 3
    assert info.global_page == 3
    assert info.total_pages == 5


def test_out_of_range_pages_are_clamped(index: PositionIndex) -> None:
    assert index.get_page_info(-4).global_page == 0
    assert index.get_page_info(99).global_page == 4
    assert index.get_page_info(99).content == "Epsilon."


def test_position_progress(index: PositionIndex) -> None:
    position = index.get_position(2)
    assert position.chapter_id == "chapter-2"
    assert position.page_in_chapter == 0
    assert position.progress_percent == pytest.approx(60.0)
    assert index.get_position(4).progress_percent == pytest.approx(100.0)


def test_chapter_first_page(index: PositionIndex) -> None:
    assert index.chapter_first_page("chapter-2") == 2
    with pytest.raises(KeyError):
        index.chapter_first_page("missing")


def test_search_is_case_insensitive_and_counts_every_match(index: PositionIndex) -> None:
    hits = index.search_text("whale")
    assert [(hit.chapter_id, hit.global_page) for hit in hits] == [
        ("chapter-1", 0),
        ("chapter-2", 2),
        ("chapter-2", 2),
    ]
    for hit in hits:
        page = index.get_page_info(hit.global_page).content
        assert page[hit.match_offset:hit.match_offset + 5].lower() == "whale"


def test_search_treats_query_literally(index: PositionIndex) -> None:
    assert index.search_text("a.e") == []
    assert len(index.search_text("page.")) == 2
    assert index.search_text("") == []


def test_search_context_is_clipped(index: PositionIndex) -> None:
    hit = index.search_text("Beta", context_chars=3)[0]
    assert hit.context == "Beta pa"


def test_empty_index_is_rejected() -> None:
    with pytest.raises(ValueError):
        PositionIndex([])
