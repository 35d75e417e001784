from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from models import TextSource
from parsers import SUPPORTED_EXTENSIONS, UnsupportedFormatError, extract, parse_file
from parsers.base import TextNormalization, normalize_text, placeholder_text
from parsers.text_parser import extract_author, extract_title, parse_text


def test_two_chapter_text_file(tmp_path: Path) -> None:
    path = tmp_path / "hello.txt"
    path.write_text("Chapter 1\nHello world.\n\nChapter 2\nGoodbye.", encoding="utf-8")

    document = parse_file(path)

    assert [ch.title for ch in document.chapters] == ["Chapter 1", "Chapter 2"]
    assert document.chapters[0].content == "Hello world."
    assert document.chapters[1].content == "Goodbye."
    assert isinstance(document.source, TextSource)
    assert document.source.encoding == "utf-8"
    assert document.metadata["format"] == "text"


def test_zero_byte_file_gets_placeholder_chapter(tmp_path: Path) -> None:
    path = tmp_path / "empty.txt"
    path.write_bytes(b"")

    document = parse_file(path)

    assert document.title == "empty"
    assert document.author == "Unknown Author"
    assert len(document.chapters) == 1
    assert document.chapters[0].content == placeholder_text("empty")
    assert document.full_text == placeholder_text("empty")


def test_gbk_text_file_is_readable() -> None:
    text = "我的书\n作者：张三\n\n第一章 开始\n" + "这是第一章的内容。\n" * 30 + "第二章 继续\n" + "这是第二章。\n" * 30
    document = parse_text(text.encode("gbk"), "book.txt")

    assert document.source.encoding == "gbk"
    assert "\ufffd" not in document.full_text
    assert document.title == "我的书"
    assert document.author == "张三"
    assert [ch.title for ch in document.chapters[-2:]] == ["第一章 开始", "第二章 继续"]


def test_title_skips_headings_and_author_lines() -> None:
    lines = ["Chapter 1", "by Jane Doe", "The Real Title", "Body"]
    assert extract_title(lines, "file.txt") == "The Real Title"
    assert extract_title(["x" * 150], "my-novel.txt") == "my-novel"
    assert extract_title([], "my-novel.txt") == "my-novel"


@pytest.mark.parametrize(
    ("line", "author"),
    [
        ("Author: Jane Doe", "Jane Doe"),
        ("by Jane Doe", "Jane Doe"),
        ("作者：张三", "张三"),
        ("Original author : Someone Else", "Someone Else"),
    ],
)
def test_extract_author(line: str, author: str) -> None:
    assert extract_author(["Title", line, "text"]) == author


def test_extract_author_defaults_to_unknown() -> None:
    assert extract_author(["Title", "Chapter 1", "Authorless body"]) == "Unknown Author"


def test_normalize_text() -> None:
    raw = "\ufeffLine one  \r\n\u201cQuoted\u201d\r\n\n\n\n\n\nLast\ufffd\n\n"
    assert normalize_text(raw) == 'Line one\n"Quoted"\n\nLast'


def test_sentence_breaks_are_opt_in() -> None:
    raw = "First sentence. Second sentence! 第一句。第二句。"
    assert normalize_text(raw) == raw
    broken = normalize_text(raw, TextNormalization(sentence_breaks=True))
    assert broken.split("\n") == ["First sentence.", "Second sentence! 第一句。", "第二句。"]


def test_extract_dispatches_on_mime_type() -> None:
    document = asyncio.run(extract(b"Chapter 1\nHi.", "upload", mime_type="text/plain; charset=utf-8"))
    assert document.chapters[0].title == "Chapter 1"


def test_unsupported_format_is_rejected() -> None:
    assert ".docx" not in SUPPORTED_EXTENSIONS
    with pytest.raises(UnsupportedFormatError):
        asyncio.run(extract(b"data", "book.docx"))


def test_payload_shape() -> None:
    document = parse_text(b"Chapter 1\nHello world.", "hello.txt")
    payload = document.as_payload(total_pages=7)
    assert payload["totalPages"] == 7
    assert payload["chapters"] == [{"id": "chapter-1", "title": "Chapter 1", "content": "Hello world."}]
    assert payload["wordCount"] == 3
    assert "cover" not in payload
