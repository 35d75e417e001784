"""parsers/text_parser.py — Parse plain-text books into chapters."""

import asyncio
import logging
import re

from decoder import decode
from headings import MAX_TITLE_LEN, is_chapter_heading
from models import RawDocument, TextSource
from parsers.base import (
    UNKNOWN_AUTHOR,
    TextNormalization,
    finalize_document,
    normalize_text,
    title_from_filename,
)
from segmenter import SegmenterOptions, segment

logger = logging.getLogger(__name__)

TITLE_SCAN_LINES = 10
AUTHOR_SCAN_LINES = 20

_AUTHOR_MARKER_RE = re.compile(r"作者|著者|\bauthor\b|^by\s", re.IGNORECASE)
_AUTHOR_LINE_RE = re.compile(
    r"^(?:.{0,40}?(?:作者|著者|author)\s*[:：]\s*|by\s+)(?P<name>.+)$",
    re.IGNORECASE,
)


def extract_author(lines: list[str]) -> str:
    """Find an explicit 'Author: X' / 'by X' / '作者：X' line near the top."""
    for line in lines[:AUTHOR_SCAN_LINES]:
        m = _AUTHOR_LINE_RE.match(line.strip())
        if m and m.group("name").strip():
            return m.group("name").strip()
    return UNKNOWN_AUTHOR


def extract_title(lines: list[str], filename: str) -> str:
    for line in lines[:TITLE_SCAN_LINES]:
        line = line.strip()
        if len(line) >= MAX_TITLE_LEN:
            continue
        if _AUTHOR_MARKER_RE.search(line) or is_chapter_heading(line):
            continue
        return line
    return title_from_filename(filename)


def parse_text(
    data: bytes,
    filename: str,
    normalization: TextNormalization | None = None,
    segmenter_options: SegmenterOptions | None = None,
) -> RawDocument:
    """Decode, normalize and segment a plain-text book."""
    raw_text, encoding = decode(data)
    text = normalize_text(raw_text, normalization)
    lines = [line for line in text.split("\n") if line.strip()]

    title = extract_title(lines, filename)
    author = extract_author(lines)
    chapters = segment(text, segmenter_options)
    logger.info("Parsed %s (%s): %d chapters", filename, encoding, len(chapters))

    return finalize_document(
        title=title,
        author=author,
        full_text=text,
        chapters=chapters,
        source=TextSource(filename=filename, encoding=encoding),
    )


async def extract_text(
    data: bytes,
    filename: str,
    normalization: TextNormalization | None = None,
    segmenter_options: SegmenterOptions | None = None,
) -> RawDocument:
    return await asyncio.to_thread(parse_text, data, filename, normalization, segmenter_options)
