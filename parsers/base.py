"""parsers/base.py — Shared parser utilities, errors and document finalization."""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable

from models import CoverImage, RawChapter, RawDocument, SourceInfo
from segmenter import Section, make_chapters

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown Author"
FULL_TEXT_TITLE = "Full Text"


class ExtractionError(Exception):
    """No usable text could be extracted from a document."""

    def __init__(self, message: str, filename: str = ""):
        super().__init__(f"{filename}: {message}" if filename else message)
        self.filename = filename
        self.reason = message


class UnsupportedFormatError(ValueError):
    pass


@dataclass(frozen=True)
class TextNormalization:
    sentence_breaks: bool = False   # start a new line after each sentence


_QUOTES = {
    "\u2018": "'", "\u2019": "'", "\u201a": "'", "\u201b": "'",
    "\u201c": '"', "\u201d": '"', "\u201e": '"', "\u201f": '"',
}
_QUOTE_TABLE = str.maketrans(_QUOTES)

_EXCESS_BLANKS_RE = re.compile(r"\n(?:[ \t]*\n){3,}")
_CJK_SENTENCE_END_RE = re.compile(r"([。！？]+[」』\"']?)(?=[^\n」』\"'])")
_LATIN_SENTENCE_END_RE = re.compile(r"([.!?]+[\"']?)[ \t]+(?=[A-Z\"'])")


def straighten_quotes(text: str) -> str:
    return text.translate(_QUOTE_TABLE)


def break_after_sentences(text: str) -> str:
    text = _CJK_SENTENCE_END_RE.sub("\\1\n", text)
    return _LATIN_SENTENCE_END_RE.sub("\\1\n", text)


def normalize_text(text: str, options: TextNormalization | None = None) -> str:
    """Normalize decoded plain text before segmentation."""
    options = options or TextNormalization()
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = text.replace("\ufeff", "").replace("\ufffd", "")
    text = straighten_quotes(text)
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _EXCESS_BLANKS_RE.sub("\n\n", text)
    if options.sentence_breaks:
        text = break_after_sentences(text)
    return text.strip("\n")


def clean_text(text: str) -> str:
    """Normalize text extracted from markup or PDF pages."""
    text = text.replace("\u00ad", "").replace("\u00a0", " ").replace("\ufffd", "")
    text = straighten_quotes(text)
    lines = text.split("\n")
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in lines]
    cleaned_lines = []
    prev_blank = False
    for line in lines:
        if not line:
            if not prev_blank:
                cleaned_lines.append("")
            prev_blank = True
        else:
            cleaned_lines.append(line)
            prev_blank = False
    return "\n".join(cleaned_lines).strip()


def title_from_filename(filename: str) -> str:
    stem = PurePath(filename).stem if filename else ""
    return stem.strip() or "Untitled"


def placeholder_text(title: str) -> str:
    return f'Unable to read the content of "{title}". Try importing the file again.'


def finalize_document(
    title: str,
    author: str,
    full_text: str,
    chapters: Iterable[RawChapter],
    source: SourceInfo,
    cover: CoverImage | None = None,
) -> RawDocument:
    """Build the RawDocument, guaranteeing non-empty text and at least one chapter."""
    chapters = list(chapters)
    if not full_text.strip():
        logger.warning("No text extracted from %s; using placeholder content", source.filename)
        full_text = placeholder_text(title)
    if not any(ch.content.strip() for ch in chapters):
        chapters = make_chapters([Section(FULL_TEXT_TITLE, full_text)])
    return RawDocument(
        title=title,
        author=author or UNKNOWN_AUTHOR,
        full_text=full_text,
        chapters=tuple(chapters),
        source=source,
        cover=cover,
    )
