"""segmenter.py — Infer chapter boundaries in continuous text."""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, NamedTuple

from headings import heading_kind
from models import WORDS_PER_PAGE, RawChapter, estimate_pages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmenterOptions:
    all_caps_headings: bool = False
    extra_patterns: tuple[tuple[str, re.Pattern], ...] = ()
    dense_threshold: int = 3        # more candidates than this enables suppression
    min_gap_lines: int = 3
    min_body_lines: int = 3
    leading_min_lines: int = 10
    leading_min_chars: int = 100
    leading_title: str = "Preface"
    untitled_title: str = "Full Text"
    words_per_page: int = WORDS_PER_PAGE


DEFAULT_OPTIONS = SegmenterOptions()


class Section(NamedTuple):
    title: str
    content: str
    source_pages: tuple[int, int] | None = None


def make_chapters(
    sections: Iterable[Section],
    words_per_page: int = WORDS_PER_PAGE,
) -> list[RawChapter]:
    """Number sections in order and fill in contiguous page estimates."""
    chapters = []
    next_page = 0
    for order, section in enumerate(sections):
        pages = estimate_pages(section.content, words_per_page)
        chapters.append(RawChapter(
            id=f"chapter-{order + 1}",
            title=section.title,
            content=section.content,
            order=order,
            start_page=next_page,
            end_page=next_page + pages - 1,
            source_pages=section.source_pages,
        ))
        next_page += pages
    return chapters


def find_heading_lines(lines: list[str], options: SegmenterOptions = DEFAULT_OPTIONS) -> list[int]:
    return [
        i for i, line in enumerate(lines)
        if heading_kind(
            line,
            all_caps=options.all_caps_headings,
            extra=options.extra_patterns,
        )
    ]


def suppress_dense_candidates(candidates: list[int], options: SegmenterOptions = DEFAULT_OPTIONS) -> list[int]:
    """Drop candidates that follow the last accepted one too closely."""
    if len(candidates) <= options.dense_threshold:
        return candidates
    kept: list[int] = []
    for idx in candidates:
        if kept and idx - kept[-1] < options.min_gap_lines:
            continue
        kept.append(idx)

    # A too-short chapter folds into the one before it; the last one always stays.
    result: list[int] = []
    for pos, idx in enumerate(kept):
        if 0 < pos < len(kept) - 1 and kept[pos + 1] - idx - 1 < options.min_body_lines:
            continue
        result.append(idx)
    return result


def segment(text: str, options: SegmenterOptions | None = None) -> list[RawChapter]:
    """Split text into chapters at heading lines.

    Heading lines become chapter titles and are not part of the chapter
    content. Text before the first heading is kept as a leading chapter only
    when it is long enough to be real front matter.
    """
    options = options or DEFAULT_OPTIONS
    lines = text.split("\n")
    candidates = suppress_dense_candidates(find_heading_lines(lines, options), options)

    if not candidates:
        logger.debug("No chapter headings found; using a single chapter")
        return make_chapters(
            [Section(options.untitled_title, text.strip())],
            options.words_per_page,
        )

    sections: list[Section] = []
    first = candidates[0]
    if first > options.leading_min_lines:
        leading = "\n".join(lines[:first]).strip()
        if len(leading) > options.leading_min_chars:
            sections.append(Section(options.leading_title, leading))

    for pos, idx in enumerate(candidates):
        end = candidates[pos + 1] if pos + 1 < len(candidates) else len(lines)
        body = "\n".join(lines[idx + 1:end]).strip()
        sections.append(Section(lines[idx].strip(), body))

    logger.debug("Segmented text into %d chapters", len(sections))
    return make_chapters(sections, options.words_per_page)
