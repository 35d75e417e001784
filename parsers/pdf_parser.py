"""parsers/pdf_parser.py — Parse PDF files into chapters using pymupdf."""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Callable, Protocol

from headings import PDF_PATTERNS
from models import PdfSource, RawDocument, is_cjk_char
from parsers.base import UNKNOWN_AUTHOR, ExtractionError, clean_text, finalize_document, title_from_filename
from segmenter import Section, SegmenterOptions, find_heading_lines, make_chapters, suppress_dense_candidates

logger = logging.getLogger(__name__)

LINE_TOLERANCE = 5.0
MAX_PAGE_GROUPS = 20
FRONT_MATTER_TITLE = "Front Matter"

HEADING_OPTIONS = SegmenterOptions(extra_patterns=PDF_PATTERNS)


@dataclass(frozen=True)
class TextFragment:
    text: str
    x: float
    y: float            # measured from the bottom of the page
    height: float = 0.0


class PageTextSource(Protocol):
    """Positioned text access to a paged document."""

    page_count: int

    def metadata(self) -> dict[str, str]: ...

    def outline(self) -> list[tuple[int, str, int]]: ...   # (level, title, 1-based page)

    def fragments(self, page_index: int) -> list[TextFragment]: ...

    def close(self) -> None: ...


class PyMuPDFSource:
    def __init__(self, data: bytes):
        import fitz  # pymupdf

        self._doc = fitz.open(stream=data, filetype="pdf")
        self.page_count = self._doc.page_count

    def metadata(self) -> dict[str, str]:
        return {k: v for k, v in (self._doc.metadata or {}).items() if isinstance(v, str)}

    def outline(self) -> list[tuple[int, str, int]]:
        return [(level, title, page) for level, title, page, *_ in self._doc.get_toc()]

    def fragments(self, page_index: int) -> list[TextFragment]:
        page = self._doc[page_index]
        page_height = page.rect.height
        fragments = []
        for block in page.get_text("dict").get("blocks", []):
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text.strip():
                        continue
                    x0, y0, _, y1 = span["bbox"]
                    fragments.append(TextFragment(text, x0, page_height - y1, y1 - y0))
        return fragments

    def close(self) -> None:
        self._doc.close()


def _join_row(row: list[TextFragment]) -> str:
    line = ""
    for frag in row:
        if line and not line[-1].isspace() and not frag.text[:1].isspace():
            if not (is_cjk_char(line[-1]) and is_cjk_char(frag.text[0])):
                line += " "
        line += frag.text
    return " ".join(line.split())


def group_lines(fragments: list[TextFragment], tolerance: float = LINE_TOLERANCE) -> list[str]:
    """Order fragments top-to-bottom, left-to-right and merge rows into lines."""
    rows: list[list[TextFragment]] = []
    row_y = 0.0
    for frag in sorted(fragments, key=lambda f: (-f.y, f.x)):
        if rows and abs(frag.y - row_y) <= tolerance:
            rows[-1].append(frag)
        else:
            rows.append([frag])
            row_y = frag.y
    return [_join_row(sorted(row, key=lambda f: f.x)) for row in rows]


def _pages_text(pages: list[list[str]], start: int, end: int) -> str:
    return clean_text("\n\n".join("\n".join(lines) for lines in pages[start:end + 1]))


def chapters_from_outline(
    outline: list[tuple[int, str, int]],
    pages: list[list[str]],
) -> list[Section] | None:
    """Top-level bookmarks as chapters, when there are at least two."""
    if not outline or not pages:
        return None
    min_level = min(level for level, _, _ in outline)
    top_level: list[tuple[str, int]] = []
    for level, title, page in outline:
        if level != min_level or not 0 < page <= len(pages):
            continue
        # Bookmarks sharing a start page, or pointing backwards, fold into the previous chapter
        if top_level and page <= top_level[-1][1]:
            if not top_level[-1][0]:
                top_level[-1] = (title.strip(), top_level[-1][1])
            continue
        top_level.append((title.strip(), page))
    if len(top_level) < 2:
        return None

    page_count = len(pages)
    sections = []
    first_start = top_level[0][1] - 1
    if first_start > 0:
        sections.append(Section(FRONT_MATTER_TITLE, _pages_text(pages, 0, first_start - 1), (0, first_start - 1)))
    for i, (title, start_page) in enumerate(top_level):
        start = min(start_page - 1, page_count - 1)
        end = top_level[i + 1][1] - 2 if i + 1 < len(top_level) else page_count - 1
        end = max(start, min(end, page_count - 1))
        sections.append(Section(title or f"Chapter {i + 1}", _pages_text(pages, start, end), (start, end)))
    return sections


def chapters_from_headings(pages: list[list[str]]) -> list[Section] | None:
    """Split at heading-pattern lines, when at least two plausible starts exist."""
    flat = [(page_index, line) for page_index, lines in enumerate(pages) for line in lines]
    lines = [line for _, line in flat]
    candidates = suppress_dense_candidates(find_heading_lines(lines, HEADING_OPTIONS), HEADING_OPTIONS)
    if len(candidates) < 2:
        return None

    def _span_text(start: int, end: int) -> str:
        parts: list[str] = []
        for i in range(start, end):
            if parts and flat[i][0] != flat[i - 1][0]:
                parts.append("")
            parts.append(flat[i][1])
        return clean_text("\n".join(parts))

    sections = []
    first = candidates[0]
    if first > 0:
        sections.append(Section(FRONT_MATTER_TITLE, _span_text(0, first), (0, flat[first - 1][0])))
    for pos, idx in enumerate(candidates):
        end = candidates[pos + 1] if pos + 1 < len(candidates) else len(flat)
        sections.append(Section(lines[idx].strip(), _span_text(idx + 1, end), (flat[idx][0], flat[end - 1][0])))
    return sections


def chapters_from_page_groups(pages: list[list[str]], max_groups: int = MAX_PAGE_GROUPS) -> list[Section]:
    size = max(1, math.ceil(len(pages) / max_groups))
    sections = []
    for start in range(0, len(pages), size):
        end = min(start + size, len(pages)) - 1
        sections.append(Section(f"Pages {start + 1}-{end + 1}", _pages_text(pages, start, end), (start, end)))
    return sections


def split_chapters(
    pages: list[list[str]],
    outline: list[tuple[int, str, int]] | None = None,
) -> tuple[str, list[Section]]:
    """Strategy: (1) PDF bookmarks, (2) heading patterns, (3) fixed page groups."""
    sections = chapters_from_outline(outline or [], pages)
    if sections:
        return "outline", [s for s in sections if s.content]
    sections = chapters_from_headings(pages)
    if sections:
        return "headings", [s for s in sections if s.content]
    return "page-groups", [s for s in chapters_from_page_groups(pages) if s.content]


async def extract_pdf(
    data: bytes,
    filename: str,
    source_factory: Callable[[bytes], PageTextSource] = PyMuPDFSource,
) -> RawDocument:
    try:
        source = await asyncio.to_thread(source_factory, data)
    except Exception as e:
        raise ExtractionError("not a readable PDF document", filename) from e

    try:
        try:
            meta = source.metadata() or {}
        except Exception as e:
            logger.warning("%s: ignoring unreadable metadata: %s", filename, e)
            meta = {}
        try:
            outline = source.outline()
        except Exception as e:
            logger.warning("%s: ignoring unreadable outline: %s", filename, e)
            outline = []
        pages: list[list[str]] = []
        for page_index in range(source.page_count):
            try:
                fragments = await asyncio.to_thread(source.fragments, page_index)
            except Exception as e:
                logger.warning("%s: skipping unreadable page %d: %s", filename, page_index + 1, e)
                fragments = []
            pages.append(group_lines(fragments))
    finally:
        source.close()

    strategy, sections = split_chapters(pages, outline)
    full_text = _pages_text(pages, 0, len(pages) - 1)
    title = (meta.get("title") or "").strip() or title_from_filename(filename)
    author = (meta.get("author") or "").strip() or UNKNOWN_AUTHOR
    logger.info("Parsed %s: %d pages, %d chapters (%s)", filename, len(pages), len(sections), strategy)

    return finalize_document(
        title=title,
        author=author,
        full_text=full_text,
        chapters=make_chapters(sections),
        source=PdfSource(
            filename=filename,
            page_count=len(pages),
            producer=meta.get("producer") or None,
            creator=meta.get("creator") or None,
            subject=meta.get("subject") or None,
            chapter_strategy=strategy,
        ),
    )
