"""paginator.py — Split chapter text into pages for a given typography.

Pages are always cut from the chapter string at offsets, never rebuilt from
words, so joining a chapter's pages gives back the chapter content exactly.
Two strategies compute the cut offsets:

- measured: lines are packed against a GlyphMetrics provider, then lines
  into pages, keeping paragraphs together when they fit;
- heuristic: character/word budgets estimated from the font size and box.
"""

import logging
import math
import re
from typing import Callable, Iterable, Sequence

from glyph_metrics import GlyphMetrics
from models import Page, PaginatedChapter, RawChapter, TypographyConfig, cjk_ratio

logger = logging.getLogger(__name__)

CJK_MAJORITY = 0.3
LATIN_CHAR_EM = 0.6
AVERAGE_WORD_CHARS = 6      # five letters and a space

_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_END_RE = re.compile(r"[.!?。！？…]+[\"'」』）)]*\s*")
_LATIN_TOKEN_RE = re.compile(r"\S+[ \t]*")
_CJK_TOKEN_RE = re.compile(r"\S[ \t]*")

Span = tuple[int, int]


def is_cjk_majority(text: str) -> bool:
    return cjk_ratio(text) > CJK_MAJORITY


def paragraph_spans(text: str) -> list[Span]:
    """Contiguous spans covering text: each paragraph with its trailing blank lines."""
    spans = []
    start = 0
    for m in _PARAGRAPH_BREAK_RE.finditer(text):
        spans.append((start, m.end()))
        start = m.end()
    if start < len(text) or not spans:
        spans.append((start, len(text)))
    return spans


def _split_after(text: str, span: Span, pattern: re.Pattern) -> list[Span]:
    start, end = span
    spans = []
    pos = start
    for m in pattern.finditer(text, start, end):
        if pos < m.end() < end:
            spans.append((pos, m.end()))
            pos = m.end()
    spans.append((pos, end))
    return spans


def _token_spans(text: str, span: Span, pattern: re.Pattern) -> list[Span]:
    """Tokens covering span; leading whitespace sticks to the first token."""
    start, end = span
    spans = []
    pos = start
    for m in pattern.finditer(text, start, end):
        spans.append((pos, m.end()))
        pos = m.end()
    if not spans:
        return [span]
    if pos < end:
        spans[-1] = (spans[-1][0], end)
    return spans


def _slice_pages(text: str, starts: list[int]) -> list[str]:
    ends = starts[1:] + [len(text)]
    return [text[a:b] for a, b in zip(starts, ends)]


# ---------- heuristic strategy ----------

def heuristic_page_starts(text: str, typography: TypographyConfig) -> list[int]:
    cjk = is_cjk_majority(text)
    lines_per_page = typography.lines_per_page
    if cjk:
        chars_per_line = max(1, int(typography.content_width // typography.font_size_pt))
        budget = chars_per_line * lines_per_page

        def cost(span: Span) -> int:
            return sum(1 for ch in text[span[0]:span[1]] if not ch.isspace())
    else:
        chars_per_line = max(1, int(typography.content_width // (typography.font_size_pt * LATIN_CHAR_EM)))
        budget = max(1, chars_per_line * lines_per_page // AVERAGE_WORD_CHARS)

        def cost(span: Span) -> int:
            return len(text[span[0]:span[1]].split())

    hard_cut = _CJK_TOKEN_RE if cjk else _LATIN_TOKEN_RE
    units: list[Span] = []
    for paragraph in paragraph_spans(text):
        if cost(paragraph) <= budget:
            units.append(paragraph)
            continue
        for sentence in _split_after(text, paragraph, _SENTENCE_END_RE):
            if cost(sentence) <= budget:
                units.append(sentence)
            else:
                units.extend(_token_spans(text, sentence, hard_cut))

    return _greedy_starts(units, cost, budget)


def _greedy_starts(units: Sequence[Span], cost: Callable[[Span], int], budget: int) -> list[int]:
    starts = [units[0][0]]
    used = 0
    for unit in units:
        c = cost(unit)
        if used and used + c > budget:
            starts.append(unit[0])
            used = c
        else:
            used += c
    return starts


def heuristic_pages(text: str, typography: TypographyConfig) -> list[str]:
    return _slice_pages(text, heuristic_page_starts(text, typography))


# ---------- measured strategy ----------

class MeasuredLayout:
    """Greedy line breaking against rendered widths."""

    def __init__(self, metrics: GlyphMetrics, typography: TypographyConfig):
        self.metrics = metrics
        self.typography = typography
        self.font = typography.font
        self.max_width = typography.content_width

    def _fits(self, text: str) -> bool:
        return self.metrics.measure_width(text.strip(), self.font) <= self.max_width

    def _hard_lines(self, text: str, span: Span) -> Iterable[Span]:
        start, end = span
        pos = start
        while pos < end:
            newline = text.find("\n", pos, end)
            stop = end if newline == -1 else newline + 1
            if text[pos:stop].strip():
                yield pos, stop
            pos = stop

    def line_starts(self, text: str, paragraph: Span, cjk: bool) -> list[int]:
        """Offsets where each visual line of the paragraph begins."""
        pattern = _CJK_TOKEN_RE if cjk else _LATIN_TOKEN_RE
        starts: list[int] = []
        for seg_start, seg_end in self._hard_lines(text, paragraph):
            line_start = seg_start
            starts.append(line_start)
            for tok_start, tok_end in _token_spans(text, (seg_start, seg_end), pattern):
                if tok_start == line_start:
                    continue
                if not self._fits(text[line_start:tok_end]):
                    starts.append(tok_start)
                    line_start = tok_start
        if not starts:
            return [paragraph[0]]
        starts[0] = paragraph[0]
        return starts

    def page_starts(self, text: str) -> list[int]:
        cjk = is_cjk_majority(text)
        per_page = self.typography.lines_per_page
        starts = [0]
        used = 0
        for paragraph in paragraph_spans(text):
            lines = self.line_starts(text, paragraph, cjk)
            n = len(lines)
            gap = 1 if used else 0
            if used + gap + n <= per_page:
                used += gap + n
                continue
            if used and n <= per_page:
                starts.append(paragraph[0])
                used = n
                continue
            # Taller than a page: fill what is left, then whole pages.
            if used and per_page - used - gap > 0:
                first_break = per_page - used - gap
            else:
                if used:
                    starts.append(paragraph[0])
                first_break = per_page
            breaks = list(range(first_break, n, per_page))
            starts.extend(lines[b] for b in breaks)
            used = n - breaks[-1] if breaks else n
        return starts


def measured_pages(text: str, typography: TypographyConfig, metrics: GlyphMetrics) -> list[str]:
    return _slice_pages(text, MeasuredLayout(metrics, typography).page_starts(text))


# ---------- paginator ----------

def remap_global_page(global_page: int, previous_total: int, new_total: int) -> int:
    """Keep the reader at the same fraction of the book after a reflow."""
    if new_total <= 0 or previous_total <= 0:
        return 0
    progress = global_page / previous_total
    return min(max(math.floor(progress * new_total + 0.5), 0), new_total - 1)


def total_pages(chapters: Sequence[PaginatedChapter]) -> int:
    return chapters[-1].end_page + 1 if chapters else 0


class Paginator:
    def __init__(self, metrics: GlyphMetrics | None = None):
        self.metrics = metrics

    @property
    def strategy(self) -> str:
        return "measured" if self.metrics is not None else "heuristic"

    def paginate_text(self, text: str, typography: TypographyConfig) -> list[str]:
        if self.metrics is not None:
            try:
                return measured_pages(text, typography, self.metrics)
            except Exception:
                logger.warning("Glyph measurement failed; using heuristic pagination", exc_info=True)
        return heuristic_pages(text, typography)

    def paginate(self, chapters: Iterable[RawChapter], typography: TypographyConfig) -> list[PaginatedChapter]:
        paginated = []
        next_page = 0
        for chapter in chapters:
            pages = [Page(chapter.id, content) for content in self.paginate_text(chapter.content, typography)]
            paginated.append(PaginatedChapter(
                chapter_id=chapter.id,
                title=chapter.title,
                pages=pages,
                start_page=next_page,
                end_page=next_page + len(pages) - 1,
            ))
            next_page += len(pages)
        logger.debug("Paginated %d chapters into %d pages (%s)", len(paginated), next_page, self.strategy)
        return paginated

    def reflow(
        self,
        chapters: Iterable[RawChapter],
        typography: TypographyConfig,
        global_page: int,
        previous_total: int,
    ) -> tuple[list[PaginatedChapter], int]:
        """Re-paginate from the original chapter content; return (chapters, new global page)."""
        paginated = self.paginate(chapters, typography)
        return paginated, remap_global_page(global_page, previous_total, total_pages(paginated))


def paginate(
    chapters: Iterable[RawChapter],
    typography: TypographyConfig,
    metrics: GlyphMetrics | None = None,
) -> list[PaginatedChapter]:
    return Paginator(metrics).paginate(chapters, typography)
