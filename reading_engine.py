"""reading_engine.py — Per-book owner of pagination state and reading position."""

import logging
from pathlib import Path

from glyph_metrics import GlyphMetrics
from models import PageInfo, PaginatedChapter, RawDocument, ReadingPosition, SearchHit, TypographyConfig
from paginator import Paginator
from reading_index import PositionIndex

logger = logging.getLogger(__name__)


class ReadingEngine:
    """Pages one RawDocument and tracks the current global page.

    Create one engine per opened book and drop it on close. Reflows are not
    safe to run concurrently on the same engine; callers debounce them.
    """

    def __init__(
        self,
        document: RawDocument,
        typography: TypographyConfig | None = None,
        metrics: GlyphMetrics | None = None,
    ):
        self.document = document
        self.typography = typography or TypographyConfig()
        self.paginator = Paginator(metrics)
        self._install(self.paginator.paginate(document.chapters, self.typography))
        self.current_page = 0

    def _install(self, chapters: list[PaginatedChapter]) -> None:
        self.chapters = chapters
        self.index = PositionIndex(chapters)

    @property
    def total_pages(self) -> int:
        return self.index.total_pages

    @property
    def current_chapter(self) -> PaginatedChapter:
        return self.index.locate(self.current_page)[0]

    def set_page(self, page: int) -> int:
        self.current_page = self.index.clamp(page)
        return self.current_page

    def next_page(self) -> bool:
        if self.current_page + 1 >= self.total_pages:
            return False
        self.current_page += 1
        return True

    def prev_page(self) -> bool:
        if self.current_page == 0:
            return False
        self.current_page -= 1
        return True

    def go_to_chapter(self, chapter_id: str) -> int:
        return self.set_page(self.index.chapter_first_page(chapter_id))

    def page_info(self, page: int | None = None) -> PageInfo:
        return self.index.get_page_info(self.current_page if page is None else page)

    def position(self) -> ReadingPosition:
        return self.index.get_position(self.current_page)

    def search_text(self, query: str) -> list[SearchHit]:
        return self.index.search_text(query)

    def update_typography(self, typography: TypographyConfig) -> ReadingPosition:
        """Reflow every chapter and keep the reader at the same fraction of the book."""
        if typography == self.typography:
            return self.position()
        previous_total = self.total_pages
        chapters, new_page = self.paginator.reflow(
            self.document.chapters, typography, self.current_page, previous_total,
        )
        self.typography = typography
        self._install(chapters)
        self.current_page = new_page
        logger.info(
            "Reflowed %r: %d → %d pages, now at page %d",
            self.document.title, previous_total, self.total_pages, new_page,
        )
        return self.position()


async def open_book(
    path: Path,
    typography: TypographyConfig | None = None,
    metrics: GlyphMetrics | None = None,
    **options,
) -> ReadingEngine:
    from parsers import extract_file

    document = await extract_file(path, **options)
    return ReadingEngine(document, typography, metrics)
