"""reading_index.py — Global page ↔ chapter mapping and full-text search."""

import re
from typing import Sequence

from models import PageInfo, PaginatedChapter, ReadingPosition, SearchHit

CONTEXT_CHARS = 50


class PositionIndex:
    """Read-only view over one paginated document."""

    def __init__(self, chapters: Sequence[PaginatedChapter]):
        if not chapters or not any(ch.pages for ch in chapters):
            raise ValueError("PositionIndex needs at least one page")
        self.chapters = list(chapters)
        # global page → (chapter index, page within chapter)
        self._locations: list[tuple[int, int]] = [
            (chapter_index, page_index)
            for chapter_index, chapter in enumerate(self.chapters)
            for page_index in range(len(chapter.pages))
        ]

    @property
    def total_pages(self) -> int:
        return len(self._locations)

    def clamp(self, global_page: int) -> int:
        return min(max(global_page, 0), self.total_pages - 1)

    def locate(self, global_page: int) -> tuple[PaginatedChapter, int]:
        chapter_index, page_index = self._locations[self.clamp(global_page)]
        return self.chapters[chapter_index], page_index

    def chapter_first_page(self, chapter_id: str) -> int:
        for chapter in self.chapters:
            if chapter.chapter_id == chapter_id:
                return chapter.start_page
        raise KeyError(chapter_id)

    def get_page_info(self, global_page: int) -> PageInfo:
        global_page = self.clamp(global_page)
        chapter, page_index = self.locate(global_page)
        return PageInfo(
            content=chapter.pages[page_index].content,
            chapter_id=chapter.chapter_id,
            chapter_title=chapter.title,
            page_in_chapter=page_index,
            total_pages_in_chapter=len(chapter.pages),
            global_page=global_page,
            total_pages=self.total_pages,
        )

    def get_position(self, global_page: int) -> ReadingPosition:
        global_page = self.clamp(global_page)
        chapter, page_index = self.locate(global_page)
        return ReadingPosition(
            chapter_id=chapter.chapter_id,
            page_in_chapter=page_index,
            global_page=global_page,
            progress_percent=(global_page + 1) / self.total_pages * 100,
        )

    def search_text(self, query: str, context_chars: int = CONTEXT_CHARS) -> list[SearchHit]:
        """Case-insensitive search; one hit per occurrence, in reading order."""
        if not query:
            return []
        pattern = re.compile(re.escape(query), re.IGNORECASE)
        hits = []
        for chapter in self.chapters:
            for page_index, page in enumerate(chapter.pages):
                content = page.content
                for m in pattern.finditer(content):
                    hits.append(SearchHit(
                        chapter_id=chapter.chapter_id,
                        chapter_title=chapter.title,
                        page_in_chapter=page_index,
                        global_page=chapter.start_page + page_index,
                        match_offset=m.start(),
                        context=content[max(0, m.start() - context_chars):m.end() + context_chars],
                    ))
        return hits
