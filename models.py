"""models.py — Shared data types for pagebook."""

import re
from dataclasses import asdict, dataclass, field, replace
from typing import Literal, NamedTuple

WORDS_PER_PAGE = 300

_CJK_CHAR_RE = re.compile(r"[\u4e00-\u9fff]")
_LATIN_WORD_RE = re.compile(r"[a-zA-Z]+")

# CJK symbols and punctuation, kana, unified ideographs (incl. ext. A), hangul, fullwidth forms.
_CJK_RANGES = (
    ("\u3000", "\u30ff"),
    ("\u3400", "\u4dbf"),
    ("\u4e00", "\u9fff"),
    ("\uac00", "\ud7af"),
    ("\uff00", "\uffef"),
)


def is_cjk_char(ch: str) -> bool:
    return any(lo <= ch <= hi for lo, hi in _CJK_RANGES)


def cjk_ratio(text: str) -> float:
    if not text:
        return 0.0
    return sum(1 for ch in text if is_cjk_char(ch)) / len(text)


def count_words(text: str) -> int:
    """CJK characters plus Latin words."""
    return len(_CJK_CHAR_RE.findall(text)) + len(_LATIN_WORD_RE.findall(text))


def estimate_pages(text: str, words_per_page: int = WORDS_PER_PAGE) -> int:
    return max(1, -(-count_words(text) // words_per_page))


@dataclass(frozen=True)
class RawChapter:
    id: str
    title: str
    content: str
    order: int                  # 0-based insertion order
    start_page: int = 0         # word-count estimate, 0-based
    end_page: int = 0
    source_pages: tuple[int, int] | None = None   # PDF page range, inclusive


@dataclass(frozen=True)
class CoverImage:
    path: str
    media_type: str
    data: bytes


@dataclass(frozen=True)
class TextSource:
    filename: str
    encoding: str
    format: Literal["text"] = "text"


@dataclass(frozen=True)
class EpubSource:
    filename: str
    language: str | None = None
    publisher: str | None = None
    identifier: str | None = None
    description: str | None = None
    spine_length: int = 0
    used_fallback_scan: bool = False
    format: Literal["epub"] = "epub"


@dataclass(frozen=True)
class PdfSource:
    filename: str
    page_count: int = 0
    producer: str | None = None
    creator: str | None = None
    subject: str | None = None
    chapter_strategy: str = ""      # "outline", "headings", "page-groups"
    format: Literal["pdf"] = "pdf"


SourceInfo = TextSource | EpubSource | PdfSource


@dataclass(frozen=True)
class RawDocument:
    title: str
    author: str
    full_text: str
    chapters: tuple[RawChapter, ...]
    source: SourceInfo
    cover: CoverImage | None = None

    @property
    def metadata(self) -> dict:
        return {key: value for key, value in asdict(self.source).items() if value is not None}

    @property
    def word_count(self) -> int:
        return count_words(self.full_text)

    @property
    def estimated_pages(self) -> int:
        return sum(ch.end_page - ch.start_page + 1 for ch in self.chapters)

    def as_payload(self, total_pages: int | None = None) -> dict:
        """Flat record for the library store; pagination state is not included."""
        payload = {
            "title": self.title,
            "author": self.author,
            "content": self.full_text,
            "chapters": [
                {"id": ch.id, "title": ch.title, "content": ch.content}
                for ch in self.chapters
            ],
            "wordCount": self.word_count,
            "totalPages": total_pages if total_pages is not None else self.estimated_pages,
            "metadata": self.metadata,
        }
        if self.cover is not None:
            payload["cover"] = {"path": self.cover.path, "mediaType": self.cover.media_type}
        return payload


class FontSpec(NamedTuple):
    family: str
    size: float


@dataclass(frozen=True)
class TypographyConfig:
    font_size_pt: float = 18.0
    font_family: str = "Georgia, serif"
    line_height_multiplier: float = 1.5
    page_width_px: float = 800.0
    page_height_px: float = 600.0
    padding_px: float = 40.0

    @property
    def font(self) -> FontSpec:
        return FontSpec(self.font_family, self.font_size_pt)

    @property
    def content_width(self) -> float:
        return max(1.0, self.page_width_px - 2 * self.padding_px)

    @property
    def content_height(self) -> float:
        return max(1.0, self.page_height_px - 2 * self.padding_px)

    @property
    def line_height_px(self) -> float:
        return self.font_size_pt * self.line_height_multiplier

    @property
    def lines_per_page(self) -> int:
        return max(1, int(self.content_height // self.line_height_px))

    def with_changes(self, **changes) -> "TypographyConfig":
        return replace(self, **changes)


@dataclass(frozen=True)
class Page:
    chapter_id: str
    content: str


@dataclass
class PaginatedChapter:
    chapter_id: str
    title: str
    pages: list[Page] = field(default_factory=list)
    start_page: int = 0     # global, 0-based
    end_page: int = 0

    @property
    def page_count(self) -> int:
        return len(self.pages)


@dataclass(frozen=True)
class ReadingPosition:
    chapter_id: str
    page_in_chapter: int
    global_page: int
    progress_percent: float


@dataclass(frozen=True)
class PageInfo:
    content: str
    chapter_id: str
    chapter_title: str
    page_in_chapter: int
    total_pages_in_chapter: int
    global_page: int
    total_pages: int


@dataclass(frozen=True)
class SearchHit:
    chapter_id: str
    chapter_title: str
    page_in_chapter: int
    global_page: int
    match_offset: int       # offset of the match within the page content
    context: str
