"""glyph_metrics.py — Rendered text width providers for measured pagination."""

from functools import lru_cache
from pathlib import Path
from typing import Protocol

from PIL import ImageFont

from models import FontSpec, is_cjk_char


class GlyphMetrics(Protocol):
    def measure_width(self, text: str, font: FontSpec) -> float: ...


class SyntheticGlyphMetrics:
    """Deterministic per-character advances (in ems), no fonts required."""

    NARROW_CHARS = frozenset("fijlrtI.,;:'!|()[]")
    WIDE_CHARS = frozenset("mwMW@%")

    def __init__(
        self,
        average_em: float = 0.55,
        narrow_em: float = 0.3,
        wide_em: float = 0.85,
        space_em: float = 0.3,
        cjk_em: float = 1.0,
    ):
        self.average_em = average_em
        self.narrow_em = narrow_em
        self.wide_em = wide_em
        self.space_em = space_em
        self.cjk_em = cjk_em

    def advance(self, ch: str) -> float:
        if ch.isspace():
            return self.space_em
        if is_cjk_char(ch):
            return self.cjk_em
        if ch in self.NARROW_CHARS:
            return self.narrow_em
        if ch in self.WIDE_CHARS or ch.isupper():
            return self.wide_em
        return self.average_em

    def measure_width(self, text: str, font: FontSpec) -> float:
        return sum(self.advance(ch) for ch in text) * font.size


@lru_cache(maxsize=32)
def _load_font(path: str | None, size: int):
    if path is None:
        return ImageFont.load_default(size=size)
    return ImageFont.truetype(path, size)


class PillowGlyphMetrics:
    """Measure with real font files through Pillow's FreeType bindings.

    ``font_paths`` maps a family name (the first entry of a CSS-like family
    list such as ``"Georgia, serif"``) to a font file; ``default_font`` is
    used for unknown families. Without either, Pillow's bundled font is used.
    """

    def __init__(
        self,
        default_font: str | Path | None = None,
        font_paths: dict[str, str | Path] | None = None,
    ):
        self.default_font = str(default_font) if default_font else None
        self.font_paths = {
            name.strip().lower(): str(path) for name, path in (font_paths or {}).items()
        }

    def font_file(self, family: str) -> str | None:
        for name in family.split(","):
            path = self.font_paths.get(name.strip().strip("'\"").lower())
            if path:
                return path
        return self.default_font

    def measure_width(self, text: str, font: FontSpec) -> float:
        size = max(1, round(font.size))
        return _load_font(self.font_file(font.family), size).getlength(text)
