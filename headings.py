"""headings.py — Chapter-heading pattern table shared by the segmenter and the PDF parser."""

import re

MIN_HEADING_LEN = 2
MAX_HEADING_LEN = 40
MAX_TITLE_LEN = 100

_CN_NUMERALS = "一二三四五六七八九十百千万零〇两"

# Ordinal / counted heading markers, checked in order.
COUNTED_PATTERNS = (
    ("cn-chapter", re.compile(rf"^第\s*[{_CN_NUMERALS}\d]+\s*[章节回卷部篇]")),
    ("chapter", re.compile(r"^chapter\s+\d+", re.IGNORECASE)),
    ("chapter-roman", re.compile(r"^chapter\s+[ivxlcdm]+\b", re.IGNORECASE)),
    ("part", re.compile(r"^part\s+(?:\d+|[ivxlcdm]+\b)", re.IGNORECASE)),
    ("cn-volume", re.compile(rf"^卷\s*[{_CN_NUMERALS}\d]")),
    ("numbered", re.compile(r"^\d+\.\s*[^\d\s]")),
    ("cn-enumerated", re.compile(rf"^[{_CN_NUMERALS}]+、")),
)

# Fixed structural labels.
STRUCTURAL_PATTERNS = (
    ("cn-structural", re.compile(r"^(?:序章|序言|前言|楔子|引子|后记|尾声|附录)")),
    (
        "structural",
        re.compile(
            r"^(?:preface|prologue|foreword|introduction|epilogue|afterword|appendix)\b",
            re.IGNORECASE,
        ),
    ),
)

HEADING_PATTERNS = COUNTED_PATTERNS + STRUCTURAL_PATTERNS

_SPELLED_NUMBERS = (
    "one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve|thirteen|"
    "fourteen|fifteen|sixteen|seventeen|eighteen|nineteen|twenty"
)

# Extra idioms seen in typeset PDFs.
PDF_PATTERNS = (
    ("chapter-spelled", re.compile(rf"^chapter\s+(?:{_SPELLED_NUMBERS})\b", re.IGNORECASE)),
    ("section", re.compile(r"^(?:section|book)\s+(?:\d+|[ivxlcdm]+\b)", re.IGNORECASE)),
)

# Running page numbers: "12", "- 12 -", "Page 12", "12 / 300", "第12页".
PAGE_NUMBER_RE = re.compile(
    r"^(?:[-–—\s]*\d+[-–—\s]*|page\s+\d+(?:\s+of\s+\d+)?|\d+\s*/\s*\d+|第\s*\d+\s*页)$",
    re.IGNORECASE,
)

ALL_CAPS_RE = re.compile(r"^(?=(?:.*[A-Z]){2})[A-Z0-9][A-Z0-9 '&:,\-]*$")

_TERMINAL_PUNCTUATION = tuple(".,;:!?。，；：！？…")


def heading_kind(
    line: str,
    *,
    all_caps: bool = False,
    extra: tuple[tuple[str, re.Pattern], ...] = (),
) -> str | None:
    """Return the name of the first pattern that classifies line as a heading."""
    line = line.strip()
    if not MIN_HEADING_LEN <= len(line) <= MAX_HEADING_LEN:
        return None
    if PAGE_NUMBER_RE.match(line):
        return None
    for name, pattern in HEADING_PATTERNS + extra:
        if pattern.match(line):
            return name
    if all_caps and ALL_CAPS_RE.match(line):
        return "all-caps"
    return None


def is_chapter_heading(line: str, **kwargs) -> bool:
    return heading_kind(line, **kwargs) is not None


def is_heading_like(line: str, max_len: int = MAX_TITLE_LEN) -> bool:
    """A short line without terminal punctuation, e.g. a title promoted from body text."""
    line = line.strip()
    return 0 < len(line) < max_len and not line.endswith(_TERMINAL_PUNCTUATION)
