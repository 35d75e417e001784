"""parsers/ — Multi-format e-book extractor package."""

import asyncio
from pathlib import Path

from models import RawDocument
from parsers.base import ExtractionError, TextNormalization, UnsupportedFormatError
from segmenter import SegmenterOptions

TEXT_EXTENSIONS = {".txt", ".text", ".md"}
SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS | {".epub", ".pdf"}

MIME_TYPES = {
    "text/plain": ".txt",
    "text/markdown": ".md",
    "application/epub+zip": ".epub",
    "application/pdf": ".pdf",
}

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "ExtractionError",
    "UnsupportedFormatError",
    "TextNormalization",
    "extract",
    "extract_file",
    "parse_file",
]


def _resolve_suffix(filename: str, mime_type: str | None) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix in SUPPORTED_EXTENSIONS:
        return suffix
    if mime_type:
        mapped = MIME_TYPES.get(mime_type.split(";", 1)[0].strip().lower())
        if mapped:
            return mapped
    raise UnsupportedFormatError(
        f"Unsupported file format: '{suffix or mime_type}'. "
        f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
    )


async def extract(
    data: bytes,
    filename: str,
    mime_type: str | None = None,
    normalization: TextNormalization | None = None,
    segmenter_options: SegmenterOptions | None = None,
) -> RawDocument:
    """Dispatch to the appropriate extractor based on extension or MIME type."""
    suffix = _resolve_suffix(filename, mime_type)

    if suffix in TEXT_EXTENSIONS:
        from parsers.text_parser import extract_text
        return await extract_text(data, filename, normalization, segmenter_options)
    elif suffix == ".epub":
        from parsers.epub_parser import extract_epub
        return await extract_epub(data, filename)
    else:
        from parsers.pdf_parser import extract_pdf
        return await extract_pdf(data, filename)


async def extract_file(path: Path, mime_type: str | None = None, **options) -> RawDocument:
    path = Path(path)
    data = await asyncio.to_thread(path.read_bytes)
    return await extract(data, path.name, mime_type, **options)


def parse_file(path: Path, mime_type: str | None = None, **options) -> RawDocument:
    """Synchronous entry point for scripts and the CLI."""
    return asyncio.run(extract_file(path, mime_type, **options))
