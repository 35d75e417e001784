#!/usr/bin/env python3
"""
pagebook — Import an e-book and inspect its chapters, pages and search hits.

Supported input formats: plain text (.txt, .md), EPUB, PDF

Quick start:
  python pagebook.py novel.txt
  python pagebook.py book.epub --page 12
  python pagebook.py book.pdf --search "white whale"
  python pagebook.py book.epub --page 40 --reflow-font-size 12

Typography defaults can be set in .env (PAGEBOOK_FONT_SIZE, PAGEBOOK_FONT_FILE, ...).
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Paginate e-books (TXT, EPUB, PDF) and inspect the result",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List chapters with page ranges:
  python pagebook.py novel.txt

  # Show one page (0-based global page number):
  python pagebook.py book.epub --page 12

  # Measure with a real font instead of the heuristic estimate:
  python pagebook.py book.epub --font-file /usr/share/fonts/DejaVuSerif.ttf

  # Search the whole book:
  python pagebook.py book.pdf --search "white whale"

  # Change the font size and see where the reader lands:
  python pagebook.py book.epub --page 40 --reflow-font-size 12
        """,
    )
    parser.add_argument("input_path", type=Path, help="Path to a TXT, EPUB or PDF file")
    parser.add_argument("--font-size", type=float, default=None, metavar="PT", help="Font size")
    parser.add_argument("--font-family", type=str, default=None, help="Font family")
    parser.add_argument("--line-height", type=float, default=None, help="Line height multiplier")
    parser.add_argument("--page-width", type=float, default=None, metavar="PX", help="Page width")
    parser.add_argument("--page-height", type=float, default=None, metavar="PX", help="Page height")
    parser.add_argument("--padding", type=float, default=None, metavar="PX", help="Page padding")
    parser.add_argument(
        "--font-file", type=Path, default=None, metavar="FILE",
        help="TrueType/OpenType font used to measure text (enables measured pagination)",
    )
    parser.add_argument(
        "--synthetic-metrics", action="store_true", default=False,
        help="Measure with built-in synthetic glyph widths instead of a font file",
    )
    parser.add_argument("--page", type=int, default=None, metavar="N", help="Print global page N")
    parser.add_argument("--search", type=str, default=None, metavar="QUERY", help="Search the book")
    parser.add_argument(
        "--reflow-font-size", type=float, default=None, metavar="PT",
        help="Re-paginate with this font size and report the new position",
    )
    parser.add_argument(
        "--all-caps-headings", action="store_true", default=False,
        help="Treat short ALL-CAPS lines in text files as chapter headings",
    )
    parser.add_argument(
        "--sentence-breaks", action="store_true", default=False,
        help="Start a new line after every sentence in text files",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def build_typography(args: argparse.Namespace):
    from config import typography_from_env, validate_typography

    typography = typography_from_env()
    overrides = {
        "font_size_pt": args.font_size,
        "font_family": args.font_family,
        "line_height_multiplier": args.line_height,
        "page_width_px": args.page_width,
        "page_height_px": args.page_height,
        "padding_px": args.padding,
    }
    changes = {k: v for k, v in overrides.items() if v is not None}
    return validate_typography(typography.with_changes(**changes))


def build_metrics(args: argparse.Namespace):
    from config import font_file_from_env
    from glyph_metrics import PillowGlyphMetrics, SyntheticGlyphMetrics

    if args.synthetic_metrics:
        return SyntheticGlyphMetrics()
    font_file = args.font_file or font_file_from_env()
    if font_file:
        return PillowGlyphMetrics(default_font=font_file)
    return None


def print_chapter_list(engine) -> None:
    document = engine.document
    print(f"Title:  {document.title}")
    print(f"Author: {document.author}")
    print(f"Format: {document.source.format}")
    print(f"\nFound {len(engine.chapters)} chapters, {engine.total_pages} pages "
          f"({engine.paginator.strategy} pagination):")
    print("-" * 78)
    words = {ch.id: len(ch.content.split()) for ch in document.chapters}
    for i, ch in enumerate(engine.chapters, start=1):
        print(f"  {i:3d}. {ch.title[:44]:<44} {words.get(ch.chapter_id, 0):>7} words  "
              f"p. {ch.start_page}-{ch.end_page}")
    print("-" * 78)
    print(f"  Total: {document.word_count:,} words | {engine.total_pages} pages")
    print()


def print_page(engine, page: int) -> None:
    info = engine.page_info(page)
    print(f"=== Page {info.global_page} / {info.total_pages - 1} — {info.chapter_title} "
          f"({info.page_in_chapter + 1}/{info.total_pages_in_chapter}) ===")
    print(info.content)
    print()


def print_search_hits(engine, query: str) -> None:
    hits = engine.search_text(query)
    print(f"Search {query!r}: {len(hits)} hits")
    for hit in hits:
        context = " ".join(hit.context.split())
        print(f"  p. {hit.global_page:<5} {hit.chapter_title[:30]:<30} …{context}…")
    print()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Lazy imports keep --help fast
    from config import ConfigError, validate_typography
    from parsers import ExtractionError, TextNormalization, UnsupportedFormatError, parse_file
    from reading_engine import ReadingEngine
    from segmenter import SegmenterOptions

    try:
        typography = build_typography(args)
    except ConfigError as e:
        print(f"ERROR: {e}")
        return 1

    if not args.input_path.exists():
        print(f"ERROR: {args.input_path} not found")
        return 1

    try:
        document = parse_file(
            args.input_path,
            normalization=TextNormalization(sentence_breaks=args.sentence_breaks),
            segmenter_options=SegmenterOptions(all_caps_headings=args.all_caps_headings),
        )
    except (ExtractionError, UnsupportedFormatError) as e:
        print(f"ERROR: {e}")
        return 1

    engine = ReadingEngine(document, typography, build_metrics(args))
    print_chapter_list(engine)

    if args.page is not None:
        engine.set_page(args.page)
        print_page(engine, engine.current_page)

    if args.search:
        print_search_hits(engine, args.search)

    if args.reflow_font_size is not None:
        try:
            reflowed = validate_typography(typography.with_changes(font_size_pt=args.reflow_font_size))
        except ConfigError as e:
            print(f"ERROR: {e}")
            return 1
        before = engine.position()
        previous_total = engine.total_pages
        after = engine.update_typography(reflowed)
        print(f"Reflow to {args.reflow_font_size:g}pt: page {before.global_page}/{previous_total} "
              f"({before.progress_percent:.1f}%) → page {after.global_page}/{engine.total_pages} "
              f"({after.progress_percent:.1f}%)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
