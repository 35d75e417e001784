from __future__ import annotations

import asyncio
import io
import zipfile
from pathlib import Path

import pytest

from models import EpubSource
from parsers import parse_file
from parsers.base import ExtractionError
from parsers.epub_parser import PartText, choose_label, extract_epub, markup_to_text

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

OPF_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<package version="3.0" xmlns="http://www.idpf.org/2007/opf" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <metadata>
    <dc:title>The Test Book</dc:title>
    <dc:creator>Jane Doe</dc:creator>
    <dc:creator>John Roe</dc:creator>
    <dc:language>en</dc:language>
    <dc:publisher>Example Press</dc:publisher>
  </metadata>
  <manifest>
    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>
    <item id="cover" href="images/cover.png" media-type="image/png" properties="cover-image"/>
    <item id="ch1" href="text/ch1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="text/ch2.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch3" href="text/ch3.xhtml" media-type="application/xhtml+xml"/>
  </manifest>
  <spine>
{spine}
  </spine>
</package>
"""

NAV_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<body>
  <nav epub:type="toc" id="toc">
    <ol>
      <li><a href="text/ch1.xhtml">Chapter One: Arrival</a></li>
    </ol>
  </nav>
</body>
</html>
"""


def _xhtml(title: str, body: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        f"<head><title>{title}</title><style>p {{ color: red; }}</style></head>"
        f"<body>{body}</body></html>"
    )


CHAPTERS = {
    "OEBPS/text/ch1.xhtml": _xhtml("The Test Book", "<h1>Arrival</h1><p>It was a dark night.</p><p>The end.</p>"),
    "OEBPS/text/ch2.xhtml": _xhtml("The Test Book", "<h2>The Storm</h2><p>Rain fell<br/>all night.</p>"),
    "OEBPS/text/ch3.xhtml": _xhtml("The Test Book", "<p>Short heading</p><p>Body of the third part.</p>"),
}

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def _build_epub(spine: list[str] | None = None, chapters: dict[str, str] | None = None) -> bytes:
    spine = ["ch1", "ch2", "ch3"] if spine is None else spine
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        zf.writestr("META-INF/container.xml", CONTAINER_XML)
        zf.writestr(
            "OEBPS/content.opf",
            OPF_TEMPLATE.format(spine="\n".join(f'    <itemref idref="{idref}"/>' for idref in spine)),
        )
        zf.writestr("OEBPS/nav.xhtml", NAV_XHTML)
        zf.writestr("OEBPS/images/cover.png", PNG_BYTES)
        for name, markup in (CHAPTERS if chapters is None else chapters).items():
            zf.writestr(name, markup)
    return buffer.getvalue()


OPF2_XML = """<?xml version="1.0" encoding="UTF-8"?>
<package version="2.0" xmlns="http://www.idpf.org/2007/opf" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <metadata>
    <dc:title>The Test Book</dc:title>
    <dc:creator>Jane Doe</dc:creator>
  </metadata>
  <manifest>
    <item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>
    <item id="ch1" href="text/ch1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="text/ch2.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch3" href="text/ch3.xhtml" media-type="application/xhtml+xml"/>
  </manifest>
  <spine toc="ncx">
    <itemref idref="ch1"/>
    <itemref idref="ch2"/>
    <itemref idref="ch3"/>
  </spine>
</package>
"""

TOC_NCX = """<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <navMap>
    <navPoint id="np1" playOrder="1">
      <navLabel><text>Part Two: The Storm</text></navLabel>
      <content src="text/ch2.xhtml#start"/>
    </navPoint>
  </navMap>
</ncx>
"""


def _build_epub2() -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        zf.writestr("META-INF/container.xml", CONTAINER_XML)
        zf.writestr("OEBPS/content.opf", OPF2_XML)
        zf.writestr("OEBPS/toc.ncx", TOC_NCX)
        for name, markup in CHAPTERS.items():
            zf.writestr(name, markup)
    return buffer.getvalue()


def test_spine_order_metadata_and_labels() -> None:
    document = asyncio.run(extract_epub(_build_epub(), "book.epub"))

    assert document.title == "The Test Book"
    assert document.author == "Jane Doe, John Roe"
    assert [ch.title for ch in document.chapters] == ["Chapter One: Arrival", "The Storm", "Short heading"]
    assert document.chapters[0].content == "Arrival\n\nIt was a dark night.\n\nThe end."
    assert document.chapters[1].content == "The Storm\n\nRain fell\nall night."
    assert "color: red" not in document.full_text

    assert isinstance(document.source, EpubSource)
    assert document.source.language == "en"
    assert document.source.publisher == "Example Press"
    assert document.source.spine_length == 3
    assert not document.source.used_fallback_scan


def test_ncx_labels_name_chapters() -> None:
    document = asyncio.run(extract_epub(_build_epub2(), "old.epub"))

    assert document.title == "The Test Book"
    assert document.source.spine_length == 3
    assert [ch.title for ch in document.chapters] == ["Arrival", "Part Two: The Storm", "Short heading"]
    assert document.chapters[1].content == "The Storm\n\nRain fell\nall night."


def test_cover_image_is_extracted() -> None:
    document = asyncio.run(extract_epub(_build_epub(), "book.epub"))
    assert document.cover is not None
    assert document.cover.path == "OEBPS/images/cover.png"
    assert document.cover.media_type == "image/png"
    assert document.cover.data == PNG_BYTES
    assert document.as_payload()["cover"]["mediaType"] == "image/png"


def test_spine_order_is_followed() -> None:
    document = asyncio.run(extract_epub(_build_epub(spine=["ch3", "ch1"]), "book.epub"))
    assert [ch.title for ch in document.chapters] == ["Short heading", "Chapter One: Arrival"]
    assert [ch.id for ch in document.chapters] == ["chapter-1", "chapter-2"]


def test_empty_spine_falls_back_to_archive_scan() -> None:
    document = asyncio.run(extract_epub(_build_epub(spine=[]), "book.epub"))
    assert document.source.used_fallback_scan
    # every markup entry is scanned, in name order
    titles = [ch.title for ch in document.chapters]
    assert "Arrival" in titles
    assert "The Storm" in titles


def test_unreadable_part_is_skipped() -> None:
    chapters = dict(CHAPTERS)
    del chapters["OEBPS/text/ch2.xhtml"]
    document = asyncio.run(extract_epub(_build_epub(chapters=chapters), "book.epub"))
    assert [ch.title for ch in document.chapters] == ["Chapter One: Arrival", "Short heading"]


def test_epub_without_text_is_an_error() -> None:
    empty = {name: _xhtml("x", "") for name in CHAPTERS}
    data = _build_epub(chapters=empty)
    # Navigation text alone still counts during the fallback scan, so drop it too.
    buffer = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(data)) as src, zipfile.ZipFile(buffer, "w") as dst:
        for item in src.infolist():
            if item.filename != "OEBPS/nav.xhtml":
                dst.writestr(item, src.read(item.filename))
    with pytest.raises(ExtractionError):
        asyncio.run(extract_epub(buffer.getvalue(), "empty.epub"))


def test_not_a_zip_is_an_error() -> None:
    with pytest.raises(ExtractionError) as excinfo:
        asyncio.run(extract_epub(b"definitely not a zip", "broken.epub"))
    assert excinfo.value.filename == "broken.epub"


def test_parse_file_reads_epub_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "book.epub"
    path.write_bytes(_build_epub())
    document = parse_file(path)
    assert len(document.chapters) == 3


def test_markup_to_text_keeps_preformatted_line_breaks() -> None:
    part = markup_to_text(b"<html><body><h3>Code</h3><pre>a  b\n  c</pre><p>x\n   y</p></body></html>")
    assert part.label == "Code"
    assert part.text.split("\n") == ["Code", "", "a b", "c", "", "x y"]


def test_choose_label_priority() -> None:
    part = PartText(text="A Heading\nbody text.", label="Own Title")
    assert choose_label("From TOC", part, "Book", 1) == "From TOC"
    assert choose_label(None, part, "Book", 1) == "Own Title"
    assert choose_label(None, PartText("A Heading\nbody.", "Book"), "Book", 1) == "A Heading"
    assert choose_label(None, PartText("A sentence.\nbody.", None), "Book", 4) == "Chapter 4"
