"""parsers/epub_parser.py — Parse packed EPUB archives into chapters."""

import asyncio
import io
import logging
import re
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from urllib.parse import unquote

from bs4 import BeautifulSoup, NavigableString

from headings import is_heading_like
from models import CoverImage, EpubSource, RawDocument
from parsers.base import (
    UNKNOWN_AUTHOR,
    ExtractionError,
    clean_text,
    finalize_document,
    title_from_filename,
)
from segmenter import Section, make_chapters

logger = logging.getLogger(__name__)

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
DC_NS = "http://purl.org/dc/elements/1.1/"
HTML_EXTS = (".xhtml", ".html", ".htm")

# Block elements that start on a new line when collapsing markup to text.
BLOCK_LEVEL_TAGS = [
    "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt",
    "figcaption", "figure", "footer", "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "hr", "li", "main", "nav", "ol", "p", "pre", "section",
    "table", "tr", "ul",
]
_HIDDEN_TAGS = ["script", "style", "head", "noscript", "template"]


@dataclass
class ManifestItem:
    path: str
    media_type: str = ""
    properties: str = ""


@dataclass
class Package:
    opf_path: str
    title: str | None = None
    authors: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    manifest: dict[str, ManifestItem] = field(default_factory=dict)
    spine: list[str] = field(default_factory=list)
    cover_id: str | None = None


@dataclass
class PartText:
    text: str
    label: str | None = None


# ---------- archive structure ----------

def open_archive(data: bytes, filename: str = "") -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ExtractionError("not a readable EPUB archive", filename) from e


def _strip_ns(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _resolve_relative_path(base_file: str, href: str) -> str:
    href = unquote(href.split("#", 1)[0])
    parts: list[str] = []
    for part in (PurePosixPath(base_file).parent / href).parts:
        if part == "..":
            if parts:
                parts.pop()
        elif part not in (".", "/"):
            parts.append(part)
    return "/".join(parts)


def find_opf_path(zf: zipfile.ZipFile) -> str:
    """META-INF/container.xml → rootfile@full-path, else the first *.opf."""
    try:
        root = ET.fromstring(zf.read("META-INF/container.xml"))
        for rootfile in root.iter(f"{{{CONTAINER_NS}}}rootfile"):
            full_path = rootfile.get("full-path")
            if full_path:
                return full_path
    except (KeyError, ET.ParseError) as e:
        logger.debug("container.xml unusable: %s", e)
    for name in zf.namelist():
        if name.lower().endswith(".opf"):
            return name
    raise FileNotFoundError("OPF file not found in EPUB")


def read_package(zf: zipfile.ZipFile) -> Package:
    """Read metadata, manifest and spine from the OPF package document."""
    opf_path = find_opf_path(zf)
    root = ET.fromstring(zf.read(opf_path))
    package = Package(opf_path=opf_path)

    for elem in root.iter():
        if not isinstance(elem.tag, str):
            continue
        tag = _strip_ns(elem.tag)
        text = "".join(elem.itertext()).strip()
        if elem.tag.startswith(f"{{{DC_NS}}}") and text:
            if tag == "title" and package.title is None:
                package.title = text
            elif tag == "creator" and text not in package.authors:
                package.authors.append(text)
            elif tag in ("language", "publisher", "identifier", "description"):
                package.metadata.setdefault(tag, text)
        elif tag == "meta" and elem.get("name") == "cover":
            package.cover_id = elem.get("content")
        elif tag == "item":
            item_id, href = elem.get("id"), elem.get("href")
            if item_id and href:
                package.manifest[item_id] = ManifestItem(
                    path=_resolve_relative_path(opf_path, href),
                    media_type=(elem.get("media-type") or "").lower(),
                    properties=(elem.get("properties") or "").lower(),
                )
        elif tag == "itemref":
            item = package.manifest.get(elem.get("idref") or "")
            if item is not None:
                package.spine.append(item.path)
    return package


# ---------- table of contents ----------

def _parse_nav_document(markup: bytes) -> list[tuple[str, str]]:
    soup = BeautifulSoup(markup, "lxml")
    navs = [
        nav for nav in soup.find_all("nav")
        if "toc" in (nav.get("epub:type") or "").lower() or (nav.get("role") or "") == "doc-toc"
    ] or soup.find_all("nav")
    entries = []
    for nav in navs:
        for anchor in nav.find_all("a"):
            href = anchor.get("href")
            if href:
                entries.append((href, anchor.get_text(" ", strip=True)))
    return entries


def _parse_toc_ncx(xml_bytes: bytes) -> list[tuple[str, str]]:
    """Flatten every navPoint of an NCX file in document order."""
    root = ET.fromstring(xml_bytes)
    entries = []
    for point in root.iter():
        if not isinstance(point.tag, str) or _strip_ns(point.tag) != "navPoint":
            continue
        label, src = "", ""
        for child in point:
            child_tag = _strip_ns(child.tag) if isinstance(child.tag, str) else ""
            if child_tag == "navLabel":
                label = "".join(child.itertext()).strip()
            elif child_tag == "content":
                src = child.get("src", "")
        if src:
            entries.append((src, label))
    return entries


def read_toc_labels(zf: zipfile.ZipFile, package: Package) -> dict[str, str]:
    """Map content path → first TOC label pointing at it (EPUB 3 nav, then NCX)."""
    nav_docs = [item.path for item in package.manifest.values() if "nav" in item.properties.split()]
    ncx_docs = [
        item.path for item in package.manifest.values()
        if item.media_type == "application/x-dtbncx+xml"
    ]
    sources = [(p, _parse_nav_document) for p in nav_docs] + [(p, _parse_toc_ncx) for p in ncx_docs]
    for path, parser in sources:
        try:
            entries = parser(zf.read(path))
        except (KeyError, ET.ParseError) as e:
            logger.warning("Skipping unreadable table of contents %s: %s", path, e)
            continue
        labels: dict[str, str] = {}
        for href, label in entries:
            if label:
                labels.setdefault(_resolve_relative_path(path, href), label)
        if labels:
            return labels
    return {}


def _lookup_toc_label(labels: dict[str, str], path: str) -> str | None:
    if path in labels:
        return labels[path]
    name = PurePosixPath(path).name
    for href, label in labels.items():
        if PurePosixPath(href).name == name:
            return label
    return None


# ---------- markup → text ----------

def markup_to_text(markup: bytes, heading_tags: tuple[str, ...] = ("h1", "h2", "h3")) -> PartText:
    """Visible text of an (X)HTML document plus its own best label."""
    soup = BeautifulSoup(markup, "lxml")
    label = None
    heading = soup.find(list(heading_tags))
    if heading is not None:
        label = heading.get_text(" ", strip=True) or None
    title_tag = soup.find("title")
    if label is None and title_tag is not None:
        label = title_tag.get_text(" ", strip=True) or None

    for tag in soup.find_all(_HIDDEN_TAGS):
        tag.decompose()
    body = soup.body or soup
    for string in list(body.find_all(string=True)):
        if type(string) is NavigableString and string.find_parent("pre") is None:
            string.replace_with(re.sub(r"\s+", " ", str(string)))
    for br in body.find_all("br"):
        br.replace_with(NavigableString("\n"))
    for block in body.find_all(BLOCK_LEVEL_TAGS):
        block.insert_before(NavigableString("\n"))
        block.insert_after(NavigableString("\n"))
    return PartText(text=clean_text(body.get_text()), label=label)


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0].strip()


def choose_label(
    toc_label: str | None,
    part: PartText,
    book_title: str | None,
    number: int,
) -> str:
    """TOC entry, then the part's own heading/title, then a heading-like first line."""
    if toc_label:
        return toc_label
    if part.label and part.label != book_title:
        return part.label
    first = _first_line(part.text)
    if is_heading_like(first):
        return first
    return f"Chapter {number}"


def _read_part(zf: zipfile.ZipFile, path: str) -> PartText:
    return markup_to_text(zf.read(path))


def _read_fallback_part(zf: zipfile.ZipFile, path: str) -> PartText:
    return markup_to_text(zf.read(path), heading_tags=("h1", "h2", "h3", "h4", "h5", "h6"))


def read_cover(zf: zipfile.ZipFile, package: Package) -> CoverImage | None:
    item = next((i for i in package.manifest.values() if "cover-image" in i.properties.split()), None)
    if item is None and package.cover_id:
        item = package.manifest.get(package.cover_id)
    if item is None or not item.media_type.startswith("image/"):
        return None
    try:
        return CoverImage(path=item.path, media_type=item.media_type, data=zf.read(item.path))
    except KeyError:
        logger.warning("Cover image %s missing from archive", item.path)
        return None


# ---------- entry point ----------

async def extract_epub(data: bytes, filename: str) -> RawDocument:
    """Walk the spine in reading order; fall back to scanning every markup entry."""
    zf = await asyncio.to_thread(open_archive, data, filename)
    with zf:
        try:
            package = await asyncio.to_thread(read_package, zf)
        except (KeyError, FileNotFoundError, ET.ParseError) as e:
            logger.warning("%s: unreadable package document (%s); scanning archive", filename, e)
            package = Package(opf_path="")
        toc_labels = await asyncio.to_thread(read_toc_labels, zf, package)

        sections: list[Section] = []
        for path in package.spine:
            try:
                part = await asyncio.to_thread(_read_part, zf, path)
            except Exception as e:
                logger.warning("%s: skipping unreadable part %s: %s", filename, path, e)
                continue
            if not part.text:
                continue
            label = choose_label(
                _lookup_toc_label(toc_labels, path), part, package.title, len(sections) + 1,
            )
            sections.append(Section(label, part.text))

        used_fallback = False
        if not sections:
            used_fallback = True
            names = sorted(n for n in zf.namelist() if n.lower().endswith(HTML_EXTS))
            logger.info("%s: spine yielded no text; scanning %d markup entries", filename, len(names))
            for name in names:
                try:
                    part = await asyncio.to_thread(_read_fallback_part, zf, name)
                except Exception as e:
                    logger.warning("%s: skipping unreadable entry %s: %s", filename, name, e)
                    continue
                if part.text:
                    sections.append(Section(part.label or f"Chapter {len(sections) + 1}", part.text))

        if not sections:
            raise ExtractionError("no extractable text in EPUB", filename)

        cover = await asyncio.to_thread(read_cover, zf, package)

    title = package.title or title_from_filename(filename)
    author = ", ".join(package.authors) or UNKNOWN_AUTHOR
    logger.info("Parsed %s: %d chapters", filename, len(sections))
    return finalize_document(
        title=title,
        author=author,
        full_text="\n\n".join(s.content for s in sections),
        chapters=make_chapters(sections),
        source=EpubSource(
            filename=filename,
            language=package.metadata.get("language"),
            publisher=package.metadata.get("publisher"),
            identifier=package.metadata.get("identifier"),
            description=package.metadata.get("description"),
            spine_length=len(package.spine),
            used_fallback_scan=used_fallback,
        ),
        cover=cover,
    )
