"""decoder.py — Best-guess decoding of plain-text e-book bytes."""

import codecs
import logging

logger = logging.getLogger(__name__)

REPLACEMENT_CHAR = "\ufffd"

# Ranked: simplified Chinese first, then traditional, then the other
# common East Asian double-byte encodings.
FALLBACK_ENCODINGS = ("gbk", "gb18030", "big5", "big5hkscs", "shift_jis", "euc_kr")

GARBLED_RATIO = 0.05
GARBLED_MIN_COUNT = 10


def _decode_with_bom(data: bytes) -> tuple[str, str] | None:
    if data.startswith(codecs.BOM_UTF8):
        return data.decode("utf-8-sig", errors="replace"), "utf-8-sig"
    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return data.decode("utf-16", errors="replace"), "utf-16"
    return None


def replacement_count(text: str) -> int:
    return text.count(REPLACEMENT_CHAR)


def looks_garbled(text: str) -> bool:
    """True when both the ratio and the absolute count of U+FFFD are too high."""
    if not text:
        return False
    count = replacement_count(text)
    return count >= GARBLED_MIN_COUNT and count / len(text) > GARBLED_RATIO


def decode(data: bytes, candidates: tuple[str, ...] = FALLBACK_ENCODINGS) -> tuple[str, str]:
    """Return (text, encoding_used). Never raises."""
    with_bom = _decode_with_bom(data)
    if with_bom is not None:
        return with_bom

    text = data.decode("utf-8", errors="replace")
    if not looks_garbled(text):
        return text, "utf-8"

    best_text, best_encoding = text, "utf-8"
    best_score = replacement_count(text)
    for encoding in candidates:
        try:
            candidate = data.decode(encoding, errors="replace")
        except LookupError:
            logger.warning("Encoding %s is not available, skipping", encoding)
            continue
        score = replacement_count(candidate)
        logger.debug("Decode candidate %s: %d replacement chars", encoding, score)
        if score < best_score:
            best_text, best_encoding, best_score = candidate, encoding, score
            if score == 0:
                break

    if best_encoding == "utf-8":
        logger.info("No fallback encoding beat UTF-8; keeping best-effort text")
    else:
        logger.info("Re-decoded text as %s", best_encoding)
    return best_text, best_encoding
