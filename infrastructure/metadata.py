"""Person and keyword extraction from embedded image metadata.

Sources, all read with Pillow or from the raw XMP packet:
- EXIF XPKeywords (Windows tags, UTF-16LE, `;`-separated)
- IPTC keywords (dataset 2:25)
- XMP `dc:subject`, Lightroom `lr:hierarchicalSubject` (`People|Name`) and
  MWG / Microsoft face region names

Extraction is best effort and never raises; unreadable sources simply
contribute nothing.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from xml.etree import ElementTree

from loguru import logger
from PIL import Image, IptcImagePlugin

XP_KEYWORDS_TAG = 0x9C9E
IPTC_KEYWORDS = (2, 25)

_XMP_START = b"<x:xmpmeta"
_XMP_END = b"</x:xmpmeta>"
_PERSON_CATEGORIES = ("people", "person", "人物", "人")
_REGION_TAGS = {"RegionList", "Regions", "RegionInfo"}


def _local(tag: str) -> str:
    """Strip the `{namespace}` prefix ElementTree puts on names."""
    return tag.rsplit("}", 1)[-1]


def _unique_sorted(values: list[str]) -> list[str]:
    return sorted({v for v in values if v})


def _decode_xp(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (tuple, list)):
        value = bytes(value)
    if isinstance(value, bytes):
        return value.decode("utf-16-le", errors="ignore")
    return ""


def read_exif_keywords(im: Image.Image) -> list[str]:
    """Return XPKeywords from the primary EXIF IFD."""
    try:
        raw = im.getexif().get(XP_KEYWORDS_TAG)
    except (OSError, ValueError, SyntaxError) as ex:
        logger.debug("EXIF read failed for {}: {}", getattr(im, "filename", "?"), ex)
        return []
    if not raw:
        return []
    text = _decode_xp(raw).rstrip("\x00")
    return [kw.strip() for kw in text.split(";") if kw.strip()]


def read_iptc_keywords(im: Image.Image) -> list[str]:
    """Return IPTC-IIM keywords, decoding as UTF-8 with a Latin-1 fallback."""
    try:
        info = IptcImagePlugin.getiptcinfo(im)
    except (OSError, ValueError, SyntaxError, IndexError) as ex:
        logger.debug("IPTC read failed for {}: {}", getattr(im, "filename", "?"), ex)
        return []
    if not info:
        return []
    raw = info.get(IPTC_KEYWORDS)
    if raw is None:
        return []
    values = raw if isinstance(raw, list) else [raw]
    keywords: list[str] = []
    for value in values:
        try:
            text = value.decode("utf-8")
        except UnicodeDecodeError:
            text = value.decode("latin-1")
        if text.strip():
            keywords.append(text.strip())
    return keywords


def extract_xmp_packet(data: bytes) -> str | None:
    """Find the `<x:xmpmeta>` element inside raw file bytes."""
    start = data.find(_XMP_START)
    if start < 0:
        return None
    end = data.find(_XMP_END, start)
    if end < 0:
        return None
    return data[start : end + len(_XMP_END)].decode("utf-8", errors="ignore")


def _li_texts(node: ElementTree.Element) -> list[str]:
    return [
        child.text.strip()
        for child in node.iter()
        if _local(child.tag) == "li" and child.text and child.text.strip()
    ]


def _region_persons(node: ElementTree.Element) -> list[str]:
    persons: list[str] = []
    for child in node.iter():
        if _local(child.tag) in ("Name", "PersonDisplayName") and child.text:
            persons.append(child.text.strip())
        for key, value in child.attrib.items():
            name = _local(key).lower()
            value = value.strip()
            if ("name" in name or "person" in name) and value and value not in ("true", "false"):
                persons.append(value)
    return persons


def parse_xmp(xml: str) -> tuple[list[str], list[str]]:
    """Return (persons, keywords) declared in an XMP packet."""
    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as ex:
        logger.debug("XMP parse failed: {}", ex)
        return [], []

    persons: list[str] = []
    keywords: list[str] = []
    for node in root.iter():
        tag = _local(node.tag)
        if tag == "subject":
            keywords.extend(_li_texts(node))
        elif tag in _REGION_TAGS:
            persons.extend(_region_persons(node))
        elif tag == "hierarchicalSubject":
            for text in _li_texts(node):
                parts = [p.strip() for p in text.split("|")]
                if len(parts) >= 2 and any(c in parts[0].lower() for c in _PERSON_CATEGORIES):
                    persons.append(parts[-1])
    return persons, keywords


def extract_person_tags(path: str | Path) -> tuple[list[str], list[str]]:
    """Return (persons, keywords) for the image at `path`.

    When no explicit person is tagged, every keyword becomes a candidate
    person so that plain keyword tagging still produces buckets.
    """
    persons: list[str] = []
    keywords: list[str] = []

    try:
        with Image.open(path) as im:
            keywords.extend(read_exif_keywords(im))
            keywords.extend(read_iptc_keywords(im))
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as ex:
        logger.debug("Pillow could not open {}: {}", path, ex)

    try:
        packet = extract_xmp_packet(Path(path).read_bytes())
    except OSError as ex:
        logger.debug("Raw read failed for {}: {}", path, ex)
        packet = None
    if packet:
        xmp_persons, xmp_keywords = parse_xmp(packet)
        persons.extend(xmp_persons)
        keywords.extend(xmp_keywords)

    keywords = _unique_sorted(keywords)
    persons = _unique_sorted(persons)
    if not persons and keywords:
        persons = list(keywords)
    return persons, keywords
