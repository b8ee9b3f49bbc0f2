"""WebDAV multistatus parsing.

Servers disagree on namespace prefixes (``D:``, ``lp1:``, ``d:`` ...), so
elements are matched on their local name only.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from urllib.parse import unquote, urlparse

from pelicanclient.models import ObjectListEntry

logger = logging.getLogger(__name__)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag.rsplit(":", 1)[-1]


def _find(elem: ET.Element, name: str) -> ET.Element | None:
    for child in elem.iter():
        if child is not elem and _local(child.tag) == name:
            return child
    return None


def _text(elem: ET.Element, name: str) -> str:
    found = _find(elem, name)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


def _normalize_href(href: str) -> str:
    # Some servers return absolute URLs and percent-encoded paths
    if "://" in href:
        href = urlparse(href).path
    return unquote(href)


def _parse_length(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        return 0


def parse_multistatus(xml: str) -> list[ObjectListEntry]:
    """Parse a ``207 Multi-Status`` body into listing entries.

    Raises ``xml.etree.ElementTree.ParseError`` for malformed XML.
    """
    if not xml or not xml.strip():
        return []

    root = ET.fromstring(xml)
    entries: list[ObjectListEntry] = []
    for resp in root.iter():
        if _local(resp.tag) != "response":
            continue

        resource_type = ""
        rt = _find(resp, "resourcetype")
        if rt is not None and any(_local(c.tag) == "collection" for c in rt):
            resource_type = "collection"

        iscollection = _text(resp, "iscollection").lower() in ("1", "true")
        entries.append(
            ObjectListEntry(
                href=_normalize_href(_text(resp, "href")),
                content_length=_parse_length(_text(resp, "getcontentlength")),
                last_modified=_text(resp, "getlastmodified"),
                is_collection=iscollection or resource_type == "collection",
                resource_type=resource_type,
                executable=_text(resp, "executable"),
                status=_text(resp, "status"),
            )
        )

    logger.debug("Parsed %d multistatus entries", len(entries))
    return entries
