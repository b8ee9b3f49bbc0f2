"""Record header parsing.

Pelican directors describe namespaces in headers made of comma separated
``key=value`` pairs, e.g.::

    X-Pelican-Namespace: namespace=/ns, require-token=true, collections-url=https://...
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def parse_record_header(header: str | None) -> dict[str, str]:
    """Parse a ``key=value, key=value`` header into a dict.

    Returns an empty dict for a missing or blank header. Segments without
    ``=`` are skipped; surrounding whitespace and double quotes are removed.
    """
    if header is None or not header.strip():
        return {}

    if "=" not in header:
        logger.warning("Header not in expected key=value format: %s", header)
        return {}

    record: dict[str, str] = {}
    for part in header.split(","):
        key, sep, value = part.partition("=")
        if not sep:
            continue
        key = key.strip()
        if key:
            record[key] = value.strip().strip('"')
    return record


def record_get(record: dict[str, str], *names: str) -> str | None:
    """First value present under any of *names* (directors vary on key casing)."""
    for name in names:
        if name in record:
            return record[name]
    return None
