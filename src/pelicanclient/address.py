# Object address parsing: pelican://<federation-hostname>/<object-path>
# Created: 2026-10-15

from __future__ import annotations

import re
from dataclasses import dataclass

from pelicanclient.errors import ParseError

SCHEME = "pelican"

_ADDRESS_RE = re.compile(r"^pelican://(?P<host>[^/\s]+)(?P<path>/\S*)$")


@dataclass(frozen=True)
class ObjectAddress:
    """A parsed object address.

    ``object_prefix`` is ``object_path`` with its final segment removed, e.g.
    ``/ns/dir/file.txt`` -> ``/ns/dir`` and ``/ns/dir/`` -> ``/ns/dir``.
    """

    federation_hostname: str
    object_path: str
    object_prefix: str

    def __str__(self) -> str:
        return f"{SCHEME}://{self.federation_hostname}{self.object_path}"

    @property
    def cache_key(self) -> str:
        return f"{self.federation_hostname}:{self.object_path}"

    @property
    def is_root(self) -> bool:
        return self.object_path.strip("/") == ""

    def child(self, name: str) -> ObjectAddress:
        """Address of *name* inside this (collection) address."""
        base = self.object_path if self.object_path.endswith("/") else f"{self.object_path}/"
        return parse_object_address(f"{SCHEME}://{self.federation_hostname}{base}{name}")

    def collection(self) -> ObjectAddress:
        """Address of the collection holding this object.

        A trailing-slash address already names a collection and maps to itself.
        """
        return parse_object_address(
            f"{SCHEME}://{self.federation_hostname}{self.object_prefix or '/'}"
        )


def parse_object_address(address: str) -> ObjectAddress:
    """Parse an object address, raising ParseError if it is malformed."""
    match = _ADDRESS_RE.match(address.strip()) if isinstance(address, str) else None
    if match is None:
        raise ParseError(f"Invalid pelican object url: {address!r}")

    object_path = match.group("path")
    return ObjectAddress(
        federation_hostname=match.group("host"),
        object_path=object_path,
        object_prefix=object_path.rsplit("/", 1)[0],
    )
