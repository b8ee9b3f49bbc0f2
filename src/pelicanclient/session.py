# Session state - federations, path -> namespace map, PKCE verifier, queued request.
# Created: 2026-10-15
#
# State lives on an explicit Session object passed to every component.
# Persistence is explicit: Session.load(store) ... session.save().
# Cache maps are replaced, never mutated in place, so readers holding the old
# dict keep a consistent view.

from __future__ import annotations

import json
import logging
import os
import stat
from pathlib import Path
from typing import Any, Protocol

from pelicanclient.models import Federation, Namespace, QueuedRequest

logger = logging.getLogger(__name__)

FEDERATIONS_KEY = "federations"
PREFIX_MAP_KEY = "prefix_to_namespace"
CODE_VERIFIER_KEY = "code_verifier"
QUEUED_REQUEST_KEY = "queued_request"


class SessionStore(Protocol):
    """Get/set-by-key persistence for session values (JSON-compatible)."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> bool: ...


class MemorySessionStore:
    """In-process store; nothing survives the process."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class FileSessionStore:
    """JSON file store, chmod 0600 (owner-only read/write).

    Holds client secrets and bearer tokens, so it is written with the same
    care as a credentials file.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read session file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)

    def get(self, key: str) -> Any | None:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True


class Session:
    """Client session state.

    ``prefix_to_namespace`` maps ``"<hostname>:<object path>"`` to the prefix
    of the namespace owning that path.
    """

    def __init__(self, store: SessionStore | None = None):
        self.store: SessionStore = store or MemorySessionStore()
        self.federations: dict[str, Federation] = {}
        self.prefix_to_namespace: dict[str, str] = {}
        self.code_verifier: str | None = None
        self.queued_request: QueuedRequest | None = None

    # -- persistence --------------------------------------------------------

    @classmethod
    def load(cls, store: SessionStore) -> Session:
        session = cls(store)
        raw_feds = store.get(FEDERATIONS_KEY) or {}
        try:
            session.federations = {k: Federation.from_dict(v) for k, v in raw_feds.items()}
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable federation cache: %s", e)
            session.federations = {}
        session.prefix_to_namespace = dict(store.get(PREFIX_MAP_KEY) or {})
        session.code_verifier = store.get(CODE_VERIFIER_KEY)
        queued = store.get(QUEUED_REQUEST_KEY)
        if queued:
            try:
                session.queued_request = QueuedRequest.from_dict(queued)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Discarding unreadable queued request: %s", e)
        return session

    def save(self) -> None:
        self.store.set(
            FEDERATIONS_KEY, {k: fed.to_dict() for k, fed in self.federations.items()}
        )
        self.store.set(PREFIX_MAP_KEY, dict(self.prefix_to_namespace))
        self.store.set(CODE_VERIFIER_KEY, self.code_verifier)
        self.store.set(
            QUEUED_REQUEST_KEY, self.queued_request.to_dict() if self.queued_request else None
        )

    # -- copy-on-write updates ---------------------------------------------

    def add_federation(self, federation: Federation) -> Federation:
        """Cache *federation* unless one is already cached; returns the cached one."""
        existing = self.federations.get(federation.hostname)
        if existing is not None:
            return existing
        self.federations = {**self.federations, federation.hostname: federation}
        return federation

    def add_namespace(self, federation: Federation, namespace: Namespace) -> Namespace:
        """Attach *namespace* to *federation*; an already known prefix wins.

        *federation* becomes the cached one for its hostname.
        """
        if self.federations.get(federation.hostname) is not federation:
            self.federations = {**self.federations, federation.hostname: federation}
        existing = federation.namespaces.get(namespace.prefix)
        if existing is not None:
            return existing
        federation.namespaces = {**federation.namespaces, namespace.prefix: namespace}
        return namespace

    def map_path(self, cache_key: str, namespace_prefix: str) -> None:
        self.prefix_to_namespace = {**self.prefix_to_namespace, cache_key: namespace_prefix}

    def get_namespace(self, hostname: str, prefix: str) -> Namespace | None:
        federation = self.federations.get(hostname)
        if federation is None:
            return None
        return federation.namespaces.get(prefix)

    def lookup(self, cache_key: str, hostname: str) -> Namespace | None:
        """Namespace mapped to *cache_key*, if both mapping and namespace exist."""
        prefix = self.prefix_to_namespace.get(cache_key)
        if prefix is None:
            return None
        return self.get_namespace(hostname, prefix)
