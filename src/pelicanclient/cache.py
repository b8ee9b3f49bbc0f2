# TTL caches - object listings (default 5 minutes).
# Created: 2026-10-15

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pelicanclient.address import ObjectAddress
from pelicanclient.models import ObjectListEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIST_TTL = 300.0


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    timestamp: float


class TTLCache(Generic[T]):
    """Key/value cache whose entries expire *ttl* seconds after being stored.

    ``ttl=None`` keeps entries until invalidated. Writes swap in a new dict so
    readers iterating the previous one are never disturbed.
    """

    def __init__(self, ttl: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CacheEntry[T]) -> bool:
        return self.ttl is not None and self._clock() - entry.timestamp > self.ttl

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            self.invalidate(key)
            return None
        return entry.value

    def set(self, key: str, value: T) -> None:
        self._entries = {**self._entries, key: CacheEntry(value, self._clock())}

    def invalidate(self, key: str) -> bool:
        if key not in self._entries:
            return False
        self._entries = {k: v for k, v in self._entries.items() if k != key}
        return True

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with *prefix*. Returns the number removed."""
        kept = {k: v for k, v in self._entries.items() if not k.startswith(prefix)}
        removed = len(self._entries) - len(kept)
        self._entries = kept
        return removed

    def clear(self) -> None:
        self._entries = {}


def listing_key(address: ObjectAddress) -> str:
    """``host:path`` with trailing slashes dropped, so ``/dir`` and ``/dir/`` share a key."""
    return f"{address.federation_hostname}:{address.object_path.rstrip('/') or '/'}"


class ObjectListCache:
    """Collection listings keyed by address.

    Every invalidation bumps a generation counter. A listing fetched while an
    invalidation happened is refused by ``set(..., generation=...)``.
    """

    def __init__(
        self,
        ttl: float | None = DEFAULT_LIST_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache: TTLCache[list[ObjectListEntry]] = TTLCache(ttl, clock)
        self._epoch = 0
        self._hosts: dict[str, int] = {}
        self._keys: dict[str, int] = {}

    def generation(self, address: ObjectAddress) -> tuple[int, int, int]:
        """Opaque marker to pass back to ``set`` after fetching *address*."""
        return (
            self._epoch,
            self._hosts.get(address.federation_hostname, 0),
            self._keys.get(listing_key(address), 0),
        )

    def _bump(self, counters: dict[str, int], key: str) -> dict[str, int]:
        return {**counters, key: counters.get(key, 0) + 1}

    def get(self, address: ObjectAddress) -> list[ObjectListEntry] | None:
        entries = self._cache.get(listing_key(address))
        return list(entries) if entries is not None else None

    def set(
        self,
        address: ObjectAddress,
        entries: list[ObjectListEntry],
        generation: tuple[int, int, int] | None = None,
    ) -> bool:
        """Store a listing. Returns False if it was invalidated since *generation*."""
        if generation is not None and generation != self.generation(address):
            logger.debug("Dropping listing of %s invalidated while in flight", address)
            return False
        self._cache.set(listing_key(address), list(entries))
        return True

    def invalidate(self, address: ObjectAddress) -> bool:
        key = listing_key(address)
        self._keys = self._bump(self._keys, key)
        removed = self._cache.invalidate(key)
        if removed:
            logger.debug("Invalidated listing cache for %s", address)
        return removed

    def invalidate_collection_of(self, address: ObjectAddress) -> bool:
        """Drop the listing of the collection that holds *address*."""
        return self.invalidate(address.collection())

    def invalidate_federation(self, hostname: str) -> int:
        self._hosts = self._bump(self._hosts, hostname)
        return self._cache.invalidate_prefix(f"{hostname}:")

    def clear(self) -> None:
        self._epoch += 1
        self._cache.clear()
