# Tests for cache.py (TTL cache and object listing cache)
# Created: 2026-10-16

from pelicanclient.address import parse_object_address
from pelicanclient.cache import DEFAULT_LIST_TTL, ObjectListCache, TTLCache, listing_key
from pelicanclient.models import ObjectListEntry


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    def test_get_within_ttl(self):
        clock = FakeClock()
        cache: TTLCache[str] = TTLCache(ttl=10, clock=clock)
        cache.set("k", "v")
        clock.now += 10
        assert cache.get("k") == "v"

    def test_expired_entry_is_dropped(self):
        clock = FakeClock()
        cache: TTLCache[str] = TTLCache(ttl=10, clock=clock)
        cache.set("k", "v")
        clock.now += 10.5
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_no_ttl_never_expires(self):
        clock = FakeClock()
        cache: TTLCache[str] = TTLCache(clock=clock)
        cache.set("k", "v")
        clock.now += 10**9
        assert cache.get("k") == "v"

    def test_invalidate_and_clear(self):
        cache: TTLCache[int] = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        cache.clear()
        assert cache.get("b") is None

    def test_invalidate_prefix(self):
        cache: TTLCache[int] = TTLCache()
        for key in ("a:/x", "a:/y", "b:/x"):
            cache.set(key, 1)
        assert cache.invalidate_prefix("a:") == 2
        assert cache.get("b:/x") == 1

    def test_writes_do_not_disturb_readers(self):
        cache: TTLCache[int] = TTLCache()
        cache.set("a", 1)
        snapshot = cache._entries
        cache.set("b", 2)
        cache.invalidate("a")
        assert set(snapshot) == {"a"}


class TestObjectListCache:
    def test_default_ttl_is_five_minutes(self):
        assert DEFAULT_LIST_TTL == 300

    def test_trailing_slash_shares_key(self):
        a = parse_object_address("pelican://fed.example.org/ns/dir/")
        b = parse_object_address("pelican://fed.example.org/ns/dir")
        assert listing_key(a) == listing_key(b) == "fed.example.org:/ns/dir"
        assert listing_key(parse_object_address("pelican://fed.example.org/")) == (
            "fed.example.org:/"
        )

    def test_expiry(self):
        clock = FakeClock()
        cache = ObjectListCache(clock=clock)
        address = parse_object_address("pelican://fed.example.org/ns/dir/")
        cache.set(address, [ObjectListEntry(href="/ns/dir/a")])
        clock.now += 299
        assert cache.get(address) == [ObjectListEntry(href="/ns/dir/a")]
        clock.now += 2
        assert cache.get(address) is None

    def test_returned_list_is_a_copy(self):
        cache = ObjectListCache()
        address = parse_object_address("pelican://fed.example.org/ns/dir/")
        cache.set(address, [ObjectListEntry(href="/ns/dir/a")])
        cache.get(address).clear()
        assert len(cache.get(address)) == 1

    def test_invalidate_collection_of_object(self):
        cache = ObjectListCache()
        collection = parse_object_address("pelican://fed.example.org/ns/dir/")
        cache.set(collection, [])
        obj = parse_object_address("pelican://fed.example.org/ns/dir/new.txt")
        assert cache.invalidate_collection_of(obj) is True
        assert cache.get(collection) is None

    def test_set_refused_after_invalidation(self):
        cache = ObjectListCache()
        collection = parse_object_address("pelican://fed.example.org/ns/dir/")
        generation = cache.generation(collection)
        cache.invalidate_collection_of(
            parse_object_address("pelican://fed.example.org/ns/dir/new.txt")
        )
        assert cache.set(collection, [], generation=generation) is False
        assert cache.get(collection) is None

        assert cache.set(collection, [], generation=cache.generation(collection)) is True
        assert cache.get(collection) == []

    def test_set_refused_after_federation_invalidation_or_clear(self):
        cache = ObjectListCache()
        collection = parse_object_address("pelican://a.org/ns/")
        generation = cache.generation(collection)
        cache.invalidate_federation("a.org")
        assert cache.set(collection, [], generation=generation) is False

        generation = cache.generation(collection)
        cache.clear()
        assert cache.set(collection, [], generation=generation) is False

    def test_other_keys_unaffected(self):
        cache = ObjectListCache()
        collection = parse_object_address("pelican://a.org/ns/")
        generation = cache.generation(collection)
        cache.invalidate(parse_object_address("pelican://a.org/other/"))
        cache.invalidate_federation("b.org")
        assert cache.set(collection, [], generation=generation) is True

    def test_invalidate_federation(self):
        cache = ObjectListCache()
        cache.set(parse_object_address("pelican://a.org/ns/"), [])
        cache.set(parse_object_address("pelican://a.org/other/"), [])
        cache.set(parse_object_address("pelican://b.org/ns/"), [])
        assert cache.invalidate_federation("a.org") == 2
        assert cache.get(parse_object_address("pelican://b.org/ns/")) == []
