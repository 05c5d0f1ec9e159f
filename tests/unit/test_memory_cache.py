import pytest

from portfolio_tracker.core.exceptions import InvalidTTLError
from portfolio_tracker.infrastructure.cache.memory_cache import MISSING, MemoryCache


def test_get_returns_value_until_ttl_expires(clock):
    cache = MemoryCache(clock=clock)
    cache.set("price:ABC.NS", 101.5, ttl_seconds=120)

    clock.advance(119)
    assert cache.get("price:ABC.NS") == 101.5

    clock.advance(1)
    assert cache.get("price:ABC.NS") is None
    assert not cache.has("price:ABC.NS")


def test_cached_none_is_distinguishable_from_missing(clock):
    cache = MemoryCache(clock=clock)
    cache.set("pe:ABC.NS", None, ttl_seconds=60)

    assert cache.get("pe:ABC.NS", MISSING) is None
    assert cache.get("pe:XYZ.NS", MISSING) is MISSING


@pytest.mark.parametrize("ttl", [0, -5, "60", None, True])
def test_set_rejects_invalid_ttl(ttl):
    cache = MemoryCache()
    with pytest.raises(InvalidTTLError):
        cache.set("k", 1, ttl_seconds=ttl)


def test_delete_prefix_only_touches_namespace(clock):
    cache = MemoryCache(clock=clock)
    cache.set("price:A.NS", 1, 60)
    cache.set("price:B.NS", 2, 60)
    cache.set("pe:A.NS", 10, 60)

    assert cache.delete_prefix("price:") == 2
    assert cache.keys() == ["pe:A.NS"]
    assert cache.delete("pe:A.NS") is True
    assert cache.delete("pe:A.NS") is False


def test_stats_track_hits_and_misses(clock):
    cache = MemoryCache(clock=clock)
    cache.set("a", 1, 10)
    cache.get("a")
    cache.get("a")
    cache.get("b")

    stats = cache.stats()
    assert stats.hits == 2
    assert stats.misses == 1
    assert stats.sets == 1
    assert stats.keys == 1
    assert stats.total_requests == 3
    assert stats.hit_rate == pytest.approx(200 / 3)

    cache.clear()
    assert cache.stats().total_requests == 0
    assert len(cache) == 0


def test_get_ttl_and_purge_expired(clock):
    cache = MemoryCache(clock=clock)
    cache.set("short", 1, 5)
    cache.set("long", 2, 50)

    clock.advance(2)
    assert cache.get_ttl("short") == pytest.approx(3)
    assert cache.get_ttl("nope") is None

    clock.advance(10)
    assert cache.purge_expired() == 1
    assert cache.keys() == ["long"]
