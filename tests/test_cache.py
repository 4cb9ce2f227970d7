import pytest

from carefinder.services.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(maxsize=10, ttl_seconds=60, clock=clock)
    cache.set("a", 1)

    clock.now = 59
    assert cache.get("a") == 1
    clock.now = 60
    assert cache.get("a") is None
    assert "a" not in cache


def test_least_recently_used_entry_is_evicted():
    cache = TTLCache(maxsize=2, ttl_seconds=60, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert "a" in cache
    assert "b" not in cache
    assert len(cache) == 2


def test_cached_none_is_distinguishable_from_a_miss():
    cache = TTLCache(clock=FakeClock())
    cache.set("missing-place", None)
    assert "missing-place" in cache
    assert cache.get("other", "default") == "default"


def test_full_cache_drops_expired_entries_before_live_ones():
    clock = FakeClock()
    cache = TTLCache(maxsize=2, ttl_seconds=100, clock=clock)
    cache.set("live", 1)
    cache.set("short", 2, ttl_seconds=5)

    clock.now = 10
    cache.set("new", 3)

    assert len(cache) == 2
    assert cache.get("live") == 1
    assert cache.get("new") == 3
    cache.clear()
    assert len(cache) == 0


@pytest.mark.parametrize("kwargs", [{"maxsize": 0}, {"ttl_seconds": 0}, {"ttl_seconds": -1}])
def test_rejects_non_positive_bounds(kwargs):
    with pytest.raises(ValueError):
        TTLCache(**kwargs)
