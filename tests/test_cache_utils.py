"""Tests for utils/cache.py — TTL cache used to memoise report views."""
import threading

from utils.cache import TTLCache


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_basic_set_get(self):
        cache = TTLCache()
        cache.set(("summary", (), 1), {"counts": {}})
        assert cache.get(("summary", (), 1)) == {"counts": {}}

    def test_miss_returns_none(self):
        assert TTLCache().get("nonexistent") is None

    def test_ttl_expiry_uses_clock(self):
        clock = Clock()
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("key", "value")
        clock.now = 10
        assert cache.get("key") == "value"
        clock.now = 10.5
        assert cache.get("key") is None

    def test_stats(self):
        cache = TTLCache()
        cache.set("k", "v")
        cache.get("k")
        cache.get("nope")
        assert cache.stats() == {"hits": 1, "misses": 1, "size": 1}

    def test_stats_drops_expired(self):
        clock = Clock()
        cache = TTLCache(ttl_seconds=1, clock=clock)
        cache.set("a", 1)
        clock.now = 5
        assert cache.stats()["size"] == 0

    def test_maxsize_evicts_earliest_expiry(self):
        clock = Clock()
        cache = TTLCache(maxsize=2, clock=clock)
        cache.set("k1", "v1")
        clock.now = 1
        cache.set("k2", "v2")
        cache.set("k3", "v3")
        assert cache.get("k1") is None
        assert cache.get("k2") == "v2"
        assert cache.get("k3") == "v3"

    def test_overwrite_at_capacity_keeps_others(self):
        cache = TTLCache(maxsize=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 3)
        assert cache.get("a") == 3
        assert cache.get("b") == 2

    def test_delete_and_clear(self):
        cache = TTLCache()
        cache.set("k", "v")
        cache.delete("k")
        cache.delete("nope")
        assert cache.get("k") is None
        cache.set("x", 1)
        cache.clear()
        assert cache.stats() == {"hits": 0, "misses": 0, "size": 0}


class TestGetOrCompute:
    def test_computes_once(self):
        cache = TTLCache()
        calls = []

        def compute():
            calls.append(1)
            return {"rows": []}

        first = cache.get_or_compute("table", compute)
        second = cache.get_or_compute("table", compute)
        assert first is second
        assert len(calls) == 1

    def test_recomputes_after_expiry(self):
        clock = Clock()
        cache = TTLCache(ttl_seconds=1, clock=clock)
        assert cache.get_or_compute("k", lambda: "old") == "old"
        clock.now = 2
        assert cache.get_or_compute("k", lambda: "new") == "new"

    def test_thread_safety(self):
        cache = TTLCache(maxsize=100)
        errors = []

        def worker():
            try:
                for i in range(50):
                    cache.get_or_compute(f"k{i}", lambda i=i: i)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert not errors
        assert cache.stats()["size"] == 50
