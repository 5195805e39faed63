"""
Unit Tests - Rate Cache
"""
import threading
from decimal import Decimal

import pytest

from finance.services.rate_cache import RateCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestRateCache:

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = RateCache(ttl_seconds=3600, clock=clock)
        cache.set(("rate", "USD"), Decimal("1.1"))

        clock.advance(3599)
        assert cache.get(("rate", "USD")) == Decimal("1.1")

        clock.advance(1)
        assert cache.get(("rate", "USD")) is None
        assert len(cache) == 0

    def test_set_refreshes_expiry(self):
        clock = FakeClock()
        cache = RateCache(ttl_seconds=10, clock=clock)
        cache.set("k", 1)
        clock.advance(8)
        cache.set("k", 2)
        clock.advance(8)

        assert cache.get("k") == 2

    def test_full_cache_drops_expired_then_oldest(self):
        clock = FakeClock()
        cache = RateCache(ttl_seconds=10, max_entries=2, clock=clock)
        cache.set("a", 1)
        clock.advance(5)
        cache.set("b", 2)
        cache.set("c", 3)  # evicts "a" (oldest)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

        clock.advance(11)  # "b" and "c" expired
        cache.set("d", 4)
        assert len(cache) == 1

    def test_clear(self):
        cache = RateCache()
        cache.set("k", 1)
        cache.clear()
        assert cache.get("k") is None

    @pytest.mark.parametrize("kwargs", [{"ttl_seconds": 0}, {"max_entries": 0}])
    def test_rejects_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            RateCache(**kwargs)

    def test_concurrent_get_set(self):
        cache = RateCache(max_entries=500)
        errors = []

        def worker(offset: int):
            try:
                for i in range(1000):
                    key = (offset, i % 300)
                    cache.set(key, i)
                    cache.get(key)
            except Exception as e:  # pragma: no cover - surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(cache) <= 500
