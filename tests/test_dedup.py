"""Unit tests for the idempotency cache."""

import threading

from commentbot.services.dedup import IdempotencyCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestIdempotencyCache:
    """Test duplicate detection and expiry."""

    def test_first_delivery_is_new(self):
        cache = IdempotencyCache()
        assert cache.seen(1) is False

    def test_redelivery_is_duplicate(self):
        """Every call after the first reports a duplicate."""
        cache = IdempotencyCache()
        cache.seen(7)
        assert cache.seen(7) is True
        assert cache.seen(7) is True

    def test_distinct_ids_are_independent(self):
        cache = IdempotencyCache()
        assert cache.seen(1) is False
        assert cache.seen(2) is False
        assert len(cache) == 2

    def test_forget_allows_redelivery(self):
        cache = IdempotencyCache()
        cache.seen(9)
        cache.forget(9)
        assert cache.seen(9) is False
        cache.forget(12345)  # unknown ids are fine

    def test_entries_survive_within_retention(self):
        """A sweep inside the retention window keeps the id."""
        clock = FakeClock()
        cache = IdempotencyCache(clock=clock)
        cache.seen(5)

        clock.now += 19 * 60
        assert cache.seen(5) is True

    def test_entries_expire_after_retention(self):
        clock = FakeClock()
        cache = IdempotencyCache(clock=clock)
        cache.seen(5)

        clock.now += 21 * 60
        assert cache.seen(5) is False

    def test_sweep_waits_for_interval(self):
        """Expired ids linger until the next sweep is due."""
        clock = FakeClock()
        cache = IdempotencyCache(retention_seconds=10, sweep_interval_seconds=300, clock=clock)
        cache.seen(5)

        clock.now += 60
        assert cache.seen(5) is True

        clock.now += 300
        assert cache.seen(5) is False

    def test_concurrent_delivery_reports_one_new(self):
        """Only one of many concurrent callers sees an id as new."""
        cache = IdempotencyCache()
        results: list[bool] = []
        lock = threading.Lock()

        def deliver():
            result = cache.seen(123)
            with lock:
                results.append(result)

        threads = [threading.Thread(target=deliver) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(False) == 1
        assert results.count(True) == 15
