import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from samlsp.cache import CacheProvider
from samlsp.cache import InMemoryCacheProvider

THREADS = 8


class FakeClock(object):
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestInMemoryCacheProvider:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return InMemoryCacheProvider(key_expiration_period_ms=60000, clock=clock)

    def test_save_and_get(self, cache):
        assert cache.save("_id1", "2016-03-01T12:00:00.000Z") == "2016-03-01T12:00:00.000Z"
        assert cache.get("_id1") == "2016-03-01T12:00:00.000Z"

    def test_save_existing_key_returns_none_and_keeps_value(self, cache):
        cache.save("_id1", "first")
        assert cache.save("_id1", "second") is None
        assert cache.get("_id1") == "first"

    def test_get_unknown_key(self, cache):
        assert cache.get("_unknown") is None

    def test_remove(self, cache):
        cache.save("_id1", "value")
        assert cache.remove("_id1") == "_id1"
        assert cache.get("_id1") is None
        assert cache.remove("_id1") is None

    def test_entries_expire(self, cache, clock):
        cache.save("_id1", "value")
        clock.now += 59
        assert cache.get("_id1") == "value"
        clock.now += 1
        assert cache.get("_id1") is None
        assert len(cache) == 0

    def test_remove_expired_only_drops_old_entries(self, cache, clock):
        cache.save("_old", "value")
        clock.now += 30
        cache.save("_new", "value")
        clock.now += 30
        cache.remove_expired()
        assert len(cache) == 1
        assert cache.get("_new") == "value"

    def test_expired_key_can_be_saved_again(self, cache, clock):
        cache.save("_id1", "first")
        clock.now += 61
        assert cache.save("_id1", "second") == "second"


class TestInMemoryCacheProviderConcurrency:
    @pytest.fixture
    def cache(self):
        return InMemoryCacheProvider(key_expiration_period_ms=60000, clock=FakeClock())

    def _run(self, func):
        barrier = threading.Barrier(THREADS)

        def worker(number):
            barrier.wait()
            return func(number)

        with ThreadPoolExecutor(max_workers=THREADS) as executor:
            # list() re-raises anything a worker raised
            return list(executor.map(worker, range(THREADS)))

    def test_only_one_save_of_a_shared_key_wins(self, cache):
        results = self._run(lambda number: cache.save("_shared", "value{}".format(number)))

        saved = [result for result in results if result is not None]
        assert len(saved) == 1
        assert cache.get("_shared") == saved[0]

    def test_only_one_remove_of_a_shared_key_wins(self, cache):
        cache.save("_shared", "value")
        results = self._run(lambda number: cache.remove("_shared"))
        assert results.count("_shared") == 1
        assert cache.get("_shared") is None

    def test_distinct_keys_are_not_lost(self, cache):
        def work(number):
            for i in range(200):
                key = "_id{}_{}".format(number, i)
                assert cache.save(key, key) == key
                assert cache.get(key) == key
                if i % 2:
                    assert cache.remove(key) == key

        self._run(work)

        assert len(cache) == THREADS * 100
        assert cache.get("_id0_0") == "_id0_0"
        assert cache.get("_id0_1") is None


def test_cache_provider_interface_is_abstract():
    provider = CacheProvider()
    with pytest.raises(NotImplementedError):
        provider.save("key", "value")
    with pytest.raises(NotImplementedError):
        provider.get("key")
    with pytest.raises(NotImplementedError):
        provider.remove("key")
