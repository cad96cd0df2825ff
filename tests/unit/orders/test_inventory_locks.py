"""Unit tests for the inventory lock backends.

Covers:
- Sorted acquisition and release on exit (also on error).
- Timeout raises InventoryLockTimeout and releases partial holds.
- Cache locks expire via TTL and never delete someone else's key.
- Release on django-redis is one compare-and-delete script.
- Local lock registry only keeps locks that are held or awaited.
- Backend selection from settings.
"""

from __future__ import annotations

import threading
from uuid import uuid4

import pytest
from django.core.cache import cache

from modules.orders.exceptions import InventoryLockTimeout
from modules.orders.locks import (
    RELEASE_SCRIPT,
    CacheInventoryLocks,
    InventoryLocks,
    LocalInventoryLocks,
    get_inventory_locks,
)

pytestmark = pytest.mark.unit


class RecordingCache:
    """Wraps the test cache and records the order keys are added in."""

    def __init__(self):
        self.added = []

    def add(self, key, value, timeout=None):
        self.added.append(key)
        return cache.add(key, value, timeout=timeout)

    def get(self, key):
        return cache.get(key)

    def delete(self, key):
        return cache.delete(key)


class FakeRedis:
    """Evaluates the release script against a dict, like Redis would."""

    def __init__(self, store):
        self.store = store
        self.scripts = []

    def eval(self, script, numkeys, key, token):
        self.scripts.append((script, numkeys, key, token))
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


class FakeRedisClient:
    """The django-redis client surface used by the cache lock backend."""

    def __init__(self):
        self.store = {}
        self.redis = FakeRedis(self.store)

    def make_key(self, key):
        return f":1:{key}"

    def encode(self, value):
        return value.encode()

    def get_client(self, write=True):
        return self.redis


class FakeRedisCache:
    def __init__(self):
        self.client = FakeRedisClient()

    def add(self, key, value, timeout=None):
        stored = self.client.make_key(key)
        if stored in self.client.store:
            return False
        self.client.store[stored] = self.client.encode(value)
        return True

    def get(self, key):
        raise AssertionError("release must not read the key separately")

    def delete(self, key):
        raise AssertionError("release must not delete the key separately")


class TestInventoryLocksContract:
    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            InventoryLocks(wait_seconds=0.1)

    def test_backend_must_implement_release(self):
        class AcquireOnly(InventoryLocks):
            def _acquire(self, product_id, deadline):
                return True

        with pytest.raises(TypeError):
            AcquireOnly(wait_seconds=0.1)


class TestCacheLocksOnRedis:
    def test_release_runs_compare_and_delete_script(self):
        product_id = uuid4()
        redis_cache = FakeRedisCache()
        locks = CacheInventoryLocks(wait_seconds=0.1, ttl_seconds=30, cache=redis_cache)

        with locks.hold([product_id]):
            stored_key = f":1:{CacheInventoryLocks.key(product_id)}"
            token = redis_cache.client.store[stored_key]

        (call,) = redis_cache.client.redis.scripts
        assert call == (RELEASE_SCRIPT, 1, stored_key, token)
        assert redis_cache.client.store == {}

    def test_lock_taken_over_after_expiry_survives_release(self):
        product_id = uuid4()
        redis_cache = FakeRedisCache()
        locks = CacheInventoryLocks(wait_seconds=0.1, ttl_seconds=30, cache=redis_cache)
        stored_key = f":1:{CacheInventoryLocks.key(product_id)}"

        with locks.hold([product_id]):
            # TTL expiry, then another worker takes the lock.
            redis_cache.client.store[stored_key] = b"other-worker"

        assert redis_cache.client.store == {stored_key: b"other-worker"}


class TestCacheInventoryLocks:
    def test_acquires_in_sorted_order_and_releases(self):
        ids = [uuid4() for _ in range(4)]
        recording = RecordingCache()
        locks = CacheInventoryLocks(wait_seconds=0.1, ttl_seconds=30, cache=recording)

        with locks.hold(ids) as held:
            assert held == sorted(ids, key=str)
            assert recording.added == [CacheInventoryLocks.key(i) for i in held]
            assert all(cache.get(CacheInventoryLocks.key(i)) for i in ids)

        assert all(cache.get(CacheInventoryLocks.key(i)) is None for i in ids)

    def test_duplicates_are_locked_once(self):
        product_id = uuid4()
        locks = CacheInventoryLocks(wait_seconds=0.1, ttl_seconds=30)

        with locks.hold([product_id, product_id]) as held:
            assert held == [product_id]

    def test_timeout_releases_partial_holds(self):
        first, second = sorted([uuid4(), uuid4()], key=str)
        cache.add(CacheInventoryLocks.key(second), "someone-else", timeout=30)
        sleeps = []
        locks = CacheInventoryLocks(
            wait_seconds=0.0, ttl_seconds=30, sleep=sleeps.append
        )

        with pytest.raises(InventoryLockTimeout) as excinfo:
            with locks.hold([first, second]):
                pass

        assert set(excinfo.value.product_ids) == {first, second}
        assert cache.get(CacheInventoryLocks.key(first)) is None
        assert cache.get(CacheInventoryLocks.key(second)) == "someone-else"

    def test_released_on_exception_inside_block(self):
        product_id = uuid4()
        locks = CacheInventoryLocks(wait_seconds=0.1, ttl_seconds=30)

        with pytest.raises(RuntimeError):
            with locks.hold([product_id]):
                raise RuntimeError("boom")

        assert cache.get(CacheInventoryLocks.key(product_id)) is None

    def test_expired_lock_taken_over_is_not_deleted(self):
        product_id = uuid4()
        key = CacheInventoryLocks.key(product_id)
        locks = CacheInventoryLocks(wait_seconds=0.1, ttl_seconds=30)

        with locks.hold([product_id]):
            # Simulate TTL expiry followed by another worker taking the lock.
            cache.delete(key)
            cache.add(key, "other-worker", timeout=30)

        assert cache.get(key) == "other-worker"

    def test_lock_is_set_with_ttl(self):
        product_id = uuid4()
        calls = []

        class TtlCache(RecordingCache):
            def add(self, key, value, timeout=None):
                calls.append(timeout)
                return super().add(key, value, timeout=timeout)

        locks = CacheInventoryLocks(wait_seconds=0.1, ttl_seconds=7, cache=TtlCache())

        with locks.hold([product_id]):
            pass

        assert calls == [7]


class TestLocalInventoryLocks:
    def test_blocks_other_threads_until_released(self):
        product_id = uuid4()
        locks = LocalInventoryLocks(wait_seconds=0.05)
        results = []

        def contender():
            try:
                with locks.hold([product_id]):
                    results.append("acquired")
            except InventoryLockTimeout:
                results.append("timeout")

        with locks.hold([product_id]):
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert results == ["timeout"]

        with locks.hold([product_id]):
            pass

    def test_registry_is_emptied_after_release(self):
        locks = LocalInventoryLocks(wait_seconds=0.05)

        with locks.hold([uuid4(), uuid4()]):
            assert len(locks._locks) == 2

        assert locks._locks == {}

    def test_registry_keeps_lock_while_a_waiter_times_out(self):
        product_id = uuid4()
        locks = LocalInventoryLocks(wait_seconds=0.05)

        def contender():
            with pytest.raises(InventoryLockTimeout):
                with locks.hold([product_id]):
                    pass

        with locks.hold([product_id]):
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()
            assert locks._locks[product_id].users == 1

        assert locks._locks == {}

    def test_different_products_do_not_contend(self):
        locks = LocalInventoryLocks(wait_seconds=0.05)
        a, b = uuid4(), uuid4()
        results = []

        def contender():
            with locks.hold([b]):
                results.append("acquired")

        with locks.hold([a]):
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert results == ["acquired"]


class TestGetInventoryLocks:
    def test_cache_backend_from_settings(self, settings):
        settings.ORDERS_INVENTORY_LOCKS = "cache"
        settings.ORDERS_INVENTORY_LOCK_TTL_SECONDS = 12
        settings.ORDERS_INVENTORY_LOCK_WAIT_SECONDS = 1.5

        locks = get_inventory_locks()

        assert isinstance(locks, CacheInventoryLocks)
        assert locks.ttl_seconds == 12
        assert locks.wait_seconds == 1.5

    def test_local_backend_is_shared(self, settings):
        settings.ORDERS_INVENTORY_LOCKS = "local"

        assert get_inventory_locks() is get_inventory_locks()

    def test_unknown_backend(self, settings):
        settings.ORDERS_INVENTORY_LOCKS = "zookeeper"

        with pytest.raises(ValueError):
            get_inventory_locks()
