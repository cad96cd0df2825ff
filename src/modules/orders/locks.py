"""Per-product exclusive locks held across a checkout.

A placement holds one lock per requested product from before validation
until its stock adjustments are applied, so two checkouts for the same
product are serialized and the validation snapshot cannot go stale.

Locks are always taken in sorted product-id order (same rule as the
row-lock ordering used elsewhere to avoid deadlocks).  Acquisition that
takes longer than the wait budget raises ``InventoryLockTimeout`` and
releases whatever had been taken.

Two backends:

- ``CacheInventoryLocks``: ``cache.add`` on the Django cache (Redis in
  deployment).  Keys expire after a TTL so a crashed worker cannot wedge
  a product, and release is a compare-and-delete on the owner token.
  Works across processes.
- ``LocalInventoryLocks``: one ``threading.Lock`` per product, evicted
  once nobody holds or awaits it.  Only serializes threads of a single
  process.
"""

from __future__ import annotations

import threading
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional
from uuid import UUID

import structlog
from django.conf import settings
from django.core.cache import cache as default_cache

from modules.orders.exceptions import InventoryLockTimeout

logger = structlog.get_logger(__name__)

LOCK_KEY_PREFIX = "orders:inventory-lock:"
POLL_INTERVAL_SECONDS = 0.05

# KEYS[1] = lock key, ARGV[1] = encoded owner token.
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _sorted_unique(product_ids: Iterable[UUID]) -> List[UUID]:
    return sorted(set(product_ids), key=str)


class InventoryLocks(ABC):
    """Lock backend contract: ``hold()`` is the only entry point callers use."""

    def __init__(self, wait_seconds: float) -> None:
        self.wait_seconds = wait_seconds

    @abstractmethod
    def _acquire(self, product_id: UUID, deadline: float) -> bool:
        """Take the lock of *product_id*, giving up at *deadline* (monotonic)."""

    @abstractmethod
    def _release(self, product_id: UUID) -> None:
        """Release a lock previously taken by ``_acquire``."""

    @contextmanager
    def hold(self, product_ids: Iterable[UUID]) -> Iterator[List[UUID]]:
        ordered = _sorted_unique(product_ids)
        deadline = time.monotonic() + self.wait_seconds
        acquired: List[UUID] = []
        try:
            for product_id in ordered:
                if not self._acquire(product_id, deadline):
                    logger.warning(
                        "inventory.lock_timeout",
                        product_id=str(product_id),
                        wait_seconds=self.wait_seconds,
                    )
                    raise InventoryLockTimeout(ordered)
                acquired.append(product_id)
            yield ordered
        finally:
            for product_id in reversed(acquired):
                self._release(product_id)


class _LocalLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class LocalInventoryLocks(InventoryLocks):
    """Registry entries are reference-counted by holders and waiters and
    dropped once unused, so the registry only grows with live contention."""

    def __init__(self, wait_seconds: float) -> None:
        super().__init__(wait_seconds)
        self._registry_lock = threading.Lock()
        self._locks: Dict[UUID, _LocalLock] = {}

    def _checkout(self, product_id: UUID) -> _LocalLock:
        with self._registry_lock:
            entry = self._locks.get(product_id)
            if entry is None:
                entry = self._locks[product_id] = _LocalLock()
            entry.users += 1
            return entry

    def _checkin(self, product_id: UUID) -> None:
        with self._registry_lock:
            entry = self._locks[product_id]
            entry.users -= 1
            if entry.users == 0:
                del self._locks[product_id]

    def _acquire(self, product_id: UUID, deadline: float) -> bool:
        entry = self._checkout(product_id)
        remaining = max(deadline - time.monotonic(), 0.0)
        if entry.lock.acquire(timeout=remaining):
            return True
        self._checkin(product_id)
        return False

    def _release(self, product_id: UUID) -> None:
        with self._registry_lock:
            entry = self._locks[product_id]
        entry.lock.release()
        self._checkin(product_id)


class CacheInventoryLocks(InventoryLocks):
    def __init__(
        self,
        wait_seconds: float,
        ttl_seconds: int,
        cache=None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(wait_seconds)
        self.ttl_seconds = ttl_seconds
        self._cache = cache if cache is not None else default_cache
        self._sleep = sleep
        # One token per product we hold; releasing checks it so an expired
        # lock re-taken by someone else is never deleted by us.
        self._tokens: Dict[UUID, str] = {}
        self._tokens_lock = threading.Lock()

    @staticmethod
    def key(product_id: UUID) -> str:
        return f"{LOCK_KEY_PREFIX}{product_id}"

    def _acquire(self, product_id: UUID, deadline: float) -> bool:
        token = uuid.uuid4().hex
        key = self.key(product_id)
        while True:
            if self._cache.add(key, token, timeout=self.ttl_seconds):
                with self._tokens_lock:
                    self._tokens[product_id] = token
                return True
            if time.monotonic() >= deadline:
                return False
            self._sleep(POLL_INTERVAL_SECONDS)

    def _release(self, product_id: UUID) -> None:
        with self._tokens_lock:
            token = self._tokens.pop(product_id, None)
        if token is None or not self._delete_if_owned(self.key(product_id), token):
            logger.warning("inventory.lock_lost", product_id=str(product_id))

    def _delete_if_owned(self, key: str, token: str) -> bool:
        """Delete *key* only while it still holds *token*.

        On django-redis the check and the delete run as one Lua script, so
        a lock that expired and was re-taken by another worker in between
        is left alone.  Caches without server-side scripting (the local
        memory cache used in development and tests) are single-process and
        fall back to get-then-delete.
        """
        client = getattr(self._cache, "client", None)
        if client is not None and hasattr(client, "get_client"):
            redis = client.get_client(write=True)
            deleted = redis.eval(
                RELEASE_SCRIPT, 1, client.make_key(key), client.encode(token)
            )
            return bool(deleted)
        if self._cache.get(key) != token:
            return False
        return bool(self._cache.delete(key))


_local_singleton: Optional[LocalInventoryLocks] = None
_local_singleton_lock = threading.Lock()


def get_inventory_locks() -> InventoryLocks:
    """Build the backend named by ``ORDERS_INVENTORY_LOCKS``.

    The local backend is a process-wide singleton, otherwise each
    request would get its own private locks.
    """
    global _local_singleton

    backend = settings.ORDERS_INVENTORY_LOCKS
    wait_seconds = float(settings.ORDERS_INVENTORY_LOCK_WAIT_SECONDS)

    if backend == "cache":
        return CacheInventoryLocks(
            wait_seconds=wait_seconds,
            ttl_seconds=int(settings.ORDERS_INVENTORY_LOCK_TTL_SECONDS),
        )
    if backend == "local":
        with _local_singleton_lock:
            if _local_singleton is None:
                _local_singleton = LocalInventoryLocks(wait_seconds)
            return _local_singleton
    raise ValueError(f"Unknown ORDERS_INVENTORY_LOCKS backend: {backend!r}")
