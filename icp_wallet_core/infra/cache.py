"""
Explicit cache objects

TtlCache holds prices for a fixed time-to-live; PoolCache holds resolved
pool identities for the lifetime of the process. Both optionally mirror
their contents to a CacheStore. Persistence is best-effort: a failing
store is logged and never fails the caller.

Caches are mutated only between suspension points of a single event
loop, so no locking is done.
"""

import logging
import time
from typing import Callable, Dict, Optional

from ..types import PoolIdentity, PriceCacheEntry
from .store import CacheStore

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TtlCache:
    """
    Price cache with a fixed TTL

    An entry older than the TTL is reported as a miss and dropped; stale
    values are never served. Only successful fetches are stored.

    Usage:
        cache = TtlCache("token_icp_prices", ttl_seconds=300, store=store)
        cache.load()
        price = cache.get(token_id)
        if price is None:
            price = await fetch()
            cache.set(token_id, price)
    """

    def __init__(
        self,
        namespace: str,
        ttl_seconds: float,
        clock: Optional[Clock] = None,
        store: Optional[CacheStore] = None,
    ):
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.time
        self._store = store
        self._entries: Dict[str, PriceCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        # an empty cache is still a cache
        return True

    def __contains__(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def get_entry(self, key: str) -> Optional[PriceCacheEntry]:
        """Fresh entry for key, or None (expired entries are evicted)"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock(), self.ttl_seconds):
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Optional[float]:
        entry = self.get_entry(key)
        if entry is None:
            return None
        logger.debug(f"{self.namespace} cache hit: {key} (age {entry.age(self._clock()):.1f}s)")
        return entry.value

    def set(self, key: str, value: float) -> PriceCacheEntry:
        entry = PriceCacheEntry(key=key, value=value, fetched_at=self._clock())
        self._entries[key] = entry
        self._persist()
        return entry

    def load(self) -> int:
        """
        Load persisted entries, dropping expired ones

        Returns:
            Number of entries loaded
        """
        if self._store is None:
            return 0
        try:
            raw = self._store.load(self.namespace)
        except Exception as e:
            logger.warning(f"Failed to load {self.namespace} cache: {e}")
            return 0

        now = self._clock()
        expired = 0
        for key, data in raw.items():
            try:
                entry = PriceCacheEntry.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {self.namespace} entry {key}: {e}")
                continue
            if entry.is_fresh(now, self.ttl_seconds):
                self._entries[key] = entry
            else:
                expired += 1

        if expired:
            logger.debug(f"Dropped {expired} expired {self.namespace} entries")
            self._persist()
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        if self._store is None:
            return
        try:
            self._store.delete(self.namespace)
        except Exception as e:
            logger.warning(f"Failed to clear persisted {self.namespace} cache: {e}")

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(
                self.namespace,
                {key: entry.to_dict() for key, entry in self._entries.items()},
            )
        except Exception as e:
            logger.warning(f"Failed to persist {self.namespace} cache: {e}")


class PoolCache:
    """
    Resolved pool identities keyed by pair key, with no expiry

    Pool assignment for a pair never changes, so entries live until
    clear() is called.
    """

    namespace = "pools"

    def __init__(self, store: Optional[CacheStore] = None):
        self._store = store
        self._pools: Dict[str, PoolIdentity] = {}

    def __len__(self) -> int:
        return len(self._pools)

    def __bool__(self) -> bool:
        return True

    def __contains__(self, pair_key: str) -> bool:
        return pair_key in self._pools

    def get(self, pair_key: str) -> Optional[PoolIdentity]:
        return self._pools.get(pair_key)

    def set(self, pool: PoolIdentity) -> None:
        self._pools[pool.pair_key] = pool
        self._persist()

    def load(self) -> int:
        if self._store is None:
            return 0
        try:
            raw = self._store.load(self.namespace)
        except Exception as e:
            logger.warning(f"Failed to load pool cache: {e}")
            return 0

        for pair_key, data in raw.items():
            try:
                pool = PoolIdentity.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed pool entry {pair_key}: {e}")
                continue
            self._pools[pool.pair_key] = pool
        logger.debug(f"Loaded {len(self._pools)} cached pools")
        return len(self._pools)

    def clear(self) -> None:
        self._pools.clear()
        if self._store is None:
            return
        try:
            self._store.delete(self.namespace)
        except Exception as e:
            logger.warning(f"Failed to clear persisted pool cache: {e}")

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(
                self.namespace,
                {key: pool.to_dict() for key, pool in self._pools.items()},
            )
        except Exception as e:
            logger.warning(f"Failed to persist pool cache: {e}")
