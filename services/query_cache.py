"""
Process-wide query cache shared by the entity services.

Entries are keyed by tuples such as ``("stops", "list", itinerary_id)``.
Invalidation works by key prefix, so invalidating ``("stops", "list")``
drops every stop list. Consumers may subscribe to a prefix and are called
with the invalidated prefix whenever it overlaps theirs.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from cachetools import TTLCache

from config import settings

logger = logging.getLogger(__name__)

Key = Tuple[Hashable, ...]
Listener = Callable[[Key], None]

_MISSING = object()


class QueryKeys:
    """Key factory for one entity, mirroring the list/detail layout."""

    def __init__(self, name: str):
        self.name = name

    def all(self) -> Key:
        return (self.name,)

    def lists(self) -> Key:
        return (self.name, "list")

    def list(self, scope: str) -> Key:
        return (self.name, "list", scope)

    def details(self) -> Key:
        return (self.name, "detail")

    def detail(self, entity_id: str) -> Key:
        return (self.name, "detail", entity_id)


def _starts_with(key: Key, prefix: Key) -> bool:
    return key[:len(prefix)] == prefix


class QueryCache:
    def __init__(self, stale_seconds: float = 300, maxsize: int = 4096, timer: Callable[[], float] = time.monotonic):
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=stale_seconds, timer=timer)
        self._lock = threading.RLock()
        self._key_locks: Dict[Key, threading.Lock] = {}
        self._listeners: List[Tuple[Key, Listener]] = []
        # bumped by every write so in-flight loads know they went stale
        self._generation = 0

    def get(self, key: Key) -> Optional[Any]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: Key, value: Any) -> None:
        with self._lock:
            self._generation += 1
            self._entries[key] = value

    def fetch(self, key: Key, loader: Callable[[], Any], retry: int = 0, retry_delay: Optional[float] = None) -> Any:
        """Return the fresh cached value for `key`, loading it at most once.

        Concurrent callers for the same key wait for the first load instead of
        issuing their own. A failing loader is retried `retry` times with a
        fixed delay; the last error propagates and nothing is cached. A load
        that overlaps an invalidation, `set` or `clear` is returned to its
        caller but not stored.
        """
        with self._lock:
            cached = self._entries.get(key, _MISSING)
            if cached is not _MISSING:
                return cached
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            try:
                with self._lock:
                    cached = self._entries.get(key, _MISSING)
                    if cached is not _MISSING:
                        return cached
                    generation = self._generation
                value = self._load(key, loader, retry, retry_delay)
                with self._lock:
                    if self._generation == generation:
                        self._entries[key] = value
                    else:
                        logger.debug("Discarded load of %s overtaken by a write", key)
                return value
            finally:
                with self._lock:
                    if self._key_locks.get(key) is key_lock:
                        del self._key_locks[key]

    def _load(self, key: Key, loader: Callable[[], Any], retry: int, retry_delay: Optional[float]) -> Any:
        delay = settings.list_retry_delay_seconds if retry_delay is None else retry_delay
        attempt = 0
        while True:
            try:
                return loader()
            except Exception as e:
                if attempt >= retry:
                    raise
                attempt += 1
                logger.warning("Query %s failed (%s), retrying in %.1fs", key, e, delay)
                time.sleep(delay)

    def invalidate(self, prefix: Key) -> List[Key]:
        """Drop every entry under `prefix` so the next read refetches."""
        with self._lock:
            self._generation += 1
            dropped = [k for k in list(self._entries.keys()) if _starts_with(k, prefix)]
            for k in dropped:
                self._entries.pop(k, None)
            listeners = [fn for p, fn in self._listeners if _starts_with(prefix, p) or _starts_with(p, prefix)]
        logger.debug("Invalidated %s (%d entries)", prefix, len(dropped))
        for fn in listeners:
            fn(prefix)
        return dropped

    # same effect as invalidate for a store with no background refetch
    remove = invalidate

    def subscribe(self, prefix: Key, listener: Listener) -> Callable[[], None]:
        entry = (tuple(prefix), listener)
        with self._lock:
            self._listeners.append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._listeners:
                    self._listeners.remove(entry)

        return unsubscribe

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()
            self._key_locks.clear()


query_cache = QueryCache(stale_seconds=settings.cache_stale_seconds, maxsize=settings.cache_max_entries)


def get_query_cache() -> QueryCache:
    return query_cache


itinerary_keys = QueryKeys("itineraries")
stop_keys = QueryKeys("stops")
accommodation_keys = QueryKeys("accommodations")
activity_keys = QueryKeys("activities")
invite_keys = QueryKeys("itinerary-invites")
collaborator_keys = QueryKeys("itinerary-collaborators")
attachment_keys = QueryKeys("attachments")
note_keys = QueryKeys("notes")
