"""
Caching layer for access decisions.

Every retrieval resolves an access decision, and resolving one costs a grant
lookup plus an on-chain call. The cache keeps decisions for a short TTL and
collapses concurrent misses for the same key into a single computation.
Failures are never cached.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .models import CacheEntry, CacheOptions
from .observability.logging import get_logger
from .observability.metrics import DECISION_CACHE_LOOKUPS

logger = get_logger(__name__)


@dataclass
class _InFlight:
    task: "asyncio.Future[Any]"
    options: CacheOptions


def _consume_exception(task: "asyncio.Future[Any]") -> None:
    # Waiters may all have been cancelled; keep asyncio from warning about an
    # exception nobody retrieved.
    if not task.cancelled():
        task.exception()


class AccessDecisionCache:
    """
    TTL cache with single-flight get-or-compute.

    Guarantees:
    - At most one computation runs per key at a time. Concurrent callers for
      the same key await the same task and observe the same value or error.
    - A failed computation writes nothing; the next call recomputes.
    - An entry is served strictly before its expiry and never after.
    - A caller that is cancelled does not cancel the shared computation; its
      result still lands in the cache.

    Category, priority and tags are stored with each entry. Priority only
    weights eviction when max_entries is set; tags support bulk invalidation.
    """

    def __init__(
        self,
        default_options: Optional[CacheOptions] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_options: Options used when get_or_compute receives none
            max_entries: Optional bound on stored entries
            clock: Monotonic time source in seconds
        """
        self.default_options = default_options or CacheOptions()
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, _InFlight] = {}
        self._stats = {"hits": 0, "misses": 0, "computes": 0, "failures": 0, "evictions": 0}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        options: Optional[CacheOptions] = None,
    ) -> Any:
        """
        Return the fresh cached value for key, computing it if absent.

        Args:
            key: Cache key
            compute: Zero-argument coroutine function producing the value
            options: TTL and management metadata for a newly written entry

        Returns:
            The cached or freshly computed value

        Raises:
            Whatever compute raised, unchanged, to every waiting caller
        """
        entry = self._get_fresh(key)
        if entry is not None:
            self._stats["hits"] += 1
            DECISION_CACHE_LOOKUPS.labels(result="hit").inc()
            return entry.value

        inflight = self._inflight.get(key)
        if inflight is None:
            self._stats["misses"] += 1
            DECISION_CACHE_LOOKUPS.labels(result="miss").inc()
            options = options or self.default_options
            task = asyncio.ensure_future(self._compute_and_store(key, compute, options))
            task.add_done_callback(_consume_exception)
            inflight = _InFlight(task=task, options=options)
            self._inflight[key] = inflight
        else:
            DECISION_CACHE_LOOKUPS.labels(result="joined").inc()
            logger.debug("decision_cache_joined_inflight", key=key)

        return await asyncio.shield(inflight.task)

    async def _compute_and_store(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        options: CacheOptions,
    ) -> Any:
        task = asyncio.current_task()
        self._stats["computes"] += 1
        try:
            value = await compute()
        except BaseException as exc:
            self._release(key, task)
            if isinstance(exc, Exception):
                self._stats["failures"] += 1
                logger.info(
                    "decision_cache_compute_failed",
                    key=key,
                    error_type=type(exc).__name__,
                )
            raise

        if self._release(key, task):
            self._store(key, value, options)
        else:
            # Invalidated while computing; callers still get the value but
            # it is not written back.
            logger.debug("decision_cache_result_discarded", key=key)
        return value

    def _release(self, key: str, task: Any) -> bool:
        current = self._inflight.get(key)
        if current is not None and current.task is task:
            del self._inflight[key]
            return True
        return False

    def _get_fresh(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_fresh(self._clock()):
            return entry
        del self._entries[key]
        return None

    def _store(self, key: str, value: Any, options: CacheOptions) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            expires_at=now + options.ttl_ms / 1000.0,
            created_at=now,
            options=options,
        )
        logger.debug(
            "decision_cache_stored",
            key=key,
            ttl_ms=options.ttl_ms,
            category=options.category,
            priority=options.priority.name,
        )
        if self.max_entries is not None and len(self._entries) > self.max_entries:
            self._evict()

    def _evict(self) -> None:
        self.purge_expired()
        while len(self._entries) > self.max_entries:
            victim = min(
                self._entries.values(),
                key=lambda e: (e.options.priority, e.created_at),
            )
            del self._entries[victim.key]
            self._stats["evictions"] += 1

    def invalidate(self, key: str) -> bool:
        """Drop the entry for key and abandon any in-flight computation."""
        removed = self._entries.pop(key, None) is not None
        abandoned = self._inflight.pop(key, None) is not None
        return removed or abandoned

    def invalidate_tag(self, tag: str) -> int:
        """
        Invalidate every entry carrying the given tag.

        In-flight computations started with the tag are abandoned too, so a
        decision computed before the invalidation is never written back.

        Returns:
            Number of stored entries removed
        """
        keys = [k for k, e in self._entries.items() if tag in e.options.tags]
        for key in keys:
            del self._entries[key]

        for key in [k for k, f in self._inflight.items() if tag in f.options.tags]:
            del self._inflight[key]

        if keys:
            logger.info("decision_cache_tag_invalidated", tag=tag, entries=len(keys))
        return len(keys)

    def purge_expired(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_fresh(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)
