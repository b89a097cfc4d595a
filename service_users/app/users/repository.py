"""
Cache-aside user repository.

Coordinates the PostgreSQL store and the Redis result cache. Cache failures
are logged and absorbed: reads fall back to the store, and cache writes never
decide the outcome of a request. Store failures surface once, unchanged.
There is no request coalescing, so a sustained cache outage sends every list
read straight to the store.
"""

from contextlib import nullcontext
from typing import List, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from shared.errors import CacheError
from shared.tracing import trace_operation
from .models import User, UserFilter, Pagination

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..persistence.postgres import PostgreSQLUserStore
    from ..cache.redis_cache import RedisResultCache
    from shared.metrics import MetricsCollector


RECORD_CACHE = "record"
QUERY_CACHE = "query"


class UserRepository:
    """User repository with a cache-aside read path."""

    def __init__(
        self,
        store: "PostgreSQLUserStore",
        cache: "RedisResultCache",
        *,
        record_ttl: Optional[int] = None,
        query_ttl: Optional[int] = None,
        metrics: Optional["MetricsCollector"] = None
    ):
        self.store = store
        self.cache = cache
        self.record_ttl = record_ttl
        self.query_ttl = query_ttl
        self.metrics = metrics
        self.logger = get_logger("users.repository")

    def _count(self, metric_name: str, **labels):
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    def _timed(self, operation: str):
        if self.metrics:
            return self.metrics.time_operation("store_operation_duration_seconds", operation=operation)
        return nullcontext()

    def _cache_failed(self, cache_type: str, operation: str, exc: CacheError, **context):
        self.logger.warning(
            "Cache operation failed",
            cache_type=cache_type,
            operation=operation,
            error=exc.message,
            details=exc.details,
            **context
        )
        self._count("cache_errors_total", cache_type=cache_type, operation=operation)

    async def create(self, user: User) -> User:
        with trace_operation("users.create", __name__):
            with self._timed("create"):
                return await self.store.create(user)

    async def find_by_id(self, user_id: str) -> User:
        """Cached user if present, else the stored one (then cached)."""
        with trace_operation("users.find_by_id", __name__, user_id=user_id):
            try:
                cached = await self.cache.get_record(user_id)
            except CacheError as e:
                self._cache_failed(RECORD_CACHE, "get", e, user_id=user_id)
                cached = None

            if cached is not None:
                self.logger.debug("Data found in cache", user_id=user_id)
                self._count("cache_hits_total", cache_type=RECORD_CACHE)
                return cached

            self._count("cache_misses_total", cache_type=RECORD_CACHE)
            with self._timed("find_by_id"):
                user = await self.store.find_by_id(user_id)

            try:
                await self.cache.set_record(user, self.record_ttl)
            except CacheError as e:
                self._cache_failed(RECORD_CACHE, "set", e, user_id=user_id)

            return user

    async def find_all(self, user_filter: UserFilter) -> Tuple[List[User], Pagination]:
        """Paged listing for a filter.

        With ``must_revalidate`` set the cache is not read. Otherwise a cached
        listing is returned as is; on a miss or a cache failure the store is
        read and the cache repopulated.
        """
        with trace_operation("users.find_all", __name__, must_revalidate=user_filter.must_revalidate):
            if not user_filter.must_revalidate:
                try:
                    cached = await self.cache.get_query_result(user_filter)
                except CacheError as e:
                    self._cache_failed(QUERY_CACHE, "get", e)
                    cached = None
                else:
                    if cached is not None:
                        self._count("cache_hits_total", cache_type=QUERY_CACHE)
                        return cached
                    self.logger.debug("User listing not cached")
                    self._count("cache_misses_total", cache_type=QUERY_CACHE)

            with self._timed("find_all"):
                users, pagination = await self.store.find_all(user_filter)

            try:
                await self.cache.set_query_result(user_filter, users, pagination, self.query_ttl)
            except CacheError as e:
                self._cache_failed(QUERY_CACHE, "set", e)

            return users, pagination

    async def update(self, user_id: str, user: User) -> User:
        """Update in the store, then drop the cached user.

        Cached listings are left to expire with their hash table.
        """
        with trace_operation("users.update", __name__, user_id=user_id):
            with self._timed("update"):
                updated = await self.store.update(user_id, user)
            await self._invalidate(user_id)
            return updated

    async def delete(self, user_id: str) -> None:
        with trace_operation("users.delete", __name__, user_id=user_id):
            with self._timed("delete"):
                await self.store.delete(user_id)
            await self._invalidate(user_id)

    async def _invalidate(self, user_id: str) -> None:
        try:
            await self.cache.delete_record(user_id)
        except CacheError as e:
            self._cache_failed(RECORD_CACHE, "delete", e, user_id=user_id)
