"""
Redis caching layer for Users Service.
"""

import json
import zlib
from typing import Any, List, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError
from pydantic import ValidationError as ModelValidationError

from shared.logging import get_logger
from shared.errors import CacheError
from ..users.models import User, UserFilter, Pagination
from ..users.paging import normalize_filter


USER_KEY_PREFIX = "user:"
USER_BY_PARAM_HASH_KEY = "user:param"
USER_PAGINATION_BY_PARAM_HASH_KEY = "user:pagination"


def _compress(payload: Any) -> bytes:
    return zlib.compress(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


def _decompress(raw: bytes) -> Any:
    return json.loads(zlib.decompress(raw).decode("utf-8"))


class RedisResultCache:
    """Redis cache for single users and paged user listings.

    Single users live under ``user:{id}`` as JSON strings with their own TTL.
    Listings live in two hash tables, one for the records and one for the
    pagination, both keyed by the filter's canonical serialization and
    holding zlib-compressed JSON. Expiry is set on each hash table as a
    whole, so any write to a table extends every entry in it.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        record_ttl: int = 300,
        query_ttl: int = 300,
        socket_timeout: float = 5
    ):
        self.redis_url = redis_url
        self.record_ttl = record_ttl
        self.query_ttl = query_ttl
        self.socket_timeout = socket_timeout
        self.logger = get_logger("users.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Start the Redis cache."""
        try:
            # Payloads are compressed bytes, so responses stay undecoded
            self.redis = redis.from_url(
                self.redis_url,
                decode_responses=False,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cache started")

        except RedisError as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise CacheError("Failed to start Redis cache", {"error": str(e)}) from e

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    @staticmethod
    def record_key(user_id: str) -> str:
        return f"{USER_KEY_PREFIX}{user_id}"

    @staticmethod
    def query_field(user_filter: UserFilter) -> str:
        """Hash field for a listing, taken from the clamped filter.

        Filters that the store would run identically share one field.
        """
        return normalize_filter(user_filter).cache_key()

    async def get_record(self, user_id: str) -> Optional[User]:
        """Cached user or None.

        An undecodable payload counts as a miss. Backend failures raise
        CacheError.
        """
        cache_key = self.record_key(user_id)
        try:
            cached = await self.redis.get(cache_key)
        except RedisError as e:
            raise CacheError("Error getting cached user", {"key": cache_key, "error": str(e)}) from e

        if cached is None:
            return None

        try:
            user = User.model_validate_json(cached)
        except ModelValidationError as e:
            self.logger.debug("Discarding undecodable cached user", cache_key=cache_key, error=str(e))
            return None

        self.logger.debug("Cache hit for user", cache_key=cache_key)
        return user

    async def set_record(self, user: User, ttl_seconds: Optional[int] = None) -> None:
        """Cache a user snapshot under its id."""
        cache_key = self.record_key(user.id)
        ttl = ttl_seconds or self.record_ttl
        try:
            await self.redis.set(cache_key, user.model_dump_json(), ex=ttl)
        except RedisError as e:
            raise CacheError("Error caching user", {"key": cache_key, "error": str(e)}) from e

        self.logger.debug("Cached user", cache_key=cache_key, ttl=ttl)

    async def delete_record(self, user_id: str) -> None:
        """Invalidate a cached user."""
        cache_key = self.record_key(user_id)
        try:
            await self.redis.delete(cache_key)
        except RedisError as e:
            raise CacheError("Error invalidating user", {"key": cache_key, "error": str(e)}) from e

        self.logger.debug("Invalidated cached user", cache_key=cache_key)

    async def get_query_result(self, user_filter: UserFilter) -> Optional[Tuple[List[User], Pagination]]:
        """Cached listing for a filter.

        Returns None when either hash field is absent. Backend failures and
        corrupted payloads raise CacheError.
        """
        field = self.query_field(user_filter)

        try:
            results_raw = await self.redis.hget(USER_BY_PARAM_HASH_KEY, field)
            if results_raw is None:
                return None

            pagination_raw = await self.redis.hget(USER_PAGINATION_BY_PARAM_HASH_KEY, field)
            if pagination_raw is None:
                return None
        except RedisError as e:
            raise CacheError("Error getting cached users", {"error": str(e)}) from e

        try:
            users = [User.model_validate(item) for item in _decompress(results_raw)]
            pagination = Pagination.model_validate(_decompress(pagination_raw))
        except (zlib.error, UnicodeDecodeError, ValueError, TypeError) as e:
            raise CacheError("Error decoding cached users", {"error": str(e)}) from e

        self.logger.debug("Cache hit for user listing", field=field)
        return users, pagination

    async def set_query_result(
        self,
        user_filter: UserFilter,
        users: List[User],
        pagination: Pagination,
        ttl_seconds: Optional[int] = None
    ) -> None:
        """Cache a listing and reset the expiry of both hash tables."""
        field = self.query_field(user_filter)
        ttl = ttl_seconds or self.query_ttl

        results_payload = _compress([user.model_dump(mode="json") for user in users])
        pagination_payload = _compress(pagination.model_dump(mode="json"))

        try:
            await self.redis.hset(USER_BY_PARAM_HASH_KEY, field, results_payload)
            await self.redis.expire(USER_BY_PARAM_HASH_KEY, ttl)

            await self.redis.hset(USER_PAGINATION_BY_PARAM_HASH_KEY, field, pagination_payload)
            await self.redis.expire(USER_PAGINATION_BY_PARAM_HASH_KEY, ttl)
        except RedisError as e:
            raise CacheError("Error caching users", {"error": str(e)}) from e

        self.logger.debug("Cached user listing", field=field, count=len(users), ttl=ttl)

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except RedisError:
            return False
