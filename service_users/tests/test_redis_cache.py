"""
Unit tests for the Redis result cache.
"""

import json
import zlib
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from shared.errors import CacheError
from shared.test_helpers import FakeRedis, UserDataFactory
from service_users.app.cache.redis_cache import (
    RedisResultCache, USER_BY_PARAM_HASH_KEY, USER_PAGINATION_BY_PARAM_HASH_KEY
)
from service_users.app.users.models import User, UserFilter, Pagination


class TestRedisResultCache:
    """Test cases for RedisResultCache."""

    @pytest.fixture
    def fake_redis(self):
        """In-memory redis."""
        return FakeRedis()

    @pytest.fixture
    def cache(self, fake_redis):
        """Cache wired to the fake backend."""
        cache = RedisResultCache("redis://localhost:6379/0", record_ttl=120, query_ttl=60)
        cache.redis = fake_redis
        return cache

    @pytest.fixture
    def user(self):
        """A stored user."""
        return User.from_row(UserDataFactory.create_user_row(user_id="3f0c2a1e-1111-4a5b-9c0d-222233334444"))

    @pytest.fixture
    def listing(self):
        """A page of users and its pagination."""
        users = [User.from_row(row) for row in UserDataFactory.create_user_rows(2)]
        pagination = Pagination(
            current_page=1, page_size=10, current_elements=2,
            total_pages=1, total_elements=2, sort_by="name", sort_dir="ASC"
        )
        return users, pagination

    @pytest.mark.asyncio
    async def test_start_pings_backend(self, fake_redis):
        """Start connects with undecoded responses and pings."""
        cache = RedisResultCache("redis://localhost:6379/0")

        with patch("service_users.app.cache.redis_cache.redis.from_url", return_value=fake_redis) as from_url:
            await cache.start()

        assert cache.redis is fake_redis
        assert from_url.call_args.kwargs["decode_responses"] is False

    @pytest.mark.asyncio
    async def test_start_failure(self, fake_redis):
        """An unreachable backend fails startup with CacheError."""
        fake_redis.fail = True
        cache = RedisResultCache("redis://localhost:6379/0")

        with patch("service_users.app.cache.redis_cache.redis.from_url", return_value=fake_redis):
            with pytest.raises(CacheError):
                await cache.start()

    @pytest.mark.asyncio
    async def test_stop_closes_client(self, cache, fake_redis):
        """Stop closes the client."""
        await cache.stop()

        assert fake_redis.closed

    @pytest.mark.asyncio
    async def test_record_round_trip(self, cache, fake_redis, user):
        """A cached user comes back equal, under its id key with the record TTL."""
        await cache.set_record(user)

        key = f"user:{user.id}"
        assert key in fake_redis.values
        assert fake_redis.ttls[key] == 120
        assert await cache.get_record(user.id) == user

    @pytest.mark.asyncio
    async def test_record_explicit_ttl(self, cache, fake_redis, user):
        """An explicit TTL overrides the default."""
        await cache.set_record(user, 15)

        assert fake_redis.ttls[f"user:{user.id}"] == 15

    @pytest.mark.asyncio
    async def test_record_miss(self, cache):
        """Absent users are a miss."""
        assert await cache.get_record("missing") is None

    @pytest.mark.asyncio
    async def test_record_undecodable_is_miss(self, cache, fake_redis):
        """Garbage under a user key is treated as a miss."""
        fake_redis.values["user:bad"] = b"not json"

        assert await cache.get_record("bad") is None

    @pytest.mark.asyncio
    async def test_delete_record(self, cache, fake_redis, user):
        """Deleting a user removes its key."""
        await cache.set_record(user)
        await cache.delete_record(user.id)

        assert await cache.get_record(user.id) is None

    @pytest.mark.asyncio
    async def test_record_backend_failure(self, cache, fake_redis, user):
        """Backend failures surface as CacheError."""
        fake_redis.fail = True

        with pytest.raises(CacheError):
            await cache.get_record(user.id)
        with pytest.raises(CacheError):
            await cache.set_record(user)
        with pytest.raises(CacheError):
            await cache.delete_record(user.id)

    @pytest.mark.asyncio
    async def test_query_round_trip(self, cache, listing):
        """A cached listing comes back equal."""
        users, pagination = listing
        user_filter = UserFilter(name="User", page=1, page_size=10)

        await cache.set_query_result(user_filter, users, pagination)
        cached = await cache.get_query_result(user_filter)

        assert cached == (users, pagination)

    @pytest.mark.asyncio
    async def test_query_miss(self, cache):
        """Unknown filters are a miss."""
        assert await cache.get_query_result(UserFilter(name="nobody")) is None

    @pytest.mark.asyncio
    async def test_query_missing_pagination_is_miss(self, cache, fake_redis, listing):
        """A listing without its pagination entry is a miss."""
        users, pagination = listing
        user_filter = UserFilter()
        await cache.set_query_result(user_filter, users, pagination)

        del fake_redis.hashes[USER_PAGINATION_BY_PARAM_HASH_KEY][cache.query_field(user_filter)]

        assert await cache.get_query_result(user_filter) is None

    @pytest.mark.asyncio
    async def test_query_key_ignores_revalidation_flag(self, cache, listing):
        """A forced reload writes the entry ordinary reads use."""
        users, pagination = listing

        await cache.set_query_result(UserFilter(name="a", must_revalidate=True), users, pagination)

        assert await cache.get_query_result(UserFilter(name="a")) == (users, pagination)

    @pytest.mark.asyncio
    async def test_query_key_uses_clamped_filter(self, cache, fake_redis, listing):
        """Filters that clamp to the same query share one entry."""
        users, pagination = listing

        await cache.set_query_result(UserFilter(sort_dir="desc", sort_by=""), users, pagination)
        await cache.set_query_result(UserFilter(sort_dir="DESC", sort_by="name"), users, pagination)
        await cache.set_query_result(UserFilter(sort_dir="Desc", sort_by="bogus", page=0), users, pagination)

        assert len(fake_redis.hashes[USER_BY_PARAM_HASH_KEY]) == 1
        assert len(fake_redis.hashes[USER_PAGINATION_BY_PARAM_HASH_KEY]) == 1
        assert await cache.get_query_result(UserFilter(sort_dir="desc")) == (users, pagination)

    @pytest.mark.asyncio
    async def test_query_payload_compressed(self, cache, fake_redis, listing):
        """Listing entries are zlib-compressed JSON in both tables."""
        users, pagination = listing
        user_filter = UserFilter()

        await cache.set_query_result(user_filter, users, pagination)

        field = cache.query_field(user_filter)
        raw_users = fake_redis.hashes[USER_BY_PARAM_HASH_KEY][field]
        raw_pagination = fake_redis.hashes[USER_PAGINATION_BY_PARAM_HASH_KEY][field]
        assert len(json.loads(zlib.decompress(raw_users))) == 2
        assert json.loads(zlib.decompress(raw_pagination))["total_elements"] == 2

    @pytest.mark.asyncio
    async def test_query_write_resets_table_ttl(self, cache, fake_redis, listing):
        """Each listing write re-applies expiry to both hash tables."""
        users, pagination = listing

        await cache.set_query_result(UserFilter(page=1), users, pagination)
        await cache.set_query_result(UserFilter(page=2), users, pagination, 30)

        assert fake_redis.expire_calls == [
            (USER_BY_PARAM_HASH_KEY, 60),
            (USER_PAGINATION_BY_PARAM_HASH_KEY, 60),
            (USER_BY_PARAM_HASH_KEY, 30),
            (USER_PAGINATION_BY_PARAM_HASH_KEY, 30),
        ]

    @pytest.mark.asyncio
    async def test_query_write_idempotent(self, cache, fake_redis, listing):
        """Writing the same listing twice leaves one entry per table."""
        users, pagination = listing
        user_filter = UserFilter(email="example")

        await cache.set_query_result(user_filter, users, pagination)
        await cache.set_query_result(user_filter, users, pagination)

        assert len(fake_redis.hashes[USER_BY_PARAM_HASH_KEY]) == 1
        assert len(fake_redis.hashes[USER_PAGINATION_BY_PARAM_HASH_KEY]) == 1
        assert await cache.get_query_result(user_filter) == (users, pagination)

    @pytest.mark.asyncio
    async def test_query_corrupt_payload(self, cache, fake_redis):
        """Corrupted listing payloads raise CacheError."""
        field = cache.query_field(UserFilter())
        fake_redis.hashes[USER_BY_PARAM_HASH_KEY] = {field: b"garbage"}
        fake_redis.hashes[USER_PAGINATION_BY_PARAM_HASH_KEY] = {field: b"garbage"}

        with pytest.raises(CacheError):
            await cache.get_query_result(UserFilter())

    @pytest.mark.asyncio
    async def test_query_backend_failure(self, cache, fake_redis, listing):
        """Backend failures on listings surface as CacheError."""
        users, pagination = listing
        fake_redis.fail = True

        with pytest.raises(CacheError):
            await cache.get_query_result(UserFilter())
        with pytest.raises(CacheError):
            await cache.set_query_result(UserFilter(), users, pagination)

    @pytest.mark.asyncio
    async def test_health_check(self, cache, fake_redis):
        """Health reflects backend reachability."""
        assert await cache.health_check() is True

        fake_redis.fail = True
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_not_started(self):
        """An unstarted cache is unhealthy."""
        assert await RedisResultCache("redis://localhost:6379/0").health_check() is False


class TestCanonicalKey:
    """Test cases for the canonical filter serialization."""

    def test_field_order_irrelevant(self):
        """Equal filters built in different orders share a key."""
        a = UserFilter(name="x", page=2, sort_dir="desc")
        b = UserFilter(sort_dir="desc", page=2, name="x")

        assert a.cache_key() == b.cache_key()

    def test_distinct_filters_distinct_keys(self):
        """Any differing field changes the key."""
        assert UserFilter(page=1).cache_key() != UserFilter(page=2).cache_key()

    def test_key_is_sorted_compact_json(self):
        """The key is sorted, compact JSON without the revalidation flag."""
        key = UserFilter(name="x").cache_key()

        assert json.loads(key)["name"] == "x"
        assert "must_revalidate" not in key
        assert " " not in key
        assert list(json.loads(key)) == sorted(json.loads(key))


def test_created_at_round_trip_keeps_timezone():
    """Timestamps survive JSON serialization with their offset."""
    user = User(
        id="u1", name="Ada", email="ada@example.com", age=36,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )
    assert User.model_validate_json(user.model_dump_json()).created_at == user.created_at
