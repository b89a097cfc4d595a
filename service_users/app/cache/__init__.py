"""
Cache package for Users Service.

Provides a Redis-backed cache holding single user snapshots and
compressed paged listings keyed by the canonical filter.
"""

from .redis_cache import RedisResultCache

__all__ = ["RedisResultCache"]
