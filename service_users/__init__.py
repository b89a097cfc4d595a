"""
Users Service package for Userbase.

This package serves CRUD operations over user records with a cache-aside
read path. It provides:

- app.main: API surface for user operations and health.
- app.queries: Named SQL templates and positional parameter binding.
- app.persistence: PostgreSQL record store (asyncpg).
- app.cache: Redis-backed cache for single records and paged query results.
- app.users: Domain models, paging rules, cache-aside repository and service.

Guidelines:
- The service is stateless; rely on external cache/DB.
- A cache outage must degrade latency, never availability.
- Writes go to the store first; cache invalidation only follows success.
"""
