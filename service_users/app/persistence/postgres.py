"""
PostgreSQL persistence layer for Users Service.
"""

from typing import Any, List, Optional, Tuple
from datetime import datetime, timezone

import asyncpg

from shared.logging import get_logger
from shared.errors import UserbaseException, QueryBuildError, StoreError, NotFoundError
from ..queries.renderer import QueryRenderer
from ..users.models import User, UserFilter, Pagination
from ..users.paging import normalize_filter, build_template_data, total_pages


def _affected_rows(status: str) -> int:
    """Row count from an asyncpg command tag such as ``UPDATE 1``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class PostgreSQLUserStore:
    """Runs rendered user statements against PostgreSQL.

    Holds no cached state. Every statement comes from the template renderer,
    so argument order always matches the positional markers.
    """

    def __init__(
        self,
        dsn: str,
        renderer: QueryRenderer,
        *,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 30
    ):
        self.dsn = dsn
        self.renderer = renderer
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.logger = get_logger("users.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except (OSError, asyncpg.PostgresError) as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise StoreError("Failed to start PostgreSQL persistence", {"error": str(e)}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        """Create database tables."""
        query, args = self.renderer.render("CreateUsersTable", {})
        async with self.pool.acquire() as conn:
            await conn.execute(query, *args)

    def _render(self, name: str, data: Any) -> Tuple[str, List[Any]]:
        try:
            return self.renderer.render(name, data)
        except UserbaseException:
            raise
        except Exception as e:
            raise QueryBuildError(f"Failed to build query {name}", {"template": name, "error": str(e)}) from e

    async def create(self, user: User) -> User:
        """Insert a user inside a single transaction.

        Returns a copy carrying the store-assigned id and timestamps.
        """
        query, args = self._render("CreateUser", {
            "name": user.name,
            "email": user.email,
            "age": user.age,
        })

        try:
            async with self.pool.acquire() as conn:
                # Rolled back by the context manager on any exception
                async with conn.transaction():
                    row = await conn.fetchrow(query, *args)
        except Exception as e:
            raise StoreError("Error creating user", {"error": str(e)}) from e

        created = user.model_copy(update={
            "id": str(row["id"]),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        })
        self.logger.info("User created", user_id=created.id)
        return created

    async def find_by_id(self, user_id: str) -> User:
        """Load one user; NotFoundError when no row matches."""
        query, args = self._render("FindUserByID", {"id": user_id})

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, *args)
        except Exception as e:
            raise StoreError("Error finding user", {"user_id": user_id, "error": str(e)}) from e

        if row is None:
            self.logger.debug("User not found", user_id=user_id)
            raise NotFoundError("User not found", {"user_id": user_id})

        return User.from_row(row)

    async def find_all(self, user_filter: UserFilter) -> Tuple[List[User], Pagination]:
        """Run the count and select statements for a normalized filter."""
        normalized = normalize_filter(user_filter)
        data = build_template_data(normalized)

        count_query, count_args = self._render("CountUsersBase", data)
        query, args = self._render("FindAllUsersBase", data)

        try:
            async with self.pool.acquire() as conn:
                total = await conn.fetchval(count_query, *count_args)
                rows = await conn.fetch(query, *args)
        except Exception as e:
            raise StoreError("Error listing users", {"error": str(e)}) from e

        total = total or 0
        users = [User.from_row(row) for row in rows]
        self.logger.debug("Users found", total=total, returned=len(users))

        pagination = Pagination(
            current_page=normalized.page,
            page_size=normalized.page_size,
            current_elements=len(users),
            total_pages=total_pages(total, normalized.page_size),
            total_elements=total,
            sort_by=normalized.sort_by,
            sort_dir=normalized.sort_dir
        )
        return users, pagination

    async def update(self, user_id: str, user: User) -> User:
        """Overwrite a user's fields; NotFoundError when no row is affected."""
        updated_at = datetime.now(timezone.utc)
        query, args = self._render("UpdateUser", {
            "name": user.name,
            "email": user.email,
            "age": user.age,
            "updated_at": updated_at,
            "id": user_id,
        })

        try:
            async with self.pool.acquire() as conn:
                status = await conn.execute(query, *args)
        except Exception as e:
            raise StoreError("Error updating user", {"user_id": user_id, "error": str(e)}) from e

        if _affected_rows(status) == 0:
            self.logger.debug("User not found for update", user_id=user_id)
            raise NotFoundError("User not found for update", {"user_id": user_id})

        self.logger.info("User updated", user_id=user_id)
        return user.model_copy(update={"id": user_id, "updated_at": updated_at})

    async def delete(self, user_id: str) -> None:
        """Delete a user; NotFoundError when no row is affected."""
        query, args = self._render("DeleteUser", {"id": user_id})

        try:
            async with self.pool.acquire() as conn:
                status = await conn.execute(query, *args)
        except Exception as e:
            raise StoreError("Error deleting user", {"user_id": user_id, "error": str(e)}) from e

        if _affected_rows(status) == 0:
            self.logger.debug("User not found for deletion", user_id=user_id)
            raise NotFoundError("User not found", {"user_id": user_id})

        self.logger.info("User deleted", user_id=user_id)

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False
