"""
Users service for Userbase.
"""

import asyncio
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Optional
from uuid import UUID

from fastapi import Header, Query, Request

from shared.base_service import BaseService
from shared.errors import UserbaseException

from .queries.template_store import QueryLoader
from .queries.renderer import QueryRenderer
from .persistence.postgres import PostgreSQLUserStore
from .cache.redis_cache import RedisResultCache
from .users.models import (
    UserFilter, CreateUserRequest, UpdateUserRequest,
    ResponseMeta, UserResponse, UserListResponse, MessageResponse
)
from .users.repository import UserRepository
from .users.service import UserService


REVALIDATE_DIRECTIVES = ("no-cache", "must-revalidate")


def _wants_revalidation(cache_control: Optional[str]) -> bool:
    if not cache_control:
        return False
    directives = {part.strip().lower() for part in cache_control.split(",")}
    return any(d in directives for d in REVALIDATE_DIRECTIVES)


class UsersService(BaseService):
    """Users service implementation."""

    def __init__(self, **config_overrides):
        super().__init__("users", 8020, **config_overrides)

        # Composition: a missing template resource fails startup here
        self.query_loader = QueryLoader(self.config.queries_path).load()
        self.renderer = QueryRenderer(self.query_loader)
        self.persistence = PostgreSQLUserStore(
            self.config.postgres_dsn,
            self.renderer,
            min_size=self.config.postgres_pool_min_size,
            max_size=self.config.postgres_pool_max_size,
            command_timeout=self.config.postgres_command_timeout
        )
        self.cache = RedisResultCache(
            self.config.redis_url,
            record_ttl=self.config.record_cache_ttl_seconds,
            query_ttl=self.config.query_cache_ttl_seconds,
            socket_timeout=self.config.redis_socket_timeout
        )
        self.repository = UserRepository(
            self.persistence,
            self.cache,
            record_ttl=self.config.record_cache_ttl_seconds,
            query_ttl=self.config.query_cache_ttl_seconds,
            metrics=self.metrics
        )
        self.user_service = UserService(self.repository)

        self._setup_users_routes()

    async def _with_deadline(self, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.config.request_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise UserbaseException(
                "REQUEST_TIMEOUT",
                "Request timed out",
                {"timeout_seconds": self.config.request_timeout_seconds},
                status_code=504
            ) from e

    @staticmethod
    def _meta(request: Request, status_code: int) -> ResponseMeta:
        status_text = HTTPStatus(status_code).phrase
        return ResponseMeta(
            path=request.url.path,
            status_code=status_code,
            status=status_text,
            message=f"{request.method} {request.url.path} [{status_code}] {status_text}",
            timestamp=datetime.now(timezone.utc).isoformat()
        )

    def _setup_users_routes(self):
        """Set up users-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "users",
                "message": "Userbase - Users Service",
                "version": "1.0.0",
                "capabilities": ["crud", "caching", "persistence"]
            }

        @self.app.post("/users", status_code=201, response_model=UserResponse)
        async def create_user(request: Request, body: CreateUserRequest):
            """Create a new user."""
            user = await self._with_deadline(self.user_service.create_user(body))
            return UserResponse(metadata=self._meta(request, 201), data=user)

        @self.app.get("/users", response_model=UserListResponse)
        async def list_users(
            request: Request,
            name: str = Query("", description="Filter by name"),
            email: str = Query("", description="Filter by email"),
            min_age: int = Query(0, ge=0, description="Minimum age"),
            max_age: int = Query(0, ge=0, description="Maximum age"),
            page: int = Query(1, ge=1, description="Page number"),
            page_size: int = Query(10, ge=1, le=100, description="Page size"),
            sort_by: str = Query("", description="Sort by field"),
            sort_dir: str = Query("", pattern="(?i)^(asc|desc)?$", description="Sort direction (asc/desc)"),
            must_revalidate: bool = Query(False, description="Bypass the listing cache"),
            cache_control: Optional[str] = Header(None)
        ):
            """List users with optional filters."""
            user_filter = UserFilter(
                name=name,
                email=email,
                min_age=min_age,
                max_age=max_age,
                page=page,
                page_size=page_size,
                sort_by=sort_by,
                sort_dir=sort_dir,
                must_revalidate=must_revalidate or _wants_revalidation(cache_control)
            )
            users, pagination = await self._with_deadline(self.user_service.list_users(user_filter))
            return UserListResponse(
                metadata=self._meta(request, 200),
                data=users,
                pagination=pagination
            )

        @self.app.get("/users/{user_id}", response_model=UserResponse)
        async def get_user(request: Request, user_id: UUID):
            """Get a user by ID."""
            user = await self._with_deadline(self.user_service.get_user(str(user_id)))
            return UserResponse(metadata=self._meta(request, 200), data=user)

        @self.app.put("/users/{user_id}", response_model=UserResponse)
        async def update_user(request: Request, user_id: UUID, body: UpdateUserRequest):
            """Update an existing user."""
            user = await self._with_deadline(self.user_service.update_user(str(user_id), body))
            return UserResponse(metadata=self._meta(request, 200), data=user)

        @self.app.delete("/users/{user_id}", response_model=MessageResponse)
        async def delete_user(request: Request, user_id: UUID):
            """Delete a user by ID."""
            await self._with_deadline(self.user_service.delete_user(str(user_id)))
            return MessageResponse(
                metadata=self._meta(request, 200),
                data={"message": "User deleted successfully"}
            )

    async def _check_dependencies(self):
        """Check users service dependencies."""
        return {
            "redis": "ok" if await self.cache.health_check() else "error",
            "postgres": "ok" if await self.persistence.health_check() else "error",
        }

    async def start(self):
        """Start users service components."""
        await self.persistence.start()
        await self.cache.start()

        self.logger.info("Users service started", templates=len(self.query_loader))

    async def stop(self):
        """Stop users service components."""
        await self.persistence.stop()
        await self.cache.stop()

        self.logger.info("Users service stopped")


def create_app():
    """Create users service application."""
    service = UsersService()
    return service.app


if __name__ == "__main__":
    service = UsersService()
    service.run()
