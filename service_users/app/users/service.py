"""
User service operations exposed to the HTTP layer.
"""

from typing import List, Tuple

from shared.logging import get_logger
from .models import User, UserFilter, Pagination, CreateUserRequest, UpdateUserRequest
from .repository import UserRepository


class UserService:
    """Thin orchestration over the user repository."""

    def __init__(self, repository: UserRepository):
        self.repository = repository
        self.logger = get_logger("users.service")

    async def create_user(self, request: CreateUserRequest) -> User:
        user = User(name=request.name, email=request.email, age=request.age)
        return await self.repository.create(user)

    async def get_user(self, user_id: str) -> User:
        return await self.repository.find_by_id(user_id)

    async def list_users(self, user_filter: UserFilter) -> Tuple[List[User], Pagination]:
        self.logger.debug("Listing users with filter", filter=user_filter.model_dump())
        return await self.repository.find_all(user_filter)

    async def update_user(self, user_id: str, request: UpdateUserRequest) -> User:
        """Apply the non-empty request fields on top of the current record."""
        existing = await self.repository.find_by_id(user_id)

        changes = {
            key: value
            for key, value in request.model_dump().items()
            if value not in (None, "", 0)
        }
        merged = existing.model_copy(update=changes)

        return await self.repository.update(user_id, merged)

    async def delete_user(self, user_id: str) -> None:
        await self.repository.delete(user_id)
