"""
User data models for Users Service.
"""

import json
from typing import Any, Dict, List, Optional
from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    """Persisted user record."""
    id: Optional[str] = Field(None, description="Store-assigned identifier")
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address")
    age: int = Field(..., description="Age in years")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Build a user from a database row."""
        return cls(
            id=str(row["id"]),
            name=row["name"],
            email=row["email"],
            age=row["age"],
            created_at=row["created_at"],
            updated_at=row["updated_at"]
        )


class UserFilter(BaseModel):
    """Query parameters for listing users."""
    name: str = Field("", description="Substring match on name")
    email: str = Field("", description="Substring match on email")
    min_age: int = Field(0, description="Minimum age, 0 for no bound")
    max_age: int = Field(0, description="Maximum age, 0 for no bound")
    page: int = Field(1, description="Page number, 1-based")
    page_size: int = Field(10, description="Items per page")
    sort_by: str = Field("", description="Sort field")
    sort_dir: str = Field("", description="Sort direction (asc/desc)")
    must_revalidate: bool = Field(False, description="Bypass the query cache")

    def cache_key(self) -> str:
        """Canonical serialization used as the query-cache field.

        Keys are sorted so the result does not depend on field order, and the
        revalidation flag is left out so a forced reload refreshes the same
        entry ordinary reads hit.
        """
        return json.dumps(
            self.model_dump(exclude={"must_revalidate"}),
            sort_keys=True,
            separators=(",", ":")
        )


class Pagination(BaseModel):
    """Pagination metadata for a page of users."""
    current_page: int = 0
    page_size: int = 0
    current_elements: int = 0
    total_pages: int = 0
    total_elements: int = 0
    sort_by: str = ""
    sort_dir: str = ""


class CreateUserRequest(BaseModel):
    """Request model for creating a user."""
    name: str = Field(..., min_length=2, max_length=100, description="Full name")
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", description="Email address")
    age: int = Field(..., ge=1, le=150, description="Age in years")


class UpdateUserRequest(BaseModel):
    """Request model for updating a user; empty fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=2, max_length=100, description="Full name")
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", description="Email address")
    age: Optional[int] = Field(None, ge=1, le=150, description="Age in years")


class ResponseMeta(BaseModel):
    """Envelope metadata attached to every success response."""
    path: str
    status_code: int
    status: str
    message: str
    timestamp: str


class UserResponse(BaseModel):
    """Single-user response envelope."""
    metadata: ResponseMeta
    data: Optional[User] = None


class UserListResponse(BaseModel):
    """Paged user list response envelope."""
    metadata: ResponseMeta
    data: List[User] = Field(default_factory=list)
    pagination: Pagination


class MessageResponse(BaseModel):
    """Response envelope carrying a plain message."""
    metadata: ResponseMeta
    data: Dict[str, str] = Field(default_factory=dict)
