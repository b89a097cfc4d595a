"""
Paging and sorting normalization for user listings.
"""

from typing import Any, Dict

from .models import UserFilter


DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 10000
DEFAULT_SORT_BY = "name"
DEFAULT_SORT_DIR = "ASC"
SORTABLE_FIELDS = frozenset({"id", "name", "email", "age", "created_at", "updated_at"})


def validate_page(page: int) -> int:
    if page < 1:
        return DEFAULT_PAGE
    return page


def validate_limit(limit: int) -> int:
    if limit < 1:
        return DEFAULT_PAGE_SIZE
    if limit > MAX_PAGE_SIZE:
        return MAX_PAGE_SIZE
    return limit


def validate_sort_by(sort_by: str) -> str:
    # Rendered verbatim into ORDER BY, so only known columns pass
    if sort_by in SORTABLE_FIELDS:
        return sort_by
    return DEFAULT_SORT_BY


def validate_sort_dir(sort_dir: str) -> str:
    direction = (sort_dir or "").upper()
    if direction in ("ASC", "DESC"):
        return direction
    return DEFAULT_SORT_DIR


def normalize_filter(user_filter: UserFilter) -> UserFilter:
    """Return a copy of the filter with paging and sort values clamped."""
    return user_filter.model_copy(update={
        "page": validate_page(user_filter.page),
        "page_size": validate_limit(user_filter.page_size),
        "sort_by": validate_sort_by(user_filter.sort_by),
        "sort_dir": validate_sort_dir(user_filter.sort_dir),
    })


def build_template_data(user_filter: UserFilter) -> Dict[str, Any]:
    """Template data for the list and count statements.

    Every filter field is exposed under both its PascalCase and snake_case
    spelling; ``limit`` and ``offset`` are derived from the page.
    """
    return {
        "Name": user_filter.name,
        "Email": user_filter.email,
        "MinAge": user_filter.min_age,
        "MaxAge": user_filter.max_age,
        "Page": user_filter.page,
        "PageSize": user_filter.page_size,
        "SortBy": user_filter.sort_by,
        "SortDir": user_filter.sort_dir,
        "name": user_filter.name,
        "email": user_filter.email,
        "min_age": user_filter.min_age,
        "max_age": user_filter.max_age,
        "page": user_filter.page,
        "page_size": user_filter.page_size,
        "sort_by": user_filter.sort_by,
        "sort_dir": user_filter.sort_dir,
        "limit": user_filter.page_size,
        "offset": (user_filter.page - 1) * user_filter.page_size,
    }


def total_pages(total_elements: int, page_size: int) -> int:
    """Number of pages for ``total_elements``; never less than 1."""
    pages = total_elements // page_size
    if total_elements % page_size > 0:
        pages += 1
    return max(pages, 1)
