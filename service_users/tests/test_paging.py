"""
Unit tests for paging and sort normalization.
"""

import pytest

from service_users.app.users.models import UserFilter
from service_users.app.users.paging import (
    validate_page, validate_limit, validate_sort_by, validate_sort_dir,
    normalize_filter, build_template_data, total_pages,
    DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
)


class TestValidators:
    """Test cases for the individual clamps."""

    @pytest.mark.parametrize("page,expected", [(0, 1), (-3, 1), (1, 1), (7, 7)])
    def test_validate_page(self, page, expected):
        """Pages below 1 fall back to the first page."""
        assert validate_page(page) == expected

    @pytest.mark.parametrize("limit,expected", [
        (0, DEFAULT_PAGE_SIZE),
        (-1, DEFAULT_PAGE_SIZE),
        (25, 25),
        (MAX_PAGE_SIZE, MAX_PAGE_SIZE),
        (MAX_PAGE_SIZE + 1, MAX_PAGE_SIZE),
    ])
    def test_validate_limit(self, limit, expected):
        """Page sizes are clamped into range."""
        assert validate_limit(limit) == expected

    @pytest.mark.parametrize("sort_by,expected", [
        ("age", "age"),
        ("created_at", "created_at"),
        ("", "name"),
        ("password", "name"),
        ("name; DROP TABLE users", "name"),
    ])
    def test_validate_sort_by(self, sort_by, expected):
        """Only known columns are accepted for ordering."""
        assert validate_sort_by(sort_by) == expected

    @pytest.mark.parametrize("sort_dir,expected", [
        ("asc", "ASC"),
        ("DESC", "DESC"),
        ("desc", "DESC"),
        ("", "ASC"),
        ("sideways", "ASC"),
    ])
    def test_validate_sort_dir(self, sort_dir, expected):
        """Directions are upper-cased and default to ascending."""
        assert validate_sort_dir(sort_dir) == expected


class TestNormalizeFilter:
    """Test cases for filter normalization."""

    def test_zero_paging_normalized(self):
        """page=0, page_size=0 becomes the first page of ten."""
        normalized = normalize_filter(UserFilter(page=0, page_size=0))

        assert normalized.page == 1
        assert normalized.page_size == 10
        assert normalized.sort_by == "name"
        assert normalized.sort_dir == "ASC"

    def test_input_not_mutated(self):
        """The caller's filter keeps its values."""
        original = UserFilter(page=0, page_size=0, sort_dir="desc")

        normalize_filter(original)

        assert original.page == 0
        assert original.page_size == 0
        assert original.sort_dir == "desc"

    def test_filter_fields_preserved(self):
        """Non-paging fields pass through unchanged."""
        normalized = normalize_filter(UserFilter(name="ad", min_age=18, must_revalidate=True))

        assert normalized.name == "ad"
        assert normalized.min_age == 18
        assert normalized.must_revalidate is True


class TestTemplateData:
    """Test cases for template data construction."""

    def test_offset_and_limit(self):
        """Offset is derived from the page."""
        data = build_template_data(normalize_filter(UserFilter(page=4, page_size=20)))

        assert data["limit"] == 20
        assert data["offset"] == 60

    def test_both_spellings_exposed(self):
        """Fields are available in PascalCase and snake_case."""
        data = build_template_data(normalize_filter(UserFilter(name="ad", sort_by="age")))

        assert data["Name"] == data["name"] == "ad"
        assert data["SortBy"] == data["sort_by"] == "age"
        assert data["MinAge"] == data["min_age"] == 0


class TestTotalPages:
    """Test cases for page counting."""

    @pytest.mark.parametrize("total,size,expected", [
        (0, 10, 1),
        (25, 10, 3),
        (30, 10, 3),
        (1, 10, 1),
        (10001, 10000, 2),
    ])
    def test_total_pages(self, total, size, expected):
        """Pages round up and never drop below one."""
        assert total_pages(total, size) == expected
