"""FastAPI dependencies for the course catalog.

Provides dependency injection for:
- The CourseService instance
- Query-string parsing into a CourseFilter
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Query, status

from src.config.settings import get_settings
from src.courses.models import CourseLevel
from src.courses.schemas import CourseFilter
from src.courses.service import CourseError, CourseService


# ==============================================================================
# Service Getters (set by main.py)
# ==============================================================================

_course_service_getter: Callable[[], CourseService] | None = None


def set_course_service_getter(getter: Callable[[], CourseService]) -> None:
    """Set the course service getter function."""
    global _course_service_getter  # noqa: PLW0603 - Required for DI pattern
    _course_service_getter = getter


def get_course_service() -> CourseService:
    """Get CourseService instance from app state."""
    if _course_service_getter is None:
        msg = "CourseService not configured"
        raise RuntimeError(msg)
    return _course_service_getter()


# ==============================================================================
# Query Parsing
# ==============================================================================


def get_course_filter(
    category: Annotated[str | None, Query(max_length=100)] = None,
    level: CourseLevel | None = None,
    search: Annotated[str | None, Query(max_length=200)] = None,
    published_only: Annotated[bool, Query(alias="publishedOnly")] = False,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> CourseFilter:
    """Build the listing filter from query parameters."""
    return CourseFilter(
        category=category,
        level=level,
        search=search,
        published_only=published_only,
        page=page,
        limit=limit or get_settings().catalog_default_page_size,
    )


# ==============================================================================
# Error Handling
# ==============================================================================


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert CourseError to HTTPException."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "slug_exists": status.HTTP_409_CONFLICT,
        "invalid_curriculum": status.HTTP_400_BAD_REQUEST,
        "invalid_filter": status.HTTP_400_BAD_REQUEST,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )


# ==============================================================================
# Type Aliases for Dependencies
# ==============================================================================

CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]
CourseFilterDep = Annotated[CourseFilter, Depends(get_course_filter)]
