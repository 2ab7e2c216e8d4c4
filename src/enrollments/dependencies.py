"""FastAPI dependencies for the enrollment ledger.

Provides dependency injection for:
- EnrollmentService
- Error handlers
"""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status

from src.enrollments.service import EnrollmentError, EnrollmentService


_enrollment_service_getter: Callable[[], EnrollmentService] | None = None


def set_enrollment_service_getter(getter: Callable[[], EnrollmentService]) -> None:
    """Set the enrollment service getter function."""
    global _enrollment_service_getter  # noqa: PLW0603 - Required for DI pattern
    _enrollment_service_getter = getter


def get_enrollment_service() -> EnrollmentService:
    """Get EnrollmentService instance from app state."""
    if _enrollment_service_getter is None:
        msg = "EnrollmentService not configured"
        raise RuntimeError(msg)
    return _enrollment_service_getter()


# Type alias for dependency injection
EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]


def handle_enrollment_error(error: EnrollmentError) -> HTTPException:
    """Convert enrollment errors to HTTP exceptions.

    Args:
        error: Enrollment error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "unauthenticated": status.HTTP_401_UNAUTHORIZED,
        "not_enrolled": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "already_enrolled": status.HTTP_409_CONFLICT,
        "update_conflict": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
