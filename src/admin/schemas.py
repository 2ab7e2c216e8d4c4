"""Pydantic schemas for admin listings and reports."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from src.auth.schemas import UserResponse


class UserListResponse(BaseModel):
    items: list[UserResponse]
    total: int


class EnrollmentUserSummary(BaseModel):
    id: UUID
    name: str
    email: str


class EnrollmentCourseSummary(BaseModel):
    id: UUID
    title: str
    slug: str


class AdminEnrollmentResponse(BaseModel):
    """Enrollment with its account and course resolved.

    ``user`` or ``course`` is None when the referenced record is gone.
    """

    id: UUID
    user_id: UUID
    course_id: UUID
    user: EnrollmentUserSummary | None = None
    course: EnrollmentCourseSummary | None = None
    progress: int
    is_completed: bool
    completed_lessons: int
    enrolled_at: datetime
    updated_at: datetime | None = None


class AdminEnrollmentListResponse(BaseModel):
    items: list[AdminEnrollmentResponse]
    total: int


class ReportsResponse(BaseModel):
    total_users: int
    total_enrollments: int
    completed_enrollments: int
    completion_rate: int
