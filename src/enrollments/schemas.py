"""Pydantic schemas for enrollments.

Identifiers in request bodies are plain strings; they are parsed by the
service so a malformed value is reported as an invalid ``courseId`` or
``lessonId`` rather than a generic type error.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    model_config = ConfigDict(populate_by_name=True)

    course_id: str = Field(..., alias="courseId", description="Course UUID")


class UpdateProgressRequest(BaseModel):
    """Mark a lesson as completed or not completed."""

    model_config = ConfigDict(populate_by_name=True)

    lesson_id: str = Field(..., alias="lessonId", description="Lesson UUID")
    completed: bool = Field(
        ..., description="True marks the lesson completed, false clears it"
    )


class EnrolledCourseSummary(BaseModel):
    """The parts of a course shown next to an enrollment."""

    id: UUID
    title: str
    slug: str
    thumbnail_url: str | None = None
    total_lessons: int = 0


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    completed_lessons: list[UUID]
    progress: int
    is_completed: bool
    enrolled_at: datetime
    updated_at: datetime | None = None
    course: EnrolledCourseSummary | None = None


class EnrollmentListResponse(BaseModel):
    """List of enrollments."""

    items: list[EnrollmentResponse]
    total: int
