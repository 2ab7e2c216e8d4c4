"""Pydantic schemas for the course catalog.

Request and response models for:
- Courses: create, partial update, detail and paginated listing
- Modules and lessons, nested inside a course
- CourseFilter: the enumerated listing filter
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.courses.models import ContentType, CourseLevel


# ==============================================================================
# Lesson / Module Schemas
# ==============================================================================


class LessonInput(BaseModel):
    """Lesson as submitted inside a course body.

    ``id`` is optional: an existing id is kept, a missing one is assigned.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: UUID | None = None
    title: str = Field(..., min_length=1, max_length=200)
    content_type: ContentType = Field(ContentType.VIDEO, alias="contentType")
    content: str | None = Field(None, max_length=50000)
    media_ref: str | None = Field(None, alias="mediaRef", max_length=100)
    duration_seconds: int | None = Field(None, alias="durationSeconds", ge=0)
    is_free: bool = Field(False, alias="isFree")


class ModuleInput(BaseModel):
    """Module as submitted inside a course body."""

    id: UUID | None = None
    title: str = Field(..., min_length=1, max_length=200)
    lessons: list[LessonInput] = Field(default_factory=list)


class LessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    content_type: ContentType
    content: str | None = None
    media_ref: str | None = None
    duration_seconds: int | None = None
    is_free: bool = False


class ModuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    lessons: list[LessonResponse] = []


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=5, max_length=200, description="Course title")
    description: str = Field(
        ..., min_length=20, max_length=5000, description="Course description"
    )
    price: Decimal = Field(..., ge=0, description="Course price")
    thumbnail_url: str | None = Field(
        None, alias="thumbnailUrl", max_length=500, description="Thumbnail image URL"
    )
    category: str = Field(..., min_length=1, max_length=100)
    level: CourseLevel = Field(CourseLevel.BEGINNER)
    modules: list[ModuleInput] = Field(default_factory=list)
    is_published: bool = Field(False, alias="isPublished")


class UpdateCourseRequest(BaseModel):
    """Partial course update; omitted fields are left unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(None, min_length=5, max_length=200)
    description: str | None = Field(None, min_length=20, max_length=5000)
    price: Decimal | None = Field(None, ge=0)
    thumbnail_url: str | None = Field(None, alias="thumbnailUrl", max_length=500)
    category: str | None = Field(None, min_length=1, max_length=100)
    level: CourseLevel | None = None
    modules: list[ModuleInput] | None = None
    is_published: bool | None = Field(None, alias="isPublished")


class InstructorSummary(BaseModel):
    id: UUID
    name: str
    email: str


class CourseResponse(BaseModel):
    """Course detail, including its curriculum."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    description: str
    price: Decimal
    thumbnail_url: str | None = None
    category: str
    level: CourseLevel
    instructor_id: UUID | None = None
    instructor: InstructorSummary | None = None
    modules: list[ModuleResponse] = []
    total_lessons: int = 0
    is_published: bool
    created_at: datetime
    updated_at: datetime | None = None


class CourseListResponse(BaseModel):
    """Paginated course list response."""

    items: list[CourseResponse]
    page: int
    limit: int
    total: int
    total_pages: int


# ==============================================================================
# Listing Filter
# ==============================================================================


class CourseFilter(BaseModel):
    """Enumerated catalog filter.

    Every criterion is a typed field; free text only ever feeds the
    case-insensitive substring ``search`` and is never turned into a query.
    """

    category: str | None = Field(None, max_length=100)
    level: CourseLevel | None = None
    search: str | None = Field(None, max_length=200)
    published_only: bool = False
    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1)

    @field_validator("category", "search")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None
