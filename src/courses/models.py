"""Database models for the course catalog.

Cassandra table definitions for:
- courses: one row per course; the ordered modules and their lessons are
  stored together as a JSON document in the ``modules`` column
- courses_by_slug: slug reservation, written with IF NOT EXISTS

Modules and lessons are owned value types: they have no table of their own
and change only when the owning course is rewritten.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import orjson

from src.utils.identifiers import ensure_utc_aware


class CourseLevel(str, Enum):
    """Course difficulty level."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ContentType(str, Enum):
    """Lesson content type."""

    VIDEO = "video"
    TEXT = "text"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    slug TEXT,
    description TEXT,
    price DECIMAL,
    thumbnail_url TEXT,
    category TEXT,
    level TEXT,
    instructor_id UUID,
    modules TEXT,
    is_published BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSE_BY_SLUG_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses_by_slug (
    slug TEXT PRIMARY KEY,
    course_id UUID
)
"""

# All CQL statements for table setup
COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_BY_SLUG_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def generate_slug(title: str) -> str:
    """Generate URL-friendly slug from title.

    Examples:
        >>> generate_slug("Introdução ao Python 3!")
        'introducao-ao-python-3'
    """
    # Normalize unicode characters
    slug = unicodedata.normalize("NFKD", title)
    slug = slug.encode("ascii", "ignore").decode("ascii")

    slug = slug.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-_\s]+", "-", slug).strip("-")
    return slug or "course"


# ==============================================================================
# Value Types
# ==============================================================================


@dataclass(frozen=True)
class Lesson:
    """A single unit of content inside a module.

    Attributes:
        id: Stable identifier, assigned once
        title: Lesson title
        content_type: video or text
        content: Text body (optional)
        media_ref: Video id in the media library (optional)
        duration_seconds: Playback length (optional)
        is_free: Free preview, playable without enrollment
    """

    id: UUID
    title: str
    content_type: str = ContentType.VIDEO.value
    content: str | None = None
    media_ref: str | None = None
    duration_seconds: int | None = None
    is_free: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "content_type": self.content_type,
            "content": self.content,
            "media_ref": self.media_ref,
            "duration_seconds": self.duration_seconds,
            "is_free": self.is_free,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Lesson":
        return cls(
            id=UUID(data["id"]),
            title=data["title"],
            content_type=data.get("content_type") or ContentType.VIDEO.value,
            content=data.get("content"),
            media_ref=data.get("media_ref"),
            duration_seconds=data.get("duration_seconds"),
            is_free=bool(data.get("is_free", False)),
        )


@dataclass(frozen=True)
class Module:
    """An ordered group of lessons inside a course."""

    id: UUID
    title: str
    lessons: tuple[Lesson, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "title": self.title,
            "lessons": [lesson.to_dict() for lesson in self.lessons],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Module":
        return cls(
            id=UUID(data["id"]),
            title=data["title"],
            lessons=tuple(Lesson.from_dict(item) for item in data.get("lessons", [])),
        )


def dump_modules(modules: tuple[Module, ...]) -> str:
    """Serialize modules for the ``courses.modules`` column."""
    return orjson.dumps([module.to_dict() for module in modules]).decode()


def load_modules(raw: str | None) -> tuple[Module, ...]:
    """Parse the ``courses.modules`` column (empty when unset)."""
    if not raw:
        return ()
    return tuple(Module.from_dict(item) for item in orjson.loads(raw))


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course aggregate: catalog data plus its ordered modules.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        slug: URL-friendly identifier, fixed at creation
        description: Course description
        price: Non-negative price
        thumbnail_url: Cover image URL
        category: Free-form category
        level: beginner, intermediate or advanced
        instructor_id: Account that authored the course
        modules: Ordered modules, each with ordered lessons
        is_published: Visible to non-admin callers
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        slug: str | None = None,
        description: str = "",
        price: Decimal | None = None,
        thumbnail_url: str | None = None,
        category: str = "general",
        level: str = CourseLevel.BEGINNER.value,
        instructor_id: UUID | None = None,
        modules: tuple[Module, ...] = (),
        is_published: bool = False,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.slug = slug or generate_slug(title)
        self.description = description
        self.price = price if price is not None else Decimal("0")
        self.thumbnail_url = thumbnail_url
        self.category = category
        self.level = level
        self.instructor_id = instructor_id
        self.modules = tuple(modules)
        self.is_published = bool(is_published)
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title,
            slug=row.slug,
            description=row.description or "",
            price=row.price,
            thumbnail_url=row.thumbnail_url,
            category=row.category or "general",
            level=row.level or CourseLevel.BEGINNER.value,
            instructor_id=row.instructor_id,
            modules=load_modules(row.modules),
            is_published=row.is_published,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @property
    def total_lessons(self) -> int:
        """Live lesson count across all modules."""
        return sum(len(module.lessons) for module in self.modules)

    def find_lesson(self, lesson_id: UUID) -> Lesson | None:
        """First lesson with this id, scanning modules then lessons in order."""
        for module in self.modules:
            for lesson in module.lessons:
                if lesson.id == lesson_id:
                    return lesson
        return None

    def modules_json(self) -> str:
        return dump_modules(self.modules)

    def __repr__(self) -> str:
        state = "published" if self.is_published else "draft"
        return f"<Course {self.title} ({state})>"
