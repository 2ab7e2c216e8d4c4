"""Course catalog service layer.

Business logic for:
- Course CRUD with race-free slug reservation
- Curriculum replacement that keeps module and lesson ids stable
- Filtered, paginated listing through CourseFilter
"""

import math
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from src.auth.permissions import Caller
from src.config.settings import get_settings
from src.courses.models import Course, Lesson, Module, generate_slug
from src.courses.schemas import (
    CourseFilter,
    CourseListResponse,
    CourseResponse,
    CreateCourseRequest,
    InstructorSummary,
    LessonResponse,
    ModuleInput,
    ModuleResponse,
    UpdateCourseRequest,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


class SlugExistsError(CourseError):
    """No free slug could be reserved for the title."""

    def __init__(self, message: str = "Slug already exists"):
        super().__init__(message, "slug_exists")


class InvalidCurriculumError(CourseError):
    """Submitted modules/lessons are inconsistent."""

    def __init__(self, message: str = "Invalid curriculum"):
        super().__init__(message, "invalid_curriculum")


class InvalidFilterError(CourseError):
    """Listing filter out of range."""

    def __init__(self, message: str = "Invalid filter"):
        super().__init__(message, "invalid_filter")


# ==============================================================================
# Curriculum Helpers
# ==============================================================================


def build_modules(items: list[ModuleInput]) -> tuple[Module, ...]:
    """Turn submitted modules into value types.

    A submitted id is kept as-is; items without one get a fresh id. Lesson
    ids must be unique across the whole course, module ids across modules.

    Raises:
        InvalidCurriculumError: On a repeated module or lesson id
    """
    modules: list[Module] = []
    module_ids: set[UUID] = set()
    lesson_ids: set[UUID] = set()

    for item in items:
        module_id = item.id or uuid4()
        if module_id in module_ids:
            raise InvalidCurriculumError(f"Duplicate module id {module_id}")
        module_ids.add(module_id)

        lessons: list[Lesson] = []
        for lesson in item.lessons:
            lesson_id = lesson.id or uuid4()
            if lesson_id in lesson_ids:
                raise InvalidCurriculumError(f"Duplicate lesson id {lesson_id}")
            lesson_ids.add(lesson_id)
            lessons.append(
                Lesson(
                    id=lesson_id,
                    title=lesson.title.strip(),
                    content_type=lesson.content_type.value,
                    content=lesson.content,
                    media_ref=lesson.media_ref,
                    duration_seconds=lesson.duration_seconds,
                    is_free=lesson.is_free,
                )
            )

        modules.append(
            Module(id=module_id, title=item.title.strip(), lessons=tuple(lessons))
        )

    return tuple(modules)


def matches_filter(course: Course, filters: CourseFilter) -> bool:
    """Apply the non-paging criteria of a CourseFilter to one course."""
    if filters.published_only and not course.is_published:
        return False
    if filters.category and course.category.lower() != filters.category.lower():
        return False
    if filters.level and course.level != filters.level.value:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = (course.title, course.description or "", course.category or "")
        if not any(needle in text.lower() for text in haystack):
            return False
    return True


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for the course catalog."""

    SLUG_MAX_ATTEMPTS = 5

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._list_all_courses = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, slug, description, price, thumbnail_url, category,
             level, instructor_id, modules, is_published, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._update_course = self.session.prepare(f"""
            UPDATE {self.keyspace}.courses
            SET title = ?, description = ?, price = ?, thumbnail_url = ?,
                category = ?, level = ?, modules = ?, is_published = ?,
                updated_at = ?
            WHERE id = ?
        """)
        self._delete_course = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses WHERE id = ?"
        )

        # Slug reservation (lightweight transaction)
        self._reserve_slug = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses_by_slug (slug, course_id)
            VALUES (?, ?)
            IF NOT EXISTS
        """)
        self._get_slug = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses_by_slug WHERE slug = ?"
        )
        self._delete_slug = self.session.prepare(
            f"DELETE FROM {self.keyspace}.courses_by_slug WHERE slug = ?"
        )

    async def _reserve_unique_slug(self, title: str, course_id: UUID) -> str:
        base = generate_slug(title)
        for attempt in range(self.SLUG_MAX_ATTEMPTS):
            candidate = base if attempt == 0 else f"{base}-{secrets.token_hex(3)}"
            result = await self.session.aexecute(
                self._reserve_slug, [candidate, course_id]
            )
            if result.was_applied:
                return candidate
        raise SlugExistsError

    async def create_course(
        self, data: CreateCourseRequest, instructor_id: UUID
    ) -> Course:
        """Create a course authored by ``instructor_id``.

        Raises:
            InvalidCurriculumError: If submitted ids repeat
            SlugExistsError: If no slug could be reserved
        """
        modules = build_modules(data.modules)
        course_id = uuid4()
        slug = await self._reserve_unique_slug(data.title, course_id)

        course = Course(
            id=course_id,
            title=data.title,
            slug=slug,
            description=data.description,
            price=data.price,
            thumbnail_url=data.thumbnail_url,
            category=data.category.strip(),
            level=data.level.value,
            instructor_id=instructor_id,
            modules=modules,
            is_published=data.is_published,
        )

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.slug,
                course.description,
                course.price,
                course.thumbnail_url,
                course.category,
                course.level,
                course.instructor_id,
                course.modules_json(),
                course.is_published,
                course.created_at,
                course.updated_at,
            ],
        )
        logger.info(
            "course_created",
            course_id=str(course.id),
            slug=course.slug,
            total_lessons=course.total_lessons,
        )
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def get_course_by_slug(self, slug: str) -> Course | None:
        result = await self.session.aexecute(self._get_slug, [slug.lower()])
        row = result.one()
        return await self.get_course(row.course_id) if row else None

    async def update_course(
        self, course_id: UUID, data: UpdateCourseRequest
    ) -> Course:
        """Apply a partial update.

        Only fields present in the request change. Replacing ``modules``
        keeps every submitted id; the slug never changes.

        Raises:
            CourseNotFoundError: If the course doesn't exist
            InvalidCurriculumError: If submitted ids repeat
        """
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        fields = data.model_dump(exclude_unset=True)

        if fields.get("title") is not None:
            course.title = data.title.strip()
        if fields.get("description") is not None:
            course.description = data.description
        if fields.get("price") is not None:
            course.price = data.price
        if "thumbnail_url" in fields:
            course.thumbnail_url = data.thumbnail_url
        if fields.get("category") is not None:
            course.category = data.category.strip()
        if fields.get("level") is not None:
            course.level = data.level.value
        if fields.get("is_published") is not None:
            course.is_published = data.is_published
        if data.modules is not None:
            course.modules = build_modules(data.modules)

        course.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_course,
            [
                course.title,
                course.description,
                course.price,
                course.thumbnail_url,
                course.category,
                course.level,
                course.modules_json(),
                course.is_published,
                course.updated_at,
                course.id,
            ],
        )
        logger.info(
            "course_updated",
            course_id=str(course.id),
            fields=sorted(fields),
            total_lessons=course.total_lessons,
        )
        return course

    async def delete_course(self, course_id: UUID) -> None:
        """Delete a course and release its slug.

        Enrollments are left in place; their course resolves to nothing.

        Raises:
            CourseNotFoundError: If the course doesn't exist
        """
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        await self.session.aexecute(self._delete_course, [course.id])
        await self.session.aexecute(self._delete_slug, [course.slug])
        logger.info("course_deleted", course_id=str(course.id))

    async def list_all_courses(self) -> list[Course]:
        rows = await self.session.aexecute(self._list_all_courses)
        return [Course.from_row(row) for row in rows]

    async def list_courses(
        self,
        filters: CourseFilter,
        caller: Caller | None = None,
    ) -> tuple[list[Course], int]:
        """Filtered page of courses, newest first.

        Non-admin callers only ever see published courses, whatever
        ``published_only`` says.

        Returns:
            Tuple of (page items, total matching courses)

        Raises:
            InvalidFilterError: If ``limit`` exceeds the configured maximum
        """
        max_limit = get_settings().catalog_max_page_size
        if filters.limit > max_limit:
            raise InvalidFilterError(f"limit must be at most {max_limit}")

        if not (caller and caller.is_admin) and not filters.published_only:
            filters = filters.model_copy(update={"published_only": True})

        courses = [
            course
            for course in await self.list_all_courses()
            if matches_filter(course, filters)
        ]
        courses.sort(key=lambda c: c.created_at, reverse=True)

        start = (filters.page - 1) * filters.limit
        return courses[start : start + filters.limit], len(courses)

    # ==========================================================================
    # Responses
    # ==========================================================================

    def to_response(
        self,
        course: Course,
        instructor: InstructorSummary | None = None,
    ) -> CourseResponse:
        return CourseResponse(
            id=course.id,
            title=course.title,
            slug=course.slug,
            description=course.description,
            price=course.price,
            thumbnail_url=course.thumbnail_url,
            category=course.category,
            level=course.level,
            instructor_id=course.instructor_id,
            instructor=instructor,
            modules=[
                ModuleResponse(
                    id=module.id,
                    title=module.title,
                    lessons=[
                        LessonResponse.model_validate(lesson)
                        for lesson in module.lessons
                    ],
                )
                for module in course.modules
            ],
            total_lessons=course.total_lessons,
            is_published=course.is_published,
            created_at=course.created_at,
            updated_at=course.updated_at,
        )

    def to_list_response(
        self,
        courses: list[CourseResponse],
        filters: CourseFilter,
        total: int,
    ) -> CourseListResponse:
        return CourseListResponse(
            items=courses,
            page=filters.page,
            limit=filters.limit,
            total=total,
            total_pages=math.ceil(total / filters.limit) if total else 0,
        )
