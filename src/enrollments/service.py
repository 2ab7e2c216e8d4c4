"""Enrollment ledger service layer.

Business logic for:
- Enrolling an account in a course, at most once per pair
- Marking lessons completed or not completed, with progress recomputed
  against the course's live lesson count
- Listing enrollments for an account or for admins

Every operation takes the caller explicitly; nothing here reads the
request context to find out who is acting.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.auth.permissions import Caller
from src.config.settings import get_settings
from src.courses.models import Course
from src.courses.service import CourseNotFoundError, CourseService
from src.enrollments.models import Enrollment
from src.enrollments.progress import recompute_progress
from src.enrollments.schemas import EnrolledCourseSummary, EnrollmentResponse
from src.utils.identifiers import parse_identifier


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentError(Exception):
    """Base enrollment error."""

    def __init__(self, message: str, code: str = "enrollment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotAuthenticatedError(EnrollmentError):
    """No caller was supplied."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, "unauthenticated")


class AlreadyEnrolledError(EnrollmentError):
    """Account already enrolled in the course."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class NotEnrolledError(EnrollmentError):
    """Account not enrolled in the course."""

    def __init__(self, message: str = "Not enrolled in this course"):
        super().__init__(message, "not_enrolled")


class LessonNotFoundError(EnrollmentError):
    """Lesson is not part of the course."""

    def __init__(self, message: str = "Lesson not found in this course"):
        super().__init__(message, "lesson_not_found")


class UpdateConflictError(EnrollmentError):
    """Conditional update kept losing to concurrent writers."""

    def __init__(self, message: str = "Enrollment was modified concurrently, retry"):
        super().__init__(message, "update_conflict")


def _require_caller(caller: Caller | None) -> Caller:
    if caller is None:
        raise NotAuthenticatedError
    return caller


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Service for the enrollment ledger."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: CourseService,
    ):
        """Initialize with Cassandra session.

        Args:
            session: Cassandra session with ``aexecute`` support
            keyspace: Keyspace name for queries
            course_service: Catalog, for course existence and lesson counts
        """
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)
        self._list_enrollments = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments"
        )
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, id, completed_lessons, progress, is_completed,
             version, enrolled_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET completed_lessons = ?, progress = ?, is_completed = ?,
                version = ?, updated_at = ?
            WHERE course_id = ? AND user_id = ?
            IF version = ?
        """)

        # Lookup: enrollments by user
        self._insert_enrollment_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, course_id, enrolled_at)
            VALUES (?, ?, ?)
        """)
        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def find_enrollment(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """Enrollment for the pair, or None."""
        result = await self.session.aexecute(self._get_enrollment, [course_id, user_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_enrollment(
        self, caller: Caller | None, course_id: str | UUID
    ) -> Enrollment:
        """The caller's enrollment in a course.

        Raises:
            NotAuthenticatedError: If caller is None
            InvalidIdentifierError: If course_id is malformed
            NotEnrolledError: If there is no enrollment
        """
        caller = _require_caller(caller)
        course_uuid = parse_identifier(course_id, "courseId")

        enrollment = await self.find_enrollment(caller.id, course_uuid)
        if not enrollment:
            raise NotEnrolledError
        return enrollment

    async def list_for_account(
        self, caller: Caller | None
    ) -> list[tuple[Enrollment, Course | None]]:
        """All enrollments of the caller, each with its course.

        The course is None when it has since been deleted.

        Raises:
            NotAuthenticatedError: If caller is None
        """
        caller = _require_caller(caller)

        rows = await self.session.aexecute(self._get_user_enrollments, [caller.id])
        items: list[tuple[Enrollment, Course | None]] = []
        for row in rows:
            enrollment = await self.find_enrollment(caller.id, row.course_id)
            if not enrollment:
                continue
            course = await self.course_service.get_course(row.course_id)
            items.append((enrollment, course))
        return items

    async def list_all(self) -> list[Enrollment]:
        """Every enrollment, newest first."""
        rows = await self.session.aexecute(self._list_enrollments)
        enrollments = [Enrollment.from_row(row) for row in rows]
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def enroll(self, caller: Caller | None, course_id: str | UUID) -> Enrollment:
        """Enroll the caller in a course.

        Raises:
            NotAuthenticatedError: If caller is None
            InvalidIdentifierError: If course_id is malformed
            CourseNotFoundError: If the course doesn't exist
            AlreadyEnrolledError: If the pair already has an enrollment,
                including one created by a concurrent request
        """
        caller = _require_caller(caller)
        course_uuid = parse_identifier(course_id, "courseId")

        course = await self.course_service.get_course(course_uuid)
        if not course:
            raise CourseNotFoundError

        existing = await self.find_enrollment(caller.id, course_uuid)
        if existing:
            # An earlier enroll may have stopped before the lookup write
            await self._index_for_user(existing)
            raise AlreadyEnrolledError

        now = datetime.now(UTC)
        enrollment = Enrollment(
            course_id=course_uuid,
            user_id=caller.id,
            enrolled_at=now,
            updated_at=now,
        )

        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.course_id,
                enrollment.user_id,
                enrollment.id,
                set(enrollment.completed_lessons),
                enrollment.progress,
                enrollment.is_completed,
                enrollment.version,
                enrollment.enrolled_at,
                enrollment.updated_at,
            ],
        )
        if not result.was_applied:
            logger.info(
                "enroll_lost_race",
                user_id=str(caller.id),
                course_id=str(course_uuid),
            )
            raise AlreadyEnrolledError

        await self._index_for_user(enrollment)

        logger.info(
            "user_enrolled",
            user_id=str(caller.id),
            course_id=str(course_uuid),
        )
        return enrollment

    async def _index_for_user(self, enrollment: Enrollment) -> None:
        """Write the by-user lookup row; rewriting it is harmless."""
        await self.session.aexecute(
            self._insert_enrollment_by_user,
            [enrollment.user_id, enrollment.course_id, enrollment.enrolled_at],
        )

    async def set_lesson_completion(
        self,
        caller: Caller | None,
        course_id: str | UUID,
        lesson_id: str | UUID,
        completed: bool,
    ) -> Enrollment:
        """Mark a lesson completed (or not) and recompute progress.

        Adding checks that the lesson belongs to the course; removing
        accepts any id so ids left over from a curriculum change can be
        cleared. The write is conditional on the version read, and is
        retried from a fresh read when another writer got there first.

        Raises:
            NotAuthenticatedError: If caller is None
            InvalidIdentifierError: If course_id or lesson_id is malformed
            NotEnrolledError: If the caller is not enrolled
            CourseNotFoundError: If the course doesn't exist
            LessonNotFoundError: If completing a lesson outside the course
            UpdateConflictError: If every retry lost to a concurrent write
        """
        caller = _require_caller(caller)
        course_uuid = parse_identifier(course_id, "courseId")
        lesson_uuid = parse_identifier(lesson_id, "lessonId")

        enrollment = await self.find_enrollment(caller.id, course_uuid)
        if not enrollment:
            raise NotEnrolledError

        course = await self.course_service.get_course(course_uuid)
        if not course:
            raise CourseNotFoundError

        if completed and course.find_lesson(lesson_uuid) is None:
            raise LessonNotFoundError

        max_attempts = get_settings().enrollment_update_max_retries
        for attempt in range(1, max_attempts + 1):
            lessons = set(enrollment.completed_lessons)
            if completed:
                lessons.add(lesson_uuid)
            else:
                lessons.discard(lesson_uuid)

            progress, is_completed = recompute_progress(
                len(lessons),
                course.total_lessons,
                enrollment.progress,
                enrollment.is_completed,
            )

            if (
                lessons == enrollment.completed_lessons
                and progress == enrollment.progress
                and is_completed == enrollment.is_completed
            ):
                return enrollment

            now = datetime.now(UTC)
            result = await self.session.aexecute(
                self._update_enrollment,
                [
                    lessons,
                    progress,
                    is_completed,
                    enrollment.version + 1,
                    now,
                    course_uuid,
                    caller.id,
                    enrollment.version,
                ],
            )
            if result.was_applied:
                logger.info(
                    "lesson_completion_updated",
                    user_id=str(caller.id),
                    course_id=str(course_uuid),
                    lesson_id=str(lesson_uuid),
                    completed=completed,
                    progress=progress,
                )
                return Enrollment(
                    course_id=enrollment.course_id,
                    user_id=enrollment.user_id,
                    id=enrollment.id,
                    completed_lessons=lessons,
                    progress=progress,
                    is_completed=is_completed,
                    version=enrollment.version + 1,
                    enrolled_at=enrollment.enrolled_at,
                    updated_at=now,
                )

            logger.info(
                "enrollment_update_conflict",
                user_id=str(caller.id),
                course_id=str(course_uuid),
                attempt=attempt,
            )
            enrollment = await self.find_enrollment(caller.id, course_uuid)
            if not enrollment:
                raise NotEnrolledError

        logger.warning(
            "enrollment_update_gave_up",
            user_id=str(caller.id),
            course_id=str(course_uuid),
            attempts=max_attempts,
        )
        raise UpdateConflictError

    # ==========================================================================
    # Responses
    # ==========================================================================

    def to_response(
        self,
        enrollment: Enrollment,
        course: Course | None = None,
    ) -> EnrollmentResponse:
        summary = None
        if course is not None:
            summary = EnrolledCourseSummary(
                id=course.id,
                title=course.title,
                slug=course.slug,
                thumbnail_url=course.thumbnail_url,
                total_lessons=course.total_lessons,
            )
        return EnrollmentResponse(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            completed_lessons=sorted(enrollment.completed_lessons, key=str),
            progress=enrollment.progress,
            is_completed=enrollment.is_completed,
            enrolled_at=enrollment.enrolled_at,
            updated_at=enrollment.updated_at,
            course=summary,
        )
