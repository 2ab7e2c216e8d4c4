"""Playback access control.

Decides whether a caller may receive a playback URL for a lesson:

    admin                      -> allowed
    free lesson                -> allowed
    enrolled in the course     -> allowed
    anyone else                -> denied
"""

from uuid import UUID

import structlog

from src.auth.permissions import Caller
from src.courses.models import Lesson
from src.courses.service import CourseNotFoundError, CourseService
from src.enrollments.service import EnrollmentService
from src.utils.identifiers import parse_identifier


logger = structlog.get_logger(__name__)


class PlaybackError(Exception):
    """Base playback error."""

    def __init__(self, message: str, code: str = "playback_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class LessonUnavailableError(PlaybackError):
    """Lesson missing or without video.

    One message for both cases, so callers cannot probe which it was.
    """

    def __init__(self, message: str = "Video not found for this lesson"):
        super().__init__(message, "lesson_unavailable")


class PlaybackDeniedError(PlaybackError):
    """Caller is not entitled to this lesson."""

    def __init__(self, message: str = "You must be enrolled to access this video"):
        super().__init__(message, "playback_denied")


def can_play(caller: Caller | None, lesson: Lesson, is_enrolled: bool) -> bool:
    """Playback decision for an already located lesson."""
    if caller is not None and caller.is_admin:
        return True
    if lesson.is_free:
        return True
    return caller is not None and is_enrolled


class PlaybackAccessService:
    """Gate in front of the media adapter."""

    def __init__(
        self,
        course_service: CourseService,
        enrollment_service: EnrollmentService,
    ):
        self.course_service = course_service
        self.enrollment_service = enrollment_service

    async def _is_enrolled(self, caller: Caller | None, course_id: UUID) -> bool:
        if caller is None:
            return False
        enrollment = await self.enrollment_service.find_enrollment(caller.id, course_id)
        return enrollment is not None

    async def authorize_playback(
        self,
        caller: Caller | None,
        course_id: str | UUID,
        lesson_id: str | UUID,
    ) -> Lesson:
        """Return the lesson if the caller may play it.

        The enrollment lookup only happens when the role and the lesson's
        free flag don't already decide.

        Raises:
            InvalidIdentifierError: If course_id or lesson_id is malformed
            CourseNotFoundError: If the course doesn't exist
            LessonUnavailableError: If the lesson is missing or has no video
            PlaybackDeniedError: If the caller is not entitled
        """
        course_uuid = parse_identifier(course_id, "courseId")
        lesson_uuid = parse_identifier(lesson_id, "lessonId")

        course = await self.course_service.get_course(course_uuid)
        if not course:
            raise CourseNotFoundError

        lesson = course.find_lesson(lesson_uuid)
        if lesson is None or not lesson.media_ref:
            raise LessonUnavailableError

        decided_without_ledger = (caller is not None and caller.is_admin) or lesson.is_free
        is_enrolled = (
            False if decided_without_ledger else await self._is_enrolled(caller, course_uuid)
        )

        if not can_play(caller, lesson, is_enrolled):
            logger.info(
                "playback_denied",
                user_id=str(caller.id) if caller else None,
                course_id=str(course_uuid),
                lesson_id=str(lesson_uuid),
            )
            raise PlaybackDeniedError

        logger.info(
            "playback_authorized",
            user_id=str(caller.id) if caller else None,
            course_id=str(course_uuid),
            lesson_id=str(lesson_uuid),
            free=lesson.is_free,
        )
        return lesson
