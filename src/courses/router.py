"""Course catalog API endpoints.

Provides routes for:
- Public listing and detail (published courses; admins see everything)
- Admin-only create, update and delete
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import AdminUser, OptionalUser
from src.auth.permissions import Caller
from src.auth.router import AuthServiceDep
from src.auth.service import AuthService
from src.courses.dependencies import (
    CourseFilterDep,
    CourseServiceDep,
    handle_course_error,
)
from src.courses.models import Course
from src.courses.schemas import (
    CourseListResponse,
    CourseResponse,
    CreateCourseRequest,
    InstructorSummary,
    UpdateCourseRequest,
)
from src.courses.service import CourseError, CourseService
from src.utils.identifiers import parse_identifier


router = APIRouter(prefix="/v1/courses", tags=["courses"])


async def _resolve_instructors(
    courses: list[Course],
    auth_service: AuthService,
) -> dict[UUID, InstructorSummary]:
    """Instructor name/email per instructor id, one lookup per distinct id."""
    summaries: dict[UUID, InstructorSummary] = {}
    for course in courses:
        instructor_id = course.instructor_id
        if instructor_id is None or instructor_id in summaries:
            continue
        user = await auth_service.get_user_by_id(instructor_id)
        if user:
            summaries[instructor_id] = InstructorSummary(
                id=user.id, name=user.name, email=user.email
            )
    return summaries


async def _course_response(
    course: Course,
    course_service: CourseService,
    auth_service: AuthService,
) -> CourseResponse:
    instructors = await _resolve_instructors([course], auth_service)
    return course_service.to_response(course, instructors.get(course.instructor_id))


async def _get_visible_course(
    course_id: str,
    course_service: CourseService,
    caller: Caller | None,
) -> Course:
    course = await course_service.get_course(parse_identifier(course_id, "courseId"))
    if not course or not (course.is_published or (caller and caller.is_admin)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found",
        )
    return course


# ==============================================================================
# Public Endpoints
# ==============================================================================


@router.get(
    "",
    response_model=CourseListResponse,
    summary="List courses",
)
async def list_courses(
    filters: CourseFilterDep,
    course_service: CourseServiceDep,
    auth_service: AuthServiceDep,
    caller: OptionalUser,
) -> CourseListResponse:
    """Filtered, paginated catalog listing.

    Query parameters: ``category``, ``level``, ``search``, ``page``,
    ``limit`` and (admins only) ``publishedOnly``.
    """
    try:
        courses, total = await course_service.list_courses(filters, caller)
    except CourseError as e:
        raise handle_course_error(e) from e

    instructors = await _resolve_instructors(courses, auth_service)
    items = [
        course_service.to_response(course, instructors.get(course.instructor_id))
        for course in courses
    ]
    return course_service.to_list_response(items, filters, total)


@router.get(
    "/slug/{slug}",
    response_model=CourseResponse,
    summary="Get course by slug",
)
async def get_course_by_slug(
    slug: str,
    course_service: CourseServiceDep,
    auth_service: AuthServiceDep,
    caller: OptionalUser,
) -> CourseResponse:
    course = await course_service.get_course_by_slug(slug)
    if not course or not (course.is_published or (caller and caller.is_admin)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Course not found",
        )
    return await _course_response(course, course_service, auth_service)


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course details",
)
async def get_course(
    course_id: str,
    course_service: CourseServiceDep,
    auth_service: AuthServiceDep,
    caller: OptionalUser,
) -> CourseResponse:
    """Course with its modules and lessons.

    Unpublished courses are only visible to admins.
    """
    course = await _get_visible_course(course_id, course_service, caller)
    return await _course_response(course, course_service, auth_service)


# ==============================================================================
# Admin Endpoints
# ==============================================================================


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    auth_service: AuthServiceDep,
    admin: AdminUser,
) -> CourseResponse:
    """Create a course; the calling admin becomes its instructor."""
    try:
        course = await course_service.create_course(data, instructor_id=admin.id)
    except CourseError as e:
        raise handle_course_error(e) from e
    return await _course_response(course, course_service, auth_service)


@router.put(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Update course",
)
async def update_course(
    course_id: str,
    data: UpdateCourseRequest,
    course_service: CourseServiceDep,
    auth_service: AuthServiceDep,
    _admin: AdminUser,
) -> CourseResponse:
    """Partial update. Submitting ``modules`` replaces the curriculum;
    modules and lessons sent with their id keep it."""
    try:
        course = await course_service.update_course(
            parse_identifier(course_id, "courseId"), data
        )
    except CourseError as e:
        raise handle_course_error(e) from e
    return await _course_response(course, course_service, auth_service)


@router.delete(
    "/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete course",
)
async def delete_course(
    course_id: str,
    course_service: CourseServiceDep,
    _admin: AdminUser,
) -> None:
    try:
        await course_service.delete_course(parse_identifier(course_id, "courseId"))
    except CourseError as e:
        raise handle_course_error(e) from e
