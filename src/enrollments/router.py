"""Enrollment API endpoints.

Provides routes for:
- Enrolling in a course
- Listing the current account's enrollments
- Reading one enrollment
- Marking lessons completed / not completed
"""

from fastapi import APIRouter, status

from src.auth.dependencies import CurrentUser
from src.courses.dependencies import CourseServiceDep, handle_course_error
from src.courses.service import CourseError
from src.enrollments.dependencies import (
    EnrollmentServiceDep,
    handle_enrollment_error,
)
from src.enrollments.schemas import (
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    UpdateProgressRequest,
)
from src.enrollments.service import EnrollmentError


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
    responses={
        404: {"description": "Course not found"},
        409: {"description": "Already enrolled"},
    },
)
async def enroll(
    data: EnrollRequest,
    caller: CurrentUser,
    enrollment_service: EnrollmentServiceDep,
    course_service: CourseServiceDep,
) -> EnrollmentResponse:
    """Enroll the current account in a course.

    A second enrollment in the same course is rejected, not merged.
    """
    try:
        enrollment = await enrollment_service.enroll(caller, data.course_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e

    course = await course_service.get_course(enrollment.course_id)
    return enrollment_service.to_response(enrollment, course)


@router.get(
    "/me",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_my_enrollments(
    caller: CurrentUser,
    enrollment_service: EnrollmentServiceDep,
) -> EnrollmentListResponse:
    try:
        items = await enrollment_service.list_for_account(caller)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e

    return EnrollmentListResponse(
        items=[
            enrollment_service.to_response(enrollment, course)
            for enrollment, course in items
        ],
        total=len(items),
    )


@router.get(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get my enrollment in a course",
)
async def get_enrollment(
    course_id: str,
    caller: CurrentUser,
    enrollment_service: EnrollmentServiceDep,
    course_service: CourseServiceDep,
) -> EnrollmentResponse:
    try:
        enrollment = await enrollment_service.get_enrollment(caller, course_id)
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e

    course = await course_service.get_course(enrollment.course_id)
    return enrollment_service.to_response(enrollment, course)


@router.put(
    "/{course_id}/progress",
    response_model=EnrollmentResponse,
    summary="Update lesson completion",
    responses={
        404: {"description": "Not enrolled, or lesson/course not found"},
        409: {"description": "Concurrent update conflict"},
    },
)
async def update_progress(
    course_id: str,
    data: UpdateProgressRequest,
    caller: CurrentUser,
    enrollment_service: EnrollmentServiceDep,
    course_service: CourseServiceDep,
) -> EnrollmentResponse:
    """Mark ``lessonId`` completed or not completed.

    Progress is recalculated against the course's current lesson count.
    """
    try:
        enrollment = await enrollment_service.set_lesson_completion(
            caller, course_id, data.lesson_id, data.completed
        )
    except EnrollmentError as e:
        raise handle_enrollment_error(e) from e
    except CourseError as e:
        raise handle_course_error(e) from e

    course = await course_service.get_course(enrollment.course_id)
    return enrollment_service.to_response(enrollment, course)
