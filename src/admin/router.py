"""Admin API endpoints.

Provides read-only routes for:
- All accounts
- All enrollments, with account and course resolved
- Aggregate enrollment reports
"""

from uuid import UUID

from fastapi import APIRouter

from src.admin.reports import build_report
from src.admin.schemas import (
    AdminEnrollmentListResponse,
    AdminEnrollmentResponse,
    EnrollmentCourseSummary,
    EnrollmentUserSummary,
    ReportsResponse,
    UserListResponse,
)
from src.auth.dependencies import AdminUser
from src.auth.router import AuthServiceDep
from src.courses.dependencies import CourseServiceDep
from src.enrollments.dependencies import EnrollmentServiceDep


router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.get(
    "/users",
    response_model=UserListResponse,
    summary="List all accounts",
)
async def list_users(
    _admin: AdminUser,
    auth_service: AuthServiceDep,
) -> UserListResponse:
    users = await auth_service.list_users()
    return UserListResponse(
        items=[auth_service.to_response(user) for user in users],
        total=len(users),
    )


@router.get(
    "/enrollments",
    response_model=AdminEnrollmentListResponse,
    summary="List all enrollments",
)
async def list_enrollments(
    _admin: AdminUser,
    enrollment_service: EnrollmentServiceDep,
    auth_service: AuthServiceDep,
    course_service: CourseServiceDep,
) -> AdminEnrollmentListResponse:
    """Every enrollment, newest first, with user name/email and course
    title/slug."""
    enrollments = await enrollment_service.list_all()

    users: dict[UUID, EnrollmentUserSummary | None] = {}
    courses: dict[UUID, EnrollmentCourseSummary | None] = {}
    items = []

    for enrollment in enrollments:
        if enrollment.user_id not in users:
            user = await auth_service.get_user_by_id(enrollment.user_id)
            users[enrollment.user_id] = (
                EnrollmentUserSummary(id=user.id, name=user.name, email=user.email)
                if user
                else None
            )
        if enrollment.course_id not in courses:
            course = await course_service.get_course(enrollment.course_id)
            courses[enrollment.course_id] = (
                EnrollmentCourseSummary(id=course.id, title=course.title, slug=course.slug)
                if course
                else None
            )

        items.append(
            AdminEnrollmentResponse(
                id=enrollment.id,
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                user=users[enrollment.user_id],
                course=courses[enrollment.course_id],
                progress=enrollment.progress,
                is_completed=enrollment.is_completed,
                completed_lessons=len(enrollment.completed_lessons),
                enrolled_at=enrollment.enrolled_at,
                updated_at=enrollment.updated_at,
            )
        )

    return AdminEnrollmentListResponse(items=items, total=len(items))


@router.get(
    "/reports",
    response_model=ReportsResponse,
    summary="Enrollment reports",
)
async def get_reports(
    _admin: AdminUser,
    enrollment_service: EnrollmentServiceDep,
    auth_service: AuthServiceDep,
) -> ReportsResponse:
    users = await auth_service.list_users()
    enrollments = await enrollment_service.list_all()
    return build_report(len(users), enrollments)
