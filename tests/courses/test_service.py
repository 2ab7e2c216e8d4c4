"""Tests for CourseService against the in-memory session."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from src.auth.permissions import Caller
from src.courses.schemas import (
    CourseFilter,
    CreateCourseRequest,
    ModuleInput,
    UpdateCourseRequest,
)
from src.courses.service import (
    CourseNotFoundError,
    CourseService,
    InvalidCurriculumError,
    InvalidFilterError,
    build_modules,
)
from src.main import AppState
from tests.conftest import FakeCassandraSession, course_payload


def _request(**kwargs) -> CreateCourseRequest:
    return CreateCourseRequest.model_validate(course_payload(**kwargs))


@pytest.fixture
def courses(services: AppState) -> CourseService:
    return services.course_service


class TestBuildModules:
    """Tests for build_modules."""

    def test_assigns_missing_ids_and_keeps_given(self) -> None:
        kept = uuid4()
        modules = build_modules(
            [
                ModuleInput.model_validate(
                    {"title": "M", "lessons": [{"id": str(kept), "title": "A"}, {"title": "B"}]}
                )
            ]
        )
        lessons = modules[0].lessons
        assert lessons[0].id == kept
        assert lessons[1].id is not None
        assert lessons[1].id != kept

    def test_duplicate_lesson_id_across_modules(self) -> None:
        lesson_id = str(uuid4())
        items = [
            ModuleInput.model_validate(
                {"title": f"M{n}", "lessons": [{"id": lesson_id, "title": "A"}]}
            )
            for n in range(2)
        ]
        with pytest.raises(InvalidCurriculumError):
            build_modules(items)


class TestCreateCourse:
    """Tests for create_course."""

    async def test_creates_course_with_curriculum(self, courses: CourseService) -> None:
        instructor = uuid4()
        course = await courses.create_course(_request(lessons=6), instructor)

        stored = await courses.get_course(course.id)
        assert stored is not None
        assert stored.instructor_id == instructor
        assert stored.total_lessons == 6
        assert [m.title for m in stored.modules] == ["Module 1", "Module 2"]
        assert stored.slug == "design-patterns-in-practice"

    async def test_same_title_gets_distinct_slug(
        self, courses: CourseService, session: FakeCassandraSession
    ) -> None:
        first = await courses.create_course(_request(), uuid4())
        second = await courses.create_course(_request(), uuid4())

        assert first.slug != second.slug
        assert second.slug.startswith(f"{first.slug}-")
        assert len(session.rows("courses_by_slug")) == 2

    async def test_get_by_slug(self, courses: CourseService) -> None:
        course = await courses.create_course(_request(), uuid4())
        found = await courses.get_course_by_slug(course.slug)
        assert found is not None
        assert found.id == course.id
        assert await courses.get_course_by_slug("missing") is None


class TestUpdateCourse:
    """Tests for update_course."""

    async def test_partial_update_leaves_other_fields(
        self, courses: CourseService
    ) -> None:
        course = await courses.create_course(_request(), uuid4())
        updated = await courses.update_course(
            course.id, UpdateCourseRequest(price="10.00")
        )

        assert str(updated.price) == "10.00"
        assert updated.title == course.title
        assert updated.slug == course.slug
        assert updated.total_lessons == course.total_lessons
        assert updated.updated_at is not None

    async def test_title_change_keeps_slug(self, courses: CourseService) -> None:
        course = await courses.create_course(_request(), uuid4())
        updated = await courses.update_course(
            course.id, UpdateCourseRequest(title="A Different Title")
        )
        assert updated.slug == course.slug

    async def test_curriculum_replacement_keeps_submitted_ids(
        self, courses: CourseService
    ) -> None:
        course = await courses.create_course(_request(lessons=2, modules=1), uuid4())
        existing = course.modules[0]
        body = {
            "modules": [
                {
                    "id": str(existing.id),
                    "title": existing.title,
                    "lessons": [
                        {"id": str(lesson.id), "title": lesson.title}
                        for lesson in existing.lessons
                    ]
                    + [{"title": "Brand new"}],
                }
            ]
        }
        updated = await courses.update_course(
            course.id, UpdateCourseRequest.model_validate(body)
        )

        assert updated.total_lessons == 3
        assert {lesson.id for lesson in existing.lessons} <= {lesson.id for module in updated.modules for lesson in module.lessons}

    async def test_missing_course(self, courses: CourseService) -> None:
        with pytest.raises(CourseNotFoundError):
            await courses.update_course(uuid4(), UpdateCourseRequest(price="1"))


class TestDeleteCourse:
    """Tests for delete_course."""

    async def test_delete_releases_slug(self, courses: CourseService) -> None:
        course = await courses.create_course(_request(), uuid4())
        await courses.delete_course(course.id)

        assert await courses.get_course(course.id) is None
        again = await courses.create_course(_request(), uuid4())
        assert again.slug == course.slug

    async def test_delete_missing(self, courses: CourseService) -> None:
        with pytest.raises(CourseNotFoundError):
            await courses.delete_course(uuid4())


class TestListCourses:
    """Tests for list_courses."""

    async def _seed(
        self, courses: CourseService, session: FakeCassandraSession
    ) -> None:
        base = datetime(2026, 1, 1, tzinfo=UTC)
        specs = [
            ("Python for Data Analysis", "data", "beginner", True),
            ("Advanced Python Internals", "programming", "advanced", True),
            ("Kitchen Basics for Everyone", "cooking", "beginner", True),
            ("Unreleased Draft Course", "programming", "beginner", False),
        ]
        for offset, (title, category, level, published) in enumerate(specs):
            course = await courses.create_course(
                _request(title=title, category=category, level=level, published=published),
                uuid4(),
            )
            session.tables["courses"][(course.id,)]["created_at"] = base + timedelta(
                days=offset
            )

    async def test_anonymous_sees_published_newest_first(
        self, courses: CourseService, session: FakeCassandraSession
    ) -> None:
        await self._seed(courses, session)
        items, total = await courses.list_courses(CourseFilter())

        assert total == 3
        assert [c.title for c in items] == [
            "Kitchen Basics for Everyone",
            "Advanced Python Internals",
            "Python for Data Analysis",
        ]

    async def test_admin_sees_drafts(
        self, courses: CourseService, session: FakeCassandraSession
    ) -> None:
        await self._seed(courses, session)
        admin = Caller(id=uuid4(), role="admin")

        _, total = await courses.list_courses(CourseFilter(), admin)
        assert total == 4
        _, published = await courses.list_courses(
            CourseFilter(published_only=True), admin
        )
        assert published == 3

    async def test_learner_cannot_see_drafts(
        self, courses: CourseService, session: FakeCassandraSession
    ) -> None:
        await self._seed(courses, session)
        learner = Caller(id=uuid4(), role="learner")
        _, total = await courses.list_courses(CourseFilter(), learner)
        assert total == 3

    @pytest.mark.parametrize(
        "filters,expected",
        [
            ({"category": "PROGRAMMING"}, {"Advanced Python Internals"}),
            ({"level": "beginner"}, {"Python for Data Analysis", "Kitchen Basics for Everyone"}),
            ({"search": "python"}, {"Python for Data Analysis", "Advanced Python Internals"}),
            ({"search": "  "}, {"Python for Data Analysis", "Advanced Python Internals", "Kitchen Basics for Everyone"}),
            ({"category": "data", "search": "kitchen"}, set()),
        ],
    )
    async def test_filters(
        self,
        courses: CourseService,
        session: FakeCassandraSession,
        filters: dict,
        expected: set[str],
    ) -> None:
        await self._seed(courses, session)
        items, total = await courses.list_courses(CourseFilter.model_validate(filters))
        assert {c.title for c in items} == expected
        assert total == len(expected)

    async def test_pagination(
        self, courses: CourseService, session: FakeCassandraSession
    ) -> None:
        await self._seed(courses, session)
        page_two, total = await courses.list_courses(CourseFilter(page=2, limit=2))
        assert total == 3
        assert [c.title for c in page_two] == ["Python for Data Analysis"]

        beyond, _ = await courses.list_courses(CourseFilter(page=5, limit=2))
        assert beyond == []

    async def test_limit_above_maximum(self, courses: CourseService) -> None:
        with pytest.raises(InvalidFilterError):
            await courses.list_courses(CourseFilter(limit=101))

    async def test_list_response_pages(self, courses: CourseService) -> None:
        response = courses.to_list_response([], CourseFilter(limit=2), total=5)
        assert response.total_pages == 3
        assert courses.to_list_response([], CourseFilter(), total=0).total_pages == 0
