"""HTTP tests for the enrollment endpoints."""

from uuid import uuid4

from fastapi.testclient import TestClient

from src.auth.permissions import Caller
from tests.conftest import FakeCassandraSession, auth_headers, course_payload, lesson_ids


def _create_course(client: TestClient, admin_headers: dict, **kwargs) -> dict:
    response = client.post(
        "/v1/courses", json=course_payload(**kwargs), headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestEnroll:
    """POST /v1/enrollments"""

    def test_enroll(
        self, client: TestClient, admin_headers: dict, learner_headers: dict, learner: Caller
    ) -> None:
        course = _create_course(client, admin_headers)
        response = client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["course_id"] == course["id"]
        assert data["user_id"] == str(learner.id)
        assert data["progress"] == 0
        assert data["completed_lessons"] == []
        assert data["course"]["slug"] == course["slug"]
        assert data["course"]["total_lessons"] == 6

    def test_enroll_twice_conflicts(
        self, client: TestClient, admin_headers: dict, learner_headers: dict
    ) -> None:
        course = _create_course(client, admin_headers)
        body = {"courseId": course["id"]}
        client.post("/v1/enrollments", json=body, headers=learner_headers)
        response = client.post("/v1/enrollments", json=body, headers=learner_headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Already enrolled in this course"

    def test_requires_authentication(self, client: TestClient) -> None:
        response = client.post("/v1/enrollments", json={"courseId": str(uuid4())})
        assert response.status_code == 401

    def test_unknown_course(self, client: TestClient, learner_headers: dict) -> None:
        response = client.post(
            "/v1/enrollments", json={"courseId": str(uuid4())}, headers=learner_headers
        )
        assert response.status_code == 404

    def test_malformed_course_id(
        self, client: TestClient, learner_headers: dict
    ) -> None:
        response = client.post(
            "/v1/enrollments", json={"courseId": "abc"}, headers=learner_headers
        )
        assert response.status_code == 400
        assert response.json()["details"] == [
            {"field": "courseId", "message": "Invalid courseId"}
        ]

    def test_missing_course_id(self, client: TestClient, learner_headers: dict) -> None:
        response = client.post("/v1/enrollments", json={}, headers=learner_headers)
        assert response.status_code == 400


class TestProgress:
    """PUT /v1/enrollments/{course_id}/progress"""

    def test_progress_walkthrough(
        self, client: TestClient, admin_headers: dict, learner_headers: dict
    ) -> None:
        course = _create_course(client, admin_headers, lessons=6, modules=3)
        lessons = [str(lesson_id) for lesson_id in lesson_ids(course)]
        client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )
        url = f"/v1/enrollments/{course['id']}/progress"

        def mark(lesson_id: str, completed: bool = True) -> dict:
            response = client.put(
                url,
                json={"lessonId": lesson_id, "completed": completed},
                headers=learner_headers,
            )
            assert response.status_code == 200, response.text
            return response.json()

        for lesson_id in lessons[:3]:
            data = mark(lesson_id)
        assert (data["progress"], data["is_completed"]) == (50, False)

        for lesson_id in lessons[3:]:
            data = mark(lesson_id)
        assert (data["progress"], data["is_completed"]) == (100, True)

        data = mark(lessons[0], completed=False)
        assert (data["progress"], data["is_completed"]) == (83, False)
        assert len(data["completed_lessons"]) == 5
        assert data["course"]["id"] == course["id"]
        assert data["course"]["total_lessons"] == 6

    def test_completed_flag_is_required(
        self,
        client: TestClient,
        admin_headers: dict,
        learner_headers: dict,
        session: FakeCassandraSession,
    ) -> None:
        course = _create_course(client, admin_headers)
        client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )
        response = client.put(
            f"/v1/enrollments/{course['id']}/progress",
            json={"lessonId": str(lesson_ids(course)[0])},
            headers=learner_headers,
        )
        assert response.status_code == 400
        fields = [detail["field"] for detail in response.json()["details"]]
        assert any(field.endswith("completed") for field in fields)
        assert [row["completed_lessons"] for row in session.rows("enrollments")] == [set()]

    def test_not_enrolled(
        self,
        client: TestClient,
        admin_headers: dict,
        learner_headers: dict,
        session: FakeCassandraSession,
    ) -> None:
        course = _create_course(client, admin_headers)
        response = client.put(
            f"/v1/enrollments/{course['id']}/progress",
            json={"lessonId": str(lesson_ids(course)[0]), "completed": True},
            headers=learner_headers,
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Not enrolled in this course"
        assert session.rows("enrollments") == []

    def test_unknown_lesson(
        self, client: TestClient, admin_headers: dict, learner_headers: dict
    ) -> None:
        course = _create_course(client, admin_headers)
        client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )
        response = client.put(
            f"/v1/enrollments/{course['id']}/progress",
            json={"lessonId": str(uuid4()), "completed": True},
            headers=learner_headers,
        )
        assert response.status_code == 404

    def test_malformed_ids(self, client: TestClient, learner_headers: dict) -> None:
        response = client.put(
            "/v1/enrollments/nope/progress",
            json={"lessonId": str(uuid4()), "completed": True},
            headers=learner_headers,
        )
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "courseId"

    def test_conflict_surfaces_as_409(
        self,
        client: TestClient,
        admin_headers: dict,
        learner_headers: dict,
        session: FakeCassandraSession,
    ) -> None:
        course = _create_course(client, admin_headers)
        client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )
        session.fail_conditional_updates = 100
        response = client.put(
            f"/v1/enrollments/{course['id']}/progress",
            json={"lessonId": str(lesson_ids(course)[0]), "completed": True},
            headers=learner_headers,
        )
        assert response.status_code == 409


class TestReadEnrollments:
    """GET /v1/enrollments/me and /v1/enrollments/{course_id}"""

    def test_my_enrollments_include_course(
        self, client: TestClient, admin_headers: dict, learner_headers: dict
    ) -> None:
        course = _create_course(client, admin_headers)
        client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )

        response = client.get("/v1/enrollments/me", headers=learner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["course"]["slug"] == course["slug"]
        assert data["items"][0]["course"]["total_lessons"] == 6

    def test_other_learner_sees_nothing(
        self,
        client: TestClient,
        admin_headers: dict,
        learner_headers: dict,
        other_learner: Caller,
    ) -> None:
        course = _create_course(client, admin_headers)
        client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )
        other = auth_headers(other_learner)

        assert client.get("/v1/enrollments/me", headers=other).json()["total"] == 0
        assert client.get(f"/v1/enrollments/{course['id']}", headers=other).status_code == 404

    def test_single_enrollment(
        self, client: TestClient, admin_headers: dict, learner_headers: dict
    ) -> None:
        course = _create_course(client, admin_headers)
        client.post(
            "/v1/enrollments", json={"courseId": course["id"]}, headers=learner_headers
        )
        response = client.get(f"/v1/enrollments/{course['id']}", headers=learner_headers)
        assert response.status_code == 200
        assert response.json()["course"]["id"] == course["id"]
