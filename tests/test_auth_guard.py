"""Authentication and role checks as seen through the API."""

from datetime import timedelta

import pytest
from jose import jwt
from starlette.requests import Request

from exam_api.api.deps import authorize
from exam_api.core.exceptions import ForbiddenError, UnauthenticatedError
from exam_api.schemas import RequestIdentity, Role

from conftest import auth_headers, rows


def _request(identity=None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/guarded",
        "headers": [],
        "query_string": b"",
        "scheme": "http",
        "server": ("testserver", 80),
        "state": {},
    }
    request = Request(scope)
    if identity is not None:
        request.state.identity = identity
    return request


class TestAuthorize:
    def test_admits_allowed_role(self):
        identity = RequestIdentity(subject_id=1, role=Role.STUDENT)
        check = authorize(Role.STUDENT)
        assert check(_request(identity)) is identity

    def test_rejects_other_role(self):
        check = authorize(Role.INSTRUCTOR)
        with pytest.raises(ForbiddenError) as exc_info:
            check(_request(RequestIdentity(subject_id=1, role=Role.STUDENT)))
        assert exc_info.value.message == "Access denied. Only Instructor can access this resource."

    def test_without_identity_is_unauthenticated(self):
        with pytest.raises(UnauthenticatedError) as exc_info:
            authorize(Role.STUDENT)(_request())
        assert exc_info.value.status_code == 401


def test_missing_token_is_rejected_before_the_database(client, gateway):
    response = client.get("/api/courses")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Access denied. No token provided."}
    assert gateway.calls == []


def test_expired_token(client, gateway):
    headers = auth_headers(Role.INSTRUCTOR, expires_delta=timedelta(seconds=-1))
    response = client.get("/api/courses", headers=headers)

    assert response.status_code == 401
    assert response.json()["message"] == "Token has expired. Please login again."
    assert gateway.calls == []


def test_bad_signature(client):
    token = jwt.encode({"userId": 1, "role": "Instructor"}, "another-secret", algorithm="HS256")
    response = client.get("/api/courses", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token. Please login again."


def test_malformed_token_is_server_error(client, gateway):
    response = client.get("/api/courses", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 500
    assert response.json()["message"] == "Authentication failed"
    assert gateway.calls == []


def test_student_cannot_reach_instructor_route(client, gateway, student_headers):
    response = client.post(
        "/api/courses",
        json={"name": "Databases", "code": "DB101", "duration": 30},
        headers=student_headers,
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Access denied. Only Instructor can access this resource."
    assert gateway.calls == []


def test_any_authenticated_role_can_list_courses(client, gateway, student_headers):
    gateway.on("sp_select_courses", rows(
        {"course_id": 1, "course_name": "Databases", "course_code": "DB101", "duration": 30},
    ))
    response = client.get("/api/courses", headers=student_headers)

    assert response.status_code == 200
    assert response.json()["count"] == 1
