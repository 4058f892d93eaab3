"""Tests for health, root information, unknown routes and API rate limiting."""

from exam_api.core.exceptions import DatabaseConnectionError
from exam_api.core.rate_limit import InMemoryRateLimiter, api_limiter

from conftest import rows


def test_health_connected(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Server is running"
    assert body["database"] == "connected"
    assert body["timestamp"]


def test_health_disconnected(client, gateway):
    gateway.ping_error = DatabaseConnectionError(detail="connection refused")

    response = client.get("/health")

    assert response.status_code == 503
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Service unavailable"
    assert body["database"] == "disconnected"


def test_root_lists_endpoints(client):
    body = client.get("/").json()

    assert body["health_check"] == "/health"
    assert body["endpoints"]["exams"] == "/api/exams"
    assert body["endpoints"]["branch-tracks"] == "/api/branch-tracks"


def test_unknown_route(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "message": "Route not found",
        "path": "/api/does-not-exist",
    }


def test_gateway_outage_is_service_unavailable(client, gateway, student_headers):
    gateway.on("sp_select_courses", DatabaseConnectionError(detail="pool invalidated"))

    response = client.get("/api/courses", headers=student_headers)

    assert response.status_code == 503
    assert response.json() == {"success": False, "message": "Service unavailable"}


def test_api_rate_limit(client, gateway, student_headers):
    gateway.on("sp_select_courses", rows())
    for _ in range(api_limiter.max_requests):
        client.get("/api/courses", headers=student_headers)

    response = client.get("/api/courses", headers=student_headers)

    assert response.status_code == 429
    body = response.json()
    assert body["message"] == "Too many requests from this IP, please try again later."
    assert body["retryAfter"] >= 1
    assert len(gateway.calls) == api_limiter.max_requests


def test_health_is_not_rate_limited(client):
    for _ in range(api_limiter.max_requests + 1):
        assert client.get("/health").status_code == 200


class TestInMemoryRateLimiter:
    def test_window_is_per_key(self):
        limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60)

        assert limiter.allow("a")[0]
        assert limiter.allow("a")[0]
        allowed, retry_after = limiter.allow("a")

        assert not allowed
        assert 1 <= retry_after <= 60
        assert limiter.allow("b")[0]

    def test_check_does_not_record(self):
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)

        assert limiter.check("a") == (True, 0)
        assert limiter.check("a") == (True, 0)
        limiter.hit("a")
        assert limiter.check("a")[0] is False

    def test_check_does_not_create_entries(self):
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60)

        for key in ("a", "b", "c"):
            assert limiter.check(key) == (True, 0)

        assert len(limiter) == 0

    def test_expired_keys_are_dropped(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr("exam_api.core.rate_limit.time.monotonic", lambda: clock[0])
        limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60)
        limiter.hit("a")
        limiter.hit("b")
        assert len(limiter) == 2

        clock[0] += 61
        assert limiter.check("a") == (True, 0)
        assert len(limiter) == 1

        limiter.hit("c")

        assert len(limiter) == 1
        assert limiter.check("c") == (True, 0)

    def test_reset(self):
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)
        limiter.hit("a")
        limiter.reset()

        assert limiter.allow("a")[0]
