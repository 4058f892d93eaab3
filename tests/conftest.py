"""
Shared test fixtures

Route tests run against a scripted FakeGateway injected through FastAPI's
dependency overrides, so no database is needed.
"""

import os
import tempfile
from typing import Any, Dict, List, Optional

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_CONNECT_ON_STARTUP", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "exam_api_tests.log"))

import pytest
from fastapi.testclient import TestClient

from exam_api.api.deps import get_gateway
from exam_api.core.rate_limit import api_limiter, auth_limiter
from exam_api.core.security import create_access_token
from exam_api.db.gateway import ProcedureResult
from exam_api.main import app
from exam_api.schemas import Role


def rows(*records: Dict[str, Any]) -> ProcedureResult:
    """A result with a single result set"""
    return ProcedureResult(recordsets=[list(records)])


class FakeGateway:
    """
    Stands in for ProcedureGateway

    Responses are scripted per procedure name and consumed in order; the
    last one repeats. An Exception response is raised instead of returned.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.ping_error: Optional[Exception] = None
        self._responses: Dict[str, list] = {}

    def on(self, name: str, *responses: Any) -> "FakeGateway":
        self._responses[name] = list(responses)
        return self

    async def execute(self, name, params=None) -> ProcedureResult:
        params = params or {}
        self.calls.append((name, {key: param.value for key, param in params.items()}))
        queue = self._responses.get(name)
        if not queue:
            return ProcedureResult()
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def ping(self) -> bool:
        if self.ping_error is not None:
            raise self.ping_error
        return True

    @property
    def called(self) -> List[str]:
        return [name for name, _ in self.calls]

    def params_of(self, name: str) -> Dict[str, Any]:
        return next(params for called, params in self.calls if called == name)


def auth_headers(role: Role = Role.INSTRUCTOR, user_id: int = 1, **kwargs) -> Dict[str, str]:
    token = create_access_token(user_id, role, **kwargs)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def reset_rate_limits():
    api_limiter.reset()
    auth_limiter.reset()
    yield
    api_limiter.reset()
    auth_limiter.reset()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def instructor_headers() -> Dict[str, str]:
    return auth_headers(Role.INSTRUCTOR, user_id=7)


@pytest.fixture
def student_headers() -> Dict[str, str]:
    return auth_headers(Role.STUDENT, user_id=42)
