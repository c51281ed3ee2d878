from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from coursehub.api.dependencies import get_repos
from coursehub.main import app
from coursehub.models.principal import Role
from coursehub.repos.repositories import Repositories
from coursehub.services import token_service

# Ensure repo root is on sys.path so `import coursehub` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def repos() -> Repositories:
    """Fresh in-memory stores, shared by every request in one test."""
    return Repositories.in_memory()


@pytest.fixture
def client(repos: Repositories) -> Iterator[TestClient]:
    app.dependency_overrides[get_repos] = lambda: repos
    yield TestClient(app)
    app.dependency_overrides.clear()


def mint_token(user_id: UUID | None = None, role: Role = Role.STUDENT) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=user_id or uuid4(), role=role)


def auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def teacher_id() -> UUID:
    return uuid4()


@pytest.fixture
def student_token(student_id: UUID) -> str:
    return mint_token(student_id, Role.STUDENT)


@pytest.fixture
def teacher_token(teacher_id: UUID) -> str:
    return mint_token(teacher_id, Role.TEACHER)


@pytest.fixture
def admin_token() -> str:
    return mint_token(role=Role.ADMIN)


# ---------------------------------------------------------------------------
# Catalog helpers: build courses and lessons through the API
# ---------------------------------------------------------------------------


def create_course(client: TestClient, token: str, **overrides) -> dict:
    body = {"title": "Intro to SQL", "price": 19.99, "category": "databases"}
    body.update(overrides)
    resp = client.post("/api/courses", json=body, headers=auth(token))
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_lesson(
    client: TestClient, token: str, course_id: str, **overrides
) -> dict:
    body = {"title": "Lesson"}
    body.update(overrides)
    resp = client.post(
        f"/api/courses/{course_id}/lessons", json=body, headers=auth(token)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
