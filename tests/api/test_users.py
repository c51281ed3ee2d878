from __future__ import annotations

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from coursehub.models.principal import Role
from coursehub.services import token_service
from tests.conftest import auth, create_course, mint_token


def _register(client: TestClient, username: str, role: str = "student") -> str:
    resp = client.post(
        "/api/auth/register",
        json={
            "first_name": "Grace",
            "last_name": "Hopper",
            "username": username,
            "password": "cobol-rules",
            "role": role,
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["token"]


def _user_id(token: str) -> UUID:
    return UUID(token_service.decode_access_token(token)["sub"])


def test_profile_returns_caller(client: TestClient) -> None:
    token = _register(client, "grace")

    resp = client.get("/api/users/profile", headers=auth(token))

    assert resp.status_code == 200
    assert resp.json() == {
        "id": str(_user_id(token)),
        "username": "grace",
        "first_name": "Grace",
        "last_name": "Hopper",
        "role": "student",
    }


def test_my_courses_lists_authored_courses(
    client: TestClient, teacher_token: str
) -> None:
    mine = create_course(client, teacher_token, title="Mine")
    create_course(client, mint_token(uuid4(), Role.TEACHER), title="Theirs")

    resp = client.get("/api/users/my-courses", headers=auth(teacher_token))

    assert resp.status_code == 200
    assert [c["id"] for c in resp.json()] == [mine["id"]]


def test_favorites_round_trip(
    client: TestClient, teacher_token: str, student_token: str
) -> None:
    course = create_course(client, teacher_token)
    create_course(client, teacher_token, title="Not a favorite")

    resp = client.post(
        f"/api/users/favorites/{course['id']}", headers=auth(student_token)
    )
    assert resp.json() == {"is_favorite": True, "favorites_count": 1}

    favorites = client.get("/api/users/favorites", headers=auth(student_token)).json()
    assert [c["id"] for c in favorites] == [course["id"]]

    client.post(f"/api/users/favorites/{course['id']}", headers=auth(student_token))
    assert client.get("/api/users/favorites", headers=auth(student_token)).json() == []


def test_user_deletes_self(client: TestClient) -> None:
    token = _register(client, "leaving")

    resp = client.delete(f"/api/users/{_user_id(token)}", headers=auth(token))

    assert resp.status_code == 204
    assert client.get("/api/users/profile", headers=auth(token)).status_code == 404


def test_user_cannot_delete_someone_else(client: TestClient) -> None:
    victim = _register(client, "victim")
    attacker = _register(client, "attacker")

    resp = client.delete(f"/api/users/{_user_id(victim)}", headers=auth(attacker))

    assert resp.status_code == 403


def test_admin_deletes_any_user(client: TestClient, admin_token: str) -> None:
    token = _register(client, "removed")

    resp = client.delete(f"/api/users/{_user_id(token)}", headers=auth(admin_token))

    assert resp.status_code == 204


def test_delete_unknown_user_is_404(client: TestClient, admin_token: str) -> None:
    resp = client.delete(f"/api/users/{uuid4()}", headers=auth(admin_token))
    assert resp.status_code == 404
