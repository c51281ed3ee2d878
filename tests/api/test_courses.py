from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from coursehub.models.principal import Role
from tests.conftest import auth, create_course, create_lesson, mint_token

# ---- create ----


def test_teacher_creates_course(
    client: TestClient, teacher_token: str, teacher_id
) -> None:
    body = create_course(
        client,
        teacher_token,
        title="Intro to SQL",
        tags=["SQL", " databases ", "sql"],
        level="intermediate",
    )

    assert body["author_id"] == str(teacher_id)
    assert body["slug"].startswith("intro-to-sql-")
    assert body["tags"] == ["sql", "databases"]
    assert body["level"] == "intermediate"
    assert body["published"] is False
    assert body["favorites_count"] == 0


def test_admin_creates_course(client: TestClient, admin_token: str) -> None:
    create_course(client, admin_token)


def test_student_cannot_create_course(client: TestClient, student_token: str) -> None:
    resp = client.post(
        "/api/courses",
        json={"title": "Nope", "price": 1, "category": "x"},
        headers=auth(student_token),
    )
    assert resp.status_code == 403


def test_create_course_requires_token(client: TestClient) -> None:
    resp = client.post(
        "/api/courses", json={"title": "Nope", "price": 1, "category": "x"}
    )
    assert resp.status_code == 401


def test_create_course_rejects_negative_price(
    client: TestClient, teacher_token: str
) -> None:
    resp = client.post(
        "/api/courses",
        json={"title": "Cheap", "price": -1, "category": "x"},
        headers=auth(teacher_token),
    )
    assert resp.status_code == 422


def test_create_course_rejects_blank_title(
    client: TestClient, teacher_token: str
) -> None:
    resp = client.post(
        "/api/courses",
        json={"title": "   ", "price": 1, "category": "x"},
        headers=auth(teacher_token),
    )
    assert resp.status_code == 422


def test_update_course_rejects_blank_title(
    client: TestClient, teacher_token: str
) -> None:
    course = create_course(client, teacher_token, title="Kept")
    resp = client.put(
        f"/api/courses/{course['id']}",
        json={"title": "  "},
        headers=auth(teacher_token),
    )
    assert resp.status_code == 422
    assert client.get(f"/api/courses/{course['id']}").json()["title"] == "Kept"


def test_slugs_are_unique_for_same_title(
    client: TestClient, teacher_token: str
) -> None:
    first = create_course(client, teacher_token, title="Same")
    second = create_course(client, teacher_token, title="Same")
    assert first["slug"] != second["slug"]


# ---- read ----


def test_get_course_is_public(client: TestClient, teacher_token: str) -> None:
    course = create_course(client, teacher_token)
    resp = client.get(f"/api/courses/{course['id']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == course["id"]


def test_get_unknown_course_is_404(client: TestClient) -> None:
    resp = client.get(f"/api/courses/{uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Course not found"


# ---- list ----


@pytest.fixture
def catalog(client: TestClient, teacher_token: str) -> dict[str, dict]:
    return {
        "sql": create_course(
            client,
            teacher_token,
            title="SQL Basics",
            price=10,
            category="databases",
            tags=["sql"],
            published=True,
        ),
        "python": create_course(
            client,
            teacher_token,
            title="Python Deep Dive",
            price=50,
            category="programming",
            level="advanced",
            tags=["python", "backend"],
            published=True,
        ),
        "draft": create_course(
            client,
            mint_token(uuid4(), Role.TEACHER),
            title="Draft Course",
            price=30,
            category="programming",
        ),
    }


def _titles(resp) -> set[str]:
    assert resp.status_code == 200, resp.text
    return {c["title"] for c in resp.json()["items"]}


def test_list_defaults_to_newest_first(
    client: TestClient, catalog: dict[str, dict]
) -> None:
    resp = client.get("/api/courses")
    body = resp.json()
    assert [c["title"] for c in body["items"]] == [
        "Draft Course",
        "Python Deep Dive",
        "SQL Basics",
    ]
    assert body["pagination"] == {"page": 1, "limit": 10, "total": 3, "total_pages": 1}


@pytest.mark.parametrize(
    "query,expected",
    [
        ("category=programming", {"Python Deep Dive", "Draft Course"}),
        ("level=advanced", {"Python Deep Dive"}),
        ("price_min=20&price_max=40", {"Draft Course"}),
        ("tags=sql,python", {"SQL Basics", "Python Deep Dive"}),
        ("published=true", {"SQL Basics", "Python Deep Dive"}),
        ("search=deep", {"Python Deep Dive"}),
    ],
)
def test_list_filters(
    client: TestClient, catalog: dict[str, dict], query: str, expected: set[str]
) -> None:
    assert _titles(client.get(f"/api/courses?{query}")) == expected


def test_list_filters_by_author(
    client: TestClient, catalog: dict[str, dict], teacher_id
) -> None:
    resp = client.get(f"/api/courses?author={teacher_id}")
    assert _titles(resp) == {"SQL Basics", "Python Deep Dive"}


def test_list_sorts_by_price(client: TestClient, catalog: dict[str, dict]) -> None:
    resp = client.get("/api/courses?sort_by=price")
    assert [c["price"] for c in resp.json()["items"]] == [10, 30, 50]

    resp = client.get("/api/courses?sort_by=-price")
    assert [c["price"] for c in resp.json()["items"]] == [50, 30, 10]


def test_list_paginates(client: TestClient, catalog: dict[str, dict]) -> None:
    resp = client.get("/api/courses?sort_by=title&page=2&limit=2")
    body = resp.json()
    assert [c["title"] for c in body["items"]] == ["SQL Basics"]
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}


@pytest.mark.parametrize(
    "query",
    ["sort_by=popularity", "limit=101", "limit=0", "page=0", "price_min=5&price_max=1"],
)
def test_list_rejects_bad_query(
    client: TestClient, catalog: dict[str, dict], query: str
) -> None:
    assert client.get(f"/api/courses?{query}").status_code == 422


# ---- update / delete ----


def test_author_updates_course(client: TestClient, teacher_token: str) -> None:
    course = create_course(client, teacher_token, title="Old")
    resp = client.put(
        f"/api/courses/{course['id']}",
        json={"title": "New", "published": True},
        headers=auth(teacher_token),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "New"
    assert body["published"] is True
    assert body["slug"] == course["slug"]
    assert body["price"] == course["price"]


@pytest.mark.parametrize(
    "role,expected", [(Role.TEACHER, 403), (Role.STUDENT, 403), (Role.ADMIN, 200)]
)
def test_only_author_or_admin_updates_course(
    client: TestClient, teacher_token: str, role: Role, expected: int
) -> None:
    course = create_course(client, teacher_token)
    resp = client.put(
        f"/api/courses/{course['id']}",
        json={"price": 5},
        headers=auth(mint_token(uuid4(), role)),
    )
    assert resp.status_code == expected


def test_update_unknown_course_is_404(client: TestClient, teacher_token: str) -> None:
    resp = client.put(
        f"/api/courses/{uuid4()}", json={"price": 5}, headers=auth(teacher_token)
    )
    assert resp.status_code == 404


def test_delete_course_cascades_to_lessons_and_comments(
    client: TestClient, teacher_token: str, student_token: str
) -> None:
    course = create_course(client, teacher_token)
    lesson = create_lesson(client, teacher_token, course["id"])
    client.post(
        f"/api/lessons/{lesson['id']}/comments",
        json={"text": "great"},
        headers=auth(student_token),
    )
    client.post(f"/api/enrollments/{course['id']}/enroll", headers=auth(student_token))

    resp = client.delete(f"/api/courses/{course['id']}", headers=auth(teacher_token))

    assert resp.status_code == 204
    assert client.get(f"/api/courses/{course['id']}").status_code == 404
    assert client.get(f"/api/lessons/{lesson['id']}").status_code == 404
    assert client.get(f"/api/lessons/{lesson['id']}/comments").status_code == 404
    # Enrollments are kept.
    count = client.get(f"/api/enrollments/{course['id']}/students/count").json()
    assert count == {"count": 1}


def test_other_teacher_cannot_delete_course(
    client: TestClient, teacher_token: str
) -> None:
    course = create_course(client, teacher_token)
    resp = client.delete(
        f"/api/courses/{course['id']}",
        headers=auth(mint_token(uuid4(), Role.TEACHER)),
    )
    assert resp.status_code == 403


# ---- favorites ----


def test_favorite_toggles(
    client: TestClient, teacher_token: str, student_token: str
) -> None:
    course = create_course(client, teacher_token)
    url = f"/api/courses/{course['id']}/favorite"

    first = client.post(url, headers=auth(student_token))
    assert first.json() == {"is_favorite": True, "favorites_count": 1}

    second = client.post(url, headers=auth(student_token))
    assert second.json() == {"is_favorite": False, "favorites_count": 0}


def test_favorite_unknown_course_is_404(
    client: TestClient, student_token: str
) -> None:
    resp = client.post(f"/api/courses/{uuid4()}/favorite", headers=auth(student_token))
    assert resp.status_code == 404
