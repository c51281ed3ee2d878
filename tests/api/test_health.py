from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from coursehub.db import engine as db_engine


def test_health_reports_ok_without_database(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "checks": {"database": "not_configured"}}


def test_ready_without_database(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200


def test_unreachable_database_degrades_and_fails_readiness(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _down() -> bool:
        return False

    monkeypatch.setattr(db_engine, "ping", _down)

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json() == {"status": "degraded", "checks": {"database": "degraded"}}
    assert client.get("/ready").status_code == 503
