"""Health and readiness endpoints.

  /health (liveness): the process answers.  Reports per-dependency status
  but always returns 200; ``status`` says whether it is degraded.

  /ready (readiness): 503 while the database, when configured, cannot be
  reached, so the load balancer stops routing here without a restart.
"""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from coursehub.db import engine as db_engine

router = APIRouter(tags=["health"])

_DB_STATUS = {None: "not_configured", True: "ok", False: "degraded"}


async def _database_status() -> str:
    return _DB_STATUS[await db_engine.ping()]


@router.get("/health")
async def health() -> dict:
    checks = {"database": await _database_status()}
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
