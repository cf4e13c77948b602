"""
Liveness of the credential store.

GET /health pings MongoDB. The account collection is the single source of
session truth, so a failed ping is reported as 503 "unhealthy".
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


async def _ping_mongodb(db) -> bool:
    if db is None:
        log.warning("health_mongodb_failed", error="database not initialised")
        return False
    try:
        await db.client.admin.command("ping")
    except Exception as exc:
        log.warning("health_mongodb_failed", error=str(exc))
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    mongo_ok = await _ping_mongodb(getattr(request.app.state, "db", None))
    body = HealthResponse(
        status="healthy" if mongo_ok else "unhealthy",
        checks={"mongodb": "ok" if mongo_ok else "error"},
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if mongo_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
