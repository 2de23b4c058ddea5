"""
Health Router
Liveness and readiness probes.

Endpoints:
- /healthz - Basic liveness check (is the process running?)
- /readyz - Readiness check (are the in-memory components wired up?)
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse


router = APIRouter()


@router.get("/healthz")
async def health_check():
    """Liveness probe - returns 200 if the process is alive."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/readyz")
async def readiness_check(request: Request):
    """
    Readiness probe.
    Reports session count, tracked rate-limit visitors and whether the
    limiter's sweep thread is running.
    """
    state = request.app.state
    checks = {
        "sessions": {"ok": True, "active": len(state.sessions)},
        "rate_limiter": {
            "ok": state.rate_limiter.is_sweeping(),
            "visitors": len(state.rate_limiter),
        },
    }
    ready = all(check["ok"] for check in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
