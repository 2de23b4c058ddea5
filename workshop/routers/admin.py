"""
Admin Router
Performance dashboard data (request percentiles, slowest paths).
"""

from dataclasses import asdict
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query, Request

from workshop.core.roles import Role
from workshop.core.security import require_role


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/perf", dependencies=[Depends(require_role(Role.ADMIN))])
async def perf_snapshot(
    request: Request,
    minutes: int = Query(60, ge=1, le=24 * 60),
    top: int = Query(10, ge=1, le=100),
):
    """Aggregated timings for the last `minutes` minutes."""
    since = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    snap = request.app.state.perf.snapshot(since, top)
    return asdict(snap)
