# ============================================================
# File: health.py - Health check routes
# ============================================================
# 1. GET /api/health            - liveness
# 2. GET /api/health/polling    - poller state and counters
# ============================================================

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.models.response import ApiResponse

router = APIRouter(prefix="/api", tags=["health"])


# ------------------------------------------------------------
# 1. GET /api/health - liveness
# ------------------------------------------------------------
@router.get("/health")
async def health_check():
    return ApiResponse.ok({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


# ------------------------------------------------------------
# 2. GET /api/health/polling - poller state and counters
# ------------------------------------------------------------
@router.get("/health/polling")
async def polling_health(request: Request):
    lifecycle = request.app.state.lifecycle
    cache = lifecycle.sample_cache
    snapshot = cache.read_snapshot()

    if lifecycle.poller is None:
        return ApiResponse.fail("poller not started")

    return ApiResponse.ok({
        "polling_running": lifecycle.poller.is_running,
        "has_sample": snapshot is not None,
        "latest_timestamp": snapshot[1].isoformat() if snapshot else None,
        "cache_writes": cache.write_count,
        **lifecycle.poller.get_stats(),
    })
