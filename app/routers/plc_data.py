# ============================================================
# File: plc_data.py - Latest sample route
# ============================================================
# 1. GET /    - latest DB1 sample as JSON (from the memory cache)
# ============================================================

from fastapi import APIRouter, Request

from app.models.response import PLCDataResponse

router = APIRouter(tags=["plc"])


@router.get("/", response_model=PLCDataResponse)
async def get_plc_data(request: Request) -> PLCDataResponse:
    """Latest sample; zeros until the first successful poll"""
    cache = request.app.state.sample_cache
    return PLCDataResponse.from_record(cache.read())
