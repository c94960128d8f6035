# ============================================================
# Models package - Pydantic API models
# ============================================================

from app.models.response import ApiResponse, PLCDataResponse

__all__ = [
    'ApiResponse',
    'PLCDataResponse',
]
