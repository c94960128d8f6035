# ============================================================
# File: response.py - Response models
# ============================================================
# Models:
# 1. ApiResponse            - generic API envelope
# 2. PLCDataResponse        - latest DB1 sample
# ============================================================

from pydantic import BaseModel, Field
from typing import TypeVar, Generic, Optional

from app.plc.parser_plc_data import PLCData

T = TypeVar('T')


# ------------------------------------------------------------
# 1. ApiResponse - generic API envelope
# ------------------------------------------------------------
class ApiResponse(BaseModel, Generic[T]):
    """Generic API envelope"""
    success: bool = Field(True, description="whether the request succeeded")
    data: Optional[T] = Field(None, description="payload")
    error: Optional[str] = Field(None, description="error message")

    @classmethod
    def ok(cls, data: T = None) -> "ApiResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "ApiResponse":
        return cls(success=False, error=error)


# ------------------------------------------------------------
# 2. PLCDataResponse - latest DB1 sample
# ------------------------------------------------------------
class PLCDataResponse(BaseModel):
    """Latest DB1 sample; all zeros before the first successful poll"""
    Tag1: int = Field(0, ge=0, le=255)
    Tag2: int = Field(0, ge=0, le=255)
    Tag3: int = Field(0, ge=0, le=255)
    Tag4: int = Field(0, ge=-2**31, le=2**31 - 1)

    @classmethod
    def from_record(cls, record: Optional[PLCData]) -> "PLCDataResponse":
        if record is None:
            return cls()
        return cls(**record.to_dict())
