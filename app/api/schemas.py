"""Request/response bodies for the admin HTTP surface."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ProcessDateRequest(BaseModel):
    date: str = Field(..., description="YYYY-MM-DD or DD-MM-YYYY")


class ProcessDateResponse(BaseModel):
    message: str
    date: str
    total: int
    processed: int
    skipped: int
    errors: List[str] = Field(default_factory=list)


class ResponseStats(BaseModel):
    total: int
    confirmed: int
    cancelled: int
    unknown: int


class TestMessageRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class TestMessageResponse(BaseModel):
    success: bool
    phone: str
    error: Optional[str] = None


class TaskAccepted(BaseModel):
    message: str
    task_id: str


class SessionStatusResponse(BaseModel):
    status: str
    is_connected: bool
    updated_at: Optional[str] = None
    has_qr: bool = False


class QrResponse(BaseModel):
    qr: str
