"""Admin endpoints over the reminder queue."""

from __future__ import annotations

import logging

import redis
from celery.exceptions import TimeoutError as CeleryTimeoutError
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import require_admin
from app.api.schemas import (
    ProcessDateRequest,
    ProcessDateResponse,
    ResponseStats,
    TestMessageRequest,
    TestMessageResponse,
)
from app.celery_app import celery_app
from app.services import scheduler
from app.services.reminder_queue import get_queue_stats
from app.services.session_status import read_status
from app.types.messaging import BatchResult, QueueStats
from config import settings
from db import appointments

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/appointment-queue",
    tags=["Appointment queue"],
    dependencies=[Depends(require_admin)],
)


def _batch_response(message: str, result: BatchResult) -> ProcessDateResponse:
    return ProcessDateResponse(message=message, **result.model_dump())


@router.post("/process-next-day", response_model=ProcessDateResponse)
async def process_next_day():
    result = await scheduler.process_next_day()
    return _batch_response("Next day appointments processed", result)


@router.post("/process-date", response_model=ProcessDateResponse)
async def process_date(body: ProcessDateRequest):
    try:
        day = scheduler.parse_day(body.date)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    result = await scheduler.process_date(day)
    return _batch_response(f"Appointments for {result.date} processed", result)


@router.get("/stats", response_model=QueueStats)
def queue_stats():
    try:
        return get_queue_stats()
    except redis.RedisError:
        logger.exception("Could not read queue stats")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Queue backend unavailable")


@router.get("/response-stats", response_model=ResponseStats)
async def response_stats():
    return await appointments.response_stats()


@router.post("/test-message", response_model=TestMessageResponse)
def test_message(body: TestMessageRequest):
    if not read_status()["is_connected"]:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="WhatsApp is not connected")

    task = celery_app.send_task(
        "app.workers.session.send_test_message",
        args=[body.phone, body.message],
        queue="session",
    )
    try:
        result = task.get(timeout=settings.SEND_TIMEOUT_SECONDS + 5)
    except CeleryTimeoutError:
        logger.warning("Test message task %s timed out", task.id)
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Send timed out")
    return TestMessageResponse(**result)
