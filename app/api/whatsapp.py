"""Admin endpoints over the worker-owned WhatsApp session."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import require_admin
from app.api.schemas import QrResponse, SessionStatusResponse, TaskAccepted
from app.celery_app import celery_app
from app.services.session_status import read_qr, read_status

router = APIRouter(prefix="/whatsapp", tags=["WhatsApp"], dependencies=[Depends(require_admin)])


def _dispatch(task_name: str, message: str) -> TaskAccepted:
    task = celery_app.send_task(task_name, queue="session")
    return TaskAccepted(message=message, task_id=task.id)


@router.post("/connect", response_model=TaskAccepted, status_code=status.HTTP_202_ACCEPTED)
def connect():
    return _dispatch("app.workers.session.connect", "Connection requested")


@router.post("/reconnect", response_model=TaskAccepted, status_code=status.HTTP_202_ACCEPTED)
def reconnect():
    return _dispatch("app.workers.session.reconnect", "Reconnection requested")


@router.delete("/disconnect", response_model=TaskAccepted, status_code=status.HTTP_202_ACCEPTED)
def disconnect():
    return _dispatch("app.workers.session.disconnect", "Disconnection requested")


@router.get("/status", response_model=SessionStatusResponse)
def session_status():
    return read_status()


@router.get("/qr", response_model=QrResponse)
def session_qr():
    qr = read_qr()
    if not qr:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No QR code available")
    return QrResponse(qr=qr)
