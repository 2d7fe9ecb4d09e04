import hmac
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

import db
from app.api import queue as queue_api
from app.api import whatsapp as whatsapp_api
from app.celery_app import celery_app
from app.services.chat_transport import translate_gateway_event
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Click Saúde reminders")
app.include_router(queue_api.router, prefix="/v1")
app.include_router(whatsapp_api.router, prefix="/v1")


@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}


# --------------------------------------------
# Gateway webhook
# --------------------------------------------
@app.post("/v1/whatsapp/webhook", response_class=PlainTextResponse)
async def whatsapp_webhook(request: Request):
    secret = settings.WHATSAPP_WEBHOOK_SECRET
    if secret:  # dev mode: skip verification when no secret is configured
        token = request.headers.get("x-webhook-token", "")
        if not hmac.compare_digest(token, secret):
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Bad webhook token")

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid payload")

    session_name = body.get("session")
    if session_name and session_name != settings.WHATSAPP_SESSION_NAME:
        return PlainTextResponse("IGNORED")

    payload = body.get("payload") or {}
    if not isinstance(payload, dict):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid payload")
    event = translate_gateway_event(str(body.get("event", "")), payload)
    if event is None:
        logger.debug("Ignoring gateway event %s", body.get("event"))
        return PlainTextResponse("IGNORED")

    celery_app.send_task("app.workers.inbound.handle_event", args=[event, payload], queue="inbound")
    logger.info("Forwarded gateway event %s to worker", event)
    return PlainTextResponse("OK")
