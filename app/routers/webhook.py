from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from app.config import settings
from app.database import get_db
from app.errors import MalformedPayload
from app.logging_config import get_logger
from app.schemas.webhook import WebhookResponse
from app.services.normalizer_service import normalize_payload
from app.services.pipeline_service import process_payload

logger = get_logger("webhook")

router = APIRouter()


@router.get("/webhook")
async def verify_webhook(request: Request):
    """Provider subscription handshake: echo hub.challenge when the token matches."""
    params = request.query_params
    mode = params.get("hub.mode")
    token = params.get("hub.verify_token")
    challenge = params.get("hub.challenge")

    if not mode or not token or challenge is None:
        return PlainTextResponse("Missing verification parameters", status_code=status.HTTP_400_BAD_REQUEST)

    if mode == "subscribe" and settings.webhook_verify_token and token == settings.webhook_verify_token:
        logger.info("Webhook subscription verified")
        return PlainTextResponse(challenge)

    logger.warning("Webhook verification rejected", extra={"context": {"mode": mode}})
    return PlainTextResponse("Verification failed", status_code=status.HTTP_403_FORBIDDEN)


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(request: Request, db: Session = Depends(get_db)):
    """Receive a provider delivery. JSON bodies are always acknowledged with 200."""
    try:
        payload = await request.json()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return WebhookResponse(success=True, message="Client disconnected")
    except ValueError as exc:
        raw = await request.body()
        logger.warning(
            "Webhook payload is not valid JSON",
            extra={"context": {"error": str(exc), "body_preview": raw[:200].decode("utf-8", "ignore")}},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=WebhookResponse(success=False, message="Invalid JSON payload").model_dump(),
        )

    try:
        normalized = normalize_payload(payload)
    except MalformedPayload as exc:
        logger.warning("Malformed webhook payload", extra={"context": {"reason": exc.reason}})
        return WebhookResponse(success=False, message=f"Unrecognized payload: {exc.reason}")

    report = await run_in_threadpool(process_payload, db, normalized)

    logger.info(
        "Webhook handled",
        extra={
            "context": {
                "processed": report.processed,
                "duplicates": report.duplicates,
                "dropped": report.dropped,
                "failed": report.failed,
                "tenant_not_found": report.tenant_not_found,
                "statuses": report.statuses_applied,
            }
        },
    )
    return WebhookResponse(
        success=report.failed == 0 and report.tenant_not_found == 0,
        message="ok" if report.failed == 0 and report.tenant_not_found == 0 else "partially processed",
        processed=report.processed,
        duplicates=report.duplicates,
    )
