from datetime import datetime, timezone
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import DELIVERY_FAILURE
from app.logging_config import get_logger, tenant_logger
from app.models import MessageLog, TenantChannelConfig
from app.services.result import Result

logger = get_logger("delivery_service")

PREVIEW_LENGTH = 200


class WhatsAppService:
    """Send text messages through the WhatsApp Cloud (Graph) API."""

    def __init__(self, channel_id: str, access_token: str, timeout: Optional[float] = None):
        self.channel_id = channel_id
        self.access_token = access_token
        self.timeout = timeout if timeout is not None else settings.delivery_timeout_seconds
        base = settings.graph_api_url.rstrip("/")
        self.url = f"{base}/{settings.graph_api_version}/{channel_id}/messages"

    def _make_request(self, data: dict) -> Result[dict]:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {self.access_token}",
                        "Content-Type": "application/json",
                    },
                    json=data,
                )
        except httpx.HTTPError as e:
            logger.error(f"Graph API transport error: {e}")
            return Result.failure(f"Graph API transport error: {e}", DELIVERY_FAILURE)

        if not 200 <= response.status_code < 300:
            return Result.failure(
                f"Graph API error: {response.status_code} - {response.text[:300]}",
                DELIVERY_FAILURE,
            )
        try:
            return Result.success(response.json())
        except ValueError:
            return Result.success({})

    def send_text(self, to: str, text: str) -> Result[str]:
        """Send a text message. On success the value is the provider message id."""
        if not to or not text:
            return Result.failure("Recipient and text are required", DELIVERY_FAILURE)

        result = self._make_request(
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "text",
                "text": {"body": text},
            }
        )
        if not result.ok:
            return Result.failure(result.error, result.error_code)

        messages = result.value.get("messages") or []
        message_id = ""
        if messages and isinstance(messages[0], dict):
            message_id = str(messages[0].get("id") or "")
        return Result.success(message_id)


def send_reply(db: Session, tenant: TenantChannelConfig, to: str, text: str) -> Result[str]:
    """Deliver one reply for a tenant and record the attempt in message_logs.

    No synchronous retry; failures are logged and returned, never raised.
    """
    log = tenant_logger(logger, tenant.tenant_id, to)
    service = WhatsAppService(tenant.channel_id, tenant.access_token)
    result = service.send_text(to, text)

    now = datetime.now(timezone.utc)
    db.add(
        MessageLog(
            tenant_id=tenant.tenant_id,
            channel_user_id=to,
            provider_message_id=result.value or None,
            status="sent" if result.ok else "failed",
            error=None if result.ok else result.error,
            message_preview=text[:PREVIEW_LENGTH],
            created_at=now,
            updated_at=now,
        )
    )
    db.flush()

    if result.ok:
        log.info("Reply delivered", context={"provider_message_id": result.value})
    else:
        log.error("Reply delivery failed", context={"error": result.error, "error_code": result.error_code})
    return result
