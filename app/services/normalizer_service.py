"""Turn heterogeneous webhook bodies into canonical inbound messages.

Two shapes are understood:

* the provider-native envelope
  ``{"entry": [{"changes": [{"value": {"metadata": {...}, "messages": [...], "statuses": [...]}}]}]}``
* a flattened body ``{"channelUserId", "channelId", "text"}`` (with the usual
  key aliases), optionally carrying ``statuses`` instead of a message.

Anything else raises ``MalformedPayload``. Messages without text (media,
reactions, system notices) are counted as dropped and never reach the router.
A message without a provider id keeps ``provider_message_id=None`` and is
not deduplicated: identical texts ("1", "quiz") are legitimate repeats.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from app.errors import MalformedPayload
from app.logging_config import get_logger

logger = get_logger("normalizer")

SENDER_KEYS = ("channelUserId", "channel_user_id", "from", "phone", "phoneNumber", "phone_number")
CHANNEL_KEYS = ("channelId", "channel_id", "phone_number_id", "phoneNumberId", "businessChannelId")
TEXT_KEYS = ("text", "message", "body", "content")
MESSAGE_ID_KEYS = ("providerMessageId", "messageId", "message_id", "id")
TIMESTAMP_KEYS = ("timestamp", "receivedAt", "t")


@dataclass
class InboundMessage:
    channel_user_id: str
    channel_id: str
    text: str
    provider_message_id: Optional[str]  # only ids the provider sent; never derived from content
    received_at: datetime


@dataclass
class StatusUpdate:
    provider_message_id: str
    status: str
    recipient_id: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class NormalizedPayload:
    messages: list[InboundMessage] = field(default_factory=list)
    statuses: list[StatusUpdate] = field(default_factory=list)
    dropped: int = 0


def _first_value(candidate: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = candidate.get(key)
        if value not in (None, ""):
            return value
    return None


def _coerce_id(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return None
    text = str(value).strip()
    return text or None


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        seconds = None
    if seconds is not None:
        if seconds > 1e11:  # milliseconds
            seconds = seconds / 1000
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _extract_provider_text(message: dict) -> str | None:
    """Text of a provider-native message item, including button/list replies."""
    text = message.get("text")
    if isinstance(text, dict):
        body = text.get("body")
        if isinstance(body, str) and body.strip():
            return body
    elif isinstance(text, str) and text.strip():
        return text

    button = message.get("button")
    if isinstance(button, dict):
        value = button.get("text") or button.get("payload")
        if isinstance(value, str) and value.strip():
            return value

    interactive = message.get("interactive")
    if isinstance(interactive, dict):
        for reply_key in ("button_reply", "list_reply"):
            reply = interactive.get(reply_key)
            if isinstance(reply, dict):
                value = reply.get("title") or reply.get("id")
                if isinstance(value, str) and value.strip():
                    return value
    return None


def _extract_flat_text(payload: dict) -> str | None:
    for key in TEXT_KEYS:
        value = payload.get(key)
        if isinstance(value, dict):
            value = value.get("body") or value.get("text")
        if isinstance(value, str) and value.strip():
            return value
    return None


def _status_from_item(item: Any) -> StatusUpdate | None:
    if not isinstance(item, dict):
        return None
    message_id = _coerce_id(item.get("id") or item.get("messageId"))
    status = item.get("status")
    if not message_id or not isinstance(status, str) or not status:
        return None
    return StatusUpdate(
        provider_message_id=message_id,
        status=status.lower(),
        recipient_id=_coerce_id(item.get("recipient_id") or item.get("recipientId")),
        timestamp=_parse_timestamp(item.get("timestamp")),
    )


def _normalize_envelope(payload: dict) -> NormalizedPayload:
    result = NormalizedPayload()
    for entry in payload["entry"]:
        if not isinstance(entry, dict) or not isinstance(entry.get("changes", []), list):
            raise MalformedPayload("entry item is not an object with a changes list")
        for change in entry.get("changes", []):
            value = change.get("value") if isinstance(change, dict) else None
            if not isinstance(value, dict):
                raise MalformedPayload("change item has no value object")

            metadata = value.get("metadata") if isinstance(value.get("metadata"), dict) else {}
            channel_id = _coerce_id(metadata.get("phone_number_id"))

            for item in value.get("statuses") or []:
                status = _status_from_item(item)
                if status:
                    result.statuses.append(status)

            for item in value.get("messages") or []:
                if not isinstance(item, dict):
                    result.dropped += 1
                    continue
                sender = _coerce_id(item.get("from"))
                text = _extract_provider_text(item)
                if not sender or not channel_id or not text:
                    result.dropped += 1
                    continue
                result.messages.append(
                    InboundMessage(
                        channel_user_id=sender,
                        channel_id=channel_id,
                        text=text.strip(),
                        provider_message_id=_coerce_id(item.get("id")),
                        received_at=_parse_timestamp(item.get("timestamp")) or datetime.now(timezone.utc),
                    )
                )
    return result


def _normalize_flat(payload: dict) -> NormalizedPayload:
    result = NormalizedPayload()

    statuses = payload.get("statuses")
    if isinstance(statuses, list):
        for item in statuses:
            status = _status_from_item(item)
            if status:
                result.statuses.append(status)

    sender = _coerce_id(_first_value(payload, SENDER_KEYS))
    channel_id = _coerce_id(_first_value(payload, CHANNEL_KEYS))
    if not sender or not channel_id:
        if isinstance(statuses, list):
            return result
        raise MalformedPayload("flattened payload needs a sender and a channel id")

    text = _extract_flat_text(payload)
    if not text:
        result.dropped += 1
        return result

    timestamp = _first_value(payload, TIMESTAMP_KEYS)
    result.messages.append(
        InboundMessage(
            channel_user_id=sender,
            channel_id=channel_id,
            text=text.strip(),
            provider_message_id=_coerce_id(_first_value(payload, MESSAGE_ID_KEYS)),
            received_at=_parse_timestamp(timestamp) or datetime.now(timezone.utc),
        )
    )
    return result


def normalize_payload(payload: Any) -> NormalizedPayload:
    """Parse a decoded webhook body. Raises MalformedPayload for unknown shapes."""
    if not isinstance(payload, dict):
        raise MalformedPayload("payload is not a JSON object")

    if isinstance(payload.get("entry"), list):
        normalized = _normalize_envelope(payload)
    elif any(key in payload for key in SENDER_KEYS + CHANNEL_KEYS) or isinstance(payload.get("statuses"), list):
        normalized = _normalize_flat(payload)
    else:
        raise MalformedPayload(f"unrecognized keys: {sorted(payload.keys())[:10]}")

    logger.debug(
        "Webhook payload normalized",
        extra={
            "context": {
                "messages": len(normalized.messages),
                "statuses": len(normalized.statuses),
                "dropped": normalized.dropped,
            }
        },
    )
    return normalized
