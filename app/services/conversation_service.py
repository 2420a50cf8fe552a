from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models import ConversationMessage
from app.services.normalizer_service import InboundMessage


def is_duplicate_delivery(db: Session, tenant_id: UUID, provider_message_id: str | None) -> bool:
    """True when this provider message id was already logged for the tenant."""
    if not provider_message_id:
        return False
    existing = (
        db.query(ConversationMessage.id)
        .filter(
            ConversationMessage.tenant_id == tenant_id,
            ConversationMessage.sender == "user",
            ConversationMessage.provider_message_id == provider_message_id,
        )
        .first()
    )
    return existing is not None


def log_inbound_message(
    db: Session,
    tenant_id: UUID,
    message: InboundMessage,
    classification: str,
) -> ConversationMessage:
    """Append the user side. Raises IntegrityError when a concurrent delivery won the insert."""
    row = ConversationMessage(
        tenant_id=tenant_id,
        channel_user_id=message.channel_user_id,
        content=message.text,
        sender="user",
        classification=classification,
        provider_message_id=message.provider_message_id,
        created_at=message.received_at or datetime.now(timezone.utc),
    )
    db.add(row)
    db.flush()
    return row


def log_bot_message(
    db: Session,
    tenant_id: UUID,
    channel_user_id: str,
    content: str,
    classification: str,
    provider_message_id: Optional[str] = None,
) -> ConversationMessage:
    row = ConversationMessage(
        tenant_id=tenant_id,
        channel_user_id=channel_user_id,
        content=content,
        sender="bot",
        classification=classification,
        provider_message_id=provider_message_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    db.flush()
    return row


def get_conversation(db: Session, tenant_id: UUID, channel_user_id: str, limit: int = 50) -> list[ConversationMessage]:
    """Most recent messages for one channel-user, oldest first."""
    rows = (
        db.query(ConversationMessage)
        .filter(ConversationMessage.tenant_id == tenant_id, ConversationMessage.channel_user_id == channel_user_id)
        .order_by(ConversationMessage.created_at.desc())
        .limit(limit)
        .all()
    )
    return list(reversed(rows))
