import uuid

from sqlalchemy import Column, DateTime, Index, Text, Uuid, text
from sqlalchemy.sql import func

from app.database import Base

INBOUND_DEDUP_WHERE = "sender = 'user' AND provider_message_id IS NOT NULL"


class ConversationMessage(Base):
    __tablename__ = "conversation_messages"
    __table_args__ = (
        Index("ix_conversation_messages_tenant_user", "tenant_id", "channel_user_id"),
        Index(
            "uq_conversation_messages_inbound_provider_id",
            "tenant_id",
            "provider_message_id",
            unique=True,
            postgresql_where=text(INBOUND_DEDUP_WHERE),
            sqlite_where=text(INBOUND_DEDUP_WHERE),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    channel_user_id = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    sender = Column(Text, nullable=False)  # user, bot
    classification = Column(Text, nullable=False)  # quiz, fallback
    provider_message_id = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
