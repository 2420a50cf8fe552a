import uuid

from sqlalchemy import Column, DateTime, Text, Uuid
from sqlalchemy.sql import func

from app.database import Base


class MessageLog(Base):
    __tablename__ = "message_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    channel_user_id = Column(Text, nullable=False)
    provider_message_id = Column(Text, index=True)
    status = Column(Text, nullable=False)  # sent, failed, delivered, read
    error = Column(Text)
    message_preview = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
