import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Text, Uuid
from sqlalchemy.sql import func

from app.database import Base, JSONType


class AutoReplyRule(Base):
    __tablename__ = "auto_reply_rules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    trigger_keywords = Column(JSONType, nullable=False, default=list)
    response_text = Column(Text, nullable=False)
    variables = Column(JSONType, nullable=False, default=dict)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
