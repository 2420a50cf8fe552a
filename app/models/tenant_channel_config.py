import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, Text, Uuid, text
from sqlalchemy.sql import func

from app.database import Base


class TenantChannelConfig(Base):
    __tablename__ = "tenant_channel_configs"
    __table_args__ = (
        Index(
            "uq_tenant_channel_configs_active_channel",
            "channel_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False, index=True)
    channel_id = Column(Text, nullable=False)  # provider business-channel id (phone_number_id)
    access_token = Column(Text, nullable=False)
    ai_api_key = Column(Text)
    ai_model = Column(Text)
    system_prompt = Column(Text)
    company_name = Column(Text)
    language = Column(Text, nullable=False, default="fr")  # fr, en
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
