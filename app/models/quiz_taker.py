import uuid

from sqlalchemy import Column, DateTime, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base, JSONType


class QuizTaker(Base):
    __tablename__ = "quiz_takers"
    __table_args__ = (UniqueConstraint("tenant_id", "channel_user_id", name="uq_quiz_takers_tenant_user"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    channel_user_id = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="not_started")  # not_started, active, completed
    current_step = Column(Integer, nullable=False, default=0)
    score = Column(Integer, nullable=False, default=0)
    profile_tag = Column(Text, nullable=False, default="discovery")  # discovery, active, vip
    profile = Column(JSONType, nullable=False, default=dict)  # answers to personal questions
    preferences = Column(JSONType, nullable=False, default=dict)  # answers to preference questions
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    sessions = relationship("QuizSession", back_populates="taker")
