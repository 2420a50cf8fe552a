import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, Uuid, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base

ONE_ACTIVE_SESSION_WHERE = "completion_status = 'active' AND ended_at IS NULL"


class QuizSession(Base):
    __tablename__ = "quiz_sessions"
    __table_args__ = (
        Index(
            "uq_quiz_sessions_one_active",
            "tenant_id",
            "channel_user_id",
            unique=True,
            postgresql_where=text(ONE_ACTIVE_SESSION_WHERE),
            sqlite_where=text(ONE_ACTIVE_SESSION_WHERE),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, nullable=False)
    channel_user_id = Column(Text, nullable=False)
    quiz_taker_id = Column(Uuid, ForeignKey("quiz_takers.id"), nullable=False)
    completion_status = Column(Text, nullable=False, default="active")  # active, completed, restarted
    current_question_index = Column(Integer, nullable=False, default=0)
    questions_answered = Column(Integer, nullable=False, default=0)
    engagement_score = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    ended_at = Column(DateTime(timezone=True))

    taker = relationship("QuizTaker", back_populates="sessions")
    answers = relationship("QuizAnswer", back_populates="session")
