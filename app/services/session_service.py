from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import QuizAnswer, QuizSession, QuizTaker
from app.services.quiz_state import (
    SessionStatus,
    TakerStatus,
    complete_session,
    restart_session,
)

logger = get_logger("session_service")


def get_active_session(db: Session, tenant_id: UUID, channel_user_id: str) -> Optional[QuizSession]:
    return (
        db.query(QuizSession)
        .filter(
            QuizSession.tenant_id == tenant_id,
            QuizSession.channel_user_id == channel_user_id,
            QuizSession.completion_status == SessionStatus.ACTIVE.value,
            QuizSession.ended_at.is_(None),
        )
        .order_by(QuizSession.started_at.desc())
        .first()
    )


def has_active_session(db: Session, tenant_id: UUID, channel_user_id: str) -> bool:
    return get_active_session(db, tenant_id, channel_user_id) is not None


def get_taker(db: Session, tenant_id: UUID, channel_user_id: str) -> Optional[QuizTaker]:
    return (
        db.query(QuizTaker)
        .filter(QuizTaker.tenant_id == tenant_id, QuizTaker.channel_user_id == channel_user_id)
        .first()
    )


def get_or_create_taker(db: Session, tenant_id: UUID, channel_user_id: str) -> QuizTaker:
    """Find quiz taker by channel-user id or create a not_started one."""
    taker = get_taker(db, tenant_id, channel_user_id)
    if not taker:
        now = datetime.now(timezone.utc)
        taker = QuizTaker(
            tenant_id=tenant_id,
            channel_user_id=channel_user_id,
            status=TakerStatus.NOT_STARTED.value,
            current_step=0,
            score=0,
            created_at=now,
            updated_at=now,
        )
        db.add(taker)
        db.flush()
    return taker


def end_session_for_restart(db: Session, session: QuizSession) -> None:
    session.completion_status = restart_session(SessionStatus(session.completion_status)).value
    session.ended_at = datetime.now(timezone.utc)
    db.flush()
    logger.info(
        "Quiz session restarted",
        extra={"context": {"session_id": str(session.id), "tenant_id": str(session.tenant_id)}},
    )


def create_session(db: Session, taker: QuizTaker, first_index: int) -> QuizSession:
    """Open a new active session. The partial unique index rejects a second one."""
    session = QuizSession(
        tenant_id=taker.tenant_id,
        channel_user_id=taker.channel_user_id,
        quiz_taker_id=taker.id,
        completion_status=SessionStatus.ACTIVE.value,
        current_question_index=first_index,
        questions_answered=0,
        engagement_score=0,
        started_at=datetime.now(timezone.utc),
    )
    db.add(session)
    db.flush()
    return session


def advance_session(
    db: Session,
    session: QuizSession,
    expected_index: int,
    next_index: int,
    count_answer: bool = True,
) -> bool:
    """Move the pointer forward if nobody else moved it since we read it."""
    answered = QuizSession.questions_answered + 1 if count_answer else QuizSession.questions_answered
    updated = (
        db.query(QuizSession)
        .filter(
            QuizSession.id == session.id,
            QuizSession.completion_status == SessionStatus.ACTIVE.value,
            QuizSession.ended_at.is_(None),
            QuizSession.current_question_index == expected_index,
        )
        .update(
            {
                QuizSession.current_question_index: next_index,
                QuizSession.questions_answered: answered,
            },
            synchronize_session=False,
        )
    )
    if updated:
        db.refresh(session)
    return updated == 1


def finish_session(db: Session, session: QuizSession, expected_index: int, engagement_score: int) -> bool:
    """Active → completed, guarded the same way as advance_session."""
    status = complete_session(SessionStatus(session.completion_status))
    updated = (
        db.query(QuizSession)
        .filter(
            QuizSession.id == session.id,
            QuizSession.completion_status == SessionStatus.ACTIVE.value,
            QuizSession.ended_at.is_(None),
            QuizSession.current_question_index == expected_index,
        )
        .update(
            {
                QuizSession.completion_status: status.value,
                QuizSession.ended_at: datetime.now(timezone.utc),
                QuizSession.engagement_score: engagement_score,
                QuizSession.questions_answered: QuizSession.questions_answered + 1,
            },
            synchronize_session=False,
        )
    )
    if updated:
        db.refresh(session)
    return updated == 1


def record_answer(
    db: Session,
    session: QuizSession,
    question_id: UUID,
    answer_text: str,
    is_correct: bool,
    points_awarded: int,
) -> QuizAnswer:
    answer = QuizAnswer(
        tenant_id=session.tenant_id,
        quiz_taker_id=session.quiz_taker_id,
        session_id=session.id,
        question_id=question_id,
        answer_text=answer_text,
        is_correct=is_correct,
        points_awarded=points_awarded,
        created_at=datetime.now(timezone.utc),
    )
    db.add(answer)
    db.flush()
    return answer


def sum_session_points(db: Session, session_id: UUID) -> int:
    total = (
        db.query(func.coalesce(func.sum(QuizAnswer.points_awarded), 0))
        .filter(QuizAnswer.session_id == session_id)
        .scalar()
    )
    return int(total or 0)
