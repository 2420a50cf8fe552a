"""Read-only access to a tenant's quiz catalog.

Order is defined by ``order_index`` and may have gaps: "next" is always the
smallest index strictly greater than the current one.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import QuizQuestion


def get_first_question(db: Session, tenant_id: UUID) -> Optional[QuizQuestion]:
    # Existence is decided from a real row sample, not a count.
    rows = (
        db.query(QuizQuestion)
        .filter(QuizQuestion.tenant_id == tenant_id)
        .order_by(QuizQuestion.order_index.asc())
        .limit(1)
        .all()
    )
    return rows[0] if len(rows) > 0 else None


def get_question_at(db: Session, tenant_id: UUID, order_index: int) -> Optional[QuizQuestion]:
    return (
        db.query(QuizQuestion)
        .filter(QuizQuestion.tenant_id == tenant_id, QuizQuestion.order_index == order_index)
        .first()
    )


def get_next_question(db: Session, tenant_id: UUID, after_index: int) -> Optional[QuizQuestion]:
    rows = (
        db.query(QuizQuestion)
        .filter(QuizQuestion.tenant_id == tenant_id, QuizQuestion.order_index > after_index)
        .order_by(QuizQuestion.order_index.asc())
        .limit(1)
        .all()
    )
    return rows[0] if rows else None


def get_question_position(db: Session, tenant_id: UUID, order_index: int) -> tuple[int, int]:
    """(1-based position, total) for display only."""
    position = (
        db.query(func.count(QuizQuestion.id))
        .filter(QuizQuestion.tenant_id == tenant_id, QuizQuestion.order_index <= order_index)
        .scalar()
    )
    total = db.query(func.count(QuizQuestion.id)).filter(QuizQuestion.tenant_id == tenant_id).scalar()
    return int(position or 0), int(total or 0)
