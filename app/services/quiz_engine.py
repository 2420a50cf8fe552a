"""Quiz engine: start, answer, advance, complete and restart quiz sessions.

One active session per (tenant, channel-user). The session row is the only
contended resource, so every pointer move is a conditional single-row update
matching the index read at the start of the request; a concurrent delivery
that loses the race leaves no answer behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.errors import NO_QUESTIONS_CONFIGURED, STALE_SESSION
from app.logging_config import get_logger, tenant_logger
from app.models import QuizQuestion, QuizSession, QuizTaker, TenantChannelConfig
from app.services import question_service, session_service
from app.services.messages import get_message
from app.services.normalizer_service import InboundMessage
from app.services.quiz_state import (
    PARTICIPATION_POINTS,
    QuestionType,
    TakerStatus,
    complete_taker,
    profile_tag_for_score,
    start_taker,
)
from app.services.router_service import is_quiz_trigger

logger = get_logger("quiz_engine")

BOOLEAN_TRUE = {"true", "vrai", "yes", "oui"}
BOOLEAN_FALSE = {"false", "faux", "no", "non"}
BOOLEAN_TOKENS = BOOLEAN_TRUE | BOOLEAN_FALSE
SKIP_TOKENS = {"skip", "passer"}


@dataclass
class QuizOutcome:
    action: str  # started, answered, completed, invalid_answer, unavailable, stale
    reply: Optional[str] = None
    session_id: Optional[UUID] = None
    error_code: Optional[str] = None


def _normalize_answer(text: str | None) -> str:
    return " ".join((text or "").casefold().split()).strip(" .!?")


def question_type_of(question: QuizQuestion) -> QuestionType:
    try:
        return QuestionType(question.question_type or QuestionType.QUIZ.value)
    except ValueError:
        return QuestionType.QUIZ


def _is_capture_question(question: QuizQuestion) -> bool:
    return question_type_of(question) is not QuestionType.QUIZ


def _is_boolean_question(question: QuizQuestion) -> bool:
    if _is_capture_question(question) or question.options:
        return False
    return _normalize_answer(question.correct_answer) in BOOLEAN_TOKENS


def interpret_answer(question: QuizQuestion, text: str) -> Optional[str]:
    """Map raw text onto the question's expected answer shape, or None if it doesn't fit."""
    normalized = _normalize_answer(text)
    if not normalized:
        return None

    options = list(question.options or [])
    if _is_capture_question(question):
        if normalized in SKIP_TOKENS:
            return None
        # Listed options are suggestions; own words are accepted too.
        if normalized.isdigit() and 1 <= int(normalized) <= len(options):
            return options[int(normalized) - 1]
        for option in options:
            if _normalize_answer(option) == normalized:
                return option
        return text.strip()

    if options:
        if normalized.isdigit():
            number = int(normalized)
            return options[number - 1] if 1 <= number <= len(options) else None
        for option in options:
            if _normalize_answer(option) == normalized:
                return option
        if len(normalized) == 1 and "a" <= normalized <= "z":
            position = ord(normalized) - ord("a")
            return options[position] if position < len(options) else None
        return None

    if _is_boolean_question(question):
        if normalized in BOOLEAN_TRUE:
            return "true"
        if normalized in BOOLEAN_FALSE:
            return "false"
        return None

    return text.strip()


def is_correct_answer(question: QuizQuestion, answer: str) -> bool:
    expected = _normalize_answer(question.correct_answer)
    if not expected:
        return False
    given = _normalize_answer(answer)

    options = list(question.options or [])
    if options:
        if given == expected:
            return True
        # correct_answer may be stored as the 1-based option number
        if expected.isdigit():
            number = int(expected)
            return 1 <= number <= len(options) and _normalize_answer(options[number - 1]) == given
        return False

    if expected in BOOLEAN_TOKENS:
        return (expected in BOOLEAN_TRUE) == (given in BOOLEAN_TRUE)

    return given == expected


def _display_correct_answer(question: QuizQuestion, language: str) -> str:
    expected = _normalize_answer(question.correct_answer)
    options = list(question.options or [])
    if options and expected.isdigit() and 1 <= int(expected) <= len(options):
        return options[int(expected) - 1]
    if expected in BOOLEAN_TOKENS:
        return get_message("true" if expected in BOOLEAN_TRUE else "false", language)
    return question.correct_answer or ""


def format_question(question: QuizQuestion, position: int, total: int, language: str) -> str:
    lines = [get_message("question_header", language, position=position, total=total), "", question.text]

    options = list(question.options or [])
    question_type = question_type_of(question)
    if question_type is QuestionType.PERSONAL and not options:
        lines.append("")
        lines.append(get_message("personal_hint", language))
    elif options:
        lines.append("")
        lines.extend(f"{number}. {option}" for number, option in enumerate(options, start=1))
        lines.append("")
        lines.append(get_message("options_hint", language))
    elif _is_boolean_question(question):
        lines.append("")
        lines.append(get_message("boolean_hint", language))
    else:
        lines.append("")
        lines.append(get_message("free_text_hint", language))

    points = PARTICIPATION_POINTS.get(question_type, question.points)
    if points:
        lines.append(get_message("points_hint", language, points=points))
    return "\n".join(lines)


def score_answer(question: QuizQuestion, answer: str, language: str) -> tuple[bool, int, str]:
    """(is_correct, points_awarded, feedback) for one interpreted answer."""
    question_type = question_type_of(question)
    if question_type in PARTICIPATION_POINTS:
        points = PARTICIPATION_POINTS[question_type]
        return True, points, get_message("answer_recorded", language, points=points)

    if is_correct_answer(question, answer):
        points = int(question.points or 0)
        return True, points, get_message("correct", language, points=points)
    if question.correct_answer:
        return False, 0, get_message("incorrect", language, answer=_display_correct_answer(question, language))
    return False, 0, get_message("incorrect_no_answer", language)


def _capture_answer(taker: QuizTaker, question: QuizQuestion, answer: str) -> None:
    # Reassign the dicts so the JSON columns are flagged dirty.
    question_type = question_type_of(question)
    if question_type is QuestionType.PERSONAL:
        taker.profile = {**(taker.profile or {}), question.text: answer}
    elif question_type is QuestionType.PREFERENCE:
        taker.preferences = {**(taker.preferences or {}), question.text: answer}


def _render_question(db: Session, tenant: TenantChannelConfig, question: QuizQuestion) -> str:
    position, total = question_service.get_question_position(db, tenant.tenant_id, question.order_index)
    return format_question(question, position, total, tenant.language)


def start_quiz(db: Session, tenant: TenantChannelConfig, channel_user_id: str) -> QuizOutcome:
    """Start (or restart) the quiz for a channel-user."""
    log = tenant_logger(logger, tenant.tenant_id, channel_user_id)

    first_question = question_service.get_first_question(db, tenant.tenant_id)
    if first_question is None:
        log.warning("Quiz requested but no questions configured")
        return QuizOutcome(
            action="unavailable",
            reply=get_message("quiz_unavailable", tenant.language),
            error_code=NO_QUESTIONS_CONFIGURED,
        )

    taker = session_service.get_or_create_taker(db, tenant.tenant_id, channel_user_id)

    active = session_service.get_active_session(db, tenant.tenant_id, channel_user_id)
    if active is not None:
        session_service.end_session_for_restart(db, active)

    taker.status = start_taker(TakerStatus(taker.status)).value
    taker.current_step = 0
    taker.score = 0
    taker.updated_at = datetime.now(timezone.utc)

    session = session_service.create_session(db, taker, first_question.order_index)
    log.info(
        "Quiz session started",
        context={"session_id": str(session.id), "restart": active is not None},
    )

    reply = "\n\n".join([get_message("welcome", tenant.language), _render_question(db, tenant, first_question)])
    return QuizOutcome(action="started", reply=reply, session_id=session.id)


def submit_answer(
    db: Session,
    tenant: TenantChannelConfig,
    session: QuizSession,
    question: QuizQuestion,
    answer: str,
) -> QuizOutcome:
    """Score one answer and advance or complete the session."""
    log = tenant_logger(logger, tenant.tenant_id, session.channel_user_id)
    expected_index = session.current_question_index

    correct, points, feedback = score_answer(question, answer, tenant.language)

    taker = session.taker
    next_question = question_service.get_next_question(db, tenant.tenant_id, question.order_index)

    if next_question is not None:
        if not session_service.advance_session(db, session, expected_index, next_question.order_index):
            log.info("Session moved concurrently, answer skipped", context={"session_id": str(session.id)})
            return QuizOutcome(action="stale", session_id=session.id, error_code=STALE_SESSION)

        session_service.record_answer(db, session, question.id, answer, correct, points)
        _capture_answer(taker, question, answer)
        taker.current_step += 1
        taker.score += points
        taker.updated_at = datetime.now(timezone.utc)
        db.flush()

        reply = "\n\n".join([feedback, _render_question(db, tenant, next_question)])
        return QuizOutcome(action="answered", reply=reply, session_id=session.id)

    total = session_service.sum_session_points(db, session.id) + points
    if not session_service.finish_session(db, session, expected_index, total):
        log.info("Session moved concurrently, completion skipped", context={"session_id": str(session.id)})
        return QuizOutcome(action="stale", session_id=session.id, error_code=STALE_SESSION)

    session_service.record_answer(db, session, question.id, answer, correct, points)
    _capture_answer(taker, question, answer)
    taker.status = complete_taker(TakerStatus(taker.status)).value
    taker.current_step += 1
    taker.score = total
    taker.profile_tag = profile_tag_for_score(total).value
    taker.updated_at = datetime.now(timezone.utc)
    db.flush()

    log.info("Quiz completed", context={"session_id": str(session.id), "score": total})
    reply = "\n\n".join(
        [
            feedback,
            get_message("completed", tenant.language, score=total, profile=taker.profile_tag.upper()),
        ]
    )
    return QuizOutcome(action="completed", reply=reply, session_id=session.id)


def handle_quiz_message(
    db: Session,
    tenant: TenantChannelConfig,
    message: InboundMessage,
    session: Optional[QuizSession] = None,
) -> QuizOutcome:
    """Entry point for every message the router sends to the quiz.

    With no active session the message is a start trigger. With one, a text
    that fits the current question is an answer; a start trigger that is not a
    valid answer restarts; anything else re-sends the current question.
    """
    if session is None:
        return start_quiz(db, tenant, message.channel_user_id)

    question = question_service.get_question_at(db, tenant.tenant_id, session.current_question_index)
    if question is None:
        # Catalog changed under the session; continue from the next question that still exists.
        question = question_service.get_next_question(db, tenant.tenant_id, session.current_question_index)
        if question is None:
            return start_quiz(db, tenant, message.channel_user_id)
        if not session_service.advance_session(
            db, session, session.current_question_index, question.order_index, count_answer=False
        ):
            return QuizOutcome(action="stale", session_id=session.id, error_code=STALE_SESSION)

    answer = interpret_answer(question, message.text)
    if answer is None:
        if is_quiz_trigger(message.text):
            return start_quiz(db, tenant, message.channel_user_id)
        return QuizOutcome(
            action="invalid_answer",
            reply=_render_question(db, tenant, question),
            session_id=session.id,
        )

    return submit_answer(db, tenant, session, question, answer)

