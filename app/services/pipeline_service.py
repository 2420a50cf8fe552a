"""Per-message processing: tenant → dedupe → route → quiz or fallback → log → deliver.

Both webhook shapes end up here after normalization, so routing decisions
live in exactly one place. Each message is its own unit of work: the
conversation log and any quiz mutation are committed before the reply is
sent, and a failure in one message never affects the others in the batch.
"""

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import CONCURRENT_START, DB_ERROR, DUPLICATE_DELIVERY
from app.logging_config import get_logger, tenant_logger
from app.models import TenantChannelConfig
from app.services import conversation_service, session_service, tenant_service
from app.services.delivery_service import send_reply
from app.services.fallback_service import generate_fallback_reply
from app.services.llm import LLMProvider
from app.services.messages import get_message
from app.services.normalizer_service import InboundMessage, NormalizedPayload
from app.services.quiz_engine import handle_quiz_message
from app.services.router_service import Route, route
from app.services.status_service import apply_status_updates

logger = get_logger("pipeline")


@dataclass
class MessageOutcome:
    status: str  # processed, duplicate, tenant_not_found, stale, concurrent_start, failed
    classification: Optional[str] = None
    reply: Optional[str] = None
    error_code: Optional[str] = None
    delivered: bool = False


@dataclass
class PipelineReport:
    processed: int = 0
    duplicates: int = 0
    dropped: int = 0
    failed: int = 0
    tenant_not_found: int = 0
    statuses_applied: int = 0
    outcomes: list[MessageOutcome] = field(default_factory=list)


def _log_apology(
    db: Session,
    tenant: TenantChannelConfig,
    message: InboundMessage,
    classification: str,
    reply: str,
) -> None:
    """Re-record the exchange after a rollback so the log keeps both sides."""
    try:
        conversation_service.log_inbound_message(db, tenant.tenant_id, message, classification)
        conversation_service.log_bot_message(db, tenant.tenant_id, message.channel_user_id, reply, classification)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Could not record failed exchange",
            extra={"context": {"tenant_id": str(tenant.tenant_id), "error": str(exc)}},
        )


def process_inbound_message(
    db: Session,
    message: InboundMessage,
    provider: Optional[LLMProvider] = None,
) -> MessageOutcome:
    tenant_result = tenant_service.resolve_tenant(db, message.channel_id)
    if not tenant_result.ok:
        logger.warning(
            "Message dropped: tenant not resolved",
            extra={"context": {"channel_id": message.channel_id, "error_code": tenant_result.error_code}},
        )
        return MessageOutcome(status="tenant_not_found", error_code=tenant_result.error_code)

    tenant = tenant_result.value
    log = tenant_logger(logger, tenant.tenant_id, message.channel_user_id)

    if conversation_service.is_duplicate_delivery(db, tenant.tenant_id, message.provider_message_id):
        log.info("Duplicate delivery skipped", context={"provider_message_id": message.provider_message_id})
        return MessageOutcome(status="duplicate", error_code=DUPLICATE_DELIVERY)

    session = session_service.get_active_session(db, tenant.tenant_id, message.channel_user_id)
    decision = route(message.text, session is not None)
    classification = decision.value

    try:
        conversation_service.log_inbound_message(db, tenant.tenant_id, message, classification)
    except IntegrityError:
        db.rollback()
        log.info("Duplicate delivery lost insert race", context={"provider_message_id": message.provider_message_id})
        return MessageOutcome(status="duplicate", error_code=DUPLICATE_DELIVERY)

    try:
        if decision is Route.QUIZ:
            quiz_outcome = handle_quiz_message(db, tenant, message, session)
            if quiz_outcome.action == "stale":
                db.commit()
                return MessageOutcome(status="stale", classification=classification, error_code=quiz_outcome.error_code)
            reply = quiz_outcome.reply
        else:
            reply = generate_fallback_reply(
                db, tenant, message.text, provider, channel_user_id=message.channel_user_id
            ).text
    except IntegrityError:
        db.rollback()
        log.info("Concurrent quiz start lost the race")
        return MessageOutcome(status="concurrent_start", classification=classification, error_code=CONCURRENT_START)
    except Exception as exc:
        db.rollback()
        log.exception("Message processing failed", context={"error": str(exc)})
        reply = get_message("technical_error", tenant.language)
        _log_apology(db, tenant, message, classification, reply)
        delivery = send_reply(db, tenant, message.channel_user_id, reply)
        db.commit()
        return MessageOutcome(
            status="failed", classification=classification, reply=reply, error_code=DB_ERROR, delivered=delivery.ok
        )

    if not reply:
        db.commit()
        return MessageOutcome(status="processed", classification=classification)

    bot_row = conversation_service.log_bot_message(
        db, tenant.tenant_id, message.channel_user_id, reply, classification
    )
    db.commit()

    delivery = send_reply(db, tenant, message.channel_user_id, reply)
    if delivery.ok and delivery.value:
        bot_row.provider_message_id = delivery.value
    db.commit()

    log.info(
        "Message processed",
        context={"classification": classification, "delivered": delivery.ok},
    )
    return MessageOutcome(
        status="processed",
        classification=classification,
        reply=reply,
        error_code=None if delivery.ok else delivery.error_code,
        delivered=delivery.ok,
    )


def process_payload(
    db: Session,
    normalized: NormalizedPayload,
    provider: Optional[LLMProvider] = None,
) -> PipelineReport:
    """Run every message of a normalized webhook body; one failure never stops the batch."""
    report = PipelineReport(dropped=normalized.dropped)

    if normalized.statuses:
        try:
            report.statuses_applied = apply_status_updates(db, normalized.statuses)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Status update failed", extra={"context": {"error": str(exc)}})

    for message in normalized.messages:
        try:
            outcome = process_inbound_message(db, message, provider)
        except Exception as exc:
            db.rollback()
            logger.exception(
                "Unhandled error while processing message",
                extra={"context": {"channel_id": message.channel_id, "error": str(exc)}},
            )
            outcome = MessageOutcome(status="failed", error_code=DB_ERROR)

        report.outcomes.append(outcome)
        if outcome.status == "duplicate":
            report.duplicates += 1
        elif outcome.status == "tenant_not_found":
            report.tenant_not_found += 1
        elif outcome.status == "failed":
            report.failed += 1
        else:
            report.processed += 1

    return report
