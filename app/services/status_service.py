from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import MessageLog
from app.services.normalizer_service import StatusUpdate

logger = get_logger("status_service")


def apply_status_updates(db: Session, statuses: Iterable[StatusUpdate]) -> int:
    """Copy provider delivery receipts onto message_logs. Unknown ids are ignored."""
    updated = 0
    for status in statuses:
        rows = db.query(MessageLog).filter(MessageLog.provider_message_id == status.provider_message_id).all()
        if not rows:
            logger.debug("Status for unknown message", extra={"context": {"provider_message_id": status.provider_message_id}})
            continue
        for row in rows:
            row.status = status.status
            row.updated_at = status.timestamp or datetime.now(timezone.utc)
        updated += len(rows)
    if updated:
        db.flush()
    return updated
