from sqlalchemy.orm import Session

from app.errors import TENANT_NOT_FOUND
from app.logging_config import get_logger
from app.models import TenantChannelConfig
from app.services.result import Result

logger = get_logger("tenant_service")


def resolve_tenant(db: Session, channel_id: str | None) -> Result[TenantChannelConfig]:
    """Find the active tenant config for a provider business-channel id.

    The lookup key is the channel the message was sent *to*, never the
    sender's id. There is no fallback to another tenant's configuration:
    without a match there are no credentials to reply with.
    """
    if not channel_id:
        return Result.failure("Missing channel id", TENANT_NOT_FOUND)

    config = (
        db.query(TenantChannelConfig)
        .filter(TenantChannelConfig.channel_id == channel_id, TenantChannelConfig.is_active.is_(True))
        .first()
    )
    if not config:
        logger.warning("No active tenant for channel", extra={"context": {"channel_id": channel_id}})
        return Result.failure(f"No active tenant config for channel {channel_id}", TENANT_NOT_FOUND)

    return Result.success(config)
