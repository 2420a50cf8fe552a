from app.schemas.webhook import WebhookResponse

__all__ = ["WebhookResponse"]
