"""Error taxonomy for inbound webhook processing.

Only payload parsing uses an exception (``MalformedPayload``). Every other
failure travels as a ``Result`` carrying one of the codes below so callers
decide how to degrade instead of relying on a throw to short-circuit.
"""


class MalformedPayload(Exception):
    """Webhook body is JSON but not a shape we know how to read."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Malformed webhook payload: {reason}")


TENANT_NOT_FOUND = "tenant_not_found"
NO_QUESTIONS_CONFIGURED = "no_questions_configured"
AI_PROVIDER_TIMEOUT = "ai_timeout"
AI_PROVIDER_ERROR = "ai_error"
AI_MODEL_DECOMMISSIONED = "ai_model_decommissioned"
DELIVERY_FAILURE = "delivery_failed"
DUPLICATE_DELIVERY = "duplicate_delivery"
STALE_SESSION = "stale_session"
CONCURRENT_START = "concurrent_start"
DB_ERROR = "db_error"
