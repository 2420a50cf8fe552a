from app.services.normalizer_service import (
    InboundMessage,
    NormalizedPayload,
    StatusUpdate,
    normalize_payload,
)
from app.services.quiz_state import (
    InvalidTransitionError,
    SessionStatus,
    TakerStatus,
    can_transition,
    transition,
)
