from enum import Enum


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    RESTARTED = "restarted"


class TakerStatus(str, Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"


class QuestionType(str, Enum):
    QUIZ = "quiz"
    PERSONAL = "personal"
    PREFERENCE = "preference"


class ProfileTag(str, Enum):
    DISCOVERY = "discovery"
    ACTIVE = "active"
    VIP = "vip"


# Ended sessions are terminal.
SESSION_TRANSITIONS = {
    SessionStatus.ACTIVE: [SessionStatus.COMPLETED, SessionStatus.RESTARTED],
    SessionStatus.COMPLETED: [],
    SessionStatus.RESTARTED: [],
}

# A start trigger may restart from any taker state, including active.
TAKER_TRANSITIONS = {
    TakerStatus.NOT_STARTED: [TakerStatus.ACTIVE],
    TakerStatus.ACTIVE: [TakerStatus.ACTIVE, TakerStatus.COMPLETED],
    TakerStatus.COMPLETED: [TakerStatus.ACTIVE],
}

# Lead-capture questions have no right answer; any reply earns these.
PARTICIPATION_POINTS = {
    QuestionType.PERSONAL: 5,
    QuestionType.PREFERENCE: 3,
}

VIP_SCORE_THRESHOLD = 80
ACTIVE_SCORE_THRESHOLD = 40


class InvalidTransitionError(Exception):
    def __init__(self, from_state: Enum, to_state: Enum):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: Enum, to_state: Enum) -> bool:
    """Check if a session or taker transition is valid."""
    if isinstance(from_state, SessionStatus) and isinstance(to_state, SessionStatus):
        return to_state in SESSION_TRANSITIONS.get(from_state, [])
    if isinstance(from_state, TakerStatus) and isinstance(to_state, TakerStatus):
        return to_state in TAKER_TRANSITIONS.get(from_state, [])
    return False


def transition(from_state: Enum, to_state: Enum) -> Enum:
    """Perform a transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def complete_session(current: SessionStatus) -> SessionStatus:
    return transition(current, SessionStatus.COMPLETED)


def restart_session(current: SessionStatus) -> SessionStatus:
    return transition(current, SessionStatus.RESTARTED)


def start_taker(current: TakerStatus) -> TakerStatus:
    return transition(current, TakerStatus.ACTIVE)


def complete_taker(current: TakerStatus) -> TakerStatus:
    return transition(current, TakerStatus.COMPLETED)


def profile_tag_for_score(score: int) -> ProfileTag:
    if score >= VIP_SCORE_THRESHOLD:
        return ProfileTag.VIP
    if score >= ACTIVE_SCORE_THRESHOLD:
        return ProfileTag.ACTIVE
    return ProfileTag.DISCOVERY
