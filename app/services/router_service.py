"""Pick the handler for an inbound message.

Fixed priority, evaluated top to bottom:

1. an active quiz session takes the message, whatever it says;
2. a quiz trigger keyword (English or French) starts a quiz;
3. everything else goes to the fallback responder.

``route`` is pure. The caller performs the single active-session lookup and
passes the answer in.
"""

from enum import Enum

QUIZ_TRIGGER_KEYWORDS = (
    # English
    "quiz",
    "game",
    "test",
    "play",
    "contest",
    "challenge",
    "question",
    # French
    "jeu",
    "jouer",
    "concours",
    "défi",
    "defi",
    "questionnaire",
)


class Route(str, Enum):
    QUIZ = "quiz"
    FALLBACK = "fallback"


def is_quiz_trigger(text: str | None) -> bool:
    if not text:
        return False
    lowered = text.casefold()
    return any(keyword in lowered for keyword in QUIZ_TRIGGER_KEYWORDS)


def route(text: str | None, has_active_session: bool) -> Route:
    if has_active_session:
        return Route.QUIZ
    if is_quiz_trigger(text):
        return Route.QUIZ
    return Route.FALLBACK
