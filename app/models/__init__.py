from app.models.auto_reply_rule import AutoReplyRule
from app.models.conversation_message import ConversationMessage
from app.models.message_log import MessageLog
from app.models.quiz_answer import QuizAnswer
from app.models.quiz_question import QuizQuestion
from app.models.quiz_session import QuizSession
from app.models.quiz_taker import QuizTaker
from app.models.tenant_channel_config import TenantChannelConfig

__all__ = [
    "TenantChannelConfig",
    "QuizTaker",
    "QuizSession",
    "QuizQuestion",
    "QuizAnswer",
    "AutoReplyRule",
    "ConversationMessage",
    "MessageLog",
]
