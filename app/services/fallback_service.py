"""Conversational fallback: tenant auto-reply rules first, then the AI provider.

Rules are checked by priority, highest first, and the first match wins. The AI
step only runs when no rule matched. Every AI failure degrades to a fixed,
tenant-language text; nothing here raises into the webhook.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.errors import AI_MODEL_DECOMMISSIONED, AI_PROVIDER_ERROR
from app.logging_config import get_logger, tenant_logger
from app.models import AutoReplyRule, TenantChannelConfig
from app.services import conversation_service
from app.services.llm import LLMProvider, OpenAICompatibleProvider
from app.services.messages import get_message
from app.services.result import Result

logger = get_logger("fallback_service")

CATCH_ALL_KEYWORD = "*"
TEMPLATE_VARIABLE = re.compile(r"\{\{\s*(\w+)\s*\}\}")

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional customer service assistant for {company}. "
    "Help customers with their questions and requests, be courteous and solution-oriented. "
    "Answer in the customer's language; default to {language_name}. "
    "Keep answers short: the customer is writing from WhatsApp."
)
LANGUAGE_NAMES = {"fr": "French", "en": "English"}
HISTORY_ROLES = {"user": "user", "bot": "assistant"}


@dataclass
class FallbackReply:
    text: str
    source: str  # rule, ai, default
    rule_id: Optional[UUID] = None
    error_code: Optional[str] = None


def get_active_rules(db: Session, tenant_id: UUID) -> list[AutoReplyRule]:
    return (
        db.query(AutoReplyRule)
        .filter(AutoReplyRule.tenant_id == tenant_id, AutoReplyRule.is_active.is_(True))
        .order_by(AutoReplyRule.priority.desc(), AutoReplyRule.created_at.asc())
        .all()
    )


def rule_matches(rule: AutoReplyRule, text: str) -> bool:
    lowered = (text or "").casefold()
    for keyword in rule.trigger_keywords or []:
        if not isinstance(keyword, str) or not keyword.strip():
            continue
        if keyword.strip() == CATCH_ALL_KEYWORD:
            return True
        if keyword.casefold().strip() in lowered:
            return True
    return False


def match_auto_reply(rules: Iterable[AutoReplyRule], text: str) -> Optional[AutoReplyRule]:
    """First matching rule, highest priority first."""
    ordered = sorted(rules, key=lambda rule: rule.priority or 0, reverse=True)
    for rule in ordered:
        if rule_matches(rule, text):
            return rule
    return None


def render_response(template: str, tenant: TenantChannelConfig, variables: Optional[dict] = None) -> str:
    now = datetime.now()
    values = {
        "date": now.strftime("%d/%m/%Y"),
        "time": now.strftime("%H:%M"),
        "company": tenant.company_name or "",
    }
    values.update({str(key): str(value) for key, value in (variables or {}).items()})

    def _replace(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    return TEMPLATE_VARIABLE.sub(_replace, template)


def get_conversation_history(
    db: Session, tenant_id: UUID, channel_user_id: str, limit: Optional[int] = None
) -> list[dict]:
    """Recent exchange as chat messages, oldest first."""
    rows = conversation_service.get_conversation(
        db, tenant_id, channel_user_id, limit=limit or settings.ai_history_messages
    )
    return [
        {"role": HISTORY_ROLES[row.sender], "content": row.content}
        for row in rows
        if row.sender in HISTORY_ROLES and row.content
    ]


def get_llm_provider(tenant: TenantChannelConfig) -> LLMProvider:
    return OpenAICompatibleProvider(
        api_key=tenant.ai_api_key,
        base_url=settings.ai_base_url,
        default_model=settings.ai_default_model,
    )


def build_system_prompt(tenant: TenantChannelConfig) -> str:
    if tenant.system_prompt:
        return tenant.system_prompt
    language = (tenant.language or "fr").lower()
    return DEFAULT_SYSTEM_PROMPT.format(
        company=tenant.company_name or "our company",
        language_name=LANGUAGE_NAMES.get(language, "French"),
    )


def complete_with_ai(
    tenant: TenantChannelConfig,
    text: str,
    provider: Optional[LLMProvider] = None,
    history: Optional[list[dict]] = None,
) -> Result[str]:
    """Ask the AI provider for a reply. At most one retry, only for a retired model."""
    if not tenant.ai_api_key:
        return Result.failure("AI API key not configured for tenant", AI_PROVIDER_ERROR)

    provider = provider or get_llm_provider(tenant)
    messages = [{"role": "system", "content": build_system_prompt(tenant)}]
    messages.extend(history or [])
    # The inbound row is already logged, so history usually ends with this text.
    if not history or history[-1] != {"role": "user", "content": text}:
        messages.append({"role": "user", "content": text})
    model = tenant.ai_model or settings.ai_default_model

    result = provider.generate(
        messages,
        model=model,
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_max_tokens,
        timeout_seconds=settings.ai_timeout_seconds,
    )
    if result.failed_with(AI_MODEL_DECOMMISSIONED) and model != settings.ai_default_model:
        logger.warning(
            "Tenant model unavailable, retrying with default model",
            extra={"context": {"tenant_id": str(tenant.tenant_id), "model": model}},
        )
        result = provider.generate(
            messages,
            model=settings.ai_default_model,
            temperature=settings.ai_temperature,
            max_tokens=settings.ai_max_tokens,
            timeout_seconds=settings.ai_timeout_seconds,
        )

    if not result.ok:
        return Result.failure(result.error or "AI provider failed", result.error_code or AI_PROVIDER_ERROR)

    content = (result.value.content or "").strip()
    if not content:
        return Result.failure("AI provider returned empty content", AI_PROVIDER_ERROR)
    return Result.success(content)


def generate_fallback_reply(
    db: Session,
    tenant: TenantChannelConfig,
    text: str,
    provider: Optional[LLMProvider] = None,
    channel_user_id: Optional[str] = None,
) -> FallbackReply:
    log = tenant_logger(logger, tenant.tenant_id)

    rule = match_auto_reply(get_active_rules(db, tenant.tenant_id), text)
    if rule is not None:
        log.info("Auto-reply rule matched", context={"rule_id": str(rule.id), "priority": rule.priority})
        return FallbackReply(
            text=render_response(rule.response_text, tenant, rule.variables),
            source="rule",
            rule_id=rule.id,
        )

    history = get_conversation_history(db, tenant.tenant_id, channel_user_id) if channel_user_id else None
    result = complete_with_ai(tenant, text, provider, history)
    if result.ok:
        return FallbackReply(text=result.value, source="ai")

    log.warning("AI fallback failed", context={"error": result.error, "error_code": result.error_code})
    return FallbackReply(
        text=get_message("ai_unavailable", tenant.language),
        source="default",
        error_code=result.error_code,
    )
