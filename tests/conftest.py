import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["WEBHOOK_VERIFY_TOKEN"] = "verify-me"

from datetime import datetime, timezone  # noqa: E402
from unittest.mock import Mock, patch  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.database import Base, SessionLocal, engine, get_db  # noqa: E402
from app.models import AutoReplyRule, QuizQuestion, TenantChannelConfig  # noqa: E402
from app.services.llm import LLMResponse  # noqa: E402
from app.services.normalizer_service import InboundMessage  # noqa: E402
from app.services.result import Result  # noqa: E402


@pytest.fixture
def db():
    """SQLite in-memory session with a fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from app.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_tenant(db, channel_id="15550001111", **overrides):
    now = datetime.now(timezone.utc)
    values = {
        "tenant_id": uuid4(),
        "channel_id": channel_id,
        "access_token": f"token-{channel_id}",
        "ai_api_key": f"ai-key-{channel_id}",
        "company_name": "Acme",
        "language": "en",
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    tenant = TenantChannelConfig(**values)
    db.add(tenant)
    db.commit()
    return tenant


def make_question(db, tenant, order_index, text, correct_answer, options=None, points=10, question_type="quiz"):
    question = QuizQuestion(
        tenant_id=tenant.tenant_id,
        order_index=order_index,
        question_type=question_type,
        text=text,
        options=options or [],
        correct_answer=correct_answer,
        points=points,
    )
    db.add(question)
    db.commit()
    return question


def make_rule(db, tenant, keywords, response_text, priority=0, variables=None, is_active=True):
    rule = AutoReplyRule(
        tenant_id=tenant.tenant_id,
        trigger_keywords=keywords,
        response_text=response_text,
        variables=variables or {},
        priority=priority,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
    )
    db.add(rule)
    db.commit()
    return rule


def make_message(text, channel_user_id="33600000001", channel_id="15550001111", provider_message_id=None):
    return InboundMessage(
        channel_user_id=channel_user_id,
        channel_id=channel_id,
        text=text,
        provider_message_id=provider_message_id or f"wamid.{uuid4().hex}",
        received_at=datetime.now(timezone.utc),
    )


@pytest.fixture
def tenant(db):
    return make_tenant(db)


@pytest.fixture
def three_questions(db, tenant):
    return [
        make_question(db, tenant, 1, "Capital of France?", "Paris", options=["Paris", "Lyon", "Nice"]),
        make_question(db, tenant, 2, "The sun is a star.", "true"),
        make_question(db, tenant, 3, "2 + 2 = ?", "4", points=20),
    ]


@pytest.fixture
def outbox():
    """Capture outbound WhatsApp sends instead of calling the Graph API."""
    sent = []

    def _send_text(service, to, text):
        sent.append({"channel_id": service.channel_id, "to": to, "text": text})
        return Result.success(f"wamid.out.{len(sent)}")

    with patch("app.services.delivery_service.WhatsAppService.send_text", autospec=True, side_effect=_send_text):
        yield sent


@pytest.fixture
def fake_llm():
    provider = Mock()
    provider.generate.return_value = Result.success(LLMResponse(content="AI says hello", model="test-model"))
    with patch("app.services.fallback_service.get_llm_provider", return_value=provider):
        yield provider
