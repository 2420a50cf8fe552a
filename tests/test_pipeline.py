from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from app.models import ConversationMessage, MessageLog, QuizAnswer, QuizTaker
from app.services import conversation_service, tenant_service
from app.services.messages import get_message
from app.services.normalizer_service import NormalizedPayload, StatusUpdate
from app.services.pipeline_service import process_inbound_message, process_payload
from conftest import make_message, make_rule, make_tenant


class TestProcessInboundMessage:
    def test_fallback_reply_is_logged_and_delivered(self, db, tenant, outbox, fake_llm):
        outcome = process_inbound_message(db, make_message("Where is my order?"))

        rows = db.query(ConversationMessage).order_by(ConversationMessage.created_at).all()
        assert outcome.status == "processed"
        assert outcome.classification == "fallback"
        assert [(r.sender, r.classification) for r in rows] == [("user", "fallback"), ("bot", "fallback")]
        assert rows[1].content == "AI says hello"
        assert rows[1].provider_message_id == "wamid.out.1"
        assert outbox[0]["text"] == "AI says hello"

    def test_unknown_channel_is_dropped_silently(self, db, tenant, outbox):
        outcome = process_inbound_message(db, make_message("quiz", channel_id="000"))

        assert outcome.status == "tenant_not_found"
        assert outbox == []
        assert db.query(ConversationMessage).count() == 0

    def test_replayed_delivery_is_a_no_op(self, db, tenant, three_questions, outbox):
        process_inbound_message(db, make_message("quiz", provider_message_id="wamid.1"))
        answer = make_message("Paris", provider_message_id="wamid.2")

        first = process_inbound_message(db, answer)
        second = process_inbound_message(db, answer)

        taker = db.query(QuizTaker).one()
        assert first.status == "processed"
        assert second.status == "duplicate"
        assert db.query(QuizAnswer).count() == 1
        assert taker.score == 10
        assert len(outbox) == 2

    def test_active_session_outranks_auto_reply_rules(self, db, tenant, three_questions, outbox, fake_llm):
        make_rule(db, tenant, ["hello"], "Rule reply", priority=10)
        process_inbound_message(db, make_message("quiz"))

        outcome = process_inbound_message(db, make_message("hello"))

        assert outcome.classification == "quiz"
        assert "Capital of France?" in outcome.reply
        assert "Rule reply" not in [sent["text"] for sent in outbox]
        fake_llm.generate.assert_not_called()

    def test_replies_use_the_resolved_tenant_credentials(self, db, tenant, outbox, fake_llm):
        other = make_tenant(db, channel_id="15550002222")
        process_inbound_message(db, make_message("hi", channel_id=other.channel_id))
        assert outbox[0]["channel_id"] == "15550002222"

    def test_lost_start_race_sends_nothing(self, db, tenant, three_questions, outbox):
        error = IntegrityError("INSERT INTO quiz_sessions", {}, Exception("unique"))
        with patch("app.services.pipeline_service.handle_quiz_message", side_effect=error):
            outcome = process_inbound_message(db, make_message("quiz"))

        assert outcome.status == "concurrent_start"
        assert outbox == []

    def test_unexpected_error_sends_apology(self, db, tenant, outbox):
        with patch("app.services.pipeline_service.generate_fallback_reply", side_effect=RuntimeError("db down")):
            outcome = process_inbound_message(db, make_message("hi"))

        apology = get_message("technical_error", tenant.language)
        assert outcome.status == "failed"
        assert outbox[0]["text"] == apology
        bot = db.query(ConversationMessage).filter_by(sender="bot").one()
        assert bot.content == apology


class TestProcessPayload:
    def test_counts(self, db, tenant, outbox, fake_llm):
        first = make_message("hi", provider_message_id="wamid.a")
        normalized = NormalizedPayload(
            messages=[first, first, make_message("hi", channel_id="000")],
            dropped=2,
        )

        report = process_payload(db, normalized)

        assert report.processed == 1
        assert report.duplicates == 1
        assert report.tenant_not_found == 1
        assert report.dropped == 2

    def test_status_updates_touch_message_log(self, db, tenant, outbox, fake_llm):
        process_inbound_message(db, make_message("hi"))

        report = process_payload(
            db,
            NormalizedPayload(statuses=[StatusUpdate(provider_message_id="wamid.out.1", status="read")]),
        )

        assert report.statuses_applied == 1
        assert db.query(MessageLog).one().status == "read"

    def test_one_failure_does_not_stop_the_batch(self, db, tenant, outbox, fake_llm):
        real_resolve = tenant_service.resolve_tenant

        def _flaky_resolve(db_, channel_id):
            if channel_id == "broken":
                raise RuntimeError("connection reset")
            return real_resolve(db_, channel_id)

        messages = [make_message("hi", channel_id="broken"), make_message("hi")]
        with patch.object(tenant_service, "resolve_tenant", side_effect=_flaky_resolve):
            report = process_payload(db, NormalizedPayload(messages=messages))

        assert report.failed == 1
        assert report.processed == 1
        assert len(outbox) == 1


class TestConversationHistory:
    def test_both_sides_oldest_first(self, db, tenant, outbox, fake_llm):
        process_inbound_message(db, make_message("hi there"))

        history = conversation_service.get_conversation(db, tenant.tenant_id, "33600000001")

        assert [(row.sender, row.content) for row in history] == [("user", "hi there"), ("bot", "AI says hello")]

    def test_ai_fallback_receives_earlier_exchange(self, db, tenant, outbox, fake_llm):
        process_inbound_message(db, make_message("hi there"))

        process_inbound_message(db, make_message("what are your hours?"))

        messages = fake_llm.generate.call_args.args[0]
        assert [(m["role"], m["content"]) for m in messages[1:]] == [
            ("user", "hi there"),
            ("assistant", "AI says hello"),
            ("user", "what are your hours?"),
        ]
