from unittest.mock import Mock, patch

import httpx

from app.config import settings
from app.errors import DELIVERY_FAILURE
from app.models import MessageLog
from app.services.delivery_service import WhatsAppService, send_reply
from app.services.result import Result


def _client_returning(response=None, error=None):
    client = Mock()
    if error is not None:
        client.post.side_effect = error
    else:
        client.post.return_value = response
    client_cls = Mock()
    client_cls.return_value.__enter__ = Mock(return_value=client)
    client_cls.return_value.__exit__ = Mock(return_value=False)
    return client_cls, client


class TestWhatsAppService:
    def test_send_text_posts_graph_payload(self):
        response = Mock(status_code=200, text="")
        response.json.return_value = {"messages": [{"id": "wamid.OUT"}]}
        client_cls, client = _client_returning(response)

        with patch("app.services.delivery_service.httpx.Client", client_cls):
            result = WhatsAppService("15550001111", "tok").send_text("33600000001", "Hi")

        assert result.value == "wamid.OUT"
        url = client.post.call_args.args[0]
        assert url == f"{settings.graph_api_url}/{settings.graph_api_version}/15550001111/messages"
        assert client.post.call_args.kwargs["json"] == {
            "messaging_product": "whatsapp",
            "to": "33600000001",
            "type": "text",
            "text": {"body": "Hi"},
        }
        assert client.post.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"
        client_cls.assert_called_once_with(timeout=settings.delivery_timeout_seconds)

    def test_non_2xx_is_delivery_failure(self):
        client_cls, _ = _client_returning(Mock(status_code=401, text="bad token"))
        with patch("app.services.delivery_service.httpx.Client", client_cls):
            result = WhatsAppService("1", "tok").send_text("2", "Hi")
        assert result.error_code == DELIVERY_FAILURE

    def test_transport_error_is_delivery_failure(self):
        client_cls, _ = _client_returning(error=httpx.ConnectTimeout("down"))
        with patch("app.services.delivery_service.httpx.Client", client_cls):
            result = WhatsAppService("1", "tok").send_text("2", "Hi")
        assert result.error_code == DELIVERY_FAILURE


class TestSendReply:
    def test_success_is_logged(self, db, tenant, outbox):
        result = send_reply(db, tenant, "33600000001", "Hello")

        log = db.query(MessageLog).one()
        assert result.ok
        assert outbox == [{"channel_id": tenant.channel_id, "to": "33600000001", "text": "Hello"}]
        assert log.status == "sent"
        assert log.provider_message_id == result.value

    def test_failure_is_logged_not_raised(self, db, tenant):
        with patch.object(WhatsAppService, "send_text", return_value=Result.failure("500", DELIVERY_FAILURE)) as send:
            result = send_reply(db, tenant, "33600000001", "Hello")

        log = db.query(MessageLog).one()
        assert send.call_count == 1
        assert result.error_code == DELIVERY_FAILURE
        assert log.status == "failed"
        assert log.error == "500"
