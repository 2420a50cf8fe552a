from unittest.mock import Mock, patch

import httpx

from app.errors import AI_MODEL_DECOMMISSIONED, AI_PROVIDER_ERROR, AI_PROVIDER_TIMEOUT
from app.services.llm import OpenAICompatibleProvider


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


def _response(status_code, json_data=None, text=""):
    response = Mock(status_code=status_code, text=text)
    response.json.return_value = json_data
    return response


class TestOpenAICompatibleProvider:
    def setup_method(self):
        self.provider = OpenAICompatibleProvider("sk-test", "https://api.example.com/v1/", "default-model")

    def test_success(self):
        client_cls, client = _client_returning(
            _response(200, {"model": "m", "choices": [{"message": {"content": "Bonjour"}}], "usage": {"total_tokens": 3}})
        )
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            result = self.provider.generate([{"role": "user", "content": "hi"}], model="m", timeout_seconds=5)

        assert result.ok
        assert result.value.content == "Bonjour"
        assert client.post.call_args.args[0] == "https://api.example.com/v1/chat/completions"
        assert client.post.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-test"
        client_cls.assert_called_once_with(timeout=5)

    def test_default_model_used(self):
        client_cls, client = _client_returning(_response(200, {"choices": [{"message": {"content": "x"}}]}))
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            self.provider.generate([])
        assert client.post.call_args.kwargs["json"]["model"] == "default-model"

    def test_timeout(self):
        client_cls, _ = _client_returning(error=httpx.ReadTimeout("slow"))
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            result = self.provider.generate([])
        assert result.error_code == AI_PROVIDER_TIMEOUT

    def test_decommissioned_model(self):
        body = '{"error": {"message": "The model `old` has been decommissioned"}}'
        client_cls, _ = _client_returning(_response(400, text=body))
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            result = self.provider.generate([], model="old")
        assert result.error_code == AI_MODEL_DECOMMISSIONED

    def test_server_error(self):
        client_cls, _ = _client_returning(_response(503, text="unavailable"))
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            result = self.provider.generate([])
        assert result.error_code == AI_PROVIDER_ERROR

    def test_non_object_choice_is_an_error(self):
        client_cls, _ = _client_returning(_response(200, {"choices": ["oops"]}))
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            result = self.provider.generate([{"role": "user", "content": "hi"}])

        assert not result.ok
        assert result.error_code == AI_PROVIDER_ERROR

    def test_choice_with_non_object_message_is_an_error(self):
        client_cls, _ = _client_returning(_response(200, {"choices": [{"message": "Bonjour"}]}))
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            result = self.provider.generate([{"role": "user", "content": "hi"}])

        assert result.error_code == AI_PROVIDER_ERROR

    def test_non_object_body_is_an_error(self):
        client_cls, _ = _client_returning(_response(200, ["not", "a", "completion"]))
        with patch("app.services.llm.openai_provider.httpx.Client", client_cls):
            result = self.provider.generate([{"role": "user", "content": "hi"}])

        assert result.error_code == AI_PROVIDER_ERROR
