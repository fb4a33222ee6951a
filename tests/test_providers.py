"""Test provider adapters: wire format, envelope parsing and error mapping."""

import json
from types import SimpleNamespace
from unittest.mock import Mock, patch

import httpx
import openai
import pytest
import requests

from qa_analyzer.config import ProviderConfig
from qa_analyzer.exceptions import (
    ConfigInvalidError,
    MalformedResponseError,
    ProviderTimeoutError,
    RateLimitedError,
    SchemaInvalidError,
    UnauthorizedError,
    UnreachableError,
)
from qa_analyzer.models import ImpactAnalysisResult, TestGenerationResult
from qa_analyzer.providers import FrontierAdapter, LocalAdapter, RegionalAdapter, default_adapters
from qa_analyzer.providers.regional import REGIONAL_ENDPOINT


def http_response(status=200, payload=None, text=None):
    response = Mock()
    response.status_code = status
    if payload is None and text is not None:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    response.text = text if text is not None else json.dumps(payload)
    return response


@pytest.fixture
def local_config():
    return ProviderConfig(provider_id="local", endpoint="http://localhost:11434/")


@pytest.fixture
def regional_config():
    return ProviderConfig(
        provider_id="regional",
        api_key="regional-key",
        model="yandexgpt-lite",
        options={"folder_id": "b1gfolder"}
    )


@pytest.fixture
def frontier_config():
    return ProviderConfig(provider_id="frontier", api_key="sk-test", model="gpt-4o-mini")


class TestLocalAdapter:
    """Test the Ollama-compatible local adapter."""

    def test_builds_generate_request(self, impact_request, impact_json, local_config):
        session = Mock()
        session.post.return_value = http_response(payload={"response": impact_json, "done": True})

        result = LocalAdapter(session=session).call(impact_request, local_config)

        assert isinstance(result, ImpactAnalysisResult)
        args, kwargs = session.post.call_args
        assert args[0] == "http://localhost:11434/api/generate"
        body = kwargs["json"]
        assert body["stream"] is False
        assert body["format"] == "json"
        assert body["model"] == "qwen2.5:7b-instruct"
        assert impact_request.input_text in body["prompt"]
        assert "- Payments & billing" in body["prompt"]
        assert kwargs["timeout"] == 300.0

    def test_configured_model_and_timeout(self, impact_request, impact_json):
        session = Mock()
        session.post.return_value = http_response(payload={"response": impact_json})
        config = ProviderConfig(provider_id="local", endpoint="http://gpu-box:11434", model="llama3.1:8b", timeout=30)

        LocalAdapter(session=session).call(impact_request, config)

        kwargs = session.post.call_args.kwargs
        assert kwargs["json"]["model"] == "llama3.1:8b"
        assert kwargs["timeout"] == 30

    def test_missing_endpoint_fails_fast(self, impact_request):
        session = Mock()

        with pytest.raises(ConfigInvalidError) as exc_info:
            LocalAdapter(session=session).call(impact_request, ProviderConfig(provider_id="local", endpoint="  "))

        assert exc_info.value.missing == ["endpoint"]
        session.post.assert_not_called()

    def test_missing_response_field_is_malformed(self, impact_request, local_config):
        session = Mock()
        session.post.return_value = http_response(payload={"done": True})

        with pytest.raises(MalformedResponseError):
            LocalAdapter(session=session).call(impact_request, local_config)

    def test_non_json_body_is_malformed(self, impact_request, local_config):
        session = Mock()
        session.post.return_value = http_response(text="<html>proxy</html>")

        with pytest.raises(MalformedResponseError):
            LocalAdapter(session=session).call(impact_request, local_config)

    def test_prose_response_without_json_is_schema_invalid(self, impact_request, local_config):
        session = Mock()
        session.post.return_value = http_response(payload={"response": "Sorry, I can't do that."})

        with pytest.raises(SchemaInvalidError) as exc_info:
            LocalAdapter(session=session).call(impact_request, local_config)

        assert exc_info.value.provider_id == "local"

    def test_uses_requests_by_default(self, impact_request, impact_json, local_config):
        with patch("qa_analyzer.providers.base.requests.post") as post:
            post.return_value = http_response(payload={"response": impact_json})

            LocalAdapter().call(impact_request, local_config)

        post.assert_called_once()


class TestHttpErrorMapping:
    """Transport and status errors map onto typed failures."""

    @pytest.mark.parametrize("exc, expected", [
        (requests.ConnectTimeout("connect timed out"), ProviderTimeoutError),
        (requests.ReadTimeout("read timed out"), ProviderTimeoutError),
        (requests.ConnectionError("refused"), UnreachableError),
        (requests.TooManyRedirects("loop"), UnreachableError),
        (UnicodeEncodeError("latin-1", "ключ", 0, 4, "ordinal not in range(256)"), UnreachableError),
    ])
    def test_transport_errors(self, impact_request, local_config, exc, expected):
        session = Mock()
        session.post.side_effect = exc

        with pytest.raises(expected) as exc_info:
            LocalAdapter(session=session).call(impact_request, local_config)

        assert exc_info.value.provider_id == "local"

    @pytest.mark.parametrize("status, expected", [
        (401, UnauthorizedError),
        (403, UnauthorizedError),
        (429, RateLimitedError),
        (500, UnreachableError),
        (404, UnreachableError),
    ])
    def test_status_codes(self, impact_request, regional_config, status, expected):
        session = Mock()
        session.post.return_value = http_response(status=status, payload={"error": {"message": "nope"}})

        with pytest.raises(expected) as exc_info:
            RegionalAdapter(session=session).call(impact_request, regional_config)

        assert exc_info.value.status_code == status


class TestRegionalAdapter:
    """Test the YandexGPT adapter."""

    def _envelope(self, text):
        return {
            "result": {
                "alternatives": [
                    {"message": {"role": "assistant", "text": text}, "status": "ALTERNATIVE_STATUS_FINAL"}
                ],
                "usage": {"inputTextTokens": "120", "completionTokens": "80", "totalTokens": "200"},
                "modelVersion": "23.10.2024"
            }
        }

    def test_builds_completion_request(self, tests_request, tests_json, regional_config):
        session = Mock()
        session.post.return_value = http_response(payload=self._envelope(tests_json))

        result = RegionalAdapter(session=session).call(tests_request, regional_config)

        assert isinstance(result, TestGenerationResult)
        args, kwargs = session.post.call_args
        assert args[0] == REGIONAL_ENDPOINT
        assert kwargs["headers"]["Authorization"] == "Api-Key regional-key"
        assert kwargs["headers"]["x-folder-id"] == "b1gfolder"
        body = kwargs["json"]
        assert body["modelUri"] == "gpt://b1gfolder/yandexgpt-lite"
        assert body["completionOptions"]["stream"] is False
        assert [m["role"] for m in body["messages"]] == ["system", "user"]
        assert tests_request.input_text in body["messages"][1]["text"]

    def test_full_model_uri_needs_no_folder(self, impact_request, impact_json):
        session = Mock()
        session.post.return_value = http_response(payload=self._envelope(impact_json))
        config = ProviderConfig(provider_id="regional", api_key="k", model="gpt://b1gother/yandexgpt/latest")

        adapter = RegionalAdapter(session=session)
        adapter.call(impact_request, config)

        assert adapter.missing_fields(config) == []
        body = session.post.call_args.kwargs["json"]
        assert body["modelUri"] == "gpt://b1gother/yandexgpt/latest"

    def test_bare_model_without_folder_is_not_usable(self):
        config = ProviderConfig(provider_id="regional", api_key="k", model="yandexgpt-lite")

        assert RegionalAdapter().missing_fields(config) == ["folder_id"]

    def test_missing_credential(self):
        config = ProviderConfig(provider_id="regional", model="gpt://f/yandexgpt")

        assert RegionalAdapter().missing_fields(config) == ["api_key"]

    def test_folder_id_outside_latin1_is_not_usable(self):
        config = ProviderConfig(
            provider_id="regional",
            api_key="k",
            model="yandexgpt-lite",
            options={"folder_id": "папка"}
        )

        assert RegionalAdapter().missing_fields(config) == []
        assert RegionalAdapter().invalid_fields(config) == ["folder_id"]
        assert RegionalAdapter().is_usable(config) is False

    def test_missing_alternatives_is_malformed(self, impact_request, regional_config):
        session = Mock()
        session.post.return_value = http_response(payload={"result": {"alternatives": []}})

        with pytest.raises(MalformedResponseError):
            RegionalAdapter(session=session).call(impact_request, regional_config)


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(role="assistant", content=content))])


def fake_openai(create):
    client = Mock()
    client.chat.completions.create.side_effect = create
    factory = Mock(return_value=client)
    return factory, client


REQ = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestFrontierAdapter:
    """Test the OpenAI-compatible adapter."""

    def test_builds_chat_completion(self, impact_request, impact_json, frontier_config):
        factory, client = fake_openai(lambda **kwargs: completion(impact_json))

        result = FrontierAdapter(client_factory=factory).call(impact_request, frontier_config)

        assert result.summary == "Checkout now calls the new tax service"
        factory.assert_called_once_with(
            base_url="https://api.openai.com/v1",
            api_key="sk-test",
            timeout=60.0,
            max_retries=0
        )
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0]["role"] == "system"

    def test_custom_base_url(self, impact_request, impact_json):
        factory, _ = fake_openai(lambda **kwargs: completion(impact_json))
        config = ProviderConfig(provider_id="frontier", api_key="k", model="m", endpoint="https://proxy.local/v1")

        FrontierAdapter(client_factory=factory).call(impact_request, config)

        assert factory.call_args.kwargs["base_url"] == "https://proxy.local/v1"

    def test_missing_model_fails_fast(self, impact_request):
        factory, _ = fake_openai(lambda **kwargs: completion("{}"))

        with pytest.raises(ConfigInvalidError):
            FrontierAdapter(client_factory=factory).call(impact_request, ProviderConfig(provider_id="frontier", api_key="k"))

        factory.assert_not_called()

    @pytest.mark.parametrize("exc, expected", [
        (openai.APITimeoutError(request=REQ), ProviderTimeoutError),
        (openai.APIConnectionError(request=REQ), UnreachableError),
        (openai.AuthenticationError("bad key", response=httpx.Response(401, request=REQ), body=None), UnauthorizedError),
        (openai.PermissionDeniedError("forbidden", response=httpx.Response(403, request=REQ), body=None), UnauthorizedError),
        (openai.RateLimitError("slow down", response=httpx.Response(429, request=REQ), body=None), RateLimitedError),
        (openai.InternalServerError("boom", response=httpx.Response(500, request=REQ), body=None), UnreachableError),
    ])
    def test_sdk_errors(self, impact_request, frontier_config, exc, expected):
        def create(**kwargs):
            raise exc

        factory, _ = fake_openai(create)

        with pytest.raises(expected) as exc_info:
            FrontierAdapter(client_factory=factory).call(impact_request, frontier_config)

        assert exc_info.value.provider_id == "frontier"

    def test_empty_content_is_malformed(self, impact_request, frontier_config):
        factory, _ = fake_openai(lambda **kwargs: completion(None))

        with pytest.raises(MalformedResponseError):
            FrontierAdapter(client_factory=factory).call(impact_request, frontier_config)

    def test_non_ascii_key_fails_before_any_call(self, impact_request):
        factory, _ = fake_openai(lambda **kwargs: completion("{}"))
        config = ProviderConfig(provider_id="frontier", api_key="sk-ключ", model="gpt-4o-mini")
        adapter = FrontierAdapter(client_factory=factory)

        assert adapter.is_usable(config) is False
        with pytest.raises(ConfigInvalidError) as exc_info:
            adapter.call(impact_request, config)

        assert exc_info.value.missing == ["api_key"]
        factory.assert_not_called()

    def test_encoding_error_while_sending_is_unreachable(self, impact_request, frontier_config):
        def create(**kwargs):
            raise UnicodeEncodeError("ascii", "ключ", 0, 4, "ordinal not in range(128)")

        factory, _ = fake_openai(create)

        with pytest.raises(UnreachableError) as exc_info:
            FrontierAdapter(client_factory=factory).call(impact_request, frontier_config)

        assert exc_info.value.provider_id == "frontier"


def test_default_adapters_priority_order():
    assert [a.provider_id for a in default_adapters()] == ["local", "regional", "frontier"]
