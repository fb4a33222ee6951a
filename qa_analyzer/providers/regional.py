"""Hosted regional adapter (Yandex Foundation Models completion API)."""

from __future__ import annotations
from typing import Any, List

from ..config import ProviderConfig
from ..models import TaskRequest
from ..prompts import Prompt
from .base import PreparedRequest, ProviderAdapter

REGIONAL_ENDPOINT = "https://llm.api.cloud.yandex.net/foundationModels/v1/completion"
MODEL_URI_SCHEME = "gpt://"


class RegionalAdapter(ProviderAdapter):
    """
    Interact with the Yandex Foundation Models API.

    ``model`` may be a full model URI (``gpt://<folder>/yandexgpt/latest``)
    or a bare model name, in which case ``folder_id`` is required to build
    the URI.
    """

    provider_id = "regional"
    display_name = "YandexGPT"
    required_fields = ("api_key", "model")
    header_fields = ("api_key", "folder_id")
    default_timeout = 60.0

    def missing_fields(self, config: ProviderConfig) -> List[str]:
        missing = super().missing_fields(config)
        model = config.value("model")
        if model and not model.startswith(MODEL_URI_SCHEME) and config.value("folder_id") is None:
            missing.append("folder_id")
        return missing

    def model_uri(self, config: ProviderConfig) -> str:
        model = config.value("model")
        if model.startswith(MODEL_URI_SCHEME):
            return model
        return f"{MODEL_URI_SCHEME}{config.value('folder_id')}/{model}"

    def build_request(self, request: TaskRequest, prompt: Prompt, config: ProviderConfig) -> PreparedRequest:
        headers = {
            "Authorization": f"Api-Key {config.value('api_key')}",
            "Content-Type": "application/json",
        }
        folder_id = config.value("folder_id")
        if folder_id:
            headers["x-folder-id"] = folder_id

        return PreparedRequest(
            url=config.value("endpoint") or REGIONAL_ENDPOINT,
            body={
                "modelUri": self.model_uri(config),
                "completionOptions": {
                    "stream": False,
                    "temperature": 0.2,
                    "maxTokens": "4000",
                },
                "messages": [
                    {"role": "system", "text": prompt.system},
                    {"role": "user", "text": prompt.user},
                ],
            },
            headers=headers,
            timeout=self.timeout_for(config)
        )

    def parse_response(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise self.malformed("response is not a JSON object")
        result = payload.get("result")
        alternatives = result.get("alternatives") if isinstance(result, dict) else None
        if not alternatives or not isinstance(alternatives[0], dict):
            raise self.malformed("response missing 'result.alternatives'")
        message = alternatives[0].get("message") or {}
        text = message.get("text") if isinstance(message, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise self.malformed("response missing message text")
        return text
