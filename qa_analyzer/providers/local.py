"""Local inference adapter (Ollama-compatible server)."""

from __future__ import annotations
from typing import Any

from ..config import ProviderConfig
from ..models import TaskRequest
from ..prompts import Prompt
from .base import PreparedRequest, ProviderAdapter

DEFAULT_LOCAL_MODEL = "qwen2.5:7b-instruct"


class LocalAdapter(ProviderAdapter):
    """Talk to a model server on the user's machine or LAN."""

    provider_id = "local"
    display_name = "Local model server"
    required_fields = ("endpoint",)
    # Local inference runs on consumer hardware; give it far longer than hosted APIs
    default_timeout = 300.0

    def build_request(self, request: TaskRequest, prompt: Prompt, config: ProviderConfig) -> PreparedRequest:
        endpoint = config.value("endpoint").rstrip("/")
        return PreparedRequest(
            url=f"{endpoint}/api/generate",
            body={
                "model": config.value("model") or DEFAULT_LOCAL_MODEL,
                "system": prompt.system,
                "prompt": prompt.user,
                "stream": False,
                "format": "json",
                "options": {"temperature": 0.2},
            },
            timeout=self.timeout_for(config)
        )

    def parse_response(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise self.malformed("response is not a JSON object")
        text = payload.get("response")
        if not isinstance(text, str) or not text.strip():
            raise self.malformed("response missing 'response' field")
        return text
