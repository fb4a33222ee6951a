"""Hosted frontier adapter (OpenAI-compatible chat completions)."""

from __future__ import annotations
from typing import Any, Callable, Optional

import openai
from openai import OpenAI

from ..config import ProviderConfig
from ..exceptions import (
    MalformedResponseError,
    ProviderTimeoutError,
    RateLimitedError,
    UnauthorizedError,
    UnreachableError,
)
from ..models import TaskRequest
from ..normalizer import ResponseNormalizer
from ..prompts import Prompt
from .base import PreparedRequest, ProviderAdapter

FRONTIER_BASE_URL = "https://api.openai.com/v1"


class FrontierAdapter(ProviderAdapter):
    """
    Interact with OpenAI or any OpenAI-compatible chat completions API.

    Requests go through the ``openai`` SDK. The client is built per call
    with ``max_retries=0`` so a failure is reported once and the
    orchestrator decides whether another provider is tried.
    """

    provider_id = "frontier"
    display_name = "OpenAI"
    required_fields = ("api_key", "model")
    header_fields = ("api_key",)
    # httpx only sends ASCII header values
    header_encoding = "ascii"
    default_timeout = 60.0

    def __init__(
        self,
        normalizer: Optional[ResponseNormalizer] = None,
        client_factory: Optional[Callable[..., Any]] = None
    ):
        super().__init__(normalizer)
        self.client_factory = client_factory or OpenAI

    def build_request(self, request: TaskRequest, prompt: Prompt, config: ProviderConfig) -> PreparedRequest:
        return PreparedRequest(
            url=config.value("endpoint") or FRONTIER_BASE_URL,
            body={
                "model": config.value("model"),
                "messages": [
                    {"role": "system", "content": prompt.system},
                    {"role": "user", "content": prompt.user},
                ],
                "temperature": 0.2,
                "response_format": {"type": "json_object"},
            },
            headers={"Authorization": f"Bearer {config.value('api_key')}"},
            timeout=self.timeout_for(config)
        )

    def execute(self, prepared: PreparedRequest) -> Any:
        api_key = prepared.headers["Authorization"].removeprefix("Bearer ")
        client = self.client_factory(
            base_url=prepared.url,
            api_key=api_key,
            timeout=prepared.timeout,
            max_retries=0
        )

        try:
            return client.chat.completions.create(**prepared.body)
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(
                f"{self.display_name} did not answer within {prepared.timeout}s",
                provider_id=self.provider_id
            ) from e
        except openai.APIConnectionError as e:
            raise UnreachableError(
                f"{self.display_name} is unreachable: {e}",
                provider_id=self.provider_id
            ) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise UnauthorizedError(
                f"{self.display_name} rejected the credential: {e}",
                provider_id=self.provider_id,
                status_code=e.status_code
            ) from e
        except openai.RateLimitError as e:
            raise RateLimitedError(
                f"{self.display_name} rate limit exceeded: {e}",
                provider_id=self.provider_id,
                status_code=e.status_code
            ) from e
        except openai.APIStatusError as e:
            raise UnreachableError(
                f"{self.display_name} returned HTTP {e.status_code}: {e}",
                provider_id=self.provider_id,
                status_code=e.status_code
            ) from e
        except openai.APIError as e:
            raise MalformedResponseError(
                f"{self.display_name} returned an unreadable response: {e}",
                provider_id=self.provider_id
            ) from e
        except ValueError as e:
            raise UnreachableError(
                f"{self.display_name} request could not be sent: {e}",
                provider_id=self.provider_id
            ) from e

    def parse_response(self, payload: Any) -> str:
        choices = getattr(payload, "choices", None)
        if not choices:
            raise self.malformed("response missing 'choices'")
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise self.malformed("response missing message content")
        return content.strip()
