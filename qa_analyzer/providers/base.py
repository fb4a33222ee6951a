"""
Provider adapter contract shared by every LLM backend.

An adapter turns a canonical TaskRequest into one backend's wire request,
issues it with a bounded wait, pulls the generated text out of the response
envelope and hands it to the normalizer. Transport problems always surface
as one of the typed ProviderError subclasses, never as a raw requests or
SDK exception.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

import requests

from ..config import ProviderConfig
from ..exceptions import (
    ConfigInvalidError,
    MalformedResponseError,
    ProviderTimeoutError,
    RateLimitedError,
    SchemaInvalidError,
    UnauthorizedError,
    UnreachableError,
)
from ..models import TaskRequest, TaskResult
from ..normalizer import ResponseNormalizer
from ..prompts import Prompt, build_prompt

logger = logging.getLogger(__name__)

UNAUTHORIZED_STATUSES = {401, 403}
RATE_LIMITED_STATUS = 429


@dataclass(frozen=True)
class PreparedRequest:
    """Everything needed to issue one call to a backend."""
    url: str
    body: Dict[str, Any]
    timeout: float
    headers: Dict[str, str] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """
    Base class for provider adapters.

    Subclasses set ``provider_id``, ``required_fields`` and
    ``default_timeout`` and implement ``build_request`` and
    ``parse_response``. HTTP adapters reuse ``execute``; adapters backed by
    an SDK override it.
    """

    provider_id: str = ""
    display_name: str = ""
    required_fields: Tuple[str, ...] = ()
    header_fields: Tuple[str, ...] = ()
    header_encoding: str = "latin-1"
    default_timeout: float = 60.0

    def __init__(self, normalizer: Optional[ResponseNormalizer] = None, session: Any = None):
        """
        Args:
            normalizer: Normalizer for raw text (shared default if None)
            session: Object with a requests-compatible ``post`` (requests module if None)
        """
        self.normalizer = normalizer or ResponseNormalizer()
        self.http = session or requests

    # ---------- configuration ----------

    def missing_fields(self, config: ProviderConfig) -> List[str]:
        """Required settings that are absent or blank."""
        return [name for name in self.required_fields if config.value(name) is None]

    def invalid_fields(self, config: ProviderConfig) -> List[str]:
        """Settings sent as HTTP headers that the transport cannot encode."""
        invalid = []
        for name in self.header_fields:
            value = config.value(name)
            if value is None:
                continue
            try:
                value.encode(self.header_encoding)
            except UnicodeEncodeError:
                invalid.append(name)
        return invalid

    def is_usable(self, config: ProviderConfig) -> bool:
        return not self.missing_fields(config) and not self.invalid_fields(config)

    def validate_config(self, config: ProviderConfig) -> None:
        missing = self.missing_fields(config)
        invalid = self.invalid_fields(config)
        if not missing and not invalid:
            return

        problems = []
        if missing:
            problems.append(f"is missing required settings: {', '.join(missing)}")
        if invalid:
            problems.append(f"has settings that are not {self.header_encoding} text: {', '.join(invalid)}")
        raise ConfigInvalidError(
            f"Provider '{self.provider_id}' {' and '.join(problems)}",
            provider_id=self.provider_id,
            missing=missing + invalid
        )

    def timeout_for(self, config: ProviderConfig) -> float:
        return config.timeout or self.default_timeout

    # ---------- call pipeline ----------

    def call(self, request: TaskRequest, config: ProviderConfig) -> TaskResult:
        """
        Run one request against this provider.

        Raises:
            ConfigInvalidError: Before any network traffic when settings are incomplete
            ProviderError: Typed transport, envelope or schema failure
        """
        self.validate_config(config)

        prepared = self.build_request(request, build_prompt(request), config)
        logger.debug(f"{self.provider_id}: POST {prepared.url} (timeout {prepared.timeout}s)")

        payload = self.execute(prepared)
        text = self.parse_response(payload)
        logger.debug(f"{self.provider_id}: raw response: {text[:500]}")

        try:
            return self.normalizer.normalize(text, request.kind)
        except SchemaInvalidError as e:
            e.provider_id = self.provider_id
            raise

    @abstractmethod
    def build_request(self, request: TaskRequest, prompt: Prompt, config: ProviderConfig) -> PreparedRequest:
        """Translate the canonical request into this backend's payload."""
        ...

    @abstractmethod
    def parse_response(self, payload: Any) -> str:
        """Extract the generated text from the backend's response envelope."""
        ...

    def execute(self, prepared: PreparedRequest) -> Any:
        """POST the prepared request and return the decoded JSON body."""
        try:
            response = self.http.post(
                prepared.url,
                json=prepared.body,
                headers=prepared.headers,
                timeout=prepared.timeout
            )
        except requests.Timeout as e:
            raise ProviderTimeoutError(
                f"{self.display_name} did not answer within {prepared.timeout}s",
                provider_id=self.provider_id
            ) from e
        except requests.RequestException as e:
            raise UnreachableError(
                f"{self.display_name} is unreachable: {e}",
                provider_id=self.provider_id
            ) from e
        except ValueError as e:
            # Header or URL values http.client refuses to encode
            raise UnreachableError(
                f"{self.display_name} request could not be sent: {e}",
                provider_id=self.provider_id
            ) from e

        self._raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.display_name} returned a non-JSON body",
                provider_id=self.provider_id,
                status_code=response.status_code
            ) from e

    def _raise_for_status(self, response: Any) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = _error_detail(response)
        if status in UNAUTHORIZED_STATUSES:
            raise UnauthorizedError(
                f"{self.display_name} rejected the credential ({status}): {detail}",
                provider_id=self.provider_id,
                status_code=status
            )
        if status == RATE_LIMITED_STATUS:
            raise RateLimitedError(
                f"{self.display_name} rate limit exceeded: {detail}",
                provider_id=self.provider_id,
                status_code=status
            )
        raise UnreachableError(
            f"{self.display_name} returned HTTP {status}: {detail}",
            provider_id=self.provider_id,
            status_code=status
        )

    def malformed(self, message: str) -> MalformedResponseError:
        return MalformedResponseError(f"{self.display_name} {message}", provider_id=self.provider_id)


def _error_detail(response: Any, limit: int = 200) -> str:
    try:
        text = response.text or ""
    except Exception:  # pragma: no cover - body already consumed or undecodable
        return ""
    return text[:limit]
