"""Custom exceptions for QA analyzer."""

from __future__ import annotations
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import AttemptOutcome, FailureInfo


class FailureKind(str, Enum):
    """Failure kinds an orchestration can report."""
    CONFIG_INVALID = "ConfigInvalid"
    UNREACHABLE = "Unreachable"
    TIMEOUT = "Timeout"
    UNAUTHORIZED = "Unauthorized"
    RATE_LIMITED = "RateLimited"
    MALFORMED_RESPONSE = "MalformedResponse"
    SCHEMA_INVALID = "SchemaInvalid"
    NO_PROVIDER_CONFIGURED = "NoProviderConfigured"
    ALL_PROVIDERS_FAILED = "AllProvidersFailed"


class QAAnalyzerError(Exception):
    """Base exception for QA analyzer errors."""
    pass


class ConfigurationError(QAAnalyzerError):
    """Raised when a settings file cannot be read or parsed."""
    pass


class ProviderError(QAAnalyzerError):
    """
    Raised by a provider adapter or the normalizer for a single attempt.

    Attributes:
        kind: Failure kind used for fallback decisions and reporting
        provider_id: Provider that produced the failure (may be unset by the normalizer)
        status_code: HTTP status returned by the backend, when there was one
    """

    kind: FailureKind = FailureKind.UNREACHABLE

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        self.message = message
        self.provider_id = provider_id
        self.status_code = status_code
        super().__init__(message)

    def to_failure_info(self) -> "FailureInfo":
        from .models import FailureInfo
        return FailureInfo(kind=self.kind, message=self.message, status_code=self.status_code)


class ConfigInvalidError(ProviderError):
    """Raised when a provider's required settings are missing or empty."""
    kind = FailureKind.CONFIG_INVALID

    def __init__(self, message: str, provider_id: Optional[str] = None, missing: Optional[List[str]] = None):
        self.missing = list(missing or [])
        super().__init__(message, provider_id)


class UnreachableError(ProviderError):
    """Raised when the backend cannot be reached or answers with a server error."""
    kind = FailureKind.UNREACHABLE


class ProviderTimeoutError(ProviderError):
    """Raised when the backend does not answer within the provider's bound."""
    kind = FailureKind.TIMEOUT


class UnauthorizedError(ProviderError):
    """Raised when the backend explicitly rejects the credential."""
    kind = FailureKind.UNAUTHORIZED


class RateLimitedError(ProviderError):
    """Raised when the backend explicitly reports rate limiting."""
    kind = FailureKind.RATE_LIMITED


class MalformedResponseError(ProviderError):
    """Raised when a successful response carries no parseable text."""
    kind = FailureKind.MALFORMED_RESPONSE


class SchemaInvalidError(ProviderError):
    """Raised when no structured payload of the expected shape can be extracted."""
    kind = FailureKind.SCHEMA_INVALID

    def __init__(self, message: str, raw_response: str = "", provider_id: Optional[str] = None):
        self.raw_response = raw_response
        super().__init__(message, provider_id)


class NoProviderConfiguredError(QAAnalyzerError):
    """Raised when the resolved provider order would be empty."""
    kind = FailureKind.NO_PROVIDER_CONFIGURED

    def __init__(self, details: str):
        self.details = details
        super().__init__(f"No usable LLM provider configured. {details}")


class AllProvidersFailedError(QAAnalyzerError):
    """
    Raised when every provider in the resolved order failed.

    Attributes:
        attempts: AttemptOutcome for every provider tried, in order
    """
    kind = FailureKind.ALL_PROVIDERS_FAILED

    def __init__(self, attempts: List["AttemptOutcome"]):
        self.attempts = list(attempts)
        super().__init__(self.summary())

    @property
    def last_failure(self) -> Optional["FailureInfo"]:
        if not self.attempts:
            return None
        return self.attempts[-1].error

    def summary(self) -> str:
        """Single user-facing message: last failure kind plus the attempt count."""
        last = self.last_failure
        if last is None:
            return "All providers failed"
        provider = self.attempts[-1].provider_id
        message = f"Provider '{provider}' failed: {last.kind.value}"
        if len(self.attempts) > 1:
            message += f" (after {len(self.attempts)} attempts)"
        return message


class OrchestrationCancelled(QAAnalyzerError):
    """Raised when the caller cancelled an orchestration before it produced a result."""

    def __init__(self, attempts: Optional[List["AttemptOutcome"]] = None):
        self.attempts = list(attempts or [])
        super().__init__(f"Orchestration cancelled after {len(self.attempts)} attempt(s)")
