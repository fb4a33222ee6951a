"""
QA Impact Analyzer Orchestrator

Entry point for the rest of the system. For each request:
1. Resolve the provider order from the current settings
2. Try providers strictly one at a time, in order
3. Return the first normalized result, or fail with every attempt recorded

Per-provider failures are recorded and never escape while another provider
remains. Configuration problems stop the run before any network call.
"""

from __future__ import annotations
from enum import Enum
from typing import Callable, List, Optional
import logging
import threading
import time

from .config import ConfigStore
from .exceptions import (
    AllProvidersFailedError,
    ConfigInvalidError,
    OrchestrationCancelled,
    ProviderError,
)
from .models import AttemptOutcome, TaskRequest, TaskResult
from .registry import ProviderOrder, ProviderRegistry

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    DONE = "done"
    CANCELLED = "cancelled"


class CancellationToken:
    """Set from any thread to stop an orchestration between provider attempts."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class OrchestrationRun:
    """
    State of a single orchestration.

    Runs are never shared, so concurrent orchestrations (one per open tab,
    say) only have the read-only settings store in common.
    """

    def __init__(
        self,
        request: TaskRequest,
        settings: ConfigStore,
        registry: ProviderRegistry,
        clock: Callable[[], float] = time.perf_counter
    ):
        self.request = request
        self.settings = settings
        self.registry = registry
        self.clock = clock
        self.state = RunState.IDLE
        self.current_provider: Optional[str] = None
        self.order: ProviderOrder = ()
        self.attempts: List[AttemptOutcome] = []
        self.result: Optional[TaskResult] = None

    def execute(self, cancel_token: Optional[CancellationToken] = None) -> TaskResult:
        """
        Drive the run to completion.

        Raises:
            NoProviderConfiguredError: If no provider can be tried
            ConfigInvalidError: If a provider's settings disappeared after resolution
            OrchestrationCancelled: If the caller cancelled before a result was returned
            AllProvidersFailedError: If every provider in the order failed
        """
        self.order = self.registry.resolve_order(self.settings)
        logger.info(f"Running {self.request.kind.value} with provider order: {', '.join(self.order)}")

        for provider_id in self.order:
            self._check_cancelled(cancel_token)

            self.state = RunState.ATTEMPTING
            self.current_provider = provider_id
            outcome = self._attempt(provider_id)

            if outcome.succeeded:
                # A result that arrives after cancellation is discarded
                self._check_cancelled(cancel_token)
                self.attempts.append(outcome)
                self.state = RunState.SUCCEEDED
                self.result = outcome.result
                logger.info(f"Provider '{provider_id}' succeeded in {outcome.latency_ms:.0f} ms")
                return outcome.result

            self.attempts.append(outcome)
            logger.warning(
                f"Provider '{provider_id}' failed with {outcome.error.kind.value}: {outcome.error.message}"
            )

        self.state = RunState.DONE
        self.current_provider = None
        raise AllProvidersFailedError(self.attempts)

    def _attempt(self, provider_id: str) -> AttemptOutcome:
        adapter = self.registry.get(provider_id)
        config = self.registry.config_for(self.settings, provider_id)

        started = self.clock()
        try:
            result = adapter.call(self.request, config)
        except ConfigInvalidError:
            self.state = RunState.DONE
            raise
        except ProviderError as e:
            return AttemptOutcome(
                provider_id=provider_id,
                succeeded=False,
                error=e.to_failure_info(),
                latency_ms=self._elapsed_ms(started)
            )

        return AttemptOutcome(
            provider_id=provider_id,
            succeeded=True,
            result=result,
            latency_ms=self._elapsed_ms(started)
        )

    def _check_cancelled(self, cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            self.state = RunState.CANCELLED
            self.current_provider = None
            logger.info(f"Orchestration cancelled after {len(self.attempts)} attempt(s)")
            raise OrchestrationCancelled(self.attempts)

    def _elapsed_ms(self, started: float) -> float:
        return (self.clock() - started) * 1000.0


class Orchestrator:
    """
    Sole public entry point of the provider layer.

    Holds the settings store and adapter registry; every call to ``run``
    gets its own OrchestrationRun and re-reads the settings.
    """

    def __init__(
        self,
        settings: ConfigStore,
        registry: Optional[ProviderRegistry] = None,
        clock: Callable[[], float] = time.perf_counter
    ):
        """
        Args:
            settings: Read-only settings store
            registry: Provider registry (built-in adapters if None)
            clock: Monotonic clock in seconds, used for attempt latency
        """
        self.settings = settings
        self.registry = registry or ProviderRegistry()
        self.clock = clock
        self.last_attempts: List[AttemptOutcome] = []

    def start(self, request: TaskRequest) -> OrchestrationRun:
        """Create a run without executing it; useful when the caller wants the attempt log."""
        return OrchestrationRun(request, self.settings, self.registry, self.clock)

    def run(self, request: TaskRequest, cancel_token: Optional[CancellationToken] = None) -> TaskResult:
        """
        Produce a normalized result for the request, falling back across providers.

        The attempt log of the finished run, whatever its outcome, is kept
        in ``last_attempts``.
        """
        run = self.start(request)
        try:
            return run.execute(cancel_token)
        finally:
            self.last_attempts = list(run.attempts)
