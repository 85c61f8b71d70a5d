"""Fallback dispatch across providers with bounded passes and backoff.

A dispatch walks the provider priority list up to ``max_passes`` times. Within
a pass each available provider is tried once, in order; the first success
wins. Between full passes the dispatcher sleeps with exponential backoff
(``base_delay``, ``2 * base_delay``, ...). This is the only place in the
pipeline where provider calls are retried.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
import asyncio
import logging

import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from llm_kg_pipeline.config import (
    DEFAULT_PROVIDER_PRIORITY,
    MAX_DISPATCH_PASSES,
    RETRY_BASE_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
)
from llm_kg_pipeline.exceptions import AllProvidersFailedError, ProviderError
from llm_kg_pipeline.providers.client import (
    GenerationOptions,
    ProviderClient,
    ProviderResponse,
    RenderedPrompt,
)

logger = structlog.get_logger(__name__)

# tenacity's before_sleep_log requires a stdlib logger, NOT structlog.
_tenacity_logger = logging.getLogger("llm_kg_pipeline.retry")


class _PassExhaustedError(Exception):
    """Every provider in one pass failed or was skipped."""


@dataclass
class _DispatchState:
    passes: int = 0
    attempts: int = 0
    failed_attempts: int = 0
    last_error: str = "no provider attempted"


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of a successful dispatch.

    Attributes:
        response: The winning provider response.
        passes: Number of passes started (1 if the first pass succeeded).
        failed_attempts: Provider attempts that failed before the success.
    """

    response: ProviderResponse
    passes: int = 1
    failed_attempts: int = 0


@dataclass(frozen=True)
class DispatcherConfig:
    """Configuration for the fallback dispatcher.

    Attributes:
        provider_priority: Provider ids in the order they are tried.
        max_passes: Full passes over the priority list before giving up.
        base_delay: Backoff before the second pass, in seconds.
        max_delay: Upper bound for any single backoff sleep.
    """

    provider_priority: tuple[str, ...] = field(default_factory=lambda: DEFAULT_PROVIDER_PRIORITY)
    max_passes: int = MAX_DISPATCH_PASSES
    base_delay: float = RETRY_BASE_DELAY_SECONDS
    max_delay: float = RETRY_MAX_DELAY_SECONDS

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.provider_priority:
            msg = "provider_priority must not be empty"
            raise ValueError(msg)
        if self.max_passes < 1:
            msg = "max_passes must be at least 1"
            raise ValueError(msg)
        if self.base_delay < 0 or self.max_delay < 0:
            msg = "delays must be non-negative"
            raise ValueError(msg)


class FallbackDispatcher:
    """Tries providers in priority order, retrying whole passes with backoff.

    Provider-level errors never escape: rate-limited and transient failures
    move on to the next provider, non-retryable failures are logged at error
    level and also move on. ``BudgetExceededError`` aborts immediately.

    Example:
        >>> dispatcher = FallbackDispatcher(client)
        >>> result = await dispatcher.dispatch(prompt, GenerationOptions())
        >>> result.response.provider_id
        'openai'
    """

    def __init__(
        self,
        client: ProviderClient,
        config: DispatcherConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            client: Single-provider client.
            config: Dispatch configuration. Uses defaults if not provided.
            sleep: Async sleep used between passes (injectable for tests).
        """
        self.client = client
        self.config = config or DispatcherConfig()
        self._sleep = sleep

        unknown = [p for p in self.config.provider_priority if p not in client.registry]
        if unknown:
            msg = f"Priority list names unregistered providers: {', '.join(unknown)}"
            raise ValueError(msg)

    def available_providers(self) -> list[str]:
        """Providers in priority order that have credentials configured."""
        return [p for p in self.config.provider_priority if self.client.has_credentials(p)]

    async def dispatch(
        self,
        prompt: RenderedPrompt,
        options: GenerationOptions,
    ) -> DispatchResult:
        """Send a prompt to the first provider that answers.

        Args:
            prompt: Rendered system/user messages.
            options: Generation options.

        Returns:
            DispatchResult with the response and attempt accounting.

        Raises:
            AllProvidersFailedError: After ``max_passes`` failed passes, or at
                once when no provider has credentials.
            BudgetExceededError: If the daily budget is exhausted.
        """
        providers = self.available_providers()
        if not providers:
            raise AllProvidersFailedError("no provider has credentials configured", attempts=0)

        state = _DispatchState()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_passes),
            wait=wait_exponential(multiplier=self.config.base_delay, max=self.config.max_delay),
            retry=retry_if_exception_type(_PassExhaustedError),
            before_sleep=before_sleep_log(_tenacity_logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._run_pass(providers, prompt, options, state)
        except _PassExhaustedError:
            logger.error(
                "All providers failed",
                task=options.task,
                passes=state.passes,
                attempts=state.attempts,
                last_error=state.last_error,
            )
            raise AllProvidersFailedError(state.last_error, attempts=state.attempts) from None

        return DispatchResult(
            response=response,
            passes=state.passes,
            failed_attempts=state.failed_attempts,
        )

    async def _run_pass(
        self,
        providers: Sequence[str],
        prompt: RenderedPrompt,
        options: GenerationOptions,
        state: _DispatchState,
    ) -> ProviderResponse:
        state.passes += 1
        for provider_id in providers:
            if self.client.is_rate_limited(provider_id):
                logger.info("Provider rate limited, skipping", provider=provider_id, pass_number=state.passes)
                state.last_error = f"{provider_id}: rate limited"
                continue

            state.attempts += 1
            try:
                return await self.client.send(provider_id, prompt, options)
            except ProviderError as e:
                state.failed_attempts += 1
                state.last_error = str(e)
                if e.retryable:
                    logger.warning(
                        "Provider attempt failed, trying next",
                        provider=provider_id,
                        task=options.task,
                        pass_number=state.passes,
                        error=str(e),
                    )
                else:
                    logger.error(
                        "Non-retryable provider error, trying next",
                        provider=provider_id,
                        task=options.task,
                        pass_number=state.passes,
                        error=str(e),
                    )

        raise _PassExhaustedError(state.last_error)
