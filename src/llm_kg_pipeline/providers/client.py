"""Single-provider generation client.

Issues one request to one provider, enforcing that provider's rate limit and
the daily budget through the shared governor, computing cost from token usage
and normalizing failures into the provider error taxonomy. The client never
retries; that is the fallback dispatcher's job.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import time

import structlog

from llm_kg_pipeline.exceptions import (
    MissingCredentialsError,
    ProviderConfigError,
    RateLimitedError,
)
from llm_kg_pipeline.providers.backends import (
    GenerationRequest,
    ProviderBackend,
    classify_provider_error,
)
from llm_kg_pipeline.providers.governor import UsageGovernor
from llm_kg_pipeline.providers.registry import ProviderRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RenderedPrompt:
    """System and user messages ready to send."""

    system: str
    user: str


@dataclass(frozen=True)
class GenerationOptions:
    """Per-request generation options.

    Attributes:
        temperature: Sampling temperature.
        max_output_tokens: Completion token cap (must fit the provider limit).
        structured_output: Request machine-parsable JSON output.
        task: Task label used in logs.
    """

    temperature: float = 0.1
    max_output_tokens: int = 2000
    structured_output: bool = True
    task: str = "generation"


@dataclass(frozen=True)
class ProviderResponse:
    """Normalized successful response.

    Attributes:
        provider_id: Provider that served the request.
        content: Raw model text.
        prompt_tokens: Input tokens.
        completion_tokens: Output tokens.
        estimated_cost: USD cost computed from the registry price.
        processing_time_seconds: Wall time of the provider call.
    """

    provider_id: str
    content: str
    prompt_tokens: int
    completion_tokens: int
    estimated_cost: float
    processing_time_seconds: float

    @property
    def total_tokens(self) -> int:
        """Prompt plus completion tokens."""
        return self.prompt_tokens + self.completion_tokens


class ProviderClient:
    """Sends generation requests to individual providers.

    Attributes:
        registry: Provider catalog.
        governor: Shared rate-limit and spend state.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        governor: UsageGovernor,
        backends: Mapping[str, ProviderBackend],
    ) -> None:
        """Initialize the client.

        Args:
            registry: Provider catalog.
            governor: Shared rate-limit and spend state.
            backends: Backends for providers that have credentials.
        """
        self.registry = registry
        self.governor = governor
        self._backends = dict(backends)

    def has_credentials(self, provider_id: str) -> bool:
        """Whether a backend (and thus a credential) exists for the provider."""
        return provider_id in self._backends

    def is_rate_limited(self, provider_id: str) -> bool:
        """Whether the provider's window is currently full."""
        spec = self.registry.get(provider_id)
        return self.governor.is_saturated(
            provider_id, spec.requests_per_minute, spec.tokens_per_minute
        )

    async def send(
        self,
        provider_id: str,
        prompt: RenderedPrompt,
        options: GenerationOptions,
    ) -> ProviderResponse:
        """Issue one generation request.

        Args:
            provider_id: Registered provider to call.
            prompt: Rendered system/user messages.
            options: Generation options.

        Returns:
            Normalized response with usage and cost.

        Raises:
            UnknownProviderError: If the provider is not registered.
            ProviderConfigError: If ``max_output_tokens`` exceeds the provider limit.
            BudgetExceededError: If the daily budget is exhausted.
            RateLimitedError: If the provider's window is full (fails fast).
            TransientProviderError: On timeouts, connection and 5xx errors.
            NonRetryableProviderError: On bad requests, auth and unknown errors.
        """
        spec = self.registry.get(provider_id)
        if options.max_output_tokens > spec.max_tokens:
            msg = (
                f"max_output_tokens={options.max_output_tokens} exceeds "
                f"{provider_id} limit of {spec.max_tokens}"
            )
            raise ProviderConfigError(msg)

        backend = self._backends.get(provider_id)
        if backend is None:
            raise MissingCredentialsError(provider_id)

        self.governor.check_budget()
        if not self.governor.try_acquire(
            provider_id, spec.requests_per_minute, spec.tokens_per_minute
        ):
            raise RateLimitedError(provider_id, "local requests-per-minute ceiling reached")

        request = GenerationRequest(
            system_instruction=prompt.system,
            user_content=prompt.user,
            temperature=options.temperature,
            max_output_tokens=options.max_output_tokens,
            structured_output=options.structured_output and spec.supports_structured_output,
        )

        start = time.perf_counter()
        try:
            raw = await backend.generate(request)
        except Exception as e:
            error = classify_provider_error(provider_id, e)
            logger.warning(
                "Provider request failed",
                provider=provider_id,
                task=options.task,
                error=str(error),
                error_type=type(e).__name__,
                retryable=error.retryable,
            )
            raise error from e
        elapsed = time.perf_counter() - start

        total_tokens = raw.prompt_tokens + raw.completion_tokens
        cost = spec.estimate_cost(total_tokens)
        self.governor.record_usage(provider_id, tokens=total_tokens, cost=cost)

        logger.info(
            "Provider request succeeded",
            provider=provider_id,
            task=options.task,
            tokens=total_tokens,
            cost=round(cost, 6),
            seconds=round(elapsed, 3),
        )

        return ProviderResponse(
            provider_id=provider_id,
            content=raw.text,
            prompt_tokens=raw.prompt_tokens,
            completion_tokens=raw.completion_tokens,
            estimated_cost=cost,
            processing_time_seconds=elapsed,
        )
