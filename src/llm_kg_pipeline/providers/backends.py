"""SDK adapters that perform one generation call against one provider.

This module provides pluggable backends behind a Protocol:
- OpenAIBackend: Chat completions via ``AsyncOpenAI`` (honors JSON mode)
- AnthropicBackend: Messages API via ``AsyncAnthropic``

Backends raise the SDK's own exceptions; classification into the pipeline's
retryable/non-retryable taxonomy happens in ``classify_provider_error``.
SDK-level retries are disabled (``max_retries=0``) so retries happen only in
the fallback dispatcher and never cascade.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import anthropic
import openai
import structlog

from llm_kg_pipeline.config import PROVIDER_REQUEST_TIMEOUT_SECONDS
from llm_kg_pipeline.exceptions import (
    NonRetryableProviderError,
    ProviderError,
    RateLimitedError,
    TransientProviderError,
)
from llm_kg_pipeline.providers.registry import ProviderRegistry, ProviderSpec

logger = structlog.get_logger(__name__)

HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500


@dataclass(frozen=True)
class GenerationRequest:
    """Provider wire request.

    Attributes:
        system_instruction: System prompt.
        user_content: User message.
        temperature: Sampling temperature.
        max_output_tokens: Completion token cap.
        structured_output: Hint that machine-parsable JSON is wanted.
    """

    system_instruction: str
    user_content: str
    temperature: float = 0.1
    max_output_tokens: int = 2000
    structured_output: bool = False


@dataclass(frozen=True)
class RawGeneration:
    """Provider wire response."""

    text: str
    prompt_tokens: int
    completion_tokens: int


@runtime_checkable
class ProviderBackend(Protocol):
    """Protocol defining the backend interface."""

    async def generate(self, request: GenerationRequest) -> RawGeneration:
        """Run one generation call.

        Args:
            request: The rendered request.

        Returns:
            Raw text and token usage.
        """
        ...


class OpenAIBackend:
    """Backend for OpenAI chat completions."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = PROVIDER_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize OpenAIBackend.

        Args:
            api_key: OpenAI API key.
            model: Chat model name.
            timeout: Request timeout in seconds.
        """
        self.model = model
        self._client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def generate(self, request: GenerationRequest) -> RawGeneration:
        """Call chat completions and normalize the response."""
        kwargs = {}
        if request.structured_output:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.user_content},
            ],
            temperature=request.temperature,
            max_tokens=request.max_output_tokens,
            **kwargs,
        )

        usage = response.usage
        return RawGeneration(
            text=response.choices[0].message.content or "",
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )


class AnthropicBackend:
    """Backend for the Anthropic messages API.

    Anthropic has no JSON mode; the structured-output hint is ignored and the
    extraction parse step rejects malformed output instead.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = PROVIDER_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize AnthropicBackend.

        Args:
            api_key: Anthropic API key.
            model: Claude model name.
            timeout: Request timeout in seconds.
        """
        self.model = model
        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def generate(self, request: GenerationRequest) -> RawGeneration:
        """Call the messages API and normalize the response."""
        message = await self._client.messages.create(
            model=self.model,
            system=request.system_instruction,
            messages=[{"role": "user", "content": request.user_content}],
            temperature=request.temperature,
            max_tokens=request.max_output_tokens,
        )

        parts = [block.text for block in message.content if getattr(block, "type", None) == "text"]
        return RawGeneration(
            text="\n".join(parts).strip(),
            prompt_tokens=message.usage.input_tokens,
            completion_tokens=message.usage.output_tokens,
        )


def create_backend(spec: ProviderSpec, api_key: str) -> ProviderBackend:
    """Create the SDK backend for a provider spec.

    Raises:
        ValueError: If the spec names an unsupported backend.
    """
    if spec.backend == "openai":
        return OpenAIBackend(api_key=api_key, model=spec.model)
    if spec.backend == "anthropic":
        return AnthropicBackend(api_key=api_key, model=spec.model)
    msg = f"Unsupported provider backend: {spec.backend}"
    raise ValueError(msg)


def create_backends(
    registry: ProviderRegistry,
    credentials: Mapping[str, str],
) -> dict[str, ProviderBackend]:
    """Create backends for every registered provider that has a credential.

    Providers without a credential are left out; the dispatcher skips them.

    Args:
        registry: Provider registry.
        credentials: API keys keyed by provider id.

    Returns:
        Backends keyed by provider id.
    """
    backends: dict[str, ProviderBackend] = {}
    for spec in registry:
        api_key = credentials.get(spec.provider_id, "")
        if not api_key:
            logger.info("No credential for provider, skipping", provider=spec.provider_id)
            continue
        backends[spec.provider_id] = create_backend(spec, api_key)
    return backends


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

_RATE_LIMIT_ERRORS = (openai.RateLimitError, anthropic.RateLimitError)
_TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
    asyncio.TimeoutError,
    ConnectionError,
)
_STATUS_ERRORS = (openai.APIStatusError, anthropic.APIStatusError)


def classify_provider_error(provider_id: str, exc: BaseException) -> ProviderError:
    """Map an SDK or transport exception onto the provider error taxonomy.

    Rate limits and timeouts/5xx are retryable; bad requests, authentication
    failures and anything unrecognized are not.

    Args:
        provider_id: Provider that raised the exception.
        exc: The exception raised by the backend.

    Returns:
        The classified ProviderError (not raised).
    """
    if isinstance(exc, ProviderError):
        return exc

    message = str(exc) or type(exc).__name__
    if isinstance(exc, _RATE_LIMIT_ERRORS):
        return RateLimitedError(provider_id, message)
    if isinstance(exc, _TRANSIENT_ERRORS):
        return TransientProviderError(provider_id, message)
    if isinstance(exc, _STATUS_ERRORS):
        status = getattr(exc, "status_code", 0) or 0
        if status == HTTP_TOO_MANY_REQUESTS:
            return RateLimitedError(provider_id, message)
        if status >= HTTP_SERVER_ERROR:
            return TransientProviderError(provider_id, message)
    return NonRetryableProviderError(provider_id, message)
