"""Static catalog of text-generation providers and their limits.

Each provider entry records the model it serves, its context limit, pricing
and published rate limits. The registry is read-only at runtime; rate-limit
and spend state live in :mod:`llm_kg_pipeline.providers.governor`.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from typing import Any

from llm_kg_pipeline.exceptions import UnknownProviderError


@dataclass(frozen=True)
class ProviderSpec:
    """Configuration for a single provider.

    Attributes:
        provider_id: Registry key (e.g. "openai").
        display_name: Human-readable name.
        backend: SDK adapter to use ("openai" or "anthropic").
        model: Model identifier sent to the provider.
        max_tokens: Context window limit in tokens.
        cost_per_1000_tokens: USD per 1000 total tokens.
        requests_per_minute: Published request ceiling.
        tokens_per_minute: Published token ceiling.
        credential_env: Environment variable holding the API key.
        supports_structured_output: Whether the provider honors a JSON-mode hint.
    """

    provider_id: str
    display_name: str
    backend: str
    model: str
    max_tokens: int
    cost_per_1000_tokens: float
    requests_per_minute: int
    tokens_per_minute: int
    credential_env: str
    supports_structured_output: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_tokens <= 0:
            msg = "max_tokens must be positive"
            raise ValueError(msg)
        if self.cost_per_1000_tokens < 0:
            msg = "cost_per_1000_tokens must be non-negative"
            raise ValueError(msg)
        if self.requests_per_minute <= 0 or self.tokens_per_minute <= 0:
            msg = "rate limits must be positive"
            raise ValueError(msg)

    def estimate_cost(self, total_tokens: int) -> float:
        """Return the USD cost of ``total_tokens`` tokens."""
        return total_tokens / 1000 * self.cost_per_1000_tokens

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display and serialization."""
        return {
            "provider_id": self.provider_id,
            "display_name": self.display_name,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "cost_per_1000_tokens": self.cost_per_1000_tokens,
            "requests_per_minute": self.requests_per_minute,
            "tokens_per_minute": self.tokens_per_minute,
        }


DEFAULT_PROVIDERS: tuple[ProviderSpec, ...] = (
    ProviderSpec(
        provider_id="openai",
        display_name="OpenAI GPT-4",
        backend="openai",
        model="gpt-4-turbo",
        max_tokens=128_000,
        cost_per_1000_tokens=0.03,
        requests_per_minute=500,
        tokens_per_minute=150_000,
        credential_env="OPENAI_API_KEY",
        supports_structured_output=True,
    ),
    ProviderSpec(
        provider_id="anthropic",
        display_name="Anthropic Claude",
        backend="anthropic",
        model="claude-3-haiku-20240307",
        max_tokens=200_000,
        cost_per_1000_tokens=0.015,
        requests_per_minute=1000,
        tokens_per_minute=100_000,
        credential_env="ANTHROPIC_API_KEY",
    ),
)


class ProviderRegistry:
    """Read-only lookup of provider specs by id.

    Example:
        >>> registry = ProviderRegistry()
        >>> registry.get("openai").max_tokens
        128000
    """

    def __init__(self, providers: tuple[ProviderSpec, ...] | list[ProviderSpec] | None = None) -> None:
        """Initialize the registry.

        Args:
            providers: Provider specs. Uses ``DEFAULT_PROVIDERS`` if not provided.

        Raises:
            ValueError: If two specs share a provider id.
        """
        specs = DEFAULT_PROVIDERS if providers is None else tuple(providers)
        self._providers: dict[str, ProviderSpec] = {}
        for spec in specs:
            if spec.provider_id in self._providers:
                msg = f"Duplicate provider id: {spec.provider_id}"
                raise ValueError(msg)
            self._providers[spec.provider_id] = spec

    def get(self, provider_id: str) -> ProviderSpec:
        """Return the spec for ``provider_id``.

        Raises:
            UnknownProviderError: If the provider is not registered.
        """
        try:
            return self._providers[provider_id]
        except KeyError:
            raise UnknownProviderError(provider_id) from None

    def ids(self) -> list[str]:
        """Return registered provider ids in registration order."""
        return list(self._providers)

    def with_overrides(self, provider_id: str, **changes: Any) -> ProviderRegistry:
        """Return a new registry with one provider's fields replaced."""
        updated = [
            replace(spec, **changes) if spec.provider_id == provider_id else spec
            for spec in self._providers.values()
        ]
        if provider_id not in self._providers:
            raise UnknownProviderError(provider_id)
        return ProviderRegistry(updated)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self) -> Iterator[ProviderSpec]:
        return iter(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)
