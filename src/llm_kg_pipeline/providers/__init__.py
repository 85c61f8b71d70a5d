"""LLM provider access: registry, governor, backends, client and dispatcher.

Call path for one generation request:
    FallbackDispatcher -> ProviderClient -> UsageGovernor (rate + budget)
                                         -> ProviderBackend (OpenAI / Anthropic SDK)
"""

from llm_kg_pipeline.providers.backends import (
    AnthropicBackend,
    GenerationRequest,
    OpenAIBackend,
    ProviderBackend,
    RawGeneration,
    classify_provider_error,
    create_backends,
)
from llm_kg_pipeline.providers.client import (
    GenerationOptions,
    ProviderClient,
    ProviderResponse,
    RenderedPrompt,
)
from llm_kg_pipeline.providers.dispatcher import (
    DispatcherConfig,
    DispatchResult,
    FallbackDispatcher,
)
from llm_kg_pipeline.providers.governor import ProviderState, UsageGovernor
from llm_kg_pipeline.providers.registry import (
    DEFAULT_PROVIDERS,
    ProviderRegistry,
    ProviderSpec,
)

__all__ = [
    "DEFAULT_PROVIDERS",
    "AnthropicBackend",
    "DispatchResult",
    "DispatcherConfig",
    "FallbackDispatcher",
    "GenerationOptions",
    "GenerationRequest",
    "OpenAIBackend",
    "ProviderBackend",
    "ProviderClient",
    "ProviderRegistry",
    "ProviderResponse",
    "ProviderSpec",
    "ProviderState",
    "RawGeneration",
    "RenderedPrompt",
    "UsageGovernor",
    "classify_provider_error",
    "create_backends",
]
