"""Configuration defaults and environment-driven settings for the pipeline.

Module-level constants hold the defaults shared by components; the
``PipelineSettings`` dataclass gathers everything a process needs to wire a
service together and can be populated from environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Extraction thresholds
ENTITY_CONFIDENCE_THRESHOLD = 0.7
RELATIONSHIP_CONFIDENCE_THRESHOLD = 0.6
MIN_CONTENT_CHARS = 100  # Orchestrator refuses to extract from less
MAX_CHUNKS = 5
MAX_KEY_INSIGHTS = 5

# Fallback dispatch
DEFAULT_PROVIDER_PRIORITY: tuple[str, ...] = ("openai", "anthropic")
MAX_DISPATCH_PASSES = 3
RETRY_BASE_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 30.0
PROVIDER_REQUEST_TIMEOUT_SECONDS = 30.0

# Rate-limit window
RATE_LIMIT_WINDOW_SECONDS = 60.0

# Job queue
JOB_TIMEOUT_SECONDS = 180.0

# Eligibility gate (auto-processing is opt-in to avoid unexpected costs)
AUTO_PROCESSING_ENABLED = False
MIN_CONTENT_LENGTH = 500
MAX_CONTENT_LENGTH = 50_000
MIN_WORD_COUNT = 50
DAILY_COST_LIMIT_CENTS = 1000  # $10

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class PipelineSettings:
    """Process-wide settings for the knowledge extraction service.

    Attributes:
        openai_api_key: OpenAI credential; empty disables the provider.
        anthropic_api_key: Anthropic credential; empty disables the provider.
        provider_priority: Provider ids in fallback order.
        max_dispatch_passes: Full passes over the priority list per dispatch.
        retry_base_delay: Backoff base between passes (seconds).
        auto_processing_enabled: Whether the eligibility gate admits content.
        daily_cost_limit_cents: Daily spend ceiling in cents.
        min_content_length: Minimum characters for eligible content.
        max_content_length: Maximum characters for eligible content.
        job_timeout_seconds: Per-job processing timeout.
        max_tokens_per_chunk: Token budget per content chunk.
        chars_per_token: Character/token ratio for token estimation.
    """

    openai_api_key: str = ""
    anthropic_api_key: str = ""
    provider_priority: tuple[str, ...] = field(default_factory=lambda: DEFAULT_PROVIDER_PRIORITY)
    max_dispatch_passes: int = MAX_DISPATCH_PASSES
    retry_base_delay: float = RETRY_BASE_DELAY_SECONDS

    auto_processing_enabled: bool = AUTO_PROCESSING_ENABLED
    daily_cost_limit_cents: int = DAILY_COST_LIMIT_CENTS
    min_content_length: int = MIN_CONTENT_LENGTH
    max_content_length: int = MAX_CONTENT_LENGTH

    job_timeout_seconds: float = JOB_TIMEOUT_SECONDS
    max_tokens_per_chunk: int = 2000
    chars_per_token: float = 4.0

    @property
    def daily_cost_limit(self) -> float:
        """Daily cost limit in dollars."""
        return self.daily_cost_limit_cents / 100

    @property
    def credentials(self) -> dict[str, str]:
        """Provider credentials keyed by provider id (empty values omitted)."""
        keys = {"openai": self.openai_api_key, "anthropic": self.anthropic_api_key}
        return {provider: key for provider, key in keys.items() if key}

    @classmethod
    def from_env(cls) -> PipelineSettings:
        """Create settings from environment variables.

        Reads from:
        - OPENAI_API_KEY, ANTHROPIC_API_KEY
        - LLM_AUTO_PROCESSING ("true" enables the eligibility gate)
        - LLM_DAILY_COST_LIMIT_CENTS
        - LLM_PROVIDER_PRIORITY (comma-separated provider ids)
        - LLM_JOB_TIMEOUT_SECONDS
        - LLM_MIN_CONTENT_LENGTH, LLM_MAX_CONTENT_LENGTH

        Returns:
            Settings populated from environment.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        import os

        from dotenv import load_dotenv

        load_dotenv()

        priority_raw = os.getenv("LLM_PROVIDER_PRIORITY", "")
        priority = tuple(p.strip() for p in priority_raw.split(",") if p.strip())

        try:
            return cls(
                openai_api_key=os.getenv("OPENAI_API_KEY", ""),
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
                provider_priority=priority or DEFAULT_PROVIDER_PRIORITY,
                auto_processing_enabled=os.getenv("LLM_AUTO_PROCESSING", "").lower() in _TRUTHY,
                daily_cost_limit_cents=int(
                    os.getenv("LLM_DAILY_COST_LIMIT_CENTS", str(DAILY_COST_LIMIT_CENTS))
                ),
                job_timeout_seconds=float(
                    os.getenv("LLM_JOB_TIMEOUT_SECONDS", str(JOB_TIMEOUT_SECONDS))
                ),
                min_content_length=int(os.getenv("LLM_MIN_CONTENT_LENGTH", str(MIN_CONTENT_LENGTH))),
                max_content_length=int(os.getenv("LLM_MAX_CONTENT_LENGTH", str(MAX_CONTENT_LENGTH))),
            )
        except ValueError as e:
            msg = f"Invalid numeric LLM_* environment variable: {e}"
            raise ValueError(msg) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (excluding sensitive values).

        Returns:
            Dictionary representation with API keys reduced to presence flags.
        """
        return {
            "openai_configured": bool(self.openai_api_key),
            "anthropic_configured": bool(self.anthropic_api_key),
            "provider_priority": list(self.provider_priority),
            "max_dispatch_passes": self.max_dispatch_passes,
            "auto_processing_enabled": self.auto_processing_enabled,
            "daily_cost_limit_cents": self.daily_cost_limit_cents,
            "min_content_length": self.min_content_length,
            "max_content_length": self.max_content_length,
            "job_timeout_seconds": self.job_timeout_seconds,
            "max_tokens_per_chunk": self.max_tokens_per_chunk,
        }
