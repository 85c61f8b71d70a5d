"""Eligibility and budget gate for automatic processing.

Decides, before any job exists, whether a content item is worth sending to
the pipeline: auto-processing must be enabled, the content must be within the
length window, look like prose, and today's spend must be under the limit.
The gate is pure; callers pass in today's spend.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any

from llm_kg_pipeline.config import (
    AUTO_PROCESSING_ENABLED,
    DAILY_COST_LIMIT_CENTS,
    MAX_CONTENT_LENGTH,
    MIN_CONTENT_LENGTH,
    MIN_WORD_COUNT,
    PipelineSettings,
)

_SENTENCE_PUNCTUATION = re.compile(r"[.!?]")
_UPPERCASE = re.compile(r"[A-Z]")

# Rejection reasons
DISABLED = "disabled"
TOO_SHORT = "too_short"
TOO_LONG = "too_long"
BUDGET_EXHAUSTED = "budget_exhausted"
TOO_FEW_WORDS = "too_few_words"
NO_SENTENCES = "no_sentence_punctuation"
NO_CAPITALIZATION = "no_capitalization"


@dataclass(frozen=True)
class EligibilitySettings:
    """Thresholds for the eligibility gate.

    Attributes:
        enabled: Whether automatic processing is switched on.
        min_length: Minimum content length in characters.
        max_length: Maximum content length in characters.
        min_word_count: Minimum whitespace-separated words.
        daily_cost_limit: USD spend ceiling for one day.
    """

    enabled: bool = AUTO_PROCESSING_ENABLED
    min_length: int = MIN_CONTENT_LENGTH
    max_length: int = MAX_CONTENT_LENGTH
    min_word_count: int = MIN_WORD_COUNT
    daily_cost_limit: float = DAILY_COST_LIMIT_CENTS / 100

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.min_length < 0 or self.max_length < self.min_length:
            msg = "length window must satisfy 0 <= min_length <= max_length"
            raise ValueError(msg)
        if self.daily_cost_limit < 0:
            msg = "daily_cost_limit must be non-negative"
            raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: PipelineSettings) -> EligibilitySettings:
        """Create gate settings from process-wide pipeline settings."""
        return cls(
            enabled=settings.auto_processing_enabled,
            min_length=settings.min_content_length,
            max_length=settings.max_content_length,
            daily_cost_limit=settings.daily_cost_limit,
        )


@dataclass(frozen=True)
class EligibilityDecision:
    """Outcome of an eligibility check.

    Attributes:
        eligible: Whether the content may be processed.
        reason: Machine-readable rejection reason, None when eligible.
        details: Measured values behind the decision.
    """

    eligible: bool
    reason: str | None = None
    details: dict[str, Any] | None = None

    def __bool__(self) -> bool:
        return self.eligible


class EligibilityGate:
    """Pure predicate over content and today's spend.

    Example:
        >>> gate = EligibilityGate(EligibilitySettings(enabled=True))
        >>> gate.should_process("Too short.", daily_spend_so_far=0.0)
        False
    """

    def __init__(self, settings: EligibilitySettings | None = None) -> None:
        """Initialize the gate.

        Args:
            settings: Gate thresholds. Uses defaults (disabled) if not provided.
        """
        self.settings = settings or EligibilitySettings()

    def evaluate(self, content: str, daily_spend_so_far: float) -> EligibilityDecision:
        """Check content against every rule, stopping at the first failure.

        Args:
            content: Markdown content.
            daily_spend_so_far: USD spent today.

        Returns:
            The decision with the first failed rule as ``reason``.
        """
        settings = self.settings
        if not settings.enabled:
            return EligibilityDecision(False, DISABLED)

        length = len(content)
        if length < settings.min_length:
            return EligibilityDecision(False, TOO_SHORT, {"length": length, "min": settings.min_length})
        if length > settings.max_length:
            return EligibilityDecision(False, TOO_LONG, {"length": length, "max": settings.max_length})

        if daily_spend_so_far >= settings.daily_cost_limit:
            return EligibilityDecision(
                False,
                BUDGET_EXHAUSTED,
                {"spent": daily_spend_so_far, "limit": settings.daily_cost_limit},
            )

        words = len(content.split())
        if words < settings.min_word_count:
            return EligibilityDecision(False, TOO_FEW_WORDS, {"words": words, "min": settings.min_word_count})

        if not _SENTENCE_PUNCTUATION.search(content):
            return EligibilityDecision(False, NO_SENTENCES)
        if not _UPPERCASE.search(content):
            return EligibilityDecision(False, NO_CAPITALIZATION)

        return EligibilityDecision(True, details={"length": length, "words": words})

    def should_process(self, content: str, daily_spend_so_far: float) -> bool:
        """Return whether content is eligible for processing."""
        return self.evaluate(content, daily_spend_so_far).eligible
