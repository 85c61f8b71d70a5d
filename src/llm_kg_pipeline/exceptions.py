"""Custom exceptions for the LLM knowledge extraction pipeline.

Provides a hierarchy of exceptions for different error conditions:
- PipelineError: Base exception for all pipeline errors
- ProviderError: A single provider attempt failed (carries ``retryable``)
- DispatchError: A whole fallback dispatch failed (all providers, or budget)
- ParseFailureError: Model output did not match the expected structure
- JobTimeoutError / JobCancelledError: Job queue terminal conditions
- IneligibleContentError: Content rejected by the eligibility gate
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for pipeline errors."""


# =============================================================================
# PROVIDER ERRORS (one attempt against one provider)
# =============================================================================


class ProviderError(PipelineError):
    """A generation request to a single provider failed.

    Attributes:
        provider_id: Provider that produced the failure.
        retryable: Whether another attempt (same or other provider) may succeed.
    """

    retryable: bool = False

    def __init__(self, provider_id: str, message: str) -> None:
        """Initialize ProviderError.

        Args:
            provider_id: Provider that produced the failure.
            message: Description of what went wrong.
        """
        self.provider_id = provider_id
        super().__init__(f"{provider_id}: {message}")


class RateLimitedError(ProviderError):
    """Provider request ceiling reached, locally or reported by the provider."""

    retryable = True


class TransientProviderError(ProviderError):
    """Timeout, connection failure or 5xx-equivalent provider error."""

    retryable = True


class NonRetryableProviderError(ProviderError):
    """Bad request, authentication or other permanent provider error."""

    retryable = False


class MissingCredentialsError(NonRetryableProviderError):
    """No credential configured for the provider."""

    def __init__(self, provider_id: str) -> None:
        """Initialize MissingCredentialsError."""
        super().__init__(provider_id, "no API credential configured")


class UnknownProviderError(PipelineError, KeyError):
    """Provider id is not present in the provider registry."""

    def __init__(self, provider_id: str) -> None:
        """Initialize UnknownProviderError."""
        self.provider_id = provider_id
        super().__init__(f"Unknown provider: {provider_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class ProviderConfigError(PipelineError, ValueError):
    """Request options are incompatible with the provider's limits."""


# =============================================================================
# DISPATCH ERRORS (terminal for one dispatch call)
# =============================================================================


class DispatchError(PipelineError):
    """A fallback dispatch could not produce a response."""


class AllProvidersFailedError(DispatchError):
    """Every provider failed on every pass.

    Attributes:
        last_error: Message of the last provider error observed.
        attempts: Number of provider attempts made across all passes.
    """

    def __init__(self, last_error: str, attempts: int = 0) -> None:
        """Initialize AllProvidersFailedError.

        Args:
            last_error: Message of the last provider error observed.
            attempts: Number of provider attempts made across all passes.
        """
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"All LLM providers failed after {attempts} attempts: {last_error}")


class BudgetExceededError(DispatchError):
    """Daily spend has reached the configured cost limit.

    Attributes:
        spent: Spend so far in the current day window (USD).
        limit: Configured daily limit (USD).
    """

    def __init__(self, spent: float, limit: float) -> None:
        """Initialize BudgetExceededError."""
        self.spent = spent
        self.limit = limit
        super().__init__(f"Daily LLM cost limit reached: ${spent:.4f} >= ${limit:.2f}")


# =============================================================================
# EXTRACTION / QUEUE ERRORS
# =============================================================================


class ParseFailureError(PipelineError):
    """Model output does not match the expected structured shape.

    Attributes:
        task: Extraction task whose output failed to parse.
        raw_text: Truncated raw model output, for logging.
    """

    def __init__(self, task: str, message: str, raw_text: str = "") -> None:
        """Initialize ParseFailureError."""
        self.task = task
        self.raw_text = raw_text[:500]
        super().__init__(f"Failed to parse {task} response: {message}")


class PromptRenderError(PipelineError):
    """A prompt template placeholder had no value."""


class JobTimeoutError(PipelineError):
    """A job exceeded its processing timeout."""

    def __init__(self, job_id: str, timeout_seconds: float) -> None:
        """Initialize JobTimeoutError."""
        self.job_id = job_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Job {job_id} timed out after {timeout_seconds:g}s")


class JobCancelledError(PipelineError):
    """A job was cancelled by the caller while in flight."""


class IneligibleContentError(PipelineError):
    """Content rejected by the eligibility gate before a job was created.

    Attributes:
        reason: Short machine-readable rejection reason.
    """

    def __init__(self, reason: str) -> None:
        """Initialize IneligibleContentError."""
        self.reason = reason
        super().__init__(f"Content not eligible for LLM processing: {reason}")
