"""Configuration for content preprocessing and chunking.

This module defines the ChunkingConfig frozen dataclass that configures
whitespace normalization, token estimation and the LangChain-based splitter.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for token-budgeted content chunking.

    Token counts are estimated with a fixed character-per-token ratio; the
    estimate is approximate by intent, so ``headroom`` keeps a safety margin
    before a provider's real context limit.

    Attributes:
        max_tokens_per_chunk: Estimated token budget for each chunk.
        chars_per_token: Characters per token used for estimation.
        headroom: Fraction of a provider limit reserved for the response.
        separators: Split points for RecursiveCharacterTextSplitter, coarsest first.
    """

    max_tokens_per_chunk: int = 2000
    chars_per_token: float = 4.0
    headroom: float = 0.2

    separators: tuple[str, ...] = field(
        default_factory=lambda: (
            "\n\n",  # Paragraph breaks
            ". ",  # Sentence endings
            " ",  # Words
            "",  # Characters (last resort)
        )
    )

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_tokens_per_chunk <= 0:
            msg = "max_tokens_per_chunk must be positive"
            raise ValueError(msg)
        if self.chars_per_token <= 0:
            msg = "chars_per_token must be positive"
            raise ValueError(msg)
        if not 0 <= self.headroom < 1:
            msg = "headroom must be in [0, 1)"
            raise ValueError(msg)
        if not self.separators:
            msg = "separators must not be empty"
            raise ValueError(msg)

    @property
    def max_chars_per_chunk(self) -> int:
        """Approximate character budget implied by the token budget."""
        return int(self.max_tokens_per_chunk * self.chars_per_token)
