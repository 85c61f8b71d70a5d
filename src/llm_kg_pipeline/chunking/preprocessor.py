"""Whitespace normalization, token estimation and token-budgeted chunking.

Chunking uses LangChain's RecursiveCharacterTextSplitter with the token
estimator as its length function. Separators are kept at the end of each
piece and whitespace is never stripped, so the chunks of a text concatenate
back to exactly that text.
"""

from __future__ import annotations

import math
import re

import structlog

from llm_kg_pipeline.chunking.config import ChunkingConfig

logger = structlog.get_logger(__name__)

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_EXCESS_SPACES = re.compile(r"[ \t]{2,}")


def normalize_content(text: str) -> str:
    """Collapse excess blank lines and spaces, then trim.

    Args:
        text: Raw markdown content.

    Returns:
        Content with 3+ newlines collapsed to 2 and runs of spaces/tabs to one space.
    """
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = _EXCESS_SPACES.sub(" ", text)
    return text.strip()


def estimate_tokens(text: str, chars_per_token: float = 4.0) -> int:
    """Estimate the token count of ``text`` from its length."""
    return math.ceil(len(text) / chars_per_token)


def fits_budget(
    text: str,
    max_tokens: int,
    headroom: float = 0.2,
    chars_per_token: float = 4.0,
) -> bool:
    """Check whether ``text`` fits a provider limit with headroom to spare.

    Args:
        text: Prompt content.
        max_tokens: Provider context limit.
        headroom: Fraction of the limit reserved for the response.
        chars_per_token: Characters per token for estimation.

    Returns:
        True if the estimated tokens are within ``(1 - headroom) * max_tokens``.
    """
    return estimate_tokens(text, chars_per_token) <= max_tokens * (1 - headroom)


def chunk_content(
    text: str,
    max_tokens_per_chunk: int = 2000,
    chars_per_token: float = 4.0,
) -> list[str]:
    """Split content into ordered chunks under a token budget.

    Convenience wrapper around :class:`ContentPreprocessor`.

    Args:
        text: Normalized content.
        max_tokens_per_chunk: Estimated token budget per chunk.
        chars_per_token: Characters per token for estimation.

    Returns:
        Chunks in document order.
    """
    config = ChunkingConfig(max_tokens_per_chunk=max_tokens_per_chunk, chars_per_token=chars_per_token)
    return ContentPreprocessor(config).chunk(text)


class ContentPreprocessor:
    """Normalizes content and splits it into token-budgeted chunks.

    Splits on paragraph boundaries first, then sentence boundaries, then words
    and finally characters for pathological pieces, greedily packing pieces
    into chunks that stay under the budget.

    Attributes:
        config: Chunking configuration.
        splitter: LangChain RecursiveCharacterTextSplitter instance.

    Example:
        >>> preprocessor = ContentPreprocessor(ChunkingConfig(max_tokens_per_chunk=2000))
        >>> chunks = preprocessor.chunk("First paragraph.\\n\\nSecond paragraph.")
        >>> len(chunks)
        1
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        """Initialize the preprocessor.

        Args:
            config: Chunking configuration. Uses defaults if not provided.
        """
        # Lazy import to avoid requiring langchain at module load
        from langchain_text_splitters import RecursiveCharacterTextSplitter

        self.config = config or ChunkingConfig()
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=self.config.max_tokens_per_chunk,
            chunk_overlap=0,
            length_function=self.estimate_tokens,
            separators=list(self.config.separators),
            keep_separator="end",
            strip_whitespace=False,
        )

    def normalize(self, text: str) -> str:
        """Collapse excess whitespace and trim."""
        return normalize_content(text)

    def estimate_tokens(self, text: str) -> int:
        """Estimate tokens with the configured character ratio."""
        return estimate_tokens(text, self.config.chars_per_token)

    def fits_budget(self, text: str, max_tokens: int) -> bool:
        """Check ``text`` against a provider limit with the configured headroom."""
        return fits_budget(text, max_tokens, self.config.headroom, self.config.chars_per_token)

    def chunk(self, text: str) -> list[str]:
        """Split ``text`` into chunks under ``max_tokens_per_chunk``.

        Args:
            text: Content to split (normally already normalized).

        Returns:
            ``[text]`` unchanged if it fits the budget, otherwise ordered
            chunks whose concatenation equals ``text``. Empty text gives ``[]``.
        """
        if not text:
            return []
        if self.estimate_tokens(text) <= self.config.max_tokens_per_chunk:
            return [text]

        chunks = self.splitter.split_text(text)
        logger.debug(
            "Content chunked",
            chars=len(text),
            estimated_tokens=self.estimate_tokens(text),
            chunks=len(chunks),
        )
        return chunks
