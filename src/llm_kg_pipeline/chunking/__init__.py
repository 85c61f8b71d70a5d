"""Content preprocessing for LLM extraction.

This package normalizes markdown content, estimates token counts and splits
oversized content into ordered chunks using LangChain's
RecursiveCharacterTextSplitter.
"""

from llm_kg_pipeline.chunking.config import ChunkingConfig
from llm_kg_pipeline.chunking.preprocessor import (
    ContentPreprocessor,
    chunk_content,
    estimate_tokens,
    fits_budget,
    normalize_content,
)

__all__ = [
    "ChunkingConfig",
    "ContentPreprocessor",
    "chunk_content",
    "estimate_tokens",
    "fits_budget",
    "normalize_content",
]
