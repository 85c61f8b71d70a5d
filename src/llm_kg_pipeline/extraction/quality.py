"""Heuristic quality scores for a processing result.

Scores are computed from counts, not by the model, so they are cheap and
deterministic. The constants live in ``QualityConfig``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from llm_kg_pipeline.models import Entity, QualityMetrics, Relationship


@dataclass(frozen=True)
class QualityConfig:
    """Constants behind the quality heuristics.

    Attributes:
        completeness_target: Entities plus relationships that count as complete.
        entities_per_chunk_target: Entities per chunk that count as full preservation.
    """

    completeness_target: int = 10
    entities_per_chunk_target: int = 2

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.completeness_target <= 0 or self.entities_per_chunk_target <= 0:
            msg = "quality targets must be positive"
            raise ValueError(msg)


def compute_quality(
    entities: Sequence[Entity],
    relationships: Sequence[Relationship],
    chunk_count: int,
    config: QualityConfig | None = None,
) -> QualityMetrics:
    """Compute quality metrics for an extraction.

    Args:
        entities: Deduplicated entities.
        relationships: Resolved relationships.
        chunk_count: Number of chunks processed.
        config: Heuristic constants. Uses defaults if not provided.

    Returns:
        QualityMetrics with all three scores in [0, 1].
    """
    config = config or QualityConfig()

    confidence = sum(e.confidence for e in entities) / len(entities) if entities else 0.0
    completeness = min((len(entities) + len(relationships)) / config.completeness_target, 1.0)
    preservation = min(
        len(entities) / max(config.entities_per_chunk_target * chunk_count, 1),
        1.0,
    )

    return QualityMetrics(
        extraction_confidence=confidence,
        completeness_score=completeness,
        content_preservation_ratio=preservation,
    )
