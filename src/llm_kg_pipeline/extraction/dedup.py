"""Entity deduplication and relationship endpoint resolution."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from llm_kg_pipeline.extraction.parsing import RelationshipPayloadItem
from llm_kg_pipeline.models import Entity, Relationship

logger = structlog.get_logger(__name__)


def deduplicate_entities(entities: Iterable[Entity]) -> list[Entity]:
    """Collapse entities sharing a (lowercased name, type) identity.

    The highest-confidence entity of each group survives; on a tie the first
    one seen wins. Output keeps the position of each group's first occurrence,
    and running the function on its own output returns it unchanged.

    Args:
        entities: Entities in extraction order, possibly from several chunks.

    Returns:
        One entity per identity.
    """
    seen: dict[tuple, Entity] = {}
    for entity in entities:
        key = entity.dedup_key
        existing = seen.get(key)
        if existing is None or entity.confidence > existing.confidence:
            seen[key] = entity
    return list(seen.values())


def build_name_index(entities: Iterable[Entity]) -> dict[str, Entity]:
    """Map lowercased entity names to entities (first entity per name wins)."""
    index: dict[str, Entity] = {}
    for entity in entities:
        index.setdefault(entity.name.strip().lower(), entity)
    return index


def resolve_relationships(
    candidates: Iterable[RelationshipPayloadItem],
    entities: Iterable[Entity],
    confidence_threshold: float,
) -> list[Relationship]:
    """Turn name-addressed relationship candidates into id-addressed relationships.

    Candidates are dropped when below ``confidence_threshold``, when either
    named endpoint does not match an entity, or when both endpoints resolve
    to the same entity.

    Args:
        candidates: Parsed relationship items with endpoint names.
        entities: Deduplicated entities of the same result.
        confidence_threshold: Minimum relationship confidence.

    Returns:
        Relationships whose endpoints reference ``entities``.
    """
    index = build_name_index(entities)
    relationships: list[Relationship] = []
    stats = {"below_threshold": 0, "unresolved": 0, "self_loops": 0}

    for candidate in candidates:
        if candidate.confidence < confidence_threshold:
            stats["below_threshold"] += 1
            continue

        source = index.get(candidate.source_entity.lower())
        target = index.get(candidate.target_entity.lower())
        if source is None or target is None:
            stats["unresolved"] += 1
            continue

        # Skip self-loops (relationships to self)
        if source.id == target.id:
            stats["self_loops"] += 1
            continue

        relationships.append(
            Relationship(
                source_entity_id=source.id,
                target_entity_id=target.id,
                type=candidate.type,
                confidence=candidate.confidence,
                context=candidate.context,
                bidirectional=candidate.bidirectional,
                metadata=candidate.metadata,
            )
        )

    if any(stats.values()):
        logger.debug("Relationship candidates dropped", kept=len(relationships), **stats)
    return relationships
