"""Tests for entity deduplication, relationship resolution and quality scoring."""

from __future__ import annotations

import pytest

from llm_kg_pipeline.extraction.dedup import (
    build_name_index,
    deduplicate_entities,
    resolve_relationships,
)
from llm_kg_pipeline.extraction.parsing import RelationshipPayloadItem
from llm_kg_pipeline.extraction.quality import QualityConfig, compute_quality
from llm_kg_pipeline.models import Entity, EntityType, Relationship, RelationshipType


def _entity(name: str, type_: EntityType = EntityType.ORGANIZATION, confidence: float = 0.9) -> Entity:
    return Entity(name=name, type=type_, confidence=confidence)


def _candidate(source: str, target: str, confidence: float = 0.9, type_: str = "related_to") -> RelationshipPayloadItem:
    return RelationshipPayloadItem(source_entity=source, target_entity=target, type=type_, confidence=confidence)


class TestDeduplicateEntities:
    """Tests for deduplicate_entities."""

    def test_highest_confidence_wins(self) -> None:
        """Test that the best-scored duplicate across chunks survives."""
        entities = [
            _entity("Acme Corp", confidence=0.72),
            _entity("acme corp", confidence=0.81),
            _entity("ACME CORP", confidence=0.65),
        ]

        result = deduplicate_entities(entities)

        assert len(result) == 1
        assert result[0].confidence == 0.81
        assert result[0].id == entities[1].id

    def test_tie_keeps_first(self) -> None:
        first = _entity("Berlin", EntityType.LOCATION, 0.8)
        second = _entity("berlin", EntityType.LOCATION, 0.8)

        assert deduplicate_entities([first, second]) == [first]

    def test_same_name_different_type_kept(self) -> None:
        """Test that identity includes the entity type."""
        company = _entity("Python", EntityType.ORGANIZATION)
        language = _entity("Python", EntityType.TECHNOLOGY)

        assert deduplicate_entities([company, language]) == [company, language]

    def test_first_occurrence_order(self) -> None:
        entities = [
            _entity("A", confidence=0.7),
            _entity("B"),
            _entity("a", confidence=0.95),
        ]

        result = deduplicate_entities(entities)

        assert [e.name for e in result] == ["a", "B"]

    def test_idempotent(self) -> None:
        entities = [_entity("A"), _entity("a", confidence=0.95), _entity("B"), _entity("C")]
        once = deduplicate_entities(entities)

        assert deduplicate_entities(once) == once

    def test_no_duplicate_keys_in_output(self) -> None:
        entities = [_entity(name, confidence=c) for name in ("X", "x ", " X", "Y") for c in (0.7, 0.8)]

        result = deduplicate_entities(entities)

        keys = [e.dedup_key for e in result]
        assert len(keys) == len(set(keys)) == 2

    def test_empty(self) -> None:
        assert deduplicate_entities([]) == []


class TestResolveRelationships:
    """Tests for resolve_relationships."""

    @pytest.fixture
    def entities(self) -> list[Entity]:
        return [
            _entity("Acme Corp"),
            _entity("Jane Doe", EntityType.PERSON),
            _entity("Berlin", EntityType.LOCATION),
        ]

    def test_names_resolved_case_insensitively(self, entities) -> None:
        relationships = resolve_relationships(
            [_candidate("jane doe", "ACME CORP", type_="works_for")], entities, 0.6
        )

        assert len(relationships) == 1
        rel = relationships[0]
        assert rel.source_entity_id == entities[1].id
        assert rel.target_entity_id == entities[0].id
        assert rel.type == RelationshipType.WORKS_FOR

    def test_unresolved_endpoint_dropped(self, entities) -> None:
        assert resolve_relationships([_candidate("Acme Corp", "Globex")], entities, 0.6) == []

    def test_below_threshold_dropped(self, entities) -> None:
        candidates = [_candidate("Acme Corp", "Berlin", confidence=0.59), _candidate("Jane Doe", "Berlin", 0.6)]

        relationships = resolve_relationships(candidates, entities, 0.6)

        assert len(relationships) == 1
        assert relationships[0].confidence == 0.6

    def test_self_loop_dropped(self, entities) -> None:
        assert resolve_relationships([_candidate("Acme Corp", "acme corp")], entities, 0.6) == []

    def test_endpoints_always_in_entity_set(self, entities) -> None:
        candidates = [
            _candidate(source, target)
            for source in ("Acme Corp", "Jane Doe", "Nobody")
            for target in ("Berlin", "Jane Doe", "Elsewhere")
        ]

        relationships = resolve_relationships(candidates, entities, 0.0)

        ids = {e.id for e in entities}
        assert relationships
        for rel in relationships:
            assert rel.source_entity_id in ids
            assert rel.target_entity_id in ids
            assert rel.source_entity_id != rel.target_entity_id

    def test_fields_carried_over(self, entities) -> None:
        candidate = RelationshipPayloadItem(
            source_entity="Acme Corp",
            target_entity="Berlin",
            type="located_in",
            confidence=0.8,
            context="Acme Corp is headquartered in Berlin",
            bidirectional=False,
            metadata={"since": "1999"},
        )

        rel = resolve_relationships([candidate], entities, 0.6)[0]

        assert rel.context == "Acme Corp is headquartered in Berlin"
        assert rel.metadata == {"since": "1999"}
        assert rel.id.startswith("rel_")

    def test_name_index_first_wins(self) -> None:
        first = _entity("Mercury", EntityType.LOCATION)
        second = _entity("mercury", EntityType.TECHNOLOGY)

        assert build_name_index([first, second])["mercury"] is first


class TestComputeQuality:
    """Tests for compute_quality."""

    def test_empty_extraction(self) -> None:
        quality = compute_quality([], [], chunk_count=1)

        assert quality.extraction_confidence == 0.0
        assert quality.completeness_score == 0.0
        assert quality.content_preservation_ratio == 0.0

    def test_scores(self) -> None:
        entities = [_entity("A", confidence=0.9), _entity("B", confidence=0.7), _entity("C", confidence=0.8)]
        relationships = [
            Relationship(
                source_entity_id=entities[0].id,
                target_entity_id=entities[1].id,
                type=RelationshipType.RELATED_TO,
                confidence=0.8,
            )
        ]

        quality = compute_quality(entities, relationships, chunk_count=2)

        assert quality.extraction_confidence == pytest.approx(0.8)
        assert quality.completeness_score == pytest.approx(0.4)
        assert quality.content_preservation_ratio == pytest.approx(0.75)

    def test_scores_capped_at_one(self) -> None:
        entities = [_entity(f"E{i}") for i in range(12)]

        quality = compute_quality(entities, [], chunk_count=1)

        assert quality.completeness_score == 1.0
        assert quality.content_preservation_ratio == 1.0

    def test_zero_chunks(self) -> None:
        quality = compute_quality([_entity("A")], [], chunk_count=0)

        assert quality.content_preservation_ratio == 1.0

    def test_custom_targets(self) -> None:
        config = QualityConfig(completeness_target=2, entities_per_chunk_target=1)

        quality = compute_quality([_entity("A")], [], chunk_count=2, config=config)

        assert quality.completeness_score == 0.5
        assert quality.content_preservation_ratio == 0.5

    def test_invalid_config(self) -> None:
        with pytest.raises(ValueError):
            QualityConfig(completeness_target=0)
