"""Tests for prompt templates and type catalogs."""

from __future__ import annotations

from dataclasses import fields

import pytest

from llm_kg_pipeline.exceptions import PromptRenderError
from llm_kg_pipeline.extraction.prompts import (
    CONTENT_ANALYSIS_PROMPT,
    ENTITY_EXTRACTION_PROMPT,
    RELATIONSHIP_DETECTION_PROMPT,
    PromptTemplate,
    format_entity_list,
    render_prompt,
)
from llm_kg_pipeline.extraction.schema import ENTITY_TYPES, RELATIONSHIP_TYPES, type_choices
from llm_kg_pipeline.models import Entity, EntityType, RelationshipType


class TestTypeCatalogs:
    """Tests for the entity and relationship type catalogs."""

    def test_catalogs_cover_enums(self) -> None:
        """Test that every enum member has a description."""
        assert set(ENTITY_TYPES) == set(EntityType)
        assert set(RELATIONSHIP_TYPES) == set(RelationshipType)

    def test_type_choices(self) -> None:
        assert type_choices(ENTITY_TYPES) == "person|organization|concept|location|technology"


class TestPromptTemplates:
    """Tests for the three extraction templates."""

    def test_generation_settings(self) -> None:
        """Test the per-task token caps and temperatures."""
        assert (ENTITY_EXTRACTION_PROMPT.max_output_tokens, ENTITY_EXTRACTION_PROMPT.temperature) == (2000, 0.1)
        assert (RELATIONSHIP_DETECTION_PROMPT.max_output_tokens, RELATIONSHIP_DETECTION_PROMPT.temperature) == (
            1500,
            0.1,
        )
        assert (CONTENT_ANALYSIS_PROMPT.max_output_tokens, CONTENT_ANALYSIS_PROMPT.temperature) == (1000, 0.2)

    def test_generation_options(self) -> None:
        options = RELATIONSHIP_DETECTION_PROMPT.generation_options()

        assert options.task == "relationship_detection"
        assert options.max_output_tokens == 1500
        assert options.structured_output is True

    def test_template_fields(self) -> None:
        """Test that every template field is a message or a generation setting."""
        assert [f.name for f in fields(PromptTemplate)] == [
            "name",
            "system",
            "user",
            "response_format",
            "max_output_tokens",
            "temperature",
        ]

    def test_system_instructions_list_types(self) -> None:
        for type_ in EntityType:
            assert type_.value in ENTITY_EXTRACTION_PROMPT.system
        for type_ in RelationshipType:
            assert type_.value in RELATIONSHIP_DETECTION_PROMPT.system

    @pytest.mark.parametrize(
        "template",
        [ENTITY_EXTRACTION_PROMPT, RELATIONSHIP_DETECTION_PROMPT, CONTENT_ANALYSIS_PROMPT],
        ids=lambda t: t.name,
    )
    def test_system_demands_json(self, template) -> None:
        assert "Valid JSON only" in template.system


class TestRenderPrompt:
    """Tests for render_prompt."""

    def test_entity_prompt_renders_literal_braces(self) -> None:
        """Test that JSON structure examples survive formatting."""
        rendered = render_prompt(ENTITY_EXTRACTION_PROMPT, content="Acme Corp is in Berlin.")

        assert rendered.system == ENTITY_EXTRACTION_PROMPT.system
        assert '"entities": [' in rendered.user
        assert '"source_span": {"start": 123, "end": 145}' in rendered.user
        assert "{content}" not in rendered.user
        assert "Acme Corp is in Berlin." in rendered.user

    def test_relationship_prompt_renders_entities(self) -> None:
        entities = [
            Entity(name="Jane Doe", type=EntityType.PERSON, confidence=0.9),
            Entity(name="Acme Corp", type=EntityType.ORGANIZATION, confidence=0.9),
        ]

        rendered = render_prompt(
            RELATIONSHIP_DETECTION_PROMPT,
            entities=format_entity_list(entities),
            content="Jane Doe works for Acme Corp.",
        )

        assert "- Jane Doe (person)\n- Acme Corp (organization)" in rendered.user
        assert '"source_entity": "entity name 1"' in rendered.user

    def test_analysis_prompt_renders(self) -> None:
        rendered = render_prompt(CONTENT_ANALYSIS_PROMPT, content="Some text")

        assert '"key_insights": [' in rendered.user
        assert "Some text" in rendered.user

    def test_missing_variable_raises(self) -> None:
        with pytest.raises(PromptRenderError, match="entities"):
            render_prompt(RELATIONSHIP_DETECTION_PROMPT, content="only content")

    def test_content_with_braces_is_not_reformatted(self) -> None:
        """Test that braces inside content are inserted verbatim."""
        rendered = render_prompt(ENTITY_EXTRACTION_PROMPT, content="config = {debug: true}")

        assert "config = {debug: true}" in rendered.user
