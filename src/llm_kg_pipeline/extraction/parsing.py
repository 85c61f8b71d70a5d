"""Validation of structured model output.

Model text is reduced to a JSON document (markdown fences stripped, an object
embedded in prose recovered) and validated with pydantic. A response whose
envelope is unusable raises ParseFailureError; individual malformed items
inside a usable envelope are dropped with a warning so one bad entity never
costs the whole chunk.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
import structlog

from llm_kg_pipeline.exceptions import ParseFailureError
from llm_kg_pipeline.models import Entity, EntityType, RelationshipType, SourceSpan

logger = structlog.get_logger(__name__)

_EMBEDDED_JSON = re.compile(r"(\{.*\}|\[.*\])", re.DOTALL)


# =============================================================================
# PAYLOAD SCHEMAS
# =============================================================================


class _PayloadItem(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, populate_by_name=True)

    @field_validator("context", "metadata", mode="before", check_fields=False)
    @classmethod
    def _none_to_default(cls, value: Any, info: Any) -> Any:
        if value is None:
            return {} if info.field_name == "metadata" else ""
        return value

    @field_validator("type", mode="before", check_fields=False)
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_")
        return value


class EntityPayloadItem(_PayloadItem):
    """One entity as reported by the model."""

    name: str = Field(min_length=1)
    type: EntityType
    confidence: float = Field(ge=0.0, le=1.0)
    context: str = ""
    source_span: SourceSpan | None = Field(
        default=None, validation_alias=AliasChoices("source_span", "sourceSpan")
    )
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("source_span", mode="before")
    @classmethod
    def _lenient_span(cls, value: Any) -> Any:
        # A bad span is not worth losing the entity over.
        if not isinstance(value, dict):
            return None
        start, end = value.get("start"), value.get("end")
        if not isinstance(start, int) or not isinstance(end, int) or start < 0 or end < start:
            return None
        return value

    def to_entity(self) -> Entity:
        """Create a pipeline Entity with a fresh id."""
        return Entity(
            name=self.name,
            type=self.type,
            confidence=self.confidence,
            context=self.context,
            source_span=self.source_span,
            metadata=self.metadata,
        )


class RelationshipPayloadItem(_PayloadItem):
    """One relationship as reported by the model, with endpoints by name."""

    source_entity: str = Field(
        min_length=1, validation_alias=AliasChoices("source_entity", "sourceEntity", "source")
    )
    target_entity: str = Field(
        min_length=1, validation_alias=AliasChoices("target_entity", "targetEntity", "target")
    )
    type: RelationshipType
    confidence: float = Field(ge=0.0, le=1.0)
    context: str = ""
    bidirectional: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class ContentAnalysis(BaseModel):
    """Summary and insights produced by the content analysis task."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: str = ""
    key_insights: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("key_insights", "keyInsights")
    )
    themes: list[str] = Field(default_factory=list)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("key_insights", "themes", mode="before")
    @classmethod
    def _string_items(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]


# =============================================================================
# JSON RECOVERY
# =============================================================================


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    content = text.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()
    return content


def extract_json(text: str) -> Any:
    """Parse JSON from model text.

    Tries the fence-stripped text first, then the outermost object or array
    embedded in surrounding prose.

    Returns:
        The decoded document, or None if nothing parses.
    """
    if not text or not text.strip():
        return None

    content = strip_code_fences(text)
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass

    match = _EMBEDDED_JSON.search(content)
    if not match:
        return None
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        return None


def _envelope_items(text: str, key: str, task: str) -> list[Any]:
    data = extract_json(text)
    if data is None:
        raise ParseFailureError(task, "response is not valid JSON", raw_text=text)

    if isinstance(data, dict):
        items = data.get(key)
        if items is None:
            raise ParseFailureError(task, f"missing '{key}' key", raw_text=text)
    elif isinstance(data, list):
        items = data
    else:
        raise ParseFailureError(task, f"unexpected JSON type {type(data).__name__}", raw_text=text)

    if not isinstance(items, list):
        raise ParseFailureError(task, f"'{key}' is not a list", raw_text=text)
    return items


def _validate_items(items: list[Any], schema: type[BaseModel], task: str) -> list[Any]:
    valid = []
    dropped = 0
    for item in items:
        if not isinstance(item, dict):
            dropped += 1
            continue
        try:
            valid.append(schema.model_validate(item))
        except ValidationError as e:
            dropped += 1
            logger.warning(
                "Dropping malformed item",
                task=task,
                errors=[err["loc"] for err in e.errors()],
            )
    if dropped:
        logger.info("Payload items dropped", task=task, kept=len(valid), dropped=dropped)
    return valid


# =============================================================================
# PUBLIC PARSERS
# =============================================================================


def parse_entity_payload(text: str) -> list[Entity]:
    """Parse an entity extraction response.

    Args:
        text: Raw model output.

    Returns:
        Valid entities, each with a fresh id.

    Raises:
        ParseFailureError: If the response has no usable ``entities`` list.
    """
    items = _envelope_items(text, "entities", "entity_extraction")
    return [item.to_entity() for item in _validate_items(items, EntityPayloadItem, "entity_extraction")]


def parse_relationship_payload(text: str) -> list[RelationshipPayloadItem]:
    """Parse a relationship detection response.

    Endpoints are still entity names; resolution against the entity set
    happens in :func:`llm_kg_pipeline.extraction.dedup.resolve_relationships`.

    Raises:
        ParseFailureError: If the response has no usable ``relationships`` list.
    """
    items = _envelope_items(text, "relationships", "relationship_detection")
    return _validate_items(items, RelationshipPayloadItem, "relationship_detection")


def parse_analysis_payload(text: str) -> ContentAnalysis:
    """Parse a content analysis response.

    Raises:
        ParseFailureError: If the response is not a JSON object.
    """
    data = extract_json(text)
    if not isinstance(data, dict):
        raise ParseFailureError("content_analysis", "response is not a JSON object", raw_text=text)
    return ContentAnalysis.model_validate(data)
