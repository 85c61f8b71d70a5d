"""Entity and relationship type catalogs for LLM extraction.

Each catalog maps the type value used in model output to the description
rendered into the extraction system instructions. Keys mirror the enums in
:mod:`llm_kg_pipeline.models.knowledge`.
"""

from llm_kg_pipeline.models import EntityType, RelationshipType

ENTITY_TYPES: dict[EntityType, str] = {
    EntityType.PERSON: "Individual people (names, titles, roles)",
    EntityType.ORGANIZATION: "Companies, institutions, groups, teams",
    EntityType.CONCEPT: "Ideas, methodologies, products, services",
    EntityType.LOCATION: "Geographic places, addresses, regions",
    EntityType.TECHNOLOGY: "Technical tools, programming languages, frameworks, systems",
}

RELATIONSHIP_TYPES: dict[RelationshipType, str] = {
    RelationshipType.WORKS_FOR: "Employment, affiliation or membership",
    RelationshipType.COMPETES_WITH: "Business competition in a shared market",
    RelationshipType.INFLUENCES: "Impact, inspiration, mentorship or leadership",
    RelationshipType.RELATED_TO: "General association, collaboration or partnership",
    RelationshipType.PART_OF: "Hierarchical inclusion or component relationship",
    RelationshipType.LOCATED_IN: "Geographic or organizational location",
}


def format_type_catalog(catalog: dict) -> str:
    """Render a type catalog as ``- value: description`` lines."""
    return "\n".join(f"- {type_.value}: {description}" for type_, description in catalog.items())


def type_choices(catalog: dict) -> str:
    """Render catalog values as ``a|b|c`` for JSON structure examples."""
    return "|".join(type_.value for type_ in catalog)
