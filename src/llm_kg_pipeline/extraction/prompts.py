"""Prompt templates for entity extraction, relationship detection and analysis.

Templates use ``str.format`` placeholders (``{content}``, ``{entities}``);
literal braces in the JSON structure examples are doubled.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from llm_kg_pipeline.exceptions import PromptRenderError
from llm_kg_pipeline.extraction.schema import (
    ENTITY_TYPES,
    RELATIONSHIP_TYPES,
    format_type_catalog,
    type_choices,
)
from llm_kg_pipeline.models import Entity
from llm_kg_pipeline.providers.client import GenerationOptions, RenderedPrompt


@dataclass(frozen=True)
class PromptTemplate:
    """A system/user prompt pair with its generation settings.

    Attributes:
        name: Task label, also used in logs.
        system: System instructions.
        user: User message template with ``{placeholders}``.
        response_format: "json" or "text".
        max_output_tokens: Completion token cap sent to the provider.
        temperature: Sampling temperature.
    """

    name: str
    system: str
    user: str
    response_format: str = "json"
    max_output_tokens: int = 2000
    temperature: float = 0.1

    def generation_options(self) -> GenerationOptions:
        """Build provider generation options for this template."""
        return GenerationOptions(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            structured_output=self.response_format == "json",
            task=self.name,
        )


_RESPONSE_RULE = "RESPONSE FORMAT: Valid JSON only, no additional text."

ENTITY_EXTRACTION_PROMPT = PromptTemplate(
    name="entity_extraction",
    system=f"""You are an expert knowledge analyst who extracts entities from web content with precise classification and calibrated confidence scores.

ENTITY TYPES:
{format_type_catalog(ENTITY_TYPES)}

REQUIREMENTS:
1. Extract only clearly identifiable entities with sufficient supporting context
2. Assign confidence scores between 0.0 and 1.0 based on clarity and context
3. Include a context snippet from the content that supports each entity
4. Avoid duplicate or overly generic entities
5. Prefer entities that help explain relationships in the content

{_RESPONSE_RULE}""",
    user=f"""Extract entities from this content and return a JSON object with this exact structure:

{{{{
  "entities": [
    {{{{
      "name": "entity name",
      "type": "{type_choices(ENTITY_TYPES)}",
      "confidence": 0.95,
      "context": "surrounding text that supports this entity",
      "source_span": {{{{"start": 123, "end": 145}}}},
      "metadata": {{{{"title": "optional title", "description": "optional description"}}}}
    }}}}
  ]
}}}}

Content to analyze:
---
{{content}}
---""",
    max_output_tokens=2000,
    temperature=0.1,
)

RELATIONSHIP_DETECTION_PROMPT = PromptTemplate(
    name="relationship_detection",
    system=f"""You are an expert knowledge analyst who detects meaningful relationships between previously extracted entities.

RELATIONSHIP TYPES:
{format_type_catalog(RELATIONSHIP_TYPES)}

REQUIREMENTS:
1. Only report relationships explicitly supported by the content
2. Assign confidence scores based on the strength of the evidence
3. Include the text that demonstrates each relationship
4. Use entity names exactly as they appear in the entity list
5. Do not infer relationships that are not stated or clearly implied

{_RESPONSE_RULE}""",
    user=f"""Analyze the entities and content to identify relationships. Return a JSON object with this exact structure:

{{{{
  "relationships": [
    {{{{
      "source_entity": "entity name 1",
      "target_entity": "entity name 2",
      "type": "{type_choices(RELATIONSHIP_TYPES)}",
      "confidence": 0.85,
      "context": "text evidence supporting this relationship",
      "bidirectional": false
    }}}}
  ]
}}}}

Entities to analyze:
{{entities}}

Content context:
---
{{content}}
---""",
    max_output_tokens=1500,
    temperature=0.1,
)

CONTENT_ANALYSIS_PROMPT = PromptTemplate(
    name="content_analysis",
    system=f"""You are an expert content analyst who produces concise insights that complement entity and relationship data in a knowledge graph.

ANALYSIS FOCUS:
1. Key insights and takeaways from the content
2. Important themes and concepts discussed
3. Notable patterns or trends mentioned
4. Strategic implications or significance

REQUIREMENTS:
1. Provide specific, actionable insights rather than generic summaries
2. Stay factually accurate to the source content
3. Keep the summary to two or three sentences

{_RESPONSE_RULE}""",
    user="""Analyze this content and provide insights. Return a JSON object with this exact structure:

{{
  "summary": "concise 2-3 sentence summary of key content",
  "key_insights": [
    "insight 1: specific finding or pattern",
    "insight 2: strategic implication or significance",
    "insight 3: notable trend or development"
  ],
  "themes": ["theme1", "theme2", "theme3"]
}}

Content to analyze:
---
{content}
---""",
    max_output_tokens=1000,
    temperature=0.2,
)


def render_prompt(template: PromptTemplate, **variables: str) -> RenderedPrompt:
    """Fill a template's user placeholders.

    Args:
        template: Prompt template.
        **variables: Placeholder values by name.

    Returns:
        Rendered system and user messages.

    Raises:
        PromptRenderError: If a placeholder has no value.
    """
    try:
        user = template.user.format(**variables)
    except KeyError as e:
        msg = f"Missing variable {e.args[0]!r} for prompt {template.name}"
        raise PromptRenderError(msg) from e
    return RenderedPrompt(system=template.system, user=user)


def format_entity_list(entities: Iterable[Entity]) -> str:
    """Render entities as ``- name (type)`` lines for the relationship prompt."""
    return "\n".join(f"- {entity.name} ({entity.type.value})" for entity in entities)
