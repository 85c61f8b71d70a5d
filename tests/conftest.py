"""Pytest configuration and shared test fixtures.

This module provides scripted provider backends, canned model responses,
sample markdown content and factories for wiring the pipeline without any
network access.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
import json
from typing import Any
from unittest.mock import MagicMock

import anthropic
import openai
import pytest

from llm_kg_pipeline.chunking import ChunkingConfig, ContentPreprocessor
from llm_kg_pipeline.extraction.orchestrator import ExtractionOrchestrator, OrchestratorConfig
from llm_kg_pipeline.extraction.prompts import (
    CONTENT_ANALYSIS_PROMPT,
    ENTITY_EXTRACTION_PROMPT,
    RELATIONSHIP_DETECTION_PROMPT,
)
from llm_kg_pipeline.providers.backends import GenerationRequest, RawGeneration
from llm_kg_pipeline.providers.client import ProviderClient
from llm_kg_pipeline.providers.dispatcher import DispatcherConfig, FallbackDispatcher
from llm_kg_pipeline.providers.governor import UsageGovernor
from llm_kg_pipeline.providers.registry import ProviderRegistry

# =============================================================================
# SAMPLE CONTENT
# =============================================================================

SAMPLE_MARKDOWN = """# Acme Corp expands its robotics program

Acme Corp is a manufacturing company headquartered in Berlin. Jane Doe works for
Acme Corp as the chief technology officer and leads the robotics program that the
company launched three years ago.

The company competes with Globex Industries in the European market for industrial
automation. Acme Corp recently adopted Python and Kubernetes to modernize its
factory control systems, and Jane Doe presented the results at a conference in Munich.

Analysts expect the partnership between Acme Corp and several local universities to
influence the next generation of robotics engineers across Germany. The program has
already produced two open source projects and a training curriculum for technicians.
"""


# =============================================================================
# CANNED MODEL RESPONSES
# =============================================================================


def entity_payload(*entities: tuple[str, str, float]) -> str:
    """Build an entity extraction response from (name, type, confidence) tuples."""
    return json.dumps(
        {
            "entities": [
                {"name": name, "type": type_, "confidence": confidence, "context": f"... {name} ..."}
                for name, type_, confidence in entities
            ]
        }
    )


def relationship_payload(*relationships: tuple[str, str, str, float]) -> str:
    """Build a relationship response from (source, target, type, confidence) tuples."""
    return json.dumps(
        {
            "relationships": [
                {
                    "sourceEntity": source,
                    "targetEntity": target,
                    "type": type_,
                    "confidence": confidence,
                    "context": f"{source} {type_} {target}",
                    "bidirectional": False,
                }
                for source, target, type_, confidence in relationships
            ]
        }
    )


def analysis_payload(summary: str, *insights: str) -> str:
    """Build a content analysis response."""
    return json.dumps({"summary": summary, "keyInsights": list(insights), "themes": ["robotics"]})


SAMPLE_ENTITIES = entity_payload(
    ("Acme Corp", "organization", 0.95),
    ("Jane Doe", "person", 0.9),
    ("Berlin", "location", 0.85),
    ("Kubernetes", "technology", 0.5),
)
SAMPLE_RELATIONSHIPS = relationship_payload(
    ("Jane Doe", "Acme Corp", "works_for", 0.9),
    ("acme corp", "Berlin", "located_in", 0.8),
    ("Acme Corp", "Globex Industries", "competes_with", 0.9),
    ("Jane Doe", "Berlin", "located_in", 0.4),
)
SAMPLE_ANALYSIS = analysis_payload(
    "Acme Corp is expanding its robotics program under Jane Doe.",
    "Robotics investment is growing",
    "University partnerships feed the talent pipeline",
)


# =============================================================================
# PROVIDER ERRORS
# =============================================================================


def openai_rate_limit() -> openai.RateLimitError:
    return openai.RateLimitError(message="rate limited", response=MagicMock(status_code=429), body=None)


def openai_bad_request() -> openai.BadRequestError:
    return openai.BadRequestError(message="bad request", response=MagicMock(status_code=400), body=None)


def openai_server_error() -> openai.InternalServerError:
    return openai.InternalServerError(message="server error", response=MagicMock(status_code=500), body=None)


def anthropic_rate_limit() -> anthropic.RateLimitError:
    return anthropic.RateLimitError(message="rate limited", response=MagicMock(status_code=429), body=None)


# =============================================================================
# FAKES
# =============================================================================

Reply = str | BaseException | Callable[[GenerationRequest], str]

_TASKS = {
    ENTITY_EXTRACTION_PROMPT.system: "entity_extraction",
    RELATIONSHIP_DETECTION_PROMPT.system: "relationship_detection",
    CONTENT_ANALYSIS_PROMPT.system: "content_analysis",
}


class FakeBackend:
    """Scripted ProviderBackend that answers per extraction task.

    Each reply is a response text, an exception to raise, a callable taking
    the request, or a list of those consumed in order.
    """

    def __init__(
        self,
        default: Reply | list[Reply] | None = None,
        *,
        entities: Reply | list[Reply] | None = None,
        relationships: Reply | list[Reply] | None = None,
        analysis: Reply | list[Reply] | None = None,
        prompt_tokens: int = 100,
        completion_tokens: int = 50,
    ) -> None:
        self.default = default
        self.replies: dict[str, Any] = {
            "entity_extraction": entities,
            "relationship_detection": relationships,
            "content_analysis": analysis,
        }
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.requests: list[GenerationRequest] = []

    @property
    def tasks(self) -> list[str]:
        """Task names of every request received, in order."""
        return [_TASKS.get(r.system_instruction, "other") for r in self.requests]

    async def generate(self, request: GenerationRequest) -> RawGeneration:
        self.requests.append(request)
        task = _TASKS.get(request.system_instruction, "other")
        reply = self.replies.get(task)
        if reply is None:
            reply = self.default
        if isinstance(reply, list):
            if not reply:
                msg = f"No scripted reply left for {task}"
                raise AssertionError(msg)
            reply = reply.pop(0)
        if reply is None:
            msg = f"No scripted reply for {task}"
            raise AssertionError(msg)
        if isinstance(reply, BaseException):
            raise reply
        text = reply(request) if callable(reply) else reply
        return RawGeneration(
            text=text,
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
        )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeToday:
    """Manually advanced calendar day."""

    def __init__(self, day: date | None = None) -> None:
        self.day = day or date(2024, 1, 1)

    def __call__(self) -> date:
        return self.day


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def sample_markdown() -> str:
    """Provide prose markdown that passes the eligibility gate."""
    return SAMPLE_MARKDOWN


@pytest.fixture
def registry() -> ProviderRegistry:
    """Provide the default provider registry."""
    return ProviderRegistry()


@pytest.fixture
def clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def today() -> FakeToday:
    """Provide a manually advanced calendar day."""
    return FakeToday()


@pytest.fixture
def governor(clock: FakeClock, today: FakeToday) -> UsageGovernor:
    """Provide a governor with a $10 daily limit and fake time sources."""
    return UsageGovernor(daily_cost_limit=10.0, clock=clock, today=today)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Provide a sleep replacement that records delays."""
    return RecordingSleep()


@pytest.fixture
def make_dispatcher(
    registry: ProviderRegistry,
    governor: UsageGovernor,
    recording_sleep: RecordingSleep,
) -> Callable[..., FallbackDispatcher]:
    """Provide a factory for dispatchers over scripted backends."""

    def _make(backends: dict[str, FakeBackend], **config: Any) -> FallbackDispatcher:
        client = ProviderClient(registry, governor, backends)
        return FallbackDispatcher(client, DispatcherConfig(**config), sleep=recording_sleep)

    return _make


@pytest.fixture
def make_orchestrator(
    make_dispatcher: Callable[..., FallbackDispatcher],
) -> Callable[..., ExtractionOrchestrator]:
    """Provide a factory for orchestrators over scripted backends."""

    def _make(
        backends: dict[str, FakeBackend],
        *,
        max_tokens_per_chunk: int = 2000,
        config: OrchestratorConfig | None = None,
        **dispatcher_config: Any,
    ) -> ExtractionOrchestrator:
        preprocessor = ContentPreprocessor(ChunkingConfig(max_tokens_per_chunk=max_tokens_per_chunk))
        return ExtractionOrchestrator(make_dispatcher(backends, **dispatcher_config), preprocessor, config)

    return _make
