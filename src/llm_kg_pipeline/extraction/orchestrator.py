"""Entity, relationship and analysis extraction for one content item.

The orchestrator runs the extraction sequence strictly in order, one provider
dispatch at a time:

1. Entity extraction for each chunk (up to ``max_chunks``)
2. Deduplication across chunks
3. Relationship detection over the deduplicated entities and full content
   (trimmed to the smallest provider context limit when configured)
4. Content analysis (summary and key insights)
5. Quality scoring

Only a dispatch failure on the first chunk aborts the run, and it does so by
returning a failed ProcessingResult rather than raising. Everything later
degrades: a failed chunk contributes no entities, a failed relationship or
analysis step contributes nothing.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import math
import time
from typing import Any

import structlog

from llm_kg_pipeline.chunking import ContentPreprocessor
from llm_kg_pipeline.config import (
    MAX_KEY_INSIGHTS,
    MIN_CONTENT_CHARS,
    RELATIONSHIP_CONFIDENCE_THRESHOLD,
)
from llm_kg_pipeline.exceptions import (
    AllProvidersFailedError,
    DispatchError,
    JobCancelledError,
    ParseFailureError,
)
from llm_kg_pipeline.extraction.dedup import deduplicate_entities, resolve_relationships
from llm_kg_pipeline.extraction.parsing import (
    ContentAnalysis,
    parse_analysis_payload,
    parse_entity_payload,
    parse_relationship_payload,
)
from llm_kg_pipeline.extraction.prompts import (
    CONTENT_ANALYSIS_PROMPT,
    ENTITY_EXTRACTION_PROMPT,
    RELATIONSHIP_DETECTION_PROMPT,
    PromptTemplate,
    format_entity_list,
    render_prompt,
)
from llm_kg_pipeline.extraction.quality import QualityConfig, compute_quality
from llm_kg_pipeline.models import (
    Entity,
    ProcessingInfo,
    ProcessingOptions,
    ProcessingResult,
    Relationship,
)
from llm_kg_pipeline.providers.dispatcher import FallbackDispatcher

logger = structlog.get_logger(__name__)

CancelCheck = Callable[[], bool]


@dataclass(frozen=True)
class OrchestratorConfig:
    """Configuration for the extraction orchestrator.

    Attributes:
        min_content_chars: Normalized content shorter than this is refused.
        relationship_confidence_threshold: Minimum relationship confidence.
        max_key_insights: Cap on insights kept from content analysis.
        max_prompt_tokens: Smallest provider context limit; full-text prompts
            are trimmed to fit it with the preprocessor headroom. None disables the check.
        quality: Quality heuristic constants.
    """

    min_content_chars: int = MIN_CONTENT_CHARS
    relationship_confidence_threshold: float = RELATIONSHIP_CONFIDENCE_THRESHOLD
    max_key_insights: int = MAX_KEY_INSIGHTS
    max_prompt_tokens: int | None = None
    quality: QualityConfig = field(default_factory=QualityConfig)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.min_content_chars < 0:
            msg = "min_content_chars must be non-negative"
            raise ValueError(msg)
        if not 0.0 <= self.relationship_confidence_threshold <= 1.0:
            msg = "relationship_confidence_threshold must be in [0, 1]"
            raise ValueError(msg)
        if self.max_key_insights < 0:
            msg = "max_key_insights must be non-negative"
            raise ValueError(msg)
        if self.max_prompt_tokens is not None and self.max_prompt_tokens <= 0:
            msg = "max_prompt_tokens must be positive"
            raise ValueError(msg)


@dataclass
class ProcessingStats:
    """Cumulative request statistics across all runs of one orchestrator."""

    total_requests: int = 0
    successful_requests: int = 0
    total_cost: float = 0.0
    total_processing_time: float = 0.0
    runs: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary with derived rates."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "total_cost": self.total_cost,
            "total_processing_time": self.total_processing_time,
            "success_rate": (
                self.successful_requests / self.total_requests if self.total_requests else 0.0
            ),
            "average_processing_time": self.total_processing_time / self.runs if self.runs else 0.0,
        }


@dataclass
class _RunAccounting:
    """Per-run provider, cost and retry bookkeeping."""

    providers: list[str] = field(default_factory=list)
    total_cost: float = 0.0
    retry_count: int = 0

    @property
    def provider_label(self) -> str:
        return ",".join(self.providers)


class ExtractionOrchestrator:
    """Runs the extraction sequence for one content item at a time.

    Attributes:
        dispatcher: Fallback dispatcher used for every model call.
        preprocessor: Normalizer and chunker.
        config: Orchestrator configuration.
        stats: Cumulative statistics.

    Example:
        >>> orchestrator = ExtractionOrchestrator(dispatcher)
        >>> result = await orchestrator.process_content(markdown)
        >>> [e.name for e in result.entities]
        ['Acme Corp', 'Jane Doe']
    """

    def __init__(
        self,
        dispatcher: FallbackDispatcher,
        preprocessor: ContentPreprocessor | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            dispatcher: Fallback dispatcher used for every model call.
            preprocessor: Normalizer and chunker. Uses defaults if not provided.
            config: Orchestrator configuration. Uses defaults if not provided.
        """
        self.dispatcher = dispatcher
        self.preprocessor = preprocessor or ContentPreprocessor()
        self.config = config or OrchestratorConfig()
        self.stats = ProcessingStats()

    async def process_content(
        self,
        content: str,
        options: ProcessingOptions | None = None,
        *,
        cancel_check: CancelCheck | None = None,
    ) -> ProcessingResult:
        """Extract a knowledge graph fragment from markdown content.

        Args:
            content: Markdown content.
            options: Processing options. Uses defaults if not provided.
            cancel_check: Called before every dispatch; returning True cancels.

        Returns:
            The processing result. A failed result (``is_failure``) is
            returned when the content is too short or the first entity
            extraction dispatch fails.

        Raises:
            JobCancelledError: If ``cancel_check`` requested cancellation.
        """
        options = options or ProcessingOptions()
        start = time.perf_counter()
        run = _RunAccounting()

        text = self.preprocessor.normalize(content)
        if len(text) < self.config.min_content_chars:
            logger.warning(
                "Content too short for extraction",
                chars=len(text),
                minimum=self.config.min_content_chars,
            )
            return self._failed_run("Content too short for meaningful processing", start, run, chunk_count=0)

        chunks = self.preprocessor.chunk(text)[: options.max_chunks]
        logger.info("Processing content", chars=len(text), chunks=len(chunks))

        # Stage 1: entity extraction per chunk
        extracted: list[Entity] = []
        for index, chunk in enumerate(chunks):
            try:
                chunk_entities = await self._extract_entities(
                    chunk, options.confidence_threshold, run, cancel_check
                )
            except DispatchError as e:
                if index == 0:
                    logger.error("Entity extraction failed on first chunk", error=str(e))
                    return self._failed_run(str(e), start, run, chunk_count=len(chunks))
                logger.warning("Entity extraction failed for chunk", chunk=index + 1, error=str(e))
                continue
            except ParseFailureError as e:
                logger.warning(
                    "Entity response unparseable, skipping chunk",
                    chunk=index + 1,
                    error=str(e),
                    raw=e.raw_text[:200],
                )
                continue

            extracted.extend(chunk_entities)
            logger.info("Chunk processed", chunk=index + 1, total=len(chunks), entities=len(chunk_entities))

        # Stage 2: deduplicate
        entities = deduplicate_entities(extracted)
        logger.info("Entities deduplicated", extracted=len(extracted), unique=len(entities))

        context = self._prompt_context(text, chunks)

        # Stage 3: relationships
        relationships: list[Relationship] = []
        if options.include_relationships and len(entities) >= 2:
            relationships = await self._detect_relationships(entities, context, run, cancel_check)

        # Stage 4: analysis
        analysis = ContentAnalysis()
        if options.include_analysis:
            analysis = await self._analyze_content(context, run, cancel_check)

        # Stage 5: quality
        quality = compute_quality(entities, relationships, len(chunks), self.config.quality)
        elapsed = time.perf_counter() - start
        self.stats.total_processing_time += elapsed
        self.stats.runs += 1

        result = ProcessingResult(
            entities=entities,
            relationships=relationships,
            summary=analysis.summary,
            key_insights=analysis.key_insights[: self.config.max_key_insights],
            quality=quality,
            processing=ProcessingInfo(
                provider=run.provider_label,
                processing_time_seconds=elapsed,
                total_cost=run.total_cost,
                retry_count=run.retry_count,
                chunk_count=len(chunks),
            ),
        )

        logger.info(
            "Content processing complete",
            entities=len(entities),
            relationships=len(relationships),
            provider=run.provider_label,
            cost=round(run.total_cost, 6),
            seconds=round(elapsed, 3),
            confidence=round(quality.extraction_confidence, 3),
        )
        return result

    def _prompt_context(self, text: str, chunks: list[str]) -> str:
        """Return the content sent with full-text prompts, trimmed to the provider budget.

        Leading chunks are kept whole while they fit; if even the first chunk
        does not fit, the text is cut at the character budget.
        """
        limit = self.config.max_prompt_tokens
        if limit is None or self.preprocessor.fits_budget(text, limit):
            return text

        context = ""
        for chunk in chunks:
            if not self.preprocessor.fits_budget(context + chunk, limit):
                break
            context += chunk
        if not context:
            chunking = self.preprocessor.config
            budget_tokens = math.floor(limit * (1 - chunking.headroom))
            context = text[: int(budget_tokens * chunking.chars_per_token)]

        logger.warning(
            "Content exceeds provider budget, trimming full-text prompts",
            chars=len(text),
            kept_chars=len(context),
            limit=limit,
        )
        return context

    def _failed_run(self, error: str, start: float, run: _RunAccounting, *, chunk_count: int) -> ProcessingResult:
        elapsed = time.perf_counter() - start
        self.stats.total_processing_time += elapsed
        self.stats.runs += 1
        return ProcessingResult.failed(
            error,
            processing_time_seconds=elapsed,
            total_cost=run.total_cost,
            retry_count=run.retry_count,
            chunk_count=chunk_count,
        )

    async def _dispatch(
        self,
        template: PromptTemplate,
        run: _RunAccounting,
        cancel_check: CancelCheck | None,
        **variables: str,
    ) -> str:
        """Render and dispatch one prompt, recording accounting on the run."""
        if cancel_check is not None and cancel_check():
            raise JobCancelledError(f"Cancelled before {template.name}")

        prompt = render_prompt(template, **variables)
        self.stats.total_requests += 1
        try:
            result = await self.dispatcher.dispatch(prompt, template.generation_options())
        except AllProvidersFailedError as e:
            run.retry_count += e.attempts
            raise

        response = result.response
        run.retry_count += result.failed_attempts
        run.total_cost += response.estimated_cost
        if response.provider_id not in run.providers:
            run.providers.append(response.provider_id)
        self.stats.successful_requests += 1
        self.stats.total_cost += response.estimated_cost
        return response.content

    async def _extract_entities(
        self,
        chunk: str,
        confidence_threshold: float,
        run: _RunAccounting,
        cancel_check: CancelCheck | None,
    ) -> list[Entity]:
        raw = await self._dispatch(ENTITY_EXTRACTION_PROMPT, run, cancel_check, content=chunk)
        entities = parse_entity_payload(raw)
        return [e for e in entities if e.confidence >= confidence_threshold]

    async def _detect_relationships(
        self,
        entities: list[Entity],
        text: str,
        run: _RunAccounting,
        cancel_check: CancelCheck | None,
    ) -> list[Relationship]:
        try:
            raw = await self._dispatch(
                RELATIONSHIP_DETECTION_PROMPT,
                run,
                cancel_check,
                entities=format_entity_list(entities),
                content=text,
            )
            candidates = parse_relationship_payload(raw)
        except (DispatchError, ParseFailureError) as e:
            logger.warning("Relationship detection failed, continuing without relationships", error=str(e))
            return []

        return resolve_relationships(
            candidates, entities, self.config.relationship_confidence_threshold
        )

    async def _analyze_content(
        self,
        text: str,
        run: _RunAccounting,
        cancel_check: CancelCheck | None,
    ) -> ContentAnalysis:
        try:
            raw = await self._dispatch(CONTENT_ANALYSIS_PROMPT, run, cancel_check, content=text)
            return parse_analysis_payload(raw)
        except (DispatchError, ParseFailureError) as e:
            logger.warning("Content analysis failed, continuing without summary", error=str(e))
            return ContentAnalysis()
