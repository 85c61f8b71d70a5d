"""Knowledge extraction service: explicit wiring of every pipeline component.

``KnowledgeExtractionService`` builds the registry, governor, client,
dispatcher, preprocessor, orchestrator, gate, store and job queue from
``PipelineSettings``; any part can be injected instead. There is no global
instance: create one service per process (or per test) and share it.
"""

from __future__ import annotations

from collections.abc import Mapping
import math
from types import TracebackType
from typing import Any

import structlog

from llm_kg_pipeline.chunking import ChunkingConfig, ContentPreprocessor
from llm_kg_pipeline.config import PipelineSettings
from llm_kg_pipeline.exceptions import BudgetExceededError, IneligibleContentError
from llm_kg_pipeline.extraction.orchestrator import ExtractionOrchestrator, OrchestratorConfig
from llm_kg_pipeline.gating import BUDGET_EXHAUSTED, EligibilityDecision, EligibilityGate, EligibilitySettings
from llm_kg_pipeline.jobs.queue import JobQueue
from llm_kg_pipeline.models import ContentInput, CostSummary, Job, JobProgress, ProcessingResult
from llm_kg_pipeline.providers.backends import ProviderBackend, create_backends
from llm_kg_pipeline.providers.client import ProviderClient
from llm_kg_pipeline.providers.dispatcher import DispatcherConfig, FallbackDispatcher
from llm_kg_pipeline.providers.governor import UsageGovernor
from llm_kg_pipeline.providers.registry import ProviderRegistry
from llm_kg_pipeline.storage import InMemoryResultStore, ResultStore

logger = structlog.get_logger(__name__)


class KnowledgeExtractionService:
    """Entry point for submitting content and reading results.

    Attributes:
        settings: Process-wide settings.
        registry: Provider catalog.
        governor: Shared rate-limit and spend state.
        client: Single-provider client.
        dispatcher: Fallback dispatcher.
        orchestrator: Extraction orchestrator.
        gate: Eligibility gate.
        store: Result store.
        queue: Background job queue.

    Example:
        >>> async with KnowledgeExtractionService(PipelineSettings.from_env()) as service:
        ...     job = await service.submit(content)
        ...     await service.queue.join()
        ...     result = await service.get_result(job.id)
    """

    def __init__(
        self,
        settings: PipelineSettings | None = None,
        *,
        registry: ProviderRegistry | None = None,
        governor: UsageGovernor | None = None,
        backends: Mapping[str, ProviderBackend] | None = None,
        store: ResultStore | None = None,
        gate: EligibilityGate | None = None,
        dispatcher: FallbackDispatcher | None = None,
    ) -> None:
        """Wire the pipeline.

        Args:
            settings: Settings. Uses defaults (no credentials) if not provided.
            registry: Provider catalog. Uses the default providers if not provided.
            governor: Usage governor. Created from the daily cost limit if not provided.
            backends: Provider backends. Created from the settings' credentials if not provided.
            store: Result store. Uses an in-memory store if not provided.
            gate: Eligibility gate. Created from the settings if not provided.
            dispatcher: Fallback dispatcher. Created from the settings if not provided.
        """
        self.settings = settings or PipelineSettings()
        self.registry = registry or ProviderRegistry()
        self.governor = governor or UsageGovernor(daily_cost_limit=self.settings.daily_cost_limit)

        if backends is None:
            backends = create_backends(self.registry, self.settings.credentials)
        self.client = ProviderClient(self.registry, self.governor, backends)

        self.dispatcher = dispatcher or FallbackDispatcher(
            self.client,
            DispatcherConfig(
                provider_priority=tuple(self.settings.provider_priority),
                max_passes=self.settings.max_dispatch_passes,
                base_delay=self.settings.retry_base_delay,
            ),
        )

        prompt_limit = self._prompt_token_limit()
        self.preprocessor = ContentPreprocessor(self._chunking_config(prompt_limit))
        self.orchestrator = ExtractionOrchestrator(
            self.dispatcher,
            self.preprocessor,
            OrchestratorConfig(max_prompt_tokens=prompt_limit),
        )
        self.gate = gate or EligibilityGate(EligibilitySettings.from_settings(self.settings))
        self.store = store if store is not None else InMemoryResultStore()
        self.queue = JobQueue(self.orchestrator, self.store, job_timeout=self.settings.job_timeout_seconds)

        logger.info(
            "Knowledge extraction service initialized",
            providers=self.dispatcher.available_providers(),
            auto_processing=self.gate.settings.enabled,
        )

    def _prompt_token_limit(self) -> int | None:
        """Smallest context limit among the providers the dispatcher may use."""
        limits = [
            self.registry.get(provider_id).max_tokens
            for provider_id in self.dispatcher.config.provider_priority
            if provider_id in self.registry
        ]
        return min(limits) if limits else None

    def _chunking_config(self, prompt_limit: int | None) -> ChunkingConfig:
        """Build the chunking config, capping the chunk budget below the provider limit."""
        config = ChunkingConfig(
            max_tokens_per_chunk=self.settings.max_tokens_per_chunk,
            chars_per_token=self.settings.chars_per_token,
        )
        if prompt_limit is None:
            return config

        cap = math.floor(prompt_limit * (1 - config.headroom))
        if config.max_tokens_per_chunk <= cap:
            return config

        logger.warning(
            "Chunk budget exceeds provider limit, capping",
            requested=config.max_tokens_per_chunk,
            cap=cap,
            provider_limit=prompt_limit,
        )
        return ChunkingConfig(max_tokens_per_chunk=cap, chars_per_token=config.chars_per_token)

    async def __aenter__(self) -> KnowledgeExtractionService:
        """Start the job worker."""
        self.queue.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Drain the queue (unless leaving on an error) and stop the worker."""
        await self.queue.stop(drain=exc_type is None)

    def check_eligibility(self, content: ContentInput) -> EligibilityDecision:
        """Run the eligibility gate against today's spend."""
        return self.gate.evaluate(content.text, self.governor.daily_spend)

    async def submit(self, content: ContentInput, *, force: bool = False) -> Job:
        """Gate and enqueue content for background processing.

        Args:
            content: Content to process.
            force: Skip the eligibility rules (the budget is still enforced).

        Returns:
            The pending job.

        Raises:
            BudgetExceededError: If today's spend has reached the limit.
            IneligibleContentError: If the gate rejects the content.
        """
        if force:
            self.governor.check_budget()
        else:
            decision = self.check_eligibility(content)
            if not decision.eligible:
                logger.info(
                    "Content not eligible for LLM processing",
                    content_id=content.content_id,
                    reason=decision.reason,
                )
                if decision.reason == BUDGET_EXHAUSTED:
                    raise BudgetExceededError(self.governor.daily_spend, self.gate.settings.daily_cost_limit)
                raise IneligibleContentError(decision.reason or "unknown")

        return await self.queue.submit(content)

    async def process_now(self, content: ContentInput) -> ProcessingResult:
        """Process content immediately, outside the queue (manual trigger).

        The gate is not consulted; the budget is still enforced per call.

        Raises:
            BudgetExceededError: If today's spend has already reached the limit.
        """
        self.governor.check_budget()
        return await self.orchestrator.process_content(content.text, content.options)

    def get_progress(self, session_id: str) -> JobProgress:
        """Return progress for a session."""
        return self.queue.get_progress(session_id)

    async def get_result(self, job_id: str) -> ProcessingResult | None:
        """Return the stored result for a job, if any."""
        return await self.store.get_result(job_id)

    def cost_summary(self) -> CostSummary:
        """Return today's spend against the daily limit."""
        return self.governor.cost_summary()

    def processing_summary(self) -> dict[str, Any]:
        """Summarize configuration, spend and processing statistics."""
        cost = self.cost_summary()
        unlimited = math.isinf(cost.daily_limit)
        return {
            "enabled": self.gate.settings.enabled,
            "providers": self.dispatcher.available_providers(),
            "todays_cost_cents": round(cost.todays_spend * 100),
            "cost_limit_cents": None if unlimited else round(cost.daily_limit * 100),
            "remaining_budget_cents": None if unlimited else round(cost.remaining_budget * 100),
            "queue": self.queue.stats().to_dict(),
            "orchestrator": self.orchestrator.stats.to_dict(),
            "usage": self.governor.usage_stats(),
        }
