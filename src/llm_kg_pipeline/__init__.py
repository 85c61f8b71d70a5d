"""LLM Knowledge Extraction Pipeline.

Turns extracted web content (markdown) into typed entities and relationships
by calling LLM providers with fallback, backoff and a daily budget, and runs
the extraction per content item on a background job queue.

Usage:
    from llm_kg_pipeline import ContentInput, KnowledgeExtractionService, PipelineSettings

    async with KnowledgeExtractionService(PipelineSettings.from_env()) as service:
        job = await service.submit(ContentInput(session_id="s1", content_id="c1", text=markdown))
        await service.queue.join()
        result = await service.get_result(job.id)

    # Manual trigger, bypassing the queue and the eligibility gate
    result = await service.process_now(content)
"""

# =============================================================================
# CONFIGURATION AND EXCEPTIONS
# =============================================================================
from .config import PipelineSettings
from .exceptions import (
    AllProvidersFailedError,
    BudgetExceededError,
    IneligibleContentError,
    ParseFailureError,
    PipelineError,
    ProviderError,
)

# =============================================================================
# MODELS
# =============================================================================
from .models import (
    ContentInput,
    CostSummary,
    Entity,
    EntityType,
    Job,
    JobProgress,
    JobStatus,
    ProcessingOptions,
    ProcessingResult,
    Relationship,
    RelationshipType,
)

# =============================================================================
# PIPELINE COMPONENTS
# =============================================================================
from .chunking import ChunkingConfig, ContentPreprocessor
from .extraction import ExtractionOrchestrator
from .gating import EligibilityGate, EligibilitySettings
from .jobs import JobQueue
from .providers import FallbackDispatcher, ProviderClient, ProviderRegistry, UsageGovernor
from .service import KnowledgeExtractionService
from .storage import InMemoryResultStore, ResultStore

__version__ = "0.1.0"

__all__ = [
    # ==========================================================================
    # CONFIGURATION AND EXCEPTIONS
    # ==========================================================================
    "PipelineSettings",
    "AllProvidersFailedError",
    "BudgetExceededError",
    "IneligibleContentError",
    "ParseFailureError",
    "PipelineError",
    "ProviderError",
    # ==========================================================================
    # MODELS
    # ==========================================================================
    "ContentInput",
    "CostSummary",
    "Entity",
    "EntityType",
    "Job",
    "JobProgress",
    "JobStatus",
    "ProcessingOptions",
    "ProcessingResult",
    "Relationship",
    "RelationshipType",
    # ==========================================================================
    # PIPELINE COMPONENTS
    # ==========================================================================
    "ChunkingConfig",
    "ContentPreprocessor",
    "EligibilityGate",
    "EligibilitySettings",
    "ExtractionOrchestrator",
    "FallbackDispatcher",
    "InMemoryResultStore",
    "JobQueue",
    "KnowledgeExtractionService",
    "ProviderClient",
    "ProviderRegistry",
    "ResultStore",
    "UsageGovernor",
    "__version__",
]
