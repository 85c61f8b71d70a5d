"""Test suite for llm-kg-pipeline.

This package contains tests for all modules:
- test_models: Pydantic data models
- test_governor, test_client, test_dispatcher: Provider access and fallback
- test_chunking: Normalization and token-bounded splitting
- test_prompts, test_parsing, test_dedup: Extraction building blocks
- test_orchestrator: The end-to-end extraction pipeline
- test_gating, test_queue, test_storage, test_service: Job processing
- test_config, test_cli: Settings and the llm-kg command
"""
