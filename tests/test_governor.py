"""Tests for the provider registry and the usage governor.

Verifies that:
- The default registry carries the published limits and prices
- try_acquire never admits more requests than the ceiling in any rolling window
- Token ceilings saturate the window
- Daily spend only grows within a day and resets when the day changes
- Budget checks raise once spend reaches the limit
"""

from __future__ import annotations

from datetime import date

import pytest

from llm_kg_pipeline.exceptions import BudgetExceededError, UnknownProviderError
from llm_kg_pipeline.providers.governor import UsageGovernor
from llm_kg_pipeline.providers.registry import ProviderRegistry, ProviderSpec


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_default_providers(self, registry: ProviderRegistry) -> None:
        assert registry.ids() == ["openai", "anthropic"]

        openai_spec = registry.get("openai")
        assert openai_spec.max_tokens == 128_000
        assert openai_spec.cost_per_1000_tokens == 0.03
        assert openai_spec.requests_per_minute == 500
        assert openai_spec.tokens_per_minute == 150_000

        anthropic_spec = registry.get("anthropic")
        assert anthropic_spec.max_tokens == 200_000
        assert anthropic_spec.cost_per_1000_tokens == 0.015
        assert anthropic_spec.requests_per_minute == 1000
        assert anthropic_spec.tokens_per_minute == 100_000

    def test_unknown_provider_raises(self, registry: ProviderRegistry) -> None:
        with pytest.raises(UnknownProviderError, match="mistral"):
            registry.get("mistral")

    def test_unknown_provider_is_key_error(self, registry: ProviderRegistry) -> None:
        with pytest.raises(KeyError):
            registry.get("mistral")

    def test_contains_and_len(self, registry: ProviderRegistry) -> None:
        assert "openai" in registry
        assert "mistral" not in registry
        assert len(registry) == 2

    def test_with_overrides_returns_new_registry(self, registry: ProviderRegistry) -> None:
        updated = registry.with_overrides("openai", requests_per_minute=2)

        assert updated.get("openai").requests_per_minute == 2
        assert registry.get("openai").requests_per_minute == 500
        assert updated.get("anthropic") == registry.get("anthropic")

    def test_with_overrides_unknown_provider(self, registry: ProviderRegistry) -> None:
        with pytest.raises(UnknownProviderError):
            registry.with_overrides("mistral", max_tokens=1)

    def test_estimate_cost(self, registry: ProviderRegistry) -> None:
        assert registry.get("openai").estimate_cost(1500) == pytest.approx(0.045)
        assert registry.get("anthropic").estimate_cost(1000) == pytest.approx(0.015)

    def test_duplicate_ids_rejected(self, registry: ProviderRegistry) -> None:
        spec = registry.get("openai")
        with pytest.raises(ValueError, match="Duplicate"):
            ProviderRegistry([spec, spec])

    def test_invalid_spec_rejected(self) -> None:
        with pytest.raises(ValueError, match="max_tokens"):
            ProviderSpec(
                provider_id="x",
                display_name="X",
                backend="openai",
                model="m",
                max_tokens=0,
                cost_per_1000_tokens=0.01,
                requests_per_minute=1,
                tokens_per_minute=1,
                credential_env="X_KEY",
            )


class TestRateLimiting:
    """Tests for the rolling-window request ceiling."""

    def test_admits_up_to_ceiling(self, governor: UsageGovernor) -> None:
        results = [governor.try_acquire("openai", requests_per_minute=3) for _ in range(5)]

        assert results == [True, True, True, False, False]
        assert governor.provider_state("openai").request_count_in_window == 3

    def test_refusal_does_not_increment(self, governor: UsageGovernor) -> None:
        governor.try_acquire("openai", requests_per_minute=1)
        governor.try_acquire("openai", requests_per_minute=1)
        governor.try_acquire("openai", requests_per_minute=1)

        assert governor.provider_state("openai").request_count_in_window == 1

    def test_window_slides(self, governor: UsageGovernor, clock) -> None:
        assert governor.try_acquire("openai", requests_per_minute=2)
        clock.advance(30)
        assert governor.try_acquire("openai", requests_per_minute=2)
        assert not governor.try_acquire("openai", requests_per_minute=2)

        # The first request leaves the window 60s after it was admitted
        clock.advance(30)
        assert governor.try_acquire("openai", requests_per_minute=2)
        assert not governor.try_acquire("openai", requests_per_minute=2)

    def test_never_exceeds_ceiling_in_any_window(self, governor: UsageGovernor, clock) -> None:
        admitted: list[float] = []
        for _ in range(600):
            if governor.try_acquire("openai", requests_per_minute=10):
                admitted.append(clock.now)
            clock.advance(0.5)

        for start in admitted:
            in_window = [t for t in admitted if start <= t < start + 60]
            assert len(in_window) <= 10

    def test_providers_are_independent(self, governor: UsageGovernor) -> None:
        assert governor.try_acquire("openai", requests_per_minute=1)
        assert not governor.try_acquire("openai", requests_per_minute=1)
        assert governor.try_acquire("anthropic", requests_per_minute=1)

    def test_token_ceiling_saturates(self, governor: UsageGovernor) -> None:
        governor.try_acquire("openai", requests_per_minute=100, tokens_per_minute=1000)
        governor.record_usage("openai", tokens=1000, cost=0.0)

        assert governor.is_saturated("openai", requests_per_minute=100, tokens_per_minute=1000)
        assert not governor.try_acquire("openai", requests_per_minute=100, tokens_per_minute=1000)

    def test_is_saturated_is_read_only(self, governor: UsageGovernor) -> None:
        for _ in range(3):
            assert not governor.is_saturated("openai", requests_per_minute=1)

        assert governor.provider_state("openai").request_count_in_window == 0

    def test_provider_state_reset_time(self, governor: UsageGovernor, clock) -> None:
        governor.try_acquire("openai", requests_per_minute=5)
        clock.advance(10)

        state = governor.provider_state("openai")
        assert state.window_reset_at == pytest.approx(clock.now + 50)


class TestSpendAccounting:
    """Tests for daily spend and budget enforcement."""

    def test_record_usage_accumulates(self, governor: UsageGovernor) -> None:
        governor.record_usage("openai", tokens=1000, cost=0.03)
        governor.record_usage("anthropic", tokens=1000, cost=0.015)

        assert governor.daily_spend == pytest.approx(0.045)

    def test_negative_cost_ignored(self, governor: UsageGovernor) -> None:
        governor.record_usage("openai", tokens=10, cost=0.5)
        governor.record_usage("openai", tokens=10, cost=-0.2)

        assert governor.daily_spend == pytest.approx(0.5)

    def test_spend_resets_on_new_day(self, governor: UsageGovernor, today) -> None:
        governor.record_usage("openai", tokens=1000, cost=4.0)
        today.day = date(2024, 1, 2)

        assert governor.daily_spend == 0.0

    def test_check_budget_raises_at_limit(self, governor: UsageGovernor) -> None:
        governor.record_usage("openai", tokens=1, cost=9.99)
        governor.check_budget()

        governor.record_usage("openai", tokens=1, cost=0.01)
        with pytest.raises(BudgetExceededError) as exc_info:
            governor.check_budget()
        assert exc_info.value.limit == 10.0

    def test_no_limit_never_raises(self, clock, today) -> None:
        governor = UsageGovernor(daily_cost_limit=None, clock=clock, today=today)
        governor.record_usage("openai", tokens=1, cost=1_000.0)

        governor.check_budget()
        assert governor.cost_summary().remaining_budget == float("inf")

    def test_cost_summary(self, governor: UsageGovernor) -> None:
        governor.record_usage("openai", tokens=1000, cost=2.5)

        summary = governor.cost_summary()
        assert summary.todays_spend == pytest.approx(2.5)
        assert summary.daily_limit == 10.0
        assert summary.remaining_budget == pytest.approx(7.5)

    def test_remaining_budget_never_negative(self, governor: UsageGovernor) -> None:
        governor.record_usage("openai", tokens=1000, cost=12.0)

        assert governor.cost_summary().remaining_budget == 0.0

    def test_usage_stats_counts_requests(self, governor: UsageGovernor) -> None:
        governor.try_acquire("openai", requests_per_minute=10)
        governor.try_acquire("openai", requests_per_minute=10)
        governor.try_acquire("anthropic", requests_per_minute=10)

        stats = governor.usage_stats()
        assert stats["requests"] == {"openai": 2, "anthropic": 1}
