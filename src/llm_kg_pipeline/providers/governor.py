"""Shared rate-limit and spend state for provider calls.

The governor is the single owner of all state that more than one caller may
mutate: per-provider request/token counters over a rolling window, and the
daily spend accumulator. Every mutation happens under one lock, so the
rate-limit check and the increment are a single atomic step even when a
second queue or a manual trigger shares the governor.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
import threading
import time

import structlog

from llm_kg_pipeline.config import RATE_LIMIT_WINDOW_SECONDS
from llm_kg_pipeline.exceptions import BudgetExceededError
from llm_kg_pipeline.models import CostSummary

logger = structlog.get_logger(__name__)


def _utc_today() -> date:
    return datetime.now(UTC).date()


@dataclass(frozen=True)
class ProviderState:
    """Snapshot of one provider's rolling window.

    Attributes:
        request_count_in_window: Requests admitted in the last window.
        token_count_in_window: Tokens consumed in the last window.
        window_reset_at: Clock time at which the oldest admitted request leaves
            the window (equal to now when the window is empty).
    """

    request_count_in_window: int
    token_count_in_window: int
    window_reset_at: float


class _ProviderWindow:
    """Sliding-window log of admitted requests and consumed tokens."""

    __slots__ = ("requests", "tokens")

    def __init__(self) -> None:
        self.requests: deque[float] = deque()
        self.tokens: deque[tuple[float, int]] = deque()

    def evict(self, now: float, window: float) -> None:
        cutoff = now - window
        while self.requests and self.requests[0] <= cutoff:
            self.requests.popleft()
        while self.tokens and self.tokens[0][0] <= cutoff:
            self.tokens.popleft()

    @property
    def token_total(self) -> int:
        return sum(count for _, count in self.tokens)


class UsageGovernor:
    """Owns per-provider rate-limit windows and the daily spend counter.

    Attributes:
        daily_cost_limit: USD ceiling for one UTC day, or None for no limit.
        window_seconds: Length of the rolling rate-limit window.

    Example:
        >>> governor = UsageGovernor(daily_cost_limit=10.0)
        >>> governor.try_acquire("openai", requests_per_minute=500)
        True
        >>> governor.record_usage("openai", tokens=1200, cost=0.036)
    """

    def __init__(
        self,
        daily_cost_limit: float | None = None,
        *,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        """Initialize the governor.

        Args:
            daily_cost_limit: USD ceiling per day; None disables budget checks.
            window_seconds: Rolling window length for rate limits.
            clock: Monotonic time source (injectable for tests).
            today: Current-day source for the spend window (injectable for tests).
        """
        self.daily_cost_limit = daily_cost_limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._today = today
        self._lock = threading.Lock()
        self._windows: dict[str, _ProviderWindow] = {}
        self._spend_day = today()
        self._daily_spend = 0.0
        self._request_totals: dict[str, int] = {}

    # -------------------------------------------------------------------------
    # Rate limiting
    # -------------------------------------------------------------------------

    def try_acquire(
        self,
        provider_id: str,
        requests_per_minute: int,
        tokens_per_minute: int | None = None,
    ) -> bool:
        """Admit one request if the provider's window has room.

        Check and increment happen under the lock as one step.

        Args:
            provider_id: Provider to admit a request for.
            requests_per_minute: Request ceiling for the window.
            tokens_per_minute: Optional token ceiling for the window.

        Returns:
            True if the request was admitted and counted, False if saturated.
        """
        with self._lock:
            now = self._clock()
            window = self._window(provider_id, now)
            if self._saturated(window, requests_per_minute, tokens_per_minute):
                return False
            window.requests.append(now)
            self._request_totals[provider_id] = self._request_totals.get(provider_id, 0) + 1
            return True

    def is_saturated(
        self,
        provider_id: str,
        requests_per_minute: int,
        tokens_per_minute: int | None = None,
    ) -> bool:
        """Return whether a request would currently be refused (read-only)."""
        with self._lock:
            window = self._window(provider_id, self._clock())
            return self._saturated(window, requests_per_minute, tokens_per_minute)

    def provider_state(self, provider_id: str) -> ProviderState:
        """Return a snapshot of one provider's rolling window."""
        with self._lock:
            now = self._clock()
            window = self._window(provider_id, now)
            reset_at = window.requests[0] + self.window_seconds if window.requests else now
            return ProviderState(
                request_count_in_window=len(window.requests),
                token_count_in_window=window.token_total,
                window_reset_at=reset_at,
            )

    def _window(self, provider_id: str, now: float) -> _ProviderWindow:
        window = self._windows.setdefault(provider_id, _ProviderWindow())
        window.evict(now, self.window_seconds)
        return window

    @staticmethod
    def _saturated(
        window: _ProviderWindow,
        requests_per_minute: int,
        tokens_per_minute: int | None,
    ) -> bool:
        if len(window.requests) >= requests_per_minute:
            return True
        return tokens_per_minute is not None and window.token_total >= tokens_per_minute

    # -------------------------------------------------------------------------
    # Spend accounting
    # -------------------------------------------------------------------------

    def record_usage(self, provider_id: str, *, tokens: int, cost: float) -> None:
        """Record a successful call's tokens and cost.

        Args:
            provider_id: Provider that served the call.
            tokens: Total tokens consumed.
            cost: USD cost of the call (negative values are ignored).
        """
        with self._lock:
            now = self._clock()
            self._window(provider_id, now).tokens.append((now, tokens))
            self._roll_day()
            self._daily_spend += max(cost, 0.0)
            spend = self._daily_spend
        logger.debug("Usage recorded", provider=provider_id, tokens=tokens, cost=cost, daily_spend=spend)

    @property
    def daily_spend(self) -> float:
        """USD spent so far in the current UTC day."""
        with self._lock:
            self._roll_day()
            return self._daily_spend

    def check_budget(self) -> None:
        """Raise if the daily limit has been reached.

        Raises:
            BudgetExceededError: If ``daily_spend >= daily_cost_limit``.
        """
        if self.daily_cost_limit is None:
            return
        spent = self.daily_spend
        if spent >= self.daily_cost_limit:
            raise BudgetExceededError(spent, self.daily_cost_limit)

    def cost_summary(self) -> CostSummary:
        """Return today's spend against the daily limit."""
        spent = self.daily_spend
        limit = self.daily_cost_limit if self.daily_cost_limit is not None else float("inf")
        return CostSummary(
            todays_spend=spent,
            daily_limit=limit,
            remaining_budget=max(0.0, limit - spent),
        )

    def usage_stats(self) -> dict[str, object]:
        """Return lifetime request counts and current spend."""
        with self._lock:
            totals = dict(self._request_totals)
        return {"daily_spend": self.daily_spend, "requests": totals}

    def _roll_day(self) -> None:
        # Caller holds the lock.
        today = self._today()
        if today != self._spend_day:
            logger.info("Daily spend window reset", previous_day=str(self._spend_day), spent=self._daily_spend)
            self._spend_day = today
            self._daily_spend = 0.0
