"""
Admission control: per-client rate limiting and daily token budgets.

Both gates keep their state behind a CounterStore so tests can inject a
deterministic store and a shared store can replace the in-process default.

Known limitations:
- The default store is process-local; several instances each enforce the
  limit independently.
- The rate limiter is a fixed window, so a burst of up to 2x the limit can
  straddle a window boundary.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Generic, Optional, Protocol, TypeVar

from .clock import Clock, SystemClock, day_key

RATE_WINDOW = timedelta(seconds=60)

T = TypeVar("T")


class CounterStore(Protocol[T]):
    """Minimal key/value store backing an admission gate."""

    def get(self, key: str) -> Optional[T]:
        ...

    def set(self, key: str, value: T) -> None:
        ...


class InMemoryCounterStore(Generic[T]):
    """Process-local dict store. State is lost on restart."""

    def __init__(self):
        self._data: Dict[str, T] = {}

    def get(self, key: str) -> Optional[T]:
        return self._data.get(key)

    def set(self, key: str, value: T) -> None:
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class RateBucket:
    """Request count for one client within the current fixed window."""
    count: int
    reset_at: datetime


@dataclass
class BudgetState:
    """Token total for one client on one calendar day."""
    tokens: int
    day_key: str


class RateLimiter:
    """Fixed-window requests-per-minute limiter keyed by client."""

    def __init__(
        self,
        store: Optional[CounterStore[RateBucket]] = None,
        clock: Optional[Clock] = None
    ):
        self.store = store if store is not None else InMemoryCounterStore()
        self.clock = clock or SystemClock()

    def allow(self, key: str, requests_per_minute: int) -> bool:
        """Admit or deny one request for `key`.

        A non-positive limit disables limiting. An absent or elapsed bucket is
        replaced by a fresh one that already counts this request.
        """
        if requests_per_minute <= 0:
            return True

        now = self.clock.now()
        bucket = self.store.get(key)
        if bucket is None or bucket.reset_at <= now:
            self.store.set(key, RateBucket(count=1, reset_at=now + RATE_WINDOW))
            return True

        if bucket.count >= requests_per_minute:
            return False
        bucket.count += 1
        self.store.set(key, bucket)
        return True


class BudgetTracker:
    """Per-client daily token budget with soft overflow.

    Tokens are charged before the comparison, so a denied call still counts
    against the day, and the first call of a new day is judged on its own
    cost alone. Both are the dashboard's historical behaviour and are kept
    as-is.
    """

    def __init__(
        self,
        store: Optional[CounterStore[BudgetState]] = None,
        clock: Optional[Clock] = None
    ):
        self.store = store if store is not None else InMemoryCounterStore()
        self.clock = clock or SystemClock()

    def allow(self, key: str, tokens: int, daily_budget: int) -> bool:
        """Charge `tokens` to `key` and report whether the total fits the budget.

        A non-positive budget disables the check.
        """
        if daily_budget <= 0:
            return True

        today = day_key(self.clock)
        state = self.store.get(key)
        if state is None or state.day_key != today:
            # New day starts from this call's own estimate, not from zero
            self.store.set(key, BudgetState(tokens=tokens, day_key=today))
            return tokens <= daily_budget

        state.tokens += tokens
        self.store.set(key, state)
        return state.tokens <= daily_budget

    def used(self, key: str) -> int:
        """Tokens charged to `key` today (0 if nothing recorded today)."""
        state = self.store.get(key)
        if state is None or state.day_key != day_key(self.clock):
            return 0
        return state.tokens
