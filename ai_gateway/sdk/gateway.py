"""
Interactive AI gateway.

Every interactive model call from the dashboard goes through
AIGateway.complete(): rate limit, mode/model selection, token budget, routine
cache, provider call, cache write, usage telemetry.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional

from ..config.loader import FailMode, GatewayConfig
from ..core.batch import BatchSubmitter
from ..core.cache import RoutineCache
from ..core.clock import Clock, SystemClock
from ..core.errors import (
    AdmissionDenied,
    ConfigurationError,
    DenialReason,
    DomainError,
    UpstreamFailure,
)
from ..core.guardrails import BudgetTracker, RateLimiter
from ..core.prompts import build_system_prompt, build_tool_cost_hint
from ..core.router import ModelMode, ModelRouter, ThinkingLevel
from ..core.scheduler import NightWindowScheduler
from ..core.telemetry import UsageTelemetry
from ..core.token_counter import estimate_request_tokens, estimate_tokens
from ..storage.models import CacheEntry, UsageKind
from ..storage.repository import SnapshotStore
from .openai_client import OpenAIProvider

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_KEY = "local"
DEGRADED_ANSWER = "The assistant is temporarily unavailable. Please retry in a moment."
EMPTY_ANSWER = "(no response)"


def client_key_from_headers(headers: Mapping[str, str]) -> str:
    """First address of X-Forwarded-For, or "local"."""
    forwarded = None
    for name, value in headers.items():
        if name.lower() == "x-forwarded-for":
            forwarded = value
            break
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return DEFAULT_CLIENT_KEY


@dataclass
class GatewayRequest:
    """One interactive request. A cache_key makes it a cacheable routine call."""
    message: str
    client_key: str = DEFAULT_CLIENT_KEY
    mode: Optional[ModelMode] = None
    thinking: Optional[ThinkingLevel] = None
    cache_key: Optional[str] = None
    ttl_seconds: Optional[int] = None
    force_refresh: bool = False


@dataclass
class GatewayResponse:
    """Answer plus how it was produced."""
    answer: str
    mode: Optional[ModelMode] = None
    model: Optional[str] = None
    thinking: Optional[ThinkingLevel] = None
    cached: bool = False
    stale: bool = False
    degraded: bool = False
    cache_key: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_cache(cls, entry: CacheEntry, stale: bool = False, **kwargs) -> "GatewayResponse":
        return cls(
            answer=entry.value,
            cached=True,
            stale=stale,
            cache_key=entry.key,
            created_at=entry.created_at,
            **kwargs
        )


class AIGateway:
    """Mediates interactive calls and exposes the batch path.

    All collaborators can be injected; anything omitted is built from the
    config over the given snapshot store.
    """

    def __init__(
        self,
        config: GatewayConfig,
        store: SnapshotStore,
        provider: Optional[OpenAIProvider] = None,
        clock: Optional[Clock] = None,
        rate_limiter: Optional[RateLimiter] = None,
        budget: Optional[BudgetTracker] = None,
        router: Optional[ModelRouter] = None
    ):
        self.config = config
        self.store = store
        self.clock = clock or SystemClock()
        self._provider = provider
        self.rate_limiter = rate_limiter or RateLimiter(clock=self.clock)
        self.budget = budget or BudgetTracker(clock=self.clock)
        self.router = router or ModelRouter(config)
        self.cache = RoutineCache(store, self.clock)
        self.telemetry = UsageTelemetry(store, config.usage_alert_tokens_hourly, self.clock)
        self.submitter = BatchSubmitter(
            config, store, self.provider, self.telemetry, self.clock
        )
        self.scheduler = NightWindowScheduler(config, store, self.submitter, self.clock)

    def provider(self) -> OpenAIProvider:
        """The provider client, created on first use.

        Raises:
            ConfigurationError: If no API key is configured
        """
        if self._provider is None:
            self._provider = OpenAIProvider(self.config.openai_api_key)
        return self._provider

    def complete(self, request: GatewayRequest) -> GatewayResponse:
        """Run one interactive request through admission, cache and provider.

        Raises:
            ConfigurationError: If no provider credential is configured
            DomainError: If the message is empty
            AdmissionDenied: If the rate limit or daily token budget rejects it
            UpstreamFailure: If the provider fails and fail mode is closed
        """
        if not self.config.has_credential:
            raise ConfigurationError("OPENAI_API_KEY is not configured on the server.")

        message = (request.message or "").strip()
        if not message:
            raise DomainError("message is required")

        if not self.rate_limiter.allow(request.client_key, self.config.rate_limit_rpm):
            logger.warning("Rate limit exceeded for client %s", request.client_key)
            raise AdmissionDenied("Rate limit exceeded.", DenialReason.RATE_LIMIT)

        system_prompt = build_system_prompt(self.config)
        mode = self.router.resolve_mode(request.mode, message)
        model = self.router.resolve_model(mode)
        thinking = self.router.apply_thinking_policy(mode, request.thinking)

        estimated = estimate_request_tokens(system_prompt, message)
        if not self.budget.allow(request.client_key, estimated, self.config.daily_token_budget):
            logger.warning("Daily token budget exceeded for client %s", request.client_key)
            raise AdmissionDenied("Daily token budget exceeded.", DenialReason.TOKEN_BUDGET)

        entry = self.cache.get(request.cache_key) if request.cache_key else None
        if entry is not None and not request.force_refresh and self.cache.is_fresh(entry):
            return GatewayResponse.from_cache(entry, mode=mode, model=model, thinking=thinking)

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": message},
            {"role": "developer", "content": self._developer_hint(request, mode, thinking)},
        ]
        try:
            answer = self.provider().respond(model, messages, self.config.max_output_tokens)
        except UpstreamFailure:
            if self.config.fail_mode != FailMode.OPEN:
                raise
            if entry is not None:
                logger.warning("Provider failed; serving stale cache entry %s", entry.key)
                return GatewayResponse.from_cache(
                    entry, stale=True, mode=mode, model=model, thinking=thinking
                )
            logger.warning("Provider failed; returning degraded answer")
            return GatewayResponse(
                answer=DEGRADED_ANSWER, mode=mode, model=model, thinking=thinking,
                degraded=True, cache_key=request.cache_key,
            )

        answer = answer or EMPTY_ANSWER
        created_at = None
        if request.cache_key:
            ttl = request.ttl_seconds
            if ttl is None:
                ttl = self.config.routine_ttl_seconds or None
            created_at = self.cache.set(request.cache_key, answer, ttl).created_at

        self.telemetry.record(
            UsageKind.INTERACTIVE,
            tokens=estimate_tokens(system_prompt + message + answer),
            model=model,
        )
        return GatewayResponse(
            answer=answer, mode=mode, model=model, thinking=thinking,
            cache_key=request.cache_key, created_at=created_at,
        )

    def _developer_hint(
        self,
        request: GatewayRequest,
        mode: ModelMode,
        thinking: ThinkingLevel
    ) -> str:
        hint = build_tool_cost_hint()
        if request.cache_key:
            return (
                f"Routine task. Cache key: {request.cache_key}. "
                f"Thinking level: {thinking.value}. Mode: {mode.value}. {hint}"
            )
        return (
            f"Thinking level: {thinking.value}. Mode: {mode.value}. {hint} "
            "Keep replies concise unless asked."
        )
