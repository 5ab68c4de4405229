"""
Model and thinking-level selection.

Maps a cost/quality mode to a concrete model id and a thinking level, and
optionally asks a small local routing model to pick the mode when the caller
didn't.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Sequence

import httpx

from ai_gateway.config.loader import GatewayConfig

logger = logging.getLogger(__name__)


class ModelMode(Enum):
    """Cost/quality tier of a request."""
    FLASH = "flash"
    FLASH_REASONING = "flash-reasoning"
    PRO = "pro"


class ThinkingLevel(Enum):
    """How much deliberation the model is asked for."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


ALL_MODES = (ModelMode.FLASH, ModelMode.FLASH_REASONING, ModelMode.PRO)


class RoutingProbe:
    """Best-effort client for an Ollama-style routing model.

    `choose()` returns a mode or None. It never raises: a missing endpoint,
    a timeout, a bad status, or an answer outside the allowed set all yield
    None.
    """

    def __init__(
        self,
        url: Optional[str],
        model: str = "llama3.1",
        timeout_seconds: float = 5.0,
        client: Optional[httpx.Client] = None
    ):
        self.url = url.rstrip("/") if url else None
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = client

    def _prompt(self, prompt: str, modes: Sequence[ModelMode]) -> str:
        return "\n".join([
            "You are a routing assistant. Choose the best mode for the user request.",
            f"Allowed modes: {', '.join(mode.value for mode in modes)}",
            "Answer with one mode only.",
            "",
            prompt,
        ])

    def choose(self, prompt: str, modes: Sequence[ModelMode] = ALL_MODES) -> Optional[ModelMode]:
        if not self.url:
            return None

        payload = {"model": self.model, "prompt": self._prompt(prompt, modes), "stream": False}
        try:
            if self._client is not None:
                response = self._client.post(
                    f"{self.url}/api/generate", json=payload, timeout=self.timeout_seconds
                )
            else:
                response = httpx.post(
                    f"{self.url}/api/generate", json=payload, timeout=self.timeout_seconds
                )
            if response.status_code >= 400:
                logger.debug("Routing probe returned HTTP %s", response.status_code)
                return None
            answer = str(response.json().get("response") or "").strip().lower()
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug("Routing probe failed: %s", e)
            return None

        for mode in modes:
            if mode.value == answer:
                return mode
        logger.debug("Routing probe answered outside allowed modes: %r", answer)
        return None


class ModelRouter:
    """Resolves modes, model ids and thinking levels."""

    def __init__(self, config: GatewayConfig, probe: Optional[RoutingProbe] = None):
        self.models: Dict[ModelMode, str] = {
            ModelMode.FLASH: config.model_flash,
            ModelMode.FLASH_REASONING: config.model_flash_reasoning,
            ModelMode.PRO: config.model_pro,
        }
        self.thinking_policy: Dict[ModelMode, ThinkingLevel] = {
            ModelMode.FLASH: ThinkingLevel(config.thinking_flash),
            ModelMode.FLASH_REASONING: ThinkingLevel(config.thinking_flash_reasoning),
            ModelMode.PRO: ThinkingLevel(config.thinking_pro),
        }
        self.probe = probe or RoutingProbe(
            config.router_url,
            model=config.router_model,
            timeout_seconds=config.router_timeout_seconds,
        )

    @staticmethod
    def parse_mode(value) -> Optional[ModelMode]:
        """Coerce a string or ModelMode to ModelMode; unknown strings give None."""
        if value is None or isinstance(value, ModelMode):
            return value
        try:
            return ModelMode(str(value).strip().lower())
        except ValueError:
            return None

    def resolve_model(self, mode) -> str:
        """Model id for `mode`, falling back to the flash model."""
        parsed = self.parse_mode(mode)
        if parsed is None:
            return self.models[ModelMode.FLASH]
        return self.models[parsed]

    def apply_thinking_policy(
        self,
        mode: ModelMode,
        requested: Optional[ThinkingLevel] = None
    ) -> ThinkingLevel:
        """Thinking level for `mode`, clamped.

        Without a request the mode's policy level applies. Flash never thinks
        beyond LOW and flash-reasoning is capped at MEDIUM, which also holds
        for policy levels overridden in config.
        """
        level = requested if requested is not None else self.thinking_policy[mode]
        if mode == ModelMode.FLASH:
            return ThinkingLevel.LOW
        if mode == ModelMode.FLASH_REASONING and level == ThinkingLevel.HIGH:
            return ThinkingLevel.MEDIUM
        return level

    def resolve_mode(self, requested: Optional[ModelMode], prompt: str) -> ModelMode:
        """Explicit mode wins; otherwise ask the routing probe, else flash."""
        if requested is not None:
            return requested
        routed = self.probe.choose(prompt)
        if routed is not None:
            logger.debug("Routing probe chose mode %s", routed.value)
            return routed
        return ModelMode.FLASH
