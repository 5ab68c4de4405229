"""
System prompt and tool cost hint for interactive calls.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ai_gateway.config.loader import GatewayConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCost:
    """Relative cost weight of a tool the model may ask for."""
    name: str
    weight: int


TOOL_COSTS = (
    ToolCost("web", 3),
    ToolCost("batch", 2),
    ToolCost("db", 2),
    ToolCost("local", 1),
)

BATCH_SYSTEM_PROMPT = " ".join([
    "You are a swarm orchestrator.",
    "Produce a concise execution plan for the subtask.",
    "Return JSON with keys: summary, actions, risks, expected_output.",
    "Keep outputs under 200 words.",
])


def build_tool_cost_hint(costs: Sequence[ToolCost] = TOOL_COSTS) -> str:
    weights = ", ".join(f"{tool.name}={tool.weight}" for tool in costs)
    return f"Tool costs: {weights}. Avoid high-cost tools unless required."


class StableContextLoader:
    """Reads context files, re-reading a file only when its mtime changes."""

    def __init__(self):
        self._cache: Dict[str, tuple] = {}

    def read(self, path: str) -> str:
        mtime = os.stat(path).st_mtime
        cached = self._cache.get(path)
        if cached and cached[0] == mtime:
            return cached[1]
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
        self._cache[path] = (mtime, text)
        return text

    def render(self, paths: Sequence[str]) -> str:
        blocks: List[str] = []
        for path in paths:
            try:
                text = self.read(path)
            except OSError as e:
                logger.warning("Stable context file %s unavailable: %s", path, e)
                text = "(unavailable)"
            blocks.append(f"# {path}\n{text}")
        return "\n\n".join(blocks)


_default_loader = StableContextLoader()


def build_system_prompt(config: GatewayConfig, loader: Optional[StableContextLoader] = None) -> str:
    """Assemble the persona/identity/user sections plus optional tools and context."""
    sections = [
        "### PERSONA",
        config.persona,
        "",
        "### IDENTITY",
        config.identity,
        "",
        "### USER",
        config.user_profile,
    ]
    if config.tools:
        sections.extend(["", "### TOOLS", config.tools])

    if config.stable_context_files:
        context = (loader or _default_loader).render(config.stable_context_files)
        if context:
            sections.extend(["", "### STABLE_CONTEXT", context])

    return "\n".join(sections)
