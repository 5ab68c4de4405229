"""
Configuration management and loading.

Settings come from environment-style key/value pairs, optionally overlaid
by a YAML file with the same keys in lower case.
"""

import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml


class FailMode(Enum):
    """What an interactive call does when the provider fails."""
    OPEN = "open"
    CLOSED = "closed"


THINKING_LEVELS = ("low", "medium", "high")


@dataclass(frozen=True)
class GatewayConfig:
    """Complete gateway configuration."""
    openai_api_key: Optional[str] = None
    rate_limit_rpm: int = 0
    daily_token_budget: int = 0
    model_flash: str = "gpt-4o-mini"
    model_flash_reasoning: str = "gpt-4o-mini"
    model_pro: str = "gpt-4o"
    thinking_flash: str = "low"
    thinking_flash_reasoning: str = "medium"
    thinking_pro: str = "high"
    batch_model: str = "gpt-4o-mini"
    batch_chunk_size: int = 1
    batch_max_tasks: int = 10
    batch_max_subitems: int = 3
    batch_window_start: str = "22:00"
    batch_window_end: str = "06:00"
    routine_ttl_seconds: int = 0
    usage_alert_tokens_hourly: int = 0
    fail_mode: FailMode = FailMode.OPEN
    max_output_tokens: int = 600
    router_url: Optional[str] = None
    router_model: str = "llama3.1"
    router_timeout_seconds: float = 5.0
    persona: str = "You are a precise execution assistant."
    identity: str = "Identity: task dashboard agent."
    user_profile: str = "User: owner of this workspace."
    tools: str = ""
    stable_context_files: Tuple[str, ...] = ()
    db_path: str = "ai_gateway.db"

    def __post_init__(self):
        """Validate numeric limits and enumerated values."""
        for name in ("rate_limit_rpm", "daily_token_budget", "routine_ttl_seconds",
                     "usage_alert_tokens_hourly"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        for name in ("batch_chunk_size", "batch_max_tasks", "batch_max_subitems",
                     "max_output_tokens"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.router_timeout_seconds <= 0:
            raise ValueError("router_timeout_seconds must be > 0")
        for name in ("thinking_flash", "thinking_flash_reasoning", "thinking_pro"):
            if getattr(self, name) not in THINKING_LEVELS:
                raise ValueError(f"{name} must be one of: {list(THINKING_LEVELS)}")

    @property
    def has_credential(self) -> bool:
        return bool(self.openai_api_key and self.openai_api_key.strip())


# Field name -> environment variable
ENV_KEYS: Dict[str, str] = {
    f.name: f"AI_GATEWAY_{f.name.upper()}" for f in fields(GatewayConfig)
}
ENV_KEYS["openai_api_key"] = "OPENAI_API_KEY"

_FIELD_TYPES = {f.name: f.type for f in fields(GatewayConfig)}


def _coerce(name: str, raw: Any) -> Any:
    """Convert a raw env/YAML value to the field's type."""
    kind = _FIELD_TYPES[name]
    try:
        if kind is int:
            return int(raw)
        if kind is float:
            return float(raw)
        if kind is FailMode:
            return FailMode(str(raw).strip().lower())
        if name == "stable_context_files":
            if isinstance(raw, (list, tuple)):
                items = raw
            else:
                items = str(raw).split(",")
            return tuple(str(item).strip() for item in items if str(item).strip())
    except ValueError:
        if kind is FailMode:
            valid = [mode.value for mode in FailMode]
            raise ValueError(f"'{name}' must be one of: {valid}")
        raise ValueError(f"'{name}' must be a number, got {raw!r}")
    if name in ("batch_window_start", "batch_window_end") and isinstance(raw, int):
        # YAML 1.1 reads an unquoted 22:00 as the base-60 integer 1320
        return f"{raw // 60:02d}:{raw % 60:02d}"
    if name.startswith("thinking_"):
        return str(raw).strip().lower()
    return str(raw)


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> GatewayConfig:
    """Build configuration from environment variables.

    Empty variables are treated as unset.

    Raises:
        ValueError: If a value cannot be parsed or fails validation
    """
    env = os.environ if environ is None else environ
    values = {}
    for name, env_key in ENV_KEYS.items():
        raw = env.get(env_key)
        if raw is None or raw.strip() == "":
            continue
        values[name] = _coerce(name, raw)
    return GatewayConfig(**values)


def load_gateway_config(
    path: str,
    environ: Optional[Mapping[str, str]] = None
) -> GatewayConfig:
    """Load and validate gateway configuration from a YAML file.

    Keys missing from the file fall back to the environment, then to
    defaults. Unknown keys are rejected so typos can't silently disable a
    limit.

    Args:
        path: Path to YAML configuration file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated GatewayConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Gateway config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration file must contain a mapping")

    unknown_keys = set(raw_config.keys()) - set(_FIELD_TYPES)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    base = load_config_from_env(environ)
    values = {f.name: getattr(base, f.name) for f in fields(GatewayConfig)}
    for name, raw in raw_config.items():
        if raw is None:
            continue
        values[name] = _coerce(name, raw)
    return GatewayConfig(**values)
