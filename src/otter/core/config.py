"""Configuration loading (TOML, env vars, .env)."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from otter.providers.registry import DEFAULT_MODELS, resolve_provider_name
from otter.types.config import AgentConfig
from otter.types.providers import ProviderSettings

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

ENV_MAP = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

DEFAULT_PROVIDER = "anthropic"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def config_home() -> Path:
    """Directory holding the user-level config (``~/.otter`` unless overridden)."""
    if override := os.environ.get("OTTER_HOME"):
        return Path(override)
    return Path.home() / ".otter"


def load_toml_config(cwd: str | None = None) -> dict[str, Any]:
    """Load the first config.toml found, project-level before user-level.

    Search order: ``<cwd>/.otter/config.toml``, ``./.otter/config.toml``,
    ``~/.otter/config.toml``. A file that fails to parse is logged and
    skipped.
    """
    candidates: list[Path] = []
    if cwd:
        candidates.append(Path(cwd) / ".otter" / "config.toml")
    candidates.append(Path.cwd() / ".otter" / "config.toml")
    candidates.append(config_home() / "config.toml")

    for path in candidates:
        if not path.is_file():
            continue
        try:
            with open(path, "rb") as f:
                return tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("ignoring unreadable config %s: %s", path, exc)
    return {}


def _env_bool(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    logger.warning("ignoring %s=%r, expected a boolean", name, raw)
    return None


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("ignoring %s=%r, expected an integer", name, raw)
        return None


def load_agent_config(data: dict[str, Any], **overrides: Any) -> AgentConfig:
    """Build an :class:`AgentConfig` from parsed TOML, env vars and overrides.

    Precedence (highest first): keyword overrides that are not None,
    ``OTTER_STREAM`` / ``OTTER_MAX_STEPS``, the TOML file, defaults.

    Recognised TOML keys::

        stream = true
        max_steps = 50

        [compaction]
        threshold = 60000
        keep_recent = 6
        summary_timeout = 30

        [limits]
        tool_result_max_chars = 4000
        title_max_chars = 20
    """
    values: dict[str, Any] = {}
    if "stream" in data:
        values["stream"] = bool(data["stream"])
    if "max_steps" in data:
        values["max_steps"] = int(data["max_steps"])

    compaction = data.get("compaction")
    if isinstance(compaction, dict):
        if "threshold" in compaction:
            values["compact_threshold"] = int(compaction["threshold"])
        if "keep_recent" in compaction:
            values["compact_keep_recent"] = int(compaction["keep_recent"])
        if "summary_timeout" in compaction:
            values["summary_timeout"] = float(compaction["summary_timeout"])
        if "summary_result_cap" in compaction:
            values["summary_result_cap"] = int(compaction["summary_result_cap"])

    limits = data.get("limits")
    if isinstance(limits, dict):
        for key in ("tool_result_max_chars", "title_max_chars", "event_buffer"):
            if key in limits:
                values[key] = int(limits[key])

    if (stream := _env_bool("OTTER_STREAM")) is not None:
        values["stream"] = stream
    if (max_steps := _env_int("OTTER_MAX_STEPS")) is not None:
        values["max_steps"] = max_steps

    values.update({k: v for k, v in overrides.items() if v is not None})
    return AgentConfig(**values)


def _select_provider_table(
    providers: list[dict[str, Any]], name: str | None,
) -> dict[str, Any] | None:
    if name:
        for table in providers:
            if table.get("name") == name:
                return table
        return None
    for table in providers:
        if table.get("default"):
            return table
    return providers[0] if providers else None


def _default_model(table: dict[str, Any]) -> str | None:
    models = [m for m in table.get("models", []) if isinstance(m, dict)]
    for m in models:
        if m.get("default"):
            return m.get("name")
    return models[0].get("name") if models else None


def resolve_api_key(
    provider: str,
    explicit_key: str | None = None,
    table: dict[str, Any] | None = None,
) -> str | None:
    """Resolve an API key from explicit value, environment, or config file."""
    if explicit_key:
        return explicit_key

    env_var = ENV_MAP.get(resolve_provider_name(provider))
    if env_var and (val := os.environ.get(env_var)):
        return val

    if table and (key := table.get("api_key")):
        return str(key)
    return None


def resolve_provider_settings(
    data: dict[str, Any],
    *,
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> ProviderSettings:
    """Pick the backend to talk to.

    Explicit arguments win, then ``OTTER_PROVIDER`` / ``OTTER_MODEL``, then
    the ``[[providers]]`` tables (the one marked ``default = true``, else the
    first), then built-in defaults.

    Raises KeyError for a provider name no adapter handles.
    """
    providers = [p for p in data.get("providers", []) if isinstance(p, dict)]
    name = provider or os.environ.get("OTTER_PROVIDER")
    table = _select_provider_table(providers, name)
    name = name or (table or {}).get("name") or DEFAULT_PROVIDER
    family = resolve_provider_name(name)

    resolved_model = (
        model
        or os.environ.get("OTTER_MODEL")
        or (_default_model(table) if table else None)
        or DEFAULT_MODELS[family]
    )
    headers = (table or {}).get("headers") or {}

    return ProviderSettings(
        name=name,
        model=resolved_model,
        api_key=resolve_api_key(name, api_key, table),
        base_url=base_url or (table or {}).get("base_url") or None,
        headers={str(k): str(v) for k, v in headers.items()},
    )
