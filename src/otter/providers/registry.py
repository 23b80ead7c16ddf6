"""Provider factory for otter."""

from __future__ import annotations

from otter.providers.base import BaseProvider
from otter.types.providers import ProviderSettings

# Provider names accepted in config, mapped to their adapter family.
PROVIDER_ALIASES: dict[str, str] = {
    "anthropic": "anthropic",
    "claude": "anthropic",
    "openai": "openai",
}

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-sonnet-4-6",
    "openai": "gpt-4o",
}


def resolve_provider_name(name: str) -> str:
    """Normalise a configured provider name, raising KeyError if unknown."""
    try:
        return PROVIDER_ALIASES[name.lower()]
    except KeyError:
        raise KeyError(
            f"Unknown provider: {name!r}. Known: {sorted(PROVIDER_ALIASES)}"
        ) from None


def create_provider(settings: ProviderSettings, max_tokens: int = 8192) -> BaseProvider:
    """Instantiate the adapter for *settings*.

    Raises
    ------
    KeyError
        When ``settings.name`` is not a known provider.
    """
    family = resolve_provider_name(settings.name)
    model = settings.model or DEFAULT_MODELS[family]

    if family == "anthropic":
        from otter.providers.anthropic import AnthropicProvider

        return AnthropicProvider(
            api_key=settings.api_key,
            model=model,
            base_url=settings.base_url,
            max_tokens=max_tokens,
        )

    from otter.providers.openai import OpenAIProvider

    return OpenAIProvider(
        api_key=settings.api_key,
        model=model,
        base_url=settings.base_url,
        headers=settings.headers,
        max_tokens=max_tokens,
    )
