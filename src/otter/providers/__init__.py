"""Provider adapters for otter.

Public surface
--------------
- :class:`BaseProvider`      abstract base with shared utilities
- :class:`AnthropicProvider` Claude adapter (Anthropic SDK)
- :class:`OpenAIProvider`    OpenAI / compatible adapter (openai SDK)
- :func:`create_provider`    factory that returns the right adapter
"""

from __future__ import annotations

from otter.providers.anthropic import AnthropicProvider
from otter.providers.base import BaseProvider
from otter.providers.openai import OpenAIProvider
from otter.providers.registry import DEFAULT_MODELS, create_provider, resolve_provider_name

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "DEFAULT_MODELS",
    "OpenAIProvider",
    "create_provider",
    "resolve_provider_name",
]
