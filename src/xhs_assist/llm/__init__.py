"""LLM provider adapters for content generation.

Translates conversation history into the wire formats of OpenAI-compatible,
Anthropic-compatible and Alibaba-compatible APIs and pulls structured
title/content replies back out.
"""

import requests

from ..validator import ContentLimits
from .alibaba_compat import AlibabaCompatAdapter
from .anthropic_compat import AnthropicCompatAdapter
from .openai_compat import OpenAICompatAdapter, supports_structured_outputs
from .prompts import TOOL_NAMES, build_instructions, content_schema
from .provider import (
    AIError,
    ErrorKind,
    ProviderAdapter,
    ProviderConfig,
    ProviderKind,
    ProviderRequest,
    StructuredOutput,
    classify_error,
    classify_response,
    provider_error,
)

# Registry of adapters, one per provider family
ADAPTERS: dict[ProviderKind, type[ProviderAdapter]] = {
    ProviderKind.OPENAI_COMPATIBLE: OpenAICompatAdapter,
    ProviderKind.ANTHROPIC_COMPATIBLE: AnthropicCompatAdapter,
    ProviderKind.ALIBABA_COMPATIBLE: AlibabaCompatAdapter,
}

__all__ = [
    "AIError",
    "ErrorKind",
    "ProviderAdapter",
    "ProviderConfig",
    "ProviderKind",
    "ProviderRequest",
    "StructuredOutput",
    "OpenAICompatAdapter",
    "AnthropicCompatAdapter",
    "AlibabaCompatAdapter",
    "ADAPTERS",
    "TOOL_NAMES",
    "build_instructions",
    "classify_error",
    "classify_response",
    "content_schema",
    "get_adapter",
    "get_adapter_class",
    "provider_error",
    "supports_structured_outputs",
]


def get_adapter_class(kind: ProviderKind | str) -> type[ProviderAdapter]:
    """Get the adapter class for a provider family."""
    return ADAPTERS[ProviderKind.parse(kind)]


def get_adapter(
    config: ProviderConfig,
    *,
    session: requests.Session | None = None,
    limits: ContentLimits | None = None,
) -> ProviderAdapter:
    """Create the adapter for a provider configuration.

    Args:
        config: Provider configuration; config.provider selects the adapter.
        session: HTTP session to send requests with (a new one by default).
        limits: Length ceilings advertised to the model in schemas and prompts.

    Example config for a local Ollama server:
        ProviderConfig(
            provider="openai_compatible",
            api_key="ollama",
            model="llava",
            base_url="http://localhost:11434/v1",
        )
    """
    adapter_class = get_adapter_class(config.provider)
    return adapter_class(config, session=session, limits=limits)
