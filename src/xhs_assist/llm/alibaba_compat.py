"""Alibaba-compatible (DashScope) provider adapter.

DashScope exposes an OpenAI-wire endpoint, so this adapter reuses the
OpenAI message serialization. The reply shape comes from JSON mode
(response_format: json_object) plus the schema spelled out in an
instruction message placed before the conversation.
"""

from collections.abc import Sequence
from typing import Any

from ..envelope import ContentEnvelope, Mode
from .openai_compat import OpenAICompatAdapter
from .prompts import build_instructions
from .provider import ProviderKind, ProviderRequest, StructuredOutput


class AlibabaCompatAdapter(OpenAICompatAdapter):
    """Adapter for Alibaba Cloud Model Studio (Qwen) compatible mode."""

    kind = ProviderKind.ALIBABA_COMPATIBLE

    @property
    def structured_output(self) -> StructuredOutput:
        return StructuredOutput.PROMPT

    def instructions(self, mode: Mode) -> str:
        # JSON mode requires the word "JSON" in the prompt; the schema rules provide it
        return build_instructions(mode, embed_schema=True, limits=self.limits)

    def build_request(
        self,
        history: Sequence[ContentEnvelope],
        mode: Mode,
        instructions: str,
    ) -> ProviderRequest:
        messages: list[dict[str, Any]] = []
        if instructions:
            messages.append({"role": "user", "content": [{"type": "text", "text": instructions}]})
        messages.extend(self.serialize_history(history))

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "response_format": {"type": "json_object"},
        }
        return ProviderRequest(
            url=f"{self.base_url}/chat/completions",
            headers=self.headers(),
            payload=payload,
        )
