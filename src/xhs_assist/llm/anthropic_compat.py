"""Anthropic-compatible provider adapter.

Uses the Messages API: system instructions travel in their own field and
the reply shape is forced by pinning tool_choice to a single declared tool.
"""

from collections.abc import Sequence
from typing import Any

from ..envelope import ContentEnvelope, ImagePayload, Mode, Role
from ..utils import image_to_base64, is_remote_url
from .prompts import TOOL_DESCRIPTIONS, TOOL_NAMES, build_instructions, content_schema
from .provider import (
    ImagePart,
    ProviderAdapter,
    ProviderKind,
    ProviderRequest,
    TextPart,
    envelope_parts,
)

ANTHROPIC_VERSION = "2023-06-01"


def image_block(image: ImagePayload) -> dict[str, Any]:
    """Build an image content block; data URIs lose their prefix."""
    if isinstance(image, str) and is_remote_url(image):
        return {"type": "image", "source": {"type": "url", "url": image}}
    media_type, data = image_to_base64(image)
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }


class AnthropicCompatAdapter(ProviderAdapter):
    """Adapter for the Anthropic Messages API format."""

    kind = ProviderKind.ANTHROPIC_COMPATIBLE

    def instructions(self, mode: Mode) -> str:
        return build_instructions(mode, embed_schema=False, limits=self.limits)

    @property
    def messages_url(self) -> str:
        if self.base_url.endswith("/v1"):
            return f"{self.base_url}/messages"
        return f"{self.base_url}/v1/messages"

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def serialize(self, envelope: ContentEnvelope) -> dict[str, Any] | None:
        """Convert one envelope to a message, or None if it has no content."""
        parts = envelope_parts(envelope)
        if not parts:
            return None

        blocks: list[dict[str, Any]] = []
        for part in parts:
            if isinstance(part, TextPart):
                blocks.append({"type": "text", "text": part.text})
            elif isinstance(part, ImagePart):
                blocks.append(image_block(part.image))

        role = "assistant" if envelope.role is Role.ASSISTANT else "user"
        return {"role": role, "content": blocks}

    def build_request(
        self,
        history: Sequence[ContentEnvelope],
        mode: Mode,
        instructions: str,
    ) -> ProviderRequest:
        mode = Mode.parse(mode)
        messages = []
        for envelope in history:
            message = self.serialize(envelope)
            if message is not None:
                messages.append(message)

        tool_name = TOOL_NAMES[mode]
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": messages,
            "tools": [
                {
                    "name": tool_name,
                    "description": TOOL_DESCRIPTIONS[mode],
                    "input_schema": content_schema(mode, self.limits),
                }
            ],
            "tool_choice": {"type": "tool", "name": tool_name},
        }
        if instructions:
            payload["system"] = instructions

        return ProviderRequest(url=self.messages_url, headers=self.headers(), payload=payload)

    def tokens_used(self, raw: dict[str, Any]) -> int | None:
        usage = raw.get("usage") if isinstance(raw, dict) else None
        if not isinstance(usage, dict):
            return None
        counts = [usage.get("input_tokens"), usage.get("output_tokens")]
        if all(count is None for count in counts):
            return None
        return sum(count or 0 for count in counts)

    def extract(self, raw: dict[str, Any], mode: Mode) -> Any:
        blocks = raw.get("content") if isinstance(raw, dict) else None
        if not isinstance(blocks, list) or not blocks:
            raise self.error("Unexpected API response format: no content blocks")

        for block in blocks:
            if isinstance(block, dict) and block.get("type") == "tool_use":
                tool_input = block.get("input")
                if isinstance(tool_input, str):
                    return self.parse_json_text(tool_input)
                return tool_input

        # No tool call, fall back to any text the model produced
        for block in blocks:
            if isinstance(block, dict) and block.get("type") == "text":
                return self.parse_json_text(block.get("text") or "")

        raise self.error("Unexpected API response format: no text or tool_use content")
